"""Application settings configuration for ChatKit."""

import logging
import sys

from neuroglia.hosting.abstractions import ApplicationSettings


class Settings(ApplicationSettings):
    """ChatKit settings for the bot platform and agent platform backends."""

    # Logging Configuration
    log_level: str = "INFO"

    # ==========================================================================
    # Adapter Selection
    # ==========================================================================
    adapter_type: str = "agent_platform"  # "bot_platform" or "agent_platform"
    http_timeout: float = 120.0  # Streaming replies can take a while to finish

    # ==========================================================================
    # Bot Platform (Coze-style API) Configuration
    # ==========================================================================
    bot_platform_base_url: str = "https://api.coze.cn"
    bot_platform_bot_id: str = ""
    bot_platform_api_token: str = ""  # Personal access token, sent as Bearer
    bot_platform_user_id: str = "chatkit-user"

    # ==========================================================================
    # Agent Platform (DIP-style API) Configuration
    # ==========================================================================
    agent_platform_base_url: str = "https://dip.aishu.cn/api/agent-app/v1"
    agent_platform_agent_id: str = ""
    agent_platform_token: str = ""  # Accepts a raw token or a "Bearer ..." value
    agent_platform_version: str = "latest"
    agent_platform_executor_version: str = "v2"
    agent_platform_business_domain: str = "bd_public"

    # ==========================================================================
    # UI Configuration
    # ==========================================================================
    assistant_name: str = "AI Assistant"
    user_name: str = "User"
    welcome_message: str = "Hello! I'm an AI assistant. How can I help you today?"

    class Config:
        env_file = ".env"
        env_prefix = "CHATKIT_"  # All env vars prefixed with CHATKIT_
        case_sensitive = False
        extra = "ignore"


app_settings = Settings()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from the HTTP transport
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
