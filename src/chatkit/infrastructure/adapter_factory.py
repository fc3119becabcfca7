"""Factory for building adapters and ChatKit sessions from settings."""

import logging
from typing import Optional

import httpx

from chatkit.application.adapters.chat_adapter import AdapterType, ChatAdapter
from chatkit.application.services.chat_kit import ChatKit
from chatkit.application.services.token_refresh import RefreshCallback
from chatkit.infrastructure.adapters import AgentPlatformAdapter, BotPlatformAdapter
from chatkit.settings import Settings

logger = logging.getLogger(__name__)


def create_adapter(
    settings: Settings,
    refresh_token: Optional[RefreshCallback] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ChatAdapter:
    """Create the adapter selected by ``settings.adapter_type``.

    Args:
        settings: Application settings
        refresh_token: Optional async callback returning a fresh access token
        client: Optional pre-configured HTTP client

    Returns:
        Configured adapter

    Raises:
        ValueError: If the adapter type is unknown
    """
    try:
        adapter_type = AdapterType(settings.adapter_type.lower())
    except ValueError:
        raise ValueError(f"Unknown adapter type: {settings.adapter_type}. Expected one of {[t.value for t in AdapterType]}")

    if adapter_type == AdapterType.BOT_PLATFORM:
        logger.info(f"Using bot platform adapter at {settings.bot_platform_base_url} (bot {settings.bot_platform_bot_id})")
        return BotPlatformAdapter(
            bot_id=settings.bot_platform_bot_id,
            api_token=settings.bot_platform_api_token,
            base_url=settings.bot_platform_base_url,
            user_id=settings.bot_platform_user_id,
            timeout=settings.http_timeout,
            refresh_token=refresh_token,
            client=client,
            welcome_message=settings.welcome_message,
        )

    logger.info(f"Using agent platform adapter at {settings.agent_platform_base_url} (agent {settings.agent_platform_agent_id})")
    return AgentPlatformAdapter(
        agent_id=settings.agent_platform_agent_id,
        token=settings.agent_platform_token,
        base_url=settings.agent_platform_base_url,
        agent_version=settings.agent_platform_version,
        executor_version=settings.agent_platform_executor_version,
        business_domain=settings.agent_platform_business_domain,
        timeout=settings.http_timeout,
        refresh_token=refresh_token,
        client=client,
        welcome_message=settings.welcome_message,
    )


def create_chat_kit(settings: Settings, refresh_token: Optional[RefreshCallback] = None) -> ChatKit:
    """Create a ChatKit session wired to the configured adapter."""
    return ChatKit(
        create_adapter(settings, refresh_token=refresh_token),
        assistant_name=settings.assistant_name,
        user_name=settings.user_name,
    )
