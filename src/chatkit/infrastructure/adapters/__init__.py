"""Vendor chat adapters."""

from chatkit.infrastructure.adapters.agent_platform_adapter import AgentPlatformAdapter
from chatkit.infrastructure.adapters.bot_platform_adapter import BotPlatformAdapter
from chatkit.infrastructure.adapters.http_chat_adapter import HttpChatAdapter

__all__ = ["AgentPlatformAdapter", "BotPlatformAdapter", "HttpChatAdapter"]
