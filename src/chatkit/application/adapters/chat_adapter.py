"""Chat adapter abstraction for ChatKit.

Defines the capability interface every vendor backend implements, allowing
the ``ChatKit`` facade to drive different chat APIs without coupling to a
specific wire format.

Design Principles:
- One adapter per vendor, selected at construction time
- Conversation calls that fail soft (create, onboarding) never raise
- Streaming calls return an open ``StreamHandle``; the engine consumes it
- History capabilities are optional and raise ``UnsupportedOperationError`` by default
"""

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Optional

import httpx

from chatkit.application.errors import ChatApiError, UnsupportedOperationError
from chatkit.application.services.block_sink import BlockSink
from chatkit.application.streaming.reduction_engine import EventTranslator
from chatkit.domain.models import ApplicationContext, ChatMessage, ConversationHistory, OnboardingInfo

logger = logging.getLogger(__name__)


class AdapterType(str, Enum):
    """Supported vendor backends."""

    BOT_PLATFORM = "bot_platform"
    AGENT_PLATFORM = "agent_platform"


DEFAULT_PROLOGUE = "Hello! I'm an AI assistant. How can I help you today?"


def format_query(text: str, context: Optional[ApplicationContext]) -> str:
    """Prepend the application context as a readable JSON block when it has a title."""
    if context is None or not context.title:
        return text
    data = json.dumps(context.data, indent=2, ensure_ascii=False)
    return f"[Context: {context.title}]\n{data}\n\n{text}"


class StreamHandle:
    """An open streaming HTTP response.

    The response body is consumed with ``chunks()``; ``aclose()`` releases the
    connection. Usable as an async context manager. Transport failures while
    reading the body surface as ``ChatApiError`` with status 0.
    """

    def __init__(self, response: httpx.Response, provider: str = "http") -> None:
        self._response = response
        self._provider = provider

    async def chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            logger.error(f"{self._provider} stream timed out: {e}")
            raise ChatApiError(f"{self._provider} stream timed out", status=0, provider=self._provider)
        except httpx.RequestError as e:
            logger.error(f"{self._provider} stream aborted: {e}")
            raise ChatApiError(f"{self._provider} stream aborted", status=0, provider=self._provider)

    async def aclose(self) -> None:
        await self._response.aclose()

    async def __aenter__(self) -> "StreamHandle":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class ChatAdapter(ABC):
    """Capability interface for a vendor chat backend."""

    @property
    @abstractmethod
    def adapter_type(self) -> AdapterType:
        """Which vendor this adapter talks to."""
        ...

    @abstractmethod
    async def generate_conversation(self, title: Optional[str] = None) -> str:
        """Create a server-side conversation.

        Returns:
            The new conversation id, or ``""`` when creation failed
        """
        ...

    @abstractmethod
    async def get_onboarding_info(self) -> OnboardingInfo:
        """Fetch the greeting and suggested questions; falls back to a default on failure."""
        ...

    @abstractmethod
    async def send_message(self, text: str, context: Optional[ApplicationContext], conversation_id: str) -> StreamHandle:
        """Start a chat completion and return its open SSE stream.

        Raises:
            ChatApiError: On transport failure or a non-2xx response
        """
        ...

    @abstractmethod
    async def terminate_conversation(self, conversation_id: str) -> None:
        """Ask the vendor to stop generating the current reply."""
        ...

    @abstractmethod
    def create_translator(self, sink: BlockSink) -> EventTranslator:
        """Build a translator for one assistant message stream."""
        ...

    async def get_conversations(self, page: int = 1, size: int = 10) -> list[ConversationHistory]:
        raise UnsupportedOperationError("get_conversations", self.adapter_type.value)

    async def get_conversation_messages(self, conversation_id: str) -> list[ChatMessage]:
        raise UnsupportedOperationError("get_conversation_messages", self.adapter_type.value)

    async def delete_conversation(self, conversation_id: str) -> None:
        raise UnsupportedOperationError("delete_conversation", self.adapter_type.value)

    @property
    def active_conversation_id(self) -> Optional[str]:
        """Conversation id learned from the vendor during streaming, if any."""
        return None

    def should_refresh_token(self, status: int, body: Any) -> bool:
        """Whether an error response means the access token expired."""
        return status == 401

    async def close(self) -> None:
        """Release network resources."""
        return None
