"""Bot platform adapter.

Talks to a Coze-style v3 chat API: bots are addressed by id, replies
stream as named SSE events carrying flat text deltas.
"""

import logging
from typing import Any, Optional

import httpx

from chatkit.application.adapters.chat_adapter import DEFAULT_PROLOGUE, AdapterType, StreamHandle, format_query
from chatkit.application.services.block_sink import BlockSink
from chatkit.application.services.token_refresh import RefreshCallback
from chatkit.application.streaming.patch_interpreter import get_in
from chatkit.application.streaming.translators import BotPlatformTranslator
from chatkit.domain.models import ApplicationContext, OnboardingInfo
from chatkit.infrastructure.adapters.http_chat_adapter import HttpChatAdapter
from chatkit.observability import conversations_created, messages_sent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coze.cn"
DEFAULT_USER_ID = "chatkit-user"


class BotPlatformAdapter(HttpChatAdapter):
    """Adapter for the bot platform chat API.

    The active ``conversation_id`` and ``chat_id`` are captured from the
    stream so a reply in progress can be cancelled.
    """

    PROVIDER_NAME = "bot_platform"

    def __init__(
        self,
        bot_id: str,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        user_id: str = DEFAULT_USER_ID,
        timeout: float = 120.0,
        refresh_token: Optional[RefreshCallback] = None,
        client: Optional[httpx.AsyncClient] = None,
        welcome_message: str = DEFAULT_PROLOGUE,
    ) -> None:
        super().__init__(base_url=base_url, token=api_token, timeout=timeout, refresh_token=refresh_token, client=client)
        self.bot_id = bot_id
        self.user_id = user_id or DEFAULT_USER_ID
        self.conversation_id: Optional[str] = None
        self.chat_id: Optional[str] = None
        self.welcome_message = welcome_message or DEFAULT_PROLOGUE

    @property
    def adapter_type(self) -> AdapterType:
        return AdapterType.BOT_PLATFORM

    async def get_onboarding_info(self) -> OnboardingInfo:
        try:
            body = await self._request("GET", f"{self._base_url}/v1/bots/{self.bot_id}", "get_bot_info", params={"is_published": "true"})
        except Exception as e:
            logger.warning(f"Failed to load bot onboarding info, using default: {e}")
            return OnboardingInfo(prologue=self.welcome_message)

        info = get_in(body, ["data", "onboarding_info"])
        if not isinstance(info, dict):
            return OnboardingInfo(prologue=self.welcome_message)

        prologue = info.get("prologue")
        questions = info.get("suggested_questions")
        return OnboardingInfo(
            prologue=prologue if isinstance(prologue, str) and prologue else self.welcome_message,
            predefined_questions=[q for q in questions if isinstance(q, str) and q.strip()] if isinstance(questions, list) else [],
        )

    async def generate_conversation(self, title: Optional[str] = None) -> str:
        try:
            body = await self._request("POST", f"{self._base_url}/v1/conversation/create", "create_conversation", json_body={})
        except Exception as e:
            logger.error(f"Failed to create bot platform conversation: {e}")
            return ""

        conversation_id = get_in(body, ["data", "id"]) or get_in(body, ["conversation_id"]) or ""
        if conversation_id:
            self.conversation_id = str(conversation_id)
            conversations_created.add(1, {"provider": self.PROVIDER_NAME})
            logger.info(f"Created bot platform conversation {conversation_id}")
        return str(conversation_id)

    async def send_message(self, text: str, context: Optional[ApplicationContext], conversation_id: str) -> StreamHandle:
        body: dict[str, Any] = {
            "bot_id": self.bot_id,
            "user_id": self.user_id,
            "stream": True,
            "additional_messages": [
                {
                    "role": "user",
                    "content": format_query(text, context),
                    "content_type": "text",
                }
            ],
        }
        params = {"conversation_id": conversation_id} if conversation_id else None

        self.chat_id = None
        if conversation_id:
            self.conversation_id = conversation_id
        handle = await self._open_stream(f"{self._base_url}/v3/chat", "chat", json_body=body, params=params)
        messages_sent.add(1, {"provider": self.PROVIDER_NAME})
        return handle

    async def terminate_conversation(self, conversation_id: str) -> None:
        if not self.chat_id:
            logger.debug("No active bot platform chat to cancel")
            return
        await self._request(
            "POST",
            f"{self._base_url}/v3/chat/cancel",
            "cancel_chat",
            json_body={"conversation_id": conversation_id or self.conversation_id, "chat_id": self.chat_id},
        )
        logger.info(f"Cancelled bot platform chat {self.chat_id}")
        self.chat_id = None

    @property
    def active_conversation_id(self) -> Optional[str]:
        return self.conversation_id

    def create_translator(self, sink: BlockSink) -> BotPlatformTranslator:
        return BotPlatformTranslator(sink, on_ids=self._remember_ids)

    def _remember_ids(self, conversation_id: Optional[str], chat_id: Optional[str]) -> None:
        if conversation_id:
            self.conversation_id = conversation_id
        if chat_id:
            self.chat_id = chat_id
