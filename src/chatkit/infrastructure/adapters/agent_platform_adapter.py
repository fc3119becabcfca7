"""Agent platform adapter.

Talks to a DIP-style agent application API. Replies stream as generic
``upsert``/``append``/``end`` patches on the assistant message tree;
conversation history is rebuilt through the same block projectors.
"""

import json
import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

from chatkit.application.adapters.chat_adapter import DEFAULT_PROLOGUE, AdapterType, StreamHandle, format_query
from chatkit.application.services.block_sink import BlockSink, MessageBuilder
from chatkit.application.services.token_refresh import RefreshCallback
from chatkit.application.streaming.patch_interpreter import get_in
from chatkit.application.streaming.projectors import BlockProjector
from chatkit.application.streaming.translators import AgentPlatformTranslator
from chatkit.domain.models import ApplicationContext, ChatMessage, ConversationHistory, OnboardingInfo, Role, RoleType, TextBlock
from chatkit.infrastructure.adapters.http_chat_adapter import HttpChatAdapter
from chatkit.observability import conversations_created, conversations_deleted, messages_sent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dip.aishu.cn/api/agent-app/v1"
DEFAULT_AGENT_VERSION = "latest"
DEFAULT_EXECUTOR_VERSION = "v2"
DEFAULT_BUSINESS_DOMAIN = "bd_public"
DEFAULT_CONVERSATION_TITLE = "New conversation"
UNTITLED_CONVERSATION = "Untitled conversation"
DEFAULT_ASSISTANT_NAME = "AI Assistant"


def _normalize_token(token: str) -> str:
    token = (token or "").strip()
    if token.lower().startswith("bearer "):
        return token[len("bearer ") :].strip()
    return token


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode_content(content: Any) -> Any:
    if isinstance(content, str):
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return content
    return content


class AgentPlatformAdapter(HttpChatAdapter):
    """Adapter for the agent platform application API.

    Chat endpoints are addressed by the agent *key*, which is looked up from
    the agent market on first use and falls back to the agent id.
    """

    PROVIDER_NAME = "agent_platform"

    def __init__(
        self,
        agent_id: str,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        agent_version: str = DEFAULT_AGENT_VERSION,
        executor_version: str = DEFAULT_EXECUTOR_VERSION,
        business_domain: str = DEFAULT_BUSINESS_DOMAIN,
        timeout: float = 120.0,
        refresh_token: Optional[RefreshCallback] = None,
        client: Optional[httpx.AsyncClient] = None,
        welcome_message: str = DEFAULT_PROLOGUE,
    ) -> None:
        super().__init__(base_url=base_url, token=_normalize_token(token), timeout=timeout, refresh_token=refresh_token, client=client)
        self.agent_id = agent_id
        self.agent_version = agent_version or DEFAULT_AGENT_VERSION
        self.executor_version = executor_version or DEFAULT_EXECUTOR_VERSION
        self.business_domain = business_domain or DEFAULT_BUSINESS_DOMAIN
        self.agent_key: Optional[str] = None
        self.agent_name = ""
        self.welcome_message = welcome_message or DEFAULT_PROLOGUE

    @property
    def adapter_type(self) -> AdapterType:
        return AdapterType.AGENT_PLATFORM

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = super()._headers(extra)
        headers.setdefault("x-business-domain", self.business_domain)
        return headers

    def _agent_info_url(self) -> str:
        parts = urlsplit(self._base_url)
        return f"{parts.scheme}://{parts.netloc}/api/agent-factory/v3/agent-market/agent/{self.agent_id}/version/v0"

    def _app_url(self, path: str) -> str:
        return f"{self._base_url}/app/{self.agent_key}{path}"

    # =========================================================================
    # Agent Info & Onboarding
    # =========================================================================

    async def _fetch_agent_info(self) -> dict[str, Any]:
        body = await self._request("GET", self._agent_info_url(), "get_agent_info")
        if not isinstance(body, dict):
            return {}
        if body.get("key"):
            self.agent_key = str(body["key"])
        if body.get("name"):
            self.agent_name = str(body["name"])
        return body

    async def _resolve_agent_key(self) -> str:
        if self.agent_key:
            return self.agent_key
        try:
            await self._fetch_agent_info()
        except Exception as e:
            logger.warning(f"Failed to resolve agent key for {self.agent_id}, using agent id: {e}")
        if not self.agent_key:
            self.agent_key = self.agent_id
        return self.agent_key

    async def get_onboarding_info(self) -> OnboardingInfo:
        try:
            info = await self._fetch_agent_info()
        except Exception as e:
            logger.warning(f"Failed to load agent onboarding info, using default: {e}")
            return OnboardingInfo(prologue=self.welcome_message)

        prologue = self.welcome_message
        remark = get_in(info, ["config", "opening_remark_config"])
        if isinstance(remark, dict) and remark.get("type") == "fixed":
            fixed = remark.get("fixed_opening_remark")
            if isinstance(fixed, str) and fixed:
                prologue = fixed

        questions: list[str] = []
        presets = get_in(info, ["config", "preset_questions"])
        if isinstance(presets, list):
            for preset in presets:
                question = preset.get("question") if isinstance(preset, dict) else None
                if isinstance(question, str) and question.strip():
                    questions.append(question)

        return OnboardingInfo(prologue=prologue, predefined_questions=questions)

    # =========================================================================
    # Chat
    # =========================================================================

    async def generate_conversation(self, title: Optional[str] = None) -> str:
        await self._resolve_agent_key()
        try:
            body = await self._request("POST", self._app_url("/conversation"), "create_conversation", json_body={"title": title or DEFAULT_CONVERSATION_TITLE})
        except Exception as e:
            logger.error(f"Failed to create agent platform conversation: {e}")
            return ""

        conversation_id = get_in(body, ["data", "id"]) or get_in(body, ["id"]) or ""
        if conversation_id:
            conversations_created.add(1, {"provider": self.PROVIDER_NAME})
            logger.info(f"Created agent platform conversation {conversation_id}")
        return str(conversation_id)

    async def send_message(self, text: str, context: Optional[ApplicationContext], conversation_id: str) -> StreamHandle:
        await self._resolve_agent_key()
        body: dict[str, Any] = {
            "agent_id": self.agent_id,
            "agent_version": self.agent_version,
            "executor_version": self.executor_version,
            "query": format_query(text, context),
            "stream": True,
        }
        if context is not None:
            body["custom_querys"] = context.data
        if conversation_id:
            body["conversation_id"] = conversation_id

        handle = await self._open_stream(self._app_url("/chat/completion"), "chat_completion", json_body=body, headers={"Accept": "text/event-stream"})
        messages_sent.add(1, {"provider": self.PROVIDER_NAME})
        return handle

    async def terminate_conversation(self, conversation_id: str) -> None:
        await self._resolve_agent_key()
        await self._request("POST", self._app_url("/chat/termination"), "terminate_chat", json_body={"conversation_id": conversation_id})
        logger.info(f"Terminated agent platform chat for conversation {conversation_id}")

    def create_translator(self, sink: BlockSink) -> AgentPlatformTranslator:
        return AgentPlatformTranslator(sink)

    # =========================================================================
    # Conversation History
    # =========================================================================

    async def get_conversations(self, page: int = 1, size: int = 10) -> list[ConversationHistory]:
        await self._resolve_agent_key()
        try:
            body = await self._request("GET", self._app_url("/conversation"), "list_conversations", params={"page": page, "size": size})
        except Exception as e:
            logger.error(f"Failed to list agent platform conversations: {e}")
            return []

        entries = get_in(body, ["data", "entries"]) or get_in(body, ["entries"]) or []
        if not isinstance(entries, list):
            return []
        return [
            ConversationHistory(
                conversation_id=str(entry.get("id", "")),
                title=entry.get("title") or UNTITLED_CONVERSATION,
                created_at=_optional_int(entry.get("create_time")),
                updated_at=_optional_int(entry.get("update_time")),
                message_index=_optional_int(entry.get("message_index")),
                read_message_index=_optional_int(entry.get("read_message_index")),
            )
            for entry in entries
            if isinstance(entry, dict)
        ]

    async def get_conversation_messages(self, conversation_id: str) -> list[ChatMessage]:
        await self._resolve_agent_key()
        try:
            body = await self._request("GET", self._app_url(f"/conversation/{conversation_id}"), "get_conversation")
        except Exception as e:
            logger.error(f"Failed to load agent platform conversation {conversation_id}: {e}")
            return []

        raw_messages = get_in(body, ["data", "Messages"]) or get_in(body, ["Messages"]) or []
        if not isinstance(raw_messages, list):
            return []

        messages: list[ChatMessage] = []
        for index, raw in enumerate(raw_messages):
            if not isinstance(raw, dict):
                continue
            message = self._history_message(raw, index)
            if message is not None:
                messages.append(message)
        logger.debug(f"Loaded {len(messages)} messages for conversation {conversation_id}")
        return messages

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._resolve_agent_key()
        await self._request("DELETE", self._app_url(f"/conversation/{conversation_id}"), "delete_conversation")
        conversations_deleted.add(1, {"provider": self.PROVIDER_NAME})
        logger.info(f"Deleted agent platform conversation {conversation_id}")

    def _history_message(self, raw: dict[str, Any], index: int) -> Optional[ChatMessage]:
        message_id = str(raw.get("id") or f"history-{index}")
        content = _decode_content(raw.get("content"))
        origin = raw.get("origin")

        if origin == "user":
            text = content.get("text") if isinstance(content, dict) else content
            return ChatMessage(
                message_id=message_id,
                role=Role(type=RoleType.USER, name="User"),
                content=[TextBlock(content=text)] if isinstance(text, str) and text else [],
            )

        if origin == "assistant":
            message = ChatMessage(message_id=message_id, role=Role(type=RoleType.ASSISTANT, name=self.agent_name or DEFAULT_ASSISTANT_NAME))
            if not isinstance(content, dict):
                return message
            builder = MessageBuilder(message)
            projector = BlockProjector(builder)

            progress = get_in(content, ["middle_answer", "progress"])
            if isinstance(progress, list):
                for entry in progress:
                    projector.project_entry(entry, message_id)

            final_text = get_in(content, ["final_answer", "answer", "text"])
            if isinstance(final_text, str):
                builder.append_markdown_block(message_id, final_text)

            projector.project_entry(get_in(content, ["final_answer", "answer_type_other"]), message_id)
            return message

        logger.debug(f"Skipping history message {message_id} with origin {origin!r}")
        return None
