"""ChatKit facade.

The host-facing entry point: owns the conversation state (messages,
conversation id, application context, onboarding info) and wires a vendor
adapter, the reduction engine and the message store together for each send.
"""

import logging
from typing import Callable, Optional
from uuid import uuid4

from chatkit.application.adapters.chat_adapter import ChatAdapter
from chatkit.application.services.block_sink import MessageStore
from chatkit.application.services.initialization import InitializationState, InitializationStateMachine
from chatkit.application.streaming.reduction_engine import ReductionEngine
from chatkit.domain.models import ApplicationContext, ChatMessage, ConversationHistory, OnboardingInfo, Role, RoleType, TextBlock

logger = logging.getLogger(__name__)


class ChatKit:
    """Conversational assistant session backed by one vendor adapter.

    Args:
        adapter: Vendor backend
        default_context: Context used when neither the call nor the session supplies one
        assistant_name: Display name for assistant messages
        user_name: Display name for user messages
        on_change: Called with a message whenever it is added or its blocks change
    """

    def __init__(
        self,
        adapter: ChatAdapter,
        default_context: Optional[ApplicationContext] = None,
        assistant_name: str = "AI Assistant",
        user_name: str = "User",
        on_change: Optional[Callable[[ChatMessage], None]] = None,
    ) -> None:
        self.adapter = adapter
        self.default_context = default_context
        self.assistant_name = assistant_name
        self.user_name = user_name
        self.store = MessageStore(on_change=on_change)
        self.conversation_id = ""
        self.application_context: Optional[ApplicationContext] = default_context
        self.onboarding_info: Optional[OnboardingInfo] = None
        self.is_sending = False
        self.streaming_message_id: Optional[str] = None
        self._initialization = InitializationStateMachine()

    @property
    def messages(self) -> list[ChatMessage]:
        return self.store.messages

    @property
    def initialization_state(self) -> InitializationState:
        return self._initialization.state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Create the first conversation and load onboarding info.

        Runs once: calls made while initializing or after success are ignored.
        If conversation setup fails, onboarding info is still attempted; if that
        also fails the session returns to ``UNINITIALIZED`` so it can be retried.
        """
        if not self._initialization.transition_to(InitializationState.INITIALIZING):
            logger.debug(f"Skipping initialize in state {self._initialization.state.value}")
            return

        try:
            await self.create_conversation()
            self._initialization.transition_to(InitializationState.READY)
            return
        except Exception as e:
            logger.error(f"Failed to create conversation during initialization: {e}")

        try:
            self.onboarding_info = await self.adapter.get_onboarding_info()
            self._initialization.transition_to(InitializationState.READY, reason="onboarding_only")
        except Exception as e:
            logger.error(f"Failed to load onboarding info during initialization: {e}")
            self._initialization.transition_to(InitializationState.UNINITIALIZED, reason="failed")

    async def close(self) -> None:
        await self.adapter.close()

    # =========================================================================
    # Application Context
    # =========================================================================

    def inject_application_context(self, context: ApplicationContext) -> None:
        self.application_context = context

    def remove_application_context(self) -> None:
        self.application_context = self.default_context

    # =========================================================================
    # Conversations
    # =========================================================================

    async def create_conversation(self) -> None:
        """Start over: clear messages and the conversation id, then fetch onboarding info."""
        self.store.clear()
        self.conversation_id = ""
        self.onboarding_info = await self.adapter.get_onboarding_info()

    async def load_conversation(self, conversation_id: str) -> list[ChatMessage]:
        """Replace the session with a past conversation's messages."""
        messages = await self.adapter.get_conversation_messages(conversation_id)
        self.conversation_id = conversation_id
        self.store.replace_all(messages)
        self.onboarding_info = None
        logger.info(f"Loaded conversation {conversation_id} with {len(messages)} messages")
        return messages

    async def list_conversations(self, page: int = 1, size: int = 10) -> list[ConversationHistory]:
        return await self.adapter.get_conversations(page, size)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.adapter.delete_conversation(conversation_id)
        if conversation_id == self.conversation_id:
            self.store.clear()
            self.conversation_id = ""

    # =========================================================================
    # Chat
    # =========================================================================

    async def send(
        self,
        text: str,
        context: Optional[ApplicationContext] = None,
        conversation_id: Optional[str] = None,
    ) -> ChatMessage:
        """Send a user message and stream the assistant reply into the store.

        Args:
            text: User input
            context: Application context for this and later messages
            conversation_id: Target conversation; defaults to the session's, created on demand

        Returns:
            The completed assistant message

        Raises:
            ValueError: If ``text`` is blank
            ChatApiError: If the vendor call fails
        """
        if not text or not text.strip():
            raise ValueError("Message text must not be empty")

        if context is not None:
            self.application_context = context

        target_conversation = conversation_id or self.conversation_id
        if not target_conversation:
            try:
                target_conversation = await self.adapter.generate_conversation(text)
            except Exception as e:
                logger.error(f"Failed to create conversation before sending, continuing without one: {e}")
                target_conversation = ""
            self.conversation_id = target_conversation

        final_context = context or self.application_context or self.default_context or ApplicationContext()
        self.store.add_message(
            ChatMessage(
                message_id=f"user-{uuid4().hex}",
                role=Role(type=RoleType.USER, name=self.user_name),
                content=[TextBlock(content=text)],
                application_context=None if final_context.is_empty() else final_context,
            )
        )

        self.is_sending = True
        try:
            return await self._stream_reply(text, final_context, target_conversation)
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            raise
        finally:
            self.is_sending = False
            self.streaming_message_id = None

    async def _stream_reply(self, text: str, context: ApplicationContext, conversation_id: str) -> ChatMessage:
        handle = await self.adapter.send_message(text, context, conversation_id)

        message_id = f"assistant-{uuid4().hex}"
        assistant_message = ChatMessage(message_id=message_id, role=Role(type=RoleType.ASSISTANT, name=self.assistant_name))
        self.store.add_message(assistant_message)
        self.streaming_message_id = message_id

        engine = ReductionEngine(self.adapter.create_translator(self.store))
        async with handle:
            await engine.run(handle.chunks(), message_id)

        discovered = self.adapter.active_conversation_id
        if not self.conversation_id and discovered:
            self.conversation_id = discovered
        return self.store.get_message(message_id) or assistant_message

    async def stop(self) -> None:
        """Ask the vendor to stop the reply in progress. Local state is cleared even if that fails."""
        try:
            if self.conversation_id:
                await self.adapter.terminate_conversation(self.conversation_id)
        except Exception as e:
            logger.error(f"Failed to terminate conversation {self.conversation_id}: {e}")
        finally:
            self.is_sending = False
            self.streaming_message_id = None
