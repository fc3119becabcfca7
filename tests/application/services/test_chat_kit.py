"""Unit tests for the ChatKit facade.

Tests cover:
- send(): validation, conversation auto-creation, context handling, streaming
- Error propagation and sending-state cleanup
- Conversation management (create, load, delete, stop)
- The initialization state machine
"""

from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from chatkit.application.adapters.chat_adapter import AdapterType, ChatAdapter, StreamHandle
from chatkit.application.errors import ChatApiError, UnsupportedOperationError
from chatkit.application.services.chat_kit import ChatKit
from chatkit.application.services.initialization import InitializationState, InitializationStateMachine
from chatkit.application.streaming.translators import BotPlatformTranslator
from chatkit.domain.models import ApplicationContext, BlockType, ChatMessage, OnboardingInfo, Role, RoleType, TextBlock


class FakeAdapter(ChatAdapter):
    """In-memory adapter replaying a canned bot platform stream."""

    def __init__(self, stream_body: bytes = b"") -> None:
        self.stream_body = stream_body
        self.generate_conversation = AsyncMock(return_value="conv-1")
        self.get_onboarding_info = AsyncMock(return_value=OnboardingInfo(prologue="Welcome", predefined_questions=["What can you do?"]))
        self.terminate_conversation = AsyncMock()
        self.sent: list[tuple[str, Optional[ApplicationContext], str]] = []

    @property
    def adapter_type(self) -> AdapterType:
        return AdapterType.BOT_PLATFORM

    async def generate_conversation(self, title: Optional[str] = None) -> str:  # replaced by AsyncMock
        return ""

    async def get_onboarding_info(self) -> OnboardingInfo:  # replaced by AsyncMock
        return OnboardingInfo(prologue="")

    async def terminate_conversation(self, conversation_id: str) -> None:  # replaced by AsyncMock
        return None

    async def send_message(self, text: str, context: Optional[ApplicationContext], conversation_id: str) -> StreamHandle:
        self.sent.append((text, context, conversation_id))
        return StreamHandle(httpx.Response(200, content=self.stream_body))

    def create_translator(self, sink):
        return BotPlatformTranslator(sink)


@pytest.fixture
def hi_there_stream(sse):
    return sse(
        ("conversation.message.delta", {"content": "Hi", "type": "answer"}),
        ("conversation.message.completed", {"content": "Hi there", "type": "answer"}),
        ("done", '"[DONE]"'),
    )


@pytest.fixture
def adapter(hi_there_stream):
    return FakeAdapter(hi_there_stream)


@pytest.fixture
def chat_kit(adapter):
    return ChatKit(adapter)


class TestSend:
    """Test sending messages."""

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, chat_kit, adapter):
        """Test that empty or whitespace text raises ValueError."""
        with pytest.raises(ValueError):
            await chat_kit.send("   ")
        assert adapter.sent == []

    @pytest.mark.asyncio
    async def test_send_streams_assistant_reply(self, chat_kit, adapter):
        """Test the full send flow with conversation auto-creation."""
        reply = await chat_kit.send("Hello")

        adapter.generate_conversation.assert_awaited_once_with("Hello")
        assert chat_kit.conversation_id == "conv-1"
        assert adapter.sent[0][0] == "Hello"
        assert adapter.sent[0][2] == "conv-1"

        assert reply.role.type == RoleType.ASSISTANT
        assert [(b.type, b.content) for b in reply.content] == [(BlockType.MARKDOWN, "Hi there")]

        user_message, assistant_message = chat_kit.messages
        assert user_message.role.type == RoleType.USER
        assert user_message.content == [TextBlock(content="Hello")]
        assert assistant_message is reply
        assert chat_kit.is_sending is False
        assert chat_kit.streaming_message_id is None

    @pytest.mark.asyncio
    async def test_explicit_conversation_id_skips_creation(self, chat_kit, adapter):
        """Test that a given conversation id is used as-is."""
        await chat_kit.send("Hello", conversation_id="existing")

        adapter.generate_conversation.assert_not_awaited()
        assert adapter.sent[0][2] == "existing"

    @pytest.mark.asyncio
    async def test_failed_conversation_creation_is_tolerated(self, chat_kit, adapter):
        """Test that sending proceeds without a conversation id."""
        adapter.generate_conversation.return_value = ""

        await chat_kit.send("Hello")

        assert adapter.sent[0][2] == ""

    @pytest.mark.asyncio
    async def test_context_attached_and_remembered(self, chat_kit, adapter):
        """Test that a context is sent, attached to the user message and kept for later sends."""
        context = ApplicationContext(title="Order #42", data={"order_id": 42})

        await chat_kit.send("Why is it late?", context=context)
        await chat_kit.send("And the invoice?")

        assert adapter.sent[0][1] == context
        assert adapter.sent[1][1] == context
        assert chat_kit.messages[0].application_context == context

    @pytest.mark.asyncio
    async def test_empty_context_not_attached(self, chat_kit, adapter):
        """Test that an empty context is sent but not attached to the user message."""
        await chat_kit.send("Hello")

        assert adapter.sent[0][1] == ApplicationContext()
        assert chat_kit.messages[0].application_context is None

    @pytest.mark.asyncio
    async def test_inject_and_remove_context(self, adapter):
        """Test injecting a context and restoring the default."""
        default = ApplicationContext(title="Dashboard")
        chat_kit = ChatKit(adapter, default_context=default)

        chat_kit.inject_application_context(ApplicationContext(title="Report"))
        assert chat_kit.application_context.title == "Report"

        chat_kit.remove_application_context()
        assert chat_kit.application_context is default

    @pytest.mark.asyncio
    async def test_transport_error_propagates_and_clears_state(self, chat_kit, adapter):
        """Test that send errors reach the caller with sending state cleared."""
        adapter.send_message = AsyncMock(side_effect=ChatApiError("boom", status=500))

        with pytest.raises(ChatApiError):
            await chat_kit.send("Hello")

        assert chat_kit.is_sending is False
        assert chat_kit.streaming_message_id is None
        assert len(chat_kit.messages) == 1


class TestConversations:
    """Test conversation management."""

    @pytest.mark.asyncio
    async def test_create_conversation_resets_and_loads_onboarding(self, chat_kit, adapter):
        """Test that creating a conversation clears state and fetches onboarding."""
        await chat_kit.send("Hello")

        await chat_kit.create_conversation()

        assert chat_kit.messages == []
        assert chat_kit.conversation_id == ""
        assert chat_kit.onboarding_info.prologue == "Welcome"

    @pytest.mark.asyncio
    async def test_load_conversation(self, chat_kit, adapter):
        """Test replacing messages from history."""
        history = [ChatMessage(message_id="h1", role=Role(type=RoleType.USER), content=[TextBlock(content="old")])]
        adapter.get_conversation_messages = AsyncMock(return_value=history)
        chat_kit.onboarding_info = OnboardingInfo(prologue="x")

        await chat_kit.load_conversation("conv-old")

        assert chat_kit.conversation_id == "conv-old"
        assert chat_kit.messages == history
        assert chat_kit.onboarding_info is None

    @pytest.mark.asyncio
    async def test_history_unsupported_by_default(self, chat_kit):
        """Test that adapters without history support raise."""
        with pytest.raises(UnsupportedOperationError):
            await chat_kit.list_conversations()

    @pytest.mark.asyncio
    async def test_delete_current_conversation_clears_session(self, chat_kit, adapter):
        """Test that deleting the active conversation resets the session."""
        adapter.delete_conversation = AsyncMock()
        await chat_kit.send("Hello")

        await chat_kit.delete_conversation("conv-1")

        adapter.delete_conversation.assert_awaited_once_with("conv-1")
        assert chat_kit.conversation_id == ""
        assert chat_kit.messages == []

    @pytest.mark.asyncio
    async def test_stop_terminates_conversation(self, chat_kit, adapter):
        """Test that stop calls the vendor termination."""
        chat_kit.conversation_id = "conv-1"
        chat_kit.is_sending = True

        await chat_kit.stop()

        adapter.terminate_conversation.assert_awaited_once_with("conv-1")
        assert chat_kit.is_sending is False

    @pytest.mark.asyncio
    async def test_stop_clears_state_on_failure(self, chat_kit, adapter):
        """Test that a failed termination still clears the sending state."""
        adapter.terminate_conversation.side_effect = ChatApiError("gone", status=404)
        chat_kit.conversation_id = "conv-1"
        chat_kit.is_sending = True
        chat_kit.streaming_message_id = "assistant-1"

        await chat_kit.stop()

        assert chat_kit.is_sending is False
        assert chat_kit.streaming_message_id is None


class TestInitialization:
    """Test the initialization state machine."""

    @pytest.mark.asyncio
    async def test_initialize_reaches_ready(self, chat_kit, adapter):
        """Test a successful initialization."""
        await chat_kit.initialize()

        assert chat_kit.initialization_state == InitializationState.READY
        assert chat_kit.onboarding_info.prologue == "Welcome"

    @pytest.mark.asyncio
    async def test_initialize_runs_once(self, chat_kit, adapter):
        """Test that repeated calls are no-ops."""
        await chat_kit.initialize()
        await chat_kit.initialize()

        assert adapter.get_onboarding_info.await_count == 1

    @pytest.mark.asyncio
    async def test_onboarding_retry_after_creation_failure(self, chat_kit, adapter):
        """Test that onboarding is retried when conversation setup fails."""
        adapter.get_onboarding_info.side_effect = [RuntimeError("down"), OnboardingInfo(prologue="Second try")]

        await chat_kit.initialize()

        assert chat_kit.initialization_state == InitializationState.READY
        assert chat_kit.onboarding_info.prologue == "Second try"

    @pytest.mark.asyncio
    async def test_total_failure_returns_to_uninitialized(self, chat_kit, adapter):
        """Test that the session can be initialized again after failing."""
        adapter.get_onboarding_info.side_effect = RuntimeError("down")

        await chat_kit.initialize()

        assert chat_kit.initialization_state == InitializationState.UNINITIALIZED

    def test_invalid_transition_rejected(self):
        """Test that READY cannot be entered directly."""
        machine = InitializationStateMachine()

        assert machine.transition_to(InitializationState.READY) is False
        assert machine.transition_to(InitializationState.INITIALIZING) is True
        assert machine.transition_to(InitializationState.READY, reason="test") is True
        assert machine.is_ready
        assert [t.to_state for t in machine.history] == [InitializationState.INITIALIZING, InitializationState.READY]
