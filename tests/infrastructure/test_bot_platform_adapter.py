"""Tests for BotPlatformAdapter against a mocked HTTP transport.

Tests cover:
- Onboarding info and conversation creation, including soft failures
- Chat request shape and end-to-end streaming through ChatKit
- Chat cancellation using the captured chat id
- Token refresh on 401 and error mapping, including streams dropped mid-reply
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from chatkit.application.adapters.chat_adapter import DEFAULT_PROLOGUE
from chatkit.application.errors import ChatApiError, UnsupportedOperationError
from chatkit.application.services.chat_kit import ChatKit
from chatkit.domain.models import ApplicationContext
from chatkit.infrastructure.adapters import BotPlatformAdapter

BASE_URL = "https://bot.example.test"


@pytest.fixture
def chat_stream(sse):
    return sse(
        ("conversation.chat.created", {"id": "chat-1", "conversation_id": "conv-7", "status": "created"}),
        ("conversation.message.delta", {"id": "m1", "chat_id": "chat-1", "conversation_id": "conv-7", "type": "answer", "content": "Hi"}),
        ("conversation.message.completed", {"id": "m1", "chat_id": "chat-1", "conversation_id": "conv-7", "type": "answer", "content": "Hi there"}),
        ("conversation.chat.completed", {"id": "chat-1", "conversation_id": "conv-7", "status": "completed"}),
        ("done", '"[DONE]"'),
    )


def _adapter(client, **kwargs):
    return BotPlatformAdapter(bot_id="bot-1", api_token="tok", base_url=BASE_URL, client=client, **kwargs)


class TestOnboardingAndConversations:
    """Test onboarding info and conversation creation."""

    @pytest.mark.asyncio
    async def test_onboarding_info(self, mock_http):
        """Test prologue and suggested questions parsing."""
        body = {"code": 0, "data": {"onboarding_info": {"prologue": "I'm Bot", "suggested_questions": ["What's new?", " ", 3]}}}
        client, transport = mock_http({("GET", "/v1/bots/bot-1"): lambda request: httpx.Response(200, json=body)})

        info = await _adapter(client).get_onboarding_info()

        assert info.prologue == "I'm Bot"
        assert info.predefined_questions == ["What's new?"]
        request = transport.requests[0]
        assert request.url.params["is_published"] == "true"
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_onboarding_falls_back_on_error(self, mock_http):
        """Test the default prologue when the bot lookup fails."""
        client, _ = mock_http({("GET", "/v1/bots/bot-1"): lambda request: httpx.Response(500, text="oops")})

        info = await _adapter(client).get_onboarding_info()

        assert info.prologue == DEFAULT_PROLOGUE
        assert info.predefined_questions == []

    @pytest.mark.asyncio
    async def test_generate_conversation(self, mock_http):
        """Test that the new conversation id is returned."""
        client, transport = mock_http({("POST", "/v1/conversation/create"): lambda request: httpx.Response(200, json={"code": 0, "data": {"id": "conv-7"}})})

        assert await _adapter(client).generate_conversation("Hello") == "conv-7"
        assert transport.json_body(0) == {}

    @pytest.mark.asyncio
    async def test_generate_conversation_failure_returns_empty(self, mock_http):
        """Test that creation failures return an empty id."""
        client, _ = mock_http({("POST", "/v1/conversation/create"): lambda request: httpx.Response(503)})

        assert await _adapter(client).generate_conversation() == ""


class TestChat:
    """Test chat streaming, cancellation and auth handling."""

    @pytest.mark.asyncio
    async def test_send_through_chat_kit(self, mock_http, chat_stream):
        """Test request shape and the streamed reply."""
        client, transport = mock_http({("POST", "/v3/chat"): lambda request: httpx.Response(200, content=chat_stream, headers={"content-type": "text/event-stream"})})
        adapter = _adapter(client, user_id="user-5")
        chat_kit = ChatKit(adapter)

        reply = await chat_kit.send("Hello", context=ApplicationContext(title="Orders page", data={"order": 42}), conversation_id="conv-7")

        assert [b.content for b in reply.content] == ["Hi there"]
        body = transport.json_body(0)
        assert body["bot_id"] == "bot-1"
        assert body["user_id"] == "user-5"
        assert body["stream"] is True
        message = body["additional_messages"][0]
        assert message["role"] == "user"
        assert message["content_type"] == "text"
        assert message["content"].startswith("[Context: Orders page]\n{\n  \"order\": 42\n}\n\n")
        assert message["content"].endswith("Hello")
        assert transport.requests[0].url.params["conversation_id"] == "conv-7"
        assert adapter.chat_id == "chat-1"

    @pytest.mark.asyncio
    async def test_conversation_id_learned_from_stream(self, mock_http, chat_stream):
        """Test that ChatKit adopts the conversation id reported by the stream."""
        client, _ = mock_http(
            {
                ("POST", "/v1/conversation/create"): lambda request: httpx.Response(500),
                ("POST", "/v3/chat"): lambda request: httpx.Response(200, content=chat_stream),
            }
        )
        chat_kit = ChatKit(_adapter(client))

        await chat_kit.send("Hello")

        assert chat_kit.conversation_id == "conv-7"

    @pytest.mark.asyncio
    async def test_terminate_cancels_active_chat(self, mock_http):
        """Test that cancel is sent with the captured chat id."""
        client, transport = mock_http({("POST", "/v3/chat/cancel"): lambda request: httpx.Response(200, json={"code": 0})})
        adapter = _adapter(client)
        adapter.chat_id = "chat-1"

        await adapter.terminate_conversation("conv-7")

        assert transport.json_body(0) == {"conversation_id": "conv-7", "chat_id": "chat-1"}
        assert adapter.chat_id is None

    @pytest.mark.asyncio
    async def test_terminate_without_active_chat_is_noop(self, mock_http):
        """Test that nothing is sent when no chat is running."""
        client, transport = mock_http({})

        await _adapter(client).terminate_conversation("conv-7")

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_token_refresh_on_401(self, mock_http, chat_stream):
        """Test that an expired token is refreshed and the chat retried once."""

        def chat(request):
            if request.headers["Authorization"] == "Bearer tok":
                return httpx.Response(401, json={"code": 4100, "msg": "token expired"})
            return httpx.Response(200, content=chat_stream)

        client, transport = mock_http({("POST", "/v3/chat"): chat})
        refresh = AsyncMock(return_value="fresh")
        adapter = _adapter(client, refresh_token=refresh)

        handle = await adapter.send_message("Hello", None, "conv-7")
        await handle.aclose()

        refresh.assert_awaited_once()
        assert [r.headers["Authorization"] for r in transport.requests] == ["Bearer tok", "Bearer fresh"]
        assert adapter.token == "fresh"

    @pytest.mark.asyncio
    async def test_http_error_raises_chat_api_error(self, mock_http):
        """Test that non-2xx chat responses raise with status and body."""
        client, _ = mock_http({("POST", "/v3/chat"): lambda request: httpx.Response(400, json={"code": 4000, "msg": "bad request"})})

        with pytest.raises(ChatApiError) as exc_info:
            await _adapter(client).send_message("Hello", None, "")

        assert exc_info.value.status == 400
        assert exc_info.value.body == {"code": 4000, "msg": "bad request"}
        assert exc_info.value.error_code == "request_error"

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_status_zero(self, mock_http):
        """Test that transport failures raise ChatApiError with status 0."""

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = mock_http({("POST", "/v3/chat"): refuse})

        with pytest.raises(ChatApiError) as exc_info:
            await _adapter(client).send_message("Hello", None, "")

        assert exc_info.value.status == 0
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_stream_aborted_mid_reply_raises_chat_api_error(self, mock_http, sse):
        """Test that a connection dropped while streaming reaches the caller as ChatApiError."""
        first_delta = sse(("conversation.message.delta", {"id": "m1", "chat_id": "chat-1", "conversation_id": "conv-7", "type": "answer", "content": "Hi"}))

        class DroppedStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield first_delta
                raise httpx.ReadError("connection reset")

        client, _ = mock_http({("POST", "/v3/chat"): lambda request: httpx.Response(200, stream=DroppedStream())})
        chat_kit = ChatKit(_adapter(client))

        with pytest.raises(ChatApiError) as exc_info:
            await chat_kit.send("Hello", conversation_id="conv-7")

        assert exc_info.value.status == 0
        assert exc_info.value.provider == "bot_platform"
        assert exc_info.value.error_code == "connection_error"
        assert chat_kit.is_sending is False
        assert [b.content for b in chat_kit.messages[-1].content] == ["Hi"]

    @pytest.mark.asyncio
    async def test_history_not_supported(self, mock_http):
        """Test that history capabilities raise UnsupportedOperationError."""
        client, _ = mock_http({})
        adapter = _adapter(client)

        with pytest.raises(UnsupportedOperationError):
            await adapter.get_conversations()
        with pytest.raises(UnsupportedOperationError):
            await adapter.delete_conversation("conv-7")
