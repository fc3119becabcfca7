"""ChatKit: incremental message reconstruction for streaming chat assistants.

Consumes vendor SSE streams, folds their incremental updates into one
assistant message and projects it into typed content blocks.
"""

from chatkit.application.adapters import AdapterType, ChatAdapter, StreamHandle
from chatkit.application.errors import ChatApiError, ChatKitError, PatchError, UnsupportedOperationError
from chatkit.application.services.chat_kit import ChatKit
from chatkit.application.services.initialization import InitializationState
from chatkit.infrastructure.adapter_factory import create_adapter, create_chat_kit
from chatkit.infrastructure.adapters import AgentPlatformAdapter, BotPlatformAdapter

__all__ = [
    "AdapterType",
    "AgentPlatformAdapter",
    "BotPlatformAdapter",
    "ChatAdapter",
    "ChatApiError",
    "ChatKit",
    "ChatKitError",
    "InitializationState",
    "PatchError",
    "StreamHandle",
    "UnsupportedOperationError",
    "create_adapter",
    "create_chat_kit",
]
