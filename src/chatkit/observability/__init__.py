"""Observability module for ChatKit.

Provides OpenTelemetry metrics for the stream engine and vendor adapters.
"""

from chatkit.observability.metrics import (
    adapter_request_count,
    adapter_request_time,
    blocks_emitted,
    conversations_created,
    conversations_deleted,
    frames_decoded,
    frames_dropped,
    messages_sent,
    patches_applied,
    patches_unrouted,
    token_refreshes,
)

__all__ = [
    "adapter_request_count",
    "adapter_request_time",
    "blocks_emitted",
    "conversations_created",
    "conversations_deleted",
    "frames_decoded",
    "frames_dropped",
    "messages_sent",
    "patches_applied",
    "patches_unrouted",
    "token_refreshes",
]
