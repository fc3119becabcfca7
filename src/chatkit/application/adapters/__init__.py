"""Vendor adapter capability interface."""

from chatkit.application.adapters.chat_adapter import AdapterType, ChatAdapter, StreamHandle, format_query

__all__ = ["AdapterType", "ChatAdapter", "StreamHandle", "format_query"]
