"""Block sinks: where projected content blocks land.

``MessageStore`` is the live conversation store used while streaming; it
applies the Markdown streaming-merge rule so token-by-token updates render
as one growing paragraph. ``MessageBuilder`` assembles a single message
when replaying history and never merges.
"""

import logging
from typing import Callable, Optional, Protocol

from chatkit.domain.models import (
    ChartDataSchema,
    ChatMessage,
    ContentBlock,
    ExecuteCodeResult,
    Json2PlotBlock,
    MarkdownBlock,
    Text2SqlResult,
    TextBlock,
    ToolBlock,
    ToolCallData,
    WebSearchBlock,
    WebSearchQuery,
)
from chatkit.observability import blocks_emitted

logger = logging.getLogger(__name__)


class BlockSink(Protocol):
    """Receives content blocks for a message, keyed by message id."""

    def append_markdown_block(self, message_id: str, text: str) -> None: ...

    def append_text_block(self, message_id: str, text: str) -> None: ...

    def append_web_search_block(self, message_id: str, query: WebSearchQuery) -> None: ...

    def append_execute_code_block(self, message_id: str, result: ExecuteCodeResult) -> None: ...

    def append_text2sql_block(self, message_id: str, result: Text2SqlResult) -> None: ...

    def append_json2plot_block(self, message_id: str, chart: ChartDataSchema) -> None: ...


def execute_code_block(result: ExecuteCodeResult) -> ToolBlock:
    return ToolBlock(content=ToolCallData(name="execute_code", title="Code execution", input=result.input, output=result.output))


def text2sql_block(result: Text2SqlResult) -> ToolBlock:
    output = result.model_dump(by_alias=True, exclude={"input", "sql"})
    return ToolBlock(content=ToolCallData(name="text2sql", title=result.title, input=result.sql, output=output))


class MessageStore:
    """In-memory, ordered list of conversation messages.

    Args:
        on_change: Called with the affected message after every block update
    """

    def __init__(self, on_change: Optional[Callable[[ChatMessage], None]] = None) -> None:
        self._messages: list[ChatMessage] = []
        self._on_change = on_change

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def add_message(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._notify(message)

    def replace_all(self, messages: list[ChatMessage]) -> None:
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []

    def get_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in self._messages:
            if message.message_id == message_id:
                return message
        return None

    # BlockSink

    def append_markdown_block(self, message_id: str, text: str) -> None:
        message = self._find(message_id)
        if message is None:
            return
        last = message.content[-1] if message.content else None
        if isinstance(last, MarkdownBlock) and (last.content == "" or text.startswith(last.content)):
            message.content[-1] = MarkdownBlock(content=text)
            self._notify(message)
            return
        self._append(message, MarkdownBlock(content=text))

    def append_text_block(self, message_id: str, text: str) -> None:
        self._append(self._find(message_id), TextBlock(content=text))

    def append_web_search_block(self, message_id: str, query: WebSearchQuery) -> None:
        self._append(self._find(message_id), WebSearchBlock(content=query))

    def append_execute_code_block(self, message_id: str, result: ExecuteCodeResult) -> None:
        self._append(self._find(message_id), execute_code_block(result))

    def append_text2sql_block(self, message_id: str, result: Text2SqlResult) -> None:
        self._append(self._find(message_id), text2sql_block(result))

    def append_json2plot_block(self, message_id: str, chart: ChartDataSchema) -> None:
        self._append(self._find(message_id), Json2PlotBlock(content=chart))

    def _find(self, message_id: str) -> Optional[ChatMessage]:
        message = self.get_message(message_id)
        if message is None:
            logger.warning(f"Dropping block for unknown message {message_id}")
        return message

    def _append(self, message: Optional[ChatMessage], block: ContentBlock) -> None:
        if message is None:
            return
        message.content.append(block)
        blocks_emitted.add(1, {"block_type": block.type.value})
        self._notify(message)

    def _notify(self, message: ChatMessage) -> None:
        if self._on_change is not None:
            self._on_change(message)


class MessageBuilder:
    """Collects blocks for one message while replaying conversation history."""

    def __init__(self, message: ChatMessage) -> None:
        self.message = message

    def append_markdown_block(self, message_id: str, text: str) -> None:
        if text:
            self.message.content.append(MarkdownBlock(content=text))

    def append_text_block(self, message_id: str, text: str) -> None:
        self.message.content.append(TextBlock(content=text))

    def append_web_search_block(self, message_id: str, query: WebSearchQuery) -> None:
        self.message.content.append(WebSearchBlock(content=query))

    def append_execute_code_block(self, message_id: str, result: ExecuteCodeResult) -> None:
        self.message.content.append(execute_code_block(result))

    def append_text2sql_block(self, message_id: str, result: Text2SqlResult) -> None:
        self.message.content.append(text2sql_block(result))

    def append_json2plot_block(self, message_id: str, chart: ChartDataSchema) -> None:
        self.message.content.append(Json2PlotBlock(content=chart))
