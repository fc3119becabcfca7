"""Chat domain models.

Pydantic models for chat messages, the typed content blocks an assistant
message is made of, and the payloads carried by tool blocks (web search,
code execution, text-to-SQL, chart data).

All models accept both snake_case field names and the camelCase aliases
used when serializing to a host UI (``model_dump(by_alias=True)``).
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

# =============================================================================
# Roles
# =============================================================================


class RoleType(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Role(BaseModel):
    """Message author as displayed by the UI."""

    type: RoleType
    name: str = ""
    avatar: str = ""


# =============================================================================
# Tool Payloads
# =============================================================================


class WebSearchResult(BaseModel):
    """One search hit."""

    content: str = ""
    icon: str = ""
    link: str = ""
    media: str = ""
    title: str = ""


class WebSearchQuery(BaseModel):
    """A web search invocation: the query text and its hits."""

    input: str
    results: list[WebSearchResult] = Field(default_factory=list)


class ExecuteCodeResult(BaseModel):
    """Source code that was executed and its captured stdout."""

    input: str
    output: str = ""


class Text2SqlCite(BaseModel):
    """A table or view the generated SQL draws from."""

    id: str = ""
    name: str = ""
    type: str = ""
    description: str = ""


class Text2SqlDataDesc(BaseModel):
    """Row counts for a text-to-SQL result."""

    return_records_num: int = Field(default=0, alias="returnRecordsNum")
    real_records_num: int = Field(default=0, alias="realRecordsNum")

    model_config = {"populate_by_name": True}


class Text2SqlResult(BaseModel):
    """A natural-language question translated to SQL, plus the data it returned."""

    input: str
    sql: str = ""
    data: list[dict[str, Any]] = Field(default_factory=list)
    cites: list[Text2SqlCite] = Field(default_factory=list)
    title: str = ""
    message: str = ""
    data_desc: Optional[Text2SqlDataDesc] = Field(default=None, alias="dataDesc")
    explanation: Any = None

    model_config = {"populate_by_name": True}


ChartType = Literal["Line", "Column", "Pie", "Circle"]
FieldDataType = Literal["string", "number", "date", "boolean"]


class ChartDimension(BaseModel):
    """A categorical axis of a chart."""

    name: str
    display_name: str = Field(alias="displayName")
    data_type: FieldDataType = Field(alias="dataType")

    model_config = {"populate_by_name": True}


class ChartMeasure(BaseModel):
    """A numeric value plotted on a chart."""

    name: str
    display_name: str = Field(alias="displayName")
    data_type: FieldDataType = Field(default="number", alias="dataType")
    aggregation: Optional[Literal["sum", "count", "avg", "max", "min"]] = None

    model_config = {"populate_by_name": True}


class ChartDataSchema(BaseModel):
    """Chart definition projected from a chart-generation skill result."""

    chart_type: ChartType = Field(alias="chartType")
    title: str = ""
    dimensions: list[ChartDimension]
    measures: list[ChartMeasure]
    rows: list[dict[str, Any]]

    model_config = {"populate_by_name": True}


class ToolCallData(BaseModel):
    """Generic tool block payload: what was asked and what came back."""

    name: str
    title: str = ""
    icon: str = ""
    input: Any = None
    output: Any = None


# =============================================================================
# Content Blocks
# =============================================================================


class BlockType(str, Enum):
    """Renderable content block kinds."""

    TEXT = "Text"
    MARKDOWN = "Markdown"
    WEB_SEARCH = "WebSearch"
    TOOL = "Tool"
    JSON2PLOT = "Json2Plot"


class TextBlock(BaseModel):
    type: Literal[BlockType.TEXT] = BlockType.TEXT
    content: str


class MarkdownBlock(BaseModel):
    type: Literal[BlockType.MARKDOWN] = BlockType.MARKDOWN
    content: str


class WebSearchBlock(BaseModel):
    type: Literal[BlockType.WEB_SEARCH] = BlockType.WEB_SEARCH
    content: WebSearchQuery


class ToolBlock(BaseModel):
    type: Literal[BlockType.TOOL] = BlockType.TOOL
    content: ToolCallData


class Json2PlotBlock(BaseModel):
    type: Literal[BlockType.JSON2PLOT] = BlockType.JSON2PLOT
    content: ChartDataSchema


ContentBlock = Annotated[
    Union[TextBlock, MarkdownBlock, WebSearchBlock, ToolBlock, Json2PlotBlock],
    Field(discriminator="type"),
]


# =============================================================================
# Messages & Conversations
# =============================================================================


class ApplicationContext(BaseModel):
    """Host-supplied context attached to a user message.

    ``title`` is a short human label; ``data`` is forwarded to the vendor
    as structured input.
    """

    title: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.title and not self.data


class ChatMessage(BaseModel):
    """One message in the conversation, made of ordered content blocks."""

    message_id: str = Field(alias="messageId")
    role: Role
    content: list[ContentBlock] = Field(default_factory=list)
    application_context: Optional[ApplicationContext] = Field(default=None, alias="applicationContext")

    model_config = {"populate_by_name": True}


class OnboardingInfo(BaseModel):
    """Greeting and suggested questions shown before the first message."""

    prologue: str
    predefined_questions: list[str] = Field(default_factory=list, alias="predefinedQuestions")

    model_config = {"populate_by_name": True}


class ConversationHistory(BaseModel):
    """A past conversation as listed by the vendor."""

    conversation_id: str = Field(alias="conversationID")
    title: str
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    message_index: Optional[int] = None
    read_message_index: Optional[int] = None

    model_config = {"populate_by_name": True}
