"""Domain layer: chat models and stream event types."""

from chatkit.domain.events import Frame, KeyPath, Patch, PatchAction
from chatkit.domain.models import (
    ApplicationContext,
    BlockType,
    ChartDataSchema,
    ChartDimension,
    ChartMeasure,
    ChatMessage,
    ContentBlock,
    ConversationHistory,
    ExecuteCodeResult,
    Json2PlotBlock,
    MarkdownBlock,
    OnboardingInfo,
    Role,
    RoleType,
    Text2SqlCite,
    Text2SqlDataDesc,
    Text2SqlResult,
    TextBlock,
    ToolBlock,
    ToolCallData,
    WebSearchBlock,
    WebSearchQuery,
    WebSearchResult,
)

__all__ = [
    "ApplicationContext",
    "BlockType",
    "ChartDataSchema",
    "ChartDimension",
    "ChartMeasure",
    "ChatMessage",
    "ContentBlock",
    "ConversationHistory",
    "ExecuteCodeResult",
    "Frame",
    "Json2PlotBlock",
    "KeyPath",
    "MarkdownBlock",
    "OnboardingInfo",
    "Patch",
    "PatchAction",
    "Role",
    "RoleType",
    "Text2SqlCite",
    "Text2SqlDataDesc",
    "Text2SqlResult",
    "TextBlock",
    "ToolBlock",
    "ToolCallData",
    "WebSearchBlock",
    "WebSearchQuery",
    "WebSearchResult",
]
