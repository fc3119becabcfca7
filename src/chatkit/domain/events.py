"""Wire-level stream events: SSE frames and agent-platform patches."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

KeyPath = list[Union[str, int]]


@dataclass(frozen=True)
class Frame:
    """One complete SSE event.

    Attributes:
        event_type: Value of the preceding ``event:`` line, else the payload's own ``event``/``type`` field
        raw_data: Trimmed text after ``data:``
        payload: ``raw_data`` decoded as JSON
    """

    event_type: str
    raw_data: str
    payload: Any = None


class PatchAction(str, Enum):
    """Operations an agent-platform frame can perform on the message tree."""

    UPSERT = "upsert"
    APPEND = "append"
    END = "end"


@dataclass(frozen=True)
class Patch:
    """A single edit to the assistant message tree."""

    key_path: KeyPath
    action: PatchAction
    content: Any = None
    sequence_id: Optional[int] = None
