"""Whitelist router for agent-platform patches.

Maps ``(action, key path)`` to the projector handler responsible for it.
Patches that match no entry still update the message tree but have no UI
effect, so unknown server fields are tolerated.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from chatkit.application.streaming.patch_interpreter import key_to_json_path
from chatkit.application.streaming.projectors import BlockProjector
from chatkit.domain.events import KeyPath, Patch, PatchAction

PostProcess = Callable[[BlockProjector, dict[str, Any], Patch, str], None]


@dataclass(frozen=True)
class WhitelistEntry:
    """One routable ``(action, path)`` combination."""

    action: PatchAction
    pattern: Union[str, re.Pattern]
    post_process: Optional[PostProcess] = None

    def matches(self, action: PatchAction, json_path: str) -> bool:
        if action is not self.action:
            return False
        if isinstance(self.pattern, str):
            return json_path == self.pattern
        return self.pattern.fullmatch(json_path) is not None


WHITELIST: tuple[WhitelistEntry, ...] = (
    WhitelistEntry(PatchAction.UPSERT, "error", BlockProjector.on_error),
    WhitelistEntry(PatchAction.UPSERT, "message"),
    WhitelistEntry(PatchAction.APPEND, "message.content.final_answer.answer.text", BlockProjector.on_final_answer_text),
    WhitelistEntry(PatchAction.UPSERT, "message.content.final_answer.answer_type_other", BlockProjector.on_answer_type_other),
    WhitelistEntry(PatchAction.APPEND, re.compile(r"message\.content\.middle_answer\.progress\[\d+\]"), BlockProjector.on_progress_entry),
    WhitelistEntry(PatchAction.APPEND, re.compile(r"message\.content\.middle_answer\.progress\[\d+\]\.answer"), BlockProjector.on_progress_answer),
)


def route(action: PatchAction, key_path: KeyPath) -> Optional[WhitelistEntry]:
    """Return the whitelist entry for a patch, or ``None`` when it has no UI effect."""
    json_path = key_to_json_path(key_path)
    for entry in WHITELIST:
        if entry.matches(action, json_path):
            return entry
    return None
