"""Event translators for the supported vendor wire protocols."""

import logging
from typing import Any, Callable, Optional

from chatkit.application.services.block_sink import BlockSink
from chatkit.application.streaming.patch_interpreter import apply_patch, key_to_json_path, parse_patch
from chatkit.application.streaming.projectors import BlockProjector
from chatkit.application.streaming.reduction_engine import Reduction
from chatkit.application.streaming.whitelist import route
from chatkit.domain.events import Frame, PatchAction
from chatkit.observability import patches_applied, patches_unrouted

logger = logging.getLogger(__name__)

IdsCallback = Callable[[Optional[str], Optional[str]], None]


class AgentPlatformTranslator:
    """Folds agent-platform patch frames into the assistant message tree.

    State is the tree itself. Every patch is applied; only whitelisted
    patches are projected into blocks.
    """

    def __init__(self, sink: BlockSink) -> None:
        self.projector = BlockProjector(sink)

    def initial_state(self) -> dict[str, Any]:
        return {}

    def reduce(self, frame: Frame, state: dict[str, Any], message_id: str) -> Reduction[dict[str, Any]]:
        patch = parse_patch(frame.payload)
        if patch.action is PatchAction.END:
            logger.debug(f"End of agent stream for message {message_id}")
            return Reduction(state, done=True)

        tree = apply_patch(state, patch)
        patches_applied.add(1, {"action": patch.action.value})

        entry = route(patch.action, patch.key_path)
        if entry is None:
            patches_unrouted.add(1)
            logger.debug(f"No UI effect for {patch.action.value}:{key_to_json_path(patch.key_path)}")
        elif entry.post_process is not None:
            entry.post_process(self.projector, tree, patch, message_id)
        return Reduction(tree)


class BotPlatformTranslator:
    """Folds bot-platform named events into the accumulated answer text.

    Args:
        sink: Receives the Markdown block updates
        on_ids: Called with ``(conversation_id, chat_id)`` whenever a frame reveals either
    """

    def __init__(self, sink: BlockSink, on_ids: Optional[IdsCallback] = None) -> None:
        self.sink = sink
        self._on_ids = on_ids

    def initial_state(self) -> str:
        return ""

    def reduce(self, frame: Frame, state: str, message_id: str) -> Reduction[str]:
        data = frame.payload if isinstance(frame.payload, dict) else {}
        event = frame.event_type
        self._report_ids(event, data)

        if event == "conversation.message.delta":
            content = data.get("content")
            if data.get("type") == "answer" and isinstance(content, str) and content:
                buffer = state + content
                self.sink.append_markdown_block(message_id, buffer)
                return Reduction(buffer)
            return Reduction(state)

        if event == "conversation.message.completed":
            content = data.get("content")
            if data.get("type") == "answer" and isinstance(content, str):
                self.sink.append_markdown_block(message_id, content)
                return Reduction(content)
            return Reduction(state)

        if event == "done":
            return Reduction(state, done=True)

        if event in ("conversation.chat.failed", "error"):
            logger.warning(f"Bot platform reported '{event}' for message {message_id}: {frame.raw_data[:500]}")
        else:
            logger.debug(f"Bot platform event '{event}' for message {message_id}")
        return Reduction(state)

    def _report_ids(self, event: str, data: dict[str, Any]) -> None:
        if self._on_ids is None:
            return
        conversation_id = data.get("conversation_id")
        chat_id = data.get("chat_id") or (data.get("id") if event.startswith("conversation.chat.") else None)
        if conversation_id or chat_id:
            self._on_ids(conversation_id, chat_id)
