"""Patch interpreter for the agent-platform message tree.

Each patch derives a new tree by path copying: only the containers along
the key path are copied, every other node is shared with the previous
tree, and the previous tree is never mutated.
"""

import logging
from typing import Any, Callable, Optional

from chatkit.application.errors import PatchError
from chatkit.domain.events import KeyPath, Patch, PatchAction

logger = logging.getLogger(__name__)

Tree = dict[str, Any]


def _is_index(key: Any) -> bool:
    return isinstance(key, int) and not isinstance(key, bool)


def parse_patch(payload: Any) -> Patch:
    """Build a Patch from a decoded frame payload.

    Expected shape: ``{"key": [...], "action": "upsert"|"append"|"end", "content": ..., "seq_id": n}``

    Raises:
        PatchError: If the payload is not a well-formed patch
    """
    if not isinstance(payload, dict):
        raise PatchError(f"Patch payload must be an object, got {type(payload).__name__}")

    key = payload.get("key", [])
    if not isinstance(key, list):
        raise PatchError("Patch key must be a list", details={"key": key})
    for part in key:
        if not (isinstance(part, str) or _is_index(part)):
            raise PatchError(f"Invalid key segment {part!r}", details={"key": key})

    try:
        action = PatchAction(payload.get("action"))
    except ValueError:
        raise PatchError(f"Unknown patch action {payload.get('action')!r}", details={"key": key})

    sequence_id = payload.get("seq_id", payload.get("seq"))
    return Patch(key_path=list(key), action=action, content=payload.get("content"), sequence_id=sequence_id)


def key_to_json_path(key_path: KeyPath) -> str:
    """Render a key path as a JSONPath-like string, e.g. ``message.content.progress[2].answer``."""
    parts: list[str] = []
    for i, key in enumerate(key_path):
        if _is_index(key):
            parts.append(f"[{key}]")
        elif i == 0:
            parts.append(str(key))
        else:
            parts.append(f".{key}")
    return "".join(parts)


def get_in(tree: Any, key_path: KeyPath, default: Any = None) -> Any:
    """Read the value at ``key_path``; ``default`` if any step is missing."""
    node = tree
    for key in key_path:
        if _is_index(key):
            if not isinstance(node, list) or not 0 <= key < len(node):
                return default
            node = node[key]
        else:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
    return node


def _copy_container(node: Any, key: Any, path: KeyPath) -> Any:
    if _is_index(key):
        if key < 0:
            raise PatchError(f"Negative index in patch path {key_to_json_path(path)}")
        if node is None:
            node = []
        elif not isinstance(node, list):
            raise PatchError(f"Cannot index {type(node).__name__} at {key_to_json_path(path)}")
        copied = list(node)
        if len(copied) <= key:
            copied.extend([None] * (key + 1 - len(copied)))
        return copied

    if node is None:
        return {}
    if not isinstance(node, dict):
        raise PatchError(f"Cannot set field {key!r} on {type(node).__name__} at {key_to_json_path(path)}")
    return dict(node)


def _set_in(node: Any, key_path: KeyPath, depth: int, leaf: Callable[[Any], Any]) -> Any:
    key = key_path[depth]
    copied = _copy_container(node, key, key_path[:depth])
    current = copied[key] if _is_index(key) else copied.get(key)
    if depth == len(key_path) - 1:
        copied[key] = leaf(current)
    else:
        copied[key] = _set_in(current, key_path, depth + 1, leaf)
    return copied


def apply_upsert(tree: Optional[Tree], key_path: KeyPath, content: Any) -> Tree:
    """Set the value at ``key_path`` verbatim, creating missing containers."""
    if not key_path:
        return tree if tree is not None else {}
    return _set_in(tree if tree is not None else {}, key_path, 0, lambda _current: content)


def apply_append(tree: Optional[Tree], key_path: KeyPath, content: Any) -> Tree:
    """Append ``content`` at ``key_path``.

    A trailing index sets that array slot. A trailing field name concatenates
    when both the current value and ``content`` are strings, and overwrites otherwise.
    """
    if not key_path:
        return tree if tree is not None else {}

    if _is_index(key_path[-1]):
        return _set_in(tree if tree is not None else {}, key_path, 0, lambda _current: content)

    def concat(current: Any) -> Any:
        if isinstance(current, str) and isinstance(content, str):
            return current + content
        return content

    return _set_in(tree if tree is not None else {}, key_path, 0, concat)


def apply_patch(tree: Optional[Tree], patch: Patch) -> Tree:
    """Derive the tree that results from applying one patch.

    Raises:
        PatchError: If the key path descends through a scalar
    """
    if patch.action is PatchAction.END:
        return tree if tree is not None else {}
    if patch.action is PatchAction.UPSERT:
        return apply_upsert(tree, patch.key_path, patch.content)
    return apply_append(tree, patch.key_path, patch.content)
