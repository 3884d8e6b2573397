"""Cycle- and depth-safe payload transform.

Version: 0.1.0

Plugins hand arbitrary Python objects to the callback context. Before an
envelope crosses the process boundary its payload goes through
:func:`censor`, which returns a JSON-compatible structure and never raises
or loops.

Active ancestors are kept on an explicit stack mirroring the nesting path
being walked. Only a value that is currently an ancestor counts as circular;
siblings may repeat the same object freely.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from pathlib import PurePath
from typing import Any, List, Optional, Set

logger = logging.getLogger(__name__)

MAX_DEPTH = 200

_PRIMITIVES = (str, int, float, bool)

# Returned by _visit for values that must disappear from the output
_DROPPED = object()


def censor(value: Any, max_depth: int = MAX_DEPTH) -> Any:
    """Return a JSON-compatible copy of ``value``.

    Args:
        value: Arbitrary payload.
        max_depth: Nesting depth at which containers are replaced by a
            ``[MaxDepth <key>: <type>]`` marker.

    Returns:
        The transformed payload. Functions at the top level become ``None``.
    """
    result = _Censor(max_depth).visit_root(value)
    return None if result is _DROPPED else result


class _Censor:
    """Single-use walker holding the ancestor stack."""

    def __init__(self, max_depth: int) -> None:
        self._max_depth = max_depth
        self._stack: List[int] = []
        self._active: Set[int] = set()

    def visit_root(self, value: Any) -> Any:
        if _is_leaf(value):
            return self._leaf(value)
        return self._descend(value)

    def _visit(self, key: str, value: Any) -> Any:
        if _is_leaf(value):
            return self._leaf(value)

        if len(self._stack) >= self._max_depth:
            return f"[MaxDepth {key}: {type(value).__name__}]"

        if id(value) in self._active:
            return f"[Circular {key}: {type(value).__name__}]"

        return self._descend(value)

    def _leaf(self, value: Any) -> Any:
        if value is None or isinstance(value, _PRIMITIVES):
            return value
        if callable(value):
            return _DROPPED
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        if isinstance(value, PurePath):
            return str(value)
        if isinstance(value, BaseException):
            return {"type": type(value).__name__, "message": _safe_str(value)}
        return _safe_str(value)

    def _descend(self, value: Any) -> Any:
        self._stack.append(id(value))
        self._active.add(id(value))
        try:
            if isinstance(value, Mapping):
                return self._walk_mapping(value)
            if isinstance(value, (list, tuple, set, frozenset)):
                return self._walk_sequence(value)
            if dataclasses.is_dataclass(value):
                return self._walk_mapping(
                    {f.name: getattr(value, f.name, None) for f in dataclasses.fields(value)}
                )
            to_dict = getattr(value, "to_dict", None)
            if callable(to_dict):
                converted = _call_to_dict(to_dict)
                if isinstance(converted, Mapping):
                    return self._walk_mapping(converted)
                return _safe_str(value)
            return self._walk_mapping(
                {k: v for k, v in vars(value).items() if not k.startswith("_")}
            )
        finally:
            self._stack.pop()
            self._active.discard(id(value))

    def _walk_mapping(self, mapping: Mapping) -> dict:
        out = {}
        for key, item in list(mapping.items()):
            str_key = key if isinstance(key, str) else _safe_str(key)
            converted = self._visit(str_key, item)
            if converted is not _DROPPED:
                out[str_key] = converted
        return out

    def _walk_sequence(self, items: Any) -> list:
        out = []
        for index, item in enumerate(list(items)):
            converted = self._visit(str(index), item)
            out.append(None if converted is _DROPPED else converted)
        return out


def _is_leaf(value: Any) -> bool:
    """Leaves are everything the walker does not descend into."""
    if value is None or isinstance(value, _PRIMITIVES):
        return True
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return False
    if isinstance(value, (bytes, bytearray, PurePath, BaseException)) or callable(value):
        return True
    if dataclasses.is_dataclass(value):
        return False
    if callable(getattr(value, "to_dict", None)):
        return False
    return not hasattr(value, "__dict__")


def _call_to_dict(to_dict: Any) -> Optional[Any]:
    try:
        return to_dict()
    except Exception as e:
        logger.debug("to_dict() failed during serialization: %s", e)
        return None


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"
