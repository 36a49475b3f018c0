# flowguard/utils/paths.py
"""Dotted-path helpers over plain nested dict/list data."""

import re
from typing import Any, List, Tuple

_MISSING = object()
_INDEX_RE = re.compile(r"\[(\d+)\]")


def split_path(path: str) -> List[str]:
    """`a.b[0].c` and `a.b.0.c` both split to ['a', 'b', '0', 'c']."""
    text = _INDEX_RE.sub(r".\1", str(path))
    return [p for p in text.split(".") if p != ""]


def _step(current: Any, part: str) -> Any:
    if isinstance(current, dict):
        return current.get(part, _MISSING)
    if isinstance(current, list) and part.isdigit():
        idx = int(part)
        return current[idx] if idx < len(current) else _MISSING
    return _MISSING


def get_path(obj: Any, path: str, default: Any = None, max_depth: int = 64) -> Any:
    """
    Walk `obj` along a dotted path. Non-container intermediates stop the walk
    and return `default`. List segments must be integer indices.
    """
    current = obj
    for depth, part in enumerate(split_path(path)):
        if depth >= max_depth:
            return default
        current = _step(current, part)
        if current is _MISSING:
            return default
    return current


def has_path(obj: Any, path: str) -> bool:
    return get_path(obj, path, _MISSING) is not _MISSING


def set_path(obj: dict, path: str, value: Any) -> None:
    """
    Set `value` at a dotted path, creating intermediate dicts where missing or
    where the existing intermediate is not a container. Existing lists are
    indexed in place. A value of None removes the final key instead of storing
    null.
    """
    parts = split_path(path)
    if not parts:
        raise ValueError("empty path")
    current: Any = obj
    for i, part in enumerate(parts[:-1]):
        nxt = _step(current, part)
        if not isinstance(nxt, (dict, list)):
            if value is None:
                return
            if not isinstance(current, dict):
                raise ValueError(f"cannot create '{part}' inside a list at '{'.'.join(parts[:i + 1])}'")
            nxt = {}
            current[part] = nxt
        current = nxt

    last = parts[-1]
    if isinstance(current, list):
        if not last.isdigit() or int(last) >= len(current):
            raise ValueError(f"list index out of range at '{path}'")
        if value is None:
            del current[int(last)]
        else:
            current[int(last)] = value
        return
    if value is None:
        current.pop(last, None)
    else:
        current[last] = value


def parent_and_key(path: str) -> Tuple[str, str]:
    parts = split_path(path)
    return ".".join(parts[:-1]), (parts[-1] if parts else "")
