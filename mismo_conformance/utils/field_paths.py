"""
Dotted field paths over a nested deal dict.

``loan.loan_amount`` addresses one value; ``borrowers[*].email`` expands to
one concrete path per list entry (``borrowers[0].email``, ...).
"""

import re
from typing import Any

_SEGMENT = re.compile(r"^(?P<key>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<index>\*|\d+)\])?$")


def _split(path: str) -> list[tuple[str, str | None]]:
    segments = []
    for part in path.split("."):
        match = _SEGMENT.match(part)
        if not match:
            raise ValueError(f"Invalid field path segment '{part}' in '{path}'")
        segments.append((match.group("key"), match.group("index")))
    return segments


def expand(record: dict[str, Any], path: str) -> list[tuple[str, Any]]:
    """
    Resolve a path to (concrete_path, value) pairs.

    Missing keys resolve to None. A wildcard over a missing or empty list
    yields no pairs.
    """
    results: list[tuple[str, Any]] = [("", record)]

    for key, index in _split(path):
        next_results: list[tuple[str, Any]] = []
        for prefix, current in results:
            name = f"{prefix}.{key}" if prefix else key
            value = current.get(key) if isinstance(current, dict) else None

            if index is None:
                next_results.append((name, value))
            elif index == "*":
                for i, item in enumerate(value if isinstance(value, list) else []):
                    next_results.append((f"{name}[{i}]", item))
            else:
                i = int(index)
                item = value[i] if isinstance(value, list) and i < len(value) else None
                next_results.append((f"{name}[{i}]", item))
        results = next_results

    return results


def get_value(record: dict[str, Any], path: str) -> Any:
    """Return the single value a wildcard-free path points at (None when absent)."""
    if "*" in path:
        raise ValueError(f"Wildcard path '{path}' has no single value")
    pairs = expand(record, path)
    return pairs[0][1] if pairs else None
