"""Flatten nested documents into dot-separated keys."""

from collections.abc import Mapping
from typing import Any


def flatten(record: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Collapse a nested mapping into a single-level dict.

    Nested mappings are walked with an explicit stack, so arbitrarily deep
    input does not hit the recursion limit. Lists, tuples, None and other
    scalars are leaves and are stored as-is. An empty nested mapping
    contributes no keys.

    Args:
        record: Mapping to flatten.
        prefix: Key prefix for every output key.

    Returns:
        Dict mapping "a.b.c" style keys to leaf values.

    Example:
        >>> flatten({"a": {"b": 1, "c": [1, 2]}, "d": None})
        {'d': None, 'a.b': 1, 'a.c': [1, 2]}
    """
    flat: dict[str, Any] = {}
    pending: list[tuple[Mapping[str, Any], str]] = [(record, prefix)]

    while pending:
        subtree, key_prefix = pending.pop()
        for key, value in subtree.items():
            new_key = f"{key_prefix}.{key}" if key_prefix else str(key)
            if isinstance(value, Mapping):
                pending.append((value, new_key))
            else:
                flat[new_key] = value

    return flat


def unflatten(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Rebuild the nested structure from dot-separated keys.

    Inverse of ``flatten`` for records whose own keys contain no dots.

    Raises:
        ValueError: If a key is both a leaf and a prefix of another key.
    """
    nested: dict[str, Any] = {}
    for key, value in flat.items():
        *parents, leaf = key.split(".")
        node = nested
        for part in parents:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"Key conflict at '{part}' while unflattening '{key}'")
            node = child
        if isinstance(node.get(leaf), dict):
            raise ValueError(f"Key conflict at '{key}': already holds nested keys")
        node[leaf] = value
    return nested
