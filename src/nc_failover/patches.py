"""JSON merge patch (RFC 7386) helpers."""

from __future__ import annotations

from typing import Any, Dict, Mapping


def create_merge_patch(original: Mapping[str, Any], modified: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the merge patch turning ``original`` into ``modified``.

    Removed keys map to ``None``, nested mappings are diffed recursively and
    anything else (lists included) is replaced wholesale.
    """

    patch: Dict[str, Any] = {}
    for key in original:
        if key not in modified:
            patch[key] = None

    for key, value in modified.items():
        old = original.get(key)
        if isinstance(value, Mapping) and isinstance(old, Mapping):
            nested = create_merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif key not in original or old != value:
            patch[key] = value
    return patch

