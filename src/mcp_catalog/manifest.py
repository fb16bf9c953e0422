"""Tolerant readers for package.json / npm manifest fields.

Published manifests are not validated by the registry, so fields arrive in
older or malformed shapes: ``keywords`` as a comma-separated string,
``dependencies`` as a list, ``version`` as a number.
"""

from __future__ import annotations

from typing import Any


def text(value: Any) -> str | None:
    """Non-empty string value, numbers stringified, anything else None."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def string_list(value: Any) -> list[str]:
    """List of strings; a plain string is split on commas."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []


def dependency_names(value: Any) -> list[str]:
    """Names from a dependency map, or from a list of names."""
    if isinstance(value, dict):
        return [k for k in value if isinstance(k, str)]
    return string_list(value)
