"""Detection of tools/resources/prompts declarations in repository files.

JSON files are parsed with the json module. YAML files go through a
deliberately narrow reader that only understands flat ``key: value`` lines,
inline arrays (``[a, b]``) and inline JSON objects. Anything else in a file
is read as a plain string, and a file the reader cannot handle is skipped
rather than raised.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp_catalog import config

logger = logging.getLogger(__name__)


def is_candidate(filename: str) -> bool:
    """Whether a root-level file might declare MCP capabilities."""
    lowered = filename.lower()
    return (
        "mcp" in lowered
        or "schema" in lowered
        or lowered.endswith(config.SCHEMA_FILE_EXTENSIONS)
    )


def parse_simple_yaml(content: str) -> dict[str, Any]:
    """Read flat YAML: ``key: value``, ``key: [a, b]`` and ``key: {json}``.

    Raises ValueError if an inline object is not valid JSON.
    """
    result: dict[str, Any] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        key, sep, value = stripped.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()

        if value.startswith("[") and value.endswith("]"):
            inner = value[1:-1].strip()
            result[key] = (
                [item.strip().replace('"', "") for item in inner.split(",")]
                if inner
                else []
            )
        elif value.startswith("{") and value.endswith("}"):
            result[key] = json.loads(value)
        else:
            result[key] = value.replace('"', "")
    return result


def extract_capabilities(content: str, filename: str) -> dict[str, list[Any]] | None:
    """Return the tools/resources/prompts arrays declared in a file.

    None means the file is unparseable, not JSON/YAML, or declares none of
    the three arrays.
    """
    lowered = filename.lower()
    try:
        if lowered.endswith(".json"):
            data = json.loads(content)
        elif lowered.endswith((".yaml", ".yml")):
            data = parse_simple_yaml(content)
        else:
            return None
    except ValueError as exc:
        logger.debug("Error parsing schema file %s: %s", filename, exc)
        return None

    if not isinstance(data, dict):
        return None

    found = {
        field: data[field]
        for field in config.SCHEMA_ARRAY_FIELDS
        if isinstance(data.get(field), list)
    }
    if not found:
        return None
    return {field: found.get(field, []) for field in config.SCHEMA_ARRAY_FIELDS}
