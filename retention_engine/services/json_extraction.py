"""
JSON extraction from free-form model output.

Text-generation models wrap JSON in prose or markdown fences, so the
payload is located by scanning for the first balanced `{...}` block
(string literals and escapes are honoured) and parsing only that block.
Validation against a schema is left to the caller.
"""
from __future__ import annotations

import json
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced `{...}` substring of `text`, or None."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def extract_json_object(text: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Parse the first balanced JSON object in `text`.

    Returns None when there is no object, it does not parse, or it is
    not a JSON object.
    """
    if not text:
        return None

    candidate = find_balanced_object(text)
    if candidate is None:
        logger.debug("json_object_not_found", text_length=len(text))
        return None

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug("json_object_unparsable", error=str(e))
        return None

    return parsed if isinstance(parsed, dict) else None
