"""
Helpers shared by recipe executors.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from synnia.core.connection import to_number, to_string


logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
_JSON_BLOCK = re.compile(r"```json\s*([\s\S]*?)\s*```")
_JSON_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_TRAILING_COMMA = re.compile(r",\s*$")


def extract_value(value: Any) -> Any:
    """Unwrap `{content: ...}` / `{value: ...}` wrappers."""
    if isinstance(value, dict):
        if "content" in value:
            return value["content"]
        if "value" in value:
            return value["value"]
    return value


def extract_text(value: Any) -> str:
    return to_string(extract_value(value))


def extract_number(value: Any) -> float:
    """Numeric value of an input; NaN when it is not a number."""
    number = to_number(extract_value(value))
    return float("nan") if number is None else float(number)


def interpolate(template: str, values: dict[str, Any]) -> str:
    """Replace `{{key}}` placeholders; unknown keys become empty strings."""
    def replace(match: re.Match) -> str:
        key = match.group(1)
        return extract_text(values[key]) if key in values else ""

    return _PLACEHOLDER.sub(replace, template or "")


def repair_truncated_json_array(text: str) -> str | None:
    """
    Salvage a JSON array cut off mid-way.

    Keeps every complete object up to the last closing brace and closes
    the array. Returns None when nothing parseable remains.
    """
    text = text.strip()
    if not text.startswith("["):
        return None

    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        pass

    last_object = text.rfind("}")
    if last_object == -1:
        return None

    repaired = _TRAILING_COMMA.sub("", text[:last_object + 1]) + "]"
    try:
        json.loads(repaired)
    except json.JSONDecodeError:
        return None
    return repaired


def extract_json(text: str) -> tuple[bool, Any]:
    """
    Pull JSON out of a model reply.

    Looks for a ```json fenced block first, then for an array of
    objects anywhere in the text. Returns (success, data).
    """
    json_text = text
    block = _JSON_BLOCK.search(text)
    if block:
        json_text = block.group(1)
    else:
        array = _JSON_ARRAY.search(text)
        if array:
            json_text = array.group(0)

    try:
        return True, json.loads(json_text)
    except json.JSONDecodeError:
        repaired = repair_truncated_json_array(json_text)
        if repaired is not None:
            logger.warning("Recovered a truncated JSON array from model output")
            return True, json.loads(repaired)
        return False, None
