"""Tolerant JSON parsing shared by every prompt module."""

import json
import re
from typing import Any, Dict

from story_coach.core.exceptions import LLMResponseParseError


def _strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences from LLM response."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _repair_json(text: str) -> str:
    """Attempt to repair common LLM JSON generation errors.

    Handles three frequent failure modes:
    1. Missing commas between properties ("key": value "key2": value2)
    2. Trailing commas before closing brackets ([...,] or {...,})
    3. Truncated JSON (incomplete closing brackets/braces)
    """
    text = re.sub(r"(\")\s*\n\s*(\")", r"\1,\n\2", text)
    text = re.sub(r"(\d)\s*\n\s*(\")", r"\1,\n\2", text)
    text = re.sub(r"(true|false|null)\s*\n\s*(\")", r"\1,\n\2", text)
    text = re.sub(r"(\})\s*\n\s*(\{)", r"\1,\n\2", text)
    text = re.sub(r'(\]|\})\s*\n\s*(\"[A-Za-z_]+"?\s*:)', r"\1,\n\2", text)

    text = re.sub(r",\s*\]", "]", text)
    text = re.sub(r",\s*\}", "}", text)

    open_braces = text.count("{") - text.count("}")
    open_brackets = text.count("[") - text.count("]")
    if open_braces > 0 or open_brackets > 0:
        text = text.rstrip().rstrip(",")
        text += "]" * open_brackets + "}" * open_braces

    return text


def parse_json_object(response_text: str) -> Dict[str, Any]:
    """Pull the first JSON object out of an LLM reply.

    Prose around the object is ignored. A repair pass runs before giving up.

    Raises:
        LLMResponseParseError: If no JSON object can be recovered
    """
    text = _strip_markdown_fences(response_text or "")
    start = text.find("{")
    if start == -1:
        raise LLMResponseParseError(f"No JSON object in LLM response: {text[:120]!r}")
    end = text.rfind("}")
    candidate = text[start : end + 1] if end > start else text[start:]

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            data = json.loads(_repair_json(candidate))
        except json.JSONDecodeError as e:
            raise LLMResponseParseError(f"Invalid JSON from LLM: {e}") from e

    if not isinstance(data, dict):
        raise LLMResponseParseError("Expected a JSON object from LLM")
    return data


def optional_text(value: Any) -> Any:
    """Normalise LLM placeholders ("", "null", "N/A") to None; strip strings."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in {"null", "none", "n/a", "unknown"}:
            return None
    return value
