"""
JSON cleanup for model responses.

Models often wrap JSON in markdown fences or surround it with prose; these
helpers recover the payload.
"""

import json
import re
from typing import Any

from scriptflow.core.exceptions import LLMResponseError

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"```\s*$")


def clean_json_string(text: str) -> str:
    """Strip surrounding whitespace and markdown code fences."""
    if not text:
        return "{}"
    cleaned = _FENCE_START_RE.sub("", text.strip())
    cleaned = _FENCE_END_RE.sub("", cleaned)
    return cleaned.strip()


def extract_json_block(text: str) -> str:
    """Return the outermost ``{...}`` or ``[...]`` span of ``text``."""
    candidates = []
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = text.find(open_char)
        end = text.rfind(close_char)
        if start >= 0 and end > start:
            candidates.append((start, end))
    if not candidates:
        return text
    start, end = min(candidates)
    return text[start:end + 1]


def parse_json_response(text: str) -> Any:
    """
    Parse a model response as JSON.

    Raises:
        LLMResponseError: If no JSON payload can be recovered
    """
    cleaned = clean_json_string(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    block = extract_json_block(cleaned)
    try:
        return json.loads(block)
    except json.JSONDecodeError as e:
        raise LLMResponseError(
            "Model response is not valid JSON",
            {"error": str(e), "excerpt": cleaned[:200]}
        )
