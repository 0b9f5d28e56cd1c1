"""Parse JSON out of raw model replies.

Models are asked for strict JSON but frequently wrap it in prose or code
fences. We try the whole reply first, then the outermost object/array span.
Anything else is a hard error for the caller.
"""

from __future__ import annotations

import json
import re
from typing import Any

from workspace_orchestrator.errors import LLMResponseParseError

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _strip_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw.strip())


def _parse(raw: str, *, what: str, opener: str, closer: str) -> Any:
    text = _strip_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        raise LLMResponseParseError(what, raw)
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise LLMResponseParseError(what, raw) from e


def parse_json_object(raw: str, *, what: str) -> dict[str, Any]:
    value = _parse(raw, what=what, opener="{", closer="}")
    if not isinstance(value, dict):
        raise LLMResponseParseError(what, raw)
    return value


def parse_json_array(raw: str, *, what: str) -> list[Any]:
    value = _parse(raw, what=what, opener="[", closer="]")
    if not isinstance(value, list):
        raise LLMResponseParseError(what, raw)
    return value
