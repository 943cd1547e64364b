from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class LLMAPIError(RuntimeError):
    status_code: int
    message: str

    def __str__(self) -> str:
        return self.message


class LLMClient(Protocol):
    api_key: str

    async def create_chat_completion(
        self,
        *,
        model: str | None = None,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        ...


_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_code_fence(text: str | None) -> str:
    """Drop markdown code-fence markers the model likes to wrap JSON in."""
    if not text:
        return ""
    return _FENCE_RE.sub("", text).strip()


def parse_json_payload(text: str | None) -> Any | None:
    """Parse model output as JSON.

    Returns None for empty output, a literal ``null`` answer, or anything that
    is not valid JSON. Never raises.
    """
    cleaned = strip_code_fence(text)
    if not cleaned or cleaned.lower() in {"null", "none", "\"null\""}:
        return None
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    # Models sometimes prepend a sentence before the object.
    start_candidates = [idx for idx in (cleaned.find("{"), cleaned.find("[")) if idx >= 0]
    if not start_candidates:
        return None
    start = min(start_candidates)
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if end <= start:
        return None
    try:
        return json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError:
        return None
