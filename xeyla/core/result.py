"""Dispatcher result contract: DispatchResult and helpers.

Every handler returns a DispatchResult (text, status, intent, optional
attachment, debug). The dispatcher delivers ``text`` (or the attachment with
``text`` as caption) through the Notifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

LOGGER = logging.getLogger(__name__)

ResultStatus = Literal["ok", "clarify", "error"]


@dataclass(frozen=True)
class Attachment:
    """Binary document delivered alongside the reply text."""

    name: str
    mime_type: str
    data: bytes


@dataclass(frozen=True)
class DispatchResult:
    text: str
    status: ResultStatus
    intent: str
    attachment: Attachment | None = None
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def mutated(self) -> bool:
        return bool(self.debug.get("mutated"))

    def validate(self) -> None:
        errors = []
        if not isinstance(self.text, str) or not self.text.strip():
            errors.append("text must be non-empty str")
        if self.status not in {"ok", "clarify", "error"}:
            errors.append("status must be ok/clarify/error")
        if not isinstance(self.intent, str) or "." not in self.intent:
            errors.append("intent must include namespace.action")
        if self.status != "ok" and self.mutated:
            errors.append("only ok results may report a mutation")
        if errors:
            raise ValueError("; ".join(errors))


def ok(
    text: str,
    intent: str,
    *,
    attachment: Attachment | None = None,
    debug: dict[str, Any] | None = None,
) -> DispatchResult:
    return DispatchResult(text=text, status="ok", intent=intent, attachment=attachment, debug=debug or {})


def clarify(text: str, intent: str, *, debug: dict[str, Any] | None = None) -> DispatchResult:
    """Ambiguous request: ask the user, change nothing."""
    return DispatchResult(text=text, status="clarify", intent=intent, debug=debug or {})


def error(text: str, intent: str, *, debug: dict[str, Any] | None = None) -> DispatchResult:
    return DispatchResult(text=text, status="error", intent=intent, debug=debug or {})


def ensure_valid(
    result: DispatchResult,
    *,
    fallback_text: str,
    logger: logging.Logger | None = None,
) -> DispatchResult:
    """Return ``result`` if it honours the contract, else an internal error result."""
    try:
        result.validate()
    except ValueError as exc:
        (logger or LOGGER).error("result.invalid intent=%r status=%r error=%s", result.intent, result.status, exc)
        return error(fallback_text, "internal.error", debug={"invalid": str(exc), "intent": result.intent})
    return result
