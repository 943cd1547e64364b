from __future__ import annotations

import logging

from xeyla.core.models import Domain
from xeyla.core.prompts import classifier_instruction
from xeyla.core.understanding import LanguageUnderstandingClient
from xeyla.infra.llm import parse_json_payload, strip_code_fence

LOGGER = logging.getLogger(__name__)

DEFAULT_DOMAIN: Domain = "schedule"


class IntentClassifier:
    """Two-way schedule/finance classifier. Anything unclear falls back to schedule."""

    def __init__(self, understanding: LanguageUnderstandingClient) -> None:
        self._understanding = understanding

    async def classify(self, message: str) -> Domain:
        raw = await self._understanding.extract(classifier_instruction(), message)
        domain = _parse_domain(raw)
        if domain is None:
            LOGGER.info("intent.classify fallback domain=%s", DEFAULT_DOMAIN)
            return DEFAULT_DOMAIN
        LOGGER.info("intent.classify domain=%s", domain)
        return domain


def _parse_domain(raw: str | None) -> Domain | None:
    if raw is None:
        return None
    payload = parse_json_payload(raw)
    value: object = None
    if isinstance(payload, dict):
        value = payload.get("domain")
    elif isinstance(payload, str):
        value = payload
    else:
        # Some models answer with the bare word.
        value = strip_code_fence(raw).strip("\"' .")
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized == "finance":
        return "finance"
    if normalized == "schedule":
        return "schedule"
    return None
