from __future__ import annotations

from datetime import datetime

from xeyla.core.clock import REFERENCE_TZ
from xeyla.core.understanding import LanguageUnderstandingClient

_ROUTES = (
    ("Strict Intent Classifier", "classify"),
    ("Strict Schedule Extractor", "create"),
    ("Strict Schedule Delete Parser", "delete"),
    ("Strict Schedule Edit Parser", "edit"),
    ("You are XeylaBot", "query"),
    ("Strict Finance Parser", "finance"),
)


def route_for(messages: list[dict]) -> str:
    system = messages[0]["content"] if messages and messages[0]["role"] == "system" else ""
    for marker, route in _ROUTES:
        if marker in system:
            return route
    return "advice"


class ScriptedLLMClient:
    """Fake chat-completion client answering per prompt kind.

    Unscripted prompt kinds answer ``null``. A scripted Exception is raised.
    """

    def __init__(self, **routes) -> None:
        self.api_key = "fake-key"
        self.routes = routes
        self.calls: list[tuple[str, list[dict], float | None]] = []

    def routes_called(self) -> list[str]:
        return [route for route, _, _ in self.calls]

    def messages_for(self, route: str) -> list[dict]:
        for called, messages, _ in self.calls:
            if called == route:
                return messages
        raise AssertionError(f"{route} was never called")

    async def create_chat_completion(self, *, model=None, messages, temperature=None, max_tokens=None):
        route = route_for(messages)
        self.calls.append((route, messages, temperature))
        value = self.routes.get(route, "null")
        if isinstance(value, Exception):
            raise value
        if callable(value):
            value = value(messages)
        return {"content": value}


class FakeNotifier:
    def __init__(self, *, fail_times: int = 0) -> None:
        self.sent: list[tuple[str, str]] = []
        self.documents: list[dict] = []
        self.attempts = 0
        self._fail_times = fail_times

    async def send(self, recipient_id: str, text: str) -> None:
        self.attempts += 1
        if self.attempts <= self._fail_times:
            raise RuntimeError("transport down")
        self.sent.append((recipient_id, text))

    async def send_document(self, recipient_id, document, mime_type, file_name, caption) -> None:
        self.documents.append(
            {
                "recipient_id": recipient_id,
                "document": document,
                "mime_type": mime_type,
                "file_name": file_name,
                "caption": caption,
            }
        )


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def jakarta(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=REFERENCE_TZ)


def build_understanding(llm: ScriptedLLMClient | None) -> LanguageUnderstandingClient:
    return LanguageUnderstandingClient(llm, model="test-model", timeout_seconds=5.0)
