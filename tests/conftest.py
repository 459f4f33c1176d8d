import pytest

from bib_parser.providers.base import CompletionRequest, CompletionResponse
from bib_parser.services.llm_client import LLMClientService


class ScriptedProvider:
    """Отдаёт заранее заданные исходы по очереди; последний повторяется."""

    name = "scripted"

    def __init__(self, outcomes: list) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[CompletionRequest] = []

    def generate_completion(self, request: CompletionRequest) -> CompletionResponse:
        self.calls.append(request)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            return CompletionResponse(content=outcome, usage={"total_tokens": 3})
        return outcome


class RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    def _record(self, level: str, event: str, **kw) -> None:
        self.events.append((level, event, kw))

    def debug(self, event: str, **kw) -> None:
        self._record("debug", event, **kw)

    def info(self, event: str, **kw) -> None:
        self._record("info", event, **kw)

    def warning(self, event: str, **kw) -> None:
        self._record("warning", event, **kw)

    def error(self, event: str, **kw) -> None:
        self._record("error", event, **kw)

    def levels(self) -> list[str]:
        return [level for level, _, _ in self.events]


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client_factory(sleeps):
    """LLMClientService без реального sleep и с фиксированным jitter."""

    def _make(**kwargs) -> LLMClientService:
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("rand", lambda a, b: 0.0)
        return LLMClientService(**kwargs)

    return _make
