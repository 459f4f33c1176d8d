import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from bib_parser.providers.base import CompletionResponse
from bib_parser.services.errors import ConfigurationError, LLMError
from bib_parser.services.llm_client import (
    LLMClientService,
    calculate_retry_delay,
    normalize_error,
    should_retry,
)

from conftest import RecordingLogger, ScriptedProvider


@pytest.mark.parametrize("status", [429, 503, 504])
def test_should_retry_transient_statuses(status: int) -> None:
    assert should_retry(LLMError("upstream said no", status=status))


@pytest.mark.parametrize("status", [400, 401, 403, 500])
def test_should_not_retry_other_statuses(status: int) -> None:
    assert not should_retry(LLMError("upstream said no", status=status))


@pytest.mark.parametrize(
    "message",
    ["Request Timeout: read", "RATE LIMIT reached", "server is busy", "Please try again later"],
)
def test_should_retry_matching_messages_regardless_of_status(message: str) -> None:
    assert should_retry(RuntimeError(message))
    assert should_retry(LLMError(message, status=400))


def test_should_not_retry_plain_errors() -> None:
    assert not should_retry(RuntimeError("boom"))
    assert not should_retry(ValueError(""))


def test_retry_delay_bounds() -> None:
    base = 100
    for attempt in range(1, 12):
        exponential = base * 2 ** (attempt - 1)
        for _ in range(20):
            delay = calculate_retry_delay(attempt, base)
            assert min(exponential, 30_000) <= delay <= min(exponential + 1000, 30_000)


def test_retry_delay_uses_jitter_and_cap() -> None:
    assert calculate_retry_delay(1, 1000, lambda a, b: 0.0) == 1000
    assert calculate_retry_delay(3, 1000, lambda a, b: 500.0) == 4500
    assert calculate_retry_delay(10, 1000, lambda a, b: 999.0) == 30_000


def test_normalize_error_401_hides_vendor_message() -> None:
    err = normalize_error(LLMError("Incorrect API key provided: sk-abc***xyz", status=401))
    assert str(err) == "Invalid API key"
    assert "sk-" not in repr(err.__dict__)


def test_normalize_error_400_prefixes_message() -> None:
    err = normalize_error(LLMError("max_tokens is too large", status=400))
    assert str(err) == "Invalid request: max_tokens is too large"
    assert err.status == 400


def test_normalize_error_passes_other_errors_through() -> None:
    original = LLMError("rate limited", status=429)
    assert normalize_error(original) is original
    plain = RuntimeError("boom")
    assert normalize_error(plain) is plain


@pytest.mark.parametrize("provider", [None, object(), "openai"])
def test_invalid_provider_fails_fast(provider, client_factory, sleeps) -> None:
    client = client_factory(max_retries=3)
    with pytest.raises(ConfigurationError, match="Valid LLM provider is required"):
        client.generate_completion(provider, "sys", "user")
    assert sleeps == []


def test_returns_content_by_default(client_factory) -> None:
    provider = ScriptedProvider(["{}"])
    assert client_factory().generate_completion(provider, "sys", "user") == "{}"
    assert len(provider.calls) == 1
    req = provider.calls[0]
    assert req.system_prompt == "sys"
    assert req.user_prompt == "user"


def test_forwards_merged_options_to_provider(client_factory) -> None:
    provider = ScriptedProvider(["ok"])
    client_factory().generate_completion(
        provider, "sys", "user", {"retry_delay_ms": 5, "params": {"temperature": 0}}
    )
    opts = provider.calls[0].options
    assert opts["max_retries"] == 1
    assert opts["retry_delay_ms"] == 5
    assert opts["params"] == {"temperature": 0}


def test_returns_full_response_when_requested(client_factory) -> None:
    raw = {"id": "chatcmpl-1", "model": "gpt-test"}
    provider = ScriptedProvider(
        [CompletionResponse(content="hi", usage={"total_tokens": 7}, raw_response=raw)]
    )
    res = client_factory().generate_completion(
        provider, "sys", "user", {"return_full_response": True}
    )
    assert isinstance(res, CompletionResponse)
    assert res.content == "hi"
    assert res.usage == {"total_tokens": 7}
    assert res.raw_response is raw


def test_recovers_after_transient_failures(client_factory, sleeps) -> None:
    provider = ScriptedProvider(
        [LLMError("overloaded", status=503), LLMError("slow down", status=429), "done"]
    )
    res = client_factory().generate_completion(
        provider, "sys", "user", {"max_retries": 3, "retry_delay_ms": 1000}
    )
    assert res == "done"
    assert len(provider.calls) == 3
    # 1000 * 2^0, 1000 * 2^1 (jitter зафиксирован в 0), в секундах
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_attempt_budget(client_factory, sleeps) -> None:
    err = LLMError("gateway timeout", status=504)
    provider = ScriptedProvider([err])
    with pytest.raises(LLMError) as exc_info:
        client_factory().generate_completion(provider, "sys", "user", {"max_retries": 4})
    assert exc_info.value is err
    assert len(provider.calls) == 4
    assert len(sleeps) == 3


def test_default_budget_is_single_attempt(client_factory, sleeps) -> None:
    provider = ScriptedProvider([LLMError("busy", status=503)])
    with pytest.raises(LLMError):
        client_factory().generate_completion(provider, "sys", "user")
    assert len(provider.calls) == 1
    assert sleeps == []


def test_instance_defaults_apply_when_options_empty(client_factory) -> None:
    provider = ScriptedProvider([LLMError("busy", status=503), "ok"])
    client = client_factory(max_retries=2)
    assert client.generate_completion(provider, "sys", "user", {}) == "ok"
    assert len(provider.calls) == 2


def test_zero_budget_still_makes_one_call(client_factory) -> None:
    provider = ScriptedProvider(["ok"])
    assert client_factory().generate_completion(provider, "s", "u", {"max_retries": 0}) == "ok"
    assert len(provider.calls) == 1


def test_non_retryable_error_stops_immediately(client_factory, sleeps) -> None:
    provider = ScriptedProvider([LLMError("unknown field 'foo'", status=400), "never"])
    with pytest.raises(LLMError, match=r"^Invalid request: unknown field 'foo'$"):
        client_factory().generate_completion(provider, "sys", "user", {"max_retries": 5})
    assert len(provider.calls) == 1
    assert sleeps == []


def test_invalid_key_is_normalized(client_factory) -> None:
    provider = ScriptedProvider([LLMError("Incorrect API key provided: sk-123", status=401)])
    with pytest.raises(LLMError) as exc_info:
        client_factory().generate_completion(provider, "sys", "user", {"max_retries": 3})
    assert str(exc_info.value) == "Invalid API key"
    assert exc_info.value.status == 401


def test_message_based_retry_keeps_original_error(client_factory) -> None:
    err = RuntimeError("Server busy, try again")
    provider = ScriptedProvider([err])
    with pytest.raises(RuntimeError) as exc_info:
        client_factory().generate_completion(provider, "sys", "user", {"max_retries": 2})
    assert exc_info.value is err
    assert len(provider.calls) == 2


def test_default_options() -> None:
    client = LLMClientService()
    assert client.defaults == {
        "max_retries": 1,
        "retry_delay_ms": 1000,
        "return_full_response": False,
    }


def test_invalid_key_vendor_text_is_not_logged(client_factory) -> None:
    logger = RecordingLogger()
    provider = ScriptedProvider(
        [LLMError("Incorrect API key provided: sk-proj-SECRET", status=401)]
    )
    with pytest.raises(LLMError):
        client_factory(logger=logger).generate_completion(provider, "sys", "user")
    assert "SECRET" not in repr(logger.events)
    failed = [kw for _, event, kw in logger.events if event == "llm_attempt_failed"]
    assert failed[0]["err"] == "Invalid API key"
    assert failed[0]["status"] == 401


def test_none_options_fall_back_to_defaults(client_factory, sleeps) -> None:
    provider = ScriptedProvider([LLMError("busy", status=503), "ok"])
    client = client_factory(max_retries=2, retry_delay_ms=500)
    res = client.generate_completion(
        provider, "sys", "user", {"max_retries": None, "retry_delay_ms": None}
    )
    assert res == "ok"
    assert len(provider.calls) == 2
    assert sleeps == [0.5]


def test_concurrent_calls_do_not_share_attempt_state(client_factory) -> None:
    # Реальная пауза, чтобы вызовы в потоках перемежались.
    client = client_factory(sleep=lambda s: time.sleep(0.01))
    flaky = ScriptedProvider(
        [LLMError("busy", status=503), LLMError("busy", status=503), "flaky-ok"]
    )
    steady = ScriptedProvider(["steady-ok"])
    failing = ScriptedProvider([LLMError("slow down", status=429)])
    start = threading.Barrier(3)

    def _call(provider, budget):
        start.wait()
        try:
            return client.generate_completion(provider, "sys", "user", {"max_retries": budget})
        except LLMError as e:
            return e

    with ThreadPoolExecutor(max_workers=3) as pool:
        f_flaky = pool.submit(_call, flaky, 3)
        f_steady = pool.submit(_call, steady, 3)
        f_failing = pool.submit(_call, failing, 2)
        results = (f_flaky.result(), f_steady.result(), f_failing.result())

    assert results[0] == "flaky-ok"
    assert results[1] == "steady-ok"
    assert isinstance(results[2], LLMError) and results[2].status == 429
    assert len(flaky.calls) == 3
    assert len(steady.calls) == 1
    assert len(failing.calls) == 2
