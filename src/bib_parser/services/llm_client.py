"""Клиент LLM: ретраи с экспоненциальным backoff, нормализация ошибок, полный/короткий ответ."""

from __future__ import annotations

import random
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from bib_parser.metrics import llm_attempts_total, tokens_total
from bib_parser.providers.base import CompletionRequest, CompletionResponse, merge_layers
from bib_parser.services.errors import ConfigurationError, LLMError

RETRYABLE_STATUSES = frozenset({429, 503, 504})
RETRYABLE_MESSAGES = re.compile(r"timeout|rate limit|busy|try again", re.IGNORECASE)
MAX_RETRY_DELAY_MS = 30_000
MAX_JITTER_MS = 1_000


@dataclass(frozen=True)
class RetryOptions:
    """Опции вызова. `max_retries` это бюджет попыток, а не число повторов."""

    max_retries: int = 1
    retry_delay_ms: int = 1000
    return_full_response: bool = False

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> RetryOptions:
        return cls(
            # None в опциях значит "по умолчанию".
            max_retries=max(1, int(options.get("max_retries") or cls.max_retries)),
            retry_delay_ms=int(options.get("retry_delay_ms") or cls.retry_delay_ms),
            return_full_response=bool(options.get("return_full_response", False)),
        )


def should_retry(error: BaseException) -> bool:
    """Ретраим 429/503/504 и сообщения про таймаут/rate limit/занятость."""
    status = getattr(error, "status", None)
    if status in RETRYABLE_STATUSES:
        return True
    message = str(error)
    return bool(message and RETRYABLE_MESSAGES.search(message))


def calculate_retry_delay(
    attempt: int,
    base_delay_ms: int,
    rand: Callable[[float, float], float] = random.uniform,
) -> float:
    """min(base * 2^(attempt-1) + jitter[0..1000], 30000), миллисекунды; attempt с 1."""
    exponential = base_delay_ms * 2 ** (attempt - 1)
    return min(exponential + rand(0, MAX_JITTER_MS), MAX_RETRY_DELAY_MS)


def normalize_error(error: BaseException) -> BaseException:
    """401 -> "Invalid API key" (без деталей вендора), 400 -> "Invalid request: ...", прочее как есть."""
    status = getattr(error, "status", None)
    if status == 401:
        return LLMError("Invalid API key", status=401)
    if status == 400:
        return LLMError(f"Invalid request: {error}", status=400, original_error=error)
    return error


class LLMClientService:
    """Вызывает провайдера с ограниченным числом попыток.

    Состояния на вызов в инстансе нет: один сервис можно делить между потоками.
    """

    def __init__(
        self,
        logger: Any = None,
        *,
        max_retries: int = 1,
        retry_delay_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._log = logger or structlog.get_logger()
        self._defaults = {
            "max_retries": max_retries,
            "retry_delay_ms": retry_delay_ms,
            "return_full_response": False,
        }
        self._sleep = sleep
        self._rand = rand

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    def generate_completion(
        self,
        provider: Any,
        system_prompt: str,
        user_prompt: str,
        options: Mapping[str, Any] | None = None,
    ) -> str | CompletionResponse:
        if provider is None or not callable(getattr(provider, "generate_completion", None)):
            raise ConfigurationError("Valid LLM provider is required")

        merged = merge_layers(self._defaults, options)
        opts = RetryOptions.from_mapping(merged)
        provider_name = getattr(provider, "name", type(provider).__name__)

        attempt = 1
        while True:
            self._log.debug("llm_attempt", provider=provider_name, attempt=attempt)
            try:
                response = provider.generate_completion(
                    CompletionRequest(
                        system_prompt=system_prompt,
                        user_prompt=user_prompt,
                        options=merged,
                    )
                )
            except Exception as e:
                retryable = should_retry(e)
                self._log.error(
                    "llm_attempt_failed",
                    provider=provider_name,
                    attempt=attempt,
                    max_attempts=opts.max_retries,
                    status=getattr(e, "status", None),
                    # 401: пишем нормализованный текст, у вендора там фрагмент ключа.
                    err=str(self.normalize_error(e)),
                )
                if retryable and attempt < opts.max_retries:
                    delay_ms = self.calculate_retry_delay(attempt, opts.retry_delay_ms)
                    llm_attempts_total.labels(provider=provider_name, outcome="retry").inc()
                    self._log.warning("llm_retry", provider=provider_name, delay_ms=int(delay_ms))
                    self._sleep(delay_ms / 1000)
                    attempt += 1
                    continue

                llm_attempts_total.labels(provider=provider_name, outcome="failed").inc()
                self._log.error(
                    "llm_all_attempts_failed" if retryable else "llm_non_retryable_error",
                    provider=provider_name,
                    attempts=attempt,
                )
                normalized = self.normalize_error(e)
                if normalized is e:
                    raise
                if getattr(normalized, "original_error", None) is None:
                    # 401: причину не цепляем, в ней может быть фрагмент ключа.
                    raise normalized from None
                raise normalized from e

            llm_attempts_total.labels(provider=provider_name, outcome="success").inc()
            self._record_usage(provider_name, response)

            if opts.return_full_response:
                return CompletionResponse(
                    content=response.content,
                    usage=response.usage,
                    raw_response=response.raw_response,
                )
            return response.content

    def _record_usage(self, provider_name: str, response: CompletionResponse) -> None:
        usage = response.usage or {}
        model = "-"
        if isinstance(response.raw_response, dict):
            model = str(response.raw_response.get("model") or "-")
        self._log.debug(
            "llm_completion",
            provider=provider_name,
            total_tokens=usage.get("total_tokens"),
        )
        for kind in ("prompt", "completion", "total"):
            value = usage.get(f"{kind}_tokens")
            if isinstance(value, int):
                tokens_total.labels(provider=provider_name, model=model, kind=kind).inc(value)

    def should_retry(self, error: BaseException) -> bool:
        return should_retry(error)

    def calculate_retry_delay(self, attempt: int, base_delay_ms: int) -> float:
        return calculate_retry_delay(attempt, base_delay_ms, self._rand)

    def normalize_error(self, error: BaseException) -> BaseException:
        return normalize_error(error)
