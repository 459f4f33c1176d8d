"""Ошибки LLM-слоя и их нормализация в публичный формат (стабильные code/message)."""

from __future__ import annotations

import re
from dataclasses import dataclass


class LLMError(Exception):
    """Нормализованная ошибка: сообщение + HTTP-подобный статус + исходная причина."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.original_error = original_error


class ConfigurationError(LLMError):
    """Нет ключа / невалидный провайдер. Не ретраится."""


class MalformedOutputError(LLMError):
    """Модель вернула текст, который не является JSON."""

    def __init__(self, message: str, raw_output: str) -> None:
        super().__init__(message)
        self.raw_output = raw_output


_TIMEOUT_RE = re.compile(r"timeout|timed out", re.IGNORECASE)


@dataclass(frozen=True)
class PublicError:
    """Публичная ошибка для ответа клиенту."""

    status_code: int
    code: str
    message: str
    type: str = "parser_error"


def map_exception(exc: Exception) -> PublicError:
    """Преобразует исключение в стабильный публичный формат (без утечек деталей)."""
    if isinstance(exc, ConfigurationError):
        return PublicError(
            status_code=500,
            code="provider_not_configured",
            message="Провайдер не настроен",
        )

    if isinstance(exc, MalformedOutputError):
        return PublicError(
            status_code=502,
            code="malformed_model_output",
            message="Модель вернула невалидный JSON",
            type="upstream_error",
        )

    if isinstance(exc, LLMError):
        sc = exc.status or 0
        if sc == 401:
            return PublicError(502, "upstream_auth", "Upstream отклонил API ключ", "upstream_error")
        if sc == 400:
            return PublicError(
                502,
                "upstream_bad_request",
                "Upstream отклонил запрос",
                "upstream_error",
            )
        if sc == 429:
            return PublicError(
                503,
                "upstream_rate_limited",
                "Upstream ограничил частоту запросов",
                "upstream_error",
            )
        if 400 <= sc < 500:
            return PublicError(502, "upstream_4xx", f"Upstream вернул {sc}", "upstream_error")
        if sc >= 500:
            return PublicError(502, "upstream_5xx", f"Upstream вернул {sc}", "upstream_error")
        if _TIMEOUT_RE.search(exc.message):
            return PublicError(
                504,
                "upstream_timeout",
                "Upstream не ответил вовремя",
                "upstream_error",
            )
        return PublicError(502, "upstream_error", "Ошибка upstream", "upstream_error")

    if isinstance(exc, ValueError) and str(exc).startswith("Unknown provider:"):
        return PublicError(
            status_code=500,
            code="unknown_provider",
            message="Неизвестный провайдер",
        )

    return PublicError(
        status_code=500,
        code="internal_error",
        message="Внутренняя ошибка сервера",
    )


def error_payload(err: PublicError) -> dict:
    """Формирует JSON `{error:{...}}` для клиента."""
    return {"error": {"code": err.code, "message": err.message, "type": err.type}}
