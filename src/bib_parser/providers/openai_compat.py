"""OpenAI-compatible провайдер (один вызов upstream /v1/chat/completions)."""

from __future__ import annotations

import httpx
import structlog

from bib_parser.providers.base import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    merge_layers,
)
from bib_parser.services.errors import ConfigurationError, LLMError
from bib_parser.services.redaction import redact_chat_payload

log = structlog.get_logger()


def _encode_header_value(value: str) -> str | bytes:
    """Кодирует заголовок в ASCII или UTF-8 (байты), если там есть не-ASCII."""
    try:
        value.encode("ascii")
        return value
    except UnicodeEncodeError:
        return value.encode("utf-8")


def _vendor_message(response: httpx.Response) -> str:
    """Достаёт `error.message` из тела ответа OpenAI-like API."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return response.text or f"HTTP {response.status_code}"


class OpenAICompatibleProvider:
    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        config: ProviderConfig | None = None,
        *,
        base_url: str = "https://api.openai.com",
        proxy: str | None = None,
        http_referer: str | None = None,
        title: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("OpenAI API key is required")

        self._config = config or ProviderConfig()
        base = base_url.rstrip("/")
        # Разрешаем как "https://api.openai.com", так и "https://api.openai.com/v1".
        if base.endswith("/v1"):
            base = base[: -len("/v1")]
        self._base_url = base.rstrip("/")
        self._headers: list[tuple[str, str | bytes]] = [
            ("Authorization", f"Bearer {api_key}"),
        ]
        if http_referer:
            self._headers.append(("HTTP-Referer", http_referer))
        if title:
            self._headers.append(("X-Title", _encode_header_value(title)))

        # Повторы на уровне приложения делает LLMClientService, здесь только
        # ограниченный ретрай установки соединения.
        if transport is None:
            transport = httpx.HTTPTransport(retries=self._config.max_retries, proxy=proxy)
        self._client = httpx.Client(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
        )

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def set_config(self, config: ProviderConfig) -> None:
        """Заменяет конфиг целиком (сам ProviderConfig неизменяемый)."""
        self._config = config

    def build_payload(self, request: CompletionRequest) -> dict:
        overrides = request.options.get("params") if request.options else None
        params = merge_layers(
            self._config.as_params(),
            overrides if isinstance(overrides, dict) else None,
        )
        extra = merge_layers(
            self._config.additional_params,
            overrides.get("additional_params") if isinstance(overrides, dict) else None,
        )
        return {
            "model": params["model"],
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "temperature": params["temperature"],
            "max_tokens": params["max_tokens"],
            "top_p": params["top_p"],
            "frequency_penalty": params["frequency_penalty"],
            "presence_penalty": params["presence_penalty"],
            **extra,
        }

    def generate_completion(self, request: CompletionRequest) -> CompletionResponse:
        payload = self.build_payload(request)
        log.debug("llm_request", provider=self.name, payload=redact_chat_payload(payload))

        try:
            r = self._client.post(
                f"{self._base_url}/v1/chat/completions",
                json=payload,
                headers=self._headers,
                timeout=self._config.timeout_seconds,
            )
            r.raise_for_status()
        except (httpx.HTTPStatusError, httpx.TimeoutException) as exc:
            raise self.normalize_error(exc) from exc

        try:
            data = r.json()
            message = data["choices"][0].get("message") or {}
            content = message.get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise LLMError("Malformed vendor response", original_error=exc) from exc
        return CompletionResponse(
            content=content,
            usage=data.get("usage"),
            raw_response=data,
        )

    def normalize_error(self, exc: Exception) -> Exception:
        """Ошибку httpx приводим к LLMError (статус + причина), прочие отдаём как есть."""
        if isinstance(exc, httpx.HTTPStatusError):
            return LLMError(
                _vendor_message(exc.response),
                status=exc.response.status_code,
                original_error=exc,
            )
        if isinstance(exc, httpx.TimeoutException):
            return LLMError(f"Request timeout: {exc}", original_error=exc)
        return exc

    def close(self) -> None:
        self._client.close()
