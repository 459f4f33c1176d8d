"""Парсер библиографических записей: промпт + LLM клиент + разбор JSON."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from bib_parser.prompts import PARSER_SYSTEM_PROMPT
from bib_parser.providers.base import CompletionResponse, LLMProvider
from bib_parser.providers.factory import get_provider
from bib_parser.services.errors import MalformedOutputError
from bib_parser.services.llm_client import LLMClientService
from bib_parser.services.redaction import redact_text
from bib_parser.settings import get_settings

# ```json ... ``` вокруг ответа: модели так делают, несмотря на промпт.
_CODE_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)


def _strip_code_fence(text: str) -> str:
    m = _CODE_FENCE_RE.match(text)
    return m.group("body") if m else text


class Parser:
    """Превращает сырую запись в JSON с помощью LLM.

    Ретраи и нормализация ошибок на стороне `LLMClientService`; здесь только
    промпт и разбор ответа. Форма JSON не валидируется: схему задаёт промпт.
    """

    def __init__(
        self,
        llm_client_service: LLMClientService,
        llm_provider: LLMProvider,
        logger: Any = None,
        system_prompt: str = PARSER_SYSTEM_PROMPT,
    ) -> None:
        self._log = logger or structlog.get_logger()
        self._system_prompt = system_prompt
        self._llm_provider = llm_provider
        self._llm_client_service = llm_client_service

    def parse(self, text: str) -> Any:
        """Разбирает запись. MalformedOutputError, если модель вернула не JSON."""
        self._log.debug("parse_input", input=redact_text(text))
        try:
            response = self._llm_client_service.generate_completion(
                self._llm_provider,
                self._system_prompt,
                text,
                {},
            )
        except Exception as e:
            self._log.error("parse_llm_request_failed", err=str(e))
            raise

        content = response.content if isinstance(response, CompletionResponse) else response
        try:
            return json.loads(_strip_code_fence(content))
        except (json.JSONDecodeError, TypeError) as e:
            self._log.error("parse_malformed_output", err=str(e), output=redact_text(str(content)))
            raise MalformedOutputError(
                f"Model output is not valid JSON: {e}",
                raw_output=content,
            ) from e

    def get_system_prompt(self) -> str:
        return self._system_prompt

    def set_system_prompt(self, system_prompt: str) -> None:
        self._system_prompt = system_prompt
        self._log.debug("parser_system_prompt_updated")

    def get_llm_provider(self) -> LLMProvider:
        return self._llm_provider

    def set_llm_provider(self, llm_provider: LLMProvider) -> None:
        self._llm_provider = llm_provider
        self._log.debug("parser_provider_updated", provider=getattr(llm_provider, "name", None))

    def get_llm_client_service(self) -> LLMClientService:
        return self._llm_client_service

    def set_llm_client_service(self, llm_client_service: LLMClientService) -> None:
        self._llm_client_service = llm_client_service
        self._log.debug("parser_client_updated")

    def set_logger(self, logger: Any) -> None:
        self._log = logger


def build_parser(provider_name: str | None = None) -> Parser:
    """Собирает парсер из настроек: провайдер (по умолчанию DEFAULT_PROVIDER) + клиент с ретраями."""
    settings = get_settings()
    client = LLMClientService(
        max_retries=settings.llm_max_attempts,
        retry_delay_ms=settings.llm_retry_delay_ms,
    )
    return Parser(client, get_provider(provider_name or settings.default_provider))


_parser: Parser | None = None


def get_parser() -> Parser:
    """Парсер на процесс (для HTTP API)."""
    global _parser
    if _parser is None:
        _parser = build_parser()
    return _parser
