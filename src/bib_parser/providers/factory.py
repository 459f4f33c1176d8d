"""Фабрика провайдеров (с кэшем инстансов на процесс)."""

from bib_parser.providers.base import LLMProvider, ProviderConfig
from bib_parser.providers.mock import MockProvider
from bib_parser.providers.openai_compat import OpenAICompatibleProvider
from bib_parser.settings import get_settings

_cache: dict[str, LLMProvider] = {}


def provider_config_from_settings() -> ProviderConfig:
    settings = get_settings()
    return ProviderConfig(
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout_seconds=settings.llm_timeout_seconds,
        max_retries=settings.llm_vendor_retries,
    )


def get_provider(name: str) -> LLMProvider:
    """Возвращает провайдера по имени (`mock`, `openai`)."""
    cached = _cache.get(name)
    if cached is not None:
        return cached

    if name == "mock":
        p: LLMProvider = MockProvider()
        _cache[name] = p
        return p
    if name == "openai":
        settings = get_settings()
        p = OpenAICompatibleProvider(
            settings.openai_api_key,
            provider_config_from_settings(),
            base_url=settings.openai_base_url,
            proxy=settings.llm_proxy_url,
            http_referer=settings.openai_http_referer,
            title=settings.openai_title,
        )
        _cache[name] = p
        return p
    raise ValueError(f"Unknown provider: {name}")
