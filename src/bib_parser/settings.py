"""Настройки приложения (env + `.env`)."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic-настройки (всё, что обычно лежит в `.env`)."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    default_provider: str = Field(default="mock", validation_alias="DEFAULT_PROVIDER")

    openai_base_url: str = Field(
        default="https://api.openai.com",
        validation_alias="OPENAI_BASE_URL",
    )
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_http_referer: str | None = Field(default=None, validation_alias="OPENAI_HTTP_REFERER")
    openai_title: str | None = Field(default=None, validation_alias="OPENAI_TITLE")

    llm_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.7, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=256, validation_alias="LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=30.0, validation_alias="LLM_TIMEOUT_SECONDS")
    llm_vendor_retries: int = Field(default=0, validation_alias="LLM_VENDOR_RETRIES")
    llm_proxy_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_PROXY_URL", "HTTPS_PROXY", "HTTP_PROXY"),
    )

    # Бюджет попыток (не число ретраев): 1 = один вызов без повторов.
    llm_max_attempts: int = Field(default=1, validation_alias="LLM_MAX_ATTEMPTS")
    llm_retry_delay_ms: int = Field(default=1000, validation_alias="LLM_RETRY_DELAY_MS")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Ленивая загрузка настроек (один раз на процесс)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
