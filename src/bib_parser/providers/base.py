"""Контракт провайдера: запрос/ответ completion + конфиг модели."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol


def merge_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Слоёное слияние параметров: дефолты -> конфиг -> оверрайды вызова.

    Слои применяются слева направо, поздний слой побеждает по ключу.
    `None` пропускается, входные словари не меняются.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


@dataclass(frozen=True)
class ProviderConfig:
    """Параметры модели, создаются один раз при старте."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 256
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    timeout_seconds: float = 30.0
    # Ретраи транспорта (только установка соединения), не путать с ретраями клиента.
    max_retries: int = 0
    additional_params: Mapping[str, Any] = field(default_factory=dict)

    def as_params(self) -> dict[str, Any]:
        """Параметры сэмплинга в виде плоского словаря (слой `instance`)."""
        params = asdict(self)
        params.pop("timeout_seconds")
        params.pop("max_retries")
        params["additional_params"] = dict(self.additional_params)
        return params


@dataclass(frozen=True)
class CompletionRequest:
    system_prompt: str
    user_prompt: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletionResponse:
    """Ответ провайдера: текст, usage (если есть) и сырой payload."""

    content: str
    usage: dict | None = None
    raw_response: dict | None = None


class LLMProvider(Protocol):
    """Единственная возможность провайдера: сгенерировать completion."""

    name: str

    def generate_completion(self, request: CompletionRequest) -> CompletionResponse:
        ...
