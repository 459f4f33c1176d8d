"""Mock провайдер для демо (без внешних ключей)."""

from __future__ import annotations

import json
import re
import time
import uuid

from bib_parser.providers.base import CompletionRequest, CompletionResponse

_YEAR_RE = re.compile(r"\b(1[5-9]\d\d|20\d\d)\b")
_PAGES_RE = re.compile(r"\b[СсPp]\.\s*(\d+\s*[-–]\s*\d+)")


def _now_ts() -> int:
    return int(time.time())


class MockProvider:
    """Возвращает детерминированную «бедную» запись: год, страницы и сырой ввод."""

    name = "mock"

    def generate_completion(self, request: CompletionRequest) -> CompletionResponse:
        text = request.user_prompt
        year = _YEAR_RE.search(text)
        pages = _PAGES_RE.search(text)
        record = {
            "author": None,
            "title": None,
            "year": year.group(1) if year else None,
            "publicationType": "unknown",
            "pages": pages.group(1).replace(" ", "").replace("–", "-") if pages else None,
            "translationMarkers": {"hasMarker": False},
            "_meta": {
                "confidence": "low",
                "parseErrors": ["mock provider: поля не извлекались"],
                "ambiguousFields": [],
                "rawInput": text,
            },
        }
        out_text = json.dumps(record, ensure_ascii=False)

        prompt_tokens = max(1, (len(request.system_prompt) + len(text)) // 4)
        completion_tokens = max(1, len(out_text) // 4)
        usage = {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        }
        raw = {
            "id": f"chatcmpl_{uuid.uuid4().hex}",
            "object": "chat.completion",
            "created": _now_ts(),
            "model": "mock-1",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": out_text},
                    "finish_reason": "stop",
                }
            ],
            "usage": usage,
        }
        return CompletionResponse(content=out_text, usage=usage, raw_response=raw)
