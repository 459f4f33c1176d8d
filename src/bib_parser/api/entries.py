"""Эндпоинт `/api/v1/entries`: сырая запись -> структурированный JSON."""

from __future__ import annotations

import json
import time
from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from bib_parser.metrics import request_latency_seconds, requests_total
from bib_parser.services.errors import error_payload, map_exception
from bib_parser.services.parser import Parser, get_parser

router = APIRouter()
log = structlog.get_logger()


class EntryIn(BaseModel):
    # Строка или уже структурированное значение: в парсер уходит JSON-строка.
    entry: Any


@router.post("/entries", response_model=None)
def parse_entry(body: EntryIn, parser: Parser = Depends(get_parser)) -> Any:
    endpoint = "entries.parse"
    t0 = time.time()
    status = "failed"
    try:
        result = parser.parse(json.dumps(body.entry, ensure_ascii=False))
        status = "succeeded"
        return result
    except Exception as e:
        pub = map_exception(e)
        log.warning("parse_error", endpoint=endpoint, code=pub.code, err=str(e))
        return JSONResponse(status_code=pub.status_code, content=error_payload(pub))
    finally:
        requests_total.labels(endpoint=endpoint, status=status).inc()
        request_latency_seconds.labels(endpoint=endpoint).observe(time.time() - t0)
