"""FastAPI приложение (роутеры + логирование)."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bib_parser import __version__
from bib_parser.api.entries import router as entries_router
from bib_parser.api.well_known import router as well_known_router
from bib_parser.infrastructure.logging import configure_logging
from bib_parser.services.errors import LLMError, error_payload, map_exception


async def _http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def _mapped_error(_request: Request, exc: Exception) -> JSONResponse:
    # Ошибки сборки зависимостей (нет OPENAI_API_KEY, неизвестный DEFAULT_PROVIDER) до входа в роут.
    pub = map_exception(exc)
    return JSONResponse(status_code=pub.status_code, content=error_payload(pub))


def create_app() -> FastAPI:
    """Собирает FastAPI приложение."""
    configure_logging()

    app = FastAPI(title="Bib Parser", version=__version__)

    app.include_router(well_known_router)
    app.include_router(entries_router, prefix="/api/v1")
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(LLMError, _mapped_error)
    app.add_exception_handler(ValueError, _mapped_error)
    return app


app = create_app()
