import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.router import v1_router
from app.core.config import get_settings
from app.core.errors import TokenLedgerError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)


async def ledger_error_handler(request: Request, exc: TokenLedgerError) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc.message,
                     extra={"request_id": rid, "error": exc.code})
    else:
        logger.info("[api] %s %s rejected: %s", request.method, request.url.path, exc.message,
                    extra={"request_id": rid, "error": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # Errors: one envelope for every rejected ledger operation
    app.add_exception_handler(TokenLedgerError, ledger_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
