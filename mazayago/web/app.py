import logging
import os
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker as SessionMaker

from ..db.engine import get_sessionmaker, make_engine
from ..errors import (
    DrawError,
    DrawNotFound,
    ExternalDependencyError,
    InsufficientEntriesError,
    PreconditionError,
    Unauthorized,
    ValidationError,
)
from ..pipeline import PublishPipeline
from .routers import draws_router, public_router

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: list[tuple[type[DrawError], int]] = [
    (ValidationError, 400),
    (Unauthorized, 401),
    (DrawNotFound, 404),
    (InsufficientEntriesError, 409),
    (PreconditionError, 409),
    (ExternalDependencyError, 502),
]


def status_code_for(exc: DrawError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def draw_error_handler(request: Request, exc: DrawError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"error": str(exc)}
    if isinstance(exc, ValidationError) and exc.details:
        body["details"] = exc.details
    if isinstance(exc, InsufficientEntriesError):
        body["required"] = exc.required
        body["available"] = exc.available
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=body)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"error": "Invalid request", "details": details}
    )


def create_app(
    sessionmaker: Optional[SessionMaker] = None,
    pipeline: Optional[PublishPipeline] = None,
    callback_secret: Optional[str] = None,
    *,
    debug: Optional[bool] = None,
) -> FastAPI:
    """Build the draw service application.

    Collaborators left as ``None`` are built from the environment: the
    database from ``DB_URL``, the publish pipeline from the ``R2_*`` and
    ``GITHUB_RENDER_*`` variables, and the callback secret from
    ``RENDER_CALLBACK_SECRET``.
    """
    load_dotenv()
    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

    app = FastAPI(
        title="MazayaGo Giveaway Draws",
        description="Draw lifecycle, winner selection and result publishing",
        version="1.0.0",
        docs_url="/docs" if debug else None,
        redoc_url="/redoc" if debug else None,
    )
    app.state.sessionmaker = sessionmaker or get_sessionmaker(make_engine())
    app.state.pipeline = pipeline or PublishPipeline.from_env()
    app.state.callback_secret = (
        callback_secret
        if callback_secret is not None
        else os.getenv("RENDER_CALLBACK_SECRET")
    )
    if not app.state.callback_secret:
        logger.warning("RENDER_CALLBACK_SECRET is not set; render callbacks will be rejected")

    app.add_exception_handler(DrawError, draw_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(draws_router)
    app.include_router(public_router)

    @app.get("/")
    def root():
        return {"message": "MazayaGo draw service is running", "version": "1.0.0"}

    logger.info(f"Draw service configured (storage: {app.state.pipeline.storage_label})")
    return app


def main() -> None:
    load_dotenv()
    debug = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("WEBAPP_HOST", "127.0.0.1")
    port = int(os.getenv("WEBAPP_PORT", "8000"))
    logger.info(f"Starting draw service on {host}:{port}")
    uvicorn.run(
        create_app(debug=debug),
        host=host,
        port=port,
        log_level="info" if debug else "warning",
        access_log=debug,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
