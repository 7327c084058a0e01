import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .database import dispose_engine
from .routers import admin_classes, classes, reservations
from .utils.request_id import RequestIdLogFilter, request_id_middleware

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"))
    handler.addFilter(RequestIdLogFilter())
    root = logging.getLogger("gym_booking")
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(handler)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content: dict[str, object] = {"success": False}
    if isinstance(exc.detail, dict):
        content.update(exc.detail)
    else:
        content["error"] = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("starting gym booking api")
    yield
    await dispose_engine()
    logger.info("database engine disposed")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title="Gym Booking API", lifespan=lifespan)
    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(classes.router, prefix=settings.api_prefix)
    app.include_router(reservations.router, prefix=settings.api_prefix)
    app.include_router(admin_classes.router, prefix=settings.api_prefix)
    return app


app = create_app()
