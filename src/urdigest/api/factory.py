"""FastAPI application factory with role-based route mounting."""

from typing import Literal

from fastapi import FastAPI, Request, Response

from urdigest.config import env_str
from urdigest.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_id_from_header,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public, worker
from .routes import webhooks_instagram

AppRole = Literal["public", "worker"]


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create FastAPI app with routes based on APP_ROLE.

    Args:
        role: Explicit role override. If None, reads from APP_ROLE env var.
              Defaults to "public" if env var is not set.

    Returns:
        Configured FastAPI application.
    """
    if role is None:
        role = env_str("APP_ROLE", "public")  # type: ignore[assignment]

    app = FastAPI(
        title="urdigest",
        docs_url=None,
        redoc_url=None,
    )
    app.state.role = role

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = correlation_id_from_header(request.headers.get(CORRELATION_ID_HEADER))
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    # Public routes (always)
    app.include_router(public.router)
    app.include_router(webhooks_instagram.router)

    # Worker routes only for worker role
    if role == "worker":
        app.include_router(worker.router)

    return app
