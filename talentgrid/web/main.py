from __future__ import annotations

from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from talentgrid.infrastructure.config import get_settings
from talentgrid.infrastructure.logging import LogContext, get_logger
from talentgrid.web.routes import api, scoring

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger("web")


async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every log record of a request with its id and echo the id back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    with LogContext(request_id=request_id):
        response = await call_next(request)
        if response.status_code >= 500:
            logger.warning("%s %s -> %d", request.method, request.url.path, response.status_code)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def create_application() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.middleware("http")(request_context)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    for router in (api.router, api.evaluations, scoring.router):
        app.include_router(router)

    logger.info("Application created: %s", settings.get_environment_info())
    return app


app = create_application()
