"""CORS and access-log middleware."""

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from campus_rbac.core.config import settings

logger = logging.getLogger("campus_rbac.access")

REQUEST_ID_HEADER = "X-Request-Id"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log its outcome.

    An incoming ``X-Request-Id`` is kept so upstream gateways can
    correlate; audit entries carry the same id. 401/403 responses are
    logged at WARNING so denied access stands out.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id

        level = logging.WARNING if response.status_code in (401, 403) else logging.INFO
        logger.log(
            level, "%s %s -> %s in %sms [%s]",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)
