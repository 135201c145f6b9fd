# sarpras/middleware/logging.py
import time
import uuid
from typing import Callable, Awaitable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()
        request.state.request_id = request_id
        client = f"{request.client.host}:{request.client.port}" if request.client else "unknown"

        with logger.contextualize(request_id=request_id):
            logger.info(f"RID:{request_id} START {request.method} {request.url.path} Client:{client}")
            try:
                response = await call_next(request)
            except Exception as e:
                duration = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"RID:{request_id} FAILED {request.method} {request.url.path} "
                    f"Error:{e} Duration:{duration:.2f}ms",
                    exc_info=True,
                )
                raise

            duration = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"RID:{request_id} END {request.method} {request.url.path} "
                f"Status:{response.status_code} Duration:{duration:.2f}ms"
            )
        response.headers["X-Request-ID"] = request_id
        return response
