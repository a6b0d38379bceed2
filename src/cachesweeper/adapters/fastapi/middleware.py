"""Request-scope middleware for Starlette and FastAPI."""

import logging
import time
from uuid import uuid4

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cachesweeper.core.services.pending_buffer import PendingBuffer, begin_scope, end_scope
from cachesweeper.core.services.sweeper_service import SweeperService
from cachesweeper.log import log_error, log_event

logger = logging.getLogger(__name__)


class CacheSweeperMiddleware(BaseHTTPMiddleware):
    """Opens a pending-key scope per request and flushes it at the end.

    The flush runs whether the endpoint returned or raised. It runs in
    the thread pool because cache backends are synchronous.

    Usage:
        app = FastAPI()
        app.add_middleware(CacheSweeperMiddleware, sweeper=sweeper)
    """

    def __init__(self, app: ASGIApp, sweeper: SweeperService) -> None:
        super().__init__(app)
        self._sweeper = sweeper

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid4().hex[:16]
        buffer = PendingBuffer(request_id)
        token = begin_scope(buffer)
        start = time.perf_counter()
        log_event(
            logger,
            "debug",
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            return await call_next(request)
        except Exception as e:
            log_error(
                logger,
                e,
                request_id=request_id,
                duration_ms=round((time.perf_counter() - start) * 1000, 3),
                error_type="middleware_error",
            )
            raise
        finally:
            try:
                await run_in_threadpool(self._sweeper.flush, buffer)
            except Exception as e:
                log_error(logger, e, request_id=request_id, error_type="flush_error")
            finally:
                end_scope(token)
                duration_ms = round((time.perf_counter() - start) * 1000, 3)
                log_event(
                    logger,
                    "debug",
                    f"Performance: request_processing took {duration_ms}ms",
                    request_id=request_id,
                    operation="request_processing",
                    duration_ms=duration_ms,
                )
