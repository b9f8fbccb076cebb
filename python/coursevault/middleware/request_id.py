"""X-Request-ID middleware for request correlation and access logging.

- Accepts a caller-supplied X-Request-ID when it is a UUID or a short
  token of [A-Za-z0-9._-]; otherwise generates a UUID4
- Binds request_id, path and method into the logging context
- Echoes the ID on every response, including auth failures
- Emits one `request_completed` entry per request

Must be added last so it runs first (Starlette runs middleware in reverse
order of registration).
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from coursevault.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def resolve_request_id(incoming: str | None) -> str:
    """Return a usable request ID for an incoming header value.

    UUIDs are normalized to lowercase canonical form; other valid tokens are
    kept as-is; anything else is replaced by a fresh UUID4.
    """
    if incoming and len(incoming.encode("utf-8")) <= MAX_REQUEST_ID_LENGTH:
        try:
            return str(uuid.UUID(incoming))
        except ValueError:
            if TOKEN_PATTERN.match(incoming):
                return incoming
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Request ID handling and access logging.

    Args:
        app: The ASGI application.
        log_requests: If True, log one access entry per request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                )
            return response

        except Exception:
            logger.exception("request_failed")
            raise

        finally:
            clear_request_context()


def get_request_id_from_request(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)
