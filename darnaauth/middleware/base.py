# middleware/base.py
"""Base class for the service's HTTP middlewares."""
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class DarnaMiddleware(BaseHTTPMiddleware):
    """Request/response hooks around ``call_next``."""

    def __init__(self, app, **kwargs):
        super().__init__(app)
        self.config = kwargs
        self.setup()

    def setup(self) -> None:
        """Override this method for middleware-specific setup."""
        pass

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse an upstream request id when the proxy provides one
        request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.start_time = time.perf_counter()

        await self.before_request(request)
        try:
            response = await call_next(request)
        except Exception as e:
            return await self.handle_exception(request, e)
        return await self.after_response(request, response)

    async def before_request(self, request: Request) -> None:
        """Called before the request is processed."""
        pass

    async def after_response(self, request: Request, response: Response) -> Response:
        """Called after the response is generated."""
        return response

    async def handle_exception(self, request: Request, exc: Exception) -> Response:
        """Handle exceptions that escape the application. Re-raises by default."""
        raise exc
