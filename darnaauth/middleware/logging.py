# middleware/logging.py
import logging
import re
import time
from typing import List

from starlette.requests import Request
from starlette.responses import Response

from .base import DarnaMiddleware

logger = logging.getLogger("darnaauth.requests")


class RequestLoggingMiddleware(DarnaMiddleware):
    """
    Log one line per request and tag the response.

    Sets ``X-Request-ID`` and ``X-Process-Time`` on every response. Request
    bodies are never logged since they carry passwords and tokens.
    """

    def setup(self):
        self.excluded_paths = self.config.get("excluded_paths", ["/health"])
        self.request_id_header = self.config.get("request_id_header", "X-Request-ID")
        self.time_header = self.config.get("time_header", "X-Process-Time")
        self._excluded_patterns = self._compile_patterns(self.excluded_paths)

    def _compile_patterns(self, paths: List[str]) -> List[re.Pattern]:
        """Compile regex patterns for path matching."""
        patterns = []
        for path in paths:
            try:
                if any(char in path for char in r".*+?{}[]|()"):
                    patterns.append(re.compile(path))
                else:
                    patterns.append(re.compile(re.escape(path)))
            except re.error as e:
                logger.warning(f"Invalid regex pattern '{path}': {e}")
        return patterns

    def should_log_request(self, path: str) -> bool:
        return not any(pattern.match(path) for pattern in self._excluded_patterns)

    def _elapsed(self, request: Request) -> float:
        return time.perf_counter() - request.state.start_time

    async def after_response(self, request: Request, response: Response) -> Response:
        elapsed = self._elapsed(request)
        response.headers[self.request_id_header] = request.state.request_id
        response.headers[self.time_header] = f"{elapsed:.4f}"

        if self.should_log_request(request.url.path):
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({elapsed * 1000:.1f} ms) [{request.state.request_id}]",
            )
        return response

    async def handle_exception(self, request: Request, exc: Exception) -> Response:
        logger.error(
            f"{request.method} {request.url.path} failed after "
            f"{self._elapsed(request) * 1000:.1f} ms [{request.state.request_id}]: {exc!r}"
        )
        raise exc
