"""Middleware for error handling."""
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from gamemath.errors import ErrorCode, GameMathError


logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert GameMathError exceptions to error envelope responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except GameMathError as e:
            return e.to_response()
        except Exception as e:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            error = GameMathError(ErrorCode.INTERNAL_ERROR, str(e))
            return error.to_response()
