"""Error codes and exceptions for the HTTP surface.

Commercial rule violations are reported through ValidationResult, not
raised. These errors cover malformed requests and run bookkeeping only.
"""
from enum import Enum

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gamemath.config import settings


class ErrorCode(str, Enum):
    """API error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNKNOWN_PRESET = "UNKNOWN_PRESET"
    RUN_NOT_FOUND = "RUN_NOT_FOUND"
    RUN_LIMIT_EXCEEDED = "RUN_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.UNKNOWN_PRESET: 404,
    ErrorCode.RUN_NOT_FOUND: 404,
    ErrorCode.RUN_LIMIT_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
}

ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.INVALID_REQUEST: False,
    ErrorCode.UNKNOWN_PRESET: False,
    ErrorCode.RUN_NOT_FOUND: False,
    ErrorCode.RUN_LIMIT_EXCEEDED: True,
    ErrorCode.INTERNAL_ERROR: True,
}


class ErrorBody(BaseModel):
    """Error body shape."""

    code: str
    message: str
    recoverable: bool


class ErrorResponse(BaseModel):
    """Full error envelope."""

    protocolVersion: str = settings.protocol_version
    error: ErrorBody


class GameMathError(Exception):
    """Base API error that maps to an error envelope."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or f"Error: {code.value}"
        self.status_code = ERROR_HTTP_STATUS[code]
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(
                error=ErrorBody(
                    code=self.code.value,
                    message=self.message,
                    recoverable=self.recoverable,
                )
            ).model_dump(),
        )
