import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for errors reported to API clients.

    Every subclass maps to one HTTP status and one stable ``error`` code; the
    message is the human-readable ``detail``.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    default_message = "Invalid input"


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class InvalidCode(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_code"
    default_message = "Invalid OTP"


class CodeExpired(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "expired"
    default_message = "OTP has expired. Please request a new one."


class Unauthorized(LedgerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Could not validate credentials"


class Conflict(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Resource already exists"


class InternalError(LedgerError):
    pass


def _error_response(status_code: int, code: str, detail: str, **extra) -> JSONResponse:
    body = {"error": code, "detail": detail}
    body.update(extra)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _format_validation_error(err: dict) -> str:
    # loc starts with "body"/"query"/"path"/"form"; the field path is what clients care about
    loc = [str(part) for part in err.get("loc", ())[1:]]
    field = ".".join(loc) if loc else "request"
    return f"{field}: {err.get('msg', 'invalid value')}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [_format_validation_error(err) for err in exc.errors()]
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            InvalidInput.code,
            "; ".join(messages) or InvalidInput.default_message,
            errors=messages,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            InternalError.code,
            InternalError.default_message,
        )
