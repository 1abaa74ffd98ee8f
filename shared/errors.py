"""
Closed error taxonomy for the order engine.

Service code raises these instead of HTTPException so the same failures can be
produced by the API, the webhook reconciler and the background reaper. The HTTP
layer maps them in one place (shared.errors.install_error_handlers).
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.i18n import translate, resolve_language

logger = structlog.get_logger(__name__)


class OrderEngineError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "BAD_REQUEST"

    def __init__(self, code: str | None = None, detail: str | None = None):
        self.code = code or self.default_code
        self.detail = detail
        super().__init__(detail or self.code)


class ValidationFailed(OrderEngineError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_FAILED"


class NotFound(OrderEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class Forbidden(OrderEngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class Conflict(OrderEngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class InvalidState(OrderEngineError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_STATE"


class InvalidTransition(OrderEngineError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_ORDER_STATUS_TRANSITION"


class NotPayable(OrderEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "ORDER_NOT_PAYABLE"


class GatewaySignatureInvalid(OrderEngineError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_SIGNATURE"


class GatewayError(OrderEngineError):
    """The payment provider rejected or failed a call."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "PAYMENT_PROVIDER_ERROR"


# Framework-raised HTTP errors mapped onto the same stable codes
HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_FAILED",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
}


def error_body(code: str, message: str, status_code: int) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message, "status": status_code},
    }


def _render(request: Request, code: str, status_code: int, headers: dict | None = None) -> JSONResponse:
    lang = resolve_language(request.headers.get("accept-language"))
    return JSONResponse(
        status_code=status_code,
        content=error_body(code, translate(code, lang), status_code),
        headers=headers,
    )


async def _handle_engine_error(request: Request, exc: OrderEngineError):
    logger.info(
        "request.rejected",
        path=request.url.path,
        code=exc.code,
        status=exc.status_code,
        detail=exc.detail,
    )
    return _render(request, exc.code, exc.status_code)


async def _handle_validation_error(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 like every other validation failure."""
    logger.info(
        "request.invalid",
        path=request.url.path,
        errors=[{"loc": list(e.get("loc", ())), "type": e.get("type")} for e in exc.errors()],
    )
    return _render(request, ValidationFailed.default_code, ValidationFailed.status_code)


async def _handle_http_error(request: Request, exc: StarletteHTTPException):
    code = HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    logger.info("request.rejected", path=request.url.path, code=code, status=exc.status_code)
    return _render(request, code, exc.status_code, headers=getattr(exc, "headers", None))


async def _handle_rate_limited(request: Request, exc: RateLimitExceeded):
    logger.warning("request.rate_limited", path=request.url.path, limit=exc.detail)
    response = _render(request, "RATE_LIMITED", status.HTTP_429_TOO_MANY_REQUESTS)
    limiter = getattr(request.app.state, "limiter", None)
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if limiter is not None and view_rate_limit is not None:
        response = limiter._inject_headers(response, view_rate_limit)
    return response


async def _handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("request.failed", path=request.url.path)
    return _render(request, "INTERNAL_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderEngineError, _handle_engine_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(RateLimitExceeded, _handle_rate_limited)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
