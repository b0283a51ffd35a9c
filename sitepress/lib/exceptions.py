import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from sitepress.lib.errors import NotFoundError, PartialWriteError, ProviderError, SitepressError, ValidationError

logger = logging.getLogger(__name__)


def status_for(exc: SitepressError) -> int:
    """Map a domain error onto an HTTP status code."""
    if isinstance(exc, NotFoundError):
        return HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return HTTP_400_BAD_REQUEST
    if isinstance(exc, ProviderError):
        return HTTP_502_BAD_GATEWAY
    if isinstance(exc, PartialWriteError):
        return HTTP_409_CONFLICT
    return HTTP_500_INTERNAL_SERVER_ERROR


def sitepress_error_handler(request: Request, exc: SitepressError) -> Response:
    """Render domain errors raised by controllers as JSON."""
    status_code = status_for(exc)
    return Response(
        content={"status_code": status_code, "detail": exc.message, "code": exc.code},
        status_code=status_code,
        media_type="application/json",
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return Response(
        content={"status_code": exc.status_code, "detail": detail},
        status_code=exc.status_code,
        media_type="application/json",
    )


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return Response(
        content={"status_code": HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal Server Error"},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )


EXCEPTION_HANDLERS = {
    SitepressError: sitepress_error_handler,
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}
