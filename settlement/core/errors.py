"""
Exception handlers producing the JSON error envelope

Every error response carries {"error": true, "status_code", "detail", "path"};
engine errors add "code", "entity_type", "entity_id" and "current_state" so
clients can tell a stale view (refresh and retry) from a refused action.
"""
import logging
import traceback

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from settlement.core.config import settings
from settlement.core.exceptions import SettlementError

logger = logging.getLogger(__name__)


def _envelope(request: Request, status_code: int, detail, headers=None, **extra) -> JSONResponse:
    content = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "path": str(request.url.path),
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _envelope(request, exc.status_code, exc.detail, headers=getattr(exc, "headers", None))


async def settlement_exception_handler(request: Request, exc: SettlementError) -> JSONResponse:
    """NotAuthorized, AlreadyDecided, MonthNotEditable, ... with their entity context"""
    log = logger.error if exc.http_status >= 500 else logger.info
    log("Engine error %s on %s: %s", exc.code, request.url.path, exc.message)

    body = exc.to_dict()
    detail = body.pop("detail")
    return _envelope(request, exc.http_status, detail, **body)


def _jsonable_validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for raw in exc.errors():
        err = dict(raw)
        # ctx may hold the raising exception object
        if isinstance(err.get("ctx"), dict):
            err["ctx"] = {
                k: v if isinstance(v, (str, int, float, bool, type(None))) else str(v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return errors


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Field-level details everywhere except prod"""
    if settings.APP_ENV == "prod":
        return _envelope(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error: Invalid request data")
    return _envelope(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        errors=_jsonable_validation_errors(exc),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort; internals are hidden in prod"""
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return _envelope(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    return _envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        str(exc),
        traceback=traceback.format_exc() if settings.APP_ENV == "local" else None,
    )
