"""Map FormBuilderError subclasses and framework errors to HTTP responses.

Register with ``register_exception_handlers(app)``. Bodies are
``{"error": <code>, "detail": <message>}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .access import Collection, Operation
from .errors import AccessDeniedError, FormBuilderError, NotFoundError

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "FORM_INACTIVE": status.HTTP_400_BAD_REQUEST,
    "STORAGE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PRECONDITION_FAILED": status.HTTP_412_PRECONDITION_FAILED,
}

# Denials that must be indistinguishable from a missing row.
_HIDDEN_DENIALS = {
    (Collection.SUBMISSIONS.value, Operation.READ.value),
    (Collection.SUBMISSIONS.value, Operation.DELETE.value),
}


def _access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    if not exc.authenticated:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": exc.error_code, "detail": "Authentication required"},
        )
    if (exc.collection, exc.operation) in _HIDDEN_DENIALS:
        logger.info("hiding %s", exc.message)
        hidden = NotFoundError("submission", exc.entity_id)
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=hidden.to_dict())
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=exc.to_dict())


def _form_builder_handler(request: Request, exc: FormBuilderError) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(exc.error_code, status.HTTP_400_BAD_REQUEST),
        content=exc.to_dict(),
    )


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "REQUEST_INVALID", "detail": jsonable_encoder(exc.errors())},
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _unexpected_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "INTERNAL_ERROR", "detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessDeniedError, _access_denied_handler)
    app.add_exception_handler(FormBuilderError, _form_builder_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unexpected_handler)
