import logging
import traceback
from http import HTTPStatus

import jwt
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_config

logger = logging.getLogger(__name__)

ERROR_CATEGORIES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    413: "Payload Too Large",
    429: "Too Many Requests",
    500: "Internal Server Error",
}

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")


def error_category(status_code: int) -> str:
    if status_code in ERROR_CATEGORIES:
        return ERROR_CATEGORIES[status_code]
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_response(status_code: int, message: str, error: str = None, headers=None, **extra) -> JSONResponse:
    body = {"error": error or error_category(status_code), "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def validation_details(errors) -> list:
    details = []
    for err in errors:
        loc = list(err.get("loc", ()))
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        details.append({
            "path": ".".join(str(part) for part in loc),
            "message": err.get("msg", "Invalid value"),
        })
    return details


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else error_category(exc.status_code)
    if exc.status_code == 404 and message == "Not Found":
        # raised by the router itself, not by a handler
        message = "The requested endpoint does not exist"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(
        400,
        "Invalid request data",
        error="Validation Error",
        details=validation_details(exc.errors()),
    )


async def model_validation_handler(request: Request, exc: ValidationError):
    config = get_config()
    return error_response(
        400,
        "Invalid data provided",
        error="Validation Error",
        details=validation_details(exc.errors()) if not config.is_production else None,
    )


async def invalid_id_handler(request: Request, exc: InvalidId):
    return error_response(400, "Invalid ID format")


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.info("Duplicate key on %s %s: %s", request.method, request.url.path, exc)
    return error_response(409, "Resource already exists")


async def expired_token_handler(request: Request, exc: jwt.ExpiredSignatureError):
    return error_response(401, "Token expired")


async def invalid_token_handler(request: Request, exc: jwt.InvalidTokenError):
    return error_response(401, "Invalid token")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    config = get_config()
    if config.is_production:
        return error_response(500, "Something went wrong")
    return error_response(
        500,
        str(exc) or "Something went wrong",
        stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, model_validation_handler)
    app.add_exception_handler(InvalidId, invalid_id_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(jwt.ExpiredSignatureError, expired_token_handler)
    app.add_exception_handler(jwt.InvalidTokenError, invalid_token_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
