from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.application.errors import InternalFailure, NotFound, ServiceError, ValidationError
from storefront.application.schemas import ErrorResponse
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)

def error_response(error: ServiceError) -> JSONResponse:
    body = ErrorResponse(error=error.kind, message=error.message)
    return JSONResponse(status_code=error.status_code, content=body.model_dump())

def _describe(errors: list) -> str:
    if not errors:
        return ValidationError.default_message
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{location}: {first.get('msg')}" if location else first.get("msg", "")

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{exc.kind}: {exc.message}",
            extra={'extra_fields': {'path': request.url.path, 'status_code': exc.status_code}}
        )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(ValidationError(_describe(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(NotFound(str(exc.detail)))
        error_type = InternalFailure if exc.status_code >= 500 else ValidationError
        return error_response(error_type(str(exc.detail), status_code=exc.status_code))

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Storage failure on {request.url.path}", exc_info=exc)
        return error_response(InternalFailure())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}", exc_info=exc)
        return error_response(InternalFailure())
