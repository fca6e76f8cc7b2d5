from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class BudgetError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BudgetError):
    """Bad or missing input (empty name, non-numeric amount, ...)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BudgetError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BudgetError):
    """Deletion blocked by dependent records."""

    status_code = status.HTTP_400_BAD_REQUEST


class PersistenceError(BudgetError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def budget_error_handler(request: Request, exc: BudgetError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        logger.info("404 NOT FOUND: %s %s", request.method, request.url.path)
        return _error(exc.status_code, f"נתיב לא נמצא בשרת: {request.method} {request.url.path}")
    return _error(exc.status_code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return _error(status.HTTP_400_BAD_REQUEST, "קלט לא תקין: " + "; ".join(problems))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BudgetError, budget_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
