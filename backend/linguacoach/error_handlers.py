"""
Central translation of exceptions into ``{"success": false, "msg": ...}``.

``AppError`` carries its own status and user-facing message (see
``errors.ERROR_TABLE``); framework and database exceptions are mapped here.
Technical detail (``error``, ``stack``) is only added in development.
"""

from __future__ import annotations
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import AppError, ErrorKind
from .settings import settings

logger = logging.getLogger(__name__)


def _respond(
	request: Request,
	exc: Exception,
	status: int,
	msg: str,
	*,
	kind: str,
	extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
	log = logger.error if status >= 500 else logger.info
	log(
		"%s %s -> %d [%s] %s",
		request.method,
		request.url.path,
		status,
		kind,
		getattr(exc, "detail", None) or str(exc),
		exc_info=exc if status >= 500 and settings.is_development else None,
	)
	body: Dict[str, Any] = {"success": False, "msg": msg}
	if settings.is_development:
		body["error"] = str(getattr(exc, "detail", None) or exc)
		body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
		if extra:
			body.update(extra)
	return JSONResponse(status_code=status, content=body)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
	return _respond(request, exc, exc.status_code, exc.message, kind=exc.kind.value, extra=exc.extra)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
	if exc.status_code == 404 and exc.detail == "Not Found":
		msg = f"Route not found: {request.method} {request.url.path}"
	else:
		msg = str(exc.detail)
	return _respond(request, exc, exc.status_code, msg, kind="http")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
	parts = []
	for err in exc.errors():
		loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
		parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
	return _respond(request, exc, 400, ", ".join(parts) or "Invalid request.", kind=ErrorKind.VALIDATION.value)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
	return _respond(request, exc, 400, "This record already exists.", kind=ErrorKind.DUPLICATE_KEY.value)


async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
	return _respond(request, exc, 503, "Database connection error. Please try again later.", kind="database")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
	logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
	return _respond(request, exc, 500, "An unexpected error occurred. Please try again.", kind="unhandled")


def register_error_handlers(app: FastAPI) -> None:
	app.add_exception_handler(AppError, app_error_handler)
	app.add_exception_handler(StarletteHTTPException, http_exception_handler)
	app.add_exception_handler(RequestValidationError, validation_exception_handler)
	app.add_exception_handler(IntegrityError, integrity_error_handler)
	app.add_exception_handler(OperationalError, operational_error_handler)
	app.add_exception_handler(Exception, unhandled_exception_handler)
