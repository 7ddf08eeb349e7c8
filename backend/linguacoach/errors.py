"""
Application error taxonomy.

Every failure the API reports is an ``AppError`` tagged with one ``ErrorKind``.
``ERROR_TABLE`` is the single mapping from kind to HTTP status, default
user-facing message and retryability; the exception handler in
``error_handlers`` is its only consumer.

The subclasses exist so call sites can raise and catch by name
(``RateLimitError``, ``MalformedResponseError``...); each one only pins a kind.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional


class ErrorKind(str, Enum):
	CONFIG = "config"
	EMPTY_RESPONSE = "empty_response"
	PAYMENT = "payment"
	RATE_LIMIT = "rate_limit"
	UPSTREAM_AUTH = "upstream_auth"
	NETWORK = "network"
	UNKNOWN = "unknown"
	MALFORMED_RESPONSE = "malformed_response"
	VALIDATION = "validation"
	NOT_FOUND = "not_found"
	UNAUTHORIZED_OWNER = "unauthorized_owner"
	DUPLICATE_KEY = "duplicate_key"
	QUOTA_EXCEEDED = "quota_exceeded"
	AUTH = "auth"
	CONCURRENT_UPDATE = "concurrent_update"


class ErrorSpec(NamedTuple):
	status: int
	message: str
	retryable: bool = False


ERROR_TABLE: Dict[ErrorKind, ErrorSpec] = {
	ErrorKind.CONFIG: ErrorSpec(500, "AI service is not configured. Please contact support."),
	ErrorKind.EMPTY_RESPONSE: ErrorSpec(502, "AI returned an empty response. Please try again."),
	ErrorKind.PAYMENT: ErrorSpec(402, "AI service is temporarily unavailable. Please try again later."),
	ErrorKind.RATE_LIMIT: ErrorSpec(429, "AI service is busy right now. Please try again in a minute.", True),
	ErrorKind.UPSTREAM_AUTH: ErrorSpec(500, "AI service rejected our credentials. Please contact support."),
	ErrorKind.NETWORK: ErrorSpec(503, "AI service is temporarily unreachable. Please try again later.", True),
	ErrorKind.UNKNOWN: ErrorSpec(500, "Failed to get a response from the AI service. Please try again."),
	ErrorKind.MALFORMED_RESPONSE: ErrorSpec(500, "AI response parsing failed. Please try again."),
	ErrorKind.VALIDATION: ErrorSpec(400, "Invalid request."),
	ErrorKind.NOT_FOUND: ErrorSpec(404, "Not found."),
	ErrorKind.UNAUTHORIZED_OWNER: ErrorSpec(401, "Not authorized."),
	ErrorKind.DUPLICATE_KEY: ErrorSpec(400, "This record already exists."),
	ErrorKind.QUOTA_EXCEEDED: ErrorSpec(429, "Daily AI limit reached. Please try again tomorrow."),
	ErrorKind.AUTH: ErrorSpec(401, "Invalid authentication token. Please log in again."),
	ErrorKind.CONCURRENT_UPDATE: ErrorSpec(409, "This session was updated by another request. Please retry."),
}


class AppError(Exception):
	"""Base error carrying a kind, a user-facing message and technical detail.

	``message`` is what the client sees; ``detail`` is the technical message
	that is only logged (and echoed to the client in development mode).
	"""

	kind: ErrorKind = ErrorKind.UNKNOWN

	def __init__(
		self,
		detail: Optional[str] = None,
		*,
		message: Optional[str] = None,
		kind: Optional[ErrorKind] = None,
		retryable: Optional[bool] = None,
		extra: Optional[Dict[str, Any]] = None,
	) -> None:
		if kind is not None:
			self.kind = kind
		entry = ERROR_TABLE[self.kind]
		self.message = message or entry.message
		self.detail = detail or self.message
		self.retryable = entry.retryable if retryable is None else retryable
		self.extra = extra or {}
		super().__init__(self.detail)

	@property
	def status_code(self) -> int:
		return ERROR_TABLE[self.kind].status

	def fatal(self) -> "AppError":
		"""Return a non-retryable copy, used once retries are exhausted."""
		err = type(self).__new__(type(self))
		err.__dict__.update(self.__dict__)
		Exception.__init__(err, self.detail)
		err.retryable = False
		err.__cause__ = self
		return err

	def to_dict(self) -> Dict[str, Any]:
		return {"success": False, "msg": self.message}


class ConfigError(AppError):
	kind = ErrorKind.CONFIG


class EmptyResponseError(AppError):
	kind = ErrorKind.EMPTY_RESPONSE


class PaymentError(AppError):
	kind = ErrorKind.PAYMENT


class RateLimitError(AppError):
	kind = ErrorKind.RATE_LIMIT


class UpstreamAuthError(AppError):
	kind = ErrorKind.UPSTREAM_AUTH


class NetworkError(AppError):
	kind = ErrorKind.NETWORK


class UnknownError(AppError):
	kind = ErrorKind.UNKNOWN


class MalformedResponseError(AppError):
	kind = ErrorKind.MALFORMED_RESPONSE

	def __init__(self, detail: Optional[str] = None, *, excerpt: str = "", **kwargs: Any) -> None:
		extra = dict(kwargs.pop("extra", None) or {})
		extra.setdefault("raw", excerpt)
		super().__init__(detail, extra=extra, **kwargs)
		self.excerpt = extra["raw"]


class ValidationError(AppError):
	kind = ErrorKind.VALIDATION

	def __init__(self, message: str = "Invalid request.", **kwargs: Any) -> None:
		super().__init__(kwargs.pop("detail", None), message=message, **kwargs)


class NotFoundError(AppError):
	kind = ErrorKind.NOT_FOUND

	def __init__(self, message: str = "Not found.", **kwargs: Any) -> None:
		super().__init__(kwargs.pop("detail", None), message=message, **kwargs)


class UnauthorizedOwnerError(AppError):
	kind = ErrorKind.UNAUTHORIZED_OWNER

	def __init__(self, message: str = "Not authorized.", **kwargs: Any) -> None:
		super().__init__(kwargs.pop("detail", None), message=message, **kwargs)


class DuplicateKeyError(AppError):
	kind = ErrorKind.DUPLICATE_KEY

	def __init__(self, message: str = "This record already exists.", **kwargs: Any) -> None:
		super().__init__(kwargs.pop("detail", None), message=message, **kwargs)


class QuotaExceededError(AppError):
	kind = ErrorKind.QUOTA_EXCEEDED


class AuthError(AppError):
	kind = ErrorKind.AUTH

	def __init__(self, message: str = "Invalid authentication token. Please log in again.", **kwargs: Any) -> None:
		super().__init__(kwargs.pop("detail", None), message=message, **kwargs)


class ConcurrentUpdateError(AppError):
	kind = ErrorKind.CONCURRENT_UPDATE
