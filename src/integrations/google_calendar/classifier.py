"""
Maps raw calendar failures onto the error taxonomy.

The calendar client can fail with googleapiclient HttpErrors, structured API
error bodies, socket-level exceptions, or our own GoogleCalendarError
subclasses. ``to_calendar_error`` folds all of them into one tagged exception
so retry decisions never depend on a particular SDK's error format.
"""

import json
import socket
import traceback
from collections.abc import Mapping
from typing import Any

import httplib2
from googleapiclient.errors import HttpError

from src.integrations.google_calendar.exceptions import (
    ERROR_CLASSES,
    CalendarErrorKind,
    GoogleCalendarError,
)

RATE_LIMIT_STATUSES = {"RATE_LIMIT_EXCEEDED"}
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}
QUOTA_STATUSES = {"QUOTA_EXCEEDED", "RESOURCE_EXHAUSTED"}
QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded"}
BACKEND_STATUSES = {"BACKEND_ERROR", "INTERNAL_ERROR", "INTERNAL", "UNAVAILABLE"}
BACKEND_REASONS = {"backendError", "internalError"}
BACKEND_CODES = {500, 502, 503, 504}
NOT_FOUND_STATUSES = {"NOT_FOUND"}
PERMISSION_STATUSES = {"PERMISSION_DENIED", "UNAUTHENTICATED"}
INVALID_ARGUMENT_STATUSES = {"INVALID_ARGUMENT", "FAILED_PRECONDITION"}

NETWORK_ERROR_CODES = {"ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "ECONNREFUSED", "EAI_AGAIN"}

TRANSPORT_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    socket.timeout,
    socket.gaierror,
    httplib2.ServerNotFoundError,
)

DEFAULT_MESSAGES = {
    CalendarErrorKind.RATE_LIMITED: "Rate limit exceeded - too many requests",
    CalendarErrorKind.QUOTA: "API quota exceeded",
    CalendarErrorKind.BACKEND: "Google Calendar backend error",
    CalendarErrorKind.TRANSPORT: "Network error while contacting Google Calendar",
    CalendarErrorKind.NOT_FOUND: "Event or calendar not found",
    CalendarErrorKind.PERMISSION_DENIED: "Access denied - check calendar sharing permissions",
    CalendarErrorKind.INVALID_ARGUMENT: "Invalid calendar request",
    CalendarErrorKind.UNKNOWN: "Unexpected calendar error",
}


def _parse_http_error_body(error: HttpError) -> dict:
    """Decode the ``{"error": {...}}`` JSON body of an HttpError, if any."""
    content = error.content
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError:
            return {}
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        return {}
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"]
    return {}


def _unwrap_body(raw: Mapping) -> Mapping | None:
    """Return the inner API error mapping, or None if raw isn't shaped like one."""
    inner = raw.get("error")
    if isinstance(inner, Mapping):
        return inner
    if "status" in raw or "errors" in raw or isinstance(raw.get("code"), int):
        return raw
    return None


def _reasons(body: Mapping) -> set[str]:
    reasons = set()
    for detail in body.get("errors") or []:
        if isinstance(detail, Mapping) and detail.get("reason"):
            reasons.add(detail["reason"])
    return reasons


def classify_api_error(
    code: int | None,
    status: str | None = None,
    reasons: set[str] | None = None,
) -> CalendarErrorKind:
    """
    Classify a cloud API error from its numeric code, status and reasons.

    A retryable status or reason wins over a terminal code, since Google
    reports per-user rate limits as 403 with reason ``rateLimitExceeded``.
    """
    status = (status or "").upper()
    reasons = reasons or set()

    if status in RATE_LIMIT_STATUSES or reasons & RATE_LIMIT_REASONS or code == 429:
        return CalendarErrorKind.RATE_LIMITED
    if status in QUOTA_STATUSES or reasons & QUOTA_REASONS:
        return CalendarErrorKind.QUOTA
    if status in BACKEND_STATUSES or reasons & BACKEND_REASONS or code in BACKEND_CODES:
        return CalendarErrorKind.BACKEND
    if status in NOT_FOUND_STATUSES or code == 404:
        return CalendarErrorKind.NOT_FOUND
    if status in PERMISSION_STATUSES or code in (401, 403):
        return CalendarErrorKind.PERMISSION_DENIED
    if status in INVALID_ARGUMENT_STATUSES or code == 400:
        return CalendarErrorKind.INVALID_ARGUMENT
    return CalendarErrorKind.UNKNOWN


def _is_transport_error(raw: Any) -> bool:
    if isinstance(raw, TRANSPORT_EXCEPTIONS):
        return True
    if isinstance(raw, Mapping):
        code = raw.get("code")
    else:
        code = getattr(raw, "code", None) or getattr(raw, "errno", None)
    return isinstance(code, str) and code.upper() in NETWORK_ERROR_CODES


def _build(kind: CalendarErrorKind, message: str | None, raw: Any, status_code: int | None = None):
    error_class = ERROR_CLASSES[kind]
    return error_class(message or DEFAULT_MESSAGES[kind], original_error=raw, status_code=status_code)


def to_calendar_error(raw: Any) -> GoogleCalendarError:
    """
    Convert any raw failure into a tagged GoogleCalendarError.

    Args:
        raw: Exception or error body produced by a calendar call

    Returns:
        GoogleCalendarError subclass matching the error's classification
    """
    if isinstance(raw, GoogleCalendarError):
        return raw

    if isinstance(raw, HttpError):
        body = _parse_http_error_body(raw)
        status_code = body.get("code") if isinstance(body.get("code"), int) else raw.resp.status
        kind = classify_api_error(status_code, body.get("status"), _reasons(body))
        return _build(kind, body.get("message"), raw, status_code)

    if isinstance(raw, Mapping):
        body = _unwrap_body(raw)
        if body is not None:
            code = body.get("code") if isinstance(body.get("code"), int) else None
            kind = classify_api_error(code, body.get("status"), _reasons(body))
            if kind is CalendarErrorKind.UNKNOWN and _is_transport_error(body):
                kind = CalendarErrorKind.TRANSPORT
            return _build(kind, body.get("message"), raw, code)

    if _is_transport_error(raw):
        message = str(raw) if isinstance(raw, BaseException) and str(raw) else None
        return _build(CalendarErrorKind.TRANSPORT, message, raw)

    if isinstance(raw, Mapping):
        return _build(CalendarErrorKind.UNKNOWN, raw.get("message"), raw)
    if isinstance(raw, BaseException):
        return _build(CalendarErrorKind.UNKNOWN, str(raw) or None, raw)
    return _build(CalendarErrorKind.UNKNOWN, None, raw)


def is_api_error(raw: Any) -> bool:
    """Check if raw is a cloud API error response rather than a local failure."""
    if isinstance(raw, HttpError):
        return True
    return isinstance(raw, Mapping) and _unwrap_body(raw) is not None


def is_retryable(raw: Any) -> bool:
    """Check if a raw failure is worth retrying."""
    if raw is None:
        return False
    return to_calendar_error(raw).retryable


def _api_error_details(body: Mapping) -> dict:
    return {
        "code": body.get("code"),
        "message": body.get("message"),
        "status": body.get("status"),
        "details": [
            {
                "domain": detail.get("domain"),
                "reason": detail.get("reason"),
                "message": detail.get("message"),
            }
            for detail in body.get("errors") or []
            if isinstance(detail, Mapping)
        ],
    }


def extract_error_details(raw: Any) -> Any:
    """
    Extract a loggable summary from a calendar failure.

    Keeps only the fields that are useful for diagnosis: API code/status and
    per-error reasons, or exception name, message and the first lines of the
    traceback.
    """
    if raw is None:
        return "Unknown error"

    if isinstance(raw, GoogleCalendarError):
        details = {
            "kind": raw.kind.value,
            "message": raw.message,
            "status_code": raw.status_code,
        }
        if raw.original_error is not None and raw.original_error is not raw:
            details["cause"] = extract_error_details(raw.original_error)
        return details

    if isinstance(raw, HttpError):
        body = _parse_http_error_body(raw)
        if body:
            return _api_error_details(body)
        return {"code": raw.resp.status, "message": str(raw)}

    if isinstance(raw, Mapping):
        body = _unwrap_body(raw)
        if body is not None:
            return _api_error_details(body)
        return {key: str(value) for key, value in raw.items()}

    if isinstance(raw, BaseException):
        stack = traceback.format_exception(type(raw), raw, raw.__traceback__)
        return {
            "name": type(raw).__name__,
            "message": str(raw),
            "stack": "".join(stack).splitlines()[:5],
        }

    return str(raw)
