"""Tests for mapping raw calendar failures onto the error taxonomy."""

import json
import socket
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from src.integrations.google_calendar.classifier import (
    classify_api_error,
    extract_error_details,
    is_api_error,
    is_retryable,
    to_calendar_error,
)
from src.integrations.google_calendar.exceptions import (
    CalendarErrorKind,
    GoogleCalendarError,
    GoogleCalendarNotFoundError,
    GoogleCalendarTransportError,
)


def make_http_error(status: int, content: bytes) -> HttpError:
    resp = MagicMock()
    resp.status = status
    return HttpError(resp=resp, content=content)


class TestClassifyApiError:
    """Tests for code/status/reason classification."""

    @pytest.mark.parametrize(
        "code,status,reasons,kind",
        [
            (429, None, None, CalendarErrorKind.RATE_LIMITED),
            (None, "RATE_LIMIT_EXCEEDED", None, CalendarErrorKind.RATE_LIMITED),
            (403, None, {"rateLimitExceeded"}, CalendarErrorKind.RATE_LIMITED),
            (None, "QUOTA_EXCEEDED", None, CalendarErrorKind.QUOTA),
            (403, None, {"quotaExceeded"}, CalendarErrorKind.QUOTA),
            (None, "BACKEND_ERROR", None, CalendarErrorKind.BACKEND),
            (None, "INTERNAL_ERROR", None, CalendarErrorKind.BACKEND),
            (503, None, None, CalendarErrorKind.BACKEND),
            (404, None, None, CalendarErrorKind.NOT_FOUND),
            (None, "not_found", None, CalendarErrorKind.NOT_FOUND),
            (401, None, None, CalendarErrorKind.PERMISSION_DENIED),
            (403, "PERMISSION_DENIED", None, CalendarErrorKind.PERMISSION_DENIED),
            (400, None, None, CalendarErrorKind.INVALID_ARGUMENT),
            (409, None, None, CalendarErrorKind.UNKNOWN),
            (None, None, None, CalendarErrorKind.UNKNOWN),
        ],
    )
    def test_classification(self, code, status, reasons, kind):
        assert classify_api_error(code, status, reasons) is kind


class TestToCalendarError:
    """Tests for converting raw failures."""

    def test_tagged_error_passes_through(self):
        error = GoogleCalendarNotFoundError("gone")
        assert to_calendar_error(error) is error

    def test_http_error_with_json_body(self):
        body = {
            "error": {
                "code": 403,
                "message": "Rate Limit Exceeded",
                "errors": [{"domain": "usageLimits", "reason": "rateLimitExceeded"}],
            }
        }
        raw = make_http_error(403, json.dumps(body).encode())

        error = to_calendar_error(raw)

        assert error.kind is CalendarErrorKind.RATE_LIMITED
        assert error.retryable is True
        assert error.message == "Rate Limit Exceeded"
        assert error.status_code == 403
        assert error.raw is raw

    def test_http_error_without_json_body(self):
        raw = make_http_error(502, b"<html>Bad Gateway</html>")

        error = to_calendar_error(raw)

        assert error.kind is CalendarErrorKind.BACKEND
        assert error.status_code == 502

    def test_nested_mapping(self):
        error = to_calendar_error({"error": {"code": 404, "message": "Not Found"}})

        assert isinstance(error, GoogleCalendarNotFoundError)
        assert error.message == "Not Found"

    def test_flat_mapping(self):
        error = to_calendar_error({"status": "QUOTA_EXCEEDED"})
        assert error.kind is CalendarErrorKind.QUOTA

    @pytest.mark.parametrize(
        "raw",
        [
            {"code": "ECONNRESET"},
            {"code": "etimedout"},
            ConnectionRefusedError("refused"),
            socket.timeout("timed out"),
            socket.gaierror("name resolution"),
            httplib2.ServerNotFoundError("Unable to find the server"),
        ],
    )
    def test_transport_failures(self, raw):
        error = to_calendar_error(raw)

        assert isinstance(error, GoogleCalendarTransportError)
        assert error.retryable is True

    def test_errno_style_code_attribute(self):
        class NodeStyleError(Exception):
            code = "ENOTFOUND"

        assert to_calendar_error(NodeStyleError("dns")).kind is CalendarErrorKind.TRANSPORT

    @pytest.mark.parametrize("raw", [None, "oops", 7, ValueError("bad"), {"foo": "bar"}])
    def test_unknown(self, raw):
        error = to_calendar_error(raw)

        assert type(error) is GoogleCalendarError
        assert error.kind is CalendarErrorKind.UNKNOWN
        assert error.retryable is False

    def test_unknown_keeps_exception_message(self):
        assert to_calendar_error(ValueError("bad payload")).message == "bad payload"


class TestPredicates:
    """Tests for is_api_error and is_retryable."""

    def test_is_api_error(self):
        assert is_api_error(make_http_error(500, b"")) is True
        assert is_api_error({"error": {"code": 500}}) is True
        assert is_api_error({"code": 500}) is True
        assert is_api_error({"code": "ECONNRESET"}) is False
        assert is_api_error(ValueError("x")) is False

    def test_is_retryable(self):
        assert is_retryable(None) is False
        assert is_retryable({"code": 503}) is True
        assert is_retryable({"code": 404}) is False


class TestExtractErrorDetails:
    """Tests for loggable error summaries."""

    def test_none(self):
        assert extract_error_details(None) == "Unknown error"

    def test_api_body(self):
        details = extract_error_details(
            {
                "error": {
                    "code": 403,
                    "message": "Forbidden",
                    "status": "PERMISSION_DENIED",
                    "errors": [{"domain": "global", "reason": "forbidden", "message": "Forbidden"}],
                }
            }
        )

        assert details == {
            "code": 403,
            "message": "Forbidden",
            "status": "PERMISSION_DENIED",
            "details": [{"domain": "global", "reason": "forbidden", "message": "Forbidden"}],
        }

    def test_exception_keeps_five_stack_lines(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            details = extract_error_details(e)

        assert details["name"] == "RuntimeError"
        assert details["message"] == "boom"
        assert 0 < len(details["stack"]) <= 5

    def test_tagged_error_includes_cause(self):
        error = to_calendar_error({"code": 503, "message": "Unavailable"})

        details = extract_error_details(error)

        assert details["kind"] == "backend"
        assert details["status_code"] == 503
        assert details["cause"]["code"] == 503

    def test_other_values(self):
        assert extract_error_details("plain") == "plain"
