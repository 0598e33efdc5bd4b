"""Construction and serialisation of HTTP/1.1 responses."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum

MAX_VERSION_LEN = 16
MAX_HEADER_NAME_LEN = 256
MAX_HEADER_VALUE_LEN = 1024
MAX_HEADERS = 50
MAX_STATUS_MESSAGE_LEN = 256
MAX_RESPONSE_SIZE = 65536

SERVER_NAME = "HTTP-Parser/1.0"

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class ResponseTooLarge(ValueError):
    """Raised when a serialised response would not fit in MAX_RESPONSE_SIZE."""


class HttpStatus(IntEnum):
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503

    def message(self) -> str:
        """Reason phrase for this status."""
        return _MESSAGES[self]


_MESSAGES = {
    HttpStatus.OK: "OK",
    HttpStatus.CREATED: "Created",
    HttpStatus.ACCEPTED: "Accepted",
    HttpStatus.NO_CONTENT: "No Content",
    HttpStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HttpStatus.FOUND: "Found",
    HttpStatus.NOT_MODIFIED: "Not Modified",
    HttpStatus.BAD_REQUEST: "Bad Request",
    HttpStatus.UNAUTHORIZED: "Unauthorized",
    HttpStatus.FORBIDDEN: "Forbidden",
    HttpStatus.NOT_FOUND: "Not Found",
    HttpStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HttpStatus.CONFLICT: "Conflict",
    HttpStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HttpStatus.NOT_IMPLEMENTED: "Not Implemented",
    HttpStatus.BAD_GATEWAY: "Bad Gateway",
    HttpStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}


def status_to_message(status: int) -> str:
    """Reason phrase for a status code, or "Unknown" for unlisted codes."""
    try:
        return HttpStatus(int(status)).message()
    except ValueError:
        return "Unknown"


def current_time_string(now: datetime | float | None = None) -> str:
    """Format ``now`` (default: the current time) as an HTTP date in GMT.

    ``now`` may be a datetime (naive values are taken as UTC) or a POSIX timestamp.
    """
    if now is None:
        moment = datetime.fromtimestamp(time.time(), tz=timezone.utc)
    elif isinstance(now, datetime):
        moment = now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now.astimezone(timezone.utc)
    else:
        moment = datetime.fromtimestamp(now, tz=timezone.utc)
    return (
        f"{_DAY_NAMES[moment.weekday()]}, {moment.day:02d} "
        f"{_MONTH_NAMES[moment.month - 1]} {moment.year:04d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} GMT"
    )


def _default_headers() -> list[tuple[str, str]]:
    return [
        ("Date", current_time_string()),
        ("Server", SERVER_NAME),
        ("Connection", "close"),
    ]


@dataclass
class HttpResponse:
    """An HTTP response under construction."""

    version: str = "HTTP/1.1"
    status_code: int = HttpStatus.OK
    status_message: str = "OK"
    headers: list[tuple[str, str]] = field(default_factory=_default_headers)
    body: str | None = None
    body_length: int = 0
    raw: bytes | None = field(default=None, repr=False)

    def set_status(self, status: int) -> None:
        """Set the status code and its reason phrase."""
        try:
            self.status_code = HttpStatus(int(status))
        except ValueError:
            self.status_code = int(status)
        self.status_message = status_to_message(status)[: MAX_STATUS_MESSAGE_LEN - 1]
        self.raw = None

    def add_header(self, name: str, value: str) -> None:
        """Add a header, or replace the value of one with the same name.

        Raises ValueError once the response already holds MAX_HEADERS headers.
        """
        if len(self.headers) >= MAX_HEADERS:
            raise ValueError("too many headers")
        value = value[: MAX_HEADER_VALUE_LEN - 1]
        wanted = name.lower()
        for index, (existing, _) in enumerate(self.headers):
            if existing.lower() == wanted:
                self.headers[index] = (existing, value)
                self.raw = None
                return
        self.headers.append((name[: MAX_HEADER_NAME_LEN - 1], value))
        self.raw = None

    def header(self, name: str) -> str | None:
        """Value of the header called ``name`` (case-insensitive), or None."""
        wanted = name.lower()
        return next((v for n, v in self.headers if n.lower() == wanted), None)

    def set_body(self, body: str, content_type: str | None = None) -> None:
        """Set the body, its Content-Length and, if given, its Content-Type."""
        self.body = body
        self.body_length = len(body.encode("utf-8"))
        self.raw = None
        self.add_header("Content-Length", str(self.body_length))
        if content_type is not None:
            self.add_header("Content-Type", content_type)

    def set_json(self, json_text: str) -> None:
        self.set_body(json_text, "application/json; charset=utf-8")

    def set_html(self, html: str) -> None:
        self.set_body(html, "text/html; charset=utf-8")

    def set_text(self, text: str) -> None:
        self.set_body(text, "text/plain; charset=utf-8")

    def build(self) -> bytes:
        """Serialise the response; raises ResponseTooLarge if it does not fit."""
        parts = [f"{self.version} {int(self.status_code)} {self.status_message}\r\n".encode("utf-8")]
        parts.extend(f"{name}: {value}\r\n".encode("utf-8") for name, value in self.headers)
        parts.append(b"\r\n")
        if self.body and self.body_length > 0:
            parts.append(self.body.encode("utf-8"))
        raw = b"".join(parts)
        if len(raw) >= MAX_RESPONSE_SIZE:
            self.raw = None
            raise ResponseTooLarge(f"response of {len(raw)} bytes exceeds {MAX_RESPONSE_SIZE - 1}")
        self.raw = raw
        return raw

    def to_bytes(self) -> bytes:
        """The serialised response, building it first if needed."""
        return self.raw if self.raw is not None else self.build()

    def describe(self) -> str:
        """Human-readable dump of the response."""
        lines = [
            "=== HTTP RESPONSE ===",
            f"Version: {self.version}",
            f"Status: {int(self.status_code)} {self.status_message}",
            "",
            f"Headers ({len(self.headers)}):",
        ]
        lines.extend(f"  {name}: {value}" for name, value in self.headers)
        if self.body and self.body_length > 0:
            lines.append("")
            lines.append(f"Body ({self.body_length} bytes):")
            lines.append(self.body)
        lines.append("====================")
        return "\n".join(lines) + "\n"