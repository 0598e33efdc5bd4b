"""Parsing of raw HTTP/1.x requests into structured objects."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import quote_plus  # noqa: F401  (kept for callers building query strings)

MAX_METHOD_LEN = 16
MAX_URI_LEN = 2048
MAX_VERSION_LEN = 16
MAX_HEADER_NAME_LEN = 256
MAX_HEADER_VALUE_LEN = 1024
MAX_HEADERS = 50
MAX_QUERY_PARAMS = 50

_C_WHITESPACE = " \t\n\v\f\r"
_LINE_SPLIT = re.compile(r"[\r\n]+")
_LEADING_UNSIGNED = re.compile(r"\+?(\d+)")


class HttpParseError(ValueError):
    """Raised when a request, request line or header line cannot be parsed."""


class HttpMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    TRACE = "TRACE"
    CONNECT = "CONNECT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, method_str: str) -> "HttpMethod":
        """Return the method named by ``method_str``, ignoring case."""
        member = cls.__members__.get(method_str.upper())
        if member is None or member is cls.UNKNOWN:
            return cls.UNKNOWN
        return member

    def __str__(self) -> str:
        return self.value


@dataclass
class HttpRequest:
    """A parsed HTTP request."""

    method: HttpMethod = HttpMethod.UNKNOWN
    method_str: str = ""
    uri: str = ""
    path: str = ""
    query_string: str = ""
    version: str = ""
    headers: list[tuple[str, str]] = field(default_factory=list)
    query_params: list[tuple[str, str]] = field(default_factory=list)
    body: str | None = None
    body_length: int = 0
    content_length: int = 0

    def header(self, name: str) -> str | None:
        """Value of the first header called ``name`` (case-insensitive), or None."""
        wanted = name.lower()
        return next((v for n, v in self.headers if n.lower() == wanted), None)

    def query_param(self, name: str) -> str | None:
        """Value of the first query parameter called exactly ``name``, or None."""
        return next((v for n, v in self.query_params if n == name), None)

    def has_header(self, name: str) -> bool:
        return self.header(name) is not None

    def has_query_param(self, name: str) -> bool:
        return self.query_param(name) is not None

    def describe(self) -> str:
        """Human-readable dump of the request."""
        lines = [
            "=== HTTP REQUEST ===",
            f"Method: {self.method_str} ({self.method.value})",
            f"URI: {self.uri}",
            f"Path: {self.path}",
            f"Query String: {self.query_string}",
            f"Version: {self.version}",
            f"Content Length: {self.content_length}",
            "",
            f"Headers ({len(self.headers)}):",
        ]
        lines.extend(f"  {name}: {value}" for name, value in self.headers)
        lines.append("")
        lines.append(f"Query Parameters ({len(self.query_params)}):")
        lines.extend(f"  {name} = {value}" for name, value in self.query_params)
        if self.body and self.body_length > 0:
            lines.append("")
            lines.append(f"Body ({self.body_length} bytes):")
            lines.append(self.body)
        lines.append("==================")
        return "\n".join(lines) + "\n"


def _trim(text: str) -> str:
    return text.strip(_C_WHITESPACE)


def hex_to_int(c: str) -> int:
    """Value of a single hexadecimal digit; raises ValueError otherwise."""
    if len(c) == 1 and c in "0123456789abcdefABCDEF":
        return int(c, 16)
    raise ValueError(f"not a hexadecimal digit: {c!r}")


def url_decode(src: str) -> str:
    """Decode ``%XX`` escapes and ``+`` in a URL component.

    Malformed escapes are copied through unchanged.
    """
    out = bytearray()
    i = 0
    length = len(src)
    while i < length:
        ch = src[i]
        if ch == "%" and i + 2 < length + 0 and i + 2 <= length - 1:
            try:
                out.append(hex_to_int(src[i + 1]) * 16 + hex_to_int(src[i + 2]))
                i += 3
                continue
            except ValueError:
                out.extend(b"%")
                i += 1
                continue
        if ch == "+":
            out.extend(b" ")
        else:
            out.extend(ch.encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def parse_query_string(query_string: str) -> list[tuple[str, str]]:
    """Split a query string into decoded ``(name, value)`` pairs.

    Empty segments are skipped and at most ``MAX_QUERY_PARAMS`` pairs are kept.
    """
    params: list[tuple[str, str]] = []
    for segment in query_string.split("&"):
        if not segment:
            continue
        if len(params) >= MAX_QUERY_PARAMS:
            break
        name, sep, value = segment.partition("=")
        params.append((url_decode(name), url_decode(value) if sep else ""))
    return params


def parse_request_line(line: str, request: HttpRequest) -> None:
    """Fill method, URI, path, query and version of ``request`` from ``line``."""
    tokens = line.split()
    if len(tokens) < 3:
        raise HttpParseError(f"malformed request line: {line!r}")
    method, uri, version = tokens[:3]
    method = method[: MAX_METHOD_LEN - 1]
    uri = uri[: MAX_URI_LEN - 1]
    version = version[: MAX_VERSION_LEN - 1]

    request.method_str = method
    request.method = HttpMethod.from_string(method)
    request.uri = uri
    path, sep, query = uri.partition("?")
    request.path = path
    request.query_string = query if sep else ""
    if request.query_string:
        remaining = MAX_QUERY_PARAMS - len(request.query_params)
        request.query_params.extend(parse_query_string(request.query_string)[:remaining])
    request.version = version


def parse_header_line(line: str, request: HttpRequest) -> None:
    """Append the header in ``line`` to ``request``."""
    if len(request.headers) >= MAX_HEADERS:
        raise HttpParseError("too many headers")
    name, sep, value = line.partition(":")
    if not sep:
        raise HttpParseError(f"header line without colon: {line!r}")
    if len(name) >= MAX_HEADER_NAME_LEN:
        raise HttpParseError("header name too long")
    name = _trim(name)
    value = _trim(value[: MAX_HEADER_VALUE_LEN - 1])
    if name.lower() == "content-length":
        match = _LEADING_UNSIGNED.match(value)
        request.content_length = int(match.group(1)) if match else 0
    request.headers.append((name, value))


def parse_http_request(raw_request: str | bytes) -> HttpRequest:
    """Parse a complete raw request (headers, blank line, optional body)."""
    data = raw_request.encode("utf-8") if isinstance(raw_request, str) else bytes(raw_request)

    separator = b"\r\n\r\n"
    header_end = data.find(separator)
    if header_end < 0:
        separator = b"\n\n"
        header_end = data.find(separator)
        if header_end < 0:
            raise HttpParseError("no end of headers found")

    header_text = data[:header_end].decode("utf-8", errors="replace")
    lines = [line for line in _LINE_SPLIT.split(header_text) if line]
    if not lines:
        raise HttpParseError("empty request")

    request = HttpRequest()
    parse_request_line(lines[0], request)
    for line in lines[1:]:
        try:
            parse_header_line(line, request)
        except HttpParseError:
            continue

    rest = data[header_end + len(separator):]
    if request.content_length > 0:
        body = rest[: request.content_length]
        request.body = body.decode("utf-8", errors="replace")
        request.body_length = len(body)
    elif rest:
        request.body = rest.decode("utf-8", errors="replace")
        request.body_length = len(rest)
        request.content_length = len(rest)
    return request