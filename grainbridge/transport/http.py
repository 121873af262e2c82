"""
Minimal HTTP/1.1 request parsing and response encoding.

Requests are parsed incrementally from a per-connection byte buffer:
``parse_request`` returns ``None`` until the header block and the full
``Content-Length`` body have arrived.  Every response closes the
connection after one reply.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from urllib.parse import unquote_plus

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


class MalformedRequestError(Exception):
    """The buffered bytes can never form a valid request."""


@dataclass
class HTTPRequest:
    """A parsed request.  Header keys are lower-cased."""

    method: str
    raw_target: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


def parse_query(query_string: str) -> dict[str, str]:
    """Split ``a=1&b=2`` into a dict; percent-decoded, last duplicate wins."""
    items: dict[str, str] = {}
    for pair in query_string.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        items[unquote_plus(key)] = unquote_plus(value)
    return items


def parse_request(buffer: bytes) -> HTTPRequest | None:
    """Parse one request from *buffer*, or return ``None`` if incomplete.

    Raises:
        MalformedRequestError: The header block is present but unusable.
    """
    header_end = buffer.find(HEADER_TERMINATOR)
    if header_end < 0:
        return None

    try:
        head = buffer[:header_end].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRequestError("Header block is not valid UTF-8") from exc

    lines = head.split("\r\n")
    parts = lines[0].split(" ")
    if len(parts) < 2 or not parts[0]:
        raise MalformedRequestError(f"Bad request line: {lines[0]!r}")

    headers: dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip().lower()] = value.strip()

    try:
        content_length = int(headers.get("content-length", "0") or "0")
    except ValueError as exc:
        raise MalformedRequestError("Bad Content-Length") from exc
    if content_length < 0:
        raise MalformedRequestError("Negative Content-Length")

    body_start = header_end + len(HEADER_TERMINATOR)
    if len(buffer) < body_start + content_length:
        return None

    raw_target = parts[1]
    path, _, query_string = raw_target.partition("?")
    return HTTPRequest(
        method=parts[0].upper(),
        raw_target=raw_target,
        path=path,
        query=parse_query(query_string),
        headers=headers,
        body=buffer[body_start:body_start + content_length],
    )


@dataclass
class HTTPResponse:
    """A response ready to be written; ``encode`` adds framing headers."""

    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def json(cls, status_code: int, payload: object) -> HTTPResponse:
        return cls(
            status_code=int(status_code),
            body=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def empty(cls, status_code: int) -> HTTPResponse:
        return cls(status_code=int(status_code))

    def payload(self) -> object:
        """Decode the JSON body (``None`` when empty)."""
        if not self.body:
            return None
        return json.loads(self.body)

    def encode(self) -> bytes:
        try:
            reason = HTTPStatus(self.status_code).phrase
        except ValueError:
            reason = "Unknown"
        lines = [f"HTTP/1.1 {self.status_code} {reason}"]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        lines.append(f"Content-Length: {len(self.body)}")
        lines.append("Connection: close")
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("utf-8") + self.body
