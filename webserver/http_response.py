"""
Responsibility: build status-line, headers and body bytes for a given status
code and payload, and write them to the connection.

Helpers: create_response(...), error_response(status_code, detail),
content_type_for(path), write_response(socket, response).
"""

import html
import os
import socket
from dataclasses import dataclass
from http import HTTPStatus
from typing import Dict, Final, Optional

from webserver.config import ALLOWED_METHODS, HTTP_VERSION
from webserver.http_request import HttpMessage

REASON_PHRASES: Final[Dict[int, str]] = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    500: "Internal Server Error",
    504: "Gateway Timeout",
}

CONTENT_TYPES: Final[Dict[str, str]] = {
    ".txt": "text/plain; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".zip": "application/zip",
}
DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
HTML_CONTENT_TYPE: Final[str] = CONTENT_TYPES[".html"]

ERROR_BODIES: Final[Dict[int, str]] = {
    403: "<html><body><h1>403 Forbidden</h1><p>Access denied.</p></body></html>",
    404: "<html><body><h1>404 Not Found</h1><p>The requested resource was not found.</p></body></html>",
    405: "<html><body><h1>405 Method Not Allowed</h1></body></html>",
}

# Emitted first, in this order, ahead of any other header
LEADING_FIELDS: Final[tuple] = ("content-type", "content-length", "connection")


@dataclass
class HttpResponse(HttpMessage):
    """
    Holds fields specific to responses
    """
    status_code: int = 200
    reason: str = "OK"

    def serialize(self) -> bytes:
        content_type = self.get_header("Content-Type") or DEFAULT_CONTENT_TYPE
        content_length = self.get_header("Content-Length") or str(len(self.body))

        field_lines = [f"Content-Type: {content_type}", f"Content-Length: {content_length}"]
        field_lines += [
            f"{key}: {value}" for key, value in self.headers.items()
            if key.lower() not in LEADING_FIELDS
        ]
        # Persistent connections are not supported
        field_lines.append("Connection: close")

        start_line = f"{HTTP_VERSION} {self.status_code} {self.reason}"
        head = start_line + "\r\n" + "".join(f"{line}\r\n" for line in field_lines) + "\r\n"
        return head.encode("utf-8") + self.body


def reason_phrase(status_code: int) -> str:
    if status_code in REASON_PHRASES:
        return REASON_PHRASES[status_code]
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


def content_type_for(path: str) -> str:
    extension = os.path.splitext(path)[1].lower()
    return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


def create_response(status_code: int, body: bytes = b"", content_type: str = HTML_CONTENT_TYPE,
                    extra_headers: Optional[Dict[str, str]] = None,
                    reason: Optional[str] = None) -> HttpResponse:
    headers = {"Content-Type": content_type, "Content-Length": str(len(body))}
    if extra_headers:
        headers.update(extra_headers)

    return HttpResponse(
        status_code=status_code,
        reason=reason or reason_phrase(status_code),
        headers=headers,
        body=body,
    )


def error_response(status_code: int, detail: str = "") -> HttpResponse:
    reason = reason_phrase(status_code)

    body = ERROR_BODIES.get(status_code)
    if body is None:
        paragraph = f"<p>{html.escape(detail)}</p>" if detail else ""
        body = f"<html><body><h1>{status_code} {reason}</h1>{paragraph}</body></html>"

    extra_headers = None
    if status_code == 405:
        extra_headers = {"Allow": ", ".join(ALLOWED_METHODS)}

    return create_response(status_code, body.encode("utf-8"), extra_headers=extra_headers)


def write_response(client_socket: socket.socket, response: HttpResponse) -> None:
    client_socket.sendall(response.serialize())
