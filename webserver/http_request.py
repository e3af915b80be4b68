"""
Responsibility: read a request off the connection and parse the request line
and headers into an HttpRequest with fields:
method, path, query, http_version, headers (dict), body (bytes).

Parsing never raises: malformed input degrades to empty fields, which the
router treats as not-found.
"""

import socket
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from webserver.config import MAX_HEADER_BYTES, RECV_BUFFER_SIZE
from webserver.errors import BadRequestError, PayloadTooLargeError


@dataclass
class HttpMessage:
    """
    Holds common fields for both HTTP requests and responses
    """
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def get_header(self, key: str) -> Optional[str]:
        # Keys are stored as received, so lookups ignore case
        lowered = key.lower()
        for name, value in self.headers.items():
            if name.lower() == lowered:
                return value
        return None


@dataclass
class HttpRequest(HttpMessage):
    """
    Holds fields specific to requests
    """
    method: str = ""
    path: str = ""
    query: Optional[str] = None
    http_version: str = ""


def _split_line(payload: bytes) -> Tuple[bytes, bytes]:
    # Accept both CRLF and bare LF line endings
    line, _, rest = payload.partition(b"\n")
    return line.rstrip(b"\r"), rest


def parse_header_line(line: str) -> Optional[Tuple[str, str]]:
    if ":" not in line:
        return None
    key, value = line.split(":", maxsplit=1)
    return key.strip(), value.strip()


def parse_request(payload: bytes) -> HttpRequest:
    # Parse request-line
    start_line, payload = _split_line(payload)
    parts = start_line.decode("iso-8859-1").split()

    method = parts[0] if len(parts) >= 1 else ""
    target = parts[1] if len(parts) >= 2 else ""
    version = parts[2] if len(parts) >= 3 else ""

    path, separator, query = target.partition("?")

    # Parse field-lines up to the first empty line
    headers: Dict[str, str] = {}
    while payload:
        line, payload = _split_line(payload)
        if line == b"":
            break

        parsed = parse_header_line(line.decode("iso-8859-1"))
        if parsed is not None:
            key, value = parsed
            headers[key] = value

    return HttpRequest(
        method=method,
        path=path,
        query=query if separator else None,
        http_version=version,
        headers=headers,
        body=payload,
    )


def header_end(data: Union[bytes, bytearray]) -> Optional[int]:
    """Offset where the body starts, or None if the header block is incomplete"""
    candidates = []
    crlf = data.find(b"\r\n\r\n")
    if crlf != -1:
        candidates.append(crlf + 4)
    lf = data.find(b"\n\n")
    if lf != -1:
        candidates.append(lf + 2)
    return min(candidates) if candidates else None


def read_request(client_socket: socket.socket, max_body_bytes: int) -> bytes:
    """
    Read one request from the socket

    Reads until the header block is complete, then reads exactly
    Content-Length body bytes if the header is present. A peer that closes
    early yields whatever arrived.
    """
    data = bytearray()

    end = header_end(data)
    while end is None:
        if len(data) > MAX_HEADER_BYTES:
            raise BadRequestError("Header block too large")

        received = client_socket.recv(RECV_BUFFER_SIZE)
        if received == b"":
            return bytes(data)

        data += received
        end = header_end(data)

    content_length = parse_request(bytes(data[:end])).get_header("Content-Length")
    if content_length is None or not content_length.isdigit():
        return bytes(data)

    length = int(content_length)
    if length > max_body_bytes:
        raise PayloadTooLargeError(f"Request body of {length} bytes exceeds {max_body_bytes}")

    remaining = length - (len(data) - end)
    while remaining > 0:
        received = client_socket.recv(min(RECV_BUFFER_SIZE, remaining))
        if received == b"":
            break

        data += received
        remaining -= len(received)

    return bytes(data[:end + length])
