import os
import socket
from typing import Dict, Tuple

import pytest

from webserver.config import ServerConfig
from webserver.connection import handle_connection

INDEX_HTML = b"<html><body>Hi</body></html>"


def make_script(root, name: str, source: str, mode: int = 0o755) -> str:
    scripts = os.path.join(str(root), "scripts")
    os.makedirs(scripts, exist_ok=True)
    path = os.path.join(scripts, name)
    with open(path, "w") as f:
        f.write(source)
    os.chmod(path, mode)
    return path


def split_response(raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    status_code = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        key, value = line.split(": ", 1)
        headers[key] = value
    return status_code, headers, body


def exchange(raw_request: bytes, config: ServerConfig) -> bytes:
    """Run one request through handle_connection over a socket pair"""
    server_side, client_side = socket.socketpair()
    try:
        client_side.sendall(raw_request)
        client_side.shutdown(socket.SHUT_WR)
        handle_connection(server_side, "test-client", config)

        response = b""
        while True:
            received = client_side.recv(4096)
            if received == b"":
                break
            response += received
        return response
    finally:
        client_side.close()


@pytest.fixture
def doc_root(tmp_path):
    (tmp_path / "index.html").write_bytes(INDEX_HTML)
    (tmp_path / "forbidden.html").write_bytes(b"<html><body>secret</body></html>")
    (tmp_path / "notes.txt").write_bytes(b"plain notes\n")
    (tmp_path / "scripts").mkdir()
    return tmp_path


@pytest.fixture
def config(doc_root):
    return ServerConfig(root=str(doc_root), script_timeout=5.0, socket_timeout=5.0)
