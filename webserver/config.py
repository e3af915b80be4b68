import os
import re
from dataclasses import dataclass
from typing import Final


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


HTTP_VERSION: Final[str] = "HTTP/1.1"
SERVER_SOFTWARE: Final[str] = "RootServe/1.0"
HOST: Final[str] = "0.0.0.0"
RECV_BUFFER_SIZE: Final[int] = 4096
LISTEN_BACKLOG: Final[int] = 128
MAX_HEADER_BYTES: Final[int] = 64 * 1024

TOKEN_PATTERN: re.Pattern = re.compile(r"^[!#$%&'*+\-.\^_`|~0-9A-Za-z]+$")

SCRIPTS_PREFIX: Final[str] = "/scripts/"
FORBIDDEN_PREFIXES: Final[tuple] = ("/..", "/forbidden")
# Same rules applied to the canonical path relative to root
SCRIPTS_DIR: Final[str] = "scripts"
FORBIDDEN_NAME_PREFIX: Final[str] = "forbidden"
ALLOWED_METHODS: Final[tuple] = ("GET", "POST")

MAX_CONNECTIONS: Final[int] = _env_int("HTTP_SERVER_MAX_CONNECTIONS", 64)
MAX_BODY_BYTES: Final[int] = _env_int("HTTP_SERVER_MAX_BODY_BYTES", 10 * 1024 * 1024)
SOCKET_TIMEOUT: Final[float] = _env_float("HTTP_SERVER_SOCKET_TIMEOUT", 30.0)
SCRIPT_TIMEOUT: Final[float] = _env_float("HTTP_SERVER_SCRIPT_TIMEOUT", 10.0)


@dataclass(frozen=True)
class ServerConfig:
    """
    Read-only settings handed to every connection thread

    root is stored as an absolute, symlink-resolved path so containment
    checks can compare canonical paths directly.
    """
    root: str
    script_timeout: float = SCRIPT_TIMEOUT
    socket_timeout: float = SOCKET_TIMEOUT
    max_body_bytes: int = MAX_BODY_BYTES

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", os.path.realpath(self.root))
