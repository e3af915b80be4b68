import os
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import unquote

from webserver.config import (ALLOWED_METHODS, FORBIDDEN_NAME_PREFIX, FORBIDDEN_PREFIXES,
                              SCRIPTS_DIR, SCRIPTS_PREFIX)


@dataclass(frozen=True)
class Forbidden:
    pass


@dataclass(frozen=True)
class MethodNotAllowed:
    pass


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class ScriptInvocation:
    script_path: str


@dataclass(frozen=True)
class StaticFile:
    file_path: str


Route = Union[Forbidden, MethodNotAllowed, NotFound, ScriptInvocation, StaticFile]


def resolve_path(path: str, root: str) -> Optional[str]:
    """
    Map a request path onto the filesystem under root

    Returns the canonical path, or None if it resolves outside root
    (through "..", an absolute component, or a symlink). An empty string
    means the path cannot name a file at all.
    """
    relative_path = unquote(path).lstrip("/")
    if "\x00" in relative_path:
        return ""

    file_path = os.path.realpath(os.path.join(root, relative_path))

    # Ensure the resolved path is still within root
    if os.path.commonpath([file_path, root]) != root:
        return None
    return file_path


def is_executable_file(file_path: str) -> bool:
    return os.path.isfile(file_path) and os.access(file_path, os.X_OK)


def route_request(method: str, path: str, root: str) -> Route:
    # Raw prefix check happens before anything touches the filesystem
    if path.startswith(FORBIDDEN_PREFIXES):
        return Forbidden()

    file_path = resolve_path(path, root) if path.startswith("/") else ""
    if file_path is None:
        return Forbidden()

    # "/./forbidden.html", "//forbidden.html" and "/%66orbidden.html" all
    # name the same file, so the rules are applied again to the canonical form
    relative_path = os.path.relpath(file_path, root) if file_path else ""
    if relative_path.startswith(FORBIDDEN_NAME_PREFIX):
        return Forbidden()

    if method not in ALLOWED_METHODS:
        return MethodNotAllowed()

    # Empty or ill-formed request lines
    if not file_path:
        return NotFound()

    # Nothing under scripts/ is ever served as a static file
    if path.startswith(SCRIPTS_PREFIX) or relative_path.split(os.sep)[0] == SCRIPTS_DIR:
        if is_executable_file(file_path):
            return ScriptInvocation(script_path=file_path)
        return NotFound()

    if os.path.isfile(file_path):
        return StaticFile(file_path=file_path)
    return NotFound()
