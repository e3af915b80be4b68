"""
Runs executables under scripts/ as CGI-style child processes and turns
their output into an HttpResponse.

Request metadata reaches the script through environment variables
(Method, Path, Query_<name>, plus the usual CGI names); a POST body is
written to its standard input. Standard output is either a header block,
an empty line and a body, or just a body.
"""

import logging
import os
import re
import signal
import subprocess
from dataclasses import dataclass
from typing import Dict, Final, List, Optional, Tuple

from webserver.config import SERVER_SOFTWARE, TOKEN_PATTERN, ServerConfig
from webserver.errors import ScriptExecutionError, ScriptTimeoutError
from webserver.http_request import HttpRequest, parse_header_line
from webserver.http_response import HttpResponse, create_response, error_response

logger = logging.getLogger(__name__)

STATUS_PATTERN: re.Pattern = re.compile(r"^(\d{3})(?:\s+(.*))?$")
DEFAULT_SCRIPT_CONTENT_TYPE: Final[str] = "text/plain"
# How long to wait for a killed process group to release its pipes
KILL_GRACE_SECONDS: Final[float] = 2.0


@dataclass
class ScriptResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def parse_query(query: Optional[str]) -> List[Tuple[str, str]]:
    if not query:
        return []

    params = []
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        # Environment names cannot be empty or hold NUL
        if not key or "\x00" in key or "\x00" in value:
            continue
        params.append((key, value))
    return params


def build_environment(request: HttpRequest) -> Dict[str, str]:
    env = os.environ.copy()

    env["Method"] = request.method
    env["Path"] = request.path
    for key, value in parse_query(request.query):
        env[f"Query_{key}"] = value

    env["REQUEST_METHOD"] = request.method
    env["PATH_INFO"] = request.path
    env["QUERY_STRING"] = request.query or ""
    env["CONTENT_LENGTH"] = str(len(request.body))
    env["SERVER_SOFTWARE"] = SERVER_SOFTWARE
    env["GATEWAY_INTERFACE"] = "CGI/1.1"

    content_type = request.get_header("Content-Type")
    if content_type is not None:
        env["CONTENT_TYPE"] = content_type

    return env


def _kill_process_group(process: subprocess.Popen) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass

    try:
        process.communicate(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        # A descendant left the process group and still holds the pipes
        logger.warning("Script pid %d did not release its output after being killed", process.pid)
        process.kill()
        process.wait()


def run_script(script_path: str, request: HttpRequest, config: ServerConfig) -> ScriptResult:
    is_post = request.method == "POST"

    try:
        # Own session so a timeout can take down everything the script started
        process = subprocess.Popen(
            [script_path],
            stdin=subprocess.PIPE if is_post else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=build_environment(request),
            cwd=config.root,
            start_new_session=True,
        )
    except OSError as e:
        raise ScriptExecutionError(f"Cannot execute {script_path}: {e}",
                                   detail="The script could not be started.") from e

    try:
        stdout, stderr = process.communicate(
            input=request.body if is_post else None,
            timeout=config.script_timeout,
        )
    except subprocess.TimeoutExpired as e:
        _kill_process_group(process)
        raise ScriptTimeoutError(
            f"{script_path} exceeded {config.script_timeout}s",
            detail="The script did not finish in time.",
        ) from e
    except OSError as e:
        _kill_process_group(process)
        raise ScriptExecutionError(f"I/O failure talking to {script_path}: {e}") from e

    return ScriptResult(returncode=process.returncode, stdout=stdout, stderr=stderr)


def _split_header_block(lines: List[bytes]) -> Tuple[Dict[str, str], List[bytes]]:
    # No empty line means the script never wrote a header block
    if b"" not in lines:
        return {}, lines

    blank = lines.index(b"")
    headers: Dict[str, str] = {}
    for line in lines[:blank]:
        parsed = parse_header_line(line.decode("utf-8", errors="replace"))
        if parsed is None or TOKEN_PATTERN.match(parsed[0]) is None:
            return {}, lines
        headers[parsed[0]] = parsed[1]

    return headers, lines[blank + 1:]


def _pop_header(headers: Dict[str, str], key: str) -> Optional[str]:
    for name in list(headers):
        if name.lower() == key.lower():
            return headers.pop(name)
    return None


def translate_output(stdout: bytes) -> HttpResponse:
    headers, body_lines = _split_header_block(stdout.splitlines())
    body = b"\n".join(body_lines)

    status_code, reason = 200, None
    status = _pop_header(headers, "Status")
    if status is not None:
        match = STATUS_PATTERN.match(status)
        if match is not None:
            status_code, reason = int(match.group(1)), match.group(2)

    content_type = _pop_header(headers, "Content-Type") or DEFAULT_SCRIPT_CONTENT_TYPE
    content_length = _pop_header(headers, "Content-Length")
    if content_length is not None and content_length.isdigit():
        headers["Content-Length"] = content_length

    return create_response(status_code, body, content_type, extra_headers=headers, reason=reason)


def translate_result(result: ScriptResult) -> HttpResponse:
    if result.succeeded:
        return translate_output(result.stdout)

    stderr = result.stderr.decode("utf-8", errors="replace").strip()
    logger.warning("Script exited with status %d: %s", result.returncode, stderr)
    return error_response(500, stderr or f"Script exited with status {result.returncode}.")


def execute_script(script_path: str, request: HttpRequest, config: ServerConfig) -> HttpResponse:
    return translate_result(run_script(script_path, request, config))
