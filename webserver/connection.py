import logging
import socket

from webserver.cgi_runner import execute_script
from webserver.config import ServerConfig
from webserver.errors import ServerError
from webserver.http_request import HttpRequest, parse_request, read_request
from webserver.http_response import HttpResponse, error_response, write_response
from webserver.router import (Forbidden, MethodNotAllowed, NotFound, ScriptInvocation,
                              StaticFile, route_request)
from webserver.static import serve_static

logger = logging.getLogger(__name__)


def handle_request(request: HttpRequest, config: ServerConfig) -> HttpResponse:
    route = route_request(request.method, request.path, config.root)

    if isinstance(route, Forbidden):
        return error_response(403)
    elif isinstance(route, MethodNotAllowed):
        return error_response(405)
    elif isinstance(route, ScriptInvocation):
        try:
            return execute_script(route.script_path, request, config)
        except ServerError as e:
            logger.warning("Script %s failed: %s", route.script_path, e)
            return error_response(e.status_code, e.detail)
    elif isinstance(route, StaticFile):
        return serve_static(route.file_path)
    elif isinstance(route, NotFound):
        return error_response(404)

    raise TypeError(f"Unhandled route {route!r}")


def handle_connection(client_socket: socket.socket, client_address, config: ServerConfig) -> None:
    """
    Serve exactly one request on the connection, then close it

    Nothing raised in here escapes: failures become an error response when
    one can still be sent, and are logged otherwise.
    """
    logger.debug("Connection from %s", client_address)

    try:
        client_socket.settimeout(config.socket_timeout)

        try:
            request_data = read_request(client_socket, config.max_body_bytes)
        except ServerError as e:
            logger.info("Rejected request from %s: %s", client_address, e)
            write_response(client_socket, error_response(e.status_code))
            return

        if not request_data:
            return

        request = parse_request(request_data)
        try:
            response = handle_request(request, config)
        except Exception:
            logger.exception("Error handling %s %s", request.method, request.path)
            response = error_response(500)

        logger.info('%s "%s %s" %d', client_address, request.method, request.path, response.status_code)

        # Send response back to client
        write_response(client_socket, response)

    except OSError as e:
        logger.warning("Connection from %s dropped: %s", client_address, e)
    except Exception:
        logger.exception("Unexpected error on connection from %s", client_address)
    finally:
        client_socket.close()
