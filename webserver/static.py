import logging

from webserver.http_response import HttpResponse, content_type_for, create_response, error_response

logger = logging.getLogger(__name__)


def serve_static(file_path: str) -> HttpResponse:
    # The router has already checked the file exists, but it may have
    # vanished or be unreadable by now
    try:
        with open(file_path, "rb") as f:
            content = f.read()
    except OSError as e:
        logger.error("Cannot read %s: %s", file_path, e)
        return error_response(500, "The requested file could not be read.")

    return create_response(200, content, content_type_for(file_path))
