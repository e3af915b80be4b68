class ServerError(Exception):
    """
    Base for failures that map onto an HTTP error status

    detail is optional diagnostic text that may be shown in the error page.
    """
    status_code: int = 500
    reason: str = "Internal Server Error"

    def __init__(self, message: str = "", detail: str = "") -> None:
        super().__init__(message or self.reason)
        self.detail = detail


class BadRequestError(ServerError):
    status_code = 400
    reason = "Bad Request"


class PayloadTooLargeError(ServerError):
    status_code = 413
    reason = "Payload Too Large"


class ScriptExecutionError(ServerError):
    """Spawn failure, or an I/O failure while piping to the child"""


class ScriptTimeoutError(ServerError):
    status_code = 504
    reason = "Gateway Timeout"
