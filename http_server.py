import argparse
import logging
import os
import socket
import sys
import threading
from typing import List, Optional

from webserver.config import HOST, LISTEN_BACKLOG, MAX_CONNECTIONS, SCRIPT_TIMEOUT, ServerConfig
from webserver.connection import handle_connection

logger = logging.getLogger("http_server")

# How often the accept loop wakes up to check for shutdown
ACCEPT_POLL_SECONDS = 0.5


def create_listener(host: str, port: int) -> socket.socket:
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server_socket.bind((host, port))
    server_socket.listen(LISTEN_BACKLOG)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket


def _serve_and_release(slots: threading.BoundedSemaphore, client_socket: socket.socket,
                       client_address, config: ServerConfig) -> None:
    try:
        handle_connection(client_socket, client_address, config)
    finally:
        slots.release()


def serve(server_socket: socket.socket, config: ServerConfig, stop_event: threading.Event,
          max_connections: int = MAX_CONNECTIONS) -> None:
    """
    Accept connections until stop_event is set

    Each connection gets its own thread. At most max_connections are in
    flight; beyond that the loop stops accepting and connections wait in
    the listen backlog.
    """
    slots = threading.BoundedSemaphore(max_connections)

    while not stop_event.is_set():
        if not slots.acquire(timeout=ACCEPT_POLL_SECONDS):
            continue

        try:
            client_socket, client_address = server_socket.accept()
        except socket.timeout:
            slots.release()
            continue
        except OSError as e:
            slots.release()
            if stop_event.is_set():
                break
            logger.error("Accept failed: %s", e)
            continue

        # NOTE: threads are not joined, each one ends after a single request
        incoming_thread = threading.Thread(
            target=_serve_and_release,
            args=(slots, client_socket, client_address, config),
            daemon=True,
        )
        incoming_thread.start()


def run_server(host: str, port: int, config: ServerConfig,
               max_connections: int = MAX_CONNECTIONS,
               stop_event: Optional[threading.Event] = None) -> None:
    stop_event = stop_event or threading.Event()
    server_socket = create_listener(host, port)

    logger.info("Root folder: %s", config.root)
    logger.info("Server listening on http://%s:%d", host, port)

    try:
        serve(server_socket, config, stop_event, max_connections)
    except KeyboardInterrupt:
        logger.info("Shutting down server...")
    finally:
        stop_event.set()
        server_socket.close()


def port_number(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: {value!r}")

    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port must be between 1 and 65535, got {port}")
    return port


def root_folder(value: str) -> str:
    if not os.path.isdir(value):
        raise argparse.ArgumentTypeError(f"root folder does not exist or is not a directory: {value}")
    if not os.access(value, os.R_OK | os.X_OK):
        raise argparse.ArgumentTypeError(f"root folder is not readable: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve static files from a root folder and run executables under scripts/"
    )
    parser.add_argument("port", type=port_number, help="TCP port to listen on (1-65535)")
    parser.add_argument("root", type=root_folder, help="Root folder to serve")
    parser.add_argument("--host", default=HOST, help=f"Address to bind to (default: {HOST})")
    parser.add_argument("--max-connections", type=int, default=MAX_CONNECTIONS,
                        help=f"Connections handled concurrently (default: {MAX_CONNECTIONS})")
    parser.add_argument("--script-timeout", type=float, default=SCRIPT_TIMEOUT,
                        help=f"Seconds a script may run before it is killed (default: {SCRIPT_TIMEOUT})")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity (default: INFO)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ServerConfig(root=args.root, script_timeout=args.script_timeout)

    try:
        run_server(args.host, args.port, config, max_connections=args.max_connections)
    except OSError as e:
        logger.error("Cannot start server on %s:%d: %s", args.host, args.port, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
