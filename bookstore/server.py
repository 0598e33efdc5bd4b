"""Non-blocking HTTP front end that hands parsed requests to a worker pool."""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
import sys

from bookstore.book import REDIS_HOST, REDIS_PORT, BookStore, BookStoreError, RedisPool
from bookstore.http_request import HttpParseError, parse_http_request
from bookstore.request_queue import ClientRequest, QueueShutdown
from bookstore.workers import DEFAULT_WORKERS, WorkerPool

log = logging.getLogger(__name__)

MAX_CLIENTS = 10000
BUFFER_SIZE = 2048
DEFAULT_PORT = 8080
REDIS_POOL_SIZE = 10
POLL_INTERVAL = 0.5


class Server:
    """A listening socket multiplexed with its clients by a selector."""

    def __init__(self, worker_pool: WorkerPool, port: int = DEFAULT_PORT, host: str = "") -> None:
        self.worker_pool = worker_pool
        self._selector = selectors.DefaultSelector()
        self._clients: set[socket.socket] = set()
        self._closed = False
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(MAX_CLIENTS)
            sock.setblocking(False)
            self._selector.register(sock, selectors.EVENT_READ)
        except OSError:
            sock.close()
            self._selector.close()
            raise
        self._sock = sock
        log.info("Server listening on port %d", self.address[1])

    @property
    def address(self) -> tuple[str, int]:
        return self._sock.getsockname()

    def handle_new_connection(self) -> socket.socket:
        """Accept one pending client and start watching it."""
        client, _ = self._sock.accept()
        try:
            client.setblocking(False)
            self._selector.register(client, selectors.EVENT_READ)
        except (OSError, ValueError):
            client.close()
            raise
        self._clients.add(client)
        log.info("Client connected")
        return client

    def handle_client_data(self, client: socket.socket) -> bool:
        """Read one request from ``client`` and queue it for the workers.

        Returns False once the client has disconnected (it is then closed),
        True otherwise. Raises HttpParseError for an unreadable request.
        """
        try:
            data = client.recv(BUFFER_SIZE - 1)
        except BlockingIOError:
            return True
        except OSError:
            self._drop(client)
            raise
        if not data:
            log.info("Client disconnected")
            self._drop(client)
            return False
        request = parse_http_request(data)
        self.worker_pool.submit(ClientRequest(client=client, request=request))
        return True

    def process_events(self, timeout: float | None = None) -> int:
        """Wait up to ``timeout`` seconds and handle every ready socket; return how many."""
        events = self._selector.select(timeout)
        for key, _ in events:
            try:
                if key.fileobj is self._sock:
                    self.handle_new_connection()
                else:
                    self.handle_client_data(key.fileobj)
            except (OSError, HttpParseError, QueueShutdown) as exc:
                log.warning("Error while handling an event: %s", exc)
        return len(events)

    def serve_forever(self) -> None:
        """Handle events until the server is closed."""
        while not self._closed:
            try:
                self.process_events(POLL_INTERVAL)
            except (OSError, ValueError):
                if self._closed:
                    break
                raise

    def close(self) -> None:
        """Close every client, the selector and the listening socket."""
        if self._closed:
            return
        self._closed = True
        for client in self._clients:
            client.close()
        self._clients.clear()
        self._selector.close()
        self._sock.close()

    def _drop(self, client: socket.socket) -> None:
        try:
            self._selector.unregister(client)
        except (KeyError, ValueError):
            pass
        self._clients.discard(client)
        client.close()

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def main(argv: list[str] | None = None) -> int:
    """Run the book server until interrupted."""
    parser = argparse.ArgumentParser(prog="bookstore", description="REST server for a book catalogue.")
    parser.add_argument("--host", default="", help="address to listen on (default: all)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--redis-host", default=REDIS_HOST)
    parser.add_argument("--redis-port", type=int, default=REDIS_PORT)
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        redis_pool = RedisPool(REDIS_POOL_SIZE, args.redis_host, args.redis_port)
    except BookStoreError as exc:
        print(exc, file=sys.stderr)
        return 1

    with redis_pool:
        workers = WorkerPool(lambda: BookStore(redis_pool.get_connection()), num_threads=args.workers)
        workers.start()
        try:
            with Server(workers, args.port, args.host) as server:
                print("Server pronto per accettare connessioni")
                server.serve_forever()
        except KeyboardInterrupt:
            pass
        except OSError as exc:
            print(f"cannot start server: {exc}", file=sys.stderr)
            return 1
        finally:
            workers.shutdown()
    return 0