import socket
import time

import pytest

from bookstore.book import BookStoreError
from bookstore.http_request import HttpParseError
from bookstore.server import Server, main
from bookstore.workers import WorkerPool

BODY = '{"id_book": 7, "title": "Il Nome della Rosa", "author": "Umberto Eco", "price": 15.99}'
REQUEST = f"POST /add/book HTTP/1.1\r\nHost: localhost\r\n\r\n{BODY}".encode("utf-8")


class FakeStore:
    def __init__(self):
        self.books = {}

    def save(self, book):
        self.books[book.id] = book

    def load(self, book_id):
        return self.books.get(book_id)

    def update_price(self, book_id, price):
        if book_id not in self.books:
            raise BookStoreError("missing")
        self.books[book_id].price = price

    def delete(self, book_id):
        self.books.pop(book_id, None)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def server(store):
    pool = WorkerPool(lambda: store, num_threads=2)
    pool.start()
    srv = Server(pool, port=0, host="127.0.0.1")
    yield srv
    srv.close()
    pool.shutdown()


@pytest.fixture
def idle_server():
    pool = WorkerPool(FakeStore, num_threads=1)
    srv = Server(pool, port=0, host="127.0.0.1")
    yield srv
    srv.close()


def _receive_until(conn, suffix, deadline=5.0):
    conn.settimeout(deadline)
    data = b""
    end = time.monotonic() + deadline
    while not data.endswith(suffix) and time.monotonic() < end:
        chunk = conn.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def test_full_round_trip(server, store):
    with socket.create_connection(server.address) as conn:
        assert server.process_events(timeout=2) == 1
        conn.sendall(REQUEST)
        assert server.process_events(timeout=2) == 1
        payload = _receive_until(conn, BODY.encode("utf-8"))
    assert payload.startswith(b"HTTP/1.1 200 OK\r\n")
    assert payload.endswith(BODY.encode("utf-8"))
    assert store.books[7].author == "Umberto Eco"


def test_handle_new_connection_returns_peer(idle_server):
    with socket.create_connection(idle_server.address) as conn:
        client = idle_server.handle_new_connection()
        assert client.getpeername() == conn.getsockname()


def test_client_data_is_queued(idle_server):
    a, b = socket.socketpair()
    with a, b:
        b.sendall(REQUEST)
        assert idle_server.handle_client_data(a) is True
        queued = idle_server.worker_pool.queue.peek()
        assert queued.client is a
        assert queued.request.path == "/add/book"
        assert queued.request.body == BODY


def test_disconnected_client_is_closed(idle_server):
    a, b = socket.socketpair()
    b.close()
    assert idle_server.handle_client_data(a) is False
    assert a.fileno() == -1


def test_garbage_raises_parse_error(idle_server):
    a, b = socket.socketpair()
    with a, b:
        b.sendall(b"garbage")
        with pytest.raises(HttpParseError):
            idle_server.handle_client_data(a)
        assert idle_server.worker_pool.queue.is_empty()


def test_no_events_when_idle(idle_server):
    assert idle_server.process_events(timeout=0) == 0


def test_close_is_idempotent(idle_server):
    address = idle_server.address
    idle_server.close()
    idle_server.close()
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=1)


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["--port", "abc"])
    assert info.value.code == 2


def test_main_fails_without_redis():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    free_port = probe.getsockname()[1]
    probe.close()
    assert main(["--redis-host", "127.0.0.1", "--redis-port", str(free_port), "--port", "0"]) == 1