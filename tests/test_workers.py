import threading

import pytest

from bookstore.book import Book, BookStoreError, parse_book_json
from bookstore.http_request import parse_http_request
from bookstore.http_response import HttpStatus
from bookstore.request_queue import ClientRequest, QueueShutdown
from bookstore.workers import (
    NOT_FOUND_JSON,
    SERVER_ERROR_JSON,
    WorkerPool,
    crud_create,
    crud_delete,
    crud_read,
    crud_update,
    process_rest_request,
)
from bookstore.http_response import HttpResponse

BODY = '{"id_book": 7, "title": "Il Nome della Rosa", "author": "Umberto Eco", "price": 15.99}'


class FakeStore:
    def __init__(self, fail=False):
        self.books = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise BookStoreError("down")

    def save(self, book):
        self._check()
        self.books[book.id] = book

    def load(self, book_id):
        self._check()
        return self.books.get(book_id)

    def update_price(self, book_id, price):
        self._check()
        if book_id in self.books:
            self.books[book_id].price = price

    def delete(self, book_id):
        self._check()
        self.books.pop(book_id, None)


class RecordingClient:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail
        self.done = threading.Event()

    def sendall(self, data):
        if self.fail:
            self.done.set()
            raise OSError("broken pipe")
        self.sent.append(data)
        self.done.set()


def make_request(method, path, body=""):
    return parse_http_request(f"{method} {path} HTTP/1.1\r\nHost: localhost\r\n\r\n{body}")


def test_create_saves_and_echoes_body():
    store = FakeStore()
    response = process_rest_request(make_request("POST", "/add/book", BODY), store)
    assert response.status_code == HttpStatus.OK
    assert response.body == BODY
    assert response.header("X-Custom-Header") == "MyValue"
    assert store.books[7].title == "Il Nome della Rosa"
    assert store.books[7].price == 15.99


def test_create_without_body_saves_empty_book():
    store = FakeStore()
    response = HttpResponse()
    crud_create(make_request("POST", "/add/book"), response, store)
    assert response.status_code == HttpStatus.OK
    assert response.body is None
    assert store.books[0] == Book()


def test_read_returns_stored_book():
    store = FakeStore()
    store.books[7] = Book(7, "Il Nome della Rosa", "Umberto Eco", 15.99)
    response = HttpResponse()
    crud_read(make_request("GET", "/get/books", '{"id_book": 7}'), response, store)
    assert response.status_code == HttpStatus.OK
    assert response.body == store.books[7].to_json()
    assert response.header("Content-Type") == "application/json; charset=utf-8"


def test_read_missing_book_is_server_error():
    response = process_rest_request(make_request("GET", "/get/books", '{"id_book": 3}'), FakeStore())
    assert response.status_code == HttpStatus.INTERNAL_SERVER_ERROR
    assert response.body == SERVER_ERROR_JSON


def test_update_changes_price():
    store = FakeStore()
    store.books[7] = Book(7, "Il Nome della Rosa", "Umberto Eco", 10.0)
    response = HttpResponse()
    crud_update(make_request("PUT", "/update/book", BODY), response, store)
    assert store.books[7].price == 15.99
    assert response.body == parse_book_json(BODY).to_json()


def test_delete_removes_book():
    store = FakeStore()
    store.books[7] = Book(7, "x", "y", 1.0)
    response = HttpResponse()
    crud_delete(make_request("DELETE", "/delete/book", BODY), response, store)
    assert 7 not in store.books
    assert response.body == parse_book_json(BODY).to_json()


def test_patch_is_accepted_without_body():
    response = process_rest_request(make_request("PATCH", "/update/book", BODY), FakeStore())
    assert response.status_code == HttpStatus.OK
    assert response.body is None


def test_unsupported_method():
    response = process_rest_request(make_request("HEAD", "/add/book"), FakeStore())
    assert response.status_code == HttpStatus.METHOD_NOT_ALLOWED
    assert response.header("Allow") == "GET, POST, PUT, PATCH, DELETE"
    assert response.body == '{"error": "Metodo non supportato"}'


@pytest.mark.parametrize(
    "method,path",
    [("POST", "/add/books"), ("GET", "/get/book"), ("PUT", "/update/books"), ("DELETE", "/delete")],
)
def test_wrong_endpoint_is_not_found(method, path):
    response = process_rest_request(make_request(method, path, BODY), FakeStore())
    assert response.status_code == HttpStatus.NOT_FOUND
    assert response.body == NOT_FOUND_JSON


@pytest.mark.parametrize(
    "method,path",
    [("POST", "/add/book"), ("PUT", "/update/book"), ("DELETE", "/delete/book"), ("GET", "/get/books")],
)
def test_store_failure_is_server_error(method, path):
    response = process_rest_request(make_request(method, path, BODY), FakeStore(fail=True))
    assert response.status_code == HttpStatus.INTERNAL_SERVER_ERROR
    assert response.header("X-Custom-Header") == "MyValue"


def test_pool_rejects_no_threads():
    with pytest.raises(ValueError):
        WorkerPool(FakeStore, num_threads=0)


def test_pool_answers_client():
    store = FakeStore()
    pool = WorkerPool(lambda: store, num_threads=2)
    pool.start()
    client = RecordingClient()
    pool.submit(ClientRequest(client=client, request=make_request("POST", "/add/book", BODY)))
    assert client.done.wait(5)
    pool.shutdown()
    assert client.sent[0].startswith(b"HTTP/1.1 200 OK\r\n")
    assert client.sent[0].endswith(BODY.encode("utf-8"))
    assert not any(thread.is_alive() for thread in pool.threads)


def test_pool_survives_send_failure():
    pool = WorkerPool(FakeStore, num_threads=1)
    pool.start()
    broken = RecordingClient(fail=True)
    good = RecordingClient()
    pool.submit(ClientRequest(client=broken, request=make_request("POST", "/add/book", BODY)))
    pool.submit(ClientRequest(client=good, request=make_request("POST", "/add/book", BODY)))
    assert good.done.wait(5)
    pool.shutdown()
    assert broken.sent == []
    assert len(good.sent) == 1


def test_submit_after_shutdown_raises():
    pool = WorkerPool(FakeStore, num_threads=1)
    pool.start()
    pool.shutdown()
    with pytest.raises(QueueShutdown):
        pool.submit(ClientRequest(client=RecordingClient(), request=make_request("GET", "/get/books")))


def test_start_twice_raises():
    pool = WorkerPool(FakeStore, num_threads=1)
    pool.start()
    try:
        with pytest.raises(RuntimeError):
            pool.start()
    finally:
        pool.shutdown()