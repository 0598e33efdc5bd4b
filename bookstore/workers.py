"""Worker threads that answer queued REST requests about books."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from bookstore.book import Book, BookStoreError, parse_book_json
from bookstore.http_request import HttpMethod, HttpRequest
from bookstore.http_response import HttpResponse, HttpStatus, ResponseTooLarge
from bookstore.request_queue import ClientRequest, QueueShutdown, RequestQueue

log = logging.getLogger(__name__)

DEFAULT_WORKERS = 10
DEFAULT_QUEUE_SIZE = 20

CUSTOM_HEADER = ("X-Custom-Header", "MyValue")
NOT_FOUND_JSON = '{"error": "Endpoint non trovato"}'
SERVER_ERROR_JSON = '{"error": "Errore interno al server...riprova e sarai più fortunato..."}'
METHOD_NOT_ALLOWED_JSON = '{"error": "Metodo non supportato"}'
ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE"


def _check_endpoint(request: HttpRequest, response: HttpResponse, path: str) -> bool:
    if request.path == path:
        return True
    log.warning("Unsupported endpoint: %s", request.path)
    response.set_status(HttpStatus.NOT_FOUND)
    response.set_json(NOT_FOUND_JSON)
    return False


def _book_from(request: HttpRequest) -> Book:
    try:
        return parse_book_json(request.body)
    except ValueError as exc:
        log.warning("Cannot parse book JSON: %s", exc)
        return Book()


def _server_error(response: HttpResponse, exc: Exception) -> None:
    log.error("Store operation failed: %s", exc)
    response.set_status(HttpStatus.INTERNAL_SERVER_ERROR)
    response.set_json(SERVER_ERROR_JSON)
    response.add_header(*CUSTOM_HEADER)


def _ok(response: HttpResponse, body: str | None) -> None:
    response.set_status(HttpStatus.OK)
    if body is not None:
        response.set_json(body)
    response.add_header(*CUSTOM_HEADER)


def crud_create(request: HttpRequest, response: HttpResponse, store: Any) -> None:
    """POST /add/book: store the book in the body and echo the body back."""
    if not _check_endpoint(request, response, "/add/book"):
        return
    book = _book_from(request)
    try:
        store.save(book)
    except BookStoreError as exc:
        _server_error(response, exc)
        return
    _ok(response, request.body)


def crud_read(request: HttpRequest, response: HttpResponse, store: Any) -> None:
    """GET /get/books: return the stored book whose id_book is in the body."""
    if not _check_endpoint(request, response, "/get/books"):
        return
    wanted = _book_from(request)
    try:
        loaded = store.load(wanted.id)
    except BookStoreError as exc:
        _server_error(response, exc)
        return
    if loaded is None:
        _server_error(response, LookupError(f"no book with id {wanted.id}"))
        return
    _ok(response, loaded.to_json())


def crud_update(request: HttpRequest, response: HttpResponse, store: Any) -> None:
    """PUT /update/book: change the price of the book named in the body."""
    if not _check_endpoint(request, response, "/update/book"):
        return
    book = _book_from(request)
    try:
        store.update_price(book.id, book.price)
    except BookStoreError as exc:
        _server_error(response, exc)
        return
    _ok(response, book.to_json())


def crud_delete(request: HttpRequest, response: HttpResponse, store: Any) -> None:
    """DELETE /delete/book: remove the book named in the body."""
    if not _check_endpoint(request, response, "/delete/book"):
        return
    book = _book_from(request)
    try:
        store.delete(book.id)
    except BookStoreError as exc:
        _server_error(response, exc)
        return
    _ok(response, book.to_json())


def process_rest_request(request: HttpRequest, store: Any) -> HttpResponse:
    """Route ``request`` by method and build the response."""
    response = HttpResponse()
    if request.method is HttpMethod.POST:
        crud_create(request, response, store)
    elif request.method is HttpMethod.GET:
        crud_read(request, response, store)
    elif request.method is HttpMethod.PUT:
        crud_update(request, response, store)
    elif request.method is HttpMethod.PATCH:
        pass
    elif request.method is HttpMethod.DELETE:
        crud_delete(request, response, store)
    else:
        log.warning("Unsupported HTTP method: %s", request.method_str)
        response.set_status(HttpStatus.METHOD_NOT_ALLOWED)
        response.set_json(METHOD_NOT_ALLOWED_JSON)
        response.add_header("Allow", ALLOWED_METHODS)
    return response


class WorkerPool:
    """Threads that take client requests from a queue and send back responses."""

    def __init__(
        self,
        store_factory: Callable[[], Any],
        num_threads: int = DEFAULT_WORKERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        if num_threads <= 0:
            raise ValueError("a worker pool needs at least one thread")
        self.store_factory = store_factory
        self.num_threads = num_threads
        self.queue = RequestQueue(queue_size)
        self.threads: list[threading.Thread] = []

    def start(self) -> None:
        """Start the worker threads."""
        if self.threads:
            raise RuntimeError("worker pool already started")
        for index in range(self.num_threads):
            thread = threading.Thread(target=self._work, name=f"worker-{index}", daemon=True)
            self.threads.append(thread)
            thread.start()

    def submit(self, item: ClientRequest) -> None:
        """Queue a client request; raises QueueShutdown after shutdown."""
        self.queue.put(item)

    def shutdown(self) -> None:
        """Stop accepting work, let the threads drain the queue and wait for them."""
        self.queue.shutdown()
        for thread in self.threads:
            thread.join()
        self.queue.clear()

    def _work(self) -> None:
        try:
            store = self.store_factory()
        except BookStoreError as exc:
            log.error("Worker cannot get a store: %s", exc)
            return
        while True:
            try:
                item = self.queue.get()
            except QueueShutdown:
                return
            self._answer(item, store)
            log.debug("%s", self.queue.describe())

    def _answer(self, item: ClientRequest, store: Any) -> None:
        try:
            payload = process_rest_request(item.request, store).to_bytes()
        except ResponseTooLarge as exc:
            log.error("Response not sent: %s", exc)
            return
        except Exception:
            log.exception("Request processing failed")
            return
        log.debug("Raw response:\n%s", payload.decode("utf-8", errors="replace"))
        try:
            item.client.sendall(payload)
        except OSError as exc:
            log.warning("Cannot send response: %s", exc)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()