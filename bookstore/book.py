"""Book records and their storage as Redis hashes."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable

import redis

REDIS_HOST = "127.0.0.1"
REDIS_PORT = 6379
MAX_TEXT_LEN = 255

_C_WHITESPACE = " \t\n\v\f\r"
_LEADING_FLOAT = re.compile(r"[ \t\n\v\f\r]*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_INT = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")

log = logging.getLogger(__name__)


class BookStoreError(RuntimeError):
    """Raised when Redis cannot be reached or a command fails."""


@dataclass
class Book:
    """A book as stored in the catalogue."""

    id: int = 0
    title: str = ""
    author: str = ""
    price: float = 0.0

    def __post_init__(self) -> None:
        self.title = self.title[:MAX_TEXT_LEN]
        self.author = self.author[:MAX_TEXT_LEN]

    def describe(self) -> str:
        """Human-readable listing of the book."""
        return (
            f"ID: {self.id}\n"
            f"Titolo: {self.title}\n"
            f"Autore: {self.author}\n"
            f"Prezzo: {self.price:.2f}€\n"
            "---\n"
        )

    def to_json(self) -> str:
        """The book as the JSON document the REST endpoints return."""
        return (
            "{\n"
            f'    "id_book": {self.id},\n'
            f'    "title": "{self.title}",\n'
            f'    "author": "{self.author}",\n'
            f'    "price": {self.price:.2f}\n'
            "}"
        )


def _atof(text: str) -> float:
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _text(value: Any) -> str:
    return value.decode("utf-8", errors="replace") if isinstance(value, (bytes, bytearray)) else str(value)


def _key(book_id: int) -> str:
    return f"book:{book_id}"


def connect_redis(host: str = REDIS_HOST, port: int = REDIS_PORT) -> redis.Redis:
    """Open and check a connection to Redis at ``host``:``port``."""
    client = redis.Redis(host=host, port=port, socket_connect_timeout=5)
    try:
        client.ping()
    except redis.RedisError as exc:
        client.close()
        raise BookStoreError(f"cannot connect to Redis at {host}:{port}: {exc}") from exc
    return client


class BookStore:
    """Book operations on top of a Redis client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def save(self, book: Book) -> None:
        """Store every field of ``book`` in its hash."""
        key = _key(book.id)
        try:
            self.client.hset(
                key,
                mapping={
                    "id": str(book.id),
                    "title": book.title,
                    "author": book.author,
                    "price": f"{book.price:.2f}",
                },
            )
        except redis.RedisError as exc:
            raise BookStoreError(f"HSET failed for {key}: {exc}") from exc
        log.info("Book saved: %s", key)

    def load(self, book_id: int) -> Book | None:
        """The stored book with ``book_id``, or None if there is none."""
        key = _key(book_id)
        try:
            fields = self.client.hgetall(key)
        except redis.RedisError as exc:
            raise BookStoreError(f"HGETALL failed for {key}: {exc}") from exc
        if not fields:
            return None
        book = Book()
        for raw_name, raw_value in fields.items():
            name, value = _text(raw_name), _text(raw_value)
            if name == "id":
                book.id = _atoi(value)
            elif name == "title":
                book.title = value[:MAX_TEXT_LEN]
            elif name == "author":
                book.author = value[:MAX_TEXT_LEN]
            elif name == "price":
                book.price = _atof(value)
        return book

    def update_price(self, book_id: int, new_price: float) -> None:
        """Set the price of the book with ``book_id``."""
        key = _key(book_id)
        try:
            self.client.hset(key, "price", f"{new_price:.2f}")
        except redis.RedisError as exc:
            raise BookStoreError(f"price update failed for {key}: {exc}") from exc
        log.info("Price updated for %s: %.2f", key, new_price)

    def exists(self, book_id: int) -> bool:
        """Whether a book with ``book_id`` is stored; False if Redis fails."""
        try:
            return bool(self.client.exists(_key(book_id)))
        except redis.RedisError:
            return False

    def delete(self, book_id: int) -> None:
        """Remove the book with ``book_id``."""
        key = _key(book_id)
        try:
            self.client.delete(key)
        except redis.RedisError as exc:
            raise BookStoreError(f"DEL failed for {key}: {exc}") from exc
        log.info("Book deleted: %s", key)

    def get_field(self, book_id: int, field: str) -> str | None:
        """One stored field of a book, or None if it is missing or Redis fails."""
        try:
            value = self.client.hget(_key(book_id), field)
        except redis.RedisError:
            return None
        return None if value is None else _text(value)


class RedisPool:
    """A fixed set of Redis connections handed out round-robin."""

    def __init__(
        self,
        size: int = 10,
        host: str = REDIS_HOST,
        port: int = REDIS_PORT,
        factory: Callable[[str, int], Any] | None = None,
    ) -> None:
        if size <= 0:
            raise ValueError("pool size must be positive")
        make = factory or connect_redis
        self._connections: list[Any] = []
        try:
            for _ in range(size):
                self._connections.append(make(host, port))
        except (BookStoreError, redis.RedisError, OSError) as exc:
            self.close()
            raise BookStoreError(f"cannot fill Redis pool: {exc}") from exc
        self._current = 0
        self._lock = threading.Lock()
        log.info("Redis pool ready with %d connections", size)

    @property
    def size(self) -> int:
        return len(self._connections)

    def get_connection(self) -> Any:
        """The next connection in turn."""
        with self._lock:
            connection = self._connections[self._current]
            self._current = (self._current + 1) % len(self._connections)
        return connection

    def close(self) -> None:
        """Close every connection in the pool."""
        for connection in self._connections:
            connection.close()

    def __enter__(self) -> "RedisPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def extract_string_value(json_text: str, key: str) -> str | None:
    """The quoted string that follows ``"key":`` in ``json_text``, or None."""
    key_pos = json_text.find(f'"{key}"')
    if key_pos < 0:
        return None
    colon = json_text.find(":", key_pos)
    if colon < 0:
        return None
    rest = json_text[colon + 1:].lstrip(_C_WHITESPACE)
    if not rest.startswith('"'):
        return None
    end = rest.find('"', 1)
    if end < 0:
        return None
    return rest[1:end]


def extract_numeric_value(json_text: str, key: str) -> float:
    """The number that follows ``"key":`` in ``json_text``, or 0.0."""
    key_pos = json_text.find(f'"{key}"')
    if key_pos < 0:
        return 0.0
    colon = json_text.find(":", key_pos)
    if colon < 0:
        return 0.0
    return _atof(json_text[colon + 1:])


def parse_book_json(json_string: str | None) -> Book:
    """Read a book from a JSON object with id_book, title, author and price."""
    if json_string is None:
        raise ValueError("no JSON document given")
    return Book(
        id=int(extract_numeric_value(json_string, "id_book")),
        title=extract_string_value(json_string, "title") or "",
        author=extract_string_value(json_string, "author") or "",
        price=extract_numeric_value(json_string, "price"),
    )