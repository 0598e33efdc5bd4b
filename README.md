# bookstore

A small HTTP server with a REST API for a catalogue of books. Each book is
kept in Redis as a hash named `book:<id>`, holding `id`, `title`, `author`
and `price` (the price stored with two decimals).

Incoming connections are multiplexed with a selector. Each parsed request
goes onto a bounded request queue (20 entries by default), and a pool of
worker threads answers it. Every worker takes its own connection, in
turn, from a shared pool of 10 Redis connections.

## Installation

```
pip install .
```

The server needs a reachable Redis instance; by default it connects to
`127.0.0.1:6379` and exits with status 1 if it cannot.

## Running

```
bookstore-server
```

Options:

| Option          | Default       | Meaning                              |
|-----------------|---------------|--------------------------------------|
| `--host`        | all addresses | address to listen on                 |
| `--port`        | `8080`        | port to listen on                    |
| `--redis-host`  | `127.0.0.1`   | Redis host                           |
| `--redis-port`  | `6379`        | Redis port                           |
| `--workers`     | `10`          | number of worker threads             |

The server logs at INFO level and runs until interrupted with Ctrl-C, after
which it closes its sockets and lets the workers finish the queued requests.

## API

Every request carries a JSON body that describes the book, with the keys
`id_book`, `title`, `author` and `price`. The path must match exactly.

| Method   | Path           | Effect                                                         |
|----------|----------------|----------------------------------------------------------------|
| `POST`   | `/add/book`    | stores the book and echoes the request body back               |
| `GET`    | `/get/books`   | returns the stored book whose id is `id_book`                  |
| `PUT`    | `/update/book` | sets the price of book `id_book`; returns the book from the body |
| `DELETE` | `/delete/book` | deletes book `id_book`; returns the book from the body         |
| `PATCH`  | any            | `200 OK` with no body                                          |

Successful answers are `200 OK` with a JSON body and an
`X-Custom-Header: MyValue` header. Book responses look like:

```
{
    "id_book": 1,
    "title": "Il Nome della Rosa",
    "author": "Umberto Eco",
    "price": 15.99
}
```

An unknown path gets `404 Not Found`. A `GET` for a book that is not stored,
or a failing Redis command, gets `500 Internal Server Error`. Any other
method gets `405 Method Not Allowed`, with an `Allow` header listing
`GET, POST, PUT, PATCH, DELETE`.

Example request:

```
POST /add/book HTTP/1.1
Content-Type: application/json
Content-Length: 86

{"id_book": 1, "title": "Il Nome della Rosa", "author": "Umberto Eco", "price": 15.99}
```

## Limits

- Each readable event on a connection is read with a single `recv` of at
  most 2047 bytes and parsed as one complete request; larger requests, or
  requests split over several packets, are not reassembled.
- The book JSON is read by locating each key, not by a full JSON parser,
  and strings are written back without escaping.
- Responses carry `Connection: close`, but the connection is left open
  until the client closes it.
- There is no endpoint that lists all books and no authentication.

## Using the pieces as a library

```python
from bookstore.http_request import parse_http_request
from bookstore.http_response import HttpResponse, HttpStatus

request = parse_http_request("GET /get/books?id=1 HTTP/1.1\r\nHost: example.com\r\n\r\n")
print(request.path, request.query_param("id"), request.header("host"))

response = HttpResponse()
response.set_status(HttpStatus.NOT_FOUND)
response.set_json('{"error": "not found"}')
print(response.to_bytes().decode())
```

- `bookstore.http_request`: `parse_http_request`, `HttpRequest`,
  `HttpMethod`, `HttpParseError`, `url_decode`, `parse_query_string`.
- `bookstore.http_response`: `HttpResponse`, `HttpStatus`,
  `ResponseTooLarge` (raised when a response reaches 65536 bytes),
  `status_to_message`, `current_time_string`.
- `bookstore.book`: `Book`, `BookStore`, `RedisPool`, `connect_redis`,
  `parse_book_json`, `BookStoreError`.
- `bookstore.request_queue`: the bounded, thread-safe `RequestQueue`, with
  `ClientRequest`, `QueueStatistics`, `QueueShutdown` and `QueueEmpty`.
- `bookstore.workers`: `WorkerPool` and the router `process_rest_request`.
- `bookstore.server`: `Server` and `main`.