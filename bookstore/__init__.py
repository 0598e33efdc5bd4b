"""HTTP server with a REST API for books stored in Redis, and its parts."""

__version__ = "0.1.0"