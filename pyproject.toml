[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bookstore"
version = "0.1.0"
description = "A small threaded HTTP server exposing a REST API for books stored in Redis"
requires-python = ">=3.10"
keywords = ["http", "server", "rest", "redis", "books", "crud"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bookstore-server = "bookstore.server:main"

[tool.hatch.build.targets.wheel]
packages = ["bookstore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
