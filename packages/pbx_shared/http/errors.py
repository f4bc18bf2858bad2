"""Typed errors raised by the shared HTTP client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(eq=False)
class HttpError(Exception):
    """Base error for shared HTTP helper failures."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class HttpClientError(HttpError):
    """Outbound call failed."""

    method: str
    url: str
    retryable: bool = False


@dataclass(eq=False)
class HttpRequestError(HttpClientError):
    """Transport-level failure (connect, timeout, reset)."""

    cause: Exception | None = None


@dataclass(eq=False)
class HttpStatusError(HttpClientError):
    """Peer answered with a non-success status."""

    status_code: int = 0
    response_body: str = ""
    response_headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class HttpJsonDecodeError(HttpClientError):
    """Successful response whose body was not valid JSON."""

    status_code: int = 0
    response_body: str = ""
    cause: Exception | None = None
