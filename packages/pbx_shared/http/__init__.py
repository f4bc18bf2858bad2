"""Shared outbound HTTP client."""

from .client import HttpClient
from .errors import (
    HttpClientError,
    HttpError,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)

__all__ = [
    "HttpClient",
    "HttpClientError",
    "HttpError",
    "HttpJsonDecodeError",
    "HttpRequestError",
    "HttpStatusError",
]
