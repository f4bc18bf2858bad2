"""Synchronous JSON-over-HTTP client used by outbound adapters."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from .errors import HttpJsonDecodeError, HttpRequestError, HttpStatusError

_RETRYABLE_STATUSES = frozenset({408, 425, 429})


class HttpClient:
    """Wrap ``httpx.Client``; every failure leaves as an ``HttpClientError``."""

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(
                base_url=base_url,
                timeout=timeout_seconds,
                headers=dict(headers or {}),
                transport=transport,
            )
        self._client = client

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def request(
        self,
        method: str,
        url: str,
        *,
        raise_for_status: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        method = method.upper()
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            target = _request_url(exc, fallback=url)
            raise HttpRequestError(
                message=f"{method} {target} failed: {type(exc).__name__}",
                method=method,
                url=target,
                retryable=True,
                cause=exc,
            ) from exc
        if raise_for_status and response.is_error:
            raise _status_error(response)
        return response

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def send_json(
        self,
        method: str,
        url: str,
        *,
        json: Any | None = None,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> Any | None:
        """Send an optional JSON body and decode the reply.

        Empty replies decode to ``None``. With ``missing_ok`` a 404 is also
        ``None`` instead of an ``HttpStatusError``.
        """
        if json is not None:
            kwargs["json"] = json
        response = self.request(method, url, raise_for_status=False, **kwargs)
        if missing_ok and response.status_code == 404:
            return None
        if response.is_error:
            raise _status_error(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise HttpJsonDecodeError(
                message=f"{response.request.method} {response.request.url} returned invalid JSON",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response_body=_body(response),
                cause=exc,
            ) from exc

    def get_json(self, url: str, **kwargs: Any) -> Any | None:
        return self.send_json("GET", url, **kwargs)

    def post_json(self, url: str, *, json: Any, **kwargs: Any) -> Any | None:
        return self.send_json("POST", url, json=json, **kwargs)


def _request_url(exc: httpx.RequestError, *, fallback: str) -> str:
    # ``RequestError.request`` raises when the error was built without one.
    try:
        return str(exc.request.url)
    except RuntimeError:
        return fallback


def _body(response: httpx.Response) -> str:
    try:
        return response.text
    except UnicodeDecodeError:
        return ""


def _status_error(response: httpx.Response) -> HttpStatusError:
    status = response.status_code
    return HttpStatusError(
        message=f"{response.request.method} {response.request.url} returned HTTP {status}",
        method=response.request.method,
        url=str(response.request.url),
        retryable=status >= 500 or status in _RETRYABLE_STATUSES,
        status_code=status,
        response_body=_body(response),
        response_headers=dict(response.headers.items()),
    )
