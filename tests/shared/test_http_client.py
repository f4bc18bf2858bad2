"""Unit tests for the shared HTTP client wrapper."""

from __future__ import annotations

import httpx
import pytest

from packages.pbx_shared.http import (
    HttpClient,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)


def _client(handler) -> HttpClient:
    return HttpClient(
        base_url="https://pbx.test", transport=httpx.MockTransport(handler)
    )


def test_get_json_returns_decoded_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True}, request=request)

    with _client(handler) as client:
        assert client.get_json("/health") == {"ok": True}


def test_post_json_sends_the_body() -> None:
    seen: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.content)
        return httpx.Response(201, json={"created": True}, request=request)

    with _client(handler) as client:
        assert client.post_json("/endpoints", json={"name": "1000"}) == {
            "created": True
        }

    assert seen == [b'{"name":"1000"}'] or seen == [b'{"name": "1000"}']


@pytest.mark.parametrize(("status", "retryable"), [(503, True), (429, True), (404, False)])
def test_status_failures_become_typed_errors(status: int, retryable: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope", request=request)

    with _client(handler) as client, pytest.raises(HttpStatusError) as exc_info:
        client.get("/endpoints/1000")

    error = exc_info.value
    assert error.method == "GET"
    assert error.status_code == status
    assert error.retryable is retryable
    assert error.response_body == "nope"


def test_raise_for_status_can_be_disabled() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, request=request)

    with _client(handler) as client:
        assert client.get("/endpoints/1000", raise_for_status=False).status_code == 404


def test_transport_failures_become_retryable_request_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection failed", request=request)

    with _client(handler) as client, pytest.raises(HttpRequestError) as exc_info:
        client.delete("/trunks/carrier")

    error = exc_info.value
    assert error.retryable is True
    assert error.method == "DELETE"
    assert error.url.endswith("/trunks/carrier")
    assert isinstance(error.cause, httpx.ConnectError)


def test_invalid_json_becomes_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json", request=request)

    with _client(handler) as client, pytest.raises(HttpJsonDecodeError) as exc_info:
        client.get_json("/health")

    assert exc_info.value.response_body == "not-json"


def test_borrowed_client_is_not_closed() -> None:
    inner = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(200))
    )

    HttpClient(client=inner).close()

    assert inner.is_closed is False
    inner.close()


def test_send_json_treats_missing_resources_as_none_when_allowed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, request=request)

    with _client(handler) as client:
        assert client.send_json("DELETE", "/trunks/gone", missing_ok=True) is None
        with pytest.raises(HttpStatusError):
            client.send_json("DELETE", "/trunks/gone")


def test_send_json_returns_none_for_empty_replies() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, request=request)

    with _client(handler) as client:
        assert client.send_json("POST", "/reload") is None


def test_request_timeout_status_is_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(408, request=request)

    with _client(handler) as client, pytest.raises(HttpStatusError) as exc_info:
        client.get_json("/health")

    assert exc_info.value.retryable is True
