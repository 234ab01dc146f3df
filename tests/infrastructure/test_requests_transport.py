from __future__ import annotations

import pytest
import requests

from application.ports.transport import TransportError
from domain.chain import RequestSpec
from infrastructure.http.requests_transport import RequestsTransport, resolve_url


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", reason="OK", headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = reason
        self.headers = headers or {"Content-Type": "application/json"}

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(payload={})
        self.error = error
        self.calls = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass


def test_get_request_passes_headers_and_params() -> None:
    # Arrange
    session = FakeSession(FakeResponse(payload={"users": [{"id": 1}]}))
    transport = RequestsTransport(timeout_sec=5, session=session)

    # Act
    response = transport.send_request(
        RequestSpec(method="get", url="https://api.example.com/users", headers={"X-Test": "1"}, params={"page": "1"})
    )

    # Assert
    assert response.status == 200
    assert response.data == {"users": [{"id": 1}]}
    assert session.calls == [
        {
            "method": "GET",
            "url": "https://api.example.com/users",
            "headers": {"X-Test": "1"},
            "params": {"page": "1"},
            "timeout": 5,
        }
    ]


def test_json_body_is_sent_as_json() -> None:
    session = FakeSession(FakeResponse(status_code=201, payload={"id": 1}))
    transport = RequestsTransport(session=session)

    transport.send_request(RequestSpec(method="POST", url="https://api.example.com/create", body='{"name": "test1"}'))

    assert session.calls[0]["json"] == {"name": "test1"}
    assert "data" not in session.calls[0]


def test_raw_body_is_sent_unchanged() -> None:
    session = FakeSession(FakeResponse(payload=None, text="done", headers={"content-type": "text/plain"}))
    transport = RequestsTransport(session=session)

    response = transport.send_request(RequestSpec(method="POST", url="https://api.example.com/raw", body="{invalid: json}"))

    assert session.calls[0]["data"] == "{invalid: json}"
    assert "json" not in session.calls[0]
    assert response.data == "done"


def test_error_status_is_returned() -> None:
    session = FakeSession(FakeResponse(status_code=500, payload={"message": "Internal Error"}, reason="Server Error"))
    transport = RequestsTransport(session=session)

    response = transport.send_request(RequestSpec(method="GET", url="https://api.example.com/error"))

    assert response.status == 500
    assert response.status_text == "Server Error"
    assert response.data["message"] == "Internal Error"


def test_connection_failure_raises_transport_error() -> None:
    session = FakeSession(error=requests.ConnectionError("Network down"))
    transport = RequestsTransport(session=session)

    with pytest.raises(TransportError, match="Network down"):
        transport.send_request(RequestSpec(method="GET", url="https://api.example.com/offline"))


def test_failure_without_message_uses_default() -> None:
    session = FakeSession(error=requests.Timeout())
    transport = RequestsTransport(session=session)

    with pytest.raises(TransportError, match="Network error occurred"):
        transport.send_request(RequestSpec(method="GET", url="https://api.example.com/slow"))


def test_relative_url_uses_base_url() -> None:
    session = FakeSession()
    transport = RequestsTransport(base_url="https://api.example.com/", session=session)

    transport.send_request(RequestSpec(method="GET", url="/users"))

    assert session.calls[0]["url"] == "https://api.example.com/users"


@pytest.mark.parametrize(
    "base_url,url,expected",
    [
        ("", "/users", "/users"),
        ("https://api.example.com", "users", "https://api.example.com/users"),
        ("https://api.example.com", "http://other.example.com/x", "http://other.example.com/x"),
    ],
)
def test_resolve_url(base_url, url, expected) -> None:
    assert resolve_url(base_url, url) == expected
