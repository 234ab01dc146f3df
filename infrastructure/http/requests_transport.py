# infrastructure/http/requests_transport.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import requests

from application.ports.transport import TransportError, TransportPort, TransportResponse
from domain.chain import RequestSpec


def resolve_url(base_url: str, url: str) -> str:
    if not base_url or url.startswith("http://") or url.startswith("https://"):
        return url
    return base_url.rstrip("/") + "/" + url.lstrip("/")


class RequestsTransport(TransportPort):
    """
    requests.Session based transport.

    4xx/5xx responses come back as TransportResponse; only failures where no
    response was received raise TransportError.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_sec: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout_sec
        self._session = session or requests.Session()

    def send_request(self, request: RequestSpec) -> TransportResponse:
        kwargs: Dict[str, Any] = {
            "method": request.method.upper(),
            "url": resolve_url(self._base_url, request.url),
            "headers": dict(request.headers or {}),
            "params": dict(request.params or {}),
            "timeout": self._timeout,
        }
        if request.body:
            # JSON text is sent as JSON, anything else as the raw string
            try:
                kwargs["json"] = json.loads(request.body)
            except ValueError:
                kwargs["data"] = request.body

        try:
            resp = self._session.request(**kwargs)
        except requests.RequestException as e:
            raise TransportError(str(e) or "Network error occurred") from e

        return TransportResponse(
            status=resp.status_code,
            data=self._decode(resp),
            headers=dict(resp.headers),
            status_text=resp.reason or "",
        )

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return resp.text
