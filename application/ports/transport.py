from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from domain.chain import RequestSpec

DEFAULT_NETWORK_ERROR = "Network error occurred"


class TransportError(Exception):
    """No response was received from the server."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or DEFAULT_NETWORK_ERROR)


@dataclass(frozen=True)
class TransportResponse:
    status: int
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)
    status_text: str = ""


class TransportPort(ABC):
    @abstractmethod
    def send_request(self, request: RequestSpec) -> TransportResponse:
        """
        Send the request. Server error statuses (4xx/5xx) are returned,
        only connectivity failures raise TransportError.
        """
        ...
