from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from domain.chain import RequestSpec, utc_now


@dataclass(frozen=True)
class SavedRequest:
    id: str
    name: str
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def to_request_spec(self) -> RequestSpec:
        return RequestSpec(
            method=self.method,
            url=self.url,
            headers=dict(self.headers or {}),
            params=dict(self.params or {}),
            body=self.body,
        )


@dataclass
class Collection:
    id: str
    name: str
    requests: List[SavedRequest] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def find_request(self, request_id: str) -> Optional[SavedRequest]:
        for request in self.requests:
            if request.id == request_id:
                return request
        return None
