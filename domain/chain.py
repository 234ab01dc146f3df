"""
Chain domain model
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestSpec:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class VariableExtraction:
    name: str  # key in ChainContext.variables
    path: str  # JSONPath, e.g. "$.user.id"


@dataclass
class ChainStep:
    id: str
    order: int
    request: Optional[RequestSpec] = None
    request_id: Optional[str] = None  # SavedRequest.id inside a collection
    variable_extractions: List[VariableExtraction] = field(default_factory=list)
    continue_on_error: bool = False
    delay: Optional[int] = None  # ms
    name: Optional[str] = None


@dataclass
class Chain:
    """
    Chain aggregate root

    steps are kept sorted by order, contiguous from 0.
    """
    id: str
    name: str
    steps: List[ChainStep] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def find_step(self, step_id: str) -> Optional[ChainStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def ordered_steps(self) -> List[ChainStep]:
        return sorted(self.steps, key=lambda s: s.order)

    def renumber_steps(self) -> None:
        for index, step in enumerate(self.steps):
            step.order = index

    def touch(self) -> None:
        self.updated_at = utc_now()
