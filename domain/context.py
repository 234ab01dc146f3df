from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class ContextResponse:
    step: Union[int, str]  # step index or step id
    data: Any
    status: int


@dataclass
class ChainContext:
    """Variables and responses accumulated during one execution."""

    variables: Dict[str, Any] = field(default_factory=dict)
    responses: List[ContextResponse] = field(default_factory=list)
