from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from domain.chain import RequestSpec, utc_now
from domain.exceptions import StepStateError


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.RUNNING


class StepStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


_STEP_TRANSITIONS = {
    StepStatus.RUNNING: {StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED},
}


@dataclass(frozen=True)
class StepResponse:
    status: int
    data: Any
    headers: Dict[str, str]
    status_text: str = ""


@dataclass
class StepResult:
    step_id: str
    order: int
    status: StepStatus = StepStatus.RUNNING
    response: Optional[StepResponse] = None
    extracted_variables: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    request: Optional[RequestSpec] = None  # after interpolation
    duration_ms: Optional[int] = None

    def transition(self, status: StepStatus) -> None:
        if status not in _STEP_TRANSITIONS.get(self.status, set()):
            raise StepStateError(
                f"Invalid step transition: {self.step_id} {self.status.value} -> {status.value}"
            )
        self.status = status

    def succeed(self, response: StepResponse, extracted: Dict[str, Any]) -> None:
        self.transition(StepStatus.SUCCESS)
        self.response = response
        self.extracted_variables = extracted

    def fail(self, error: str) -> None:
        self.transition(StepStatus.FAILED)
        self.error = error

    def skip(self) -> None:
        self.transition(StepStatus.SKIPPED)


@dataclass
class ChainExecution:
    id: str
    chain_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    steps: List[StepResult] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def complete(self) -> None:
        self._finish(ExecutionStatus.COMPLETED)

    def fail(self, error: str) -> None:
        self._finish(ExecutionStatus.FAILED)
        self.error = error

    def cancel(self) -> bool:
        """
        Mark the execution cancelled and skip running steps.
        Returns False (and changes nothing) when already terminal.
        """
        if self.status.is_terminal:
            return False
        self.adopt_cancellation()
        return True

    def adopt_cancellation(self) -> None:
        """
        Take over a cancel stored by someone else, even when this copy has
        already finished locally. Finished step results are kept.
        """
        for result in self.steps:
            if result.status is StepStatus.RUNNING:
                result.skip()
        self.error = None
        self._finish(ExecutionStatus.CANCELLED)

    def _finish(self, status: ExecutionStatus) -> None:
        self.status = status
        self.completed_at = utc_now()
