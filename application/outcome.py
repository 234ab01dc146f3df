from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StepOutcome:
    ok: bool
    error_message: Optional[str] = None
    fatal: bool = False  # stops the chain even when continue_on_error is set
