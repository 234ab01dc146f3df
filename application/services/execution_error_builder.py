# application/services/execution_error_builder.py
from __future__ import annotations


class ExecutionErrorBuilder:
    def step_failed(self, step_number: int, message: str) -> str:
        """step_number is 1-based."""
        return f"Step {step_number} failed: {message or 'Step execution failed'}"

    def from_exception(self, exc: BaseException) -> str:
        return str(exc) or type(exc).__name__
