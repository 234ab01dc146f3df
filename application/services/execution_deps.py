# application/services/execution_deps.py
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Callable

from application.ports.logger import LoggerPort
from application.ports.transport import TransportPort


@dataclass(frozen=True)
class ExecutionDeps:
    transport: TransportPort
    logger: LoggerPort
    sleep: Callable[[float], None] = field(default=time.sleep)

    def with_logger(self, logger: LoggerPort) -> "ExecutionDeps":
        return replace(self, logger=logger)

    def wait_ms(self, delay_ms: int) -> None:
        if delay_ms and delay_ms > 0:
            self.sleep(delay_ms / 1000.0)
