# infrastructure/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from domain.exceptions import ValidationError

ENV_PREFIX = "CHAINBOLT_"
_DEFAULT_ENV_PATH = Path(__file__).parent.parent.parent / ".env"


def _number(env: Mapping[str, Optional[str]], key: str, default: float, cast=float):
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return cast(default)
    try:
        value = cast(raw)
    except ValueError as e:
        raise ValidationError(f"{ENV_PREFIX}{key} must be a number: {raw!r}") from e
    if value < 0:
        raise ValidationError(f"{ENV_PREFIX}{key} must not be negative: {raw!r}")
    return value


@dataclass(frozen=True)
class AppSettings:
    base_url: str = ""
    request_timeout_sec: float = 30
    chains_dir: Path = Path("chains")
    log_level: str = "INFO"
    max_wait_sec: int = 30
    scheduler_workers: int = 4

    @classmethod
    def from_env(
        cls,
        env_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AppSettings":
        """
        Values from the .env file win over the process environment.
        """
        path = env_path or _DEFAULT_ENV_PATH
        env = dict(os.environ if environ is None else environ)
        if path.exists():
            env.update({k: v for k, v in dotenv_values(path).items() if v is not None})

        workers = _number(env, "SCHEDULER_WORKERS", 4, int)
        if workers < 1:
            raise ValidationError(f"{ENV_PREFIX}SCHEDULER_WORKERS must be at least 1: {workers}")

        return cls(
            base_url=env.get(ENV_PREFIX + "BASE_URL") or "",
            request_timeout_sec=_number(env, "REQUEST_TIMEOUT_SEC", 30),
            chains_dir=Path(env.get(ENV_PREFIX + "CHAINS_DIR") or "chains"),
            log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or "INFO").upper(),
            max_wait_sec=_number(env, "MAX_WAIT_SEC", 30, int),
            scheduler_workers=workers,
        )
