# infrastructure/chain/json_loader.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from infrastructure.chain.base_loader import ChainLoadError, ChainLoaderBase


class JsonChainLoader(ChainLoaderBase):
    def _load_file(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as handle:
            try:
                return json.load(handle)
            except json.JSONDecodeError as e:
                raise ChainLoadError(f"Chain file is not valid JSON: {path}: {e}") from e
