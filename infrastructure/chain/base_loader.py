# infrastructure/chain/base_loader.py
"""
Chain definition files (JSON or YAML) -> Chain domain object

The file content uses the same camelCase shape as chain export.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from application.services.chain_serializer import ChainSerializer
from domain.chain import Chain
from domain.exceptions import ValidationError
from domain.ids import new_id


class ChainLoadError(Exception):
    pass


class ChainLoaderBase(ABC):
    def __init__(self, serializer: Optional[ChainSerializer] = None) -> None:
        self._serializer = serializer or ChainSerializer()

    def load_from_file(self, path: Union[str, Path]) -> Chain:
        p = Path(path)
        if not p.exists():
            raise ChainLoadError(f"Chain file not found: {path}")

        data = self._load_file(p)

        if data is None:
            raise ChainLoadError(f"Chain file is empty: {path}")

        if not isinstance(data, dict):
            raise ChainLoadError(f"Chain file is invalid: {path}")

        return self.load_from_dict(data)

    def load_from_dict(self, data: Dict[str, Any]) -> Chain:
        if not isinstance(data.get("name"), str) or not isinstance(data.get("steps", []), list):
            raise ChainLoadError("Chain definition needs a name and a list of steps")
        try:
            chain = self._serializer.chain_from_dict(data)
        except ValidationError as e:
            raise ChainLoadError(str(e)) from e

        # ids are optional in hand-written files
        if not chain.id:
            chain.id = new_id()
        for step in chain.steps:
            if not step.id:
                step.id = new_id()
        return chain

    @abstractmethod
    def _load_file(self, path: Path) -> Any:
        ...
