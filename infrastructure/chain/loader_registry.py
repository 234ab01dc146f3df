# infrastructure/chain/loader_registry.py
from __future__ import annotations

from pathlib import Path
from typing import Dict

from infrastructure.chain.base_loader import ChainLoaderBase, ChainLoadError
from infrastructure.chain.json_loader import JsonChainLoader
from infrastructure.chain.yaml_loader import YamlChainLoader


class ChainLoaderRegistry:
    def __init__(self) -> None:
        yaml_loader = YamlChainLoader()
        self._loaders: Dict[str, ChainLoaderBase] = {
            ".yaml": yaml_loader,
            ".yml": yaml_loader,
            ".json": JsonChainLoader(),
        }

    def get_loader(self, path: Path) -> ChainLoaderBase:
        ext = path.suffix.lower()
        loader = self._loaders.get(ext)
        if loader is None:
            raise ChainLoadError(f"Unsupported chain format: {ext}")
        return loader
