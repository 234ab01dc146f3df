# infrastructure/chain/__init__.py
from infrastructure.chain.base_loader import ChainLoadError, ChainLoaderBase
from infrastructure.chain.file_finder import ChainFileFinder
from infrastructure.chain.json_loader import JsonChainLoader
from infrastructure.chain.loader_registry import ChainLoaderRegistry
from infrastructure.chain.yaml_loader import YamlChainLoader

__all__ = [
    "ChainLoadError",
    "ChainLoaderBase",
    "ChainFileFinder",
    "ChainLoaderRegistry",
    "JsonChainLoader",
    "YamlChainLoader",
]
