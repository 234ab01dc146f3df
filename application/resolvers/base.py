from __future__ import annotations

from abc import ABC, abstractmethod

from domain.chain import ChainStep, RequestSpec


class RequestResolutionError(Exception):
    pass


class RequestResolver(ABC):
    @abstractmethod
    def supports(self, step: ChainStep) -> bool: ...

    @abstractmethod
    def resolve(self, step: ChainStep) -> RequestSpec: ...
