from __future__ import annotations

from typing import List

from application.resolvers.base import RequestResolutionError, RequestResolver
from domain.chain import ChainStep

NO_REQUEST_DEFINED = "Step has no request defined"


class RequestResolverRegistry:
    def __init__(self, resolvers: List[RequestResolver]):
        self._resolvers = resolvers

    def get_resolver(self, step: ChainStep) -> RequestResolver:
        for r in self._resolvers:
            if r.supports(step):
                return r
        raise RequestResolutionError(NO_REQUEST_DEFINED)
