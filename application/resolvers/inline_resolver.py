from __future__ import annotations

from application.resolvers.base import RequestResolver
from domain.chain import ChainStep, RequestSpec


class InlineRequestResolver(RequestResolver):
    def supports(self, step: ChainStep) -> bool:
        return step.request is not None

    def resolve(self, step: ChainStep) -> RequestSpec:
        return step.request
