from application.resolvers.base import RequestResolutionError, RequestResolver
from application.resolvers.collection_resolver import CollectionRequestResolver
from application.resolvers.inline_resolver import InlineRequestResolver

__all__ = [
    "RequestResolutionError",
    "RequestResolver",
    "CollectionRequestResolver",
    "InlineRequestResolver",
]
