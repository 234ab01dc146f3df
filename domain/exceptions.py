from __future__ import annotations


class DomainError(Exception):
    pass


class ValidationError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class ChainNotFoundError(NotFoundError):
    pass


class StepNotFoundError(NotFoundError):
    pass


class CollectionNotFoundError(NotFoundError):
    pass


class ExecutionNotFoundError(NotFoundError):
    pass


class ChainImportError(DomainError):
    pass


class StepStateError(DomainError):
    pass
