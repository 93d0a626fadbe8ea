"""
Domain exceptions for asset lifecycle and audit logic

These exceptions represent business rule violations and persistence failures.
Primary state-changing writes let them propagate unmodified to the caller.
"""


class AssetDomainError(Exception):
    """Base exception for all asset domain errors"""
    pass


class NotFoundError(AssetDomainError):
    """Raised when a referenced asset does not exist (or belongs to another organization)"""
    pass


class InvalidStateError(AssetDomainError):
    """Raised when an operation's status precondition is violated"""
    pass


class ConcurrentModificationError(InvalidStateError):
    """Raised when another writer changed the asset between read and conditional write"""
    pass


class ValidationError(AssetDomainError):
    """Raised when required input is missing or malformed"""
    pass


class StoreError(AssetDomainError):
    """Raised when the underlying persistence layer fails"""
    pass
