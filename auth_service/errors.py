"""Exceptions raised by the credential store, settings store and inventory layer."""


class InventoryAuthError(Exception):
    """Base exception for the inventory auth service"""
    pass


class InvalidInput(InventoryAuthError):
    """Client-correctable input problem; carries a machine-readable reason."""

    def __init__(self, message: str, reason: str = "invalid_input"):
        self.reason = reason
        super().__init__(message)


class AlreadyExists(InventoryAuthError):
    """An account with this email is already registered"""
    pass


class NotFound(InventoryAuthError):
    """Requested row does not exist"""
    pass


class HashingFailure(InventoryAuthError):
    """Password digest could not be computed"""
    pass


class StorageFailure(InventoryAuthError):
    """Underlying database call failed"""
    pass


class InvalidStateError(InventoryAuthError):
    """Operation not allowed in the auth session's current state"""
    pass
