# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Error taxonomy shared by the store, the services and every adapter.

Each failure the core can report has exactly one ``ErrorKind``.  Adapters
branch on ``exc.kind`` (the HTTP layer maps it to a status code, the CLI
prints it) and never need to inspect the message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    STORAGE = "storage_error"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    INVALID_INPUT = "invalid_input"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHENTICATED = "unauthenticated"
    KEY_DERIVATION = "key_derivation_failed"
    DECRYPTION_FAILED = "decryption_failed"
    PERMISSION_DENIED = "permission_denied"


class VaultError(Exception):
    """Base class.  Subclasses pin ``kind`` and a default message."""

    kind: ErrorKind = ErrorKind.STORAGE
    default_message = "Vault error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class StorageError(VaultError):
    """I/O or integrity failure in the durable layer."""

    kind = ErrorKind.STORAGE
    default_message = "Storage failure"


class NotFoundError(VaultError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class DuplicateError(VaultError):
    kind = ErrorKind.DUPLICATE
    default_message = "Already exists"


class InvalidInputError(VaultError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid input"


class AuthError(VaultError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Authentication failed"


class InvalidCredentials(AuthError):
    """Raised for an unknown username *and* for a wrong password."""

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid username or password"


class Unauthenticated(AuthError):
    """Missing, malformed, expired or logged-out session token."""

    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Not authenticated"


class KeyDerivationError(VaultError):
    kind = ErrorKind.KEY_DERIVATION
    default_message = "Key derivation failed"


class DecryptionFailed(VaultError):
    """Wrong key or tampered data.  The two cases are not distinguished."""

    kind = ErrorKind.DECRYPTION_FAILED
    default_message = "Decryption failed"


class PermissionDenied(VaultError):
    kind = ErrorKind.PERMISSION_DENIED
    default_message = "Permission denied"
