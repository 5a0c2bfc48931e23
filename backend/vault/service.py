# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
VaultService – tenant-scoped CRUD of encrypted entries.

The tenant and the key always come from the session the service was built
with.  No method takes a tenant id, so a caller cannot reach another
tenant's entries by naming them.
"""

from dataclasses import dataclass, field

from core.errors import DecryptionFailed, InvalidInputError, PermissionDenied
from core.logger import logger
from core.security import decrypt_value, encrypt_value
from store import CredentialStore


@dataclass
class EntryListing:
    """Result of :meth:`VaultService.list_entries`.

    ``entries`` holds ``(name, value)`` pairs that decrypted; ``failed``
    names every entry that did not.
    """

    entries: list[tuple[str, str]] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        if self.failed:
            raise DecryptionFailed(
                f"{len(self.failed)} entr{'y' if len(self.failed) == 1 else 'ies'} "
                f"could not be decrypted: {', '.join(self.failed)}"
            )


class VaultService:
    def __init__(self, store: CredentialStore, session):
        if session.user.is_superuser:
            raise PermissionDenied("Superuser cannot access entries")
        if session.tenant is None:
            raise PermissionDenied("Vault access requires a tenant user session")
        self.store = store
        self.tenant_id = session.tenant.id
        # Own copy: a concurrent logout wipes the session buffer
        self._key = session.copy_key()

    @staticmethod
    def _check_name(name: str) -> None:
        if not name:
            raise InvalidInputError("Entry name must not be empty")

    def _decrypt(self, nonce: bytes, ciphertext: bytes) -> str:
        plaintext = decrypt_value(ciphertext, self._key, nonce)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailed() from exc

    def add_entry(self, name: str, value: str) -> None:
        """Encrypt *value* under the session key and store it as *name*."""
        self._check_name(name)
        ciphertext, nonce = encrypt_value(value.encode("utf-8"), self._key)
        self.store.upsert_entry(self.tenant_id, name, nonce, ciphertext)
        logger.info("Entry '%s' written for tenant %d", name, self.tenant_id)

    def get_entry(self, name: str) -> str:
        self._check_name(name)
        entry = self.store.fetch_entry(self.tenant_id, name)
        try:
            return self._decrypt(entry.nonce, entry.ciphertext)
        except DecryptionFailed:
            logger.warning("Entry '%s' of tenant %d failed to decrypt", name, self.tenant_id)
            raise

    def list_entries(self) -> EntryListing:
        """
        Decrypt every entry of the tenant.  A row that fails to decrypt is
        named in ``failed`` instead of being dropped.
        """
        listing = EntryListing()
        for entry in self.store.fetch_entries(self.tenant_id):
            try:
                listing.entries.append((entry.name, self._decrypt(entry.nonce, entry.ciphertext)))
            except DecryptionFailed:
                listing.failed.append(entry.name)
        if listing.failed:
            logger.warning(
                "Tenant %d: %d entries failed to decrypt: %s",
                self.tenant_id,
                len(listing.failed),
                ", ".join(listing.failed),
            )
        return listing

    def list_names(self) -> list[str]:
        """Entry names only; nothing is decrypted."""
        return self.store.list_entry_names(self.tenant_id)

    def delete_entry(self, name: str) -> None:
        self._check_name(name)
        self.store.remove_entry(self.tenant_id, name)
        logger.info("Entry '%s' deleted for tenant %d", name, self.tenant_id)
