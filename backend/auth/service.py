# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
AuthenticationService – username/password verification.

An unknown username, a wrong password and a corrupt stored hash all end in
the same ``InvalidCredentials``.  For the unknown-username case a dummy hash
is verified so both paths do the same amount of work and callers cannot
enumerate accounts by timing.
"""

from core.errors import InvalidCredentials
from core.logger import logger
from core.security import dummy_verify, prime_dummy_hash, verify_password
from store import CredentialStore, UserRecord


class AuthenticationService:
    def __init__(self, store: CredentialStore):
        self.store = store
        prime_dummy_hash()

    def authenticate(self, username: str, password: str) -> UserRecord:
        """
        Return the matching user, or raise ``InvalidCredentials``.

        The returned record tells the caller whether the user is a superuser
        and, if not, which tenant owns them.
        """
        user = self.store.lookup_user(username)

        if user is None:
            dummy_verify(password)
            logger.info("Login failed for '%s'", username)
            raise InvalidCredentials()

        try:
            ok = verify_password(password, user.password_hash)
        except ValueError:
            logger.error("Stored password hash for user id %d is unreadable", user.id)
            ok = False

        if not ok:
            logger.info("Login failed for '%s'", username)
            raise InvalidCredentials()

        return user
