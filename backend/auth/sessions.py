# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
SessionManager – the table of live sessions.

A session is created by a successful login and named by a signed bearer
token.  It carries the authenticated user and, for tenant users, the tenant
and the key derived from the login password.  Sessions live only in this
process and expire after ``session_ttl_minutes``.

Locking
-------
One ``threading.Lock`` guards the table.  It is held only while a session is
looked up, inserted or removed – never while a password is verified or a key
is derived.  Those slow steps run on a dedicated thread pool when called
through :meth:`SessionManager.login_async`, so the event loop keeps serving
other requests during a login.
"""

import asyncio
import functools
import secrets
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from auth.service import AuthenticationService
from core.config import settings
from core.errors import DecryptionFailed, PermissionDenied, Unauthenticated
from core.logger import logger
from core.security import (
    create_access_token,
    decode_access_token,
    decrypt_value,
    derive_key,
    encrypt_value,
)
from store import CredentialStore, TenantRecord, UserRecord

# Encrypted under a tenant's key on first unlock; later logins must be able
# to decrypt it, which proves they derived the same key.
_KEY_CHECK_MARKER = b"tenvault:key-check:v1"


@dataclass
class Session:
    sid: str
    user: UserRecord
    tenant: Optional[TenantRecord]
    key: Optional[bytearray] = field(default=None, repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None
    # guards ``key`` between wipe() and copy_key()
    _key_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @property
    def is_unlocked(self) -> bool:
        return self.key is not None

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def copy_key(self) -> bytes:
        """
        Return a private copy of the derived key.

        Raises ``PermissionDenied`` if the session holds no key, either
        because it never had one (superuser) or because it was closed.
        A copy is never taken while a wipe is in progress.
        """
        with self._key_lock:
            if self.key is None:
                raise PermissionDenied("Vault access requires a tenant user session")
            return bytes(self.key)

    def wipe(self) -> None:
        """Overwrite the key buffer and drop it."""
        with self._key_lock:
            if self.key is not None:
                for i in range(len(self.key)):
                    self.key[i] = 0
                self.key = None


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        ttl: Optional[timedelta] = None,
        workers: Optional[int] = None,
    ):
        self.store = store
        self.auth = AuthenticationService(store)
        self.ttl = ttl if ttl is not None else timedelta(minutes=settings.session_ttl_minutes)
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=workers or settings.kdf_workers,
            thread_name_prefix="tenvault-kdf",
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # -- table primitives -------------------------------------------------

    def _insert(self, user: UserRecord, tenant: Optional[TenantRecord], key: Optional[bytes]) -> tuple[str, Session]:
        now = datetime.now(timezone.utc)
        session = Session(
            sid=secrets.token_urlsafe(32),
            user=user,
            tenant=tenant,
            key=bytearray(key) if key is not None else None,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            expired = self._pop_expired(now)
            self._sessions[session.sid] = session
        for stale in expired:
            stale.wipe()

        token = create_access_token({"sub": user.username, "sid": session.sid}, expires_delta=self.ttl)
        return token, session

    def _pop_expired(self, now: datetime) -> list[Session]:
        # caller holds self._lock
        stale = [sid for sid, s in self._sessions.items() if s.expired(now)]
        return [self._sessions.pop(sid) for sid in stale]

    def create(
        self,
        user: UserRecord,
        tenant: Optional[TenantRecord] = None,
        key: Optional[bytes] = None,
    ) -> str:
        """Register a session for an already-authenticated user; return its token."""
        token, _ = self._insert(user, tenant, key)
        return token

    def resolve(self, token: str) -> Session:
        """
        Return the live session named by *token*.

        Raises ``Unauthenticated`` if the token is forged, malformed or
        expired, or if the session was logged out.
        """
        claims = decode_access_token(token)
        sid = claims.get("sid")
        if not sid:
            raise Unauthenticated("Invalid session token")

        now = datetime.now(timezone.utc)
        with self._lock:
            session = self._sessions.get(sid)
            if session is not None and session.expired(now):
                del self._sessions[sid]
                stale, session = session, None
            else:
                stale = None
        if stale is not None:
            stale.wipe()
            raise Unauthenticated("Session expired")
        if session is None:
            raise Unauthenticated()
        return session

    def destroy(self, token: str) -> None:
        """Remove the session named by *token*.  Unknown tokens are ignored."""
        try:
            claims = decode_access_token(token, verify_exp=False)
        except Unauthenticated:
            return
        sid = claims.get("sid")
        with self._lock:
            session = self._sessions.pop(sid, None) if sid else None
        if session is not None:
            session.wipe()
            logger.info("Session closed for '%s'", session.user.username)

    def purge_expired(self) -> int:
        with self._lock:
            expired = self._pop_expired(datetime.now(timezone.utc))
        for stale in expired:
            stale.wipe()
        return len(expired)

    def purge_tenant(self, tenant_id: int) -> int:
        """Close every session opened for *tenant_id*.  Returns how many."""
        with self._lock:
            doomed = [
                sid for sid, s in self._sessions.items()
                if s.tenant is not None and s.tenant.id == tenant_id
            ]
            closed = [self._sessions.pop(sid) for sid in doomed]
        for session in closed:
            session.wipe()
        return len(closed)

    # -- login / logout ---------------------------------------------------

    def _check_tenant_key(self, tenant_id: int, key: bytes) -> None:
        """
        Make sure *key* is the key this tenant's entries are encrypted with.
        The first unlock of a tenant records the marker; every later one
        must decrypt it.
        """
        stored = self.store.get_key_check(tenant_id)
        if stored is None:
            ciphertext, nonce = encrypt_value(_KEY_CHECK_MARKER, key)
            if self.store.set_key_check(tenant_id, nonce, ciphertext):
                return
            stored = self.store.get_key_check(tenant_id)

        nonce, ciphertext = stored
        try:
            marker = decrypt_value(ciphertext, key, nonce)
        except DecryptionFailed:
            marker = None
        if marker != _KEY_CHECK_MARKER:
            logger.warning("Vault password mismatch for tenant %d", tenant_id)
            raise PermissionDenied("Password does not unlock this tenant's vault")

    def login(self, username: str, password: str, replace: Optional[str] = None) -> tuple[str, Session]:
        """
        Authenticate and open a session.

        Tenant users get their tenant's key derived from *password* and the
        tenant salt.  Superusers get a session with no tenant and no key.
        If *replace* names an existing session it is destroyed: a login
        replaces the caller's session, it never stacks on top of it.

        Nothing is created if any step fails.
        """
        user = self.auth.authenticate(username, password)

        tenant = None
        key = None
        if not user.is_superuser:
            if user.tenant_id is None:
                raise PermissionDenied("User is not attached to a tenant")
            tenant = self.store.get_tenant(user.tenant_id)
            salt = self.store.get_tenant_salt(tenant.id)
            key = derive_key(password, salt)
            self._check_tenant_key(tenant.id, key)

        if replace:
            self.destroy(replace)

        token, session = self._insert(user, tenant, key)
        if tenant is not None:
            logger.info("User '%s' logged in to tenant %d", user.username, tenant.id)
        else:
            logger.info("Superuser '%s' logged in", user.username)
        return token, session

    async def login_async(
        self, username: str, password: str, replace: Optional[str] = None
    ) -> tuple[str, Session]:
        """:meth:`login` on the dedicated KDF worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            functools.partial(self.login, username, password, replace),
        )

    def logout(self, token: str) -> None:
        self.destroy(token)

    def close(self) -> None:
        """Drop every session and stop the worker pool."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.wipe()
        self._executor.shutdown(wait=False)
