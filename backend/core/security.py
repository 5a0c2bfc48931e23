# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Login password hashing / verification    (passlib pbkdf2_sha256)
2. Tenant key derivation                    (Argon2id, argon2-cffi)
3. Entry encryption / decryption            (AES-256-GCM)
4. Session bearer tokens                    (PyJWT / HS256)
5. FastAPI dependency guards                (get_current_session, require_*)
"""

import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt as _jwt        # PyJWT
from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps

from core.config import settings
from core.errors import (
    DecryptionFailed,
    KeyDerivationError,
    PermissionDenied,
    Unauthenticated,
)

SALT_SIZE = 32     # tenant salt, bytes
KEY_SIZE = 32      # AES-256
NONCE_SIZE = 12    # 96-bit GCM nonce
TAG_SIZE = 16      # GCM tag appended to every ciphertext

# Argon2id cost parameters.  These are part of the key format: every stored
# entry was encrypted under a key derived with exactly these values.
KDF_TIME_COST = 2
KDF_MEMORY_COST_KIB = 19456
KDF_PARALLELISM = 1

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – login password hashing
# ---------------------------------------------------------------------------
# The hash string embeds its own random salt and round count, so it is
# independent of the tenant salt used for key derivation.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """
    Hash a plaintext password with PBKDF2-SHA256.

    Returns the full passlib hash string, e.g. ``"$pbkdf2-sha256$600000$..."``.
    """
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of *plain* against a hash produced by
    :func:`hash_password`.

    Raises ``ValueError`` if *stored_hash* is not a pbkdf2_sha256 hash.
    """
    return _pbkdf2.verify(plain, stored_hash)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def prime_dummy_hash() -> None:
    """Build the dummy hash now so the first unknown-user login costs no extra."""
    _dummy_hash()


def dummy_verify(plain: str) -> bool:
    """Burn the same hashing work as a real check.  Always returns False."""
    _pbkdf2.verify(plain, _dummy_hash())
    return False


# ---------------------------------------------------------------------------
# 2.  Argon2id – tenant key derivation
# ---------------------------------------------------------------------------


def generate_salt() -> bytes:
    """Fresh 32-byte tenant salt."""
    return secrets.token_bytes(SALT_SIZE)


def derive_key(password: str, salt: bytes) -> bytes:
    """
    Derive the 32-byte tenant encryption key from *password* and the tenant
    *salt*.  Deterministic: the same inputs always give the same key, which
    is what lets a tenant reopen its entries without the key being stored.

    Raises ``KeyDerivationError`` on a malformed salt or an argon2 failure.
    The password content never causes a failure.
    """
    if len(salt) != SALT_SIZE:
        raise KeyDerivationError(f"Tenant salt must be {SALT_SIZE} bytes, got {len(salt)}")
    try:
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=bytes(salt),
            time_cost=KDF_TIME_COST,
            memory_cost=KDF_MEMORY_COST_KIB,
            parallelism=KDF_PARALLELISM,
            hash_len=KEY_SIZE,
            type=Type.ID,
        )
    except HashingError as exc:
        raise KeyDerivationError("Key derivation failed") from exc


# ---------------------------------------------------------------------------
# 3.  AES-256-GCM – entry encryption
# ---------------------------------------------------------------------------


def encrypt_value(plaintext: bytes, key: bytes) -> tuple[bytes, bytes]:
    """
    Encrypt *plaintext* with AES-256-GCM under *key*.

    Each call generates a fresh 12-byte random nonce – nonce reuse with the
    same key would be catastrophic for GCM, so callers never supply one.

    Returns
    -------
    ciphertext : bytes   ciphertext || 16-byte GCM tag
    nonce      : bytes   12-byte nonce
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Encryption key must be {KEY_SIZE} bytes")
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(bytes(key)).encrypt(nonce, plaintext, None)
    return ciphertext, nonce


def decrypt_value(ciphertext: bytes, key: bytes, nonce: bytes) -> bytes:
    """
    Decrypt a value produced by :func:`encrypt_value`.

    Raises ``DecryptionFailed`` for a wrong key, a modified ciphertext or tag,
    or a malformed nonce/key.  Callers cannot tell these apart.
    """
    if len(key) != KEY_SIZE or len(nonce) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
        raise DecryptionFailed()
    try:
        return AESGCM(bytes(key)).decrypt(bytes(nonce), bytes(ciphertext), None)
    except (InvalidTag, ValueError) as exc:
        raise DecryptionFailed() from exc


# ---------------------------------------------------------------------------
# 4.  JWT – session bearer tokens
# ---------------------------------------------------------------------------
# The token only names a server-side session (``sid``); the derived key never
# leaves the process.


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with HS256.

    *data* should contain at minimum: sub (username) and sid (session id).
    An ``exp`` claim is added automatically.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.session_ttl_minutes)
    )
    to_encode["exp"] = expire
    return _jwt.encode(to_encode, settings.secret_key, algorithm="HS256")


def decode_access_token(token: str, verify_exp: bool = True) -> dict:
    """
    Decode and verify a JWT.  Raises ``Unauthenticated`` on any failure
    (expired, bad signature, malformed).  The signature is always checked;
    *verify_exp* only controls the expiry check.
    """
    try:
        return _jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            options={"verify_exp": verify_exp},
        )
    except _jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired")
    except _jwt.InvalidTokenError:
        raise Unauthenticated("Invalid session token")


# ---------------------------------------------------------------------------
# 5.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint is POST /auth/login.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_bearer_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Dependency: the raw bearer token.  Raises 401 if the header is absent."""
    if not token:
        raise Unauthenticated()
    return token


def get_current_session(request: Request, token: str = Depends(get_bearer_token)):
    """
    Dependency: resolve the bearer token against the app's session table.
    Returns the live ``Session``.

    Raises 401 if the token is invalid, expired or logged out.
    """
    return request.app.state.sessions.resolve(token)


def require_superuser(session=Depends(get_current_session)):
    """Dependency: a session whose user is a superuser.  403 otherwise."""
    if not session.user.is_superuser:
        raise PermissionDenied("Superuser access required")
    return session


def require_tenant_session(session=Depends(get_current_session)):
    """
    Dependency: a tenant-user session holding a derived key.  Superusers are
    refused with 403 – they administer tenants but never see entries.
    """
    if session.user.is_superuser or session.tenant is None or session.key is None:
        raise PermissionDenied("Vault access requires a tenant user session")
    return session


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
