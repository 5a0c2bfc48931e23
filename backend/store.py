# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
CredentialStore – durable storage of tenants, users, tenant salts and
encrypted entries.

Every public method opens its own short-lived ORM session, commits or rolls
back, and returns plain frozen records so no ORM state leaks to callers.

Security invariants enforced here
---------------------------------
* Every entry query is filtered by ``tenant_id``.  There is no method that
  reads or deletes entries across tenants.
* The tenant salt is generated in the same transaction that creates the
  tenant and is never rewritten.
* An entry write replaces nonce and ciphertext in one statement (upsert).
* Deleting a tenant removes its entries, meta rows and users in the same
  transaction as the tenant row itself.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import delete, inspect, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.errors import (
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    StorageError,
    VaultError,
)
from core.logger import logger
from core.security import NONCE_SIZE, SALT_SIZE, generate_salt, hash_password
from database import drop_schema, upgrade_schema
from models.entry import DbMeta, TenantEntry
from models.tenant import Tenant, TenantMeta
from models.user import User

SALT_KEY = "salt"
KEY_CHECK_KEY = "key_check"


# ---------------------------------------------------------------------------
# Records handed to callers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TenantRecord:
    id: int
    name: str
    created_at: Optional[datetime]


@dataclass(frozen=True)
class UserRecord:
    id: int
    tenant_id: Optional[int]
    username: str
    password_hash: str
    is_superuser: bool
    created_at: Optional[datetime] = None

    def __repr__(self) -> str:
        # keep the hash out of logs and tracebacks
        return (
            f"UserRecord(id={self.id}, tenant_id={self.tenant_id}, "
            f"username={self.username!r}, is_superuser={self.is_superuser})"
        )


@dataclass(frozen=True)
class EntryRecord:
    tenant_id: int
    name: str
    nonce: bytes
    ciphertext: bytes


def _tenant_record(row: Tenant) -> TenantRecord:
    return TenantRecord(id=row.id, name=row.name, created_at=row.created_at)


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        username=row.username,
        password_hash=row.password_hash,
        is_superuser=bool(row.is_superuser),
        created_at=row.created_at,
    )


def _entry_record(row: TenantEntry) -> EntryRecord:
    return EntryRecord(
        tenant_id=row.tenant_id,
        name=row.name,
        nonce=bytes(row.nonce),
        ciphertext=bytes(row.ciphertext),
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class CredentialStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """
        One unit of work: commit on success, roll back on any error.  Core
        errors pass through untouched; anything SQLAlchemy raises becomes a
        ``StorageError``.
        """
        db = self._sessions()
        try:
            yield db
            db.commit()
        except VaultError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Storage failure: %s", exc.__class__.__name__)
            raise StorageError(f"Storage failure: {exc.__class__.__name__}") from exc
        finally:
            db.close()

    # -- schema ---------------------------------------------------------

    def is_initialized(self) -> bool:
        try:
            return inspect(self.engine).has_table(DbMeta.__tablename__)
        except SQLAlchemyError as exc:
            raise StorageError("Cannot inspect database") from exc

    def initialize(self, force: bool = False) -> None:
        """
        Create the schema by running the Alembic migrations to head.

        Refuses to touch an already-initialized store unless *force* is set,
        in which case every table (and every secret in it) is dropped first.
        """
        if self.is_initialized():
            if not force:
                raise StorageError(
                    "Store already initialized. Use --force to delete and reinitialize."
                )
            logger.warning("Dropping existing schema before re-initialization")
            try:
                drop_schema(self.engine)
            except SQLAlchemyError as exc:
                raise StorageError("Could not drop existing schema") from exc
        try:
            upgrade_schema(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError("Schema migration failed") from exc
        logger.info("Store initialized (schema version %s)", self.schema_version())

    def schema_version(self) -> Optional[str]:
        with self._session() as db:
            row = db.get(DbMeta, "version")
            return row.value if row else None

    # -- tenants --------------------------------------------------------

    def create_tenant(self, name: str) -> int:
        """Create a tenant and its 32-byte salt.  Returns the new tenant id."""
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Tenant name must not be empty")

        try:
            with self._session() as db:
                if db.scalar(select(Tenant.id).where(Tenant.name == name)) is not None:
                    raise DuplicateError(f"Tenant '{name}' already exists")
                tenant = Tenant(name=name)
                db.add(tenant)
                db.flush()  # get tenant.id before commit
                db.add(TenantMeta(tenant_id=tenant.id, key=SALT_KEY, value=generate_salt()))
                tenant_id = tenant.id
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateError(f"Tenant '{name}' already exists") from exc
            raise

        logger.info("Tenant '%s' created with id %d", name, tenant_id)
        return tenant_id

    def get_tenant(self, tenant_id: int) -> TenantRecord:
        with self._session() as db:
            row = db.get(Tenant, tenant_id)
            if row is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            return _tenant_record(row)

    def list_tenants(self) -> list[TenantRecord]:
        with self._session() as db:
            rows = db.scalars(select(Tenant).order_by(Tenant.name)).all()
            return [_tenant_record(r) for r in rows]

    def get_tenant_salt(self, tenant_id: int) -> bytes:
        with self._session() as db:
            row = db.get(TenantMeta, (tenant_id, SALT_KEY))
            if row is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            salt = bytes(row.value)
        if len(salt) != SALT_SIZE:
            raise StorageError(f"Invalid salt length for tenant {tenant_id}")
        return salt

    def delete_tenant(self, tenant_id: int) -> None:
        """Delete a tenant together with its users, meta rows and entries."""
        with self._session() as db:
            if db.get(Tenant, tenant_id) is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            db.execute(delete(TenantEntry).where(TenantEntry.tenant_id == tenant_id))
            db.execute(delete(TenantMeta).where(TenantMeta.tenant_id == tenant_id))
            db.execute(delete(User).where(User.tenant_id == tenant_id))
            db.execute(delete(Tenant).where(Tenant.id == tenant_id))
        logger.info("Tenant %d deleted with its users and entries", tenant_id)

    # -- key check ------------------------------------------------------

    def get_key_check(self, tenant_id: int) -> Optional[tuple[bytes, bytes]]:
        """Return ``(nonce, ciphertext)`` of the tenant's key marker, if set."""
        with self._session() as db:
            row = db.get(TenantMeta, (tenant_id, KEY_CHECK_KEY))
            if row is None:
                return None
            blob = bytes(row.value)
        return blob[:NONCE_SIZE], blob[NONCE_SIZE:]

    def set_key_check(self, tenant_id: int, nonce: bytes, ciphertext: bytes) -> bool:
        """
        Store the tenant's key marker.  Returns False if one already exists
        (a concurrent first unlock won the race); the existing one is kept.
        """
        try:
            with self._session() as db:
                if db.get(Tenant, tenant_id) is None:
                    raise NotFoundError(f"Tenant {tenant_id} not found")
                if db.get(TenantMeta, (tenant_id, KEY_CHECK_KEY)) is not None:
                    return False
                db.add(TenantMeta(tenant_id=tenant_id, key=KEY_CHECK_KEY, value=nonce + ciphertext))
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                return False
            raise
        return True

    # -- users ----------------------------------------------------------

    def _create_user(self, username: str, password: str, tenant_id: Optional[int]) -> int:
        if not username or not username.strip():
            raise InvalidInputError("Username must not be empty")
        if not password:
            raise InvalidInputError("Password must not be empty")

        # Hash outside the transaction
        password_hash = hash_password(password)
        try:
            with self._session() as db:
                if tenant_id is not None and db.get(Tenant, tenant_id) is None:
                    raise NotFoundError(f"Tenant {tenant_id} not found")
                if db.scalar(select(User.id).where(User.username == username)) is not None:
                    raise DuplicateError(f"User '{username}' already exists")
                user = User(
                    tenant_id=tenant_id,
                    username=username,
                    password_hash=password_hash,
                    is_superuser=tenant_id is None,
                )
                db.add(user)
                db.flush()
                user_id = user.id
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateError(f"User '{username}' already exists") from exc
            raise
        return user_id

    def create_superuser(self, username: str, password: str) -> int:
        user_id = self._create_user(username, password, tenant_id=None)
        logger.info("Superuser '%s' created", username)
        return user_id

    def create_tenant_user(self, tenant_id: int, username: str, password: str) -> int:
        user_id = self._create_user(username, password, tenant_id=tenant_id)
        logger.info("User '%s' created for tenant %d", username, tenant_id)
        return user_id

    def lookup_user(self, username: str) -> Optional[UserRecord]:
        """Fetch a user by username, or None.  Used only by authentication."""
        with self._session() as db:
            row = db.scalar(select(User).where(User.username == username))
            return _user_record(row) if row else None

    def list_users(self, tenant_id: Optional[int] = None) -> list[UserRecord]:
        with self._session() as db:
            stmt = select(User).order_by(User.username)
            if tenant_id is not None:
                if db.get(Tenant, tenant_id) is None:
                    raise NotFoundError(f"Tenant {tenant_id} not found")
                stmt = stmt.where(User.tenant_id == tenant_id)
            return [_user_record(r) for r in db.scalars(stmt).all()]

    # -- entries --------------------------------------------------------

    def _upsert_statement(self, dialect: str, values: dict):
        if dialect == "sqlite":
            stmt = sqlite.insert(TenantEntry).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=["tenant_id", "name"],
                set_={"nonce": stmt.excluded.nonce, "ciphertext": stmt.excluded.ciphertext},
            )
        if dialect == "postgresql":
            stmt = postgresql.insert(TenantEntry).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=["tenant_id", "name"],
                set_={"nonce": stmt.excluded.nonce, "ciphertext": stmt.excluded.ciphertext},
            )
        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(TenantEntry).values(**values)
            return stmt.on_duplicate_key_update(
                nonce=stmt.inserted.nonce, ciphertext=stmt.inserted.ciphertext
            )
        return None

    def upsert_entry(self, tenant_id: int, name: str, nonce: bytes, ciphertext: bytes) -> None:
        """Insert or replace the entry ``(tenant_id, name)``."""
        values = {"tenant_id": tenant_id, "name": name, "nonce": nonce, "ciphertext": ciphertext}
        try:
            with self._session() as db:
                stmt = self._upsert_statement(self.engine.dialect.name, values)
                if stmt is not None:
                    db.execute(stmt)
                    return
                row = db.get(TenantEntry, (tenant_id, name))
                if row is None:
                    db.add(TenantEntry(**values))
                else:
                    row.nonce = nonce
                    row.ciphertext = ciphertext
        except StorageError as exc:
            # FK failure: the tenant vanished underneath the session
            if isinstance(exc.__cause__, IntegrityError):
                raise NotFoundError(f"Tenant {tenant_id} not found") from exc
            raise

    def fetch_entry(self, tenant_id: int, name: str) -> EntryRecord:
        with self._session() as db:
            row = db.get(TenantEntry, (tenant_id, name))
            if row is None:
                raise NotFoundError(f"Entry '{name}' not found")
            return _entry_record(row)

    def fetch_entries(self, tenant_id: int) -> list[EntryRecord]:
        with self._session() as db:
            rows = db.scalars(
                select(TenantEntry)
                .where(TenantEntry.tenant_id == tenant_id)
                .order_by(TenantEntry.name)
            ).all()
            return [_entry_record(r) for r in rows]

    def list_entry_names(self, tenant_id: int) -> list[str]:
        with self._session() as db:
            return list(
                db.scalars(
                    select(TenantEntry.name)
                    .where(TenantEntry.tenant_id == tenant_id)
                    .order_by(TenantEntry.name)
                ).all()
            )

    def remove_entry(self, tenant_id: int, name: str) -> None:
        with self._session() as db:
            result = db.execute(
                delete(TenantEntry).where(
                    TenantEntry.tenant_id == tenant_id, TenantEntry.name == name
                )
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Entry '{name}' not found")
