"""Tests for the CredentialStore persistence layer."""

import pytest
from sqlalchemy import text

from core.errors import DuplicateError, InvalidInputError, NotFoundError, StorageError
from core.security import NONCE_SIZE, SALT_SIZE
from database import make_engine
from store import CredentialStore


def test_fresh_store_reports_schema_version(store):
    assert store.is_initialized()
    assert store.schema_version() == "2.0"


def test_uninitialized_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        assert not CredentialStore(engine).is_initialized()
    finally:
        engine.dispose()


def test_initialize_twice_requires_force(store):
    with pytest.raises(StorageError, match="already initialized"):
        store.initialize()


def test_initialize_force_wipes_everything(store, acme):
    store.upsert_entry(acme, "db", b"\x00" * NONCE_SIZE, b"\x01" * 20)
    store.initialize(force=True)
    assert store.schema_version() == "2.0"
    assert store.list_tenants() == []
    assert store.lookup_user("alice") is None


def test_sqlite_foreign_keys_enabled(store):
    with store.engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


# -- tenants ---------------------------------------------------------------


class TestTenants:
    def test_create_and_get(self, store):
        tenant_id = store.create_tenant("acme")
        tenant = store.get_tenant(tenant_id)
        assert tenant.id == tenant_id
        assert tenant.name == "acme"
        assert tenant.created_at is not None

    def test_name_is_trimmed(self, store):
        tenant_id = store.create_tenant("  acme  ")
        assert store.get_tenant(tenant_id).name == "acme"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name(self, store, name):
        with pytest.raises(InvalidInputError):
            store.create_tenant(name)

    def test_duplicate_name(self, store):
        store.create_tenant("acme")
        with pytest.raises(DuplicateError):
            store.create_tenant("acme")
        assert len(store.list_tenants()) == 1

    def test_list_is_sorted_by_name(self, store):
        for name in ("zeta", "alpha", "mid"):
            store.create_tenant(name)
        assert [t.name for t in store.list_tenants()] == ["alpha", "mid", "zeta"]

    def test_get_missing(self, store):
        with pytest.raises(NotFoundError):
            store.get_tenant(999)

    def test_salt_is_32_bytes_and_stable(self, store):
        tenant_id = store.create_tenant("acme")
        salt = store.get_tenant_salt(tenant_id)
        assert len(salt) == SALT_SIZE
        assert store.get_tenant_salt(tenant_id) == salt

    def test_salts_differ_between_tenants(self, store):
        first = store.create_tenant("acme")
        second = store.create_tenant("globex")
        assert store.get_tenant_salt(first) != store.get_tenant_salt(second)

    def test_salt_of_missing_tenant(self, store):
        with pytest.raises(NotFoundError):
            store.get_tenant_salt(999)

    def test_delete_cascades(self, store, acme, globex):
        store.upsert_entry(acme, "db", b"\x00" * NONCE_SIZE, b"\x01" * 20)
        store.upsert_entry(globex, "db", b"\x00" * NONCE_SIZE, b"\x02" * 20)

        store.delete_tenant(acme)

        with pytest.raises(NotFoundError):
            store.get_tenant(acme)
        assert store.lookup_user("alice") is None
        assert store.fetch_entries(acme) == []
        assert store.get_key_check(acme) is None
        with pytest.raises(NotFoundError):
            store.get_tenant_salt(acme)
        # the other tenant is untouched
        assert store.lookup_user("bob") is not None
        assert store.list_entry_names(globex) == ["db"]

    def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            store.delete_tenant(999)


# -- key check -------------------------------------------------------------


class TestKeyCheck:
    def test_unset(self, store, acme):
        assert store.get_key_check(acme) is None

    def test_first_writer_wins(self, store, acme):
        nonce = b"\x01" * NONCE_SIZE
        assert store.set_key_check(acme, nonce, b"first-ciphertext")
        assert not store.set_key_check(acme, b"\x02" * NONCE_SIZE, b"second")
        assert store.get_key_check(acme) == (nonce, b"first-ciphertext")

    def test_missing_tenant(self, store):
        with pytest.raises(NotFoundError):
            store.set_key_check(999, b"\x01" * NONCE_SIZE, b"x")


# -- users -----------------------------------------------------------------


class TestUsers:
    def test_create_tenant_user(self, store, acme):
        user = store.lookup_user("alice")
        assert user.tenant_id == acme
        assert not user.is_superuser
        assert user.password_hash.startswith("$pbkdf2-sha256$")

    def test_create_superuser(self, store, root):
        user = store.lookup_user("root")
        assert user.id == root
        assert user.is_superuser
        assert user.tenant_id is None

    def test_username_is_globally_unique(self, store, acme, globex):
        with pytest.raises(DuplicateError):
            store.create_tenant_user(globex, "alice", "pw2")
        with pytest.raises(DuplicateError):
            store.create_superuser("alice", "x")

    def test_unknown_tenant(self, store):
        with pytest.raises(NotFoundError):
            store.create_tenant_user(999, "carol", "pw")

    @pytest.mark.parametrize("username,password", [("", "pw"), ("  ", "pw"), ("carol", "")])
    def test_empty_fields(self, store, acme, username, password):
        with pytest.raises(InvalidInputError):
            store.create_tenant_user(acme, username, password)

    def test_lookup_missing(self, store):
        assert store.lookup_user("nobody") is None

    def test_list_users(self, store, acme, globex, root):
        store.create_tenant_user(acme, "aaron", "pw1")
        assert [u.username for u in store.list_users(acme)] == ["aaron", "alice"]
        assert [u.username for u in store.list_users()] == ["aaron", "alice", "bob", "root"]

    def test_list_users_of_missing_tenant(self, store):
        with pytest.raises(NotFoundError):
            store.list_users(999)

    def test_repr_hides_hash(self, store, acme):
        user = store.lookup_user("alice")
        assert user.password_hash not in repr(user)


# -- entries ---------------------------------------------------------------


class TestEntries:
    def test_upsert_and_fetch(self, store, acme):
        nonce = b"\x01" * NONCE_SIZE
        store.upsert_entry(acme, "db", nonce, b"cipher-one-with-tag")
        entry = store.fetch_entry(acme, "db")
        assert (entry.tenant_id, entry.name) == (acme, "db")
        assert entry.nonce == nonce
        assert entry.ciphertext == b"cipher-one-with-tag"

    def test_upsert_replaces_both_columns(self, store, acme):
        store.upsert_entry(acme, "db", b"\x01" * NONCE_SIZE, b"first")
        store.upsert_entry(acme, "db", b"\x02" * NONCE_SIZE, b"second")
        entry = store.fetch_entry(acme, "db")
        assert entry.nonce == b"\x02" * NONCE_SIZE
        assert entry.ciphertext == b"second"
        assert store.list_entry_names(acme) == ["db"]

    def test_upsert_for_missing_tenant(self, store):
        with pytest.raises(NotFoundError):
            store.upsert_entry(999, "db", b"\x01" * NONCE_SIZE, b"x")

    def test_fetch_missing(self, store, acme):
        with pytest.raises(NotFoundError):
            store.fetch_entry(acme, "nope")

    def test_tenant_isolation(self, store, acme, globex):
        store.upsert_entry(acme, "db", b"\x01" * NONCE_SIZE, b"acme-db")
        store.upsert_entry(globex, "db", b"\x02" * NONCE_SIZE, b"globex-db")
        store.upsert_entry(globex, "only-globex", b"\x03" * NONCE_SIZE, b"x")

        assert store.fetch_entry(acme, "db").ciphertext == b"acme-db"
        assert store.fetch_entry(globex, "db").ciphertext == b"globex-db"
        assert store.list_entry_names(acme) == ["db"]
        with pytest.raises(NotFoundError):
            store.fetch_entry(acme, "only-globex")
        with pytest.raises(NotFoundError):
            store.remove_entry(acme, "only-globex")

    def test_listing_is_sorted(self, store, acme):
        for name in ("b", "c", "a"):
            store.upsert_entry(acme, name, b"\x01" * NONCE_SIZE, b"x")
        assert store.list_entry_names(acme) == ["a", "b", "c"]
        assert [e.name for e in store.fetch_entries(acme)] == ["a", "b", "c"]

    def test_remove(self, store, acme):
        store.upsert_entry(acme, "db", b"\x01" * NONCE_SIZE, b"x")
        store.remove_entry(acme, "db")
        assert store.list_entry_names(acme) == []
        with pytest.raises(NotFoundError):
            store.remove_entry(acme, "db")
