"""
Shared test fixtures for the tenvault test suite.

Every test gets its own SQLite file under pytest's tmp_path, migrated to the
current schema.  Password hashing is turned down to a handful of rounds so
the suite stays fast; Argon2 key derivation keeps its real parameters.
"""

import os
import sys
import tempfile
from pathlib import Path

# Add backend source directory to path so imports resolve
BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

# Settings are read at import time, so the environment must be ready first
_SCRATCH = tempfile.mkdtemp(prefix="tenvault-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_SCRATCH}/default.db"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["SECRET_KEY"] = "tenvault-test-signing-key-0123456789abcdef"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session as OrmSession  # noqa: E402

from auth.sessions import SessionManager  # noqa: E402
from database import make_engine  # noqa: E402
from main import create_app  # noqa: E402
from models.entry import TenantEntry  # noqa: E402
from store import CredentialStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """A freshly initialized store backed by a temp SQLite file."""
    engine = make_engine(f"sqlite:///{tmp_path / 'vault.db'}")
    credential_store = CredentialStore(engine)
    credential_store.initialize()
    yield credential_store
    engine.dispose()


@pytest.fixture
def sessions(store):
    manager = SessionManager(store, workers=1)
    yield manager
    manager.close()


@pytest.fixture
def acme(store):
    """Tenant 'acme' with user alice/pw1.  Returns the tenant id."""
    tenant_id = store.create_tenant("acme")
    store.create_tenant_user(tenant_id, "alice", "pw1")
    return tenant_id


@pytest.fixture
def globex(store):
    """Tenant 'globex' with user bob/pw2.  Returns the tenant id."""
    tenant_id = store.create_tenant("globex")
    store.create_tenant_user(tenant_id, "bob", "pw2")
    return tenant_id


@pytest.fixture
def root(store):
    """Superuser root/rootpw.  Returns the user id."""
    return store.create_superuser("root", "rootpw")


@pytest.fixture
def corrupt_entry(store):
    """Flip one bit of a stored ciphertext, bypassing the store API."""

    def _corrupt(tenant_id, name, index=0):
        with OrmSession(store.engine) as db:
            row = db.get(TenantEntry, (tenant_id, name))
            data = bytearray(row.ciphertext)
            data[index] ^= 0x01
            row.ciphertext = bytes(data)
            db.commit()

    return _corrupt


@pytest.fixture
def client(store, sessions):
    """TestClient wrapping an app bound to the per-test store."""
    with TestClient(create_app(store, sessions)) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Log in over HTTP and return the Authorization header."""

    def _login(username, password):
        res = client.post("/auth/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        return {"Authorization": f"Bearer {res.json()['data']['access_token']}"}

    return _login
