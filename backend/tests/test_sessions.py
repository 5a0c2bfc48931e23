"""Tests for AuthenticationService and SessionManager."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session as OrmSession

from auth.service import AuthenticationService
from auth.sessions import SessionManager
from core import security
from core.errors import InvalidCredentials, PermissionDenied, Unauthenticated
from core.security import KEY_SIZE, derive_key
from models.user import User


# -- authentication --------------------------------------------------------


class TestAuthenticate:
    def test_success(self, store, acme):
        user = AuthenticationService(store).authenticate("alice", "pw1")
        assert user.username == "alice"
        assert user.tenant_id == acme

    def test_wrong_password_and_unknown_user_look_the_same(self, store, acme):
        auth = AuthenticationService(store)
        with pytest.raises(InvalidCredentials) as wrong:
            auth.authenticate("alice", "nope")
        with pytest.raises(InvalidCredentials) as unknown:
            auth.authenticate("mallory", "nope")
        assert wrong.value.kind == unknown.value.kind
        assert wrong.value.message == unknown.value.message

    def test_unreadable_hash_is_a_failed_login(self, store, acme):
        with OrmSession(store.engine) as db:
            db.query(User).filter(User.username == "alice").update({"password_hash": "garbage"})
            db.commit()
        with pytest.raises(InvalidCredentials):
            AuthenticationService(store).authenticate("alice", "pw1")


# -- sessions --------------------------------------------------------------


class TestLogin:
    def test_tenant_user_gets_derived_key(self, store, sessions, acme):
        token, session = sessions.login("alice", "pw1")
        assert token
        assert session.tenant.id == acme
        assert session.is_unlocked
        assert bytes(session.key) == derive_key("pw1", store.get_tenant_salt(acme))
        assert len(session.key) == KEY_SIZE
        assert sessions.resolve(token) is session

    def test_superuser_has_no_tenant_or_key(self, sessions, root):
        token, session = sessions.login("root", "rootpw")
        assert session.user.is_superuser
        assert session.tenant is None
        assert not session.is_unlocked
        assert sessions.resolve(token) is session

    def test_failed_login_creates_nothing(self, sessions, acme):
        with pytest.raises(InvalidCredentials):
            sessions.login("alice", "wrong")
        with pytest.raises(InvalidCredentials):
            sessions.login("nobody", "pw1")
        assert len(sessions) == 0

    def test_first_login_records_key_check(self, store, sessions, acme):
        assert store.get_key_check(acme) is None
        sessions.login("alice", "pw1")
        assert store.get_key_check(acme) is not None

    def test_second_user_with_same_password(self, store, sessions, acme):
        store.create_tenant_user(acme, "aaron", "pw1")
        _, first = sessions.login("alice", "pw1")
        _, second = sessions.login("aaron", "pw1")
        assert bytes(first.key) == bytes(second.key)

    def test_second_user_with_other_password_is_refused(self, store, sessions, acme):
        store.create_tenant_user(acme, "aaron", "different")
        sessions.login("alice", "pw1")
        with pytest.raises(PermissionDenied):
            sessions.login("aaron", "different")
        assert len(sessions) == 1

    def test_replace_closes_previous_session(self, sessions, acme, globex):
        old_token, _ = sessions.login("alice", "pw1")
        new_token, session = sessions.login("bob", "pw2", replace=old_token)
        with pytest.raises(Unauthenticated):
            sessions.resolve(old_token)
        assert sessions.resolve(new_token) is session
        assert len(sessions) == 1

    def test_failed_login_keeps_previous_session(self, sessions, acme):
        token, session = sessions.login("alice", "pw1")
        with pytest.raises(InvalidCredentials):
            sessions.login("alice", "wrong", replace=token)
        assert sessions.resolve(token) is session

    def test_login_async(self, sessions, acme):
        token, session = asyncio.run(sessions.login_async("alice", "pw1"))
        assert sessions.resolve(token) is session
        assert session.is_unlocked

    def test_concurrent_logins_of_two_tenants(self, sessions, acme, globex):
        async def both():
            return await asyncio.gather(
                sessions.login_async("alice", "pw1"),
                sessions.login_async("bob", "pw2"),
            )

        (_, alice), (_, bob) = asyncio.run(both())
        assert alice.tenant.id == acme
        assert bob.tenant.id == globex
        assert bytes(alice.key) != bytes(bob.key)


class TestResolve:
    def test_logout_wipes_key(self, sessions, acme):
        token, session = sessions.login("alice", "pw1")
        sessions.logout(token)
        assert session.key is None
        with pytest.raises(Unauthenticated):
            sessions.resolve(token)

    def test_logout_of_unknown_token_is_silent(self, sessions):
        sessions.logout("not-a-token")

    def test_forged_token(self, sessions, acme):
        token, _ = sessions.login("alice", "pw1")
        with pytest.raises(Unauthenticated):
            sessions.resolve(token + "x")

    def test_token_from_other_manager_is_unknown(self, store, sessions, acme):
        other = SessionManager(store, workers=1)
        try:
            token, _ = other.login("alice", "pw1")
            with pytest.raises(Unauthenticated):
                sessions.resolve(token)
        finally:
            other.close()

    def test_expired_session(self, store, acme):
        manager = SessionManager(store, ttl=timedelta(seconds=-1), workers=1)
        try:
            token, session = manager.login("alice", "pw1")
            with pytest.raises(Unauthenticated, match="expired"):
                manager.resolve(token)
            assert manager.purge_expired() == 1
            assert session.key is None
        finally:
            manager.close()

    def test_purge_tenant(self, sessions, acme, globex, root):
        alice_token, _ = sessions.login("alice", "pw1")
        bob_token, _ = sessions.login("bob", "pw2")
        root_token, _ = sessions.login("root", "rootpw")

        assert sessions.purge_tenant(acme) == 1
        with pytest.raises(Unauthenticated):
            sessions.resolve(alice_token)
        sessions.resolve(bob_token)
        sessions.resolve(root_token)

    def test_close_drops_everything(self, store, acme):
        manager = SessionManager(store, workers=1)
        token, session = manager.login("alice", "pw1")
        manager.close()
        assert len(manager) == 0
        assert session.key is None


def test_dummy_hash_is_built_before_first_login(store):
    security._dummy_hash.cache_clear()
    AuthenticationService(store)
    assert security._dummy_hash.cache_info().currsize == 1
