# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Command-line front end.

    python bin/tenvault.py init [--force]
    python bin/tenvault.py seed-superuser
    python bin/tenvault.py create-superuser USERNAME
    python bin/tenvault.py create-tenant NAME
    python bin/tenvault.py create-user --tenant ID USERNAME
    python bin/tenvault.py list-tenants
    python bin/tenvault.py delete-tenant ID
    python bin/tenvault.py add    --user USERNAME NAME VALUE
    python bin/tenvault.py get    --user USERNAME NAME
    python bin/tenvault.py list   --user USERNAME [--values]
    python bin/tenvault.py delete --user USERNAME NAME
    python bin/tenvault.py serve  [--host 0.0.0.0] [--port 8080]

Passwords are always read with getpass, never from the command line.  The
entry commands log in, run one operation and log out again.

``seed-superuser`` reads FIRST_SUPERUSER_USERNAME and FIRST_SUPERUSER_PASSWORD
from etc/app.conf; after the row is inserted those values are inert.
"""

import argparse
import getpass
import os
import sys

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/tenvault.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from auth.sessions import SessionManager   # noqa: E402
from core.config import settings           # noqa: E402
from core.errors import DuplicateError, VaultError  # noqa: E402
from database import engine                # noqa: E402
from store import CredentialStore          # noqa: E402
from vault.service import VaultService     # noqa: E402


def _prompt_new_password(prompt: str = "Password: ") -> str:
    first = getpass.getpass(prompt)
    second = getpass.getpass("Confirm password: ")
    if first != second:
        raise SystemExit("error: passwords do not match")
    if not first:
        raise SystemExit("error: password must not be empty")
    return first


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


def cmd_init(store: CredentialStore, args) -> None:
    store.initialize(force=args.force)
    print(f"Store initialized at {store.engine.url.render_as_string(hide_password=True)}")


def cmd_seed_superuser(store: CredentialStore, args) -> None:
    if not settings.first_superuser_username or not settings.first_superuser_password:
        print("[seed] FIRST_SUPERUSER_USERNAME or FIRST_SUPERUSER_PASSWORD not set in etc/app.conf – nothing to do.")
        return
    try:
        store.create_superuser(settings.first_superuser_username, settings.first_superuser_password)
    except DuplicateError:
        print(f"[seed] User '{settings.first_superuser_username}' already exists – skipping.")
        return
    print(f"[seed] Superuser '{settings.first_superuser_username}' created successfully.")


def cmd_create_superuser(store: CredentialStore, args) -> None:
    store.create_superuser(args.username, _prompt_new_password())
    print(f"Superuser '{args.username}' created.")


def cmd_create_tenant(store: CredentialStore, args) -> None:
    tenant_id = store.create_tenant(args.name)
    print(f"Tenant '{args.name}' created with ID: {tenant_id}")


def cmd_create_user(store: CredentialStore, args) -> None:
    store.create_tenant_user(args.tenant, args.username, _prompt_new_password())
    print(f"User '{args.username}' created for tenant {args.tenant}")


def cmd_list_tenants(store: CredentialStore, args) -> None:
    tenants = store.list_tenants()
    if not tenants:
        print("No tenants.")
        return
    for tenant in tenants:
        print(f"{tenant.id:>5}  {tenant.name}  (created {tenant.created_at})")


def cmd_delete_tenant(store: CredentialStore, args) -> None:
    store.delete_tenant(args.tenant_id)
    print(f"Tenant {args.tenant_id} deleted with its users and entries.")


# ---------------------------------------------------------------------------
# Entries – one login per invocation
# ---------------------------------------------------------------------------


def _with_vault(store: CredentialStore, username: str, action) -> None:
    sessions = SessionManager(store, workers=1)
    try:
        password = getpass.getpass(f"Password for {username}: ")
        token, session = sessions.login(username, password)
        try:
            action(VaultService(store, session))
        finally:
            sessions.logout(token)
    finally:
        sessions.close()


def cmd_add(store: CredentialStore, args) -> None:
    def run(vault: VaultService):
        vault.add_entry(args.name, args.value)
        print("Entry added.")

    _with_vault(store, args.user, run)


def cmd_get(store: CredentialStore, args) -> None:
    _with_vault(store, args.user, lambda vault: print(vault.get_entry(args.name)))


def cmd_list(store: CredentialStore, args) -> None:
    def run(vault: VaultService):
        if not args.values:
            for name in vault.list_names():
                print(name)
            return
        listing = vault.list_entries()
        for name, value in listing.entries:
            print(f"{name}: {value}")
        listing.raise_for_failures()

    _with_vault(store, args.user, run)


def cmd_delete(store: CredentialStore, args) -> None:
    def run(vault: VaultService):
        vault.delete_entry(args.name)
        print("Entry deleted.")

    _with_vault(store, args.user, run)


def cmd_serve(store: CredentialStore, args) -> None:
    import uvicorn

    from main import create_app

    print(f"Starting web server on http://{args.host}:{args.port}")
    uvicorn.run(create_app(store), host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tenvault", description="Multi-tenant secret store")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="create the database schema")
    p.add_argument("--force", action="store_true", help="drop and recreate an existing store")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("seed-superuser", help="create the superuser named in etc/app.conf")
    p.set_defaults(func=cmd_seed_superuser)

    p = sub.add_parser("create-superuser", help="create a superuser")
    p.add_argument("username")
    p.set_defaults(func=cmd_create_superuser)

    p = sub.add_parser("create-tenant", help="create a tenant")
    p.add_argument("name")
    p.set_defaults(func=cmd_create_tenant)

    p = sub.add_parser("create-user", help="create a tenant user")
    p.add_argument("--tenant", type=int, required=True, help="tenant id")
    p.add_argument("username")
    p.set_defaults(func=cmd_create_user)

    p = sub.add_parser("list-tenants", help="list tenants")
    p.set_defaults(func=cmd_list_tenants)

    p = sub.add_parser("delete-tenant", help="delete a tenant, its users and entries")
    p.add_argument("tenant_id", type=int)
    p.set_defaults(func=cmd_delete_tenant)

    p = sub.add_parser("add", help="add or replace an entry")
    p.add_argument("--user", required=True)
    p.add_argument("name")
    p.add_argument("value")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("get", help="print an entry's value")
    p.add_argument("--user", required=True)
    p.add_argument("name")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("list", help="list entry names")
    p.add_argument("--user", required=True)
    p.add_argument("--values", action="store_true", help="decrypt and print values too")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("delete", help="delete an entry")
    p.add_argument("--user", required=True)
    p.add_argument("name")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("serve", help="run the HTTP API")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8080)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None, store: CredentialStore = None) -> int:
    args = build_parser().parse_args(argv)
    store = store or CredentialStore(engine)
    try:
        args.func(store, args)
    except VaultError as exc:
        print(f"error: {exc.kind.value}: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
