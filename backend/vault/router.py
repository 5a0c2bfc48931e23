# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Vault endpoints – CRUD for the caller's tenant entries.

Security invariants enforced by every handler
---------------------------------------------
* A bearer token naming a live tenant-user session is required (via
  ``require_tenant_session``).  Superuser sessions get 403.
* The tenant is taken from the session, never from the URL or body, so an
  entry of another tenant cannot even be named.
* Plaintext values are never logged.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from core.errors import ErrorKind
from core.responses import Envelope, fail, ok
from core.security import require_tenant_session
from vault.schemas import EntryData, EntryListData, EntryWrite
from vault.service import VaultService

router = APIRouter(prefix="/vault", tags=["vault"])


def get_vault(request: Request, session=Depends(require_tenant_session)) -> VaultService:
    """Dependency: a VaultService bound to the caller's session."""
    return VaultService(request.app.state.store, session)


# ---------------------------------------------------------------------------
# GET /vault/entries  – decrypt and list every entry of the tenant
# ---------------------------------------------------------------------------


@router.get("/entries", response_model=Envelope[EntryListData])
def list_entries(vault: VaultService = Depends(get_vault)):
    """
    Return every entry with its plaintext value.

    If some rows cannot be decrypted the response is an error envelope
    (500, ``decryption_failed``) that names them, with the readable entries
    still in ``data``.
    """
    listing = vault.list_entries()
    data = EntryListData(
        entries=[EntryData(name=n, value=v) for n, v in listing.entries],
        failed=listing.failed,
    )
    if not listing.ok:
        return JSONResponse(
            status_code=500,
            content=fail(
                ErrorKind.DECRYPTION_FAILED.value,
                "Entries could not be decrypted: " + ", ".join(listing.failed),
                data=data.model_dump(),
            ),
        )
    return ok(data)


# ---------------------------------------------------------------------------
# PUT /vault/entries/{name}  – create or replace an entry
# ---------------------------------------------------------------------------


@router.put("/entries/{name}", response_model=Envelope[str])
def put_entry(name: str, body: EntryWrite, vault: VaultService = Depends(get_vault)):
    """Encrypt the supplied value under the session key and store it."""
    vault.add_entry(name, body.value)
    return ok("Entry saved")


# ---------------------------------------------------------------------------
# GET /vault/entries/{name}  – reveal one entry
# ---------------------------------------------------------------------------


@router.get("/entries/{name}", response_model=Envelope[EntryData])
def get_entry(name: str, vault: VaultService = Depends(get_vault)):
    return ok(EntryData(name=name, value=vault.get_entry(name)))


# ---------------------------------------------------------------------------
# DELETE /vault/entries/{name}  – remove an entry
# ---------------------------------------------------------------------------


@router.delete("/entries/{name}", response_model=Envelope[str])
def delete_entry(name: str, vault: VaultService = Depends(get_vault)):
    vault.delete_entry(name)
    return ok("Entry deleted")
