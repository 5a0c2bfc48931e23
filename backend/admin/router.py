# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – tenant and tenant-user lifecycle.

Every endpoint in this router is guarded by ``require_superuser``.  A request
that carries a valid token but belongs to a tenant user receives 403 before
any business logic runs.  Superusers never see entries.
"""

from fastapi import APIRouter, Depends, Request, status

from admin.schemas import (
    CreateTenantRequest,
    CreateUserRequest,
    TenantListResponse,
    TenantRow,
    UserListResponse,
    UserRow,
)
from core.logger import logger
from core.responses import Envelope, ok
from core.security import require_superuser

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# POST /admin/tenants  – create a tenant
# ---------------------------------------------------------------------------


@router.post("/tenants", response_model=Envelope[TenantRow], status_code=status.HTTP_201_CREATED)
def create_tenant(body: CreateTenantRequest, request: Request, admin=Depends(require_superuser)):
    """Create a tenant and its encryption salt."""
    store = request.app.state.store
    tenant_id = store.create_tenant(body.name)
    logger.info("Superuser '%s' created tenant %d", admin.user.username, tenant_id)
    return ok(TenantRow.model_validate(store.get_tenant(tenant_id)))


# ---------------------------------------------------------------------------
# GET /admin/tenants  – list tenants
# ---------------------------------------------------------------------------


@router.get("/tenants", response_model=Envelope[TenantListResponse])
def list_tenants(request: Request, admin=Depends(require_superuser)):
    tenants = request.app.state.store.list_tenants()
    return ok(TenantListResponse(tenants=[TenantRow.model_validate(t) for t in tenants]))


# ---------------------------------------------------------------------------
# DELETE /admin/tenants/{id}  – delete a tenant and everything it owns
# ---------------------------------------------------------------------------


@router.delete("/tenants/{tenant_id}", response_model=Envelope[str])
def delete_tenant(tenant_id: int, request: Request, admin=Depends(require_superuser)):
    """Remove the tenant, its users and its entries, and close their sessions."""
    request.app.state.store.delete_tenant(tenant_id)
    request.app.state.sessions.purge_tenant(tenant_id)
    logger.info("Superuser '%s' deleted tenant %d", admin.user.username, tenant_id)
    return ok("Tenant deleted")


# ---------------------------------------------------------------------------
# POST /admin/tenants/{id}/users  – create a tenant user
# ---------------------------------------------------------------------------


@router.post(
    "/tenants/{tenant_id}/users",
    response_model=Envelope[UserRow],
    status_code=status.HTTP_201_CREATED,
)
def create_tenant_user(
    tenant_id: int,
    body: CreateUserRequest,
    request: Request,
    admin=Depends(require_superuser),
):
    """
    Create a user inside a tenant.  The tenant's entries are encrypted with a
    key derived from the login password, so every user of one tenant must be
    given the same password as the tenant's first user.
    """
    store = request.app.state.store
    store.create_tenant_user(tenant_id, body.username, body.password)
    user = store.lookup_user(body.username)
    return ok(UserRow.model_validate(user))


# ---------------------------------------------------------------------------
# GET /admin/tenants/{id}/users  – list a tenant's users
# ---------------------------------------------------------------------------


@router.get("/tenants/{tenant_id}/users", response_model=Envelope[UserListResponse])
def list_tenant_users(tenant_id: int, request: Request, admin=Depends(require_superuser)):
    users = request.app.state.store.list_users(tenant_id)
    return ok(UserListResponse(users=[UserRow.model_validate(u) for u in users]))
