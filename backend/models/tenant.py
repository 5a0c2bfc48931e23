# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Tenant and TenantMeta ORM models."""

from sqlalchemy import Column, Integer, String, LargeBinary, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class TenantMeta(Base):
    """
    Per-tenant key/value blobs.  ``salt`` holds the 32-byte KDF salt written
    once at tenant creation; ``key_check`` holds nonce || ciphertext of a
    marker encrypted under the tenant key on first unlock.
    """

    __tablename__ = "tenant_meta"

    tenant_id = Column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
    )
    key = Column(String(64), primary_key=True)
    value = Column(LargeBinary, nullable=False)
