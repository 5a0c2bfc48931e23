# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""TenantEntry and DbMeta ORM models."""

from sqlalchemy import Column, Integer, String, LargeBinary, ForeignKey

from database import Base


class TenantEntry(Base):
    __tablename__ = "tenant_entries"

    # Cascade delete: removing a tenant removes all its entries atomically.
    tenant_id = Column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    name = Column(String(255), primary_key=True)
    # 12-byte AES-GCM nonce, fresh on every write.
    nonce = Column(LargeBinary(12), nullable=False)
    # ciphertext || 16-byte GCM authentication tag.  Never plaintext.
    ciphertext = Column(LargeBinary, nullable=False)


class DbMeta(Base):
    """Schema-level markers, e.g. ``version``."""

    __tablename__ = "db_meta"

    key = Column(String(64), primary_key=True)
    value = Column(String(255), nullable=True)
