"""Initial schema – tenants, users, tenant_meta, tenant_entries, db_meta

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Creates every table with its foreign keys (ON DELETE CASCADE towards
tenants) and writes the schema version marker.
"""

from alembic import op
import sqlalchemy as sa

# Alembic revision identifiers
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA_VERSION = "2.0"


def upgrade() -> None:
    # -- tenants --------------------------------------------------------
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # -- users (tenant users and superusers) ----------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "tenant_id",
            sa.Integer(),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("username", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_superuser", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_users_tenant", "users", ["tenant_id"])
    op.create_index("idx_users_username", "users", ["username"])

    # -- tenant_meta (salt, key check) ----------------------------------
    op.create_table(
        "tenant_meta",
        sa.Column(
            "tenant_id",
            sa.Integer(),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("value", sa.LargeBinary(), nullable=False),
    )

    # -- tenant_entries -------------------------------------------------
    op.create_table(
        "tenant_entries",
        sa.Column(
            "tenant_id",
            sa.Integer(),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("name", sa.String(255), primary_key=True),
        # 12-byte AES-GCM nonce
        sa.Column("nonce", sa.LargeBinary(12), nullable=False),
        # ciphertext || 16-byte GCM tag – never plaintext
        sa.Column("ciphertext", sa.LargeBinary(), nullable=False),
    )
    # Index on the most common query: "all entries for tenant X"
    op.create_index("idx_tenant_entries_tenant", "tenant_entries", ["tenant_id"])

    # -- db_meta --------------------------------------------------------
    db_meta = op.create_table(
        "db_meta",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("value", sa.String(255), nullable=True),
    )
    op.bulk_insert(db_meta, [{"key": "version", "value": SCHEMA_VERSION}])


def downgrade() -> None:
    op.drop_table("db_meta")
    op.drop_index("idx_tenant_entries_tenant", table_name="tenant_entries")
    op.drop_table("tenant_entries")
    op.drop_table("tenant_meta")
    op.drop_index("idx_users_username", table_name="users")
    op.drop_index("idx_users_tenant", table_name="users")
    op.drop_table("users")
    op.drop_table("tenants")
