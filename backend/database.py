# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine factory, declarative base, and the Alembic runner used to
create or reset the schema.
"""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base

from core.config import settings

_MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str) -> Engine:
    """
    Build an engine for *url*.  For SQLite files the parent directory is
    created and foreign-key enforcement is switched on.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        if parsed.database and parsed.database != ":memory:":
            db_path = Path(parsed.database).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            parsed = parsed.set(database=str(db_path))
        engine = create_engine(parsed, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    # pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
    return create_engine(url, pool_pre_ping=True)


def alembic_config(engine: Engine) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(_MIGRATIONS_DIR))
    cfg.set_main_option(
        "sqlalchemy.url",
        engine.url.render_as_string(hide_password=False).replace("%", "%%"),
    )
    return cfg


def upgrade_schema(engine: Engine) -> None:
    """Apply every pending migration, reusing *engine*'s connection."""
    cfg = alembic_config(engine)
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        command.upgrade(cfg, "head")


def drop_schema(engine: Engine) -> None:
    """Drop every application table plus Alembic's version table."""
    # Models must be registered on Base.metadata before drop_all
    import models.tenant  # noqa: F401
    import models.user    # noqa: F401
    import models.entry   # noqa: F401

    Base.metadata.drop_all(engine)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))


# Default engine for the configured database.  Nothing connects until first use.
engine = make_engine(settings.database_url)
