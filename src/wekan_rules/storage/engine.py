"""SQLite engine, sessions and schema setup for the rules database.

Several RulesBoards (the CLI, a host application) may open the same file at
once; WAL mode and a busy timeout let their writes queue instead of failing.
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wekan_rules.storage.schema import Base, MetaRow

SCHEMA_VERSION = "1"


def create_rules_engine(db_path: str = ":memory:", *, url: str | None = None) -> Engine:
    """Open the rules database.

    *db_path* is a file path or ``":memory:"``. An in-memory database lives
    on one shared connection so that every thread sees the same tables.
    *url* replaces *db_path* when given and must be a ``sqlite://`` URL;
    the repositories rely on SQLite's ``ON CONFLICT`` upsert.

    Raises:
        ValueError: If *url* names another database backend.
    """
    if url is not None:
        if make_url(url).get_backend_name() != "sqlite":
            raise ValueError(f"Rules storage requires SQLite, got {url!r}")
        engine = create_engine(url, connect_args={"check_same_thread": False})
    elif db_path == ":memory:":
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        for pragma in (
            "journal_mode=WAL",
            "busy_timeout=5000",
            "synchronous=NORMAL",
            "foreign_keys=ON",
        ):
            cursor.execute(f"PRAGMA {pragma}")
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Rule and role DTOs are built from rows after commit.
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables and stamp the schema version once."""
    Base.metadata.create_all(engine)
    with create_session_factory(engine)() as session:
        if session.get(MetaRow, "schema_version") is None:
            session.add(MetaRow(key="schema_version", value=SCHEMA_VERSION))
            session.commit()


def get_schema_version(engine: Engine) -> str | None:
    with create_session_factory(engine)() as session:
        value = session.execute(
            select(MetaRow.value).where(MetaRow.key == "schema_version")
        ).scalar_one_or_none()
        return value
