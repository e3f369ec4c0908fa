import os

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

DATABASE_URL = os.getenv("CATFE_DATABASE_URL", "sqlite:///./catfe.db")


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url in {"sqlite://", "sqlite:///:memory:"}:
        # one shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _table_columns(conn, table: str) -> set[str]:
    rows = conn.execute(text(f"PRAGMA table_info({table})")).fetchall()
    return {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)


def ensure_sqlite_schema():
    """
    Lightweight runtime schema patching for SQLite.

    `Base.metadata.create_all()` won't add new columns to existing tables.
    This keeps local installs created by older releases working without Alembic.
    """
    if not DATABASE_URL.startswith("sqlite"):
        return

    with engine.begin() as conn:
        screen_cols = _table_columns(conn, "screen")
        if screen_cols:
            if "scheduling_enabled" not in screen_cols:
                conn.execute(text("ALTER TABLE screen ADD COLUMN scheduling_enabled INTEGER DEFAULT 0"))
            if "is_adopted" not in screen_cols:
                conn.execute(text("ALTER TABLE screen ADD COLUMN is_adopted INTEGER DEFAULT 0"))
            if "livestream_url" not in screen_cols:
                conn.execute(text("ALTER TABLE screen ADD COLUMN livestream_url VARCHAR"))
            conn.execute(text("UPDATE screen SET scheduling_enabled=0 WHERE scheduling_enabled IS NULL"))
            conn.execute(
                text(
                    "UPDATE screen SET time_start=NULL "
                    "WHERE time_start IS NOT NULL AND trim(time_start)=''"
                )
            )
            conn.execute(
                text(
                    "UPDATE screen SET time_end=NULL "
                    "WHERE time_end IS NOT NULL AND trim(time_end)=''"
                )
            )

        settings_cols = _table_columns(conn, "settings")
        if settings_cols:
            if "refresh_interval_seconds" not in settings_cols:
                conn.execute(text("ALTER TABLE settings ADD COLUMN refresh_interval_seconds INTEGER DEFAULT 60"))
            if "fallback_mode" not in settings_cols:
                conn.execute(text("ALTER TABLE settings ADD COLUMN fallback_mode VARCHAR DEFAULT 'LOOP_DEFAULT'"))
            conn.execute(
                text(
                    "UPDATE settings SET snap_and_purr_frequency=5 "
                    "WHERE snap_and_purr_frequency IS NULL OR snap_and_purr_frequency < 1"
                )
            )

        session_cols = _table_columns(conn, "guest_session")
        if session_cols and "checked_out_at" not in session_cols:
            conn.execute(text("ALTER TABLE guest_session ADD COLUMN checked_out_at DATETIME"))

        poll_cols = _table_columns(conn, "poll")
        if poll_cols and "last_shown_at" not in poll_cols:
            conn.execute(text("ALTER TABLE poll ADD COLUMN last_shown_at DATETIME"))
