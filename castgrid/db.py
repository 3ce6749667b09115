from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import text
import os

DATABASE_URL = os.getenv("CASTGRID_DATABASE_URL", "sqlite:///./castgrid.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def ensure_sqlite_schema(bind=None):
    """
    Lightweight runtime schema patching for SQLite.

    `Base.metadata.create_all()` won't add new columns to existing tables.
    This keeps local/dev installs working without requiring Alembic.
    """
    bind = bind or engine
    if not str(bind.url).startswith("sqlite"):
        return

    with bind.begin() as conn:
        item_cols = conn.execute(text("PRAGMA table_info(media_item)")).fetchall()
        item_col_names = {row[1] for row in item_cols}  # (cid, name, type, notnull, dflt_value, pk)
        if item_cols:
            if "is_local" not in item_col_names:
                conn.execute(text("ALTER TABLE media_item ADD COLUMN is_local INTEGER DEFAULT 0"))
            if "download_status" not in item_col_names:
                conn.execute(text("ALTER TABLE media_item ADD COLUMN download_status VARCHAR DEFAULT 'pending'"))
            if "file_size" not in item_col_names:
                conn.execute(text("ALTER TABLE media_item ADD COLUMN file_size BIGINT"))
            # Durations written before validation existed.
            conn.execute(
                text(
                    "UPDATE media_item SET duration=30 "
                    "WHERE (duration IS NULL OR duration <= 0) AND type='video'"
                )
            )
            conn.execute(
                text(
                    "UPDATE media_item SET duration=10 "
                    "WHERE (duration IS NULL OR duration <= 0) AND type<>'video'"
                )
            )

        grid_cols = conn.execute(text("PRAGMA table_info(grid)")).fetchall()
        if grid_cols:
            conn.execute(text("UPDATE grid SET media_box_id='' WHERE media_box_id IS NULL"))
            try:
                conn.execute(
                    text(
                        "CREATE UNIQUE INDEX IF NOT EXISTS ux_grid_device_position "
                        "ON grid(device_id, position)"
                    )
                )
            except Exception:
                pass

        device_cols = conn.execute(text("PRAGMA table_info(device)")).fetchall()
        device_col_names = {row[1] for row in device_cols}
        if device_cols and "location" not in device_col_names:
            conn.execute(text("ALTER TABLE device ADD COLUMN location VARCHAR DEFAULT ''"))
