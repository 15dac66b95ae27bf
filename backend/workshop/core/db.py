# backend/workshop/core/db.py
import logging
from typing import Optional, Type, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import DATABASE_URL, dotenv_path

logger = logging.getLogger(__name__)

DSN = DATABASE_URL
if not DSN or not DSN.strip():
    raise RuntimeError(f"DATABASE_URL / MSSQL_DSN is not set. .env: {dotenv_path or '(not found)'}")

url = make_url(DSN)
engine_kwargs = dict(pool_pre_ping=True)

# Dialect specific settings
backend = url.get_backend_name()  # e.g. 'sqlite', 'mssql'
if backend.startswith("sqlite"):
    # No thread check, no pool sizing for SQLite
    engine_kwargs["connect_args"] = {"check_same_thread": False}
elif backend.startswith("mssql"):
    engine_kwargs.update(pool_size=5, max_overflow=10, fast_executemany=True)

engine = create_engine(DSN, **engine_kwargs)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

M = TypeVar("M")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_name(db: Session) -> str:
    try:
        return db.bind.dialect.name
    except AttributeError:
        return "unknown"


def lock_for_update(db: Session, model: Type[M], pk) -> Optional[M]:
    """
    Lock a row for update and read it fresh.
    SQL Server gets UPDLOCK+ROWLOCK, everything else SELECT ... FOR UPDATE
    (a no-op on SQLite, where writers are serialized by the database lock).
    `pk` is a scalar, or a tuple for composite keys.
    """
    # Pending changes would be overwritten by the fresh read
    db.flush()

    table = model.__table__
    pk_cols = list(table.primary_key.columns)
    pk_vals = pk if isinstance(pk, tuple) else (pk,)

    if dialect_name(db) == "mssql":
        where = " AND ".join(f"{c.name} = ?" for c in pk_cols)
        db.connection().exec_driver_sql(
            f"SELECT {pk_cols[0].name} FROM {table.name} WITH (UPDLOCK, ROWLOCK) WHERE {where}",
            tuple(pk_vals),
        )
        row = db.get(model, pk)
        if row is not None:
            db.refresh(row)
        return row

    query = db.query(model)
    for col, val in zip(pk_cols, pk_vals):
        query = query.filter(col == val)
    return query.with_for_update().populate_existing().one_or_none()
