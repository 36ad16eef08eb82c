"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row-level locking that degrades to a plain read where unsupported
- Atomic insert-or-get keyed on a natural unique key
"""

import logging
from typing import Any, Dict, Optional, Tuple, Type, TypeVar
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar('T')


def dialect_name(db: Session) -> str:
    try:
        return db.get_bind().dialect.name
    except Exception:
        return ""


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    return dialect_name(db) == 'postgresql'


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    return dialect_name(db) == 'sqlite'


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False,
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    SELECT ... FOR UPDATE is only issued on PostgreSQL. SQLite serializes
    writers itself, so there it is a plain read.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise error immediately if lock unavailable (PostgreSQL only)

    Returns:
        The locked model instance, or None if not found
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


def _key_filter(model, natural_key: Dict[str, Any]):
    return and_(*[getattr(model, column) == value for column, value in natural_key.items()])


def insert_ignore_conflict(
    db: Session,
    model: Type[T],
    natural_key: Dict[str, Any],
    values: Dict[str, Any],
) -> bool:
    """
    Insert a row unless one with the same natural key already exists.

    Uses INSERT ... ON CONFLICT DO NOTHING on PostgreSQL and SQLite, and a
    savepoint around a plain INSERT elsewhere. Safe against concurrent
    writers inserting the same key.

    Returns:
        True if this call inserted the row, False if it already existed
    """
    row = dict(values)
    row.update(natural_key)

    # Python-side column defaults (uuid ids, timestamps) are not applied by
    # core inserts built from a dict, so fill them in here
    for column in model.__table__.columns:
        if column.name in row or column.default is None:
            continue
        if column.default.is_callable:
            row[column.name] = column.default.arg(None)
        elif column.default.is_scalar:
            row[column.name] = column.default.arg

    name = dialect_name(db)
    if name in ("postgresql", "sqlite"):
        if name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(model.__table__).values(**row).on_conflict_do_nothing(
            index_elements=list(natural_key.keys())
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    try:
        with db.begin_nested():
            db.execute(model.__table__.insert().values(**row))
        return True
    except IntegrityError:
        logger.debug(f"{model.__name__} {natural_key} inserted concurrently")
        return False


def insert_or_get(
    db: Session,
    model: Type[T],
    natural_key: Dict[str, Any],
    values: Optional[Dict[str, Any]] = None,
) -> Tuple[T, bool]:
    """
    Return the row for natural_key, creating it from values if absent.

    Example:
        prop, created = insert_or_get(db, Property, {"external_id": "P1"}, {"name": "Property P1"})

    Returns:
        Tuple of (record, created)
    """
    existing = db.query(model).filter(_key_filter(model, natural_key)).first()
    if existing is not None:
        return existing, False

    created = insert_ignore_conflict(db, model, natural_key, values or {})
    record = db.query(model).filter(_key_filter(model, natural_key)).one()
    return record, created
