"""
CareNotes Backend - Shared Service Helpers
===========================================

What:  Lookup/flush helpers every domain service uses, so the translation of
       SQLAlchemy results and failures into application exceptions lives in
       one place.
How:   - fetch_or_404(): primary-key lookup, None → NotFoundError
       - flush(): pushes pending changes, IntegrityError → ConflictError,
         any other SQLAlchemyError → DatabaseError (details logged only)
       - next_sequence_number(): PREFIX-YYYY-NNNN reference numbers
       - commit(): flush + immediate commit, for writes tied to files on disk
"""

import logging
from typing import Any, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.exceptions import ConflictError, DatabaseError, NotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


async def fetch_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    entity_id: Any,
    resource: str,
) -> ModelT:
    """
    Loads one row by primary key.

    Raises:
        NotFoundError: No row with that ID (→ 404)
        DatabaseError: Query execution failed (→ 500)
    """
    try:
        entity = await db.get(model, entity_id)
    except SQLAlchemyError as e:
        logger.error("Database error fetching %s %s: %s", resource, entity_id, str(e))
        raise DatabaseError(
            message=f"Could not retrieve the {resource}. Please try again.",
            context={"resource_id": str(entity_id)},
        ) from e

    if entity is None:
        raise NotFoundError(resource=resource, resource_id=str(entity_id))
    return entity


async def flush(db: AsyncSession, action: str) -> None:
    """
    Flushes pending changes; the commit happens in get_db_session.

    Args:
        action: Short description for log lines and conflict messages
                (e.g. "disburse pocket money")
    """
    try:
        await db.flush()
    except IntegrityError as e:
        logger.warning("Integrity error during %s: %s", action, str(e.orig))
        raise ConflictError(
            message=f"Could not {action}: the record conflicts with an existing one",
        ) from e
    except SQLAlchemyError as e:
        logger.error("Database error during %s: %s", action, str(e), exc_info=True)
        raise DatabaseError(context={"action": action}) from e


async def next_sequence_number(
    db: AsyncSession,
    column: Any,
    prefix: str,
    year: int,
) -> str:
    """Next reference number in the PREFIX-YYYY-NNNN series (e.g. PA-2024-0007)."""
    stem = f"{prefix}-{year}-"
    count = await db.scalar(select(func.count()).where(column.like(f"{stem}%")))
    return f"{stem}{(count or 0) + 1:04d}"


async def commit(db: AsyncSession, action: str) -> None:
    """
    Commits now instead of in get_db_session.

    For writes paired with a side effect outside the database (a stored
    file) that must only happen once the row is durable.
    """
    await flush(db, action)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("Commit failed during %s: %s", action, str(e), exc_info=True)
        await db.rollback()
        raise DatabaseError(context={"action": action}) from e
