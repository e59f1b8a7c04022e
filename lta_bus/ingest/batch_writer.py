"""
Transactional bulk insert of normalized batches.

Stops, routes and schedule entries are written parent-first inside one
transaction, in fixed-size chunks of multi-row INSERT statements.
"""

import logging
from dataclasses import asdict
from typing import Iterator, List, Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session
from tqdm import tqdm

from lta_bus.config.config_main import ingestion_config
from .normalizer import NormalizedBatches
from .schema import Stop, Route, ScheduleEntry

logger = logging.getLogger(__name__)


def chunked(rows: Sequence, size: int) -> Iterator[Sequence]:
    """Split rows into consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def insert_rows(session: Session, model, rows: Sequence, chunk_size: int) -> int:
    """
    Insert dataclass rows into the model's table, one statement per chunk.

    Args:
        session: SQLAlchemy session holding the open transaction
        model: Declarative model whose table receives the rows
        rows: Row dataclasses with fields matching the table columns
        chunk_size: Rows per multi-row INSERT

    Returns:
        Number of rows inserted
    """
    table = model.__table__
    chunks: List[Sequence] = list(chunked(rows, chunk_size))

    for chunk in tqdm(chunks, desc=f"Writing {table.name}", unit="chunk",
                      disable=not ingestion_config.show_progress, leave=False):
        session.execute(insert(table).values([asdict(row) for row in chunk]))

    logger.debug("Inserted %d rows into %s in %d chunks", len(rows), table.name, len(chunks))
    return len(rows)


def write_batches(session: Session, batches: NormalizedBatches, chunk_size: int = None) -> int:
    """
    Persist all three batches atomically.

    Nothing becomes visible unless every chunk of every table succeeds; on
    failure the transaction is rolled back and the original error re-raised.

    Args:
        session: SQLAlchemy session (its transaction spans the whole write)
        batches: Output of normalize_payload
        chunk_size: Rows per INSERT statement (default from ingestion config)

    Returns:
        Number of stop rows written
    """
    if chunk_size is None:
        chunk_size = ingestion_config.chunk_size

    try:
        stop_count = insert_rows(session, Stop, batches.stops, chunk_size)
        route_count = insert_rows(session, Route, batches.routes, chunk_size)
        schedule_count = insert_rows(session, ScheduleEntry, batches.schedules, chunk_size)
        session.commit()
    except Exception:
        logger.error("Batch write failed, rolling back")
        session.rollback()
        raise

    logger.info(
        "Stored %d bus stops, %d routes, %d schedule entries",
        stop_count, route_count, schedule_count
    )
    return stop_count


def delete_all(session: Session) -> None:
    """Remove every row, children before parents, in one committed transaction."""
    try:
        for model in (ScheduleEntry, Route, Stop):
            deleted = session.query(model).delete(synchronize_session=False)
            logger.info("Deleted %d rows from %s", deleted, model.__tablename__)
        session.commit()
    except Exception:
        session.rollback()
        raise
