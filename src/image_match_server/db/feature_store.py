"""
Feature Store

SQLAlchemy-backed persistence of labeled reference embeddings.

Consistency
-----------
- Every operation runs in its own session and transaction.
- ``append`` commits atomically; ``snapshot`` reads with a single SELECT, so
  a concurrent, uncommitted append is never observed.

Failure Semantics
-----------------
Any storage-layer failure surfaces as ``StoreUnavailableError``. An
unreachable store is never reported as an empty corpus.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from pydantic import ValidationError

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import StoreUnavailableError
from ..features.models import FeatureRecord
from .models import FeatureRow

logger = logging.getLogger("imgmatch.store")


class FeatureStore:
    """
    Append-mostly store of FeatureRecords.

    Safe to share across concurrent requests; it holds only a session factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Parameters
        ----------
        session_factory : async_sessionmaker[AsyncSession]
            Factory producing one session per store operation.
        """
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.error(
                "Feature store %s failed (%s): %s",
                operation,
                type(exc).__name__,
                exc,
            )
            raise StoreUnavailableError(
                f"Feature store unavailable during {operation}: {type(exc).__name__}"
            ) from exc

    @staticmethod
    def _to_record(row: FeatureRow) -> Optional[FeatureRecord]:
        try:
            return FeatureRecord(label=row.label, vector=row.vector, record_id=row.id)
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed feature record id=%s: %d validation error(s)",
                row.id,
                exc.error_count(),
            )
            return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def append(self, label: str, vector: Sequence[float]) -> FeatureRecord:
        """
        Persist a new record. Labels need not be unique.

        Returns
        -------
        FeatureRecord
            The stored record, including its assigned ``record_id``.
        """
        record = FeatureRecord(label=label, vector=[float(x) for x in vector])

        async with self._transaction("append") as session:
            row = FeatureRow(
                label=record.label,
                dimension=record.dimension,
                vector=list(record.vector),
            )
            session.add(row)
            await session.flush()
            record_id = row.id

        logger.info("Feature record saved: %r (dim=%d)", label, record.dimension)
        return record.model_copy(update={"record_id": record_id})

    async def append_many(
        self,
        label: str,
        vectors: Sequence[Sequence[float]],
    ) -> int:
        """
        Persist several records for one label in a single transaction.

        Returns the number of records added.
        """
        if not vectors:
            return 0

        records = [
            FeatureRecord(label=label, vector=[float(x) for x in v]) for v in vectors
        ]

        async with self._transaction("append_many") as session:
            session.add_all(
                FeatureRow(
                    label=r.label,
                    dimension=r.dimension,
                    vector=list(r.vector),
                )
                for r in records
            )

        logger.info("Feature records saved: %r x%d", label, len(records))
        return len(records)

    async def snapshot(self) -> List[FeatureRecord]:
        """
        Return every stored record as of a single point in time.

        Records come back in insertion order; callers must treat the
        collection as unordered.
        Rows that do not form a valid record (empty label or vector) are
        skipped with a warning.
        """
        async with self._transaction("snapshot") as session:
            result = await session.execute(select(FeatureRow).order_by(FeatureRow.id))
            rows = result.scalars().all()
            records = (self._to_record(row) for row in rows)
            return [record for record in records if record is not None]

    async def delete_label(self, label: str) -> int:
        """
        Remove all records for a label.

        Returns the number of deleted rows.
        """
        async with self._transaction("delete") as session:
            result = await session.execute(
                delete(FeatureRow).where(FeatureRow.label == label)
            )
            count = result.rowcount or 0

        logger.info("Feature records deleted: %r x%d", label, count)
        return count

    async def replace_label(
        self,
        label: str,
        vectors: Sequence[Sequence[float]],
    ) -> int:
        """
        Atomically swap all records for a label with new vectors.

        An empty ``vectors`` leaves the existing records untouched. Returns
        the number of records added.
        """
        if not vectors:
            return 0

        records = [
            FeatureRecord(label=label, vector=[float(x) for x in v]) for v in vectors
        ]

        async with self._transaction("replace") as session:
            result = await session.execute(
                delete(FeatureRow).where(FeatureRow.label == label)
            )
            removed = result.rowcount or 0
            session.add_all(
                FeatureRow(
                    label=r.label,
                    dimension=r.dimension,
                    vector=list(r.vector),
                )
                for r in records
            )

        logger.info(
            "Feature records replaced: %r (-%d/+%d)", label, removed, len(records)
        )
        return len(records)

    async def get_stats(self) -> dict:
        """
        Return statistics about the stored corpus.
        """
        async with self._transaction("stats") as session:
            total = (
                await session.execute(select(func.count()).select_from(FeatureRow))
            ).scalar() or 0

            label_rows = await session.execute(
                select(FeatureRow.label, func.count())
                .group_by(FeatureRow.label)
                .order_by(FeatureRow.label)
            )
            labels = {label: count for label, count in label_rows.all()}

            dim_rows = await session.execute(
                select(FeatureRow.dimension).distinct().order_by(FeatureRow.dimension)
            )
            dimensions = [row[0] for row in dim_rows.all()]

        return {
            "total_records": total,
            "total_labels": len(labels),
            "labels": labels,
            "dimensions": dimensions,
        }
