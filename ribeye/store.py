"""
Checkpoint store for per-file processor results.

One row per (processor, collector, dump timestamp). This table is the
authoritative state of the pipeline: every daily aggregate can be rebuilt from
it alone.
"""
from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, timezone

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ribeye.db import db_session
from ribeye.errors import AggregationError, StorageError
from ribeye.models import DumpFileRef, ProcessorResult
from ribeye.retry import with_retries

logger = logging.getLogger(__name__)


class ResultStore:
    """SQL-backed store; `put` may be called from many worker threads."""

    def __init__(self, engine: Engine, *, retries: int = 3, backoff: float = 1.0) -> None:
        self.engine = engine
        self.retries = retries
        self.backoff = backoff
        self._write_lock = threading.Lock()

    def put(self, result: ProcessorResult) -> None:
        """Persist one result, replacing an earlier checkpoint of the same file."""
        ref = result.source
        params = {
            "processor": result.processor,
            "result_date": result.date.isoformat(),
            "collector": ref.collector,
            "dump_ts": _ts_to_db(ref.timestamp),
            "location": ref.location,
            "size": ref.size,
            "skipped": result.skipped,
            "payload": json.dumps(result.payload, sort_keys=True, separators=(",", ":")),
        }

        def write() -> None:
            with db_session(self.engine) as conn:
                conn.execute(
                    text(
                        """
                        DELETE FROM processor_result
                        WHERE processor = :processor AND collector = :collector AND dump_ts = :dump_ts
                        """
                    ),
                    params,
                )
                conn.execute(
                    text(
                        """
                        INSERT INTO processor_result
                            (processor, result_date, collector, dump_ts, location, size, skipped, payload)
                        VALUES
                            (:processor, :result_date, :collector, :dump_ts, :location, :size, :skipped, :payload)
                        """
                    ),
                    params,
                )

        with self._write_lock:
            self._run(write, f"checkpoint {result.processor} for {ref.location}")

    def list(self, processor: str, day: date) -> list[ProcessorResult]:
        """Every checkpointed result of `processor` for the calendar date `day`."""

        def read():
            with db_session(self.engine) as conn:
                return conn.execute(
                    text(
                        """
                        SELECT collector, dump_ts, location, size, skipped, payload
                        FROM processor_result
                        WHERE processor = :processor AND result_date = :result_date
                        ORDER BY collector, dump_ts
                        """
                    ),
                    {"processor": processor, "result_date": day.isoformat()},
                ).all()

        rows = self._run(read, f"listing {processor} results for {day}")
        results: list[ProcessorResult] = []
        for collector, dump_ts, location, size, skipped, payload in rows:
            try:
                decoded = json.loads(payload)
            except ValueError as exc:
                raise AggregationError(f"corrupt {processor} payload for {location}: {exc}") from exc
            ref = DumpFileRef(collector=collector, timestamp=_ts_from_db(dump_ts), location=location, size=int(size))
            results.append(ProcessorResult(processor=processor, source=ref, payload=decoded, skipped=int(skipped)))
        return results

    def dates(self, processor: str, start: date | None = None, end: date | None = None) -> list[date]:
        """Distinct result dates of `processor`, optionally bounded (inclusive)."""
        clauses = ["processor = :processor"]
        params = {"processor": processor}
        if start is not None:
            clauses.append("result_date >= :start")
            params["start"] = start.isoformat()
        if end is not None:
            clauses.append("result_date <= :end")
            params["end"] = end.isoformat()
        query = f"SELECT DISTINCT result_date FROM processor_result WHERE {' AND '.join(clauses)}"

        def read():
            with db_session(self.engine) as conn:
                return conn.execute(text(query), params).scalars().all()

        values = self._run(read, f"listing {processor} dates")
        return sorted(_date_from_db(value) for value in values)

    def prune(self, before: date) -> int:
        """Drop checkpoints dated strictly before `before`; returns the row count."""

        def delete() -> int:
            with db_session(self.engine) as conn:
                result = conn.execute(
                    text("DELETE FROM processor_result WHERE result_date < :before"),
                    {"before": before.isoformat()},
                )
                return result.rowcount or 0

        with self._write_lock:
            removed = self._run(delete, "pruning old checkpoints")
        if removed:
            logger.info("pruned %d checkpoints older than %s", removed, before)
        return removed

    def _run(self, operation, what: str):
        try:
            return with_retries(
                operation,
                attempts=self.retries,
                backoff=self.backoff,
                retry_on=(OperationalError,),
                what=what,
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"{what} failed: {exc}") from exc


def _ts_to_db(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(sep=" ")


def _ts_from_db(value) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def _date_from_db(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
