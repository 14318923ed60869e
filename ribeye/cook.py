"""
The `cook` run: discover, dispatch, checkpoint, aggregate, publish.

In summarize-only mode discovery and decoding are skipped; the daily
aggregates are rebuilt from whatever the result store already holds for the
lookback window.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from ribeye.aggregate import aggregate
from ribeye.collectors.broker import BrokerClient, discover
from ribeye.collectors.mrt import MrtDecoder
from ribeye.config import Settings
from ribeye.db import get_engine
from ribeye.dispatch import Decoder, DispatchPool
from ribeye.errors import AggregationError, StorageError
from ribeye.models import RunReport
from ribeye.output import OutputWriter
from ribeye.processors import ProcessorKind, get_processor_kinds
from ribeye.store import ResultStore

logger = logging.getLogger(__name__)


@dataclass
class CookOptions:
    """Pass-through options of the `cook` command."""

    days: int = 1
    collectors: list[str] | None = None
    processors: list[str] | None = None
    threads: int | None = None
    limit: int | None = None
    summarize_only: bool = False
    partitions: int = 1


def cook(
    options: CookOptions,
    settings: Settings,
    *,
    store: ResultStore | None = None,
    decoder: Decoder | None = None,
    broker: BrokerClient | None = None,
    writer: OutputWriter | None = None,
    stop_event: threading.Event | None = None,
    now: datetime | None = None,
) -> RunReport:
    """
    Run the pipeline once. DiscoveryError propagates; per-file failures and
    per-date aggregation failures are recorded in the returned report.
    """
    kinds = get_processor_kinds(options.processors)
    now = now or datetime.now(timezone.utc)
    store = store or ResultStore(
        get_engine(settings.database_url),
        retries=settings.storage_retries,
        backoff=settings.retry_backoff,
    )
    writer = writer or OutputWriter(
        settings.results_dir,
        retries=settings.storage_retries,
        backoff=settings.retry_backoff,
    )
    report = RunReport()

    if options.summarize_only:
        start = (now - timedelta(days=options.days)).date()
        dates = sorted({day for kind in kinds for day in store.dates(kind.value, start, now.date())})
        logger.info("summarize only: %d dates with checkpointed results", len(dates))
    else:
        decoder = decoder or MrtDecoder(settings.cache_dir)
        broker = broker or BrokerClient(settings.broker_url)
        files = discover(broker, options.days, options.collectors, options.limit, now=now)
        pool = DispatchPool(
            kinds,
            store,
            decoder,
            threads=options.threads or settings.threads,
            file_timeout=settings.file_timeout or None,
            open_retries=settings.storage_retries,
            retry_backoff=settings.retry_backoff,
            stop_event=stop_event,
        )
        outcome = pool.run(files)
        report.files_attempted = outcome.files_attempted
        report.files_succeeded = outcome.files_succeeded
        report.files_failed = outcome.files_failed
        report.files_not_started = outcome.files_not_started
        report.failures = outcome.failures
        dates = sorted({ref.date for ref in files})

    summarize_dates(kinds, dates, store, writer, report, partitions=options.partitions)

    if settings.retention_days > 0:
        try:
            store.prune(now.date() - timedelta(days=settings.retention_days))
        except StorageError as exc:
            logger.warning("retention pruning failed: %s", exc)

    log_report(report)
    return report


def summarize_dates(
    kinds: Iterable[ProcessorKind],
    dates: Iterable[date],
    store: ResultStore,
    writer: OutputWriter,
    report: RunReport,
    partitions: int = 1,
) -> None:
    """Aggregate and publish every (processor, date); failures stay per date."""
    dates = list(dates)
    for kind in kinds:
        for day in dates:
            try:
                results = store.list(kind.value, day)
                if not results:
                    continue
                daily = aggregate(kind, day, results, partitions=partitions)
                writer.publish(daily)
            except (AggregationError, StorageError) as exc:
                logger.error("%s aggregate for %s failed: %s", kind.value, day, exc)
                report.fatal.setdefault(kind.value, []).append(day)
                continue
            report.published.setdefault(kind.value, []).append(day)


def log_report(report: RunReport) -> None:
    logger.info(
        "run %s: %d files attempted, %d succeeded, %d failed, %d not started",
        report.status,
        report.files_attempted,
        report.files_succeeded,
        report.files_failed,
        report.files_not_started,
    )
    for processor, days in sorted(report.published.items()):
        logger.info("%s published for %s", processor, ", ".join(day.isoformat() for day in days))
    for processor, days in sorted(report.fatal.items()):
        logger.error("%s failed for %s", processor, ", ".join(day.isoformat() for day in days))


def report_summary(report: RunReport) -> dict[str, object]:
    """Plain mapping of the report, printed by the CLI."""
    return {
        "status": report.status,
        "files_attempted": report.files_attempted,
        "files_succeeded": report.files_succeeded,
        "files_failed": report.files_failed,
        "files_not_started": report.files_not_started,
        "published": {name: [day.isoformat() for day in days] for name, days in sorted(report.published.items())},
        "fatal": {name: [day.isoformat() for day in days] for name, days in sorted(report.fatal.items())},
    }
