"""
Worker pool that runs every active processor over every dump file.

Files are pulled from a shared queue by a fixed number of threads. Each file
gets fresh processor instances owned by the worker handling it, so the hot
per-record loop never takes a lock. Results are checkpointed to the store as
soon as a file completes.

Opening and decoding a file happen on a separate producer thread that feeds
the worker through a bounded queue. The worker waits on that queue with the
file's remaining time, so a decoder stuck in a blocking call only costs its
own file.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Iterator, Sequence

from ribeye.errors import DecodeError, FileTimeoutError, ProcessorError, StorageError
from ribeye.models import DumpFileRef, FileFailure, ProcessorResult, RouteRecord
from ribeye.processors import ProcessorKind
from ribeye.retry import with_retries
from ribeye.store import ResultStore

logger = logging.getLogger(__name__)

Decoder = Callable[[DumpFileRef], Iterable[RouteRecord]]

FEED_SIZE = 1024
PUT_INTERVAL = 0.1

_END = object()


@dataclass
class DispatchOutcome:
    files_attempted: int = 0
    files_succeeded: int = 0
    files_not_started: int = 0
    failures: list[FileFailure] = field(default_factory=list)
    produced: dict[str, set[date]] = field(default_factory=dict)

    @property
    def files_failed(self) -> int:
        return self.files_attempted - self.files_succeeded


class DispatchPool:
    """
    Bounded pool of worker threads draining a queue of dump files.

    Setting `stop_event` lets in-flight files finish and be checkpointed;
    queued files that were not started are left untouched.
    """

    def __init__(
        self,
        kinds: Sequence[ProcessorKind],
        store: ResultStore,
        decoder: Decoder,
        *,
        threads: int = 4,
        file_timeout: float | None = None,
        open_retries: int = 3,
        retry_backoff: float = 1.0,
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threads < 1:
            raise ValueError("threads must be at least 1")
        self.kinds = list(kinds)
        self.store = store
        self.decoder = decoder
        self.threads = threads
        self.file_timeout = file_timeout
        self.open_retries = open_retries
        self.retry_backoff = retry_backoff
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self._queue: "queue.Queue[DumpFileRef]" = queue.Queue()
        self._lock = threading.Lock()
        self._outcome = DispatchOutcome()

    def run(self, files: Iterable[DumpFileRef]) -> DispatchOutcome:
        """Process every file at most once and return the tally."""
        self._outcome = DispatchOutcome()
        for ref in files:
            self._queue.put(ref)
        total = self._queue.qsize()
        logger.info("processing %d RIB dump files with %d threads", total, self.threads)

        workers = [
            threading.Thread(target=self._work, name=f"ribeye-worker-{i}", daemon=True)
            for i in range(min(self.threads, max(total, 1)))
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        outcome = self._outcome
        outcome.files_not_started = self._drain()
        if outcome.files_not_started:
            logger.warning("stop requested, %d files were not started", outcome.files_not_started)
        return outcome

    def _work(self) -> None:
        while not self.stop_event.is_set():
            try:
                ref = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                self._handle(ref)
            finally:
                self._queue.task_done()

    def _drain(self) -> int:
        left = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return left
            self._queue.task_done()
            left += 1

    def _handle(self, ref: DumpFileRef) -> None:
        try:
            results, failures = self.process_file(ref)
        except Exception as exc:
            logger.exception("unexpected failure while processing %s", ref.location)
            results, failures = [], [FileFailure(source=ref, stage="decode", error=repr(exc))]

        produced: list[ProcessorResult] = []
        for result in results:
            try:
                self.store.put(result)
            except StorageError as exc:
                logger.error("checkpoint of %s for %s failed: %s", result.processor, ref.location, exc)
                failures.append(FileFailure(source=ref, stage="checkpoint", error=str(exc), processor=result.processor))
                continue
            produced.append(result)

        # nothing persisted means nothing to recover from this file
        file_ok = not any(failure.processor is None for failure in failures) and (bool(produced) or not results)

        with self._lock:
            self._outcome.files_attempted += 1
            if file_ok:
                self._outcome.files_succeeded += 1
            self._outcome.failures.extend(failures)
            for result in produced:
                self._outcome.produced.setdefault(result.processor, set()).add(result.date)

    def process_file(self, ref: DumpFileRef) -> tuple[list[ProcessorResult], list[FileFailure]]:
        """
        Run all processors over one file.

        All-or-nothing per file: a decode error or timeout discards every
        partial state. A failing processor only loses its own result.
        """
        started = self.clock()
        deadline = started + self.file_timeout if self.file_timeout else None
        live = {kind: kind.create(ref) for kind in self.kinds}
        failures: list[FileFailure] = []

        abandoned = threading.Event()
        feed: "queue.Queue[object]" = queue.Queue(maxsize=FEED_SIZE)
        producer = threading.Thread(
            target=self._produce,
            args=(ref, feed, abandoned),
            name=f"ribeye-decode-{ref.collector}",
            daemon=True,
        )
        producer.start()
        try:
            for record in self._consume_feed(ref, feed, deadline):
                for kind, processor in list(live.items()):
                    try:
                        processor.consume(record)
                    except Exception as exc:
                        failures.append(_processor_failure(ref, kind, ProcessorError(kind.value, repr(exc))))
                        del live[kind]
        except (DecodeError, StorageError, OSError) as exc:
            logger.error("skipping %s: %s", ref.location, exc)
            return [], [FileFailure(source=ref, stage="decode", error=str(exc))]
        except FileTimeoutError as exc:
            logger.error("skipping %s: %s", ref.location, exc)
            return [], [FileFailure(source=ref, stage="timeout", error=str(exc))]
        finally:
            abandoned.set()

        results: list[ProcessorResult] = []
        for kind, processor in live.items():
            try:
                payload = processor.finalize()
            except Exception as exc:
                failures.append(_processor_failure(ref, kind, ProcessorError(kind.value, f"finalize: {exc!r}")))
                continue
            if processor.skipped:
                logger.info("%s skipped %d malformed records in %s", kind.value, processor.skipped, ref.location)
            results.append(ProcessorResult(processor=kind.value, source=ref, payload=payload, skipped=processor.skipped))

        logger.info("processed %s in %.1fs", ref.location, self.clock() - started)
        return results, failures

    def _consume_feed(self, ref: DumpFileRef, feed: "queue.Queue[object]", deadline: float | None) -> Iterator[RouteRecord]:
        while True:
            if deadline is None:
                item = feed.get()
            else:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise FileTimeoutError(f"{ref.location} exceeded {self.file_timeout}s")
                try:
                    item = feed.get(timeout=remaining)
                except queue.Empty:
                    raise FileTimeoutError(f"{ref.location} exceeded {self.file_timeout}s") from None
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def _produce(self, ref: DumpFileRef, feed: "queue.Queue[object]", abandoned: threading.Event) -> None:
        """Open and decode `ref`, forwarding records, then the end marker or the error."""
        iterator = None
        try:
            records = with_retries(
                lambda: self.decoder(ref),
                attempts=self.open_retries,
                backoff=self.retry_backoff,
                retry_on=(StorageError, OSError),
                what=f"opening {ref.location}",
            )
            iterator = iter(records)
            for record in iterator:
                if not _offer(feed, record, abandoned):
                    return
            last: object = _END
        except Exception as exc:
            last = exc
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        _offer(feed, last, abandoned)


def _offer(feed: "queue.Queue[object]", item: object, abandoned: threading.Event) -> bool:
    """Put `item` unless the consumer gave up on the file first."""
    while not abandoned.is_set():
        try:
            feed.put(item, timeout=PUT_INTERVAL)
            return True
        except queue.Full:
            continue
    return False


def _processor_failure(ref: DumpFileRef, kind: ProcessorKind, error: ProcessorError) -> FileFailure:
    logger.warning("dropping %s result for %s: %s", kind.value, ref.location, error)
    return FileFailure(source=ref, stage="processor", error=str(error), processor=error.processor)
