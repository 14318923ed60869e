"""Discovery of published RIB dump files through the BGPKIT broker."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Sequence

import requests

from ribeye.errors import DiscoveryError
from ribeye.models import DumpFileRef

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
MAX_PAGES = 100


class BrokerClient:
    """Minimal client for the broker `/search` endpoint."""

    def __init__(self, base_url: str, *, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def search(
        self,
        ts_start: datetime,
        ts_end: datetime,
        collectors: Sequence[str] | None = None,
    ) -> list[DumpFileRef]:
        """List RIB dumps published in [ts_start, ts_end]."""
        refs: list[DumpFileRef] = []
        for collector in collectors or [None]:
            refs.extend(self._search_one(ts_start, ts_end, collector))
        return refs

    def _search_one(self, ts_start: datetime, ts_end: datetime, collector: str | None) -> Iterator[DumpFileRef]:
        params = {
            "ts_start": int(ts_start.timestamp()),
            "ts_end": int(ts_end.timestamp()),
            "data_type": "rib",
            "page_size": PAGE_SIZE,
        }
        if collector:
            params["collector_id"] = collector

        for page in range(1, MAX_PAGES + 1):
            params["page"] = page
            items = self._get_page(params)
            for item in items:
                yield _to_ref(item)
            if len(items) < PAGE_SIZE:
                return
        logger.warning("stopped paging broker results after %d pages", MAX_PAGES)

    def _get_page(self, params: dict) -> list:
        url = f"{self.base_url}/search"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as exc:
            raise DiscoveryError(f"broker request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise DiscoveryError(f"broker returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise DiscoveryError("broker response is not a JSON object")
        if body.get("error"):
            raise DiscoveryError(f"broker error: {body['error']}")
        items = body.get("data")
        if not isinstance(items, list):
            raise DiscoveryError("broker response carries no data list")
        return items


def _to_ref(item: dict) -> DumpFileRef:
    try:
        timestamp = datetime.fromisoformat(str(item["ts_start"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return DumpFileRef(
            collector=str(item["collector_id"]),
            timestamp=timestamp.replace(second=0, microsecond=0),
            location=str(item["url"]),
            size=int(item.get("rough_size") or item.get("exact_size") or 0),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DiscoveryError(f"malformed broker item {item!r}: {exc}") from exc


def select_dump_files(
    refs: Iterable[DumpFileRef],
    collectors: Sequence[str] | None = None,
    limit: int | None = None,
    hour: int | None = 0,
) -> list[DumpFileRef]:
    """
    Apply the scheduling policy to discovered dumps.

    Keeps allowed collectors and dumps taken at `hour` (UTC; None keeps every
    hour), drops duplicate (collector, timestamp) entries and, with `limit`,
    keeps the smallest N files by size.
    """
    allowed = set(collectors) if collectors else None
    unique: dict = {}
    for ref in refs:
        if allowed is not None and ref.collector not in allowed:
            continue
        if hour is not None and ref.timestamp.hour != hour:
            continue
        unique.setdefault(ref.key, ref)

    selected = sorted(unique.values(), key=lambda ref: (ref.size, ref.collector, ref.timestamp))
    if limit is not None:
        selected = selected[: max(limit, 0)]
    return selected


def discover(
    client: BrokerClient,
    days: int,
    collectors: Sequence[str] | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[DumpFileRef]:
    """Find the RIB dumps of the last `days` days and build the work list."""
    ts_end = now or datetime.now(timezone.utc)
    ts_start = ts_end - timedelta(days=days)
    logger.info("searching for RIB dump files since %s", ts_start.isoformat())
    refs = select_dump_files(client.search(ts_start, ts_end, collectors), collectors=collectors, limit=limit)
    logger.info("found %d matching RIB dump files", len(refs))
    return refs
