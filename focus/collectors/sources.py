"""
Source collectors - fetch and decode the scheduling sources for one user.

Every source is fetched independently. A transport or decode failure degrades
that source to an empty list (logged at error) and never aborts the others;
a single malformed row is dropped (logged at warning) and never aborts its
batch.
"""

import contextvars
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TypeVar

from focus.integrations.gateway import GatewayError, RemoteGateway
from focus.time_truth.models import MeetingRecord, SkipRecord, TimeBlockRecord, TodoRecord
from focus.time_truth.reconciler import MEETING_DAYS_BACK, MEETING_DAYS_FORWARD
from focus.time_truth.recurrence import DEFAULT_DAYS_BACK, DEFAULT_DAYS_FORWARD, active_window

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class SourceSnapshot:
    """Decoded records from one concurrent fetch."""

    blocks: list[TimeBlockRecord] = field(default_factory=list)
    meetings: list[MeetingRecord] = field(default_factory=list)
    todos: list[TodoRecord] = field(default_factory=list)
    skips: list[SkipRecord] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_sources)


def decode_rows(rows: list[dict], from_row: Callable[[dict], R], source: str) -> list[R]:
    """Decode rows one at a time, dropping the ones that fail."""
    records: list[R] = []
    for row in rows:
        try:
            records.append(from_row(row))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            row_id = row.get("id") if isinstance(row, dict) else None
            logger.warning(f"Dropping malformed {source} row {row_id}: {e}")
    return records


class SourceCollector:
    """Fetches blocks, meetings, todos and skip records for one user."""

    # blocks-in-range, recurring definitions, meetings, todos, skips
    FETCH_WORKERS = 5

    def __init__(
        self,
        gateway: RemoteGateway,
        user_id: int,
        block_days_back: int = DEFAULT_DAYS_BACK,
        block_days_forward: int = DEFAULT_DAYS_FORWARD,
        meeting_days_back: int = MEETING_DAYS_BACK,
        meeting_days_forward: int = MEETING_DAYS_FORWARD,
    ):
        self.gateway = gateway
        self.user_id = user_id
        self.block_days_back = block_days_back
        self.block_days_forward = block_days_forward
        self.meeting_days_back = meeting_days_back
        self.meeting_days_forward = meeting_days_forward

    def _guarded(self, source: str, fetch: Callable[[], list[dict]]) -> list[dict] | None:
        """Run one fetch; None means the source failed and degrades to empty."""
        try:
            return fetch()
        except GatewayError as e:
            logger.error(f"Fetching {source} failed: {e}")
            return None

    def collect_specific_blocks(self, reference_date: date) -> list[TimeBlockRecord] | None:
        start, end = active_window(reference_date, self.block_days_back, self.block_days_forward)
        rows = self._guarded(
            "time blocks", lambda: self.gateway.fetch_blocks_in_range(self.user_id, start, end)
        )
        if rows is None:
            return None
        # Recurring definitions dated inside the window come back here too; the
        # recurring query is their single source.
        return [b for b in decode_rows(rows, TimeBlockRecord.from_row, "time block") if not b.is_recurring]

    def collect_recurring_blocks(self) -> list[TimeBlockRecord] | None:
        rows = self._guarded(
            "recurring blocks", lambda: self.gateway.fetch_recurring_blocks(self.user_id)
        )
        if rows is None:
            return None
        return decode_rows(rows, TimeBlockRecord.from_row, "recurring block")

    def collect_meetings(self, reference_date: date) -> list[MeetingRecord] | None:
        start = reference_date - timedelta(days=self.meeting_days_back)
        end = reference_date + timedelta(days=self.meeting_days_forward)
        rows = self._guarded(
            "meetings", lambda: self.gateway.fetch_meetings(self.user_id, start, end)
        )
        if rows is None:
            return None
        return decode_rows(rows, MeetingRecord.from_row, "meeting")

    def collect_todos(self) -> list[TodoRecord] | None:
        rows = self._guarded("todos", lambda: self.gateway.fetch_todos(self.user_id))
        if rows is None:
            return None
        return decode_rows(rows, TodoRecord.from_row, "todo")

    def collect_skips(self) -> list[SkipRecord] | None:
        rows = self._guarded("skipped tasks", lambda: self.gateway.fetch_skips(self.user_id))
        if rows is None:
            return None
        return decode_rows(rows, SkipRecord.from_row, "skip")

    def collect_all(self, reference_date: date) -> SourceSnapshot:
        """
        Fetch every source concurrently and join before returning.

        Returns:
            SourceSnapshot; failed sources are empty and named in failed_sources
        """
        jobs = {
            "blocks": lambda: self.collect_specific_blocks(reference_date),
            "recurring": self.collect_recurring_blocks,
            "meetings": lambda: self.collect_meetings(reference_date),
            "todos": self.collect_todos,
            "skips": self.collect_skips,
        }
        with ThreadPoolExecutor(max_workers=self.FETCH_WORKERS) as executor:
            # Worker threads keep the caller's pass id for logging
            futures = {
                name: executor.submit(contextvars.copy_context().run, job)
                for name, job in jobs.items()
            }
            results = {name: future.result() for name, future in futures.items()}

        failed = [name for name, records in results.items() if records is None]
        snapshot = SourceSnapshot(
            blocks=(results["blocks"] or []) + (results["recurring"] or []),
            meetings=results["meetings"] or [],
            todos=results["todos"] or [],
            skips=results["skips"] or [],
            failed_sources=failed,
        )
        if failed:
            logger.warning(f"Degraded sources this pass: {', '.join(failed)}")
        logger.info(
            f"Collected {len(snapshot.blocks)} blocks, {len(snapshot.meetings)} meetings, "
            f"{len(snapshot.todos)} todos, {len(snapshot.skips)} skips"
        )
        return snapshot
