"""Capture new boss segments from the meter once combat has ended."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError

from senseki.db.models import FightSnapshot
from senseki.pipeline.adapter import extract_segment_snapshot
from senseki.pipeline.formatting import format_number
from senseki.pipeline.session import TrackerSession
from senseki.source.layout import MalformedRecordError
from senseki.source.models import TelemetryExport

logger = logging.getLogger(__name__)

DEFAULT_CAPTURE_DELAY_SECONDS = 3.0


@dataclass(frozen=True)
class CapturedFight:
    encounter: str
    snapshot: FightSnapshot


class CaptureService:
    """Debounced capture of meter segments for one session.

    ``schedule_check()`` is called whenever combat ends. The actual read is
    deferred by ``delay_seconds`` so the meter can finalize its segment; a
    second call while a check is pending restarts the delay instead of
    queueing another check.
    """

    def __init__(
        self,
        session: TrackerSession,
        source_loader: Callable[[], TelemetryExport | None],
        *,
        delay_seconds: float = DEFAULT_CAPTURE_DELAY_SECONDS,
        on_capture: Callable[[list[CapturedFight]], None] | None = None,
    ):
        self.session = session
        self._source_loader = source_loader
        self._delay_seconds = delay_seconds
        self._on_capture = on_capture
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Probe the meter and remember how many segments already exist.

        Segments recorded before start are never captured. If the meter is
        missing, capture is disabled for the rest of the session.
        """
        source = self._source_loader()
        if source is None:
            self.session.source_available = False
            logger.error("Telemetry source not found! Auto-capture disabled.")
            return False
        self.session.source_available = True
        self.session.last_segment_count = source.segment_count
        logger.info(
            "Auto-capture ready for %s (%d existing segments)",
            self.session.identity, source.segment_count,
        )
        return True

    def schedule_check(self) -> None:
        """Arm (or re-arm) the deferred segment check."""
        if not self.session.source_available:
            return
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay_seconds, self._run_scheduled_check)
        logger.debug("Segment check scheduled in %.1fs", self._delay_seconds)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run_scheduled_check(self) -> None:
        self._handle = None
        try:
            self.check_for_new_segments()
        except Exception:
            logger.exception("Segment check failed")

    def check_for_new_segments(self) -> list[CapturedFight]:
        """Capture every named segment recorded since the last check."""
        if not self.session.source_available:
            return []

        source = self._source_loader()
        if source is None:
            logger.debug("Telemetry source unavailable for this check")
            return []

        current_count = source.segment_count
        captured: list[CapturedFight] = []
        for index in range(self.session.last_segment_count, current_count):
            boss_name = source.segment_name(index)
            if not boss_name:
                continue
            try:
                snapshot = extract_segment_snapshot(
                    source, index, self.session.actor_name, self.session.now(),
                )
            except (ValidationError, MalformedRecordError) as exc:
                logger.warning("Skipping segment %d (%s): %s", index, boss_name, exc)
                continue
            if snapshot is None:
                continue
            if self.session.store.capture(boss_name, snapshot):
                captured.append(CapturedFight(boss_name, snapshot))
                logger.info(
                    "Captured %s kill: %.1f DPS, %s damage",
                    boss_name, snapshot.dps, format_number(snapshot.total_damage),
                )

        self.session.last_segment_count = current_count
        if captured and self._on_capture is not None:
            self._on_capture(captured)
        return captured
