import asyncio
import datetime
import logging

import pytest

from senseki.db.models import SavedState
from senseki.pipeline.adapter import extract_segment_snapshot
from senseki.pipeline.capture import CaptureService
from senseki.pipeline.session import open_session
from senseki.source.layout import MalformedRecordError
from senseki.source.models import TelemetryExport

NOW = datetime.datetime(2025, 1, 2, 21, 30, tzinfo=datetime.UTC)


def _record(hits, damage):
    values = [0] * 21
    values[0] = hits
    values[1] = values[2] = values[3] = damage / hits
    values[12] = damage
    return values


class FakeSource:
    """Mutable stand-in for the meter: segments are appended as fights end."""

    def __init__(self):
        self.names: list[str] = []
        self.damage: list[dict] = []
        self.durations: list[float] = []
        self.present = True
        self.reads = 0

    def add_segment(self, name, damage=9000.0, duration=90.0):
        self.names.append(name)
        records = {"1": _record(10, damage)} if damage else {}
        self.damage.append({"7": records} if records else {})
        self.durations.append(duration)

    def add_raw_segment(self, name, damage_entry, duration=90.0):
        self.names.append(name)
        self.damage.append(damage_entry)
        self.durations.append(duration)

    def __call__(self):
        self.reads += 1
        if not self.present:
            return None
        return TelemetryExport(
            segment_names=list(self.names),
            damage=list(self.damage),
            segment_durations=list(self.durations),
            actors={"Lyro": 7},
            abilities={"Sinister Strike": 1},
        )


def _session():
    return open_session(SavedState(), "Lyro", "Faerlina", clock=lambda: NOW)


def _service(source, **kwargs):
    return CaptureService(_session(), source, **kwargs)


class TestStart:
    def test_source_missing_disables_capture(self, caplog):
        source = FakeSource()
        source.present = False
        service = _service(source)
        with caplog.at_level(logging.ERROR):
            assert service.start() is False
        assert service.session.source_available is False
        assert "Telemetry source not found! Auto-capture disabled." in caplog.text

    def test_existing_segments_not_captured(self):
        source = FakeSource()
        source.add_segment("Lucifron")
        service = _service(source)
        assert service.start() is True
        assert service.session.last_segment_count == 1
        assert service.check_for_new_segments() == []
        assert service.session.store.bosses == {}


class TestCheckForNewSegments:
    def test_captures_new_named_segments(self):
        source = FakeSource()
        source.add_segment("")  # trash
        service = _service(source)
        service.start()

        source.add_segment("Lucifron", damage=9000.0, duration=90.0)
        source.add_segment("")
        source.add_segment("Magmadar", damage=6000.0, duration=60.0)
        captured = service.check_for_new_segments()

        assert [c.encounter for c in captured] == ["Lucifron", "Magmadar"]
        assert captured[0].snapshot.dps == pytest.approx(100.0)
        assert service.session.last_segment_count == 4
        bosses = service.session.store.bosses
        assert set(bosses) == {"Lucifron", "Magmadar"}
        assert bosses["Lucifron"][0].date == NOW.date()

    def test_cursor_prevents_double_capture(self):
        source = FakeSource()
        service = _service(source)
        service.start()
        source.add_segment("Lucifron")
        service.check_for_new_segments()
        assert service.check_for_new_segments() == []
        assert len(service.session.store.history("Lucifron")) == 1

    def test_zero_damage_segment_skipped(self):
        source = FakeSource()
        service = _service(source)
        service.start()
        source.add_segment("Lucifron", damage=0)
        assert service.check_for_new_segments() == []
        assert service.session.last_segment_count == 1

    def test_on_capture_called_with_captures(self):
        source = FakeSource()
        calls = []
        service = _service(source, on_capture=calls.append)
        service.start()
        source.add_segment("Lucifron")
        service.check_for_new_segments()
        assert len(calls) == 1
        assert calls[0][0].encounter == "Lucifron"

    def test_on_capture_not_called_without_captures(self):
        source = FakeSource()
        calls = []
        service = _service(source, on_capture=calls.append)
        service.start()
        service.check_for_new_segments()
        assert calls == []

    def test_disabled_service_does_not_read(self):
        source = FakeSource()
        source.present = False
        service = _service(source)
        service.start()
        reads = source.reads
        assert service.check_for_new_segments() == []
        assert source.reads == reads

    def test_source_vanishing_mid_session(self):
        source = FakeSource()
        service = _service(source)
        service.start()
        source.add_segment("Lucifron")
        source.present = False
        assert service.check_for_new_segments() == []
        assert service.session.last_segment_count == 0

    def test_respects_keep_count(self):
        source = FakeSource()
        service = _service(source)
        service.start()
        for damage in (9000.0, 9500.0, 10000.0, 10500.0):
            source.add_segment("Lucifron", damage=damage)
        service.check_for_new_segments()
        history = service.session.store.history("Lucifron")
        assert [s.total_damage for s in history] == [10500.0, 10000.0, 9500.0]

    def test_malformed_segment_does_not_block_others(self, caplog):
        source = FakeSource()
        service = _service(source)
        assert service.start() is True

        source.add_segment("Lucifron")
        source.add_raw_segment("Magmadar", {"7": [1, 2, 3]})
        source.add_raw_segment("Gehennas", ["not", "an", "object"])
        source.add_segment("Garr")
        with caplog.at_level(logging.WARNING):
            captured = service.check_for_new_segments()

        assert [c.encounter for c in captured] == ["Lucifron", "Garr"]
        assert service.session.source_available is True
        assert service.session.last_segment_count == 4
        assert "Skipping malformed" in caplog.text

    def test_nan_duration_still_captured(self):
        source = FakeSource()
        service = _service(source)
        service.start()
        source.add_segment("Lucifron", duration=float("nan"))
        source.add_segment("Magmadar", duration=100.0)

        captured = service.check_for_new_segments()

        assert [c.encounter for c in captured] == ["Lucifron", "Magmadar"]
        assert captured[0].snapshot.combat_time == 0.0
        assert captured[1].snapshot.dps == pytest.approx(90.0)
        assert service.session.last_segment_count == 2

    def test_failing_segment_skipped_and_cursor_advances(self, monkeypatch, caplog):
        def flaky_extract(source, index, actor_name, captured_at):
            if index == 0:
                raise MalformedRecordError("bad record")
            return extract_segment_snapshot(source, index, actor_name, captured_at)

        monkeypatch.setattr(
            "senseki.pipeline.capture.extract_segment_snapshot", flaky_extract,
        )
        source = FakeSource()
        service = _service(source)
        service.start()
        source.add_segment("Lucifron")
        source.add_segment("Magmadar")

        with caplog.at_level(logging.WARNING):
            captured = service.check_for_new_segments()

        assert [c.encounter for c in captured] == ["Magmadar"]
        assert service.session.last_segment_count == 2
        assert "Skipping segment 0 (Lucifron): bad record" in caplog.text
        assert service.check_for_new_segments() == []


class TestScheduling:
    async def test_check_runs_after_delay(self):
        source = FakeSource()
        service = _service(source, delay_seconds=0.01)
        service.start()
        source.add_segment("Lucifron")

        service.schedule_check()
        assert service.pending
        assert service.session.store.bosses == {}
        await asyncio.sleep(0.05)

        assert not service.pending
        assert len(service.session.store.history("Lucifron")) == 1

    async def test_rescheduling_does_not_stack(self):
        source = FakeSource()
        service = _service(source, delay_seconds=0.01)
        service.start()
        reads = source.reads

        for _ in range(5):
            service.schedule_check()
        await asyncio.sleep(0.05)

        assert source.reads == reads + 1

    async def test_reschedule_restarts_delay(self):
        source = FakeSource()
        service = _service(source, delay_seconds=0.05)
        service.start()
        reads = source.reads

        service.schedule_check()
        await asyncio.sleep(0.03)
        service.schedule_check()
        await asyncio.sleep(0.03)
        # First timer would have fired by now had it not been reset
        assert source.reads == reads
        await asyncio.sleep(0.05)
        assert source.reads == reads + 1

    async def test_cancel(self):
        source = FakeSource()
        service = _service(source, delay_seconds=0.01)
        service.start()
        reads = source.reads
        service.schedule_check()
        service.cancel()
        await asyncio.sleep(0.03)
        assert not service.pending
        assert source.reads == reads

    async def test_disabled_service_never_schedules(self):
        source = FakeSource()
        source.present = False
        service = _service(source, delay_seconds=0.01)
        service.start()
        service.schedule_check()
        assert not service.pending

    async def test_failed_check_is_logged(self, caplog):
        def broken():
            raise RuntimeError("boom")

        service = CaptureService(_session(), broken, delay_seconds=0.01)
        with caplog.at_level(logging.ERROR):
            service.schedule_check()
            await asyncio.sleep(0.03)
        assert "Segment check failed" in caplog.text
