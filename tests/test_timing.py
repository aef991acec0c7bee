"""Tests for run timing instrumentation."""

import logging

import pytest

from app.core.timing import RunTracker


class TestRunTracker:
    def test_records_stages_in_order(self):
        tracker = RunTracker("run-1")

        with tracker.stage("inference"):
            pass
        with tracker.stage("research"):
            pass

        summary = tracker.summary()
        assert list(summary["stages_ms"]) == ["inference", "research"]
        assert all(ms >= 0 for ms in summary["stages_ms"].values())
        assert summary["total_ms"] >= 0

    def test_stage_recorded_when_it_raises(self):
        tracker = RunTracker()

        with pytest.raises(ValueError):
            with tracker.stage("synthesis"):
                raise ValueError("boom")

        assert "synthesis" in tracker.stages

    def test_degraded_stages_unique(self):
        tracker = RunTracker()

        tracker.mark_degraded("research")
        tracker.mark_degraded("research")

        assert tracker.summary()["degraded"] == ["research"]

    def test_stage_logs_duration_with_run_id(self, caplog):
        tracker = RunTracker("run-7")

        with caplog.at_level(logging.DEBUG, logger="app.core.timing"):
            with pytest.raises(KeyError):
                with tracker.stage("persistence"):
                    raise KeyError("missing")

        record = next(r for r in caplog.records if getattr(r, "stage", None) == "persistence")
        assert record.run_id == "run-7"
        assert record.duration_ms == tracker.stages["persistence"]
        assert "failed after" in record.getMessage()
