"""Tests for the run statistics helpers."""

from __future__ import annotations

import pytest

from tilewave.util.metrics import GenerationStats, StepTimings


class TestStepTimings:
    def test_empty_buffer_reports_zero(self) -> None:
        timings = StepTimings(capacity=4)
        assert len(timings) == 0
        assert timings.percentile(50) == 0.0
        assert timings.slowest() == 0.0

    def test_keeps_only_the_newest_samples(self) -> None:
        """After wrapping, the oldest samples drop out of the window."""
        timings = StepTimings(capacity=3)
        for value in (100.0, 200.0, 3.0, 4.0, 5.0):
            timings.record(value)

        assert timings.total == 5
        assert len(timings) == 3
        assert timings.recent().tolist() == [3.0, 4.0, 5.0]
        assert timings.percentile(50) == pytest.approx(4.0)
        assert timings.slowest() == 5.0

    def test_recent_is_a_copy(self) -> None:
        timings = StepTimings(capacity=2)
        timings.record(1.0)
        timings.recent()[0] = 50.0
        assert timings.slowest() == 1.0

    def test_rejects_empty_capacity(self) -> None:
        with pytest.raises(ValueError):
            StepTimings(capacity=0)


class TestGenerationStats:
    def test_longest_backtrack_run(self) -> None:
        stats = GenerationStats()
        for consecutive in (1, 2, 3, 1):
            stats.note_backtrack(consecutive)

        assert stats.backtracks == 4
        assert stats.longest_backtrack_run == 3

    def test_reset_clears_counters_and_samples(self) -> None:
        stats = GenerationStats(step_times=StepTimings(capacity=8))
        stats.steps = 4
        stats.contradictions = 3
        stats.note_backtrack(2)
        stats.step_times.record(1.5)

        stats.reset()

        assert (stats.steps, stats.backtracks, stats.contradictions) == (0, 0, 0)
        assert stats.longest_backtrack_run == 0
        assert len(stats.step_times) == 0
        assert stats.step_times.capacity == 8

    def test_summary_mentions_counters(self) -> None:
        stats = GenerationStats()
        stats.steps = 9
        stats.note_backtrack(1)
        stats.step_times.record(2.0)

        summary = stats.summary()
        assert "steps=9" in summary
        assert "backtracks=1 (longest run 1)" in summary
        assert "max=2.00" in summary
