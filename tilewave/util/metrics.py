"""Run statistics for the collapse driver.

`GenerationStats` is owned by one solver and reset by `initialize()`. Step
timings live in a fixed-size numpy ring buffer so long runs keep a bounded
window of recent samples.
"""

from dataclasses import dataclass, field

import numpy as np

from tilewave import config


class StepTimings:
    """Wall time of the most recent `step()` calls, in milliseconds."""

    def __init__(self, capacity: int = config.STEP_TIME_SAMPLES) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._samples = np.zeros(capacity, dtype=np.float64)
        self.total = 0

    def record(self, elapsed_ms: float) -> None:
        self._samples[self.total % self.capacity] = elapsed_ms
        self.total += 1

    def __len__(self) -> int:
        return min(self.total, self.capacity)

    def recent(self) -> np.ndarray:
        """Retained samples, oldest first."""
        if self.total <= self.capacity:
            return self._samples[: self.total].copy()
        split = self.total % self.capacity
        return np.concatenate([self._samples[split:], self._samples[:split]])

    def percentile(self, q: float) -> float:
        """The q-th percentile of the retained samples, 0.0 when empty."""
        samples = self.recent()
        if samples.size == 0:
            return 0.0
        return float(np.percentile(samples, q))

    def slowest(self) -> float:
        samples = self.recent()
        return float(samples.max()) if samples.size else 0.0


@dataclass
class GenerationStats:
    """Counters for one solver run.

    Attributes:
        steps: Forward collapses committed by the driver.
        backtracks: Steps undone over the lifetime of the run.
        contradictions: Contradictions the driver had to resolve.
        longest_backtrack_run: Most consecutive backtracks seen before a
            clean step. Compare against `max_backtracks` to see how close a
            run came to failing.
        step_times: Wall time of each step() call, including any
            backtracking it did internally.
    """

    steps: int = 0
    backtracks: int = 0
    contradictions: int = 0
    longest_backtrack_run: int = 0
    step_times: StepTimings = field(default_factory=StepTimings)

    def note_backtrack(self, consecutive: int) -> None:
        self.backtracks += 1
        self.longest_backtrack_run = max(self.longest_backtrack_run, consecutive)

    def reset(self) -> None:
        self.steps = 0
        self.backtracks = 0
        self.contradictions = 0
        self.longest_backtrack_run = 0
        self.step_times = StepTimings(self.step_times.capacity)

    def summary(self) -> str:
        return (
            f"steps={self.steps} backtracks={self.backtracks} "
            f"(longest run {self.longest_backtrack_run}) "
            f"contradictions={self.contradictions} "
            f"step_ms p50={self.step_times.percentile(50):.2f} "
            f"max={self.step_times.slowest():.2f}"
        )
