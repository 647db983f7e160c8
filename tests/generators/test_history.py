"""Tests for the collapse undo stack."""

from __future__ import annotations

import math

import pytest

from tilewave.generators.errors import EmptyHistoryError
from tilewave.generators.history import HistoryStack, HistoryStep


def make_step(index: int) -> HistoryStep:
    return HistoryStep(
        cell_index=index,
        previous_collapsed_tile=-1,
        previous_entropy=math.inf,
        previous_candidates=frozenset(),
    )


class TestHistoryStack:
    def test_last_in_first_out(self) -> None:
        stack = HistoryStack()
        for index in range(3):
            stack.push(make_step(index))

        assert len(stack) == 3
        assert stack.peek() == make_step(2)
        assert [stack.pop().cell_index for _ in range(3)] == [2, 1, 0]
        assert not stack

    def test_iterates_oldest_first(self) -> None:
        stack = HistoryStack()
        stack.push(make_step(4))
        stack.push(make_step(1))
        assert [step.cell_index for step in stack] == [4, 1]

    def test_pop_empty_raises(self) -> None:
        stack = HistoryStack()
        assert stack.peek() is None
        with pytest.raises(EmptyHistoryError, match="no steps available"):
            stack.pop()

    def test_clear(self) -> None:
        stack = HistoryStack()
        stack.push(make_step(0))
        stack.clear()
        assert len(stack) == 0
