"""
Per-step instrumentation layered on top of the stepping loop.

Both trackers produce boolean arrays with the same shape and indexing as the
grid they observe, so they can be read with the grid's own coordinates.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .engine import StepResult


class TopplingTracker:
    """Records which cells toppled during the most recent step."""

    def __init__(self) -> None:
        self.toppled: Optional[np.ndarray] = None
        self._grid = None

    def update(self, grid, result: StepResult, grown: bool) -> None:
        self.toppled = result.toppled
        self._grid = grid

    def value_at(self, coordinates: Sequence[int]) -> Optional[bool]:
        if self.toppled is None:
            return None
        index = self._grid.locate(coordinates)
        if index is None:
            return False
        return bool(self.toppled[index])


class AlternationComplianceTracker:
    """
    Checks cells against a checkerboard toppling pattern.

    At each step it is either the even or the odd positions' turn to topple
    (parity of the coordinate sum). A cell complies when it toppled exactly
    when it was its turn. The turn starts on the even positions for a
    non-negative seed and flips after every step.
    """

    def __init__(self, initial_value, source_offset: Sequence[int] = ()) -> None:
        self.its_even_positions_turn = initial_value >= 0
        self.source_offset = tuple(source_offset)
        self.compliance: Optional[np.ndarray] = None
        self._grid = None

    def _expected(self, grid) -> np.ndarray:
        odd = grid.parity(self.source_offset)
        if self.its_even_positions_turn:
            return ~odd
        return odd

    def _register_edges(self, compliance: np.ndarray, expected: np.ndarray, grid) -> tuple:
        """
        Fill the band added by a growth event and return the interior slice.

        Cells in the new band hold nothing and cannot topple, so they comply
        exactly when it is not their turn.
        """
        dimension = grid.dimension
        if grid.symmetric:
            interior = (slice(0, -1),) * dimension
        else:
            interior = (slice(1, -1),) * dimension
        compliance[...] = ~expected
        return interior

    def update(self, grid, result: StepResult, grown: bool) -> None:
        expected = self._expected(grid)
        compliance = np.zeros(expected.shape, dtype=bool)
        interior = (slice(None),) * grid.dimension
        if grown:
            interior = self._register_edges(compliance, expected, grid)
        compliance[interior] = result.toppled[interior] == expected[interior]
        self.compliance = compliance
        self._grid = grid
        self.its_even_positions_turn = not self.its_even_positions_turn

    def value_at(self, coordinates: Sequence[int]) -> Optional[bool]:
        if self.compliance is None:
            return None
        index = self._grid.locate(coordinates)
        if index is None:
            # Cells never materialized hold zero and never topple
            odd = (sum(int(c) for c in coordinates) - sum(self.source_offset)) % 2 == 1
            expected = odd != (not self.its_even_positions_turn)
            return not expected
        return bool(self.compliance[index])

    def fully_compliant(self) -> Optional[bool]:
        if self.compliance is None:
            return None
        if self._grid.symmetric:
            return all(self.compliance[index] for index in self._grid.canonical_indices())
        return bool(self.compliance.all())


__all__ = ["TopplingTracker", "AlternationComplianceTracker"]
