"""
Grid storage for the Aether automaton.

Two layouts are provided:

- ``DenseGrid``: the full hypercubic box, indexed by ``coordinate + origin``.
- ``SymmetricGrid``: only the canonical orthant of a grid that is symmetric
  under axis permutations and sign flips (single source at the origin). A
  canonical coordinate has non-negative entries in descending order.

Growth replaces the array wholesale with a larger zero-filled one; values are
copied across at a fixed offset.
"""

from __future__ import annotations

from collections import Counter
from itertools import combinations_with_replacement
from math import factorial
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .boundary import BoundaryPolicy
from .numeric import NumericType


def canonicalize(coordinates: Sequence[int]) -> Tuple[int, ...]:
    """Fold a coordinate into the canonical orthant (abs, then descending)."""
    return tuple(sorted((abs(int(c)) for c in coordinates), reverse=True))


def orbit_size(canonical: Sequence[int]) -> int:
    """Number of distinct cells sharing this canonical representative."""
    nonzero = sum(1 for c in canonical if c != 0)
    repeats = 1
    for run in Counter(canonical).values():
        repeats *= factorial(run)
    return (2 ** nonzero) * factorial(len(canonical)) // repeats


def mirror_multiplicity(
    source: Sequence[int], target: Sequence[int], direction_count: int = 1
) -> int:
    """
    How many full-grid neighbors of ``target`` fold onto ``source``.

    ``direction_count`` is the number of von Neumann directions leading from
    the canonical ``source`` to cells that fold onto ``target``. Counting the
    edges between the two symmetry classes from both ends gives
    ``direction_count * |orbit(source)| == multiplicity * |orbit(target)|``.
    """
    return direction_count * orbit_size(source) // orbit_size(target)


class DenseGrid:
    """The whole box of a grid, ``side`` cells per axis."""

    def __init__(
        self,
        values: np.ndarray,
        origin: int,
        numeric: NumericType,
        boundary: BoundaryPolicy,
    ) -> None:
        self.values = values
        self.origin = origin
        self.numeric = numeric
        self.boundary = boundary

    @property
    def dimension(self) -> int:
        return self.values.ndim

    @property
    def side(self) -> int:
        return self.values.shape[0]

    @property
    def symmetric(self) -> bool:
        return False

    def locate(self, coordinates: Sequence[int]) -> Optional[Tuple[int, ...]]:
        """Array index holding ``coordinates``, or None if nothing is stored there."""
        side = self.side
        index = []
        for c in coordinates:
            i = self.boundary.resolve(int(c) + self.origin, side)
            if i is None or i < 0 or i >= side:
                return None
            index.append(i)
        return tuple(index)

    def get(self, coordinates: Sequence[int]):
        index = self.locate(coordinates)
        if index is None:
            return self.numeric.zero
        return self.numeric.read(self.values, index)

    def grow(self, margin: int = 1) -> "DenseGrid":
        """Copy into a box ``2 * margin`` cells wider, shifting every index by ``margin``."""
        shape = tuple(s + 2 * margin for s in self.values.shape)
        grown = self.numeric.allocate(shape)
        grown[(slice(margin, -margin),) * self.dimension] = self.values
        return DenseGrid(grown, self.origin + margin, self.numeric, self.boundary)

    def extent(self) -> Tuple[int, int]:
        return -self.origin, self.side - 1 - self.origin

    def total(self):
        return self.values.sum(dtype=object) if self.numeric.fixed_width else self.values.sum()

    def parity(self, offset: Sequence[int] = ()) -> np.ndarray:
        """True where the coordinate sum (relative to ``origin + offset``) is odd."""
        shift = self.dimension * self.origin + sum(offset)
        return (np.indices(self.values.shape).sum(axis=0) - shift) % 2 == 1


class SymmetricGrid:
    """
    Canonical-orthant storage for fully symmetric grids.

    ``values`` has shape ``(L,) * dimension`` but only cells with
    ``c[0] >= c[1] >= ... >= c[-1] >= 0`` are used. ``full_side`` is the side
    of the (odd, centered) box for finite boundaries and None when unbounded.
    """

    def __init__(
        self,
        values: np.ndarray,
        numeric: NumericType,
        boundary: BoundaryPolicy,
        full_side: Optional[int] = None,
    ) -> None:
        self.values = values
        self.numeric = numeric
        self.boundary = boundary
        self.full_side = full_side

    @property
    def dimension(self) -> int:
        return self.values.ndim

    @property
    def side(self) -> int:
        return self.values.shape[0]

    @property
    def symmetric(self) -> bool:
        return True

    def fold(self, coordinates: Sequence[int]) -> Optional[Tuple[int, ...]]:
        """Apply the boundary (finite grids only) and canonicalize."""
        if self.full_side is not None:
            folded = []
            for c in coordinates:
                f = self.boundary.fold_centered(int(c), self.full_side)
                if f is None:
                    return None
                folded.append(f)
            coordinates = folded
        return canonicalize(coordinates)

    def locate(self, coordinates: Sequence[int]) -> Optional[Tuple[int, ...]]:
        canonical = self.fold(coordinates)
        if canonical is None or canonical[0] >= self.side:
            return None
        return canonical

    def get(self, coordinates: Sequence[int]):
        index = self.locate(coordinates)
        if index is None:
            return self.numeric.zero
        return self.numeric.read(self.values, index)

    def get_canonical(self, canonical: Tuple[int, ...]):
        if canonical[0] >= self.side:
            return self.numeric.zero
        return self.numeric.read(self.values, canonical)

    def canonical_indices(self) -> Iterator[Tuple[int, ...]]:
        for ascending in combinations_with_replacement(range(self.side), self.dimension):
            yield ascending[::-1]

    def grow(self, margin: int = 1) -> "SymmetricGrid":
        """Widen the stored orthant by ``margin`` cells on its outer side."""
        shape = tuple(s + margin for s in self.values.shape)
        grown = self.numeric.allocate(shape)
        grown[(slice(0, -margin),) * self.dimension] = self.values
        return SymmetricGrid(grown, self.numeric, self.boundary, self.full_side)

    def extent(self) -> Tuple[int, int]:
        return -(self.side - 1), self.side - 1

    def total(self):
        total = self.numeric.zero
        for index in self.canonical_indices():
            total += orbit_size(index) * self.numeric.read(self.values, index)
        return total

    def parity(self, offset: Sequence[int] = ()) -> np.ndarray:
        return np.indices(self.values.shape).sum(axis=0) % 2 == 1


__all__ = [
    "DenseGrid",
    "SymmetricGrid",
    "canonicalize",
    "orbit_size",
    "mirror_multiplicity",
]
