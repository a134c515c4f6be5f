"""
The Aether redistribution rule and the per-generation stepping loops.

Every cell compares itself with its von Neumann neighbors. The neighbors with
a strictly smaller value are walked from the largest value to the smallest;
at each new value the cell levels itself towards that neighbor, splitting the
difference into one share per remaining neighbor plus one it keeps. Integer
shares truncate and the remainder stays with the dividing cell, so mass is
conserved exactly.

Reads always come from the previous generation and writes go to a fresh
array, so the order in which cells are visited never matters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, List, Sequence, Tuple

import numpy as np

from . import kernels
from .grid import DenseGrid, SymmetricGrid, mirror_multiplicity
from .numeric import NumericType


@dataclass
class StepResult:
    """Outcome of one generation."""

    changed: bool
    bounds_reached: bool
    toppled: np.ndarray


def redistribute(
    value, neighbors: Sequence[Tuple[Hashable, Any]], numeric: NumericType
) -> Tuple[Any, List[Tuple[Hashable, Any]], bool]:
    """
    Apply the Aether rule to a single cell.

    Parameters
    ----------
    value:
        The cell's current value.
    neighbors:
        ``(target, neighbor_value)`` pairs for every existing neighbor, in
        direction order. ``target`` is opaque to this function.
    numeric:
        The value type, used for the truncating division.

    Returns
    -------
    retained, transfers, toppled
        The value the cell keeps, the nonzero ``(target, share)`` amounts it
        hands out, and whether any share was nonzero.
    """
    relevant = [(target, v) for target, v in neighbors if v < value]
    if not relevant:
        return value, [], False
    # stable, so equal values keep their direction order
    relevant.sort(key=lambda item: item[1], reverse=True)

    count = len(relevant)
    shares = [numeric.zero] * count
    toppled = False
    previous = None
    for i, (_, neighbor_value) in enumerate(relevant):
        if i > 0 and neighbor_value == previous:
            continue
        previous = neighbor_value
        share_count = count - i + 1
        to_share = value - neighbor_value
        share, remainder = numeric.divide(to_share, share_count)
        if share == 0:
            continue
        toppled = True
        value = value - to_share + remainder + share
        for j in range(i, count):
            shares[j] += share

    transfers = [
        (relevant[j][0], shares[j]) for j in range(count) if shares[j] != 0
    ]
    return value, transfers, toppled


def _near_dense_edge(index: Sequence[int], side: int) -> bool:
    return any(i <= 1 or i >= side - 2 for i in index)


def step_dense(grid: DenseGrid, use_jit: bool = True) -> Tuple[DenseGrid, StepResult]:
    """Advance a full-box grid by one generation."""
    boundary = grid.boundary
    if use_jit and grid.numeric.fixed_width:
        new_values, toppled, changed, bounds_reached = kernels.step_dense_fixed(
            grid.values, boundary.mode
        )
        new_grid = DenseGrid(new_values, grid.origin, grid.numeric, boundary)
        return new_grid, StepResult(changed, bounds_reached, toppled)

    numeric = grid.numeric
    values = grid.values
    side = grid.side
    dimension = grid.dimension
    grows = boundary.grows
    new_values = numeric.allocate(values.shape)
    toppled = np.zeros(values.shape, dtype=bool)
    changed = False
    bounds_reached = False

    for index in np.ndindex(values.shape):
        value = numeric.read(values, index)
        neighbors = []
        for axis in range(dimension):
            for delta in (1, -1):
                i = boundary.resolve(index[axis] + delta, side)
                if i is None:
                    continue
                if 0 <= i < side:
                    target = index[:axis] + (i,) + index[axis + 1:]
                    neighbors.append((target, numeric.read(values, target)))
                else:
                    neighbors.append((None, numeric.zero))
        retained, transfers, did_topple = redistribute(value, neighbors, numeric)
        if did_topple:
            changed = True
            toppled[index] = True
            if grows and _near_dense_edge(index, side):
                bounds_reached = True
            for target, share in transfers:
                if target is None:
                    bounds_reached = True
                    continue
                new_values[target] += share
                if grows and _near_dense_edge(target, side):
                    bounds_reached = True
        new_values[index] += retained

    new_grid = DenseGrid(new_values, grid.origin, numeric, boundary)
    return new_grid, StepResult(changed, bounds_reached, toppled)


def step_symmetric(grid: SymmetricGrid) -> Tuple[SymmetricGrid, StepResult]:
    """
    Advance a canonical-orthant grid by one generation.

    Only canonical cells are visited. A share sent from canonical cell ``c``
    towards a cell that folds onto canonical ``t`` is credited to ``t``
    ``mirror_multiplicity(c, t, k)`` times, where ``k`` counts the directions
    from ``c`` that fold onto ``t``; this accounts for every mirror image of
    ``c`` that borders ``t``.
    """
    numeric = grid.numeric
    values = grid.values
    side = grid.side
    dimension = grid.dimension
    grows = grid.boundary.grows
    new_values = numeric.allocate(values.shape)
    toppled = np.zeros(values.shape, dtype=bool)
    changed = False
    bounds_reached = False

    for index in grid.canonical_indices():
        value = numeric.read(values, index)
        neighbors = []
        for axis in range(dimension):
            for delta in (1, -1):
                coordinates = list(index)
                coordinates[axis] += delta
                target = grid.fold(coordinates)
                if target is None:
                    continue
                neighbors.append((target, grid.get_canonical(target)))
        retained, transfers, did_topple = redistribute(value, neighbors, numeric)
        if did_topple:
            changed = True
            toppled[index] = True
            if grows and index[0] >= side - 2:
                bounds_reached = True
            credits = {}
            for target, share in transfers:
                if target in credits:
                    credits[target] = (credits[target][0], credits[target][1] + 1)
                else:
                    credits[target] = (share, 1)
            for target, (share, direction_count) in credits.items():
                if target[0] >= side:
                    bounds_reached = True
                    continue
                new_values[target] += share * mirror_multiplicity(index, target, direction_count)
                if grows and target[0] >= side - 2:
                    bounds_reached = True
        new_values[index] += retained

    new_grid = SymmetricGrid(new_values, numeric, grid.boundary, grid.full_side)
    return new_grid, StepResult(changed, bounds_reached, toppled)


def step_grid(grid, use_jit: bool = True):
    if isinstance(grid, SymmetricGrid):
        return step_symmetric(grid)
    return step_dense(grid, use_jit=use_jit)


__all__ = [
    "StepResult",
    "redistribute",
    "step_dense",
    "step_symmetric",
    "step_grid",
]
