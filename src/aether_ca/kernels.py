"""
Numba-compiled stepping kernel for fixed-width dense grids.

The grid is handled as a flat C-ordered array with ``side ** dimension``
cells, so a single kernel covers every dimension. The arithmetic mirrors
``engine.redistribute`` exactly; the pure-Python path is the reference the
kernel is tested against.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numba import njit

from .boundary import BOUNDED_MODE, TOROIDAL_MODE, UNBOUNDED_MODE


@njit(cache=True)
def _decode(flat: int, strides: np.ndarray, out: np.ndarray) -> None:
    """Write the per-axis indices of ``flat`` into ``out``."""
    rem = flat
    for a in range(strides.shape[0]):
        out[a] = rem // strides[a]
        rem = rem % strides[a]


@njit(cache=True)
def _near_edge(coords: np.ndarray, side: int) -> bool:
    for a in range(coords.shape[0]):
        if coords[a] <= 1 or coords[a] >= side - 2:
            return True
    return False


@njit(cache=True, boundscheck=False)
def step_dense_kernel(
    values: np.ndarray,
    side: int,
    dimension: int,
    mode: int,
    new_values: np.ndarray,
    toppled: np.ndarray,
) -> Tuple[bool, bool]:
    """
    Apply one generation of the Aether rule.

    ``values`` is read only; results accumulate into the zero-filled
    ``new_values``. ``toppled`` receives a per-cell flag. Returns
    ``(changed, bounds_reached)``.
    """
    n_cells = values.shape[0]
    strides = np.empty(dimension, dtype=np.int64)
    stride = 1
    for a in range(dimension - 1, -1, -1):
        strides[a] = stride
        stride *= side

    coords = np.empty(dimension, dtype=np.int64)
    target_coords = np.empty(dimension, dtype=np.int64)
    max_neighbors = 2 * dimension
    neighbor_values = np.empty(max_neighbors, dtype=np.int64)
    neighbor_targets = np.empty(max_neighbors, dtype=np.int64)
    shares = np.empty(max_neighbors, dtype=np.int64)

    grows = mode == UNBOUNDED_MODE
    changed = False
    bounds_reached = False

    for flat in range(n_cells):
        _decode(flat, strides, coords)
        value = np.int64(values[flat])

        # Collect smaller neighbors, kept sorted by value (descending, stable)
        count = 0
        for a in range(dimension):
            for k in range(2):
                delta = 1 - 2 * k
                c = coords[a] + delta
                target = flat + delta * strides[a]
                if c < 0 or c >= side:
                    if mode == TOROIDAL_MODE:
                        wrapped = c % side
                        target = flat + (wrapped - coords[a]) * strides[a]
                    elif mode == BOUNDED_MODE:
                        continue
                    else:
                        target = -1
                if target >= 0:
                    neighbor_value = np.int64(values[target])
                else:
                    neighbor_value = np.int64(0)
                if neighbor_value < value:
                    pos = count
                    while pos > 0 and neighbor_values[pos - 1] < neighbor_value:
                        neighbor_values[pos] = neighbor_values[pos - 1]
                        neighbor_targets[pos] = neighbor_targets[pos - 1]
                        pos -= 1
                    neighbor_values[pos] = neighbor_value
                    neighbor_targets[pos] = target
                    count += 1

        did_topple = False
        for j in range(count):
            shares[j] = 0
        previous = np.int64(0)
        for i in range(count):
            neighbor_value = neighbor_values[i]
            if i > 0 and neighbor_value == previous:
                continue
            previous = neighbor_value
            share_count = count - i + 1
            to_share = value - neighbor_value
            share = abs(to_share) // share_count
            if to_share < 0:
                share = -share
            remainder = to_share - share * share_count
            if share == 0:
                continue
            did_topple = True
            value = value - to_share + remainder + share
            for j in range(i, count):
                shares[j] += share

        if did_topple:
            changed = True
            toppled[flat] = True
            if grows and _near_edge(coords, side):
                bounds_reached = True
            for j in range(count):
                if shares[j] == 0:
                    continue
                target = neighbor_targets[j]
                if target < 0:
                    bounds_reached = True
                    continue
                new_values[target] += shares[j]
                if grows and not bounds_reached:
                    _decode(target, strides, target_coords)
                    if _near_edge(target_coords, side):
                        bounds_reached = True
        new_values[flat] += value

    return changed, bounds_reached


def step_dense_fixed(values: np.ndarray, mode: int) -> Tuple[np.ndarray, np.ndarray, bool, bool]:
    """Run the kernel on an N-dimensional fixed-width array."""
    shape = values.shape
    flat = np.ascontiguousarray(values).ravel()
    new_values = np.zeros_like(flat)
    toppled = np.zeros(flat.shape[0], dtype=np.bool_)
    changed, bounds_reached = step_dense_kernel(
        flat, shape[0], len(shape), mode, new_values, toppled
    )
    return (
        new_values.reshape(shape),
        toppled.reshape(shape),
        bool(changed),
        bool(bounds_reached),
    )


__all__ = ["step_dense_kernel", "step_dense_fixed", "UNBOUNDED_MODE", "TOROIDAL_MODE", "BOUNDED_MODE"]
