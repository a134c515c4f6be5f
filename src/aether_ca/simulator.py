"""
Aether cellular automaton simulator.

One stepper covers every variant of the automaton. The variants are chosen
through ``AetherConfig`` along these axes:

1.  **Dimension:** 1 to 5 axes, von Neumann neighborhood (two neighbors per axis).
2.  **Numeric type:** ``int16``/``int32``/``int64`` (fixed width, numba kernel),
    ``bigint`` (arbitrary precision) or ``rational`` (exact fractions).
3.  **Boundary:** ``unbounded`` (grows on demand), ``toroidal`` (wraps) or
    ``bounded`` (walls).
4.  **Storage:** the full box, or only the canonical orthant when the grid is
    symmetric (``symmetric=True``, single source at the center).
5.  **Initial configuration:** a single source, or a block of random values.

Optional trackers record which cells toppled and whether the toppling pattern
follows a checkerboard alternation.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import utils
from .boundary import BoundaryPolicy, boundary_from_name
from .engine import StepResult, step_grid
from .grid import DenseGrid, SymmetricGrid
from .numeric import NumericType, numeric_from_name
from .trackers import AlternationComplianceTracker, TopplingTracker

MAX_DIMENSION = 5
INITIAL_SIDE = 5
INITIAL_MARGIN = 2


@dataclass
class AetherConfig:
    """Defines the variant of the automaton and its initial configuration."""

    dimension: int = 2
    initial_value: Any = 1000
    numeric: str = "int64"
    boundary: str = "unbounded"
    side: Optional[int] = None
    source: Optional[Sequence[int]] = None
    symmetric: bool = False
    # random block initial configuration
    initial_side: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    seed: Optional[int] = None
    track_topplings: bool = False
    track_alternation: bool = False
    use_jit: bool = True
    verbose: bool = False

    @property
    def is_random(self) -> bool:
        return self.initial_side is not None


class AetherSimulator:
    """
    Steps an Aether grid one generation at a time.

    Responsibilities:
    1. Validate the configuration and build the initial grid.
    2. Grow the grid before a step whenever the previous one reached its edge.
    3. Dispatch each step to the numba kernel or the pure-Python engine.
    4. Feed the step results to any trackers.
    """

    def __init__(self, config: AetherConfig | None = None) -> None:
        self.config = config or AetherConfig()
        self.numeric: NumericType = numeric_from_name(self.config.numeric)
        self.boundary: BoundaryPolicy = boundary_from_name(self.config.boundary)
        self._validate()

        if self.config.seed is not None:
            utils.set_seed(self.config.seed)

        self.grid = self._build_grid()
        self.step_count = 0
        self.changed: Optional[bool] = None
        self.bounds_reached = False
        self.last_result: Optional[StepResult] = None

        self.toppling_tracker: Optional[TopplingTracker] = None
        self.alternation_tracker: Optional[AlternationComplianceTracker] = None
        if self.config.track_topplings:
            self.toppling_tracker = TopplingTracker()
        if self.config.track_alternation:
            self.alternation_tracker = AlternationComplianceTracker(
                self.initial_value, self._source_offset()
            )

    # ------------------------------------------------------------------ setup
    def _validate(self) -> None:
        cfg = self.config
        if not isinstance(cfg.dimension, (int, np.integer)) or not 1 <= cfg.dimension <= MAX_DIMENSION:
            raise ValueError(
                f"Dimension must be an integer between 1 and {MAX_DIMENSION}, got {cfg.dimension!r}"
            )
        dimension = int(cfg.dimension)

        if self.boundary.finite:
            if cfg.side is None:
                raise ValueError(f"A {self.boundary.name} grid needs a side")
            if cfg.side < 1:
                raise ValueError(f"Grid side cannot be smaller than one, got {cfg.side}")
            if cfg.symmetric and cfg.side % 2 == 0:
                raise ValueError(
                    f"Symmetric {self.boundary.name} grids need an odd side so the source has a center cell, got {cfg.side}"
                )
        elif cfg.side is not None:
            raise ValueError("The side of an unbounded grid is not configurable")

        if cfg.symmetric and cfg.is_random:
            raise ValueError("Random initial configurations are not symmetric")

        if cfg.source is not None:
            source = tuple(cfg.source)
            if len(source) != dimension:
                raise ValueError(
                    f"Source must have {dimension} coordinates, got {len(source)}"
                )
            if cfg.is_random:
                raise ValueError("A random initial configuration has no single source")
            if cfg.symmetric or self.boundary.grows:
                if any(c != 0 for c in source):
                    raise ValueError(
                        "The source of a symmetric or unbounded grid is the origin; only (0, ..., 0) is accepted"
                    )
            elif any(c < 0 or c >= cfg.side for c in source):
                raise ValueError(
                    f"Single source coordinates {source} out of bounds for side {cfg.side}"
                )

        if cfg.is_random:
            if cfg.track_alternation:
                raise ValueError("Alternation compliance is only defined for single source grids")
            self._validate_random(dimension)
            self.initial_value = None
        else:
            self.initial_value = self.numeric.coerce(cfg.initial_value)
            self._check_value_range(self.initial_value, dimension)

    def _check_value_range(self, value, dimension: int) -> None:
        low = self.numeric.min_initial_value(dimension)
        if low is not None and value < low:
            raise ValueError(
                f"Initial value cannot be smaller than {low:,}. Use a greater initial value or a different numeric type."
            )
        high = self.numeric.max_initial_value
        if high is not None and value > high:
            raise ValueError(
                f"Initial value cannot be greater than {high:,} for {self.numeric.name}."
            )

    def _validate_random(self, dimension: int) -> None:
        cfg = self.config
        if cfg.min_value is None or cfg.max_value is None:
            raise ValueError("A random initial configuration needs min_value and max_value")
        if cfg.min_value > cfg.max_value:
            raise ValueError(
                f"Min value ({cfg.min_value}) cannot be greater than max value ({cfg.max_value})"
            )
        if cfg.initial_side < 1:
            raise ValueError("Initial side cannot be smaller than one")
        if self.boundary.finite and cfg.initial_side > cfg.side:
            raise ValueError(
                f"Initial side {cfg.initial_side} does not fit in a grid of side {cfg.side}"
            )
        high = self.numeric.max_initial_value
        if high is not None:
            actual_min = min(cfg.min_value, 0)
            actual_max = max(cfg.max_value, 0)
            resulting_max = actual_min + ((actual_max - actual_min) // 2) * (dimension * 2 + 1)
            if resulting_max > high or actual_min < -high:
                raise ValueError(
                    f"The range between the actual min and max values ([{actual_min}, {actual_max}]) is too big for {self.numeric.name}."
                )

    def _source_offset(self) -> Tuple[int, ...]:
        cfg = self.config
        if cfg.symmetric or self.boundary.grows or cfg.is_random:
            return ()
        return tuple(int(c) for c in self._finite_source())

    def _finite_source(self) -> Tuple[int, ...]:
        cfg = self.config
        if cfg.source is not None:
            return tuple(int(c) for c in cfg.source)
        return (cfg.side // 2,) * cfg.dimension

    def _build_grid(self):
        cfg = self.config
        dimension = int(cfg.dimension)
        if cfg.symmetric:
            if self.boundary.grows:
                side, full_side = INITIAL_MARGIN + 1, None
            else:
                side, full_side = cfg.side // 2 + 1, cfg.side
            values = self.numeric.allocate((side,) * dimension)
            values[(0,) * dimension] = self.initial_value
            return SymmetricGrid(values, self.numeric, self.boundary, full_side)

        if cfg.is_random:
            if self.boundary.grows:
                side, origin = cfg.initial_side + 2 * INITIAL_MARGIN, INITIAL_MARGIN
            else:
                side, origin = cfg.side, 0
            values = self.numeric.allocate((side,) * dimension)
            block = np.random.randint(
                cfg.min_value, cfg.max_value + 1, size=(cfg.initial_side,) * dimension, dtype=np.int64
            )
            region = tuple(slice(origin, origin + cfg.initial_side) for _ in range(dimension))
            if self.numeric.fixed_width:
                values[region] = block
            else:
                cells = values[region]
                for index in np.ndindex(block.shape):
                    cells[index] = self.numeric.coerce(int(block[index]))
            return DenseGrid(values, origin, self.numeric, self.boundary)

        if self.boundary.grows:
            values = self.numeric.allocate((INITIAL_SIDE,) * dimension)
            origin = INITIAL_SIDE // 2
            values[(origin,) * dimension] = self.initial_value
            return DenseGrid(values, origin, self.numeric, self.boundary)

        values = self.numeric.allocate((cfg.side,) * dimension)
        values[self._finite_source()] = self.initial_value
        return DenseGrid(values, 0, self.numeric, self.boundary)

    # ------------------------------------------------------------------ stepping
    def step(self) -> bool:
        """Advance one generation; returns whether any cell toppled."""
        grown = False
        if self.bounds_reached:
            self.grid = self.grid.grow()
            grown = True
        new_grid, result = step_grid(self.grid, use_jit=self.config.use_jit)
        for tracker in self.trackers:
            tracker.update(new_grid, result, grown)
        self.grid = new_grid
        self.bounds_reached = result.bounds_reached
        self.last_result = result
        self.step_count += 1
        self.changed = result.changed
        return result.changed

    def run(self, max_steps: int = 1000, until_stable: bool = True) -> int:
        """Step up to ``max_steps`` times, stopping early once nothing changes."""
        start_time = time.time()
        if self.config.verbose:
            print(
                f"Running Aether: {self.config.dimension}D, {self.numeric.name}, "
                f"{self.boundary.name}{', symmetric' if self.grid.symmetric else ''}, "
                f"max_steps={max_steps}"
            )
        report_every = max(1, max_steps // 10)
        for _ in range(max_steps):
            changed = self.step()
            if self.config.verbose and (self.step_count % report_every == 0 or not changed):
                elapsed = time.time() - start_time
                print(
                    f"[aether] step={self.step_count}, side={self.grid.side}, "
                    f"changed={changed}, elapsed={elapsed:.1f}s"
                )
            if until_stable and not changed:
                break
        return self.step_count

    @property
    def trackers(self) -> List:
        return [t for t in (self.toppling_tracker, self.alternation_tracker) if t is not None]

    # ------------------------------------------------------------------ queries
    @property
    def current_step(self) -> int:
        return self.step_count

    @property
    def dimension(self) -> int:
        return int(self.config.dimension)

    def _check_coordinates(self, coordinates: Sequence[int]) -> None:
        if len(coordinates) != self.dimension:
            raise ValueError(
                f"Expected {self.dimension} coordinates, got {len(coordinates)}"
            )

    def value_at(self, coordinates: Sequence[int]):
        """Value of a cell; zero anywhere nothing has been written."""
        self._check_coordinates(coordinates)
        return self.grid.get(coordinates)

    def toppled_at(self, coordinates: Sequence[int]) -> Optional[bool]:
        if self.toppling_tracker is None:
            raise RuntimeError("Toppling tracking is disabled; set track_topplings=True")
        self._check_coordinates(coordinates)
        return self.toppling_tracker.value_at(coordinates)

    def compliance_at(self, coordinates: Sequence[int]) -> Optional[bool]:
        if self.alternation_tracker is None:
            raise RuntimeError("Alternation tracking is disabled; set track_alternation=True")
        self._check_coordinates(coordinates)
        return self.alternation_tracker.value_at(coordinates)

    def bounding_extent(self, axis: int = 0) -> Tuple[int, int]:
        """Coordinate range currently materialized along ``axis``."""
        if not 0 <= axis < self.dimension:
            raise ValueError(f"Axis must be between 0 and {self.dimension - 1}, got {axis}")
        return self.grid.extent()

    def values_extent(self, axis: int = 0) -> Tuple[int, int]:
        """
        Coordinate range guaranteed to contain every nonzero value.

        On a growing grid the outermost ring only holds values when a growth
        is pending for the next step.
        """
        low, high = self.bounding_extent(axis)
        if self.boundary.grows and not self.bounds_reached:
            return low + 1, high - 1
        return low, high

    def total_mass(self):
        return self.grid.total()

    def snapshot(self) -> Dict[str, Any]:
        low, high = self.bounding_extent()
        return {
            "step": self.step_count,
            "changed": self.changed,
            "side": self.grid.side,
            "extent": (low, high),
            "mass": self.total_mass(),
        }

    def result(self) -> utils.AetherResult:
        meta = asdict(self.config)
        meta.update(self.snapshot())
        meta["symmetric"] = self.grid.symmetric
        toppled = None if self.last_result is None else self.last_result.toppled
        return utils.AetherResult(values=self.grid.values.copy(), toppled=toppled, meta=meta)


def run_model(
    config: AetherConfig | dict | None = None, max_steps: int = 1000
) -> utils.AetherResult:
    """
    Build a simulator from a config (or a plain dict, e.g. from
    ``utils.load_params``), run it and return an AetherResult.
    """
    if config is None:
        config = AetherConfig()
    elif isinstance(config, dict):
        params = dict(config)
        max_steps = params.pop("max_steps", max_steps)
        if params.get("source") is not None:
            params["source"] = tuple(params["source"])
        config = AetherConfig(**params)
    start_time = time.time()
    simulator = AetherSimulator(config)
    simulator.run(max_steps=max_steps)
    result = simulator.result()
    result.ensure_meta()["time_elapsed"] = time.time() - start_time
    return result


__all__ = ["AetherConfig", "AetherSimulator", "run_model"]
