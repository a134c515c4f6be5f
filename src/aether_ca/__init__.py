"""
Aether Cellular Automaton Library

This package provides a single parameterized stepper for the Aether
automaton in 1 to 5 dimensions:
- AetherSimulator: steps a grid one generation at a time
- AetherConfig: dimension, numeric type, boundary, storage and seed choices
- run_model: build, run and collect an AetherResult in one call
"""

from .simulator import AetherConfig, AetherSimulator, run_model
from .engine import StepResult, redistribute
from .grid import DenseGrid, SymmetricGrid, canonicalize, mirror_multiplicity, orbit_size
from .boundary import BOUNDED, TOROIDAL, UNBOUNDED, BoundaryPolicy
from .numeric import BigInteger, FixedWidthInteger, NumericType, Rational
from .trackers import AlternationComplianceTracker, TopplingTracker
from . import utils

__all__ = [
    # Simulator
    "AetherSimulator",
    "AetherConfig",
    "run_model",
    # Core rule
    "StepResult",
    "redistribute",
    # Storage
    "DenseGrid",
    "SymmetricGrid",
    "canonicalize",
    "orbit_size",
    "mirror_multiplicity",
    # Boundaries
    "BoundaryPolicy",
    "UNBOUNDED",
    "TOROIDAL",
    "BOUNDED",
    # Numeric types
    "NumericType",
    "FixedWidthInteger",
    "BigInteger",
    "Rational",
    # Trackers
    "TopplingTracker",
    "AlternationComplianceTracker",
    # Utilities
    "utils",
]
