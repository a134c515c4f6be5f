"""
Numeric value types for the Aether automaton.

Each type knows how to allocate a zero-filled numpy array for itself, how to
read a cell back as a plain Python scalar, and how to split an amount into
equal shares with the remainder kept by the dividing cell.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Any, Dict, Tuple

import numpy as np


class NumericType:
    """Common interface for the cell value representations."""

    name: str = ""
    dtype: Any = object
    fixed_width: bool = False

    @property
    def zero(self):
        return self.coerce(0)

    @property
    def one(self):
        return self.coerce(1)

    def coerce(self, value):
        raise NotImplementedError

    def divide(self, a, n: int) -> Tuple[Any, Any]:
        """Truncating division: ``a == q * n + r`` with ``r`` sharing the sign of ``a``."""
        raise NotImplementedError

    def allocate(self, shape) -> np.ndarray:
        values = np.empty(shape, dtype=self.dtype)
        values.fill(self.zero)
        return values

    def read(self, values: np.ndarray, index):
        return values[index]

    def min_initial_value(self, dimension: int):
        return None

    @property
    def max_initial_value(self):
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def _trunc_divmod(a: int, n: int) -> Tuple[int, int]:
    q = abs(a) // n
    if a < 0:
        q = -q
    return q, a - q * n


class FixedWidthInteger(NumericType):
    """Signed integers backed by a numpy fixed-width dtype."""

    fixed_width = True

    def __init__(self, dtype) -> None:
        self.dtype = np.dtype(dtype)
        if self.dtype.kind != "i":
            raise ValueError(f"Fixed-width type must be a signed integer dtype, got {self.dtype}")
        self.name = self.dtype.name
        self._info = np.iinfo(self.dtype)

    def coerce(self, value):
        if isinstance(value, Fraction):
            if value.denominator != 1:
                raise ValueError(f"{self.name} cells cannot hold the non-integral value {value}")
            value = value.numerator
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{self.name} cells cannot hold the non-integral value {value}")
        return int(value)

    def divide(self, a, n):
        return _trunc_divmod(a, n)

    def allocate(self, shape):
        return np.zeros(shape, dtype=self.dtype)

    def read(self, values, index):
        return int(values[index])

    def min_initial_value(self, dimension: int) -> int:
        # Worst-case cascades must stay inside the dtype: MAX / (d - 0.5)
        top = int(self._info.max)
        if dimension <= 1:
            return -top
        return -((2 * top) // (2 * dimension - 1))

    @property
    def max_initial_value(self) -> int:
        return int(self._info.max)


class BigInteger(NumericType):
    """Arbitrary-precision integers stored in object arrays."""

    name = "bigint"

    def coerce(self, value):
        if isinstance(value, Fraction):
            if value.denominator != 1:
                raise ValueError(f"bigint cells cannot hold the non-integral value {value}")
            return value.numerator
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"bigint cells cannot hold the non-integral value {value}")
        return int(value)

    def divide(self, a, n):
        return _trunc_divmod(a, n)


class Rational(NumericType):
    """Exact fractions; shares divide without remainder."""

    name = "rational"

    def coerce(self, value):
        return Fraction(value)

    def divide(self, a, n):
        return a / n, Fraction(0)


NUMERIC_TYPES: Dict[str, NumericType] = {
    "int16": FixedWidthInteger(np.int16),
    "int32": FixedWidthInteger(np.int32),
    "int64": FixedWidthInteger(np.int64),
    "bigint": BigInteger(),
    "rational": Rational(),
}


def numeric_from_name(name: str | NumericType) -> NumericType:
    if isinstance(name, NumericType):
        return name
    try:
        return NUMERIC_TYPES[str(name).lower()]
    except KeyError:
        raise ValueError(
            f"Unknown numeric type {name!r}; expected one of {sorted(NUMERIC_TYPES)}"
        ) from None


__all__ = [
    "NumericType",
    "FixedWidthInteger",
    "BigInteger",
    "Rational",
    "NUMERIC_TYPES",
    "numeric_from_name",
]
