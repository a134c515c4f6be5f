from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Mode constants shared with the numba kernel
UNBOUNDED_MODE = 0
TOROIDAL_MODE = 1
BOUNDED_MODE = 2


@dataclass(frozen=True)
class BoundaryPolicy:
    """
    How neighbor indices beyond the materialized box are resolved.

    - unbounded: the grid grows on demand; beyond the box everything reads as zero.
    - toroidal: indices wrap around a fixed side.
    - bounded: a fixed box with walls; cells beyond the walls do not exist.
    """

    name: str
    mode: int
    grows: bool

    @property
    def finite(self) -> bool:
        return not self.grows

    def resolve(self, index: int, side: int) -> Optional[int]:
        """Map a (possibly out of range) array index to a stored index, or None."""
        if 0 <= index < side:
            return index
        if self.mode == TOROIDAL_MODE:
            return index % side
        if self.mode == BOUNDED_MODE:
            return None
        return index

    def fold_centered(self, coord: int, side: int) -> Optional[int]:
        """Same as ``resolve`` for coordinates centered on an odd-sided box."""
        half = side // 2
        if -half <= coord <= half:
            return coord
        if self.mode == TOROIDAL_MODE:
            return (coord + half) % side - half
        if self.mode == BOUNDED_MODE:
            return None
        return coord


UNBOUNDED = BoundaryPolicy("unbounded", UNBOUNDED_MODE, grows=True)
TOROIDAL = BoundaryPolicy("toroidal", TOROIDAL_MODE, grows=False)
BOUNDED = BoundaryPolicy("bounded", BOUNDED_MODE, grows=False)

_POLICIES = {
    "unbounded": UNBOUNDED,
    "infinite": UNBOUNDED,
    "toroidal": TOROIDAL,
    "periodic": TOROIDAL,
    "enclosed": TOROIDAL,
    "bounded": BOUNDED,
}


def boundary_from_name(name: str | BoundaryPolicy) -> BoundaryPolicy:
    if isinstance(name, BoundaryPolicy):
        return name
    try:
        return _POLICIES[str(name).lower()]
    except KeyError:
        raise ValueError(
            f"Unknown boundary {name!r}; expected one of {sorted(_POLICIES)}"
        ) from None


__all__ = [
    "BoundaryPolicy",
    "UNBOUNDED",
    "TOROIDAL",
    "BOUNDED",
    "UNBOUNDED_MODE",
    "TOROIDAL_MODE",
    "BOUNDED_MODE",
    "boundary_from_name",
]
