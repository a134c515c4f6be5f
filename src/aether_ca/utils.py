# src/aether_ca/utils.py
from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

PARAM_FORMATS = {".json": "json", "": "json", ".toml": "toml", ".tml": "toml"}


@dataclass
class AetherResult:
    """Common container for Aether simulation outputs."""

    values: Optional[np.ndarray] = None
    toppled: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta


def set_seed(seed: int = 0) -> None:
    """Set random seed for reproducibility (global numpy RNG)."""
    np.random.seed(seed)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters (AetherConfig fields, plus ``max_steps``)
    from JSON or TOML.
    """
    path = str(path)
    suffix = Path(path).suffix.lower()
    if suffix not in PARAM_FORMATS:
        raise ValueError(f"Unsupported parameter file format: {suffix}")
    with open(path, "rb") as fh:
        data = fh.read()
    if PARAM_FORMATS[suffix] == "json":
        return json.loads(data.decode("utf-8"))
    return tomllib.loads(data.decode("utf-8"))
