"""Reference grids of simulated-dataset summaries."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .exceptions import GridFormatError, ShapeMismatchError, UnknownTechnologyError
from .summary import ProfileKind

logger = logging.getLogger(__name__)

GRID_DIR_ENV = "SCMATCH_GRID_DIR"

TECHNOLOGIES = ("UMI", "nonUMI")
_TECH_ALIASES = {"umi": "UMI", "nonumi": "nonUMI", "non-umi": "nonUMI", "non_umi": "nonUMI"}

REQUIRED_PARAMS = ("depth_mean", "alpha_mean")


def normalize_tech(tech: str) -> str:
    """Map a technology tag (case-insensitive, "non-UMI" accepted) to its canonical form."""
    canonical = _TECH_ALIASES.get(str(tech).lower())
    if canonical is None:
        raise UnknownTechnologyError(
            f"Unknown technology '{tech}'. Choose from {list(TECHNOLOGIES)}"
        )
    return canonical


def _readonly(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass
class ReferenceGrid:
    """
    Precomputed profile triples for a set of simulation configurations.

    Attributes
    ----------
    mean_profiles, sd_profiles, nonzero_profiles : np.ndarray
        (n_candidates, n_levels) read-only arrays; row i belongs to
        ``params.iloc[i]``.
    params : pd.DataFrame
        One row per candidate; includes at least ``depth_mean`` and
        ``alpha_mean``.
    tech : Optional[str]
        Technology tag the grid was built for.
    quantile_levels : np.ndarray
        Probability levels shared by every profile. Defaults to the evenly
        spaced levels matching the profile width.
    """

    mean_profiles: np.ndarray
    sd_profiles: np.ndarray
    nonzero_profiles: np.ndarray
    params: pd.DataFrame
    tech: Optional[str] = None
    quantile_levels: Optional[np.ndarray] = field(default=None)

    def __post_init__(self) -> None:
        self.mean_profiles = _readonly(self.mean_profiles)
        self.sd_profiles = _readonly(self.sd_profiles)
        self.nonzero_profiles = _readonly(self.nonzero_profiles)
        self.params = self.params.reset_index(drop=True)
        self._validate()
        if self.quantile_levels is None:
            n_levels = self.mean_profiles.shape[1]
            self.quantile_levels = np.linspace(0.0, 1.0, n_levels)
        self.quantile_levels = _readonly(self.quantile_levels)
        if self.quantile_levels.size != self.mean_profiles.shape[1]:
            raise ShapeMismatchError(
                f"{self.quantile_levels.size} quantile levels given for "
                f"profiles of width {self.mean_profiles.shape[1]}"
            )

    def _validate(self) -> None:
        shapes = {
            "mean": self.mean_profiles.shape,
            "sd": self.sd_profiles.shape,
            "nonzero": self.nonzero_profiles.shape,
        }
        for name, shape in shapes.items():
            if len(shape) != 2:
                raise ShapeMismatchError(f"{name} profiles must be a 2D table")
        if len(set(shapes.values())) != 1:
            raise ShapeMismatchError(f"profile tables differ in shape: {shapes}")
        if self.mean_profiles.shape[0] != len(self.params):
            raise ShapeMismatchError(
                f"{self.mean_profiles.shape[0]} profile rows but "
                f"{len(self.params)} parameter rows"
            )
        missing = [col for col in REQUIRED_PARAMS if col not in self.params.columns]
        if missing:
            raise GridFormatError(f"parameter table is missing columns: {missing}")

    @property
    def n_candidates(self) -> int:
        return self.mean_profiles.shape[0]

    @property
    def n_levels(self) -> int:
        return self.mean_profiles.shape[1]

    def profiles(self, kind: ProfileKind) -> np.ndarray:
        return getattr(self, f"{kind.name}_profiles")


def default_grid_dir() -> Path:
    """Grid directory taken from the ``SCMATCH_GRID_DIR`` environment variable."""
    value = os.environ.get(GRID_DIR_ENV)
    if not value:
        raise FileNotFoundError(
            f"No grid directory given and ${GRID_DIR_ENV} is not set"
        )
    return Path(value)


def grid_paths(tech: str, grid_dir) -> dict:
    """File locations of the grid tables for one technology."""
    tech = normalize_tech(tech)
    grid_dir = Path(grid_dir)
    return {
        "mean": grid_dir / f"mean_bins_{tech}.txt",
        "sd": grid_dir / f"sd_bins_{tech}.txt",
        "nonzero": grid_dir / f"nonzero_bins_{tech}.txt",
        "params": grid_dir / f"sim_params_{tech}.csv",
    }


def _read_profile_table(path: Path) -> np.ndarray:
    if not path.exists():
        raise FileNotFoundError(f"Grid file not found: {path}")
    table = pd.read_csv(path, sep=r"\s+", header=None, float_precision="round_trip")
    try:
        return table.to_numpy(dtype=float)
    except ValueError as exc:
        raise GridFormatError(f"Non-numeric values in grid file '{path}'") from exc


def load_reference_grid(tech: str, grid_dir=None) -> ReferenceGrid:
    """
    Load the reference grid for a technology tag.

    Parameters
    ----------
    tech
        "UMI" or "nonUMI" ("non-UMI" is accepted).
    grid_dir
        Directory holding ``mean_bins_<tech>.txt``, ``sd_bins_<tech>.txt``,
        ``nonzero_bins_<tech>.txt`` (whitespace-delimited, no header) and
        ``sim_params_<tech>.csv``. Falls back to ``$SCMATCH_GRID_DIR``.

    Returns
    -------
    ReferenceGrid
    """
    tech = normalize_tech(tech)
    grid_dir = default_grid_dir() if grid_dir is None else Path(grid_dir)
    paths = grid_paths(tech, grid_dir)

    mean_profiles = _read_profile_table(paths["mean"])
    sd_profiles = _read_profile_table(paths["sd"])
    nonzero_profiles = _read_profile_table(paths["nonzero"])
    if not paths["params"].exists():
        raise FileNotFoundError(f"Grid file not found: {paths['params']}")
    params = pd.read_csv(paths["params"])

    grid = ReferenceGrid(
        mean_profiles=mean_profiles,
        sd_profiles=sd_profiles,
        nonzero_profiles=nonzero_profiles,
        params=params,
        tech=tech,
    )
    logger.info(
        "Loaded %s reference grid from %s: %d candidates x %d levels",
        tech,
        grid_dir,
        grid.n_candidates,
        grid.n_levels,
    )
    return grid
