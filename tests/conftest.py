from __future__ import annotations

from typing import Sequence

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from scmatch.grid import ReferenceGrid
from scmatch.summary import SummaryProfiles
from scmatch.utils import quantile_levels


def make_profiles(
    mean_scale: float = 1.0,
    sd_scale: float = 1.0,
    nonzero_scale: float = 1.0,
    levels: np.ndarray = None,
) -> SummaryProfiles:
    levels = quantile_levels() if levels is None else levels
    n = levels.size
    return SummaryProfiles(
        mean=np.linspace(1.1, 50.0, n) * mean_scale,
        sd=np.linspace(0.2, 30.0, n) * sd_scale,
        nonzero=np.linspace(0.01, 1.0, n) * nonzero_scale,
        quantile_levels=levels,
    )


def make_grid(
    profiles: Sequence[SummaryProfiles],
    depths: Sequence[float] = None,
    alphas: Sequence[float] = None,
    tech: str = "UMI",
) -> ReferenceGrid:
    n = len(profiles)
    depths = list(depths) if depths is not None else [1e5] * n
    alphas = list(alphas) if alphas is not None else [0.05] * n
    params = pd.DataFrame(
        {
            "depth_mean": depths,
            "alpha_mean": alphas,
            "Sigma": np.linspace(0.1, 0.5, n),
        }
    )
    return ReferenceGrid(
        mean_profiles=np.vstack([p.mean for p in profiles]),
        sd_profiles=np.vstack([p.sd for p in profiles]),
        nonzero_profiles=np.vstack([p.nonzero for p in profiles]),
        params=params,
        tech=tech,
    )


def write_grid_files(grid: ReferenceGrid, grid_dir, tech: str = "UMI") -> None:
    np.savetxt(grid_dir / f"mean_bins_{tech}.txt", grid.mean_profiles)
    np.savetxt(grid_dir / f"sd_bins_{tech}.txt", grid.sd_profiles)
    np.savetxt(grid_dir / f"nonzero_bins_{tech}.txt", grid.nonzero_profiles)
    grid.params.to_csv(grid_dir / f"sim_params_{tech}.csv", index=False)


@pytest.fixture
def query_profiles() -> SummaryProfiles:
    return make_profiles()


@pytest.fixture
def ranked_grid() -> ReferenceGrid:
    scales = [2.0, 1.0, 0.5, 1.5, 3.0]
    return make_grid(
        [make_profiles(s, s, s) for s in scales],
        depths=[10.0, 50.0, 100.0, 200.0, 400.0],
        alphas=[0.01, 0.02, 0.05, 0.1, 0.2],
    )


@pytest.fixture
def count_matrix() -> np.ndarray:
    rng = np.random.default_rng(0)
    gene_mean = rng.gamma(shape=2.0, scale=3.0, size=200) + 0.5
    return rng.poisson(lam=np.outer(gene_mean, np.ones(60))).astype(float)
