"""Distances between quantile profiles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import InvalidProfileError, ShapeMismatchError
from .summary import (
    PROFILE_KINDS,
    ProfileKind,
    SummaryProfiles,
    extract_summary_profiles,
    filter_expressed_genes,
)

logger = logging.getLogger(__name__)

DEFAULT_NBINS = 20


@dataclass
class ProfileComparison:
    """
    Paired profiles behind one diagnostic scatter (simulated vs experimental).

    Attributes
    ----------
    kind : ProfileKind
        Statistic being compared.
    simulated : np.ndarray
        Simulated/candidate profile, on the comparison scale (log10 for
        log-scale kinds). Plotted on the x axis.
    experimental : np.ndarray
        Query profile on the same scale. Plotted on the y axis.
    label : str
        Panel title.
    rank : Optional[int]
        1-based rank of the candidate when produced by the grid matcher.
    """

    kind: ProfileKind
    simulated: np.ndarray
    experimental: np.ndarray
    label: str
    rank: Optional[int] = None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"simulated": self.simulated, "experimental": self.experimental}
        )


@dataclass
class DatasetComparison:
    """
    Profile-level comparison of a simulated and an experimental dataset.

    Attributes
    ----------
    comparisons : List[ProfileComparison]
        One entry per profile kind (mean, nonzero, sd).
    distances : Dict[str, float]
        Per-kind distance keyed by kind name.
    total : float
        Sum of the per-kind distances.
    """

    comparisons: List[ProfileComparison]
    distances: Dict[str, float]
    total: float


def _binned_diagonal_deviation(x: np.ndarray, y: np.ndarray, nbins: int) -> float:
    """Mean |mean(x) - mean(y)| over equal-width bins of ``x``; empty bins are skipped."""
    lo = min(x.min(), y.min())
    hi = max(x.max(), y.max())
    width = (hi - lo) / nbins

    deviations = []
    for ibin in range(nbins):
        bin_min = lo + ibin * width
        bin_max = hi if ibin == nbins - 1 else lo + (ibin + 1) * width
        in_bin = (x >= bin_min) & (x <= bin_max)
        if not in_bin.any():
            continue
        deviations.append(abs(x[in_bin].mean() - y[in_bin].mean()))

    return float(np.mean(deviations))


def diag_distance(x: Sequence[float], y: Sequence[float], nbins: int = DEFAULT_NBINS) -> float:
    """
    How far paired points (x[i], y[i]) stray from the diagonal y = x.

    The common range of ``x`` and ``y`` is cut into ``nbins`` equal-width
    bins (bounds inclusive). Within each bin the points are reduced to the
    pair (mean x, mean y), and the distance is the mean absolute gap between
    the two over the non-empty bins. Binning is done along each axis in turn
    and the two results are averaged, so the distance is symmetric in its
    arguments. For asymmetric inputs the averaged value differs from binning
    along ``x`` alone: ``diag_distance([0, 1, 2, 3], [0, 1, 2, 5], 5)`` is
    0.625, where the ``x``-only form gives 0.75. Per-point scatter within a
    bin does not contribute; only systematic departure from the diagonal does.

    Parameters
    ----------
    x, y
        Equal-length numeric sequences.
    nbins
        Number of bins (>= 1).

    Returns
    -------
    float
        Non-negative distance; 0 when ``x`` and ``y`` are identical.
    """
    if nbins < 1:
        raise ValueError(f"nbins must be >= 1, got {nbins}")
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ShapeMismatchError(
            f"x and y must have the same shape, got {x.shape} and {y.shape}"
        )
    if x.size == 0:
        raise ValueError("x and y must not be empty")
    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        raise InvalidProfileError("x and y must not contain NaN or infinite values")

    forward = _binned_diagonal_deviation(x, y, nbins)
    backward = _binned_diagonal_deviation(y, x, nbins)
    return 0.5 * (forward + backward)


def check_profile(values: np.ndarray, kind: ProfileKind, name: str) -> None:
    """Raise InvalidProfileError if ``values`` cannot be compared on ``kind``'s scale."""
    values = np.asarray(values, dtype=float)
    if not np.isfinite(values).all():
        raise InvalidProfileError(
            f"{name} {kind.name} profile contains NaN or infinite values"
        )
    if kind.log_scale and (values <= 0).any():
        raise InvalidProfileError(
            f"{name} {kind.name} profile contains non-positive values; "
            "cannot compare on a log10 scale"
        )


def profile_distance(
    candidate: Sequence[float],
    query: Sequence[float],
    kind: ProfileKind,
    nbins: int = DEFAULT_NBINS,
) -> float:
    """
    Distance between two profiles of one kind.

    mean(|f(candidate) - f(query)|) + diag_distance(f(candidate), f(query)),
    with f = log10 for log-scale kinds and the identity otherwise.
    """
    check_profile(candidate, kind, "candidate")
    check_profile(query, kind, "query")
    sim = kind.transform(candidate)
    exp = kind.transform(query)
    if sim.shape != exp.shape:
        raise ShapeMismatchError(
            f"{kind.name} profiles differ in length: {sim.size} vs {exp.size}"
        )
    return float(np.mean(np.abs(sim - exp)) + diag_distance(sim, exp, nbins=nbins))


def compare_profiles(
    simulated: SummaryProfiles,
    experimental: SummaryProfiles,
    nbins: int = DEFAULT_NBINS,
) -> DatasetComparison:
    """Compare two sets of profiles kind by kind."""
    if not np.array_equal(simulated.quantile_levels, experimental.quantile_levels):
        raise ShapeMismatchError(
            "simulated and experimental profiles use different quantile levels"
        )

    comparisons = []
    distances = {}
    for kind in PROFILE_KINDS:
        check_profile(simulated.get(kind), kind, "simulated")
        check_profile(experimental.get(kind), kind, "experimental")
        distances[kind.name] = profile_distance(
            simulated.get(kind), experimental.get(kind), kind, nbins=nbins
        )
        comparisons.append(
            ProfileComparison(
                kind=kind,
                simulated=kind.transform(simulated.get(kind)),
                experimental=kind.transform(experimental.get(kind)),
                label=kind.label,
            )
        )

    return DatasetComparison(
        comparisons=comparisons,
        distances=distances,
        total=float(sum(distances.values())),
    )


def compare_datasets(
    real_data,
    sim_data,
    expressed_prop: float = 0.0,
    nbins: int = DEFAULT_NBINS,
) -> DatasetComparison:
    """
    QQ-style comparison of an experimental and a simulated expression matrix.

    Genes expressed in no more than ``floor(n_cells * expressed_prop)`` cells
    are dropped from each matrix, both are summarized into quantile profiles,
    and the profiles are compared with :func:`profile_distance`.

    Parameters
    ----------
    real_data, sim_data
        Genes x cells count matrices (the gene sets need not match).
    expressed_prop
        Minimum proportion of cells a gene must be expressed in.
    nbins
        Bins used by the diagonal-fit term.
    """
    real = filter_expressed_genes(real_data, expressed_prop)
    sim = filter_expressed_genes(sim_data, expressed_prop)
    logger.info(
        "Comparing datasets: %d experimental genes, %d simulated genes kept",
        real.shape[0],
        sim.shape[0],
    )
    if real.shape[0] == 0 or sim.shape[0] == 0:
        raise ValueError(
            f"no genes pass expressed_prop={expressed_prop} "
            f"(experimental={real.shape[0]}, simulated={sim.shape[0]})"
        )
    return compare_profiles(
        extract_summary_profiles(sim),
        extract_summary_profiles(real),
        nbins=nbins,
    )


COMPARISON_FILENAMES = {
    "mean": "log10meanplus1.txt",
    "nonzero": "percent_nonzero.txt",
    "sd": "log10sd.txt",
}


def write_comparison_tables(comparison: DatasetComparison, out_dir) -> List[Path]:
    """Write the plotted profile pairs as space-separated tables, one per kind."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for item in comparison.comparisons:
        path = out_dir / COMPARISON_FILENAMES[item.kind.name]
        item.to_frame().to_csv(path, sep=" ", index=False)
        paths.append(path)
    logger.info("Wrote %d comparison tables to %s", len(paths), out_dir)
    return paths
