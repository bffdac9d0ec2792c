"""Per-gene distributions of log-scaled counts."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from .utils import as_count_matrix


def _interval_labels(edges: np.ndarray) -> List[str]:
    return [f"({lo:g},{hi:g}]" for lo, hi in zip(edges[:-1], edges[1:])]


def log_count_distribution(counts, log_count_bins: Sequence[float]) -> pd.DataFrame:
    """
    Fraction of each gene's cells per log10(count + 1) bin.

    The first column ("0") holds the fraction of cells with a zero count; the
    remaining columns hold the fraction of cells whose log10(count + 1) falls
    in each right-closed interval of ``log_count_bins``. Positive values
    outside the bin range are left out of both numerator and denominator.
    Missing entries are ignored; a gene with no observed value is all NaN.

    Parameters
    ----------
    counts
        Genes x cells count matrix.
    log_count_bins
        Increasing bin edges on the log10 scale, e.g. ``np.arange(0, 4.01, 0.4)``.

    Returns
    -------
    DataFrame
        Genes x (1 + n_bins) table of fractions, rows summing to 1.
    """
    edges = np.asarray(log_count_bins, dtype=float)
    if edges.ndim != 1 or edges.size < 2:
        raise ValueError("log_count_bins must hold at least two edges")
    if np.any(np.diff(edges) <= 0):
        raise ValueError("log_count_bins must be strictly increasing")

    logged = np.log10(as_count_matrix(counts) + 1)
    n_bins = edges.size - 1
    table = np.full((logged.shape[0], n_bins + 1), np.nan)

    for igene, row in enumerate(logged):
        observed = row[~np.isnan(row)]
        if observed.size == 0:
            continue
        n_zero = np.sum(observed == 0)
        positive = observed[observed > 0]
        # right-closed: edges[k-1] < v <= edges[k] -> bin k-1
        pos = np.searchsorted(edges, positive, side="left")
        inside = (pos >= 1) & (pos <= n_bins)
        binned = np.bincount(pos[inside] - 1, minlength=n_bins)
        total = n_zero + binned.sum()
        if total == 0:
            continue
        table[igene, 0] = n_zero / total
        table[igene, 1:] = binned / total

    index = counts.index if isinstance(counts, pd.DataFrame) else None
    return pd.DataFrame(table, index=index, columns=["0"] + _interval_labels(edges))
