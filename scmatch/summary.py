"""Quantile summaries of gene-level statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .utils import as_count_matrix, quantile_levels


@dataclass(frozen=True)
class ProfileKind:
    """
    One of the three gene-level statistics a dataset is summarized by.

    Attributes
    ----------
    name : str
        Attribute name on :class:`SummaryProfiles` ("mean", "nonzero", "sd").
    label : str
        Axis/panel label used by diagnostics.
    log_scale : bool
        Whether profiles of this kind are compared after a log10 transform.
    """

    name: str
    label: str
    log_scale: bool

    def transform(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=float)
        return np.log10(values) if self.log_scale else values.copy()


MEAN = ProfileKind("mean", "log10(mean)", True)
NONZERO = ProfileKind("nonzero", "percent_nonzero", False)
SD = ProfileKind("sd", "log10(sd)", True)

# Comparison order used by the matcher and the diagnostic panels.
PROFILE_KINDS = (MEAN, NONZERO, SD)


@dataclass
class SummaryProfiles:
    """
    Quantile profiles of one dataset.

    Attributes
    ----------
    mean : np.ndarray
        Quantiles of per-gene mean(count + 1).
    sd : np.ndarray
        Quantiles of per-gene sample standard deviation.
    nonzero : np.ndarray
        Quantiles of per-gene fraction of cells with a positive count.
    quantile_levels : np.ndarray
        Probability levels the three profiles were sampled at.
    """

    mean: np.ndarray
    sd: np.ndarray
    nonzero: np.ndarray
    quantile_levels: np.ndarray

    def get(self, kind: ProfileKind) -> np.ndarray:
        return getattr(self, kind.name)

    def __len__(self) -> int:
        return self.quantile_levels.size


def gene_summary_statistics(counts) -> pd.DataFrame:
    """
    Per-gene mean, standard deviation and non-zero fraction.

    Missing entries (NaN) are ignored. A gene without any observed value gets
    NaN for all three statistics; a gene with a single observed value gets a
    NaN standard deviation.

    Parameters
    ----------
    counts
        Genes x cells expression matrix.

    Returns
    -------
    DataFrame
        One row per gene with columns ``mean``, ``sd`` and ``nonzero``.
    """
    values = pd.DataFrame(as_count_matrix(counts))
    observed = values.notna().sum(axis=1)
    positive = (values > 0).sum(axis=1)

    nonzero = positive / observed.where(observed > 0)
    stats = pd.DataFrame(
        {
            "mean": (values + 1).mean(axis=1, skipna=True),
            "sd": values.std(axis=1, ddof=1, skipna=True),
            "nonzero": nonzero.astype(float),
        }
    )
    if isinstance(counts, pd.DataFrame):
        stats.index = counts.index
    return stats


def quantile_profile(values: Sequence[float], levels: np.ndarray) -> np.ndarray:
    """
    Sample the empirical quantile function of ``values`` at ``levels``.

    Uses linear interpolation between order statistics (Hyndman & Fan
    type 7, R's default). NaN values are dropped first; if nothing is left the
    profile is all NaN.
    """
    values = np.asarray(values, dtype=float)
    finite = values[~np.isnan(values)]
    levels = np.asarray(levels, dtype=float)
    if finite.size == 0:
        return np.full(levels.shape, np.nan)
    return np.quantile(finite, levels, method="linear")


def extract_summary_profiles(
    counts,
    levels: Optional[np.ndarray] = None,
) -> SummaryProfiles:
    """
    Summarize an expression matrix into mean, sd and non-zero profiles.

    Parameters
    ----------
    counts
        Genes x cells matrix of non-negative counts (numpy array, DataFrame or
        scipy sparse matrix). NaN marks a missing value.
    levels
        Probability levels; defaults to 0, 0.002, ..., 1 (501 points), the
        levels the reference grids were built with.

    Returns
    -------
    SummaryProfiles
    """
    levels = quantile_levels() if levels is None else np.asarray(levels, dtype=float)
    stats = gene_summary_statistics(counts)
    return SummaryProfiles(
        mean=quantile_profile(stats["mean"].to_numpy(), levels),
        sd=quantile_profile(stats["sd"].to_numpy(), levels),
        nonzero=quantile_profile(stats["nonzero"].to_numpy(), levels),
        quantile_levels=levels,
    )


def filter_expressed_genes(counts, expressed_prop: float) -> np.ndarray:
    """
    Keep genes expressed in more than ``floor(n_cells * expressed_prop)`` cells.

    Returns the filtered matrix as a float array (genes x cells).
    """
    if not 0 <= expressed_prop <= 1:
        raise ValueError(
            f"expressed_prop must be between 0 and 1, got {expressed_prop}"
        )
    values = as_count_matrix(counts)
    min_cells = math.floor(values.shape[1] * expressed_prop)
    keep = (values > 0).sum(axis=1) > min_cells
    return values[keep]
