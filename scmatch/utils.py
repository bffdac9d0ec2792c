"""Utility functions."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp

QUANTILE_STEP = 0.002


def quantile_levels(step: float = QUANTILE_STEP) -> np.ndarray:
    """
    Evenly spaced probability levels from 0 to 1 inclusive.

    The default step gives the 501 levels the reference grids are built on.
    """
    if not 0 < step <= 1:
        raise ValueError(f"step must be in (0, 1], got {step}")
    n_steps = 1.0 / step
    if abs(n_steps - round(n_steps)) > 1e-9:
        raise ValueError(f"step must divide 1 into whole steps, got {step}")
    n_levels = int(round(n_steps)) + 1
    return np.linspace(0.0, 1.0, n_levels)


def as_count_matrix(counts) -> np.ndarray:
    """
    Convert an expression matrix (genes x cells) to a 2D float array.

    Accepts numpy arrays, pandas DataFrames and scipy sparse matrices.
    The input is never modified.
    """
    if sp.issparse(counts):
        values = counts.toarray()
    elif isinstance(counts, pd.DataFrame):
        values = counts.to_numpy()
    else:
        values = np.asarray(counts)
    values = np.array(values, dtype=float)
    if values.ndim != 2:
        raise ValueError(
            f"counts must be a 2D genes x cells matrix, got {values.ndim} dimension(s)"
        )
    if values.size == 0:
        raise ValueError("counts must contain at least one gene and one cell")
    if np.isinf(values).any():
        raise ValueError("counts must be finite")
    if (values[~np.isnan(values)] < 0).any():
        raise ValueError("counts must be non-negative")
    return values


def cv(x: Sequence[float]) -> float:
    """Coefficient of variation (sample sd over mean)."""
    values = np.asarray(x, dtype=float)
    return float(np.std(values, ddof=1) / np.mean(values))


def fano(x: Sequence[float]) -> float:
    """Fano factor (sample variance over mean)."""
    values = np.asarray(x, dtype=float)
    return float(np.var(values, ddof=1) / np.mean(values))


def percent_nonzero(x: Sequence[float]) -> float:
    """Fraction of observed (non-NaN) entries that are strictly positive."""
    values = np.asarray(x, dtype=float)
    values = values[~np.isnan(values)]
    if values.size == 0:
        return float("nan")
    return float(np.sum(values > 0) / values.size)
