"""Plotting utilities."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from scipy.cluster.hierarchy import leaves_list, linkage

from .matching import MatchResult
from .metrics import DatasetComparison, ProfileComparison


def _draw_diagonal(ax: plt.Axes, comparison: ProfileComparison) -> None:
    values = np.concatenate([comparison.simulated, comparison.experimental])
    lo, hi = float(np.nanmin(values)), float(np.nanmax(values))
    ax.plot([lo, hi], [lo, hi], color="red", linewidth=1)


def plot_profile_comparisons(
    comparisons: Sequence[ProfileComparison],
    ncols: int = 3,
    panel_size: Tuple[float, float] = (3.5, 3.5),
    xlabel: str = "simulated values",
    ylabel: str = "experimental values",
) -> plt.Figure:
    """
    QQ-style scatter of simulated vs experimental profiles, one panel each.

    Points on the red diagonal are quantiles the two datasets agree on.
    """
    if not comparisons:
        raise ValueError("no profile comparisons to plot")
    nrows = math.ceil(len(comparisons) / ncols)
    fig, axes = plt.subplots(
        nrows,
        ncols,
        figsize=(panel_size[0] * ncols, panel_size[1] * nrows),
        squeeze=False,
    )
    for ax, item in zip(axes.flat, comparisons):
        ax.scatter(item.simulated, item.experimental, s=8, color="black", alpha=0.6)
        _draw_diagonal(ax, item)
        ax.set_title(item.label)
        ax.set_xlabel(xlabel)
        ax.set_ylabel(ylabel)
    for ax in axes.flat[len(comparisons):]:
        ax.set_visible(False)
    fig.tight_layout()
    return fig


def plot_match_diagnostics(result: MatchResult) -> plt.Figure:
    """Diagnostic panels for every returned match, one row per rank."""
    return plot_profile_comparisons(result.diagnostics)


def plot_dataset_comparison(comparison: DatasetComparison) -> plt.Figure:
    return plot_profile_comparisons(
        comparison.comparisons, xlabel="simulated data", ylabel="real data"
    )


def _heatmap_order(log_dist: pd.DataFrame, mean_counts: np.ndarray) -> np.ndarray:
    """Order genes by binned mean expression, then by Ward clustering of their distributions."""
    n_genes = log_dist.shape[0]
    if n_genes > 1:
        leaves = leaves_list(linkage(log_dist.to_numpy(), method="ward"))
        cluster_rank = np.empty(n_genes, dtype=int)
        cluster_rank[leaves] = np.arange(n_genes)
    else:
        cluster_rank = np.arange(n_genes)
    mean_bin = pd.cut(np.log(mean_counts + 1), 30, labels=False)
    return np.lexsort((cluster_rank, np.asarray(mean_bin)))


def plot_count_heatmap(
    log_dist: pd.DataFrame,
    mean_counts: Sequence[float],
    data_name: str,
    given_order: Optional[Sequence[int]] = None,
    zero_prop_threshold: float = 0.8,
    figsize: tuple = (8, 8),
) -> Tuple[np.ndarray, plt.Figure]:
    """
    2D histogram of log-scaled counts: one row per gene, one column per bin.

    Parameters
    ----------
    log_dist
        Output of :func:`scmatch.distributions.log_count_distribution`.
    mean_counts
        Mean expression of each gene, used for ordering.
    data_name
        Included in the title.
    given_order
        Row order to use instead of the clustering-based one (positions into
        the genes kept after thresholding).
    zero_prop_threshold
        Genes whose zero fraction is not below this value are not plotted.

    Returns
    -------
    order, fig
        Row order used (reusable as ``given_order`` for a second dataset)
        and the figure.
    """
    mean_counts = np.asarray(mean_counts, dtype=float)
    if mean_counts.size != log_dist.shape[0]:
        raise ValueError("mean_counts must have one value per row of log_dist")

    keep = (log_dist.iloc[:, 0] < zero_prop_threshold).to_numpy()
    kept = log_dist.loc[keep]
    if kept.empty:
        raise ValueError(f"no gene has a zero fraction below {zero_prop_threshold}")

    if given_order is None:
        order = _heatmap_order(kept, mean_counts[keep])
    else:
        order = np.asarray(given_order, dtype=int)

    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(
        kept.iloc[order],
        cmap="Greys",
        vmin=0,
        ax=ax,
        yticklabels=False,
        cbar_kws={"label": "Fraction of cells"},
    )
    ax.set_title(f"distribution of mRNA counts of {data_name}")
    ax.set_xlabel("log10(Count) bins")
    ax.set_ylabel("Genes")
    ax.tick_params(axis="x", labelrotation=45)
    fig.tight_layout()
    return order, fig


def plot_pca_basic(
    scores: np.ndarray,
    sdev: Sequence[float],
    colors: Optional[Sequence] = None,
    title: str = "",
) -> plt.Figure:
    """Scatter of PC1 vs PC2 with the explained-variance percentage on each axis."""
    scores = np.asarray(scores, dtype=float)
    sdev = np.asarray(sdev, dtype=float)
    variance_perc = 100 * sdev**2 / np.sum(sdev**2)

    fig, ax = plt.subplots(figsize=(5, 5))
    ax.scatter(scores[:, 0], scores[:, 1], c=colors, s=12)
    ax.set_xlabel(f"PC1 {variance_perc[0]:4.2f}%")
    ax.set_ylabel(f"PC2 {variance_perc[1]:4.2f}%")
    ax.set_title(title)
    return fig


def plot_reads_per_umi(
    counts: Sequence[float],
    mids: Sequence[float],
    title: str = "",
) -> plt.Figure:
    """
    Histogram of reads per UMI, as percentages of the molecules seen more than once.

    ``counts`` and ``mids`` are the bin counts and bin centres of a histogram
    whose first bin is excluded from the percentage base and the bars.
    """
    counts = np.asarray(counts, dtype=float)
    mids = np.asarray(mids, dtype=float)
    if counts.size != mids.size or counts.size < 2:
        raise ValueError("counts and mids must be equal-length with at least two bins")
    percent = counts / counts[1:].sum() * 100

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.bar(mids[1:], percent[1:], width=1.0, color="0.5", edgecolor="none")
    ax.set_xscale("log")
    ax.set_ylim(0, max(1.0, float(percent[1:].max())))
    ax.set_xlabel("Reads/molecule")
    ax.set_ylabel("Fraction (%)")
    ax.set_title(title)
    return fig
