"""Differential-expression and trajectory helpers for simulated true counts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd
from scipy.stats import mannwhitneyu
from statsmodels.stats.multitest import multipletests

from .exceptions import ShapeMismatchError
from .utils import as_count_matrix

KINETIC_PARAMS = ("kon", "koff", "s")
DE_EFFECT_TOL = 0.001


@dataclass(frozen=True)
class EvfColumn:
    """
    An extrinsic variation factor (EVF) column of the cell metadata.

    Labels look like ``"kon_DE_evf1"``: the kinetic parameter the EVF acts on,
    then whether it differs between populations ("DE") or not ("nonDE").
    """

    name: str
    param: str
    category: str

    @property
    def is_de(self) -> bool:
        return self.category == "DE"


def parse_evf_columns(columns: Iterable[str]) -> List[EvfColumn]:
    """Structured records for every column whose label contains "evf"."""
    records = []
    for name in columns:
        name = str(name)
        if "evf" not in name:
            continue
        parts = name.split("_")
        if len(parts) < 2:
            raise ValueError(f"Cannot parse EVF column label '{name}'")
        records.append(EvfColumn(name=name, param=parts[0], category=parts[1]))
    return records


@dataclass
class TrueCountsResult:
    """
    Output of a true-count simulation.

    Attributes
    ----------
    counts
        Genes x cells true count matrix.
    cell_meta : pd.DataFrame
        One row per cell; first column is the cell id, and it has a ``pop``
        column plus EVF columns.
    gene_effects : Sequence[np.ndarray]
        Gene-effect matrices for kon, koff and s (genes x EVFs of that
        parameter, columns in the same order as the EVF columns).
    kinetic_params : Sequence[np.ndarray]
        kon, koff and s matrices (genes x cells).
    evf_columns : List[EvfColumn]
        Parsed from ``cell_meta`` on construction.
    """

    counts: object
    cell_meta: pd.DataFrame
    gene_effects: Sequence[np.ndarray]
    kinetic_params: Sequence[np.ndarray]
    evf_columns: List[EvfColumn] = field(init=False)

    def __post_init__(self) -> None:
        if len(self.gene_effects) != 3 or len(self.kinetic_params) != 3:
            raise ValueError(
                "gene_effects and kinetic_params must each hold kon, koff and s"
            )
        self.evf_columns = parse_evf_columns(self.cell_meta.columns)


def count_de_evfs(
    gene_effects: Sequence[np.ndarray],
    evf_columns: Sequence[EvfColumn],
    tol: float = DE_EFFECT_TOL,
) -> np.ndarray:
    """Number of DE EVFs with a non-negligible effect on each gene."""
    n_used = None
    for param, effects in zip(KINETIC_PARAMS, gene_effects):
        effects = np.asarray(effects, dtype=float)
        mask = np.array([c.is_de for c in evf_columns if c.param == param], dtype=bool)
        if effects.ndim != 2 or effects.shape[1] != mask.size:
            raise ShapeMismatchError(
                f"{param} gene effects have shape {effects.shape}, "
                f"expected {mask.size} EVF column(s)"
            )
        used = (np.abs(effects[:, mask]) - tol > 0).sum(axis=1)
        n_used = used if n_used is None else n_used + used
    return n_used


def theoretical_log2_fold_change(
    kinetic_params: Sequence[np.ndarray],
    idx_a: np.ndarray,
    idx_b: np.ndarray,
) -> np.ndarray:
    """log2 ratio of the mean steady-state expression s * kon / (kon + koff)."""
    kon, koff, s = (np.asarray(p, dtype=float) for p in kinetic_params)
    expected = s * kon / (kon + koff)
    return np.log2(expected[:, idx_a].mean(axis=1) / expected[:, idx_b].mean(axis=1))


def differential_expression_summary(
    result: TrueCountsResult,
    pop_a,
    pop_b,
    fdr_method: str = "fdr_bh",
) -> pd.DataFrame:
    """
    Differential-expression measures between two cell populations.

    Parameters
    ----------
    result
        Simulated true counts with metadata.
    pop_a, pop_b
        Population labels (values of ``cell_meta["pop"]``) to compare.
    fdr_method
        Multiple-testing correction passed to statsmodels ``multipletests``.

    Returns
    -------
    DataFrame
        One row per gene with columns:

        ['n_diff_evf', 'logfc_theoretical', 'wilcoxon_p', 'wilcoxon_p_fdr']
    """
    if "pop" not in result.cell_meta.columns:
        raise ValueError("cell_meta must have a 'pop' column")
    pops = result.cell_meta["pop"].to_numpy()
    idx_a = np.flatnonzero(pops == pop_a)
    idx_b = np.flatnonzero(pops == pop_b)
    if idx_a.size == 0 or idx_b.size == 0:
        raise ValueError(
            f"both populations need cells (pop {pop_a}: {idx_a.size}, "
            f"pop {pop_b}: {idx_b.size})"
        )

    counts = as_count_matrix(result.counts)
    with np.errstate(divide="ignore", invalid="ignore"):
        cpm = counts / counts.sum(axis=0) * 1e6

    pvals = np.array(
        [
            mannwhitneyu(cpm[g, idx_a], cpm[g, idx_b], alternative="two-sided").pvalue
            for g in range(cpm.shape[0])
        ],
        dtype=float,
    )
    padj = np.full_like(pvals, np.nan)
    valid_mask = ~np.isnan(pvals)
    if valid_mask.any():
        _, padj[valid_mask], _, _ = multipletests(
            pvals[valid_mask], alpha=0.05, method=fdr_method
        )

    index = result.counts.index if isinstance(result.counts, pd.DataFrame) else None
    return pd.DataFrame(
        {
            "n_diff_evf": count_de_evfs(result.gene_effects, result.evf_columns),
            "logfc_theoretical": theoretical_log2_fold_change(
                result.kinetic_params, idx_a, idx_b
            ),
            "wilcoxon_p": pvals,
            "wilcoxon_p_fdr": padj,
        },
        index=index,
    )


def trajectory_metadata(cell_meta: pd.DataFrame) -> pd.DataFrame:
    """Branch and pseudotime of each cell on a continuous trajectory, indexed by cell id."""
    if cell_meta.shape[1] < 3:
        raise ValueError(
            "cell_meta needs cell id, branch and pseudotime as its first three columns"
        )
    traj = cell_meta.iloc[:, 1:3].copy()
    traj.columns = ["branch", "pseudotime"]
    traj.index = pd.Index(cell_meta.iloc[:, 0].to_numpy(), name=cell_meta.columns[0])
    return traj
