from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from scmatch.de import (
    EvfColumn,
    TrueCountsResult,
    count_de_evfs,
    differential_expression_summary,
    parse_evf_columns,
    trajectory_metadata,
)
from scmatch.exceptions import ShapeMismatchError


@pytest.fixture
def true_counts() -> TrueCountsResult:
    cell_meta = pd.DataFrame(
        {
            "cellid": [f"cell{i}" for i in range(1, 7)],
            "pop": [1, 1, 1, 2, 2, 2],
            "kon_DE_evf1": np.zeros(6),
            "kon_nonDE_evf2": np.zeros(6),
            "koff_nonDE_evf1": np.zeros(6),
            "s_DE_evf1": np.zeros(6),
            "s_DE_evf2": np.zeros(6),
        }
    )
    gene_effects = [
        np.array([[0.5, 0.9], [0.0005, 0.2], [0.0, 0.0]]),
        np.array([[0.3], [0.3], [0.3]]),
        np.array([[1.0, 0.0], [1.0, 1.0], [-0.2, 0.0]]),
    ]
    kon = np.ones((3, 6))
    koff = np.ones((3, 6))
    s = np.array(
        [
            [2.0, 2.0, 2.0, 1.0, 1.0, 1.0],
            [3.0, 3.0, 3.0, 3.0, 3.0, 3.0],
            [1.0, 1.0, 1.0, 4.0, 4.0, 4.0],
        ]
    )
    counts = pd.DataFrame(
        [
            [50, 60, 55, 5, 6, 4],
            [10, 10, 10, 10, 10, 10],
            [1, 2, 1, 8, 9, 7],
        ],
        index=["Gene1", "Gene2", "Gene3"],
    )
    return TrueCountsResult(
        counts=counts,
        cell_meta=cell_meta,
        gene_effects=gene_effects,
        kinetic_params=[kon, koff, s],
    )


def test_parse_evf_columns_builds_records(true_counts):
    records = true_counts.evf_columns
    assert [r.name for r in records] == [
        "kon_DE_evf1",
        "kon_nonDE_evf2",
        "koff_nonDE_evf1",
        "s_DE_evf1",
        "s_DE_evf2",
    ]
    assert records[0] == EvfColumn("kon_DE_evf1", "kon", "DE")
    assert records[0].is_de
    assert not records[1].is_de


def test_parse_evf_columns_rejects_unparseable_label():
    with pytest.raises(ValueError, match="evf"):
        parse_evf_columns(["pop", "evf1"])


def test_count_de_evfs(true_counts):
    n_used = count_de_evfs(true_counts.gene_effects, true_counts.evf_columns)
    assert list(n_used) == [2, 2, 1]


def test_count_de_evfs_checks_shapes(true_counts):
    effects = list(true_counts.gene_effects)
    effects[1] = np.zeros((3, 2))
    with pytest.raises(ShapeMismatchError, match="koff"):
        count_de_evfs(effects, true_counts.evf_columns)


def test_differential_expression_summary(true_counts):
    table = differential_expression_summary(true_counts, 1, 2)
    assert list(table.index) == ["Gene1", "Gene2", "Gene3"]
    assert list(table.columns) == [
        "n_diff_evf",
        "logfc_theoretical",
        "wilcoxon_p",
        "wilcoxon_p_fdr",
    ]
    assert np.allclose(table["logfc_theoretical"], [1.0, 0.0, -2.0])
    assert list(table["n_diff_evf"]) == [2, 2, 1]
    assert table["wilcoxon_p"].between(0, 1).all()
    assert (table["wilcoxon_p_fdr"] >= table["wilcoxon_p"] - 1e-12).all()
    # complete separation of 3 vs 3 cells: exact two-sided p = 2 / 20
    assert table.loc["Gene1", "wilcoxon_p"] == pytest.approx(0.1)


def test_differential_expression_summary_needs_both_populations(true_counts):
    with pytest.raises(ValueError, match="both populations"):
        differential_expression_summary(true_counts, 1, 3)


def test_true_counts_result_requires_three_kinetic_params(true_counts):
    with pytest.raises(ValueError, match="kon, koff and s"):
        TrueCountsResult(
            counts=true_counts.counts,
            cell_meta=true_counts.cell_meta,
            gene_effects=true_counts.gene_effects[:2],
            kinetic_params=true_counts.kinetic_params,
        )


def test_trajectory_metadata():
    cell_meta = pd.DataFrame(
        {
            "cellid": ["c1", "c2", "c3"],
            "pop": ["4_1", "4_1", "4_2"],
            "depth": [0.1, 0.5, 0.9],
            "evf1": [0.0, 0.0, 0.0],
        }
    )
    traj = trajectory_metadata(cell_meta)
    assert list(traj.columns) == ["branch", "pseudotime"]
    assert list(traj.index) == ["c1", "c2", "c3"]
    assert list(traj["branch"]) == ["4_1", "4_1", "4_2"]
    assert np.allclose(traj["pseudotime"], [0.1, 0.5, 0.9])


def test_trajectory_metadata_needs_three_columns():
    with pytest.raises(ValueError, match="first three columns"):
        trajectory_metadata(pd.DataFrame({"cellid": ["c1"], "pop": [1]}))
