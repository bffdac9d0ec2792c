from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np
import pytest

from scmatch.distributions import log_count_distribution
from scmatch.matching import match_grid
from scmatch.metrics import compare_datasets
from scmatch.plots import (
    plot_count_heatmap,
    plot_dataset_comparison,
    plot_match_diagnostics,
    plot_pca_basic,
    plot_profile_comparisons,
    plot_reads_per_umi,
)


def test_plot_match_diagnostics_one_panel_per_comparison(query_profiles, ranked_grid):
    result = match_grid(query_profiles, ranked_grid, n_optimal=2)
    fig = plot_match_diagnostics(result)
    visible = [ax for ax in fig.axes if ax.get_visible()]
    assert len(visible) == 6
    assert visible[0].get_title() == "No. 1 best match log10(mean)"
    plt.close(fig)


def test_plot_profile_comparisons_hides_unused_axes(query_profiles, ranked_grid):
    result = match_grid(query_profiles, ranked_grid, n_optimal=1)
    fig = plot_profile_comparisons(result.diagnostics[:2], ncols=3)
    assert sum(ax.get_visible() for ax in fig.axes) == 2
    plt.close(fig)


def test_plot_profile_comparisons_requires_data():
    with pytest.raises(ValueError, match="no profile comparisons"):
        plot_profile_comparisons([])


def test_plot_dataset_comparison(count_matrix):
    comparison = compare_datasets(count_matrix, count_matrix, expressed_prop=0.1)
    fig = plot_dataset_comparison(comparison)
    titles = [ax.get_title() for ax in fig.axes if ax.get_visible()]
    assert titles == ["log10(mean)", "percent_nonzero", "log10(sd)"]
    assert fig.axes[0].get_ylabel() == "real data"
    plt.close(fig)


def test_plot_count_heatmap_returns_reusable_order(count_matrix):
    log_dist = log_count_distribution(count_matrix, np.arange(0, 3.01, 0.4))
    mean_counts = count_matrix.mean(axis=1)
    order, fig = plot_count_heatmap(
        log_dist, mean_counts, data_name="test counts", zero_prop_threshold=1.0
    )
    assert sorted(order) == list(range(log_dist.shape[0]))
    assert "test counts" in fig.axes[0].get_title()
    plt.close(fig)

    again, fig = plot_count_heatmap(
        log_dist, mean_counts, "test counts", given_order=order, zero_prop_threshold=1.0
    )
    assert np.array_equal(again, order)
    plt.close(fig)


def test_plot_count_heatmap_threshold_removes_everything():
    log_dist = log_count_distribution(np.zeros((3, 4)), [0.0, 1.0])
    with pytest.raises(ValueError, match="zero fraction"):
        plot_count_heatmap(log_dist, np.zeros(3), "empty")


def test_plot_pca_basic_labels_variance():
    rng = np.random.default_rng(0)
    scores = rng.normal(size=(20, 2))
    fig = plot_pca_basic(scores, sdev=[3.0, 1.0], title="PCA")
    ax = fig.axes[0]
    assert ax.get_xlabel() == "PC1 90.00%"
    assert ax.get_ylabel() == "PC2 10.00%"
    plt.close(fig)


def test_plot_reads_per_umi():
    fig = plot_reads_per_umi(counts=[100, 50, 30, 20], mids=[1, 2, 3, 4], title="UMI")
    ax = fig.axes[0]
    assert ax.get_xscale() == "log"
    assert len(ax.patches) == 3
    plt.close(fig)
    with pytest.raises(ValueError, match="equal-length"):
        plot_reads_per_umi(counts=[1, 2], mids=[1])
