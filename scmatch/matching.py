"""Match a dataset against a reference grid of simulated summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import UNBOUNDED, MatchConfig
from .exceptions import EmptyCandidateSetError, ShapeMismatchError
from .grid import ReferenceGrid, load_reference_grid
from .metrics import DEFAULT_NBINS, ProfileComparison, check_profile, profile_distance
from .summary import PROFILE_KINDS, SummaryProfiles, extract_summary_profiles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateConfiguration:
    """One simulation parameter set of a reference grid."""

    index: int
    params: Dict[str, Any]


@dataclass(frozen=True)
class Match:
    candidate: CandidateConfiguration
    score: float


@dataclass
class MatchResult:
    """
    Best-matching grid configurations, ascending by dissimilarity.

    Attributes
    ----------
    matches : List[Match]
        Ranked candidates with their dissimilarity scores.
    diagnostics : List[ProfileComparison]
        Candidate-vs-query profile pairs for every returned rank and profile
        kind, in rank order then mean/nonzero/sd order.
    tech : Optional[str]
        Technology tag of the grid searched.
    """

    matches: List[Match]
    diagnostics: List[ProfileComparison] = field(default_factory=list)
    tech: Optional[str] = None

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def scores(self) -> np.ndarray:
        return np.array([m.score for m in self.matches], dtype=float)

    @property
    def indices(self) -> List[int]:
        return [m.candidate.index for m in self.matches]

    @property
    def best(self) -> Match:
        return self.matches[0]

    def diagnostics_for(self, rank: int) -> List[ProfileComparison]:
        return [d for d in self.diagnostics if d.rank == rank]

    def to_frame(self) -> pd.DataFrame:
        """Parameter table of the matches with a trailing ``dist`` column."""
        rows = [dict(m.candidate.params, dist=m.score) for m in self.matches]
        return pd.DataFrame(rows, index=pd.Index(self.indices, name="grid_index"))


def select_candidates(
    grid: ReferenceGrid,
    depth_range: Tuple[float, float] = UNBOUNDED,
    alpha_range: Tuple[float, float] = UNBOUNDED,
    allowed_indices: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    Row positions of the grid candidates inside the depth and alpha bounds.

    Both ranges are inclusive. When ``allowed_indices`` is given the result is
    further intersected with it. Positions are returned in grid order.

    Raises
    ------
    EmptyCandidateSetError
        If no candidate survives.
    """
    depth = grid.params["depth_mean"].to_numpy(dtype=float)
    alpha = grid.params["alpha_mean"].to_numpy(dtype=float)
    keep = (
        (depth >= depth_range[0])
        & (depth <= depth_range[1])
        & (alpha >= alpha_range[0])
        & (alpha <= alpha_range[1])
    )
    chosen = np.flatnonzero(keep)
    if allowed_indices is not None:
        chosen = np.intersect1d(chosen, np.asarray(list(allowed_indices), dtype=int))
    if chosen.size == 0:
        raise EmptyCandidateSetError(
            f"No grid configuration has depth_mean in {tuple(depth_range)} and "
            f"alpha_mean in {tuple(alpha_range)}"
            + (" within the allowed indices" if allowed_indices is not None else "")
        )
    return chosen


def _check_compatible(query: SummaryProfiles, grid: ReferenceGrid) -> None:
    for kind in PROFILE_KINDS:
        width = np.asarray(query.get(kind)).size
        if width != grid.n_levels:
            raise ShapeMismatchError(
                f"query {kind.name} profile has {width} points, "
                f"grid profiles have {grid.n_levels}"
            )
    levels = np.asarray(query.quantile_levels, dtype=float)
    if levels.shape != grid.quantile_levels.shape or not np.allclose(
        levels, grid.quantile_levels, rtol=0, atol=1e-12
    ):
        raise ShapeMismatchError("query and grid profiles use different quantile levels")


def score_candidates(
    query: SummaryProfiles,
    grid: ReferenceGrid,
    candidate_indices: Sequence[int],
    nbins: int = DEFAULT_NBINS,
) -> pd.DataFrame:
    """
    Per-kind and total dissimilarity of each candidate to the query.

    Profiles are assumed validated. Returns one row per candidate (indexed by
    grid position, in the given order) with a column per profile kind and a
    ``total`` column.
    """
    candidate_indices = np.asarray(candidate_indices, dtype=int)
    table = {}
    for kind in PROFILE_KINDS:
        reference = grid.profiles(kind)
        observed = query.get(kind)
        table[kind.name] = [
            profile_distance(reference[idx], observed, kind, nbins=nbins)
            for idx in candidate_indices
        ]
    scores = pd.DataFrame(table, index=pd.Index(candidate_indices, name="grid_index"))
    scores["total"] = scores[[kind.name for kind in PROFILE_KINDS]].sum(
        axis=1, skipna=False
    )
    return scores


def match_grid(
    query: SummaryProfiles,
    grid: ReferenceGrid,
    n_optimal: int = 3,
    depth_range: Tuple[float, float] = UNBOUNDED,
    alpha_range: Tuple[float, float] = UNBOUNDED,
    allowed_indices: Optional[Sequence[int]] = None,
    nbins: int = DEFAULT_NBINS,
    diagnostic_sink: Optional[Callable[[ProfileComparison], None]] = None,
) -> MatchResult:
    """
    Rank reference-grid configurations by how well they reproduce ``query``.

    For each candidate and each profile kind the distance is
    ``mean(|f(c) - f(q)|) + diag_distance(f(c), f(q), nbins)`` with
    ``f = log10`` for the mean and sd profiles and the identity for the
    non-zero fraction profile. The three distances are summed and the
    ``n_optimal`` lowest totals are returned.

    Parameters
    ----------
    query
        Profiles of the dataset to match.
    grid
        Reference grid; never modified.
    n_optimal
        Number of configurations to return. If fewer candidates pass the
        filters, all of them are returned.
    depth_range, alpha_range
        Inclusive bounds on ``depth_mean`` and ``alpha_mean``.
    allowed_indices
        Optional grid row positions to restrict the search to.
    nbins
        Bins of the diagonal-fit term.
    diagnostic_sink
        Optional callable receiving every diagnostic profile pair.

    Returns
    -------
    MatchResult

    Raises
    ------
    ShapeMismatchError
        Query and grid profiles are sampled differently.
    EmptyCandidateSetError
        The filters leave no candidate.
    InvalidProfileError
        A compared profile holds NaN or inf, or a log-scale profile holds a
        value <= 0.
    """
    config = MatchConfig(
        n_optimal=n_optimal,
        depth_range=depth_range,
        alpha_range=alpha_range,
        allowed_indices=allowed_indices,
        nbins=nbins,
    )

    _check_compatible(query, grid)
    for kind in PROFILE_KINDS:
        check_profile(query.get(kind), kind, "query")

    chosen = select_candidates(
        grid, config.depth_range, config.alpha_range, config.allowed_indices
    )
    for kind in PROFILE_KINDS:
        check_profile(grid.profiles(kind)[chosen], kind, "grid")

    scores = score_candidates(query, grid, chosen, nbins=config.nbins)
    order = np.argsort(scores["total"].to_numpy(), kind="stable")

    n_return = min(config.n_optimal, chosen.size)
    if n_return < config.n_optimal:
        logger.warning(
            "Only %d candidate(s) pass the filters; returning %d instead of %d",
            chosen.size,
            n_return,
            config.n_optimal,
        )

    matches = []
    diagnostics = []
    for rank, pos in enumerate(order[:n_return], start=1):
        idx = int(chosen[pos])
        candidate = CandidateConfiguration(
            index=idx, params=grid.params.iloc[idx].to_dict()
        )
        matches.append(Match(candidate=candidate, score=float(scores["total"].iloc[pos])))
        for kind in PROFILE_KINDS:
            item = ProfileComparison(
                kind=kind,
                simulated=kind.transform(grid.profiles(kind)[idx]),
                experimental=kind.transform(query.get(kind)),
                label=f"No. {rank} best match {kind.label}",
                rank=rank,
            )
            diagnostics.append(item)
            if diagnostic_sink is not None:
                diagnostic_sink(item)

    logger.info(
        "Matched %d of %d candidate(s); best grid index %d (dist=%.4f)",
        n_return,
        chosen.size,
        matches[0].candidate.index,
        matches[0].score,
    )
    return MatchResult(matches=matches, diagnostics=diagnostics, tech=grid.tech)


def best_match_params(
    tech: str,
    counts,
    n_optimal: int = 3,
    depth_range: Tuple[float, float] = UNBOUNDED,
    alpha_range: Tuple[float, float] = UNBOUNDED,
    idx_set: Optional[Sequence[int]] = None,
    grid_dir=None,
    plot_filename: Optional[str] = None,
) -> MatchResult:
    """
    Suggest simulation parameters that reproduce an experimental dataset.

    Loads the reference grid for ``tech``, summarizes ``counts`` and ranks
    the grid with :func:`match_grid`. When ``plot_filename`` is given the
    diagnostic scatter plots are written to ``<plot_filename>.pdf``.

    Parameters
    ----------
    tech
        "UMI" or "nonUMI".
    counts
        Genes x cells expression matrix.
    n_optimal
        Number of configurations to return.
    depth_range
        Rough sequencing-depth range, if known.
    alpha_range
        Rough mRNA capture-efficiency range, if known.
    idx_set
        Optional grid row positions to restrict the search to.
    grid_dir
        Grid directory; defaults to ``$SCMATCH_GRID_DIR``.
    plot_filename
        Output path without the ``.pdf`` suffix.

    Returns
    -------
    MatchResult
        ``result.to_frame()`` gives the parameter table with a ``dist`` column.
    """
    grid = load_reference_grid(tech, grid_dir=grid_dir)
    query = extract_summary_profiles(counts, levels=grid.quantile_levels)
    result = match_grid(
        query,
        grid,
        n_optimal=n_optimal,
        depth_range=depth_range,
        alpha_range=alpha_range,
        allowed_indices=idx_set,
    )

    if plot_filename is not None:
        # Imported lazily so matching does not pull in matplotlib.
        import matplotlib.pyplot as plt

        from .plots import plot_match_diagnostics

        fig = plot_match_diagnostics(result)
        path = f"{plot_filename}.pdf"
        fig.savefig(path)
        plt.close(fig)
        logger.info("Match diagnostics written to %s", path)

    return result
