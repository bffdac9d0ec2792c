"""Configuration for grid matching."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .metrics import DEFAULT_NBINS

UNBOUNDED = (-math.inf, math.inf)


@dataclass
class MatchConfig:
    """
    Options for ranking reference-grid candidates against a query dataset.

    Attributes
    ----------
    n_optimal : int
        Number of best-matching configurations to return.
    depth_range : Tuple[float, float]
        Inclusive bounds on the candidates' ``depth_mean``.
    alpha_range : Tuple[float, float]
        Inclusive bounds on the candidates' ``alpha_mean`` (capture efficiency).
    allowed_indices : Optional[Sequence[int]]
        Grid row positions to restrict the search to.
    nbins : int
        Bins used by the diagonal-fit term of the distance.
    """

    n_optimal: int = 3
    depth_range: Tuple[float, float] = UNBOUNDED
    alpha_range: Tuple[float, float] = UNBOUNDED
    allowed_indices: Optional[Sequence[int]] = None
    nbins: int = DEFAULT_NBINS

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if self.n_optimal < 1:
            raise ValueError(f"n_optimal must be >= 1, got {self.n_optimal}")
        if self.nbins < 1:
            raise ValueError(f"nbins must be >= 1, got {self.nbins}")
        for name in ("depth_range", "alpha_range"):
            bounds = tuple(getattr(self, name))
            if len(bounds) != 2:
                raise ValueError(f"{name} must be a (low, high) pair, got {bounds}")
            low, high = float(bounds[0]), float(bounds[1])
            if math.isnan(low) or math.isnan(high):
                raise ValueError(f"{name} bounds must not be NaN")
            if low > high:
                raise ValueError(f"{name} lower bound exceeds upper bound: {bounds}")
            setattr(self, name, (low, high))
