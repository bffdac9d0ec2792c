from .exceptions import (
    EmptyCandidateSetError,
    GridFormatError,
    InvalidProfileError,
    ScMatchError,
    ShapeMismatchError,
    UnknownTechnologyError,
)
from .summary import (
    MEAN,
    NONZERO,
    SD,
    PROFILE_KINDS,
    ProfileKind,
    SummaryProfiles,
    extract_summary_profiles,
    gene_summary_statistics,
    quantile_profile,
)
from .metrics import (
    compare_datasets,
    diag_distance,
    profile_distance,
)
from .grid import ReferenceGrid, load_reference_grid
from .config import MatchConfig
from .matching import (
    CandidateConfiguration,
    Match,
    MatchResult,
    best_match_params,
    match_grid,
)
from .distributions import log_count_distribution
from .de import differential_expression_summary, trajectory_metadata

__all__ = [
    "EmptyCandidateSetError",
    "GridFormatError",
    "InvalidProfileError",
    "ScMatchError",
    "ShapeMismatchError",
    "UnknownTechnologyError",
    "MEAN",
    "NONZERO",
    "SD",
    "PROFILE_KINDS",
    "ProfileKind",
    "SummaryProfiles",
    "extract_summary_profiles",
    "gene_summary_statistics",
    "quantile_profile",
    "compare_datasets",
    "diag_distance",
    "profile_distance",
    "ReferenceGrid",
    "load_reference_grid",
    "MatchConfig",
    "CandidateConfiguration",
    "Match",
    "MatchResult",
    "best_match_params",
    "match_grid",
    "log_count_distribution",
    "differential_expression_summary",
    "trajectory_metadata",
]
