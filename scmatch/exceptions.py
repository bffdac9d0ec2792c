"""Exceptions raised by scmatch."""

from __future__ import annotations


class ScMatchError(Exception):
    """Base class for scmatch errors."""


class EmptyCandidateSetError(ScMatchError, ValueError):
    """No grid configuration survives the depth/alpha/index filter."""


class InvalidProfileError(ScMatchError, ValueError):
    """A profile holds values that cannot be compared (NaN, or <= 0 on a log scale)."""


class ShapeMismatchError(ScMatchError, ValueError):
    """Query profiles and grid profiles are sampled on different quantile grids."""


class UnknownTechnologyError(ScMatchError, ValueError):
    """The technology tag does not name a supported reference grid."""


class GridFormatError(ScMatchError, ValueError):
    """A reference grid file is malformed."""
