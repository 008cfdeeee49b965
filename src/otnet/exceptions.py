"""Exception hierarchy for otnet."""

from __future__ import annotations


class OTNetError(Exception):
    """Base class for all otnet errors."""


class ModelIncompatibilityError(OTNetError):
    """Raised when inputs violate a structural restriction of the model.

    Detected before the optimization problem is built, e.g. a node with
    more than one productive good.
    """


class SparsityMismatchError(OTNetError):
    """Raised when computed values disagree with a declared sparsity pattern."""


class ConfigurationError(OTNetError):
    """Raised for malformed scenario or solver configuration files."""
