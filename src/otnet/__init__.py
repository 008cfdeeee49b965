"""otnet - optimal allocation on transport networks in spatial equilibrium."""

from otnet.allocation import AllocationResults, recover
from otnet.core import (
    DecisionLayout,
    ModelContext,
    ModelParameters,
    SparsityPattern,
    Topology,
)
from otnet.exceptions import (
    ConfigurationError,
    ModelIncompatibilityError,
    OTNetError,
    SparsityMismatchError,
)
from otnet.solver import AllocationSolution, solve_allocation
from otnet.version import __version__

__all__ = [
    "__version__",
    "Topology",
    "ModelParameters",
    "DecisionLayout",
    "ModelContext",
    "SparsityPattern",
    "AllocationResults",
    "recover",
    "AllocationSolution",
    "solve_allocation",
    "OTNetError",
    "ModelIncompatibilityError",
    "SparsityMismatchError",
    "ConfigurationError",
]
