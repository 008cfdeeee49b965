"""Core data structures for otnet.

This module provides the fixed inputs of an allocation problem:
- Topology: nodes, edges, incidence matrices and regions
- ModelParameters: preferences, technology and population targets
- DecisionLayout: slicing of the decision and constraint vectors
- ModelContext: the immutable bundle passed to every callback
- SparsityPattern: slot maps shared by structure and value passes
"""

from otnet.core.context import ModelContext
from otnet.core.layout import DecisionBlocks, DecisionLayout
from otnet.core.parameters import ModelParameters
from otnet.core.sparsity import SparsityPattern
from otnet.core.topology import Topology

__all__ = [
    "Topology",
    "ModelParameters",
    "DecisionLayout",
    "DecisionBlocks",
    "ModelContext",
    "SparsityPattern",
]
