"""Callbacks of the spatial allocation problem.

- objective / gradient: negative weighted regional welfare
- constraints: utility equalization, final-good availability,
  flow conservation and regional labor
- JacobianAssembler / HessianAssembler: fixed sparse patterns and values
- recover: economic quantities from a solution
"""

from otnet.allocation.constraints import constraints
from otnet.allocation.hessian import HessianAssembler, hessian, hessian_pattern
from otnet.allocation.jacobian import JacobianAssembler, jacobian, jacobian_pattern
from otnet.allocation.objective import gradient, objective
from otnet.allocation.recovery import AllocationResults, recover

__all__ = [
    "objective",
    "gradient",
    "constraints",
    "JacobianAssembler",
    "jacobian",
    "jacobian_pattern",
    "HessianAssembler",
    "hessian",
    "hessian_pattern",
    "AllocationResults",
    "recover",
]
