"""Scenario and solver configuration."""

from otnet.config.loader import load_scenario, load_solver_options
from otnet.config.models import GraphConfig, ScenarioConfig, SolverOptions

__all__ = [
    "GraphConfig",
    "ScenarioConfig",
    "SolverOptions",
    "load_scenario",
    "load_solver_options",
]
