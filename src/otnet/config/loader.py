"""Load and validate YAML configuration for allocation runs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from otnet.config.models import ScenarioConfig, SolverOptions
from otnet.exceptions import ConfigurationError


def _read_mapping(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ConfigurationError(f"{config_path} must define a top-level mapping")
    return payload


def load_solver_options(config_path: Path | str) -> SolverOptions:
    """Load solver knobs from a YAML file.

    The file may hold the options at top level or under a ``solver`` key.
    """
    path = Path(config_path)
    payload = _read_mapping(path)
    section = payload.get("solver", payload)
    if not isinstance(section, dict):
        raise ConfigurationError("solver must be a mapping")
    try:
        return SolverOptions(**section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid solver options in {path}: {exc}") from exc


def load_scenario(config_path: Path | str) -> ScenarioConfig:
    """Load a scenario YAML file.

    Expected layout::

        name: two_cities
        graph: {kind: line, n_nodes: 2, region: [0, 1]}
        parameters: {Zjn: [[1.0], [0.1]], Hj: 1.0, Lr: 1.0, omegar: 1.0}
        kappa: 1.0
        solver: {max_iter: 500}
    """
    path = Path(config_path)
    payload = _read_mapping(path)
    for key in ("graph", "parameters"):
        if not isinstance(payload.get(key), dict):
            raise ConfigurationError(f"Missing or malformed '{key}' section in {path}")
    payload.setdefault("name", path.stem)
    try:
        return ScenarioConfig(**payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid scenario {path}: {exc}") from exc
