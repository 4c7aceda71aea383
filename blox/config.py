"""Explicit configuration threaded through compilation and integration.

There is no process-wide default connection rule: a CompileConfig is
passed to compile_graph (and from there to every rule), and a
SimulationConfig supplies stepping options to integrate.

A YAML file may carry both sections:

    compile:
      connection_rule: basic
      seed: 7
    simulation:
      method: euler
      dt: 0.05
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import numpy as np
import yaml

from blox.errors import ConfigurationError

CONNECTION_RULES = ("basic", "diffusive")

ADAPTIVE_METHODS = ("RK45", "RK23", "DOP853", "Radau", "BDF", "LSODA")
METHODS = ("euler",) + ADAPTIVE_METHODS

# sparse connectivity is sampled from this seed unless a config names another
DEFAULT_SEED = 0


@dataclass(frozen=True)
class CompileConfig:
    """Options for graph compilation.

    Attributes
    ----------
    connection_rule : str
        Selector for the generic rule when an edge does not name one:
        "basic" (w * source output) or "diffusive"
        (w * (source output - destination output)).
    seed : int
        Seed for sampling sparse connectivity (edges with density < 1).
        Two compilations with the same seed give equal systems; None
        falls back to DEFAULT_SEED.
    """
    connection_rule: str = "basic"
    seed: Optional[int] = DEFAULT_SEED

    def __post_init__(self):
        if self.connection_rule not in CONNECTION_RULES:
            raise ConfigurationError(
                f"Unknown connection rule '{self.connection_rule}'. "
                f"Available: {list(CONNECTION_RULES)}"
            )

    def rng(self):
        """A fresh generator for sparse connectivity."""
        return np.random.default_rng(DEFAULT_SEED if self.seed is None else self.seed)


@dataclass(frozen=True)
class SimulationConfig:
    """Options for integration.

    Attributes
    ----------
    method : str
        "euler" or any solve_ivp method name.
    dt : float
        Euler step (ms); also the sampling step of smoothed stimuli.
    rtol, atol : float
        Tolerances for adaptive methods.
    max_step : float
        Largest step an adaptive method may take (ms).
    seed : int, optional
        Seed for spike-schedule draws.
    force_discontinuities : bool
        Stop at stimulus protocol edges.
    """
    method: str = "RK45"
    dt: float = 0.01
    rtol: float = 1e-6
    atol: float = 1e-8
    max_step: float = float("inf")
    seed: Optional[int] = None
    force_discontinuities: bool = True

    def __post_init__(self):
        if self.method not in METHODS:
            raise ConfigurationError(
                f"Unknown integration method '{self.method}'. "
                f"Available: {list(METHODS)}"
            )
        if self.dt <= 0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")

    def stepping_options(self):
        """Stepping options in the form integrate() accepts."""
        return {
            "dt": self.dt,
            "rtol": self.rtol,
            "atol": self.atol,
            "max_step": self.max_step,
            "seed": self.seed,
            "force_discontinuities": self.force_discontinuities,
        }


def _section(cls, data, name):
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {name} options: {sorted(unknown)}. Available: {sorted(known)}"
        )
    return cls(**data)


def load_config(path):
    """Read compile and simulation settings from a YAML file.

    Parameters
    ----------
    path : str or Path
        YAML file with optional "compile" and "simulation" mappings.

    Returns
    -------
    (CompileConfig, SimulationConfig)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No configuration file at {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must hold a mapping, got {type(data).__name__}")
    unknown = set(data) - {"compile", "simulation"}
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")
    return (_section(CompileConfig, data.get("compile"), "compile"),
            _section(SimulationConfig, data.get("simulation"), "simulation"))
