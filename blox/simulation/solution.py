"""Integration results.

A Solution holds read-only arrays. Observed quantities (input
accumulators, source signals) are not stored; they are evaluated from
the state samples the first time they are requested.
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import pandas as pd
import sympy as sp


@dataclass(frozen=True)
class Solution:
    """Samples of a compiled system over time.

    At every event time the solution holds one sample before and one
    after the effects (more during a cascade), so t is non-decreasing
    with repeated values.

    Attributes
    ----------
    t : np.ndarray
        Sample times (ms), shape (n_samples,).
    y : np.ndarray
        State samples, shape (n_states, n_samples).
    states : tuple of str
        Row names of y.
    parameters : dict
        Parameter values used for the run.
    events : tuple of (float, str)
        Event log: time and trigger of every fired event.
    system : CompiledSystem
        The system that was integrated.
    method : str
        Integration method.
    """
    t: np.ndarray
    y: np.ndarray
    states: Tuple
    parameters: dict
    events: Tuple
    system: object
    method: str = "RK45"
    _observed_cache: dict = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        self.t.setflags(write=False)
        self.y.setflags(write=False)

    @property
    def n_samples(self):
        return len(self.t)

    @property
    def time_span(self):
        return float(self.t[0]), float(self.t[-1])

    def __contains__(self, name):
        return name in self.states or name in self.system.observed_dict

    def __getitem__(self, name):
        if name in self.states:
            return self.y[self.states.index(name)]
        return self.observed(name)

    def observed(self, name):
        """Samples of an observed quantity, computed on first request."""
        if name not in self._observed_cache:
            exprs = self.system.observed_dict
            if name not in exprs:
                raise KeyError(
                    f"No state or observed quantity '{name}'. States: {list(self.states)}"
                )
            names = list(self.parameters)
            args = ([self.system.time] + [sp.Symbol(s) for s in self.states]
                    + [sp.Symbol(p) for p in names])
            fn = sp.lambdify(args, exprs[name], modules="numpy", dummify=True)
            values = fn(self.t, *self.y, *[self.parameters[p] for p in names])
            values = np.broadcast_to(np.asarray(values, dtype=np.float64), self.t.shape).copy()
            values.setflags(write=False)
            self._observed_cache[name] = values
        return self._observed_cache[name]

    def event_times(self, trigger):
        """Times at which a trigger fired."""
        return np.array([t for t, name in self.events if name == trigger], dtype=np.float64)

    def events_frame(self):
        """Event log as a DataFrame with columns time, trigger."""
        return pd.DataFrame(list(self.events), columns=["time", "trigger"])

    def to_frame(self, names=None):
        """Samples as a DataFrame indexed by time."""
        names = list(self.states) if names is None else list(names)
        return pd.DataFrame({name: self[name] for name in names},
                            index=pd.Index(self.t, name="t"))
