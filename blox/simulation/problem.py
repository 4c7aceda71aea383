"""Turn a CompiledSystem into a numerical initial-value problem.

Every symbolic piece of the system is lambdified once against the
argument list (t, *states, *parameters). Parameters stay arguments, so
overrides never touch the compiled system.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import sympy as sp

from blox.errors import ConfigurationError
from blox.utils import get_logger

LOG = get_logger("simulation.problem")


def _lambdify(args, exprs):
    return sp.lambdify(args, list(exprs), modules="numpy", dummify=True)


@dataclass(frozen=True)
class Effect:
    """State assignments of one event, evaluated together on the pre-event state."""
    indices: Tuple
    values: object

    def apply(self, t, y, p):
        new = np.asarray(self.values(t, *y, *p), dtype=np.float64)
        y = y.copy()
        y[list(self.indices)] = new
        return y


@dataclass(frozen=True)
class Problem:
    """A numerical initial-value problem with events.

    Attributes
    ----------
    system : CompiledSystem
    y0 : np.ndarray
        Initial state.
    p : np.ndarray
        Parameter values, in system parameter order.
    time_span : (float, float)
    tstops : np.ndarray
        Sorted times strictly inside the span where integration must stop.
    scheduled : dict
        Stop time -> triggers firing at that time (spike schedules).
    guard_names : tuple of str
        Crossing trigger names, in the order guards() returns them.
    """
    system: object
    y0: np.ndarray
    p: np.ndarray
    time_span: Tuple
    tstops: np.ndarray
    scheduled: dict
    guard_names: Tuple
    _rhs: object
    _guards: object
    _effects: dict

    def rhs(self, t, y):
        return np.asarray(self._rhs(t, *y, *self.p), dtype=np.float64).reshape(-1)

    def guards(self, t, y):
        if not self.guard_names:
            return np.zeros(0)
        return np.asarray(self._guards(t, *y, *self.p), dtype=np.float64).reshape(-1)

    def guard(self, i):
        """Scalar function g_i(t, y), for solve_ivp events."""
        return lambda t, y: float(self.guards(t, y)[i])

    def fire(self, trigger, t, y):
        """Apply every effect attached to a trigger, in order."""
        for effect in self._effects.get(trigger, ()):
            y = effect.apply(t, y, self.p)
        return y


def _overrides(system, initial_overrides):
    y0 = np.array(system.initial_values, dtype=np.float64)
    params = system.parameter_values
    for name, value in (initial_overrides or {}).items():
        if name in system.states:
            y0[system.state_index(name)] = float(value)
        elif name in params:
            params[name] = float(value)
        else:
            raise ConfigurationError(
                f"Override '{name}' is neither a state nor a parameter of {system.name}"
            )
    return y0, params


def build_problem(system, initial_overrides=None, time_span=(0.0, 100.0),
                  seed=None, tstops=(), force_discontinuities=True):
    """Build the numerical problem for one run.

    Parameters
    ----------
    system : CompiledSystem
    initial_overrides : dict, optional
        State or parameter name -> value.
    time_span : (float, float)
    seed : int, optional
        Seed for spike-schedule draws.
    tstops : sequence of float
        Extra times the integrator must stop at.
    force_discontinuities : bool
        Stop at the hard edges of stimulus protocols.

    Returns
    -------
    Problem
    """
    t0, t1 = float(time_span[0]), float(time_span[1])
    if not t1 > t0:
        raise ConfigurationError(f"time_span must increase, got {(t0, t1)}")

    y0, params = _overrides(system, initial_overrides)
    param_names = list(params)
    args = ([system.time] + [sp.Symbol(s) for s in system.states]
            + [sp.Symbol(p) for p in param_names])
    index = {name: i for i, name in enumerate(system.states)}

    effects = {}

    def add_effect(trigger, assignments):
        if not assignments:
            return
        indices = tuple(index[name] for name, _ in assignments)
        values = _lambdify(args, [expr for _, expr in assignments])
        effects.setdefault(trigger, []).append(Effect(indices, values))

    for crossing in system.crossings:
        add_effect(crossing.name, crossing.effects)
    for event in system.events:
        add_effect(event.trigger, event.effects)

    rng = np.random.default_rng(seed)
    scheduled = {}
    for schedule in system.schedules:
        for t in schedule.draw(rng, t0, t1):
            scheduled.setdefault(float(t), []).append(schedule.name)

    stops = [np.asarray(list(tstops), dtype=np.float64), np.array(list(scheduled))]
    if force_discontinuities:
        stops += [protocol.transition_times(t0, t1) for _, protocol in system.protocols]
    stops = np.unique(np.concatenate(stops)) if stops else np.zeros(0)
    stops = stops[(stops > t0) & (stops < t1)]

    guard_names = tuple(c.name for c in system.crossings)
    return Problem(
        system=system,
        y0=y0,
        p=np.array([params[name] for name in param_names], dtype=np.float64),
        time_span=(t0, t1),
        tstops=stops,
        scheduled=scheduled,
        guard_names=guard_names,
        _rhs=_lambdify(args, system.rhs),
        _guards=_lambdify(args, [c.guard for c in system.crossings]),
        _effects=effects,
    )
