"""Integrate a compiled system.

Two drivers share one event model:

    euler      fixed step dt on a grid that contains every stop point
    adaptive   scipy.integrate.solve_ivp, one call per segment between
               stop points, with terminal crossing events (direction +1)
               and a restart after every event

Events are explicit state transitions. At an event time the driver
records the state before the effects and again after them. If the
effects push another guard from below zero to zero or above, that
crossing fires at the same time (a cascade), and so on until no guard
crosses. Every firing is appended to the event log as (time, trigger).
"""

import numpy as np
from scipy.integrate import solve_ivp

from blox.config import ADAPTIVE_METHODS, METHODS
from blox.errors import ConfigurationError, IntegrationError
from blox.simulation.problem import build_problem
from blox.simulation.solution import Solution
from blox.utils import get_logger

LOG = get_logger("simulation.engine")

STEPPING_DEFAULTS = {
    "dt": 0.01,
    "rtol": 1e-6,
    "atol": 1e-8,
    "max_step": np.inf,
    "seed": None,
    "tstops": (),
    "force_discontinuities": True,
}

MAX_CASCADE = 100
MAX_RESTARTS = 1000


class _Recorder:
    """Accumulates samples and the event log of one run."""

    def __init__(self, problem):
        self.problem = problem
        self.t = []
        self.y = []
        self.events = []

    def sample(self, t, y):
        self.t.append(float(t))
        self.y.append(np.array(y, dtype=np.float64))

    def fire(self, triggers, t, y):
        """Apply triggers at time t, cascading into crossings the effects cause.

        The pre-event sample is expected to be recorded already; one
        sample is recorded after every round of effects.
        """
        problem = self.problem
        pending = list(triggers)
        for _ in range(MAX_CASCADE):
            if not pending:
                return y
            before = problem.guards(t, y)
            for trigger in pending:
                y = problem.fire(trigger, t, y)
                self.events.append((float(t), trigger))
            after = problem.guards(t, y)
            self.sample(t, y)
            pending = [name for name, b, a in zip(problem.guard_names, before, after)
                       if b < 0 <= a]
        raise IntegrationError(f"Event cascade at t={t} did not settle after {MAX_CASCADE} rounds")


def _check_finite(t, y):
    if not np.all(np.isfinite(y)):
        raise FloatingPointError(f"non-finite state at t={t}")


def _euler(problem, dt):
    t0, t1 = problem.time_span
    grid = np.arange(t0, t1, dt)
    grid = np.unique(np.concatenate([grid, problem.tstops, list(problem.scheduled), [t1]]))
    grid = grid[(grid >= t0) & (grid <= t1)]

    rec = _Recorder(problem)
    y = problem.y0.copy()
    rec.sample(t0, y)
    for t_prev, t_next in zip(grid[:-1], grid[1:]):
        g_before = problem.guards(t_prev, y)
        y = y + (t_next - t_prev) * problem.rhs(t_prev, y)
        _check_finite(t_next, y)
        g_after = problem.guards(t_next, y)
        rec.sample(t_next, y)
        triggers = [name for name, b, a in zip(problem.guard_names, g_before, g_after)
                    if b < 0 <= a]
        triggers += problem.scheduled.get(float(t_next), [])
        if triggers:
            y = rec.fire(triggers, t_next, y)
    return rec


def _crossing_events(problem):
    events = []
    for i in range(len(problem.guard_names)):
        event = problem.guard(i)
        event.terminal = True
        event.direction = 1
        events.append(event)
    return events


def _adaptive(problem, method, options):
    t0, t1 = problem.time_span
    events = _crossing_events(problem) or None
    rec = _Recorder(problem)
    y = problem.y0.copy()
    t = t0
    rec.sample(t, y)

    for stop in list(problem.tstops) + [t1]:
        restarts = 0
        while t < stop:
            sol = solve_ivp(problem.rhs, (t, stop), y, method=method, events=events,
                            rtol=options["rtol"], atol=options["atol"],
                            max_step=options["max_step"])
            if sol.status == -1:
                raise IntegrationError(f"solve_ivp failed: {sol.message}")
            for k in range(1, len(sol.t)):
                rec.sample(sol.t[k], sol.y[:, k])
            y = sol.y[:, -1].copy()
            _check_finite(sol.t[-1], y)

            if sol.status == 1:
                fired = [i for i, times in enumerate(sol.t_events) if len(times)]
                t = float(sol.t_events[fired[0]][0])
                y = np.array(sol.y_events[fired[0]][0], dtype=np.float64)
                y = rec.fire([problem.guard_names[i] for i in fired], t, y)
                restarts += 1
                if restarts > MAX_RESTARTS:
                    raise IntegrationError(
                        f"More than {MAX_RESTARTS} events before t={stop}; "
                        "a guard may stay at zero after its effects"
                    )
            else:
                t = stop

        triggers = problem.scheduled.get(float(stop), [])
        if triggers:
            y = rec.fire(triggers, stop, y)
    return rec


def integrate(system, initial_overrides=None, time_span=(0.0, 100.0), method="RK45",
              stepping_options=None):
    """Integrate a compiled system over a time span.

    Parameters
    ----------
    system : CompiledSystem
    initial_overrides : dict, optional
        State or parameter name -> value; everything else keeps its default.
    time_span : (float, float)
        Start and end time (ms).
    method : str
        "euler" or a solve_ivp method (RK45, RK23, DOP853, Radau, BDF, LSODA).
    stepping_options : dict, optional
        dt (euler step), rtol, atol, max_step, seed (spike schedules),
        tstops (extra stop points) and force_discontinuities.

    Returns
    -------
    Solution

    Raises
    ------
    ConfigurationError
        Unknown method, stepping option or override.
    IntegrationError
        The integrator failed; the original error is chained.
    """
    if method not in METHODS:
        raise ConfigurationError(
            f"Unknown integration method '{method}'. Available: {list(METHODS)}"
        )
    options = dict(STEPPING_DEFAULTS)
    unknown = set(stepping_options or {}) - set(options)
    if unknown:
        raise ConfigurationError(
            f"Unknown stepping options: {sorted(unknown)}. Available: {sorted(options)}"
        )
    options.update(stepping_options or {})
    if options["dt"] <= 0:
        raise ConfigurationError(f"dt must be positive, got {options['dt']}")

    problem = build_problem(system, initial_overrides, time_span,
                            seed=options["seed"], tstops=options["tstops"],
                            force_discontinuities=options["force_discontinuities"])
    components = [leaf.path for leaf in system.leaves]

    LOG.info("Integrating '%s': %d states, t=%s, method=%s, %d stop points",
             system.name, system.n_states, problem.time_span, method, len(problem.tstops))
    try:
        if method in ADAPTIVE_METHODS:
            rec = _adaptive(problem, method, options)
        else:
            rec = _euler(problem, options["dt"])
    except IntegrationError as error:
        raise IntegrationError(str(error), method, problem.time_span, components) from error
    except (ValueError, ArithmeticError) as error:
        raise IntegrationError(f"Integration failed: {error}",
                               method, problem.time_span, components) from error

    t = np.array(rec.t, dtype=np.float64)
    y = (np.array(rec.y, dtype=np.float64).T if rec.y
         else np.zeros((system.n_states, 0)))
    y = y.reshape(system.n_states, len(t))
    names = [name for name, _ in system.parameters]
    solution = Solution(
        t=t,
        y=y,
        states=system.states,
        parameters=dict(zip(names, problem.p)),
        events=tuple(rec.events),
        system=system,
        method=method,
    )
    LOG.info("Integration complete: %d samples, %d events", len(t), len(rec.events))
    return solution


def sweep(system, overrides, time_span=(0.0, 100.0), method="RK45", stepping_options=None):
    """Integrate the same system once per override dict.

    Parameters
    ----------
    overrides : iterable of dict
        One initial_overrides mapping per run.

    Returns
    -------
    list of Solution
    """
    overrides = list(overrides)
    LOG.info("Sweep over %d runs of '%s'", len(overrides), system.name)
    return [integrate(system, o, time_span, method, stepping_options) for o in overrides]
