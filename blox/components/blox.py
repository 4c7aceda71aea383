"""The Blox data model.

A Blox is an immutable description of one dynamical component: its
variables, parameters, continuous equations and discrete events. All
expressions are sympy expressions over namespaced symbols, so a Blox
created with namespace "pop" and name "n1" writes its voltage as the
symbol "pop.n1.V" and equations of different components never collide.

Variables carry a role:
    input     the accumulator that connections sum into (algebraic, 0.0 by default)
    output    the value other components read through generic connections
    internal  everything else
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import sympy as sp

from blox.components.kinds import get_kind, is_a
from blox.errors import ConfigurationError

SEPARATOR = "."
TIME = sp.Symbol("t")

INPUT = "input"
OUTPUT = "output"
INTERNAL = "internal"
ROLES = (INPUT, OUTPUT, INTERNAL)

SPIKE = "spike"


def join_path(*parts):
    """Join namespace parts, skipping empty ones."""
    return SEPARATOR.join(p for p in parts if p)


@dataclass(frozen=True)
class Variable:
    """A named quantity of a Blox with its default value and role."""
    name: str
    default: float = 0.0
    role: str = INTERNAL


@dataclass(frozen=True)
class Crossing:
    """A discrete event fired when `guard` crosses zero from below.

    Parameters
    ----------
    name : str
        Trigger identity, e.g. "pop.n1.spike". Connection events attach
        to this name.
    guard : sympy.Expr
        Event condition; fires on the transition guard < 0 -> guard >= 0.
    effects : tuple of (str, sympy.Expr)
        Namespaced state name and its new value, evaluated on the
        pre-event state.
    """
    name: str
    guard: sp.Expr
    effects: Tuple = ()


@dataclass(frozen=True)
class Event:
    """Effects applied whenever the trigger `trigger` fires."""
    trigger: str
    effects: Tuple = ()


@dataclass(frozen=True)
class Connection:
    """A directed weighted edge between two bloxs, identified by path."""
    source: str
    destination: str
    weight: object = 1.0
    options: Tuple = ()

    @property
    def options_dict(self):
        return dict(self.options)


@dataclass(frozen=True)
class Blox:
    """An immutable dynamical component.

    Parameters
    ----------
    name : str
        Local name.
    kind : str
        Kind tag from the kind table.
    namespace : str, optional
        Dotted prefix; the full path is namespace.name.
    variables : tuple of Variable
        Differential states, observed quantities and the input accumulator.
    params : tuple of (str, float)
        Local parameter names with default values.
    equations : tuple of (str, sympy.Expr)
        Local state name and the right-hand side of its derivative.
    observed : tuple of (str, sympy.Expr)
        Local name and algebraic expression (e.g. a source signal).
    crossings : tuple of Crossing
        Local discrete events.
    schedule : SpikeSchedule, optional
        Firing schedule of an event-driven source.
    protocol : DBSProtocol, optional
        Stimulus protocol with known discontinuity times.
    jump_state : str, optional
        Local state incremented by incoming spikes.
    voltage : str, optional
        Local name of the membrane potential, if any.
    children : tuple of Blox
        Sub-components of a composite.
    connections : tuple of Connection
        Internal connections of a composite, by full path.
    """
    name: str
    kind: str
    namespace: Optional[str] = None
    variables: Tuple = ()
    params: Tuple = ()
    equations: Tuple = ()
    observed: Tuple = ()
    crossings: Tuple = ()
    schedule: Optional[object] = None
    protocol: Optional[object] = None
    jump_state: Optional[str] = None
    voltage: Optional[str] = None
    children: Tuple = ()
    connections: Tuple = ()

    def __post_init__(self):
        if not self.name or SEPARATOR in self.name:
            raise ConfigurationError(
                f"Blox names must be non-empty and free of '{SEPARATOR}', got '{self.name}'"
            )
        spec = get_kind(self.kind)
        names = [v.name for v in self.variables]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"{self.path}: duplicate variable names {names}")
        for v in self.variables:
            if v.role not in ROLES:
                raise ConfigurationError(f"{self.path}: unknown role '{v.role}' for {v.name}")

        inputs = [v for v in self.variables if v.role == INPUT]
        outputs = [v for v in self.variables if v.role == OUTPUT]
        if len(outputs) > 1:
            raise ConfigurationError(
                f"{self.path}: expected at most one output, got {[v.name for v in outputs]}"
            )
        if len(inputs) > 1:
            raise ConfigurationError(
                f"{self.path}: expected at most one input, got {[v.name for v in inputs]}"
            )
        if inputs and not spec.accepts_input:
            raise ConfigurationError(
                f"{self.path}: kind '{self.kind}' accepts no inputs"
            )
        if inputs and inputs[0].default != 0.0:
            raise ConfigurationError(
                f"{self.path}: input accumulator {inputs[0].name} must start at 0.0"
            )

        states = {name for name, _ in self.equations}
        observed = {name for name, _ in self.observed}
        for name in states | observed:
            if name not in names:
                raise ConfigurationError(f"{self.path}: {name} is not a declared variable")
        if inputs and inputs[0].name in states | observed:
            raise ConfigurationError(
                f"{self.path}: input {inputs[0].name} must not have its own equation"
            )
        for local in (self.jump_state, self.voltage):
            if local is not None and local not in states:
                raise ConfigurationError(f"{self.path}: {local} is not a state")

    # --- identity ---

    @property
    def path(self):
        return join_path(self.namespace, self.name)

    @property
    def family(self):
        return get_kind(self.kind).family

    @property
    def is_composite(self):
        return is_a(self.kind, "composite")

    @property
    def is_source(self):
        return not get_kind(self.kind).accepts_input

    # --- symbols ---

    def symbol(self, local):
        """Namespaced sympy symbol for a local variable or parameter name."""
        return sp.Symbol(join_path(self.path, local))

    def qualify(self, local):
        """Namespaced name for a local name."""
        return join_path(self.path, local)

    # --- ports ---

    @property
    def states(self):
        """Local names of differential states, in declaration order."""
        return tuple(name for name, _ in self.equations)

    @property
    def input(self):
        for v in self.variables:
            if v.role == INPUT:
                return v.name
        return None

    @property
    def output(self):
        for v in self.variables:
            if v.role == OUTPUT:
                return v.name
        return None

    @property
    def output_expr(self):
        """Expression other components read through the output port."""
        local = self.output
        if local is None:
            return None
        observed = dict(self.observed)
        if local in observed:
            return observed[local]
        return self.symbol(local)

    @property
    def defaults(self):
        return {v.name: v.default for v in self.variables}

    @property
    def param_values(self):
        return dict(self.params)

    def param(self, local):
        """Symbol of a local parameter."""
        if local not in self.param_values:
            raise KeyError(f"{self.path} has no parameter '{local}'")
        return self.symbol(local)

    @property
    def spike_trigger(self):
        """Trigger name that fires when this blox spikes, or None."""
        if self.schedule is not None:
            return self.schedule.name
        for crossing in self.crossings:
            if crossing.name == self.qualify(SPIKE):
                return crossing.name
        return None

    # --- composites ---

    def leaves(self):
        """All non-composite descendants, depth first; a leaf yields itself."""
        if not self.is_composite:
            yield self
            return
        for child in self.children:
            yield from child.leaves()

    def describe(self):
        """Summary dict for tables."""
        return {
            "path": self.path,
            "kind": self.kind,
            "family": self.family,
            "states": list(self.states),
            "input": self.input,
            "output": self.output,
            "n_params": len(self.params),
            "n_children": len(self.children),
        }
