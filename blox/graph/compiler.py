"""Compile a Graph into one flat, immutable dynamical system.

Steps:
    1. Flatten composites into leaves, collecting their internal
       connections, and reject namespace collisions.
    2. Validate every edge (known endpoints, no edge into a source,
       self-loops only where the kind allows them).
    3. Resolve every edge through the rule table.
    4. Sum the input terms per destination. sympy.Add is canonical, so
       the summed input does not depend on edge order.
    5. Substitute the sums for the input accumulators in every
       equation, guard and effect; attach connection events to their
       triggers.
    6. Check that every free symbol is a state, a parameter or time.
"""

from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Tuple

import pandas as pd
import sympy as sp

from blox.components.blox import TIME
from blox.components.kinds import get_kind
from blox.config import CompileConfig
from blox.connections.resolver import resolve
from blox.errors import GraphCompilationError, UnresolvableConnectionError
from blox.utils import get_logger

LOG = get_logger("graph.compiler")


@dataclass(frozen=True)
class CompiledSystem:
    """A flat system of namespaced ODEs with discrete events.

    Attributes
    ----------
    name : str
        Label of the source graph.
    states : tuple of str
        Namespaced state names, in leaf order then declaration order.
    initial_values : tuple of float
        Default initial value per state.
    rhs : tuple of sympy.Expr
        Time derivative per state, with inputs substituted.
    parameters : tuple of (str, float)
        Namespaced parameter names and default values.
    observed : tuple of (str, sympy.Expr)
        Algebraic quantities: input accumulators and source signals.
    crossings : tuple of Crossing
        Threshold events of the leaves, with inputs substituted.
    events : tuple of Event
        Connection events, in edge order.
    schedules : tuple of SpikeSchedule
        Firing schedules of event-driven sources.
    protocols : tuple of (str, DBSProtocol)
        Stimulus protocols by source path.
    leaves : tuple of Blox
        Non-composite components.
    composites : tuple of Blox
        Composite components, outermost first.
    """
    name: str
    states: Tuple
    initial_values: Tuple
    rhs: Tuple
    parameters: Tuple
    observed: Tuple
    crossings: Tuple
    events: Tuple
    schedules: Tuple
    protocols: Tuple
    leaves: Tuple
    composites: Tuple

    time = TIME

    @property
    def n_states(self):
        return len(self.states)

    @property
    def parameter_values(self):
        return dict(self.parameters)

    @property
    def observed_dict(self):
        return dict(self.observed)

    @property
    def triggers(self):
        """All trigger names: threshold crossings and source schedules."""
        return tuple(c.name for c in self.crossings) + tuple(s.name for s in self.schedules)

    def state_index(self, name):
        try:
            return self.states.index(name)
        except ValueError:
            raise KeyError(f"No state '{name}'. Available: {list(self.states)}") from None

    def component(self, path):
        """Leaf or composite by path."""
        for blox in self.leaves + self.composites:
            if blox.path == path:
                return blox
        raise KeyError(f"No component '{path}'")

    def events_for(self, trigger):
        return tuple(e for e in self.events if e.trigger == trigger)

    def to_frame(self):
        """One row per state with its initial value and right-hand side."""
        return pd.DataFrame({
            "state": list(self.states),
            "initial": list(self.initial_values),
            "rhs": [str(expr) for expr in self.rhs],
        })

    def summary(self):
        """Return a summary string."""
        lines = [
            f"CompiledSystem '{self.name}': {len(self.leaves)} leaves, "
            f"{self.n_states} states, {len(self.parameters)} parameters",
            f"  crossings: {len(self.crossings)}, connection events: {len(self.events)}",
            f"  spike schedules: {len(self.schedules)}, stimulus protocols: {len(self.protocols)}",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Flattening and validation
# ---------------------------------------------------------------------------

def _flatten(graph):
    index = {}
    leaves = []
    composites = []
    edges = list(graph.connections)

    def visit(blox):
        present = index.get(blox.path)
        if present is not None:
            if present != blox:
                raise GraphCompilationError(f"Namespace collision at '{blox.path}'")
            return
        index[blox.path] = blox
        if blox.is_composite:
            composites.append(blox)
            for child in blox.children:
                visit(child)
            edges.extend(blox.connections)
        else:
            leaves.append(blox)

    for blox in graph.bloxs:
        visit(blox)
    return index, leaves, composites, edges


def _validate(edges, index):
    seen = set()
    for edge in edges:
        for path in (edge.source, edge.destination):
            if path not in index:
                raise GraphCompilationError(
                    f"Connection {edge.source} -> {edge.destination}: unknown blox '{path}'"
                )
        src, dst = index[edge.source], index[edge.destination]
        if dst.is_source:
            raise GraphCompilationError(
                f"Connection {edge.source} -> {edge.destination}: "
                f"{dst.kind} sources accept no inputs"
            )
        if edge.source == edge.destination and not get_kind(src.kind).self_loops:
            raise GraphCompilationError(
                f"Self-loop on {edge.source}: kind '{src.kind}' does not allow one"
            )
        key = (edge.source, edge.destination)
        if key in seen:
            raise GraphCompilationError(f"Duplicate connection {key[0]} -> {key[1]}")
        seen.add(key)


def _weight_parameters(edges):
    """Defaults for the free symbols of symbolic weights."""
    found = {}
    for edge in edges:
        weight = sp.sympify(edge.weight)
        symbols = {s.name for s in weight.free_symbols}
        if not symbols:
            continue
        given = dict(edge.options_dict.get("parameters", ()))
        for name in sorted(symbols):
            if name not in given:
                raise GraphCompilationError(
                    f"Connection {edge.source} -> {edge.destination}: weight symbol "
                    f"'{name}' has no default; pass parameters={{'{name}': value}}"
                )
            value = float(given[name])
            if name in found and found[name] != value:
                raise GraphCompilationError(
                    f"Weight symbol '{name}' has conflicting defaults {found[name]} and {value}"
                )
            found[name] = value
    return found


def _check_symbols(exprs, allowed):
    for label, expr in exprs:
        unknown = {s.name for s in sp.sympify(expr).free_symbols} - allowed
        if unknown:
            raise GraphCompilationError(f"{label} refers to unknown symbols {sorted(unknown)}")


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

def compile_graph(graph, config=None):
    """Compile a Graph into a CompiledSystem.

    Parameters
    ----------
    graph : Graph
    config : CompileConfig, optional
        Generic rule selector and the seed for sparse expansion.

    Returns
    -------
    CompiledSystem

    Raises
    ------
    GraphCompilationError
        On namespace collisions, invalid or unresolvable edges, or
        equations referring to unknown symbols.
    """
    config = config or CompileConfig()
    rng = config.rng()
    index, leaves, composites, edges = _flatten(graph)
    _validate(edges, index)

    terms = defaultdict(list)
    events = []
    for edge in edges:
        rule_options = {k: v for k, v in edge.options_dict.items() if k != "parameters"}
        try:
            resolution = resolve(index[edge.source], index[edge.destination],
                                 edge.weight, rule_options, config, rng)
        except UnresolvableConnectionError as error:
            raise GraphCompilationError(
                f"Cannot resolve {edge.source} -> {edge.destination}: {error}"
            ) from error
        for destination, term in resolution.terms:
            terms[destination].append(term)
        events.extend(resolution.events)

    # input accumulators are replaced by the sum of their terms
    inputs = {}
    observed = []
    for leaf in leaves:
        if leaf.input is not None:
            total = sp.Add(*terms.pop(leaf.path, []))
            inputs[leaf.symbol(leaf.input)] = total
            observed.append((leaf.qualify(leaf.input), total))
    if terms:
        raise GraphCompilationError(f"Input terms for leaves without an input: {sorted(terms)}")

    def substitute(expr):
        return sp.sympify(expr).xreplace(inputs)

    states, initial_values, rhs = [], [], []
    parameters = {}
    crossings, schedules, protocols = [], [], []
    for leaf in leaves:
        defaults = leaf.defaults
        for local, expr in leaf.equations:
            states.append(leaf.qualify(local))
            initial_values.append(float(defaults[local]))
            rhs.append(substitute(expr))
        for local, value in leaf.params:
            parameters[leaf.qualify(local)] = float(value)
        for local, expr in leaf.observed:
            observed.append((leaf.qualify(local), substitute(expr)))
        for crossing in leaf.crossings:
            crossings.append(replace(
                crossing,
                guard=substitute(crossing.guard),
                effects=tuple((name, substitute(e)) for name, e in crossing.effects),
            ))
        if leaf.schedule is not None:
            schedules.append(leaf.schedule)
        if leaf.protocol is not None:
            protocols.append((leaf.path, leaf.protocol))

    if len(set(states)) != len(states):
        raise GraphCompilationError("Duplicate state names after flattening")
    for name, value in _weight_parameters(edges).items():
        if name in parameters or name in states or name == TIME.name:
            raise GraphCompilationError(f"Weight symbol '{name}' shadows a component symbol or time")
        parameters[name] = value

    allowed = set(states) | set(parameters) | {TIME.name}
    _check_symbols([(f"d{name}/dt", expr) for name, expr in zip(states, rhs)], allowed)
    _check_symbols([(name, expr) for name, expr in observed], allowed)
    for crossing in crossings:
        _check_symbols([(f"guard of {crossing.name}", crossing.guard)]
                       + [(f"effect of {crossing.name}", e) for _, e in crossing.effects], allowed)
    for event in events:
        _check_symbols([(f"event on {event.trigger}", e) for _, e in event.effects], allowed)

    known_states = set(states)
    for effect_owner in crossings + events:
        for target, _ in effect_owner.effects:
            if target not in known_states:
                raise GraphCompilationError(f"Event effect targets unknown state '{target}'")

    triggers = {c.name for c in crossings} | {s.name for s in schedules}
    for event in events:
        if event.trigger not in triggers:
            raise GraphCompilationError(f"Event on unknown trigger '{event.trigger}'")

    system = CompiledSystem(
        name=graph.name,
        states=tuple(states),
        initial_values=tuple(initial_values),
        rhs=tuple(rhs),
        parameters=tuple(parameters.items()),
        observed=tuple(observed),
        crossings=tuple(crossings),
        events=tuple(events),
        schedules=tuple(schedules),
        protocols=tuple(protocols),
        leaves=tuple(leaves),
        composites=tuple(composites),
    )
    LOG.info("Compiled '%s': %d leaves, %d states, %d connections, %d events",
             graph.name, len(leaves), len(states), len(edges), len(events))
    return system
