"""Resolve a single connection into input terms and events.

Resolution order: for a (source kind, destination kind) pair, every
combination of the two fallback chains is a candidate. Candidates are
ordered by their total distance from the concrete pair; at equal
distance the pair with the more specific destination comes first. The
first candidate present in RULES wins. Because (blox, blox) is always
registered, a connection into a blox with an input port never falls
through.
"""

from dataclasses import dataclass
from numbers import Real

import numpy as np
import sympy as sp

from blox.components.kinds import ancestors
from blox.config import CompileConfig
from blox.connections.rules import RULES, Resolution
from blox.errors import ConfigurationError, UnresolvableConnectionError


@dataclass(frozen=True)
class ResolveContext:
    """Compile-time state handed to every rule."""
    config: CompileConfig
    rng: np.random.Generator

    def resolve(self, source, destination, weight=1.0, options=None):
        return resolve(source, destination, weight, options, self.config, self.rng)


def resolution_order(source_kind, destination_kind):
    """Candidate (source, destination) kind pairs, first match wins."""
    src = ancestors(source_kind)
    dst = ancestors(destination_kind)
    ranked = sorted((i + j, j, (s, d)) for i, s in enumerate(src) for j, d in enumerate(dst))
    return [pair for _, _, pair in ranked]


def find_rule(source_kind, destination_kind):
    """The registered pair and rule function chosen for two kinds."""
    for pair in resolution_order(source_kind, destination_kind):
        if pair in RULES:
            return pair, RULES[pair]
    raise UnresolvableConnectionError(
        f"No connection rule for {source_kind} -> {destination_kind}"
    )


def _check_weight(weight):
    if isinstance(weight, str):
        return sp.sympify(weight)
    if isinstance(weight, bool) or not isinstance(weight, (Real, sp.Expr)):
        raise ConfigurationError(
            f"Connection weight must be a number or a sympy expression, got {weight!r}"
        )
    return weight


def resolve(source, destination, weight=1.0, options=None, config=None, rng=None):
    """Resolve one connection.

    Parameters
    ----------
    source, destination : Blox
        Endpoints; composites are expanded to their leaves.
    weight : float, str or sympy.Expr
        Connection weight. Strings are parsed into sympy expressions;
        their free symbols must be given defaults at compile time.
    options : dict, optional
        Rule-specific options ("connection_rule", "density", "E_syn", ...).
    config : CompileConfig, optional
        Compile settings; defaults to CompileConfig().
    rng : np.random.Generator, optional
        Random source for sparse expansion; config.rng() by default.

    Returns
    -------
    Resolution

    Raises
    ------
    UnresolvableConnectionError
        If the destination is a source, or the chosen rule finds a
        missing port or spike trigger.
    """
    if destination.is_source:
        raise UnresolvableConnectionError(
            f"{destination.path} is a {destination.kind} source and cannot receive connections"
        )
    weight = _check_weight(weight)
    config = config or CompileConfig()
    context = ResolveContext(config, rng if rng is not None else config.rng())
    _, rule = find_rule(source.kind, destination.kind)
    return rule(source, destination, weight, dict(options or {}), context)
