"""The connection rule table.

RULES maps (source kind, destination kind) to a rule function

    rule(source, destination, weight, options, context) -> Resolution

Kinds in a key may be families: the resolver walks both fallback chains
and takes the first registered pair (see resolver.resolution_order).
The root pair (blox, blox) is the generic rule, so every connection into
a blox with an input port resolves.

Registered pairs:

    (blox, blox)                    generic: input += w * output
    (hh_neuron, hh_neuron)          chemical synapse: w G_src (E_syn - V_dst)
    (lif_neuron, neuron)            spike jump into the destination's jump state
    (izhikevich, neuron)            spike jump
    (spike_source, blox)            spike jump
    (lif_excitatory, lif_neuron)    AMPA gate jump
    (lif_inhibitory, lif_neuron)    GABA gate jump
    (composite, blox)               expand to leaf pairs
    (blox, composite)               expand to leaf pairs
    (spike_source, composite)       expand to leaf pairs
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from blox.components.blox import Event
from blox.components.kinds import get_kind
from blox.config import CONNECTION_RULES, DEFAULT_SEED
from blox.errors import ConfigurationError, UnresolvableConnectionError

RULES = {}


@dataclass(frozen=True)
class Resolution:
    """What one connection contributes to the compiled system.

    Attributes
    ----------
    terms : tuple of (str, sympy.Expr)
        Destination leaf path and a term added to its input accumulator.
    events : tuple of Event
        Discrete events; their effects target destination states.
    """
    terms: Tuple = ()
    events: Tuple = ()

    def merge(self, other):
        return Resolution(self.terms + other.terms, self.events + other.events)


def register_rule(source_kind, destination_kind):
    """Decorator adding a rule for a (source kind, destination kind) pair."""
    get_kind(source_kind)
    get_kind(destination_kind)

    def decorate(rule):
        RULES[(source_kind, destination_kind)] = rule
        return rule
    return decorate


def _require_input(destination):
    if destination.input is None:
        raise UnresolvableConnectionError(
            f"{destination.path} ({destination.kind}) has no input port"
        )


@register_rule("blox", "blox")
def generic(source, destination, weight, options, context):
    """destination.input += weight * source.output (or a diffusive variant)."""
    _require_input(destination)
    out = source.output_expr
    if out is None:
        raise UnresolvableConnectionError(
            f"{source.path} ({source.kind}) has no output port"
        )
    selector = options.get("connection_rule", context.config.connection_rule)
    if selector not in CONNECTION_RULES:
        raise ConfigurationError(
            f"Unknown connection rule '{selector}'. Available: {list(CONNECTION_RULES)}"
        )
    if selector == "diffusive":
        out_dst = destination.output_expr
        if out_dst is None:
            raise UnresolvableConnectionError(
                f"Diffusive coupling needs an output on {destination.path}"
            )
        term = weight * (out - out_dst)
    else:
        term = weight * out
    return Resolution(terms=((destination.path, term),))


@register_rule("hh_neuron", "hh_neuron")
def chemical_synapse(source, destination, weight, options, context):
    """Conductance synapse reading the source's gate and reversal potential.

        destination.input += w * G_src * (E_syn - V_dst)

    An "E_syn" option overrides the source's reversal potential.
    """
    _require_input(destination)
    e_syn = options.get("E_syn", source.param("E_syn"))
    term = weight * source.symbol("G") * (e_syn - destination.symbol(destination.voltage))
    return Resolution(terms=((destination.path, term),))


def _jump(source, destination, weight, state):
    trigger = source.spike_trigger
    if trigger is None:
        raise UnresolvableConnectionError(f"{source.path} ({source.kind}) does not spike")
    if state is None:
        raise UnresolvableConnectionError(
            f"{destination.path} ({destination.kind}) has no state that receives spikes"
        )
    effect = (destination.qualify(state), destination.symbol(state) + weight)
    return Resolution(events=(Event(trigger, (effect,)),))


@register_rule("lif_neuron", "neuron")
@register_rule("izhikevich", "neuron")
@register_rule("spike_source", "blox")
def spike_jump(source, destination, weight, options, context):
    """On each source spike: destination.jump_state += weight."""
    return _jump(source, destination, weight, destination.jump_state)


@register_rule("lif_excitatory", "lif_neuron")
def ampa_jump(source, destination, weight, options, context):
    """On each source spike: destination.S_AMPA += weight."""
    state = "S_AMPA" if "S_AMPA" in destination.states else destination.jump_state
    return _jump(source, destination, weight, state)


@register_rule("lif_inhibitory", "lif_neuron")
def gaba_jump(source, destination, weight, options, context):
    """On each source spike: destination.S_GABA += weight."""
    state = "S_GABA" if "S_GABA" in destination.states else destination.jump_state
    return _jump(source, destination, weight, state)


def _emitters(blox):
    return [leaf for leaf in blox.leaves()
            if leaf.output is not None or leaf.spike_trigger is not None]


def _receivers(blox):
    return [leaf for leaf in blox.leaves() if leaf.input is not None or leaf.jump_state]


def sample_pairs(sources, destinations, density, rng):
    """Ordered leaf pairs, excluding self pairs, kept with probability `density`.

    Without an rng the draw is seeded with DEFAULT_SEED.
    """
    pairs = [(s, d) for s in sources for d in destinations if s.path != d.path]
    if density >= 1.0:
        return pairs
    if rng is None:
        rng = np.random.default_rng(DEFAULT_SEED)
    keep = rng.random(len(pairs)) < density
    return [pair for pair, k in zip(pairs, keep) if k]


@register_rule("composite", "blox")
@register_rule("blox", "composite")
@register_rule("spike_source", "composite")
def expand_composite(source, destination, weight, options, context):
    """Connect every emitting leaf of the source to every receiving leaf of the destination.

    Each leaf pair is resolved again through the rule table, so a
    population of excitatory LIF neurons projects AMPA jumps while a
    constant source projects input terms. A "density" option below 1
    keeps each pair with that probability, drawn from the compile rng.
    """
    density = options.get("density", 1.0)
    if not 0.0 <= density <= 1.0:
        raise ConfigurationError(f"density must lie in [0, 1], got {density}")
    leaf_options = {k: v for k, v in options.items() if k != "density"}

    senders = _emitters(source)
    receivers = _receivers(destination)
    if not receivers:
        raise UnresolvableConnectionError(f"{destination.path} has no leaf that accepts input")

    result = Resolution()
    for s, d in sample_pairs(senders, receivers, density, context.rng):
        result = result.merge(context.resolve(s, d, weight, leaf_options))
    return result
