"""The closed table of component kinds.

Each kind names its family; following family links gives the fallback
chain used by the connection resolver. A kind introduced with an
existing family inherits every rule registered for that family.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from blox.errors import ConfigurationError

ROOT = "blox"


@dataclass(frozen=True)
class KindSpec:
    """One entry of the kind table.

    Parameters
    ----------
    name : str
        Kind tag carried by every Blox of this kind.
    family : str or None
        Parent kind. None only for the root.
    accepts_input : bool
        False for sources: nothing may connect into them.
    self_loops : bool
        True if an edge from a blox of this kind to itself is allowed.
    description : str
        One-line summary.
    """
    name: str
    family: Optional[str]
    accepts_input: bool = True
    self_loops: bool = False
    description: str = ""


KINDS = {spec.name: spec for spec in [
    KindSpec(ROOT, None, description="Any dynamical component"),

    KindSpec("neuron", ROOT, description="Single neuron"),
    KindSpec("lif_neuron", "neuron", description="Leaky integrate-and-fire family"),
    KindSpec("lif", "lif_neuron",
             description="Current-based LIF with voltage jumps"),
    KindSpec("lif_excitatory", "lif_neuron",
             description="Conductance-based excitatory LIF (AMPA out)"),
    KindSpec("lif_inhibitory", "lif_neuron",
             description="Conductance-based inhibitory LIF (GABA out)"),
    KindSpec("hh_neuron", "neuron", description="Hodgkin-Huxley family"),
    KindSpec("hh_excitatory", "hh_neuron",
             description="Hodgkin-Huxley neuron with excitatory synapses"),
    KindSpec("hh_inhibitory", "hh_neuron",
             description="Hodgkin-Huxley neuron with inhibitory synapses"),
    KindSpec("izhikevich", "neuron", description="Izhikevich quadratic neuron"),

    KindSpec("neural_mass", ROOT, self_loops=True,
             description="Population-averaged activity model"),
    KindSpec("wilson_cowan", "neural_mass", self_loops=True,
             description="Excitatory-inhibitory rate pair"),
    KindSpec("harmonic_oscillator", "neural_mass", self_loops=True,
             description="Damped linear oscillator"),
    KindSpec("jansen_rit", "neural_mass", self_loops=True,
             description="Jansen-Rit cortical column"),

    KindSpec("source", ROOT, accepts_input=False,
             description="External signal, no inputs"),
    KindSpec("continuous_source", "source", accepts_input=False,
             description="Signal defined as a function of time"),
    KindSpec("constant_input", "continuous_source", accepts_input=False,
             description="Constant signal"),
    KindSpec("dbs", "continuous_source", accepts_input=False,
             description="Deep brain stimulation pulse protocol"),
    KindSpec("spike_source", "source", accepts_input=False,
             description="Event-driven spike generator"),
    KindSpec("bernoulli_spikes", "spike_source", accepts_input=False,
             description="Spike with fixed probability on a regular grid"),
    KindSpec("poisson_spikes", "spike_source", accepts_input=False,
             description="Homogeneous Poisson spike train"),

    KindSpec("composite", ROOT, self_loops=True,
             description="Owns child bloxs and their connections"),
    KindSpec("population", "composite", self_loops=True,
             description="Recurrently connected neuron population"),
    KindSpec("decision_circuit", "composite", self_loops=True,
             description="Two-choice decision-making network"),
]}


def get_kind(name):
    """Look up a KindSpec by name.

    Raises
    ------
    ConfigurationError
        If the kind is not in the table.
    """
    if name not in KINDS:
        raise ConfigurationError(
            f"Unknown kind '{name}'. Available: {list(KINDS.keys())}"
        )
    return KINDS[name]


def ancestors(kind):
    """Fallback chain of a kind, most specific first, ending at the root."""
    chain = []
    spec = get_kind(kind)
    while spec is not None:
        chain.append(spec.name)
        spec = KINDS[spec.family] if spec.family is not None else None
    return tuple(chain)


def is_a(kind, family):
    """True if `family` appears in the fallback chain of `kind`."""
    return family in ancestors(kind)


def list_kinds():
    """Summary table of all kinds with their fallback chains."""
    return pd.DataFrame([
        {
            "kind": spec.name,
            "family": spec.family,
            "chain": " > ".join(ancestors(spec.name)),
            "accepts_input": spec.accepts_input,
            "self_loops": spec.self_loops,
            "description": spec.description,
        }
        for spec in KINDS.values()
    ])
