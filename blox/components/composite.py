"""Composite bloxs: populations and circuits built from other bloxs.

A composite owns its children (namespaced under the composite's path)
and a tuple of internal connections between them. A connection whose
source and destination are the same composite is a recurrent
projection: the connection resolver expands it to every ordered pair of
distinct leaves.
"""

from dataclasses import replace as _with

from blox.components.blox import Blox, Connection
from blox.components.options import merge_options, require, REQUIRED
from blox.components import neurons, sources
from blox.errors import ConfigurationError

POPULATION_NEURONS = {
    "lif": neurons.lif,
    "lif_excitatory": neurons.lif_excitatory,
    "lif_inhibitory": neurons.lif_inhibitory,
    "hh_excitatory": neurons.hh_excitatory,
    "hh_inhibitory": neurons.hh_inhibitory,
    "izhikevich": neurons.izhikevich,
}

POPULATION_DEFAULTS = {
    "n_neurons": REQUIRED,
    "neuron_kind": "lif_excitatory",
    "weight": 1.0,
    "density": 1.0,
}


def population(name, namespace=None, **options):
    """A population of identical neurons with recurrent all-to-all coupling.

    Parameters
    ----------
    name : str
        Population name; neurons are named n1..nN under it.
    namespace : str, optional
        Namespace of the population itself.
    n_neurons : int
        Number of neurons (required).
    neuron_kind : str
        Kind of every neuron (default "lif_excitatory").
    weight : float
        Recurrent weight; 0 disables the recurrent projection.
    density : float
        Recurrent connection probability per ordered neuron pair.
    **options
        Remaining options go to every neuron.

    Returns
    -------
    Blox
    """
    own = {k: options.pop(k) for k in list(options) if k in POPULATION_DEFAULTS}
    p = merge_options("population", POPULATION_DEFAULTS, own,
                      numeric={"n_neurons", "weight", "density"})
    require(float(p["n_neurons"]).is_integer() and p["n_neurons"] >= 1,
            "population: n_neurons must be a positive integer")
    require(0.0 <= p["density"] <= 1.0, "population: density must lie in [0, 1]")
    if p["neuron_kind"] not in POPULATION_NEURONS:
        raise ConfigurationError(
            f"population: unsupported neuron_kind '{p['neuron_kind']}'. "
            f"Available: {list(POPULATION_NEURONS)}"
        )

    b = Blox(name=name, kind="population", namespace=namespace)
    factory = POPULATION_NEURONS[p["neuron_kind"]]
    children = tuple(
        factory(f"n{i + 1}", namespace=b.path, **options)
        for i in range(int(p["n_neurons"]))
    )
    connections = ()
    if p["weight"] != 0 and len(children) > 1:
        connections = (Connection(b.path, b.path, p["weight"], (("density", p["density"]),)),)
    return _with(b, children=children, connections=connections)


DECISION_DEFAULTS = {
    "n_selective": 4,
    "n_nonselective": 8,
    "n_inhibitory": 4,
    "coherence": 0.0,           # percent
    "rate_background": 2400.0,  # Hz
    "rate_stimulus": 40.0,      # Hz, mu_0
    "stimulus_start": 100.0,    # ms
    "stimulus_stop": float("inf"),
    "w_plus": 1.7,
    "w_minus": None,
    "w_inh": 1.0,
    "selective_fraction": 0.15,
}


def decision_circuit(name, namespace=None, **options):
    """Two-choice decision-making circuit after Wang (2002).

    Populations:
        A, B   selective excitatory populations (recurrent weight w_plus)
        N      non-selective excitatory population
        I      inhibitory interneurons

    Sources:
        bg_A, bg_B, bg_N, bg_I   Poisson background at rate_background
        stim_A, stim_B           Poisson stimulus at
                                 rate_stimulus * (1 +/- coherence / 100)

    w_minus defaults to 1 - f (w_plus - 1) / (1 - f) with f the
    selective fraction, which keeps the mean recurrent excitation fixed.
    """
    p = merge_options("decision_circuit", DECISION_DEFAULTS, options,
                      numeric=set(DECISION_DEFAULTS) - {"w_minus"})
    for key in ("n_selective", "n_nonselective", "n_inhibitory"):
        require(float(p[key]).is_integer() and p[key] >= 1,
                f"decision_circuit: {key} must be a positive integer")
    require(-100.0 <= p["coherence"] <= 100.0,
            "decision_circuit: coherence must lie in [-100, 100]")
    require(0.0 < p["selective_fraction"] < 1.0,
            "decision_circuit: selective_fraction must lie in (0, 1)")
    f = p["selective_fraction"]
    w_minus = p["w_minus"]
    if w_minus is None:
        w_minus = 1.0 - f * (p["w_plus"] - 1.0) / (1.0 - f)

    b = Blox(name=name, kind="decision_circuit", namespace=namespace)
    ns = b.path

    pop_A = population("A", ns, n_neurons=int(p["n_selective"]), weight=p["w_plus"])
    pop_B = population("B", ns, n_neurons=int(p["n_selective"]), weight=p["w_plus"])
    pop_N = population("N", ns, n_neurons=int(p["n_nonselective"]), weight=1.0)
    pop_I = population("I", ns, n_neurons=int(p["n_inhibitory"]),
                       neuron_kind="lif_inhibitory", weight=p["w_inh"])

    background = tuple(
        sources.poisson_spikes(f"bg_{pop.name}", ns, rate=p["rate_background"])
        for pop in (pop_A, pop_B, pop_N, pop_I)
    )
    mu = p["rate_stimulus"]
    c = p["coherence"] / 100.0
    stim_A = sources.poisson_spikes("stim_A", ns, rate=mu * (1 + c),
                                    start_time=p["stimulus_start"], stop_time=p["stimulus_stop"])
    stim_B = sources.poisson_spikes("stim_B", ns, rate=mu * (1 - c),
                                    start_time=p["stimulus_start"], stop_time=p["stimulus_stop"])

    def edge(src, dst, weight):
        return Connection(src.path, dst.path, weight)

    connections = (
        edge(pop_A, pop_B, w_minus),
        edge(pop_B, pop_A, w_minus),
        edge(pop_N, pop_A, w_minus),
        edge(pop_N, pop_B, w_minus),
        edge(pop_A, pop_N, 1.0),
        edge(pop_B, pop_N, 1.0),
        edge(pop_A, pop_I, 1.0),
        edge(pop_B, pop_I, 1.0),
        edge(pop_N, pop_I, 1.0),
        edge(pop_I, pop_A, p["w_inh"]),
        edge(pop_I, pop_B, p["w_inh"]),
        edge(pop_I, pop_N, p["w_inh"]),
        edge(stim_A, pop_A, 1.0),
        edge(stim_B, pop_B, 1.0),
    ) + tuple(
        edge(src, pop, 1.0) for src, pop in zip(background, (pop_A, pop_B, pop_N, pop_I))
    )

    children = (pop_A, pop_B, pop_N, pop_I) + background + (stim_A, stim_B)
    return _with(b, children=children, connections=connections)


def population_sizes(composite):
    """Number of leaves in each direct child of a composite."""
    return {child.name: sum(1 for _ in child.leaves())
            for child in composite.children if child.is_composite}

