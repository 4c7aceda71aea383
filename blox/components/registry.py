"""Kind tag -> factory registry.

make_blox is the single entry point for building components from a
kind tag and keyword options, e.g. from a YAML circuit description.
"""

import pandas as pd

from blox.components import composite, neural_mass, neurons, sources
from blox.components.kinds import get_kind
from blox.errors import ConfigurationError

FACTORIES = {
    "lif": neurons.lif,
    "lif_excitatory": neurons.lif_excitatory,
    "lif_inhibitory": neurons.lif_inhibitory,
    "hh_excitatory": neurons.hh_excitatory,
    "hh_inhibitory": neurons.hh_inhibitory,
    "izhikevich": neurons.izhikevich,
    "wilson_cowan": neural_mass.wilson_cowan,
    "harmonic_oscillator": neural_mass.harmonic_oscillator,
    "jansen_rit": neural_mass.jansen_rit,
    "constant_input": sources.constant_input,
    "dbs": sources.dbs,
    "bernoulli_spikes": sources.bernoulli_spikes,
    "poisson_spikes": sources.poisson_spikes,
    "population": composite.population,
    "decision_circuit": composite.decision_circuit,
}


def make_blox(kind, name, namespace=None, **options):
    """Build a Blox of the given kind.

    Parameters
    ----------
    kind : str
        A concrete kind tag (see list_bloxs()).
    name : str
        Local name.
    namespace : str, optional
        Dotted namespace prefix.
    **options
        Kind-specific options; unknown names are rejected.

    Returns
    -------
    Blox

    Raises
    ------
    ConfigurationError
        Unknown or abstract kind, unknown option, missing required option.
    """
    get_kind(kind)
    if kind not in FACTORIES:
        raise ConfigurationError(
            f"Kind '{kind}' is a family and cannot be built directly. "
            f"Concrete kinds: {list(FACTORIES.keys())}"
        )
    return FACTORIES[kind](name, namespace=namespace, **options)


def list_bloxs():
    """Concrete kinds with their family and a one-line description."""
    rows = []
    for kind, factory in FACTORIES.items():
        doc = (factory.__doc__ or "").strip().splitlines()
        rows.append({
            "kind": kind,
            "family": get_kind(kind).family,
            "summary": doc[0] if doc else "",
        })
    return pd.DataFrame(rows)
