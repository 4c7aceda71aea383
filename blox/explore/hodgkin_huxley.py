"""Membrane biophysics: reversal potentials and the Hodgkin-Huxley f-I curve.

1. Nernst potentials for the standard mammalian ion concentrations
2. The Goldman-Hodgkin-Katz resting potential
3. The firing rate of a single Hodgkin-Huxley neuron as a function of
   injected current, swept over one compiled system

References:
    Hodgkin AL, Huxley AF (1952). J Physiol 117:500-544.
    Goldman DE (1943). J Gen Physiol 27:37-60.
"""

import numpy as np
import pandas as pd

from blox.components import hh_excitatory, nernst_potential, goldman_potential
from blox.graph import Graph
from blox.simulation import detect_spikes, sweep
from blox.utils import get_logger

LOG = get_logger("explore.hodgkin_huxley")

# mM, typical mammalian neuron
ION_CONCENTRATIONS = {
    "K": {"z": 1, "out": 5.0, "in": 140.0},
    "Na": {"z": 1, "out": 145.0, "in": 12.0},
    "Cl": {"z": -1, "out": 110.0, "in": 10.0},
    "Ca": {"z": 2, "out": 2.5, "in": 1e-4},
}

# relative permeabilities at rest
RESTING_PERMEABILITY = {"K": 1.0, "Na": 0.04, "Cl": 0.45}


def nernst_table(concentrations=None, temperature=310.15):
    """Equilibrium potential of each ion species.

    Returns
    -------
    pd.DataFrame
        Columns: ion, z, c_out, c_in, E_mV.
    """
    concentrations = concentrations or ION_CONCENTRATIONS
    rows = []
    for ion, c in concentrations.items():
        rows.append({
            "ion": ion,
            "z": c["z"],
            "c_out": c["out"],
            "c_in": c["in"],
            "E_mV": float(nernst_potential(c["z"], c["out"], c["in"], temperature)),
        })
    return pd.DataFrame(rows)


def resting_potential(permeability=None, concentrations=None, temperature=310.15):
    """GHK resting potential (mV) for K+, Na+ and Cl-."""
    permeability = permeability or RESTING_PERMEABILITY
    concentrations = concentrations or ION_CONCENTRATIONS
    c_out = {ion: concentrations[ion]["out"] for ion in ("K", "Na", "Cl")}
    c_in = {ion: concentrations[ion]["in"] for ion in ("K", "Na", "Cl")}
    return float(goldman_potential(permeability, c_out, c_in, temperature))


def fi_curve(currents, duration=500.0, transient=100.0, threshold=0.0,
             method="RK45", max_step=0.1):
    """Firing rate of a Hodgkin-Huxley neuron per injected current.

    The neuron is compiled once; each current is a parameter override.

    Parameters
    ----------
    currents : array-like
        Injected currents I_in (uA/cm^2).
    duration : float
        Simulated time per current (ms).
    transient : float
        Initial time excluded from the rate (ms).
    threshold : float
        Spike detection threshold on V (mV).
    method : str
        Integration method.
    max_step : float
        Largest adaptive step (ms), small enough to resolve spikes.

    Returns
    -------
    pd.DataFrame
        Columns: I_in, n_spikes, rate_hz.
    """
    currents = np.asarray(currents, dtype=np.float64)
    neuron = hh_excitatory("hh")
    graph = Graph("fi_curve")
    graph.add_blox(neuron)
    system = graph.compile()

    key = neuron.qualify("I_in")
    solutions = sweep(system, [{key: float(i)} for i in currents], (0.0, duration),
                      method=method, stepping_options={"max_step": max_step})

    rows = []
    for current, solution in zip(currents, solutions):
        spikes = detect_spikes(neuron, solution, threshold=threshold)
        spikes = spikes[spikes >= transient]
        rows.append({
            "I_in": float(current),
            "n_spikes": len(spikes),
            "rate_hz": len(spikes) / ((duration - transient) / 1000.0),
        })
    LOG.info("f-I curve over %d currents: max rate %.1f Hz",
             len(rows), max(r["rate_hz"] for r in rows) if rows else 0.0)
    return pd.DataFrame(rows)
