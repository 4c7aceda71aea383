"""Two-choice perceptual decision making in a spiking circuit.

Builds the decision circuit (two selective excitatory populations, a
non-selective pool and inhibitory interneurons, all driven by Poisson
background), presents a stimulus with a given coherence and reports
which selective population wins.

References:
    Wang XJ (2002). Neuron 36:955-968.
"""

import numpy as np
import pandas as pd

from blox.components import decision_circuit
from blox.config import CompileConfig
from blox.graph import Graph
from blox.simulation import firing_rate, integrate
from blox.utils import get_logger

LOG = get_logger("explore.decision_making")


def build_decision_system(coherence=0.0, seed=None, **circuit_options):
    """Compile a decision circuit.

    Returns
    -------
    circuit : Blox
        The decision_circuit composite.
    system : CompiledSystem
    """
    circuit = decision_circuit("dm", coherence=coherence, **circuit_options)
    graph = Graph("decision_making")
    graph.add_blox(circuit)
    return circuit, graph.compile(CompileConfig(seed=seed))


def run_decision(coherence=0.0, duration=1000.0, dt=0.1, window_size=50.0,
                 seed=None, **circuit_options):
    """Simulate one trial and report the population rates.

    Parameters
    ----------
    coherence : float
        Stimulus coherence in percent; positive values favour A.
    duration : float
        Trial length (ms).
    dt : float
        Euler step (ms).
    window_size : float
        Firing-rate window (ms).
    seed : int, optional
        Seed for connectivity sampling and spike schedules.

    Returns
    -------
    dict
        times, rate_A, rate_B (arrays), mean_A, mean_B and winner
        ("A", "B" or "none" when neither population fires).
    """
    circuit, system = build_decision_system(coherence, seed=seed, **circuit_options)
    solution = integrate(system, time_span=(0.0, duration), method="euler",
                         stepping_options={"dt": dt, "seed": seed})

    path = circuit.path
    times, rate_A = firing_rate(f"{path}.A", solution, window_size=window_size)
    _, rate_B = firing_rate(f"{path}.B", solution, window_size=window_size)
    mean_A = float(np.mean(rate_A)) if len(rate_A) else 0.0
    mean_B = float(np.mean(rate_B)) if len(rate_B) else 0.0
    if mean_A == mean_B == 0.0:
        winner = "none"
    else:
        winner = "A" if mean_A >= mean_B else "B"

    LOG.info("Decision trial c=%.1f%%: A=%.1f Hz, B=%.1f Hz, winner %s",
             coherence, mean_A, mean_B, winner)
    return {
        "times": times,
        "rate_A": rate_A,
        "rate_B": rate_B,
        "mean_A": mean_A,
        "mean_B": mean_B,
        "winner": winner,
    }


def coherence_sweep(coherences, n_trials=1, duration=1000.0, dt=0.1, seed=0,
                    **circuit_options):
    """Run trials across coherences.

    Returns
    -------
    pd.DataFrame
        Columns: coherence, trial, mean_A, mean_B, winner.
    """
    rows = []
    for c in coherences:
        for trial in range(n_trials):
            result = run_decision(c, duration, dt, seed=seed + trial, **circuit_options)
            rows.append({
                "coherence": c,
                "trial": trial,
                "mean_A": result["mean_A"],
                "mean_B": result["mean_B"],
                "winner": result["winner"],
            })
    return pd.DataFrame(rows)
