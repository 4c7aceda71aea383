"""simulation: integrate compiled systems and read their solutions.

A compiled system becomes a numerical initial-value problem with
discrete events; integrate() drives scipy's solve_ivp (or a fixed-step
Euler loop for event-heavy spiking networks) and returns a read-only
Solution. The analysis functions derive spike times, firing rates and
traces from a Solution without modifying it.
"""

from .stimulus import (
    SpikeSchedule,
    DBSProtocol,
    compute_transition_times,
)
from .analysis import (
    state_timeseries,
    voltage_timeseries,
    detect_spikes,
    firing_rate,
    firing_rates,
    detect_transitions,
    spike_raster,
    spike_table,
    population_sparseness,
)
from .solution import Solution
from .problem import (
    Problem,
    build_problem,
)
from .engine import (
    integrate,
    sweep,
)
