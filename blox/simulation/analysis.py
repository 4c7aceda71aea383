"""Post-simulation views of a Solution.

Every function here is a pure read of the solution: it never changes
the solution or the compiled system, so calling it twice gives the same
result.

Components may be passed as Blox objects or by path. Composite
components give one result per spiking leaf.
"""

import numpy as np
import pandas as pd

from blox.errors import ConfigurationError


def _resolve(component, solution):
    path = getattr(component, "path", component)
    return solution.system.component(path)


def _spiking_leaves(component):
    # sources inside a composite are inputs, not members
    return [leaf for leaf in component.leaves()
            if not leaf.is_source and (leaf.voltage is not None or leaf.spike_trigger is not None)]


def state_timeseries(component, solution, variable_name):
    """Samples of one local variable (state or observed) of a component.

    Parameters
    ----------
    component : Blox or str
        Leaf component or its path.
    solution : Solution
    variable_name : str
        Local name, e.g. "V".

    Returns
    -------
    np.ndarray
        One value per sample of solution.t.
    """
    blox = _resolve(component, solution)
    return solution[blox.qualify(variable_name)]


def voltage_timeseries(component, solution):
    """Membrane potential of a neuron, or of every neuron of a composite.

    Returns
    -------
    np.ndarray
        Shape (n_samples,) for a leaf, (n_neurons, n_samples) for a composite.
    """
    blox = _resolve(component, solution)
    if blox.is_composite:
        leaves = [leaf for leaf in blox.leaves() if leaf.voltage is not None]
        if not leaves:
            raise ConfigurationError(f"{blox.path} contains no neuron with a voltage")
        return np.vstack([solution[leaf.qualify(leaf.voltage)] for leaf in leaves])
    if blox.voltage is None:
        raise ConfigurationError(f"{blox.path} ({blox.kind}) has no membrane potential")
    return solution[blox.qualify(blox.voltage)]


def _leaf_spikes(leaf, solution, threshold):
    if threshold is None:
        trigger = leaf.spike_trigger
        if trigger is None:
            raise ConfigurationError(
                f"{leaf.path} ({leaf.kind}) has no spike event; pass a threshold"
            )
        return solution.event_times(trigger)

    local = leaf.voltage or leaf.output
    if local is None:
        raise ConfigurationError(f"{leaf.path} ({leaf.kind}) has no trace to threshold")
    x = solution[leaf.qualify(local)]
    idx = np.where((x[:-1] < threshold) & (x[1:] >= threshold))[0] + 1
    return solution.t[idx].copy()


def detect_spikes(component, solution, threshold=None):
    """Spike times of a component.

    With threshold=None the spike times are read from the event log
    (every firing of the component's spike trigger). With a threshold,
    a spike is every upward crossing of the voltage trace: a sample
    below threshold followed by one at or above it.

    Parameters
    ----------
    component : Blox or str
    solution : Solution
    threshold : float, optional
        Voltage threshold (mV).

    Returns
    -------
    np.ndarray or list of np.ndarray
        Spike times (ms); a list with one array per spiking leaf for
        composites.
    """
    blox = _resolve(component, solution)
    if blox.is_composite:
        return [_leaf_spikes(leaf, solution, threshold) for leaf in _spiking_leaves(blox)]
    return _leaf_spikes(blox, solution, threshold)


def _windows(t_start, t_end, window_size, overlap, transient):
    if window_size <= 0:
        raise ConfigurationError(f"window_size must be positive, got {window_size}")
    if not 0.0 <= overlap < 1.0:
        raise ConfigurationError(f"overlap must lie in [0, 1), got {overlap}")
    step = window_size * (1.0 - overlap)
    start = t_start + transient
    n = int(np.floor((t_end - start - window_size) / step + 1e-9)) + 1
    return start + step * np.arange(max(n, 0))


def firing_rate(component, solution, threshold=None, window_size=100.0,
                overlap=0.0, transient=0.0):
    """Windowed firing rate (Hz), averaged over the neurons of a composite.

    Windows of `window_size` ms start at t0 + transient and advance by
    window_size * (1 - overlap). A trailing window that would run past
    the end of the solution is dropped.

    Parameters
    ----------
    component : Blox or str
    solution : Solution
    threshold : float, optional
        See detect_spikes.
    window_size : float
        Window length (ms).
    overlap : float
        Fraction of a window shared with the next, in [0, 1).
    transient : float
        Initial time skipped (ms).

    Returns
    -------
    centers : np.ndarray
        Window centers (ms).
    rates : np.ndarray
        Rate per window (Hz).
    """
    spikes = detect_spikes(component, solution, threshold)
    trains = spikes if isinstance(spikes, list) else [spikes]
    starts = _windows(solution.t[0], solution.t[-1], window_size, overlap, transient)
    if not trains:
        return starts + window_size / 2, np.zeros(len(starts))

    counts = np.zeros(len(starts))
    for st in trains:
        counts += np.array([np.sum((st >= s) & (st < s + window_size)) for s in starts])
    rates = counts / (len(trains) * window_size / 1000.0)
    return starts + window_size / 2, rates


def firing_rates(component, solution, threshold=None, time_window=None):
    """Mean firing rate (Hz) of each spiking leaf of a component.

    Parameters
    ----------
    time_window : tuple of float, optional
        (start_ms, end_ms); the whole solution by default.

    Returns
    -------
    np.ndarray
    """
    spikes = detect_spikes(component, solution, threshold)
    trains = spikes if isinstance(spikes, list) else [spikes]
    t0, t1 = time_window if time_window is not None else (solution.t[0], solution.t[-1])
    duration_s = (t1 - t0) / 1000.0
    return np.array([np.sum((st >= t0) & (st < t1)) / duration_s for st in trains])


def detect_transitions(time_values, signal_values, tolerance=1e-8):
    """Indices where a sampled signal jumps by more than `tolerance`.

    Parameters
    ----------
    time_values, signal_values : array-like
        Samples of equal length.
    tolerance : float
        Minimum absolute difference between consecutive samples.

    Returns
    -------
    np.ndarray
        Index i of every sample with |s[i] - s[i-1]| > tolerance.
    """
    t = np.asarray(time_values, dtype=np.float64)
    s = np.asarray(signal_values, dtype=np.float64)
    if t.shape != s.shape:
        raise ValueError(f"time and signal lengths differ: {t.shape} vs {s.shape}")
    return np.where(np.abs(np.diff(s)) > tolerance)[0] + 1


def spike_raster(component, solution, threshold=None, time_window=None):
    """Spike raster data for plotting.

    Returns
    -------
    times : np.ndarray
        Spike times (ms).
    neurons : np.ndarray
        Leaf index (within the component) of each spike.
    """
    spikes = detect_spikes(component, solution, threshold)
    trains = spikes if isinstance(spikes, list) else [spikes]
    times, neurons = [], []
    for i, st in enumerate(trains):
        if time_window is not None:
            t0, t1 = time_window
            st = st[(st >= t0) & (st < t1)]
        times.append(st)
        neurons.append(np.full(len(st), i))
    if times:
        return np.concatenate(times), np.concatenate(neurons)
    return np.array([]), np.array([], dtype=int)


def spike_table(component, solution, threshold=None):
    """Spikes of a component as a DataFrame with columns path, time."""
    blox = _resolve(component, solution)
    leaves = _spiking_leaves(blox) if blox.is_composite else [blox]
    rows = []
    for leaf in leaves:
        for t in _leaf_spikes(leaf, solution, threshold):
            rows.append({"path": leaf.path, "time": float(t)})
    return pd.DataFrame(rows, columns=["path", "time"])


def population_sparseness(rates):
    """Treves-Rolls population sparseness, S = mean(r)^2 / mean(r^2)."""
    rates = np.asarray(rates, dtype=np.float64)
    if len(rates) == 0:
        return 0.0
    mean_r2 = np.mean(rates ** 2)
    if mean_r2 == 0:
        return 0.0
    return np.mean(rates) ** 2 / mean_r2
