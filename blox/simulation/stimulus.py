"""Stimulus protocols: spike schedules and pulsed stimulation.

SpikeSchedule describes when an event-driven source fires; the
integration driver draws concrete firing times for a time span and
turns them into stop points.

DBSProtocol describes a deep brain stimulation pulse train. With
smooth == 0 the signal is a hard square wave and its on/off edges are
discontinuities the integrator should stop at; with smooth > 0 every
edge becomes a tanh ramp of width ~smooth and no stop points are needed.
"""

from dataclasses import dataclass

import numpy as np

from blox.simulation.analysis import detect_transitions

BERNOULLI = "bernoulli"
POISSON = "poisson"


@dataclass(frozen=True)
class SpikeSchedule:
    """Firing schedule of an event-driven source.

    Attributes
    ----------
    name : str
        Trigger name that connection events attach to.
    mode : str
        "bernoulli": one draw every `spacing` ms, firing with `probability`.
        "poisson": exponential inter-spike intervals at `rate` Hz.
    probability : float
        Per-draw spike probability (bernoulli).
    spacing : float
        Interval between draws (ms, bernoulli).
    rate : float
        Firing rate (Hz, poisson).
    start_time, stop_time : float
        Window in which the source may fire (ms).
    """
    name: str
    mode: str = BERNOULLI
    probability: float = 0.0
    spacing: float = 1.0
    rate: float = 0.0
    start_time: float = 0.0
    stop_time: float = float("inf")

    def draw(self, rng, t0, t1):
        """Firing times in (t0, t1], restricted to [start_time, stop_time).

        Parameters
        ----------
        rng : np.random.Generator
            Random source; the result is a pure function of its state.
        t0, t1 : float
            Time span (ms).

        Returns
        -------
        np.ndarray
            Sorted firing times.
        """
        lo = max(t0, self.start_time)
        hi = min(t1, self.stop_time)
        if hi <= lo:
            return np.array([], dtype=np.float64)

        if self.mode == BERNOULLI:
            first = int(np.floor((lo - self.start_time) / self.spacing)) + 1
            last = int(np.floor((hi - self.start_time) / self.spacing))
            ticks = self.start_time + self.spacing * np.arange(first, last + 1)
            ticks = ticks[(ticks > t0) & (ticks <= t1) & (ticks < self.stop_time)]
            fired = rng.random(len(ticks)) < self.probability
            return ticks[fired]

        if self.mode == POISSON:
            if self.rate <= 0:
                return np.array([], dtype=np.float64)
            mean_isi = 1000.0 / self.rate
            times = []
            t = lo
            while True:
                t += rng.exponential(mean_isi)
                if t > hi or t >= self.stop_time:
                    break
                times.append(t)
            return np.array(times, dtype=np.float64)

        raise ValueError(f"Unknown schedule mode '{self.mode}'")

    def expected_count(self, t0, t1):
        """Expected number of spikes in (t0, t1]."""
        lo = max(t0, self.start_time)
        hi = min(t1, self.stop_time)
        if hi <= lo:
            return 0.0
        if self.mode == BERNOULLI:
            return self.probability * np.floor((hi - lo) / self.spacing)
        return self.rate * (hi - lo) / 1000.0


@dataclass(frozen=True)
class DBSProtocol:
    """Deep brain stimulation pulse train.

    Attributes
    ----------
    frequency : float
        Pulse frequency (Hz); the pulse period is 1000 / frequency ms.
    amplitude : float
        Pulse height.
    pulse_width : float
        Pulse duration (ms).
    offset : float
        Baseline added everywhere.
    start_time : float
        Onset of the first pulse (ms).
    smooth : float
        Edge width (ms). 0 gives a hard square wave.
    pulses_per_burst : int
        0 for a continuous train, else the number of pulses per burst.
    bursts_per_block : int
        0 for an unbounded sequence of bursts, else the number of bursts.
    burst_interval : float
        Silent gap between the end of one burst and the next (ms).
    """
    frequency: float = 130.0
    amplitude: float = 2.5
    pulse_width: float = 0.066
    offset: float = 0.0
    start_time: float = 0.0
    smooth: float = 0.0
    pulses_per_burst: int = 0
    bursts_per_block: int = 0
    burst_interval: float = 0.0

    def __post_init__(self):
        if self.frequency <= 0:
            raise ValueError(f"frequency must be positive, got {self.frequency}")
        if not 0 < self.pulse_width < self.period:
            raise ValueError(
                f"pulse_width must lie in (0, {self.period}) ms, got {self.pulse_width}"
            )
        if self.smooth < 0:
            raise ValueError(f"smooth must be >= 0, got {self.smooth}")
        if self.bursts_per_block and not self.pulses_per_burst:
            raise ValueError("bursts_per_block needs pulses_per_burst > 0")

    @property
    def period(self):
        """Pulse period (ms)."""
        return 1000.0 / self.frequency

    @property
    def burst_length(self):
        return self.pulses_per_burst * self.period

    @property
    def duration(self):
        """Time from start_time to the end of the last pulse period (ms); inf if unbounded."""
        if not self.bursts_per_block:
            return float("inf")
        return (self.bursts_per_block * self.burst_length
                + (self.bursts_per_block - 1) * self.burst_interval)

    @property
    def end_time(self):
        return self.start_time + self.duration

    def pulse_onsets(self, t_end):
        """Onset times of all pulses starting before t_end."""
        if t_end < self.start_time:
            return np.array([], dtype=np.float64)
        span = min(t_end, self.end_time) - self.start_time
        if not self.pulses_per_burst:
            n = int(np.floor(span / self.period)) + 1
            return self.start_time + self.period * np.arange(n)

        cycle = self.burst_length + self.burst_interval
        n_bursts = int(np.floor(span / cycle)) + 1
        if self.bursts_per_block:
            n_bursts = min(n_bursts, self.bursts_per_block)
        bursts = self.start_time + cycle * np.arange(n_bursts)
        pulses = self.period * np.arange(self.pulses_per_burst)
        onsets = (bursts[:, None] + pulses[None, :]).ravel()
        return onsets[onsets < t_end]

    def signal(self, t):
        """Stimulus value at time(s) t (ms)."""
        t = np.asarray(t, dtype=np.float64)
        scalar = t.ndim == 0
        t = np.atleast_1d(t)
        onsets = self.pulse_onsets(float(np.max(t)) + self.period)

        if len(onsets) == 0:
            value = np.zeros_like(t)
        elif self.smooth == 0:
            idx = np.searchsorted(onsets, t, side="right") - 1
            since = t - onsets[np.clip(idx, 0, None)]
            value = ((idx >= 0) & (since < self.pulse_width)).astype(np.float64)
        else:
            idx = np.searchsorted(onsets, t, side="right")
            value = np.zeros_like(t)
            for neighbour in (idx - 1, idx):
                valid = (neighbour >= 0) & (neighbour < len(onsets))
                x = t - onsets[np.clip(neighbour, 0, len(onsets) - 1)]
                ramp = 0.5 * (np.tanh(x / self.smooth)
                              - np.tanh((x - self.pulse_width) / self.smooth))
                value += np.where(valid, ramp, 0.0)

        out = self.amplitude * value + self.offset
        return float(out[0]) if scalar else out

    def transition_times(self, t0, t1):
        """Hard on/off edges in (t0, t1); empty when the edges are smoothed."""
        if self.smooth > 0:
            return np.array([], dtype=np.float64)
        onsets = self.pulse_onsets(t1)
        edges = np.concatenate([onsets, onsets + self.pulse_width])
        edges = edges[(edges > t0) & (edges < t1)]
        return np.unique(edges)


def compute_transition_times(signal, time_span, dt, tolerance=1e-8):
    """Times at which a sampled signal jumps by more than `tolerance`.

    Parameters
    ----------
    signal : callable
        Vectorized function of time.
    time_span : (float, float)
        Sampling window (ms).
    dt : float
        Sampling step (ms).
    tolerance : float
        Minimum jump between consecutive samples.

    Returns
    -------
    np.ndarray
        Sample times right after each jump.
    """
    t0, t1 = time_span
    t = np.arange(t0, t1 + dt / 2, dt)
    idx = detect_transitions(t, signal(t), tolerance)
    return t[idx]
