"""Tests for integration and the solution views.

Small graphs with known behaviour: a Wilson-Cowan mass with and without
drive, a spike-and-reset neuron under a Bernoulli spike source, and a
pulsed stimulus with hard and smoothed edges.
"""

import numpy as np
import pytest
import sympy as sp

from blox.components import (
    Blox, Variable, OUTPUT,
    lif, wilson_cowan, jansen_rit, harmonic_oscillator,
    constant_input, bernoulli_spikes, dbs, population,
)
from blox.config import SimulationConfig
from blox.errors import ConfigurationError, IntegrationError
from blox.graph import Graph
from blox.simulation import (
    integrate, sweep, Solution,
    state_timeseries, voltage_timeseries, detect_spikes, firing_rate, firing_rates,
    spike_raster, spike_table,
)
from blox.simulation.engine import STEPPING_DEFAULTS


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _wilson_cowan_system(drive):
    wc = wilson_cowan("wc")
    g = Graph("wc")
    g.add_blox(wc)
    if drive:
        g.add_connection(constant_input("c", I=1.0), wc, 1.0)
    return wc, g.compile()


@pytest.fixture
def spiking_pair():
    """A Bernoulli source whose every spike drives a LIF neuron over threshold."""
    src = bernoulli_spikes("src", probability=0.05, spacing=5.0)
    neuron = lif("n")
    g = Graph("spiking")
    # V_rest is 7 mV below threshold; a 20 mV jump always fires
    g.add_connection(src, neuron, 20.0)
    return src, neuron, g.compile()


@pytest.fixture
def spiking_solution(spiking_pair):
    src, neuron, system = spiking_pair
    return integrate(system, time_span=(0.0, 500.0), stepping_options={"seed": 42})


# ---------------------------------------------------------------------------
# Scenario: Wilson-Cowan with and without input
# ---------------------------------------------------------------------------

class TestWilsonCowan:
    def test_bounded_trajectory(self):
        wc, system = _wilson_cowan_system(drive=False)
        sol = integrate(system, time_span=(0.0, 100.0))
        E = state_timeseries(wc, sol, "E")
        I = state_timeseries("wc", sol, "I")
        assert sol.t[0] == 0.0 and sol.t[-1] == 100.0
        for x in (E, I):
            assert np.all(np.isfinite(x))
            assert np.all((x >= 0.0) & (x <= 1.0))

    def test_input_shifts_balance(self):
        wc, free = _wilson_cowan_system(drive=False)
        _, driven = _wilson_cowan_system(drive=True)
        a = integrate(free, time_span=(0.0, 100.0))
        b = integrate(driven, time_span=(0.0, 100.0))
        late_a = a.t >= 50.0
        late_b = b.t >= 50.0
        assert abs(np.mean(a["wc.E"][late_a]) - np.mean(b["wc.E"][late_b])) > 1e-3

    def test_observed_input(self):
        _, driven = _wilson_cowan_system(drive=True)
        sol = integrate(driven, time_span=(0.0, 10.0))
        np.testing.assert_allclose(sol["wc.jcn"], 1.0)
        assert sol["wc.jcn"].shape == sol.t.shape

    def test_euler_agrees_with_rk45(self):
        _, system = _wilson_cowan_system(drive=True)
        a = integrate(system, time_span=(0.0, 20.0), method="euler",
                      stepping_options={"dt": 0.001})
        b = integrate(system, time_span=(0.0, 20.0))
        assert a["wc.E"][-1] == pytest.approx(b["wc.E"][-1], abs=1e-2)


class TestNeuralMasses:
    def test_jansen_rit_drives_oscillator(self):
        jr, ho = jansen_rit("jr"), harmonic_oscillator("ho")
        g = Graph("column")
        g.add_connection(constant_input("c", I=1.0), jr, 1.0)
        g.add_connection(jr, ho, 1.0)
        system = g.compile()
        assert system.states[:6] == tuple(f"jr.y{i}" for i in range(6))
        # the output x is observed, so the oscillator reads y1 - y2 directly
        assert system.observed_dict["ho.jcn"] == 1.0 * (sp.Symbol("jr.y1") - sp.Symbol("jr.y2"))

        sol = integrate(system, time_span=(0.0, 200.0))
        for name in system.states:
            assert np.all(np.isfinite(sol[name]))
        x = state_timeseries(jr, sol, "x")
        assert np.ptp(x) > 0.0
        assert np.ptp(state_timeseries(ho, sol, "x")) > 0.0


# ---------------------------------------------------------------------------
# Scenario: spike-and-reset neuron under a Bernoulli source
# ---------------------------------------------------------------------------

class TestSpikingScenario:
    def test_spike_count_matches_source(self, spiking_pair, spiking_solution):
        src, neuron, _ = spiking_pair
        spikes = detect_spikes(neuron, spiking_solution)
        inputs = detect_spikes(src, spiking_solution)
        assert len(spikes) == len(inputs)
        np.testing.assert_allclose(spikes, inputs)

    def test_spike_count_near_expectation(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        n = len(detect_spikes(neuron, spiking_solution))
        # binomial(100, 0.05): mean 5, sd ~2.2
        assert abs(n - 0.05 * (500.0 / 5.0)) <= 7

    def test_threshold_detection_agrees_with_event_log(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        from_log = detect_spikes(neuron, spiking_solution)
        from_trace = detect_spikes(neuron, spiking_solution, threshold=-45.0)
        np.testing.assert_allclose(from_log, from_trace)

    def test_detect_spikes_idempotent(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        first = detect_spikes(neuron, spiking_solution, threshold=-45.0)
        second = detect_spikes(neuron, spiking_solution, threshold=-45.0)
        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(detect_spikes(neuron, spiking_solution),
                                      detect_spikes(neuron, spiking_solution))

    def test_reset_after_every_spike(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        v = voltage_timeseries(neuron, spiking_solution)
        if len(detect_spikes(neuron, spiking_solution)):
            assert v.max() >= -45.0
        assert v[-1] == pytest.approx(-52.0)

    def test_same_seed_same_run(self, spiking_pair, spiking_solution):
        _, _, system = spiking_pair
        again = integrate(system, time_span=(0.0, 500.0), stepping_options={"seed": 42})
        np.testing.assert_array_equal(again.t, spiking_solution.t)
        np.testing.assert_array_equal(again.y, spiking_solution.y)
        assert again.events == spiking_solution.events

    def test_euler_sees_the_same_spikes(self, spiking_pair, spiking_solution):
        src, neuron, system = spiking_pair
        euler = integrate(system, time_span=(0.0, 500.0), method="euler",
                          stepping_options={"seed": 42, "dt": 0.1})
        np.testing.assert_allclose(detect_spikes(neuron, euler),
                                   detect_spikes(neuron, spiking_solution))

    def test_event_samples(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        spikes = detect_spikes(neuron, spiking_solution)
        if len(spikes):
            at_spike = spiking_solution.t == spikes[0]
            # before, after the jump, after the reset
            assert np.sum(at_spike) == 3

    def test_firing_rate_windows(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        centers, rates = firing_rate(neuron, spiking_solution, window_size=100.0,
                                     overlap=0.5, transient=50.0)
        assert len(centers) == 8
        assert centers[0] == pytest.approx(100.0)
        assert np.all(rates >= 0.0)

    def test_firing_rate_drops_partial_window(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        centers, _ = firing_rate(neuron, spiking_solution, window_size=200.0)
        np.testing.assert_allclose(centers, [100.0, 300.0])

    def test_firing_rate_counts(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        spikes = detect_spikes(neuron, spiking_solution)
        _, rates = firing_rate(neuron, spiking_solution, window_size=250.0)
        assert np.sum(rates) * 0.25 == pytest.approx(np.sum(spikes < 500.0))

    def test_spike_table(self, spiking_pair, spiking_solution):
        _, neuron, _ = spiking_pair
        df = spike_table(neuron, spiking_solution)
        assert list(df.columns) == ["path", "time"]
        assert len(df) == len(detect_spikes(neuron, spiking_solution))

    def test_threshold_needed_without_spike_event(self):
        wc, system = _wilson_cowan_system(drive=False)
        sol = integrate(system, time_span=(0.0, 5.0))
        with pytest.raises(ConfigurationError, match="threshold"):
            detect_spikes(wc, sol)


class TestPopulation:
    def test_population_views(self):
        pop = population("pop", n_neurons=3, neuron_kind="lif", weight=0.0)
        src = bernoulli_spikes("src", probability=0.2, spacing=5.0)
        g = Graph("pop")
        g.add_connection(src, pop, 20.0)
        sol = integrate(g.compile(), time_span=(0.0, 200.0), method="euler",
                        stepping_options={"seed": 3, "dt": 0.1})
        spikes = detect_spikes(pop, sol)
        assert len(spikes) == 3
        # every neuron receives every source spike
        for st in spikes[1:]:
            np.testing.assert_allclose(st, spikes[0])
        assert voltage_timeseries(pop, sol).shape == (3, sol.n_samples)
        times, neurons = spike_raster(pop, sol)
        assert len(times) == sum(len(st) for st in spikes)
        assert set(np.unique(neurons)) <= {0, 1, 2}
        assert firing_rates(pop, sol).shape == (3,)


# ---------------------------------------------------------------------------
# Scenario: pulsed stimulation
# ---------------------------------------------------------------------------

class TestPulsedStimulus:
    def _run(self, smooth):
        stim = dbs("stim", frequency=100.0, amplitude=1.0, pulse_width=0.5, smooth=smooth)
        g = Graph("dbs")
        g.add_connection(stim, wilson_cowan("wc"), 1.0)
        return stim, integrate(g.compile(), time_span=(0.0, 50.0), stepping_options={"max_step": 0.1})

    def test_hard_edges_are_stop_points(self):
        stim, sol = self._run(0.0)
        edges = stim.protocol.transition_times(0.0, 50.0)
        assert len(edges) == 9
        for edge in edges:
            assert np.any(sol.t == edge)

    def test_hard_signal_values(self):
        stim, sol = self._run(0.0)
        u = sol["stim.u"]
        assert set(np.unique(u)) <= {0.0, 1.0}
        np.testing.assert_array_equal(u, stim.protocol.signal(sol.t))

    def test_smooth_signal_is_continuous(self):
        stim, sol = self._run(0.1)
        u = sol["stim.u"]
        assert np.any((u > 0.01) & (u < 0.99))
        assert stim.protocol.period == 10.0

    def test_drive_reaches_mass(self):
        _, sol = self._run(0.0)
        np.testing.assert_array_equal(sol["wc.jcn"], sol["stim.u"])


# ---------------------------------------------------------------------------
# Integration interface
# ---------------------------------------------------------------------------

class TestIntegrate:
    def test_state_override(self):
        _, system = _wilson_cowan_system(drive=False)
        sol = integrate(system, {"wc.E": 0.1}, time_span=(0.0, 1.0))
        assert sol["wc.E"][0] == 0.1

    def test_parameter_override(self):
        _, system = _wilson_cowan_system(drive=True)
        sol = integrate(system, {"c.I": 3.0}, time_span=(0.0, 1.0))
        assert sol.parameters["c.I"] == 3.0
        np.testing.assert_allclose(sol["wc.jcn"], 3.0)
        # the compiled system keeps its defaults
        assert system.parameter_values["c.I"] == 1.0

    def test_unknown_override(self):
        _, system = _wilson_cowan_system(drive=False)
        with pytest.raises(ConfigurationError, match="neither a state nor a parameter"):
            integrate(system, {"wc.Q": 1.0})

    def test_unknown_method(self):
        _, system = _wilson_cowan_system(drive=False)
        with pytest.raises(ConfigurationError, match="Unknown integration method"):
            integrate(system, method="leapfrog")

    def test_unknown_stepping_option(self):
        _, system = _wilson_cowan_system(drive=False)
        with pytest.raises(ConfigurationError, match="Unknown stepping options"):
            integrate(system, stepping_options={"dtt": 0.1})

    def test_bad_time_span(self):
        _, system = _wilson_cowan_system(drive=False)
        with pytest.raises(ConfigurationError):
            integrate(system, time_span=(10.0, 0.0))

    def test_config_stepping_options_accepted(self):
        assert set(SimulationConfig().stepping_options()) <= set(STEPPING_DEFAULTS)

    def test_solution_is_read_only(self):
        _, system = _wilson_cowan_system(drive=False)
        sol = integrate(system, time_span=(0.0, 1.0))
        assert isinstance(sol, Solution)
        with pytest.raises(ValueError):
            sol.y[0, 0] = 1.0
        with pytest.raises(ValueError):
            sol.t[0] = 1.0

    def test_unknown_name(self):
        _, system = _wilson_cowan_system(drive=False)
        sol = integrate(system, time_span=(0.0, 1.0))
        with pytest.raises(KeyError):
            sol["wc.nothing"]

    def test_integration_error(self):
        runaway = Blox(name="x", kind="wilson_cowan",
                       variables=(Variable("u", 1.0, OUTPUT),),
                       equations=(("u", sp.Symbol("x.u") ** 2),))
        g = Graph("runaway")
        g.add_blox(runaway)
        with pytest.raises(IntegrationError) as info:
            integrate(g.compile(), time_span=(0.0, 5.0), method="euler",
                      stepping_options={"dt": 0.01})
        assert info.value.method == "euler"
        assert info.value.components == ("x",)
        assert info.value.__cause__ is not None

    def test_sweep(self):
        _, system = _wilson_cowan_system(drive=True)
        runs = sweep(system, [{"c.I": 0.0}, {"c.I": 2.0}], time_span=(0.0, 20.0))
        assert len(runs) == 2
        assert runs[0]["wc.E"][-1] != runs[1]["wc.E"][-1]

    def test_frames(self, spiking_solution):
        df = spiking_solution.to_frame()
        assert list(df.columns) == ["n.V", "n.t_last"]
        events = spiking_solution.events_frame()
        assert list(events.columns) == ["time", "trigger"]


# ---------------------------------------------------------------------------
# Event cascades
# ---------------------------------------------------------------------------

class TestEventCascade:
    def _pair(self, mutual):
        # n1 is driven to an asymptote of -42 mV, above threshold
        n1 = lif("n1", I_in=10.0, t_ref=0.0)
        n2 = lif("n2", t_ref=0.0)
        g = Graph("cascade")
        g.add_connection(n1, n2, 30.0)
        if mutual:
            g.add_connection(n2, n1, 30.0)
        return g.compile()

    def test_cascade_settles(self):
        sol = integrate(self._pair(mutual=False), time_span=(0.0, 50.0), method="euler",
                        stepping_options={"dt": 0.1})
        first = detect_spikes("n1", sol)
        second = detect_spikes("n2", sol)
        assert len(first) > 0
        # every n1 spike fires n2 at the same time
        np.testing.assert_array_equal(first, second)

    def test_runaway_cascade_raises(self):
        with pytest.raises(IntegrationError, match="did not settle") as info:
            integrate(self._pair(mutual=True), time_span=(0.0, 50.0), method="euler",
                      stepping_options={"dt": 0.1})
        assert info.value.method == "euler"
        assert set(info.value.components) == {"n1", "n2"}
