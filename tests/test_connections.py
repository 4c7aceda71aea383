"""Tests for connection rules and the kind-pair resolver."""

import numpy as np
import pytest
import sympy as sp

from blox.components import (
    lif, lif_excitatory, lif_inhibitory, hh_excitatory, hh_inhibitory, izhikevich,
    wilson_cowan, constant_input, bernoulli_spikes, population,
)
from blox.config import CompileConfig
from blox.connections import (
    RULES, Resolution, register_rule, resolution_order, find_rule, resolve, sample_pairs,
)
from blox.errors import ConfigurationError, UnresolvableConnectionError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wc_pair():
    return wilson_cowan("wc1"), wilson_cowan("wc2")


@pytest.fixture
def spike_source():
    return bernoulli_spikes("src", probability=0.05, spacing=5.0)


# ---------------------------------------------------------------------------
# Resolution order
# ---------------------------------------------------------------------------

class TestResolutionOrder:
    def test_concrete_pair_first_root_last(self):
        order = resolution_order("lif_excitatory", "lif_inhibitory")
        assert order[0] == ("lif_excitatory", "lif_inhibitory")
        assert order[-1] == ("blox", "blox")
        assert len(order) == 16

    def test_ties_prefer_specific_destination(self):
        order = resolution_order("lif", "lif")
        # both candidates at distance one; the concrete destination comes first
        assert order[1] == ("lif_neuron", "lif")
        assert order[2] == ("lif", "lif_neuron")

    @pytest.mark.parametrize("src, dst, pair", [
        ("wilson_cowan", "wilson_cowan", ("blox", "blox")),
        ("hh_excitatory", "hh_inhibitory", ("hh_neuron", "hh_neuron")),
        ("bernoulli_spikes", "lif", ("spike_source", "blox")),
        ("lif_excitatory", "lif_inhibitory", ("lif_excitatory", "lif_neuron")),
        ("lif_inhibitory", "lif_excitatory", ("lif_inhibitory", "lif_neuron")),
        ("lif", "izhikevich", ("lif_neuron", "neuron")),
        ("izhikevich", "lif", ("izhikevich", "neuron")),
        ("poisson_spikes", "population", ("spike_source", "composite")),
        ("constant_input", "population", ("blox", "composite")),
        ("population", "wilson_cowan", ("composite", "blox")),
        ("hh_excitatory", "wilson_cowan", ("blox", "blox")),
    ])
    def test_chosen_rule(self, src, dst, pair):
        chosen, _ = find_rule(src, dst)
        assert chosen == pair


# ---------------------------------------------------------------------------
# Generic rule
# ---------------------------------------------------------------------------

class TestGenericRule:
    def test_basic(self, wc_pair):
        wc1, wc2 = wc_pair
        res = resolve(wc1, wc2, 2.0)
        assert res.terms == (("wc2", 2.0 * sp.Symbol("wc1.E")),)
        assert res.events == ()

    def test_diffusive_option(self, wc_pair):
        wc1, wc2 = wc_pair
        res = resolve(wc1, wc2, 0.5, {"connection_rule": "diffusive"})
        expected = 0.5 * (sp.Symbol("wc1.E") - sp.Symbol("wc2.E"))
        assert sp.simplify(res.terms[0][1] - expected) == 0

    def test_diffusive_config(self, wc_pair):
        wc1, wc2 = wc_pair
        res = resolve(wc1, wc2, 1.0, config=CompileConfig(connection_rule="diffusive"))
        assert sp.Symbol("wc2.E") in res.terms[0][1].free_symbols

    def test_unknown_selector(self, wc_pair):
        wc1, wc2 = wc_pair
        with pytest.raises(ConfigurationError, match="Unknown connection rule"):
            resolve(wc1, wc2, 1.0, {"connection_rule": "telepathic"})

    def test_constant_source(self):
        res = resolve(constant_input("c", I=2.0), wilson_cowan("wc"), 1.0)
        assert res.terms[0][1] == 1.0 * sp.Symbol("c.I")

    def test_symbolic_weight(self, wc_pair):
        wc1, wc2 = wc_pair
        res = resolve(wc1, wc2, "g_c")
        assert res.terms[0][1] == sp.Symbol("g_c") * sp.Symbol("wc1.E")

    def test_bad_weight(self, wc_pair):
        wc1, wc2 = wc_pair
        with pytest.raises(ConfigurationError):
            resolve(wc1, wc2, [1.0])

    def test_endpoints_unchanged(self, wc_pair):
        wc1, wc2 = wc_pair
        resolve(wc1, wc2, 3.0)
        assert wc1 == wilson_cowan("wc1")
        assert wc2 == wilson_cowan("wc2")


# ---------------------------------------------------------------------------
# Kind rules
# ---------------------------------------------------------------------------

class TestKindRules:
    def test_source_destination_rejected(self, wc_pair, spike_source):
        with pytest.raises(UnresolvableConnectionError):
            resolve(wc_pair[0], constant_input("c"))
        with pytest.raises(UnresolvableConnectionError):
            resolve(wc_pair[0], spike_source)

    def test_chemical_synapse(self):
        pre, post = hh_excitatory("pre"), hh_inhibitory("post")
        res = resolve(pre, post, 0.2)
        term = res.terms[0][1]
        assert res.terms[0][0] == "post"
        assert term == 0.2 * sp.Symbol("pre.G") * (sp.Symbol("pre.E_syn") - sp.Symbol("post.V"))

    def test_chemical_synapse_reversal_override(self):
        res = resolve(hh_excitatory("pre"), hh_excitatory("post"), 1.0, {"E_syn": -80.0})
        assert sp.Symbol("pre.E_syn") not in res.terms[0][1].free_symbols

    def test_spike_jump(self, spike_source):
        res = resolve(spike_source, lif("n"), 20.0)
        assert res.terms == ()
        (event,) = res.events
        assert event.trigger == "src.spike"
        assert event.effects == (("n.V", sp.Symbol("n.V") + 20.0),)

    def test_spike_into_conductance_lif(self, spike_source):
        (event,) = resolve(spike_source, lif_excitatory("n"), 1.0).events
        assert event.effects[0][0] == "n.S_AMPA_ext"

    def test_ampa_and_gaba(self):
        post = lif_excitatory("post")
        (ampa,) = resolve(lif_excitatory("e"), post, 0.5).events
        (gaba,) = resolve(lif_inhibitory("i"), post, 0.5).events
        assert ampa.trigger == "e.spike"
        assert ampa.effects[0][0] == "post.S_AMPA"
        assert gaba.effects[0][0] == "post.S_GABA"

    def test_ampa_into_current_lif_jumps_voltage(self):
        (event,) = resolve(lif_excitatory("e"), lif("post"), 2.0).events
        assert event.effects[0][0] == "post.V"

    def test_neuron_to_neuron_jump(self):
        (event,) = resolve(izhikevich("a"), lif("b"), 1.0).events
        assert event.trigger == "a.spike"

    def test_spike_without_jump_state(self, spike_source):
        with pytest.raises(UnresolvableConnectionError, match="receives spikes"):
            resolve(spike_source, wilson_cowan("wc"))


# ---------------------------------------------------------------------------
# Composite expansion
# ---------------------------------------------------------------------------

class TestCompositeExpansion:
    def test_source_into_population(self):
        pop = population("pop", n_neurons=3, neuron_kind="lif")
        res = resolve(constant_input("c"), pop, 1.0)
        assert sorted(dst for dst, _ in res.terms) == ["pop.n1", "pop.n2", "pop.n3"]

    def test_spikes_into_population(self, spike_source):
        pop = population("pop", n_neurons=4, neuron_kind="lif")
        res = resolve(spike_source, pop, 5.0)
        assert len(res.events) == 4
        assert {e.trigger for e in res.events} == {"src.spike"}

    def test_recurrent_projection_skips_self_pairs(self):
        pop = population("pop", n_neurons=3, neuron_kind="lif")
        res = resolve(pop, pop, 1.0)
        assert len(res.events) == 6
        for event in res.events:
            source = event.trigger.rsplit(".", 1)[0]
            target = event.effects[0][0].rsplit(".", 1)[0]
            assert source != target

    def test_population_to_population_uses_kind_rule(self):
        exc = population("E", n_neurons=2, neuron_kind="lif_excitatory")
        inh = population("I", n_neurons=2, neuron_kind="lif_inhibitory")
        res = resolve(inh, exc, 1.0)
        assert {e.effects[0][0].split(".")[-1] for e in res.events} == {"S_GABA"}

    def test_density_zero(self):
        pop = population("pop", n_neurons=3, neuron_kind="lif")
        res = resolve(pop, pop, 1.0, {"density": 0.0}, rng=np.random.default_rng(0))
        assert res == Resolution()

    def test_density_out_of_range(self):
        pop = population("pop", n_neurons=3, neuron_kind="lif")
        with pytest.raises(ConfigurationError):
            resolve(pop, pop, 1.0, {"density": 2.0})

    def test_sample_pairs_seeded(self):
        leaves = list(population("pop", n_neurons=6, neuron_kind="lif").leaves())
        a = sample_pairs(leaves, leaves, 0.5, np.random.default_rng(3))
        b = sample_pairs(leaves, leaves, 0.5, np.random.default_rng(3))
        assert [(s.path, d.path) for s, d in a] == [(s.path, d.path) for s, d in b]
        assert len(sample_pairs(leaves, leaves, 1.0, None)) == 30

    def test_sparse_defaults_are_reproducible(self):
        pop = population("pop", n_neurons=6, neuron_kind="lif")
        leaves = list(pop.leaves())
        a = sample_pairs(leaves, leaves, 0.5, None)
        b = sample_pairs(leaves, leaves, 0.5, None)
        assert [(s.path, d.path) for s, d in a] == [(s.path, d.path) for s, d in b]
        assert resolve(pop, pop, 1.0, {"density": 0.5}) == resolve(pop, pop, 1.0, {"density": 0.5})


# ---------------------------------------------------------------------------
# Extending the table
# ---------------------------------------------------------------------------

class TestRegisterRule:
    def test_new_pair_takes_precedence(self, wc_pair):
        wc1, wc2 = wc_pair

        @register_rule("wilson_cowan", "wilson_cowan")
        def squared(source, destination, weight, options, context):
            return Resolution(terms=((destination.path, weight * source.output_expr ** 2),))

        try:
            res = resolve(wc1, wc2, 1.0)
            assert res.terms[0][1] == 1.0 * sp.Symbol("wc1.E") ** 2
        finally:
            RULES.pop(("wilson_cowan", "wilson_cowan"))
        assert find_rule("wilson_cowan", "wilson_cowan")[0] == ("blox", "blox")

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            register_rule("wilson_cowan", "no_such_kind")
