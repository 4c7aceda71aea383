"""Single-neuron bloxs.

Kinds:
    lif             current-based LIF; incoming spikes jump the voltage
    lif_excitatory  conductance-based LIF emitting AMPA spikes
    lif_inhibitory  conductance-based LIF emitting GABA spikes
    hh_excitatory   Hodgkin-Huxley neuron with an excitatory synaptic gate
    hh_inhibitory   Hodgkin-Huxley neuron with an inhibitory synaptic gate
    izhikevich      Izhikevich (2003) quadratic neuron

Units: ms, mV. LIF currents are in pA with capacitances in pF (pA/pF is
mV/ms); Hodgkin-Huxley currents are in uA/cm^2 with unit capacitance.

References:
    Wang XJ (2002). Neuron 36:955-968.
    Izhikevich EM (2003). IEEE Trans Neural Netw 14:1569-1572.
    Hodgkin AL, Huxley AF (1952). J Physiol 117:500-544.
"""

from dataclasses import replace as _with

import numpy as np
import sympy as sp

from blox.components.blox import (
    Blox, Crossing, Variable, INPUT, OUTPUT, INTERNAL, SPIKE, TIME,
)
from blox.components.options import merge_options, require

# Physical constants for reversal potentials
GAS_CONSTANT = 8.314462618      # J / (mol K)
FARADAY = 96485.33212           # C / mol
BODY_TEMPERATURE = 310.15       # K

NEVER = -1.0e9


def nernst_potential(z, c_out, c_in, temperature=BODY_TEMPERATURE):
    """Equilibrium potential of one ion species (mV).

    E = (R T / z F) ln(c_out / c_in)

    Parameters
    ----------
    z : int
        Valence (e.g. +1 for K+, -1 for Cl-).
    c_out, c_in : float or np.ndarray
        Extra- and intracellular concentrations (same units).
    temperature : float
        Absolute temperature (K).
    """
    if z == 0:
        raise ValueError("Valence must be non-zero")
    return 1000.0 * GAS_CONSTANT * temperature / (z * FARADAY) * np.log(
        np.asarray(c_out, dtype=np.float64) / np.asarray(c_in, dtype=np.float64)
    )


def goldman_potential(permeability, c_out, c_in, temperature=BODY_TEMPERATURE):
    """Goldman-Hodgkin-Katz resting potential for K+, Na+ and Cl- (mV).

    Parameters
    ----------
    permeability, c_out, c_in : dict
        Keyed by "K", "Na" and "Cl".
    temperature : float
        Absolute temperature (K).
    """
    num = (permeability["K"] * c_out["K"] + permeability["Na"] * c_out["Na"]
           + permeability["Cl"] * c_in["Cl"])
    den = (permeability["K"] * c_in["K"] + permeability["Na"] * c_in["Na"]
           + permeability["Cl"] * c_out["Cl"])
    return 1000.0 * GAS_CONSTANT * temperature / FARADAY * np.log(num / den)


def _refractory(rhs, t_last, t_ref):
    """Clamp a derivative to zero for t_ref ms after the last spike."""
    return sp.Piecewise((0, TIME - t_last < t_ref), (rhs, True))


# ---------------------------------------------------------------------------
# Leaky integrate-and-fire
# ---------------------------------------------------------------------------

LIF_DEFAULTS = {
    "V_rest": -52.0,
    "theta": -45.0,
    "V_reset": -52.0,
    "tau_m": 20.0,
    "R": 1.0,
    "I_in": 0.0,
    "t_ref": 2.2,
}


def lif(name, namespace=None, **options):
    """Current-based LIF neuron.

        tau_m dV/dt = -(V - V_rest) + R (I_in + jcn)
        V >= theta  ->  V = V_reset

    Spikes arriving through connections jump V directly.
    """
    p = merge_options("lif", LIF_DEFAULTS, options)
    require(p["theta"] > p["V_reset"], "lif: theta must lie above V_reset")
    require(p["tau_m"] > 0, "lif: tau_m must be positive")

    b = _with(Blox(name=name, kind="lif", namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param

    dv = (-(s("V") - q("V_rest")) + q("R") * (q("I_in") + s("jcn"))) / q("tau_m")
    return _with(
        b,
        variables=(
            Variable("V", p["V_rest"], OUTPUT),
            Variable("t_last", NEVER, INTERNAL),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("V", _refractory(dv, s("t_last"), q("t_ref"))),
            ("t_last", sp.Integer(0)),
        ),
        crossings=(
            Crossing(b.qualify(SPIKE), s("V") - q("theta"),
                     ((b.qualify("V"), q("V_reset")), (b.qualify("t_last"), TIME))),
        ),
        jump_state="V",
        voltage="V",
    )


LIF_EXCITATORY_DEFAULTS = {
    "C": 500.0,
    "g_L": 25.0,
    "V_L": -70.0,
    "theta": -50.0,
    "V_reset": -55.0,
    "t_ref": 2.0,
    "g_AMPA": 0.104,
    "g_AMPA_ext": 2.1,
    "g_GABA": 1.3,
    "E_AMPA": 0.0,
    "E_GABA": -70.0,
    "tau_AMPA": 2.0,
    "tau_GABA": 5.0,
    "I_in": 0.0,
}

LIF_INHIBITORY_DEFAULTS = {
    **LIF_EXCITATORY_DEFAULTS,
    "C": 200.0,
    "g_L": 20.0,
    "t_ref": 1.0,
    "g_AMPA": 0.081,
    "g_AMPA_ext": 1.62,
    "g_GABA": 1.0,
}


def _conductance_lif(kind, defaults, name, namespace, options):
    p = merge_options(kind, defaults, options)
    require(p["theta"] > p["V_reset"], f"{kind}: theta must lie above V_reset")
    require(p["C"] > 0, f"{kind}: C must be positive")

    b = _with(Blox(name=name, kind=kind, namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param
    V = s("V")

    i_leak = q("g_L") * (V - q("V_L"))
    i_ampa = (q("g_AMPA") * s("S_AMPA") + q("g_AMPA_ext") * s("S_AMPA_ext")) * (V - q("E_AMPA"))
    i_gaba = q("g_GABA") * s("S_GABA") * (V - q("E_GABA"))
    dv = (-i_leak - i_ampa - i_gaba + q("I_in") + s("jcn")) / q("C")

    return _with(
        b,
        variables=(
            Variable("V", p["V_L"], OUTPUT),
            Variable("S_AMPA", 0.0),
            Variable("S_AMPA_ext", 0.0),
            Variable("S_GABA", 0.0),
            Variable("t_last", NEVER),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("V", _refractory(dv, s("t_last"), q("t_ref"))),
            ("S_AMPA", -s("S_AMPA") / q("tau_AMPA")),
            ("S_AMPA_ext", -s("S_AMPA_ext") / q("tau_AMPA")),
            ("S_GABA", -s("S_GABA") / q("tau_GABA")),
            ("t_last", sp.Integer(0)),
        ),
        crossings=(
            Crossing(b.qualify(SPIKE), V - q("theta"),
                     ((b.qualify("V"), q("V_reset")), (b.qualify("t_last"), TIME))),
        ),
        jump_state="S_AMPA_ext",
        voltage="V",
    )


def lif_excitatory(name, namespace=None, **options):
    """Conductance-based excitatory LIF (Wang 2002 pyramidal cell).

        C dV/dt = -g_L (V - V_L) - (g_AMPA S_AMPA + g_AMPA_ext S_AMPA_ext)(V - E_AMPA)
                  - g_GABA S_GABA (V - E_GABA) + I_in + jcn

    Each gate decays exponentially and is incremented by presynaptic spikes.
    """
    return _conductance_lif("lif_excitatory", LIF_EXCITATORY_DEFAULTS,
                            name, namespace, options)


def lif_inhibitory(name, namespace=None, **options):
    """Conductance-based inhibitory LIF (Wang 2002 interneuron)."""
    return _conductance_lif("lif_inhibitory", LIF_INHIBITORY_DEFAULTS,
                            name, namespace, options)


# ---------------------------------------------------------------------------
# Hodgkin-Huxley
# ---------------------------------------------------------------------------

HH_EXCITATORY_DEFAULTS = {
    "G_Na": 52.0,
    "G_K": 20.0,
    "G_L": 0.1,
    "E_Na": 55.0,
    "E_K": -90.0,
    "E_L": -60.0,
    "G_syn": 3.0,
    "E_syn": 0.0,
    "tau_1": 0.1,
    "tau_2": 5.0,
    "phi": 5.0,
    "I_in": 0.0,
}

HH_INHIBITORY_DEFAULTS = {
    **HH_EXCITATORY_DEFAULTS,
    "G_syn": 11.5,
    "E_syn": -70.0,
    "tau_2": 70.0,
}


def _hodgkin_huxley(kind, defaults, name, namespace, options):
    p = merge_options(kind, defaults, options)
    require(p["tau_1"] > 0 and p["tau_2"] > 0, f"{kind}: synaptic time constants must be positive")

    b = _with(Blox(name=name, kind=kind, namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param
    V, n, h, G, z = s("V"), s("n"), s("h"), s("G"), s("z")

    alpha_n = 0.01 * (V + 34) / (1 - sp.exp(-(V + 34) / 10))
    beta_n = 0.125 * sp.exp(-(V + 44) / 80)
    alpha_m = 0.1 * (V + 30) / (1 - sp.exp(-(V + 30) / 10))
    beta_m = 4 * sp.exp(-(V + 55) / 18)
    alpha_h = 0.07 * sp.exp(-(V + 44) / 20)
    beta_h = 1 / (1 + sp.exp(-(V + 14) / 10))
    m_inf = alpha_m / (alpha_m + beta_m)
    # presynaptic transmitter release as a sigmoid of the membrane potential
    g_asymp = q("G_syn") / (1 + sp.exp(-4.394 * (V / 10 + 0.5)))

    dv = (-q("G_Na") * m_inf ** 3 * h * (V - q("E_Na"))
          - q("G_K") * n ** 4 * (V - q("E_K"))
          - q("G_L") * (V - q("E_L"))
          + q("I_in") + s("jcn"))

    return _with(
        b,
        variables=(
            Variable("V", -65.0, OUTPUT),
            Variable("n", 0.32),
            Variable("h", 0.6),
            Variable("G", 0.0),
            Variable("z", 0.0),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("V", dv),
            ("n", q("phi") * (alpha_n * (1 - n) - beta_n * n)),
            ("h", q("phi") * (alpha_h * (1 - h) - beta_h * h)),
            ("G", -G / q("tau_2") + z),
            ("z", -z / q("tau_1") + g_asymp),
        ),
        voltage="V",
    )


def hh_excitatory(name, namespace=None, **options):
    """Hodgkin-Huxley neuron whose synapses excite (E_syn = 0 mV)."""
    return _hodgkin_huxley("hh_excitatory", HH_EXCITATORY_DEFAULTS, name, namespace, options)


def hh_inhibitory(name, namespace=None, **options):
    """Hodgkin-Huxley neuron whose synapses inhibit (E_syn = -70 mV)."""
    return _hodgkin_huxley("hh_inhibitory", HH_INHIBITORY_DEFAULTS, name, namespace, options)


# ---------------------------------------------------------------------------
# Izhikevich
# ---------------------------------------------------------------------------

IZHIKEVICH_DEFAULTS = {
    "a": 0.02,
    "b": 0.2,
    "c": -65.0,
    "d": 8.0,
    "threshold": 30.0,
    "I_in": 0.0,
}


def izhikevich(name, namespace=None, **options):
    """Izhikevich neuron; the defaults give regular spiking.

        dv/dt = 0.04 v^2 + 5 v + 140 - u + I_in + jcn
        du/dt = a (b v - u)
        v >= threshold  ->  v = c, u = u + d
    """
    p = merge_options("izhikevich", IZHIKEVICH_DEFAULTS, options)
    require(p["threshold"] > p["c"], "izhikevich: threshold must lie above the reset c")

    b = _with(Blox(name=name, kind="izhikevich", namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param
    v, u = s("v"), s("u")

    return _with(
        b,
        variables=(
            Variable("v", p["c"], OUTPUT),
            Variable("u", p["b"] * p["c"]),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("v", 0.04 * v ** 2 + 5 * v + 140 - u + q("I_in") + s("jcn")),
            ("u", q("a") * (q("b") * v - u)),
        ),
        crossings=(
            Crossing(b.qualify(SPIKE), v - q("threshold"),
                     ((b.qualify("v"), q("c")), (b.qualify("u"), u + q("d")))),
        ),
        jump_state="v",
        voltage="v",
    )
