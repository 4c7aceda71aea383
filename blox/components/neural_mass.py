"""Neural mass bloxs: population-averaged activity models.

Kinds:
    wilson_cowan         excitatory/inhibitory rate pair
    harmonic_oscillator  damped linear oscillator with a saturating input
    jansen_rit           three-population cortical column

References:
    Wilson HR, Cowan JD (1972). Biophys J 12:1-24.
    Jansen BH, Rit VG (1995). Biol Cybern 73:357-366.
"""

from dataclasses import replace as _with

import sympy as sp

from blox.components.blox import Blox, Variable, INPUT, OUTPUT, INTERNAL
from blox.components.options import merge_options, require


WILSON_COWAN_DEFAULTS = {
    "tau_E": 1.0,
    "tau_I": 1.0,
    "a_E": 1.2,
    "a_I": 2.0,
    "c_EE": 5.0,
    "c_IE": 6.0,
    "c_EI": 10.0,
    "c_II": 1.0,
    "theta_E": 2.0,
    "theta_I": 3.5,
    "eta": 1.0,
}


def _sigmoid(x):
    return 1 / (1 + sp.exp(-x))


def wilson_cowan(name, namespace=None, **options):
    """Wilson-Cowan excitatory-inhibitory pair.

        tau_E dE/dt = -E + S(a_E (c_EE E - c_IE I - theta_E + eta jcn))
        tau_I dI/dt = -I + S(a_I (c_EI E - c_II I - theta_I))

    with S the logistic function. Connections drive E through jcn.
    """
    p = merge_options("wilson_cowan", WILSON_COWAN_DEFAULTS, options)
    require(p["tau_E"] > 0 and p["tau_I"] > 0, "wilson_cowan: time constants must be positive")

    b = _with(Blox(name=name, kind="wilson_cowan", namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param
    E, I = s("E"), s("I")

    drive_E = q("a_E") * (q("c_EE") * E - q("c_IE") * I - q("theta_E") + q("eta") * s("jcn"))
    drive_I = q("a_I") * (q("c_EI") * E - q("c_II") * I - q("theta_I"))

    return _with(
        b,
        variables=(
            Variable("E", 0.5, OUTPUT),
            Variable("I", 0.5, INTERNAL),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("E", (-E + _sigmoid(drive_E)) / q("tau_E")),
            ("I", (-I + _sigmoid(drive_I)) / q("tau_I")),
        ),
    )


HARMONIC_OSCILLATOR_DEFAULTS = {
    "omega": 25.0,    # Hz
    "zeta": 1.0,
    "k": 1.0,
    "h": 35.0,
}


def harmonic_oscillator(name, namespace=None, **options):
    """Damped oscillator driven through a saturating arctangent input.

        dx/dt = y - 2 w zeta x + k (2/pi) atan(jcn / h)
        dy/dt = -w^2 x

    with w the angular frequency in rad/ms.
    """
    p = merge_options("harmonic_oscillator", HARMONIC_OSCILLATOR_DEFAULTS, options)
    require(p["omega"] > 0, "harmonic_oscillator: omega must be positive")
    require(p["h"] != 0, "harmonic_oscillator: h must be non-zero")

    b = _with(Blox(name=name, kind="harmonic_oscillator", namespace=namespace),
              params=tuple(p.items()))
    s, q = b.symbol, b.param
    x, y = s("x"), s("y")
    w = 2 * sp.pi * q("omega") / 1000

    return _with(
        b,
        variables=(
            Variable("x", 0.1, OUTPUT),
            Variable("y", 0.0),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("x", y - 2 * w * q("zeta") * x + q("k") * (2 / sp.pi) * sp.atan(s("jcn") / q("h"))),
            ("y", -(w ** 2) * x),
        ),
    )


JANSEN_RIT_DEFAULTS = {
    "A": 3.25,      # mV, excitatory gain
    "B": 22.0,      # mV, inhibitory gain
    "a": 0.1,       # 1/ms
    "b": 0.05,      # 1/ms
    "C": 135.0,
    "e0": 0.0025,   # 1/ms, half the maximal firing rate
    "v0": 6.0,      # mV
    "r": 0.56,      # 1/mV
    "p": 0.22,      # 1/ms, mean extrinsic input
}


def jansen_rit(name, namespace=None, **options):
    """Jansen-Rit column: pyramidal, excitatory and inhibitory interneurons.

    The output x = y1 - y2 is the net pyramidal membrane potential, the
    EEG-like signal. Connections add to the pyramidal input next to p.
    """
    p = merge_options("jansen_rit", JANSEN_RIT_DEFAULTS, options)
    require(p["a"] > 0 and p["b"] > 0, "jansen_rit: rate constants must be positive")

    b = _with(Blox(name=name, kind="jansen_rit", namespace=namespace), params=tuple(p.items()))
    s, q = b.symbol, b.param
    y0, y1, y2, y3, y4, y5 = (s(f"y{i}") for i in range(6))
    A, B, a, bb, C = q("A"), q("B"), q("a"), q("b"), q("C")

    def rate(v):
        return 2 * q("e0") / (1 + sp.exp(q("r") * (q("v0") - v)))

    return _with(
        b,
        variables=(
            Variable("y0", 0.0),
            Variable("y1", 0.0),
            Variable("y2", 0.0),
            Variable("y3", 0.0),
            Variable("y4", 0.0),
            Variable("y5", 0.0),
            Variable("x", 0.0, OUTPUT),
            Variable("jcn", 0.0, INPUT),
        ),
        equations=(
            ("y0", y3),
            ("y1", y4),
            ("y2", y5),
            ("y3", A * a * rate(y1 - y2) - 2 * a * y3 - a ** 2 * y0),
            ("y4", A * a * (q("p") + 0.8 * C * rate(C * y0) + s("jcn"))
             - 2 * a * y4 - a ** 2 * y1),
            ("y5", B * bb * 0.25 * C * rate(0.25 * C * y0) - 2 * bb * y5 - bb ** 2 * y2),
        ),
        observed=(
            ("x", y1 - y2),
        ),
    )
