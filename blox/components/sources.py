"""Source bloxs: external signals with no inputs.

Continuous sources expose an output expression of time; spike sources
expose a firing schedule that connection rules turn into events on
their destinations.
"""

from dataclasses import replace as _with

from sympy.utilities.lambdify import implemented_function

from blox.components.blox import Blox, Variable, OUTPUT, SPIKE, TIME
from blox.components.options import merge_options, require, REQUIRED
from blox.simulation.stimulus import DBSProtocol, SpikeSchedule, BERNOULLI, POISSON
from blox.errors import ConfigurationError


def constant_input(name, namespace=None, **options):
    """Constant signal u = I."""
    p = merge_options("constant_input", {"I": 1.0}, options)
    b = _with(Blox(name=name, kind="constant_input", namespace=namespace),
              params=tuple(p.items()))
    return _with(
        b,
        variables=(Variable("u", p["I"], OUTPUT),),
        observed=(("u", b.param("I")),),
    )


DBS_DEFAULTS = {
    "frequency": 130.0,
    "amplitude": 2.5,
    "pulse_width": 0.066,
    "offset": 0.0,
    "start_time": 0.0,
    "smooth": 0.0,
    "pulses_per_burst": 0,
    "bursts_per_block": 0,
    "burst_interval": 0.0,
}


def dbs(name, namespace=None, **options):
    """Deep brain stimulation pulse train, u = protocol.signal(t).

    See DBSProtocol for the option meanings. Hard-edged protocols
    (smooth == 0) report their edges so the integrator stops on them.
    """
    p = merge_options("dbs", DBS_DEFAULTS, options)
    require(float(p["pulses_per_burst"]).is_integer() and float(p["bursts_per_block"]).is_integer(),
            "dbs: pulses_per_burst and bursts_per_block must be integers")
    try:
        protocol = DBSProtocol(**{**p,
                                  "pulses_per_burst": int(p["pulses_per_burst"]),
                                  "bursts_per_block": int(p["bursts_per_block"])})
    except ValueError as error:
        raise ConfigurationError(f"dbs: {error}") from error

    b = Blox(name=name, kind="dbs", namespace=namespace)
    signal = implemented_function("dbs_" + b.path.replace(".", "_dot_"), protocol.signal)
    return _with(
        b,
        variables=(Variable("u", protocol.offset, OUTPUT),),
        observed=(("u", signal(TIME)),),
        protocol=protocol,
    )


BERNOULLI_DEFAULTS = {
    "probability": REQUIRED,
    "spacing": 1.0,
    "start_time": 0.0,
    "stop_time": float("inf"),
}


def bernoulli_spikes(name, namespace=None, **options):
    """Spike source drawing once every `spacing` ms with `probability`."""
    p = merge_options("bernoulli_spikes", BERNOULLI_DEFAULTS, options)
    require(0.0 <= p["probability"] <= 1.0, "bernoulli_spikes: probability must lie in [0, 1]")
    require(p["spacing"] > 0, "bernoulli_spikes: spacing must be positive")
    b = Blox(name=name, kind="bernoulli_spikes", namespace=namespace)
    return _with(b, schedule=SpikeSchedule(
        name=b.qualify(SPIKE), mode=BERNOULLI,
        probability=p["probability"], spacing=p["spacing"],
        start_time=p["start_time"], stop_time=p["stop_time"],
    ))


POISSON_DEFAULTS = {
    "rate": REQUIRED,
    "start_time": 0.0,
    "stop_time": float("inf"),
}


def poisson_spikes(name, namespace=None, **options):
    """Homogeneous Poisson spike train at `rate` Hz."""
    p = merge_options("poisson_spikes", POISSON_DEFAULTS, options)
    require(p["rate"] >= 0, "poisson_spikes: rate must be non-negative")
    b = Blox(name=name, kind="poisson_spikes", namespace=namespace)
    return _with(b, schedule=SpikeSchedule(
        name=b.qualify(SPIKE), mode=POISSON, rate=p["rate"],
        start_time=p["start_time"], stop_time=p["stop_time"],
    ))
