"""components: Blox data model, kind table and factories.

Every component is an immutable Blox carrying namespaced sympy
equations, discrete events and designated input/output ports. Kinds
form a closed table whose family links drive connection-rule fallback.
"""

from .kinds import (
    KindSpec,
    KINDS,
    get_kind,
    ancestors,
    is_a,
    list_kinds,
)
from .blox import (
    Blox,
    Variable,
    Crossing,
    Event,
    Connection,
    TIME,
    INPUT,
    OUTPUT,
    INTERNAL,
    join_path,
)
from .neurons import (
    lif,
    lif_excitatory,
    lif_inhibitory,
    hh_excitatory,
    hh_inhibitory,
    izhikevich,
    nernst_potential,
    goldman_potential,
)
from .neural_mass import (
    wilson_cowan,
    harmonic_oscillator,
    jansen_rit,
)
from .sources import (
    constant_input,
    dbs,
    bernoulli_spikes,
    poisson_spikes,
)
from .composite import (
    population,
    decision_circuit,
    population_sizes,
)
from .registry import (
    FACTORIES,
    make_blox,
    list_bloxs,
)
