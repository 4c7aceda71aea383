"""connections: kind-pair dispatch of connections into equations and events.

A rule is looked up by (source kind, destination kind), falling back
through the kind families; the rule returns the terms added to the
destination's input accumulator and the events fired by source spikes.
"""

from .rules import (
    RULES,
    Resolution,
    register_rule,
    sample_pairs,
)
from .resolver import (
    ResolveContext,
    resolution_order,
    find_rule,
    resolve,
)
