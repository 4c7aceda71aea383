"""graph: assemble bloxs into a graph and compile it into one system."""

from .graph import (
    Graph,
    adjacency_matrix,
    build_graph_from_edges,
)
from .compiler import (
    CompiledSystem,
    compile_graph,
)
