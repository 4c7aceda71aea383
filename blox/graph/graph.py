"""A directed graph of bloxs and weighted connections.

The Graph is the user-facing assembly surface: add bloxs, connect them,
then compile. Nodes are identified by path, so two distinct bloxs with
the same path collide.
"""

import numpy as np
import pandas as pd

from blox.components.blox import Connection
from blox.components.kinds import get_kind
from blox.errors import GraphCompilationError, UnresolvableConnectionError
from blox.utils import get_logger

LOG = get_logger("graph.graph")


def _freeze(value):
    """Make an option value hashable (dicts become sorted item tuples)."""
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


class Graph:
    """Bloxs and the connections between them.

    Parameters
    ----------
    name : str
        Label used in summaries.
    """

    def __init__(self, name="graph"):
        self.name = name
        self._bloxs = {}
        self._connections = []

    # --- nodes ---

    def add_blox(self, blox):
        """Add a blox; adding the same blox twice is a no-op."""
        present = self._bloxs.get(blox.path)
        if present is not None:
            if present != blox:
                raise GraphCompilationError(
                    f"Namespace collision: a different blox is already at '{blox.path}'"
                )
            return blox
        self._bloxs[blox.path] = blox
        return blox

    def add_bloxs(self, *bloxs):
        for blox in bloxs:
            self.add_blox(blox)

    @property
    def bloxs(self):
        return tuple(self._bloxs.values())

    def __contains__(self, path):
        return getattr(path, "path", path) in self._bloxs

    def __getitem__(self, path):
        if path not in self._bloxs:
            raise KeyError(f"No blox '{path}' in {self.name}. Available: {list(self._bloxs)}")
        return self._bloxs[path]

    def __len__(self):
        return len(self._bloxs)

    # --- edges ---

    def add_connection(self, source, destination, weight=1.0, **options):
        """Connect two bloxs, adding either endpoint that is not yet present.

        Parameters
        ----------
        source, destination : Blox
        weight : float, str or sympy.Expr
            Connection weight; symbolic weights take their parameter
            defaults from options["parameters"].
        **options
            Rule options such as connection_rule, density or E_syn.

        Raises
        ------
        UnresolvableConnectionError
            If the destination is a source.
        GraphCompilationError
            On a duplicate edge or a self-loop on a kind without them.
        """
        if destination.is_source:
            raise UnresolvableConnectionError(
                f"{destination.path} is a {destination.kind} source and cannot receive connections"
            )
        if source.path == destination.path and not get_kind(source.kind).self_loops:
            raise GraphCompilationError(
                f"Self-loop on {source.path}: kind '{source.kind}' does not allow one"
            )
        for edge in self._connections:
            if edge.source == source.path and edge.destination == destination.path:
                raise GraphCompilationError(
                    f"Duplicate connection {source.path} -> {destination.path}"
                )
        self.add_blox(source)
        self.add_blox(destination)
        options = tuple(sorted((k, _freeze(v)) for k, v in options.items()))
        edge = Connection(source.path, destination.path, weight, options)
        self._connections.append(edge)
        return edge

    @property
    def connections(self):
        return tuple(self._connections)

    # --- views ---

    def to_frame(self):
        """Edge table with kinds, weights and options."""
        return pd.DataFrame([
            {
                "source": edge.source,
                "destination": edge.destination,
                "source_kind": self._bloxs[edge.source].kind,
                "destination_kind": self._bloxs[edge.destination].kind,
                "weight": edge.weight,
                "options": edge.options_dict,
            }
            for edge in self._connections
        ], columns=["source", "destination", "source_kind", "destination_kind",
                    "weight", "options"])

    def summary(self):
        """Return a summary string."""
        kinds = pd.Series([b.kind for b in self._bloxs.values()], dtype=object)
        lines = [
            f"Graph '{self.name}': {len(self._bloxs)} bloxs, {len(self._connections)} connections",
        ]
        if len(kinds):
            lines.append(f"  kinds: {dict(kinds.value_counts())}")
        return "\n".join(lines)

    def compile(self, config=None):
        """Compile into a CompiledSystem; see compile_graph."""
        from blox.graph.compiler import compile_graph
        return compile_graph(self, config)


def adjacency_matrix(graph):
    """Weighted adjacency matrix, rows are sources and columns destinations.

    Symbolic weights are kept as objects; missing edges are 0.
    """
    paths = [b.path for b in graph.bloxs]
    symbolic = any(not isinstance(e.weight, (int, float)) for e in graph.connections)
    matrix = pd.DataFrame(
        np.zeros((len(paths), len(paths))), index=paths, columns=paths,
        dtype=object if symbolic else np.float64,
    )
    for edge in graph.connections:
        matrix.loc[edge.source, edge.destination] = edge.weight
    return matrix


def build_graph_from_edges(bloxs, edges, name="graph"):
    """Build a Graph from bloxs and an edge DataFrame.

    Parameters
    ----------
    bloxs : iterable of Blox
        Nodes, looked up by path.
    edges : pd.DataFrame
        Must have: source, destination. Optional: weight. Any other
        non-null column is passed as a connection option.
    name : str
        Graph label.

    Returns
    -------
    Graph
    """
    graph = Graph(name)
    by_path = {}
    for blox in bloxs:
        graph.add_blox(blox)
        by_path[blox.path] = blox

    valid = edges["source"].isin(by_path) & edges["destination"].isin(by_path)
    if not valid.all():
        LOG.warning("Dropped %d edges with bloxs not in the graph", int((~valid).sum()))

    option_columns = [c for c in edges.columns if c not in ("source", "destination", "weight")]
    for _, row in edges[valid].iterrows():
        options = {c: row[c] for c in option_columns if not pd.isna(row[c])}
        weight = row["weight"] if "weight" in edges.columns else 1.0
        graph.add_connection(by_path[row["source"]], by_path[row["destination"]],
                             weight, **options)

    LOG.info("Built graph '%s': %d bloxs, %d connections",
             name, len(graph), len(graph.connections))
    return graph
