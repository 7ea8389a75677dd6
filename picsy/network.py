"""
Graph view of the evaluation matrix.

Used for diagnostics: the solver's fixed point is unique only when the
effective matrix E' is irreducible, i.e. its support graph is strongly
connected.
"""

import networkx as nx
import numpy as np
from typing import List, Tuple

from .central_bank import effective_matrix

WEIGHT_EPSILON = 1e-15


def build_evaluation_graph(E, effective: bool = False) -> nx.DiGraph:
    """
    Weighted digraph with an edge i -> j for every positive off-diagonal E[i][j].

    Args:
        E: Evaluation matrix
        effective: Build the graph of E' instead of E

    Returns:
        NetworkX DiGraph; node attribute 'budget' holds E[i][i]
    """
    E = np.asarray(E, dtype=float)
    M = effective_matrix(E) if effective else E
    n = E.shape[0]

    G = nx.DiGraph()
    for i in range(n):
        G.add_node(i, budget=float(E[i, i]))
    for i in range(n):
        for j in range(n):
            if i != j and M[i, j] > WEIGHT_EPSILON:
                G.add_edge(i, j, weight=float(M[i, j]))
    return G


def is_irreducible(E) -> bool:
    """True if E' is irreducible (strongly connected support)."""
    E = np.asarray(E, dtype=float)
    if E.shape[0] <= 1:
        return True
    return nx.is_strongly_connected(build_evaluation_graph(E, effective=True))


def top_evaluators(E, participant: int, k: int = 5) -> List[Tuple[int, float]]:
    """The k participants placing the most weight on `participant`"""
    G = build_evaluation_graph(E)
    incoming = [(u, d['weight']) for u, _, d in G.in_edges(participant, data=True)]
    incoming.sort(key=lambda x: x[1], reverse=True)
    return incoming[:k]
