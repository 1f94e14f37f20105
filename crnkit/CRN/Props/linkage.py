from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Set

import networkx as nx

from ..complexes import reaction_complexes
from ..properties import MatrixFormat
from .incidence import incidence_graph

LOGGER = logging.getLogger(__name__)

__all__ = [
    "linkage_classes",
    "strong_linkage_classes",
    "terminal_linkage_classes",
    "is_reversible",
    "is_weakly_reversible",
    "is_forest_like",
]


def _sorted_components(components: Iterable[Set[int]]) -> List[List[int]]:
    return sorted((sorted(c) for c in components), key=lambda c: c[0])


# ---------------------------------------------------------------------------
# Linkage classes
# ---------------------------------------------------------------------------


def linkage_classes(network) -> List[List[int]]:
    """
    Linkage classes: weakly connected components of the incidence graph.

    :param network: Flat reaction network.
    :returns: Complex indices per class, each sorted, classes ordered by
              their smallest complex. Cached.
    """
    props = network.properties
    if not props.linkage_classes:
        G = incidence_graph(network)
        props.linkage_classes = _sorted_components(nx.weakly_connected_components(G))
        LOGGER.debug("%s: %d linkage classes", network.name, len(props.linkage_classes))
    return props.linkage_classes


def strong_linkage_classes(network) -> List[List[int]]:
    """
    Strong linkage classes: strongly connected components of the incidence
    graph, in the same layout as :func:`linkage_classes`.
    """
    props = network.properties
    if not props.strong_linkage_classes:
        G = incidence_graph(network)
        props.strong_linkage_classes = _sorted_components(nx.strongly_connected_components(G))
    return props.strong_linkage_classes


def terminal_linkage_classes(network) -> List[List[int]]:
    """
    Terminal strong linkage classes: strong linkage classes with no reaction
    leaving them (sinks of the condensation graph).

    :param network: Flat reaction network.
    :returns: Subset of :func:`strong_linkage_classes`, same order. Cached.
    """
    props = network.properties
    if not props.terminal_linkage_classes:
        slcs = strong_linkage_classes(network)
        C = nx.condensation(nx.DiGraph(incidence_graph(network)), scc=[set(c) for c in slcs])
        # condensation node k is slcs[k]
        props.terminal_linkage_classes = [
            slcs[k] for k in range(len(slcs)) if C.out_degree(k) == 0
        ]
    return props.terminal_linkage_classes


# ---------------------------------------------------------------------------
# Reversibility
# ---------------------------------------------------------------------------


def is_reversible(network) -> bool:
    """
    True when every reaction ``y -> y'`` is matched by a reaction
    ``y' -> y`` (counted with multiplicity).
    """
    G = incidence_graph(network)
    edges = list(G.edges())
    return Counter(edges) == Counter((v, u) for u, v in edges)


def is_weakly_reversible(network, subnets: Optional[Sequence] = None) -> bool:
    """
    True when every linkage class is strongly connected.

    The check is run on the incidence graph of each per-class subnetwork.

    :param network: Flat reaction network.
    :param subnets: Precomputed :func:`~crnkit.CRN.Props.deficiency.subnetworks`
        of ``network``; computed when omitted.
    :returns: Whether the network is weakly reversible.
    """
    if subnets is None:
        from .deficiency import subnetworks

        subnets = subnetworks(network)
    fmt = network.properties.incidence_format or MatrixFormat.DENSE
    for sub in subnets:
        if sub.properties.incidence_format is None:
            reaction_complexes(sub, fmt)
        if not nx.is_strongly_connected(incidence_graph(sub)):
            return False
    return True


def is_forest_like(network) -> bool:
    """
    True when the undirected incidence graph, with parallel and opposite
    edges collapsed and self-loops ignored, has no cycles (each linkage class
    is a tree).
    """
    G = incidence_graph(network)
    U = nx.Graph()
    U.add_nodes_from(G)
    U.add_edges_from((u, v) for u, v in G.edges() if u != v)
    return nx.is_forest(U)
