from __future__ import annotations

import logging
from typing import List, Tuple, Union

import networkx as nx
import numpy as np
from scipy import sparse

from ..complexes import reaction_complex_map, reaction_complexes
from ..exceptions import StructuralPreconditionError
from ..properties import MatrixFormat

LOGGER = logging.getLogger(__name__)

MatrixLike = Union[np.ndarray, sparse.csc_matrix]

__all__ = [
    "incidence_matrix",
    "complex_outgoing_matrix",
    "incidence_graph",
    "incidence_matrix_graph",
    "reaction_edges",
]


# ---------------------------------------------------------------------------
# Matrices
# ---------------------------------------------------------------------------


def incidence_matrix(network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE) -> MatrixLike:
    """
    Complex-reaction incidence matrix ``B`` (complexes × reactions).

    :param network: Flat reaction network.
    :param fmt: Dense or sparse output.
    :returns: Matrix with one -1 (substrate complex) and one +1 (product
              complex) per column.
    """
    return reaction_complexes(network, fmt)[1]


def complex_outgoing_matrix(
    network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE
) -> MatrixLike:
    """
    Complex outgoing matrix :math:`\\Delta`: ``B`` with every +1 set to zero.

    Entry ``(i, j)`` is -1 exactly when reaction ``j`` leaves complex ``i``.
    Cached on ``network.properties``.

    :param network: Flat reaction network.
    :param fmt: Dense or sparse output.
    :returns: Matrix of the same shape as ``B``.
    """
    fmt = MatrixFormat(fmt)
    props = network.properties
    if props.complex_outgoing_format is fmt:
        return props.complex_outgoing_mat

    B = incidence_matrix(network, fmt)
    if fmt is MatrixFormat.SPARSE:
        D = B.copy()
        D.data[D.data == 1] = 0
        D.eliminate_zeros()
    else:
        D = np.where(B == 1, 0, B)
    props.complex_outgoing_mat = D
    props.complex_outgoing_format = fmt
    return D


# ---------------------------------------------------------------------------
# Incidence graph
# ---------------------------------------------------------------------------


def reaction_edges(network) -> List[Tuple[int, int]]:
    """
    ``(substrate complex, product complex)`` index pair of every reaction.

    :param network: Flat reaction network.
    :returns: One pair per reaction, in reaction order.
    """
    cmap = reaction_complex_map(network)
    src = [-1] * network.num_reactions()
    dst = [-1] * network.num_reactions()
    for k, entries in enumerate(cmap.values()):
        for j, sign in entries:
            if sign < 0:
                src[j] = k
            else:
                dst[j] = k
    return list(zip(src, dst))


def incidence_graph(network) -> nx.MultiDiGraph:
    """
    Directed multigraph of complexes: one edge per reaction.

    Nodes are complex indices (attribute ``complex``); the edge of reaction
    ``j`` has key ``j`` and attribute ``reaction=j``. Parallel edges and
    self-loops are kept.

    :param network: Flat reaction network.
    :returns: Cached :class:`networkx.MultiDiGraph`.
    """
    props = network.properties
    if props.incidence_graph is None:
        complexes, _ = reaction_complexes(network, props.incidence_format or MatrixFormat.DENSE)
        G = nx.MultiDiGraph()
        G.add_nodes_from((k, {"complex": rc}) for k, rc in enumerate(complexes))
        for j, (u, v) in enumerate(reaction_edges(network)):
            G.add_edge(u, v, key=j, reaction=j)
        props.incidence_graph = G
        LOGGER.debug(
            "%s: incidence graph with %d nodes, %d edges",
            network.name,
            G.number_of_nodes(),
            G.number_of_edges(),
        )
    return props.incidence_graph


def incidence_matrix_graph(B: MatrixLike) -> nx.MultiDiGraph:
    """
    Rebuild the incidence graph from an incidence matrix.

    Column ``j`` becomes an edge from the row holding -1 to the row holding
    +1, with key ``j``. Columns that cancel to zero (self-loops in ``B``)
    cannot be recovered and are rejected.

    :param B: Dense or sparse incidence matrix.
    :returns: Directed multigraph with ``B.shape[0]`` nodes.
    :raises StructuralPreconditionError: If ``B`` is empty.
    :raises ValueError: If a column is not a single (-1, +1) pair.
    """
    if B.shape[0] == 0 or B.shape[1] == 0:
        raise StructuralPreconditionError(
            "The incidence matrix is empty; build it with reaction_complexes() first."
        )
    G = nx.MultiDiGraph()
    G.add_nodes_from(range(B.shape[0]))
    if sparse.issparse(B):
        edges = _edges_sparse(sparse.csc_matrix(B))
    else:
        edges = _edges_dense(np.asarray(B))
    for j, (u, v) in enumerate(edges):
        G.add_edge(u, v, key=j, reaction=j)
    return G


def _column_edge(j: int, rows: np.ndarray, vals: np.ndarray) -> Tuple[int, int]:
    nz = vals != 0
    rows, vals = rows[nz], vals[nz]
    if not np.isin(vals, (-1, 1)).all():
        raise ValueError(f"column {j} of the incidence matrix has entries outside {{-1, 0, 1}}")
    src = rows[vals == -1]
    dst = rows[vals == 1]
    if len(src) != 1 or len(dst) != 1:
        raise ValueError(f"column {j} of the incidence matrix is not a single (-1, +1) pair")
    return int(src[0]), int(dst[0])


def _edges_dense(B: np.ndarray) -> List[Tuple[int, int]]:
    rows = np.arange(B.shape[0])
    return [_column_edge(j, rows, B[:, j]) for j in range(B.shape[1])]


def _edges_sparse(B: sparse.csc_matrix) -> List[Tuple[int, int]]:
    edges = []
    for j in range(B.shape[1]):
        start, stop = B.indptr[j], B.indptr[j + 1]
        edges.append(_column_edge(j, B.indices[start:stop], B.data[start:stop]))
    return edges
