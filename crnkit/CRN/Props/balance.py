from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import networkx as nx
import numpy as np
import sympy as sp
from scipy import sparse

from ..exceptions import InternalInconsistencyError, ParameterMismatchError
from ..properties import MatrixFormat
from .deficiency import deficiency
from .incidence import incidence_graph, incidence_matrix, reaction_edges
from .linkage import is_forest_like, is_reversible, is_weakly_reversible
from .stoich import complex_stoich_matrix, stoichiometric_matrix

LOGGER = logging.getLogger(__name__)

RateAssignment = Union[Mapping[Any, float], Iterable[Tuple[Any, float]]]

__all__ = [
    "is_mass_action",
    "rate_values",
    "rate_matrix",
    "matrix_tree",
    "is_complex_balanced",
    "is_detailed_balanced",
]


# ---------------------------------------------------------------------------
# Rate constants
# ---------------------------------------------------------------------------


def is_mass_action(reaction, network) -> bool:
    """
    True when ``reaction`` follows mass-action kinetics: its rate is used
    with the mass-action monomial and does not depend on any species.
    """
    if reaction.only_use_rate:
        return False
    names = {s.name for s in network.species}
    return not any(sym.name in names for sym in reaction.rate.free_symbols)


def _parameter_values(network, rates: RateAssignment) -> Dict[sp.Symbol, sp.Float]:
    items = rates.items() if isinstance(rates, Mapping) else rates
    by_name = {p.name: p for p in network.parameters}
    values: Dict[sp.Symbol, sp.Float] = {}
    for key, value in items:
        name = getattr(key, "name", key)
        if name not in by_name:
            raise ParameterMismatchError(
                f"{name!r} is not a parameter of network {network.name!r}"
            )
        values[by_name[name]] = sp.Float(float(value))
    missing = [p.name for p in network.parameters if p not in values]
    if missing:
        raise ParameterMismatchError(
            f"Incorrect number of parameters specified: missing values for {missing}"
        )
    return values


def rate_values(network, rates: RateAssignment) -> List[float]:
    """
    Numeric rate constant of every reaction.

    :param network: Flat mass-action network.
    :param rates: Value per parameter, as a mapping or ``(key, value)`` pairs;
        keys are sympy symbols or their names.
    :returns: One positive float per reaction.
    :raises ParameterMismatchError: On missing or unknown parameters.
    :raises ValueError: If a reaction is not mass action or its rate constant
        is not a positive number.
    """
    values = _parameter_values(network, rates)
    out = []
    for j, rx in enumerate(network.reactions):
        if not is_mass_action(rx, network):
            raise ValueError(
                f"Reaction {j} is not mass action; balance checks are only supported "
                "for pure mass action networks."
            )
        k = rx.rate.xreplace(values)
        if not k.is_number:
            raise ValueError(f"rate of reaction {j} did not evaluate to a number: {k}")
        k = float(k)
        if not k > 0:
            raise ValueError(f"rate constant of reaction {j} must be positive, got {k}")
        out.append(k)
    return out


def _rate_matrix(network, ks: Sequence[float]) -> np.ndarray:
    n = incidence_graph(network).number_of_nodes()
    K = np.zeros((n, n), dtype=float)
    for (u, v), k in zip(reaction_edges(network), ks):
        K[u, v] += k
    return K


def rate_matrix(network, rates: RateAssignment) -> np.ndarray:
    """
    Complex-to-complex rate matrix.

    ``K[i, j]`` is the sum of the rate constants of the reactions from complex
    ``i`` to complex ``j``.

    :param network: Flat mass-action network.
    :param rates: Parameter values (see :func:`rate_values`).
    :returns: ``(n_complexes, n_complexes)`` float array.
    """
    return _rate_matrix(network, rate_values(network, rates))


# ---------------------------------------------------------------------------
# Complex balance
# ---------------------------------------------------------------------------


def matrix_tree(graph: nx.MultiDiGraph, K: np.ndarray) -> np.ndarray:
    """
    Weighted number of spanning in-trees rooted at every node.

    For each weakly connected component, ``rho[i]`` is the sum over spanning
    trees oriented towards ``i`` of the product of their edge weights
    ``K[u, v]``. By the directed matrix-tree theorem this is the minor of the
    out-degree Laplacian with row and column ``i`` removed.

    :param graph: Incidence graph (nodes ``0..n-1``).
    :param K: Rate matrix from :func:`rate_matrix`.
    :returns: Array of length ``n``; 1.0 for isolated nodes.
    :reference: Tutte's directed matrix-tree theorem; Craciun et al.,
        *Toric dynamical systems* (2009).
    """
    rho = np.zeros(K.shape[0], dtype=float)
    for component in nx.weakly_connected_components(graph):
        nodes = sorted(component)
        if len(nodes) == 1:
            rho[nodes[0]] = 1.0
            continue
        W = K[np.ix_(nodes, nodes)].copy()
        np.fill_diagonal(W, 0.0)
        L = np.diag(W.sum(axis=1)) - W
        for a, node in enumerate(nodes):
            keep = [b for b in range(len(nodes)) if b != a]
            rho[node] = np.linalg.det(L[np.ix_(keep, keep)])
    return rho


def is_complex_balanced(network, rates: RateAssignment, *, tol: float = 1e-9) -> bool:
    """
    Whether the mass-action system with the given rate constants admits a
    positive complex-balanced steady state.

    Deficiency-zero networks are complex balanced exactly when they are
    weakly reversible. Otherwise the candidate complex values ``rho`` come
    from :func:`matrix_tree`; the network is complex balanced when every
    ``rho`` is positive and :math:`B^T \\log \\rho` lies in the image of
    :math:`S^T`.

    :param network: Flat mass-action network.
    :param rates: Parameter values (see :func:`rate_values`).
    :param tol: Relative tolerance of the image membership test.
    :returns: True if complex balanced.
    :raises ParameterMismatchError: On missing or unknown parameters.
    :raises ValueError: If the network is not mass action.
    """
    ks = rate_values(network, rates)
    if deficiency(network) == 0:
        return is_weakly_reversible(network)
    if not is_weakly_reversible(network):
        return False

    rho = matrix_tree(incidence_graph(network), _rate_matrix(network, ks))
    if not np.all(rho > 0):
        LOGGER.warning("%s: non-positive spanning tree weights %s", network.name, rho)
        return False

    B = incidence_matrix(network, network.properties.incidence_format or MatrixFormat.DENSE)
    B = B.toarray() if sparse.issparse(B) else np.asarray(B)
    image = B.T.astype(float) @ np.log(rho)
    St = stoichiometric_matrix(network).T.astype(float)
    coef = np.linalg.lstsq(St, image, rcond=None)[0]
    residual = np.linalg.norm(St @ coef - image)
    return bool(residual <= tol * max(1.0, np.linalg.norm(image)))


# ---------------------------------------------------------------------------
# Detailed balance
# ---------------------------------------------------------------------------


def _close(a: float, b: float, abstol: float, reltol: float) -> bool:
    return math.isclose(a, b, rel_tol=reltol, abs_tol=abstol)


def is_detailed_balanced(
    network,
    rates: RateAssignment,
    *,
    abstol: float = 0.0,
    reltol: float = 1e-9,
) -> bool:
    """
    Whether the mass-action system with the given rate constants is
    detailed balanced.

    Requires reversibility. Forest-like deficiency-zero networks are always
    detailed balanced. Otherwise a spanning forest of the undirected
    incidence graph is built and

    - every edge outside the forest closes a cycle whose forward and reverse
      rate products must agree (circuit conditions);
    - for deficiency ``delta > 0``, each of the ``delta`` null vectors
      ``alpha`` of the forest's reaction vectors gives the condition
      ``prod k_fwd**alpha == prod k_rev**alpha`` (spanning forest conditions).

    :param network: Flat mass-action network.
    :param rates: Parameter values (see :func:`rate_values`).
    :param abstol: Absolute tolerance of the comparisons.
    :param reltol: Relative tolerance of the comparisons.
    :returns: True if detailed balanced.
    :raises InternalInconsistencyError: If the forest null space does not have
        dimension ``delta``.
    :reference: Feinberg, *Necessary and sufficient conditions for detailed
        balancing in mass action systems of arbitrary complexity* (1989).
    """
    ks = rate_values(network, rates)
    if not is_reversible(network):
        return False
    delta = deficiency(network)
    if is_forest_like(network) and delta == 0:
        return True

    K = _rate_matrix(network, ks)
    G = incidence_graph(network)
    U = nx.Graph()
    U.add_nodes_from(G)
    U.add_edges_from((u, v) for u, v in G.edges() if u != v)
    forest = nx.minimum_spanning_tree(U)

    for u, v in U.edges():
        if forest.has_edge(u, v):
            continue
        # forest path v -> ... -> u, closed by the edge u -> v
        cycle = nx.shortest_path(forest, v, u) + [v]
        steps = list(zip(cycle[:-1], cycle[1:]))
        fwd = math.prod(K[a, b] for a, b in steps)
        rev = math.prod(K[b, a] for a, b in steps)
        if not _close(fwd, rev, abstol, reltol):
            LOGGER.debug("%s: circuit condition fails on cycle %s", network.name, cycle)
            return False

    if delta > 0:
        Z = complex_stoich_matrix(network, MatrixFormat.DENSE)
        edges = list(forest.edges())
        S_F = sp.Matrix([[int(Z[i, v] - Z[i, u]) for u, v in edges] for i in range(Z.shape[0])])
        alphas = S_F.nullspace()
        if len(alphas) != delta:
            raise InternalInconsistencyError(
                f"Spanning forest null space has dimension {len(alphas)}, expected deficiency {delta}."
            )
        for alpha in alphas:
            a = [float(x) for x in alpha]
            fwd = math.prod(K[u, v] ** x for (u, v), x in zip(edges, a))
            rev = math.prod(K[v, u] ** x for (u, v), x in zip(edges, a))
            if not _close(fwd, rev, abstol, reltol):
                LOGGER.debug("%s: spanning forest condition fails for %s", network.name, a)
                return False
    return True
