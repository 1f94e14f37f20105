from __future__ import annotations

import logging
from functools import reduce
from math import gcd
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import sympy as sp
from scipy import sparse

from ..exceptions import (
    ConservationLawOverflowError,
    InternalInconsistencyError,
    StructuralPreconditionError,
)
from ..utils import lcm, require_flat
from .stoich import stoichiometric_matrix

LOGGER = logging.getLogger(__name__)

GAMMA = sp.IndexedBase("Γ")

__all__ = [
    "GAMMA",
    "integer_nullspace",
    "conservation_laws_from_matrix",
    "conservation_laws",
    "stoichiometric_rank",
    "conserved_equations",
    "conservation_law_constants",
    "conserved_quantities",
    "check_conserved_initial_conditions",
]


# ---------------------------------------------------------------------------
# Exact integer null space
# ---------------------------------------------------------------------------


def _primitive(v: np.ndarray) -> np.ndarray:
    g = reduce(gcd, (abs(int(x)) for x in v), 0)
    return v // g if g > 1 else v


def _normalize_order(col_order: Optional[Sequence[int]], n: int) -> List[int]:
    if col_order is None:
        return list(range(n))
    order = [int(c) for c in col_order]
    if len(set(order)) != len(order) or any(not 0 <= c < n for c in order):
        raise ValueError(f"col_order must list distinct column indices in [0, {n}), got {col_order}")
    seen = set(order)
    return order + [c for c in range(n) if c not in seen]


def integer_nullspace(
    A: Any,
    col_order: Optional[Sequence[int]] = None,
    dtype: Any = np.int64,
) -> Tuple[np.ndarray, List[int]]:
    """
    Basis of the right null space of an integer matrix, with integer entries.

    Uses fraction-free Gauss–Jordan elimination: every row update is
    ``pivot * row - factor * pivot_row`` followed by division by the row gcd,
    so no rational arithmetic is needed. Columns are scanned in
    ``col_order``; each column that receives no pivot yields one basis vector
    that is nonzero on that free column and on pivot columns only.

    The elimination runs in a caller-chosen ``dtype`` so that fixed-width
    overflow can be detected and reported. ``sympy.Matrix.nullspace`` works
    over the rationals in arbitrary precision, which leaves nothing to
    detect and is slower on large networks.

    :param A: Integer matrix (dense or ``scipy.sparse``).
    :param col_order: Preferred column order. Columns listed first are
        preferred as pivots; unlisted columns follow in natural order.
    :param dtype: Integer dtype of the elimination. ``object`` gives
        arbitrary precision Python integers; fixed-width dtypes wrap on
        overflow, which callers must detect.
    :returns: ``(N, order)`` where ``N`` has shape ``(nullity, n_cols)`` with
              ``A @ N.T == 0`` and ``order`` lists the pivot columns followed
              by the free columns (row ``k`` of ``N`` belongs to free column
              ``order[rank + k]``).
    :raises ValueError: On an invalid ``col_order``.
    :raises OverflowError: If a basis entry does not fit in ``dtype``.
    """
    if sparse.issparse(A):
        A = A.toarray()
    M = np.array(A).astype(dtype)
    m, n = M.shape
    order = _normalize_order(col_order, n)

    pivots: List[Tuple[int, int]] = []
    row = 0
    for col in order:
        if row == m:
            break
        candidates = [i for i in range(row, m) if M[i, col] != 0]
        if not candidates:
            continue
        p = min(candidates, key=lambda i: abs(int(M[i, col])))
        if p != row:
            M[[row, p]] = M[[p, row]]
        if M[row, col] < 0:
            M[row] = -M[row]
        M[row] = _primitive(M[row])
        piv = M[row, col]
        for i in range(m):
            if i != row and M[i, col] != 0:
                M[i] = _primitive(piv * M[i] - M[i, col] * M[row])
        pivots.append((row, col))
        row += 1

    pivot_cols = [c for _, c in pivots]
    taken = set(pivot_cols)
    free_cols = [c for c in order if c not in taken]

    basis: List[List[int]] = []
    for f in free_cols:
        involved = [(r, c) for r, c in pivots if M[r, f] != 0]
        L = reduce(lcm, (int(M[r, c]) for r, c in involved), 1)
        v = [0] * n
        v[f] = L
        for r, c in involved:
            v[c] = -int(M[r, f]) * (L // int(M[r, c]))
        g = reduce(gcd, (abs(x) for x in v), 0)
        basis.append([x // g for x in v])

    N = np.array(basis, dtype=dtype).reshape(len(basis), n)
    return N, pivot_cols + free_cols


def _exact(a: np.ndarray) -> np.ndarray:
    return np.vectorize(int, otypes=[object])(a) if a.size else a.astype(object)


# ---------------------------------------------------------------------------
# Conservation laws
# ---------------------------------------------------------------------------


def conservation_laws_from_matrix(
    S: Any,
    col_order: Optional[Sequence[int]] = None,
    dtype: Any = np.int64,
) -> Tuple[np.ndarray, List[int]]:
    """
    Integer conservation laws of a stoichiometric matrix.

    Rows of the returned ``C`` span the left null space of ``S`` (so
    ``C @ S == 0``); a row whose entries are all ``<= 0`` is negated. The
    result is verified against ``S`` in exact integer arithmetic.

    :param S: Species × reactions stoichiometric matrix.
    :param col_order: Species preference order (see :func:`integer_nullspace`).
    :param dtype: Integer dtype used for the computation and the result.
    :returns: ``(C, order)``.
    :raises ConservationLawOverflowError: If ``dtype`` cannot represent ``S``
        or the computed laws, or if ``C @ S != 0``.
    """
    if sparse.issparse(S):
        S = S.toarray()
    S = np.asarray(S)
    exact_S = _exact(S)

    def _overflow(detail: str) -> ConservationLawOverflowError:
        return ConservationLawOverflowError(
            f"Conservation law computation with dtype {np.dtype(dtype).name} failed: {detail}. "
            "Rerun with a wider integer dtype, e.g. dtype=object for arbitrary precision."
        )

    if np.any(_exact(S.astype(dtype)) != exact_S):
        raise _overflow("the stoichiometric matrix does not fit in the dtype")
    try:
        C, order = integer_nullspace(S.T, col_order=col_order, dtype=dtype)
    except OverflowError as exc:
        raise _overflow(str(exc)) from exc

    for k in range(C.shape[0]):
        if np.all(C[k] <= 0):
            C[k] = -C[k]

    if np.any(_exact(C).dot(exact_S) != 0):
        raise _overflow("the laws do not satisfy C @ S == 0")
    return C, order


def conservation_laws(
    network,
    col_order: Optional[Sequence[int]] = None,
    dtype: Any = None,
) -> np.ndarray:
    """
    Conservation law matrix of a network (laws × analysis species).

    The first call also caches the stoichiometric rank, the nullity, the
    split into independent and dependent species and the conserved
    equations. Later calls return the cached matrix; ``col_order`` and
    ``dtype`` only apply to the first computation (use
    ``network.properties.reset()`` to recompute). A later call whose
    ``col_order`` or ``dtype`` differs from the cached request logs a
    warning.

    :param network: Flat reaction network.
    :param col_order: Species preference order: species listed first are
        kept as independent species.
    :param dtype: Integer dtype, see :func:`conservation_laws_from_matrix`.
        Defaults to ``np.int64``.
    :returns: Integer matrix ``C`` with ``C @ S == 0``.

    .. code-block:: python

        rn = ReactionNetwork.from_mappings(
            [(["A", "B"], ["C"], "k1"), (["C"], ["A", "B"], "k2")]
        )
        conservation_laws(rn)
        # array([[-1,  1,  0],
        #        [ 1,  0,  1]])
    """
    require_flat(network, "conservation_laws")
    props = network.properties
    requested = _normalize_order(col_order, network.num_species())
    if props.conservation_mat is not None:
        if col_order is not None and requested != props.requested_col_order:
            LOGGER.warning(
                "%s: conservation laws already cached for col_order=%s; ignoring col_order=%s",
                network.name,
                props.requested_col_order,
                list(col_order),
            )
        if dtype is not None and np.dtype(dtype) != props.conservation_dtype:
            LOGGER.warning(
                "%s: conservation laws already cached with dtype %s; ignoring dtype %s",
                network.name,
                props.conservation_dtype,
                np.dtype(dtype),
            )
        return props.conservation_mat

    if dtype is None:
        dtype = np.int64
    S = stoichiometric_matrix(network)
    C, order = conservation_laws_from_matrix(S, col_order=requested, dtype=dtype)
    nullity = C.shape[0]
    rank = network.num_species() - nullity
    indep, dep = order[:rank], order[rank:]
    eqs, defs, constants = _conservation_equations(network, C, indep, dep)

    props.conservation_mat = C
    props.col_order = order
    props.requested_col_order = requested
    props.conservation_dtype = np.dtype(dtype)
    props.rank = rank
    props.nullity = nullity
    props.indep_species = indep
    props.dep_species = dep
    props.conserved_constants = constants
    props.conserved_eqs = eqs
    props.constant_defs = defs
    LOGGER.debug("%s: rank %d, %d conservation laws", network.name, rank, nullity)
    return C


def _conservation_equations(
    network, C: np.ndarray, indep: List[int], dep: List[int]
) -> Tuple[List[sp.Eq], List[sp.Eq], List[sp.Indexed]]:
    syms = network.species_symbols()
    constants = [GAMMA[i] for i in range(len(dep))]
    eqs: List[sp.Eq] = []
    defs: List[sp.Eq] = []
    for i, d in enumerate(dep):
        scale = int(C[i, d])
        if scale == 0:
            raise InternalInconsistencyError(
                "Found a zero in the conservation law matrix where one was not expected."
            )
        terms = sp.Add(*[sp.Rational(int(C[i, j]), scale) * syms[j] for j in indep if C[i, j] != 0])
        eqs.append(sp.Eq(syms[d], constants[i] - terms))
        defs.append(sp.Eq(constants[i], syms[d] + terms))
    return eqs, defs, constants


def stoichiometric_rank(network) -> int:
    """Rank of the net stoichiometric matrix (exact)."""
    conservation_laws(network)
    return network.properties.rank


def conserved_equations(network) -> List[sp.Eq]:
    """
    Equations eliminating the dependent species, one per conservation law:
    ``dep_i = Γ[i] - Σ (c_ij / c_i,dep) * indep_j``.
    """
    conservation_laws(network)
    return network.properties.conserved_eqs


def conservation_law_constants(network) -> List[sp.Eq]:
    """Definitions ``Γ[i] = dep_i + Σ (c_ij / c_i,dep) * indep_j``."""
    conservation_laws(network)
    return network.properties.constant_defs


def conserved_quantities(state: Any, C: Any) -> np.ndarray:
    """
    Values of the conserved quantities at ``state``: ``C @ state``.

    :param state: Concentrations of the analysis species.
    :param C: Conservation law matrix.
    :returns: One value per law.
    """
    return np.asarray(C) @ np.asarray(state)


def check_conserved_initial_conditions(network, species_with_values: Iterable[Any]) -> None:
    """
    Ensure initial values are supplied when conservation laws must be
    eliminated.

    :param network: Reaction network (flattened if needed).
    :param species_with_values: Species names, :class:`Species` objects or
        sympy symbols that have initial values.
    :raises StructuralPreconditionError: If the network has conservation laws
        but none of its species has an initial value.
    """
    flat = network.flatten() if network.systems else network
    given = {getattr(s, "name", str(s)) for s in species_with_values}
    if any(s.name in given for s in flat.species):
        return
    if conserved_equations(flat):
        raise StructuralPreconditionError(
            "Eliminating conservation laws requires initial values for the species; "
            "none of the network's species were given one."
        )
