from __future__ import annotations

import logging
from typing import Tuple, Union

import numpy as np
from scipy import sparse

from ..complexes import reaction_complexes
from ..properties import MatrixFormat
from ..utils import require_flat

LOGGER = logging.getLogger(__name__)

MatrixLike = Union[np.ndarray, sparse.csc_matrix]

__all__ = [
    "build_S_minus_plus",
    "build_S",
    "stoichiometric_matrix",
    "complex_stoich_matrix",
]


def _from_triplets(rows, cols, vals, shape, fmt: MatrixFormat) -> MatrixLike:
    if fmt is MatrixFormat.SPARSE:
        M = sparse.coo_matrix((vals, (rows, cols)), shape=shape, dtype=np.int64).tocsc()
        M.eliminate_zeros()
        return M
    M = np.zeros(shape, dtype=np.int64)
    np.add.at(M, (np.asarray(rows, dtype=int), np.asarray(cols, dtype=int)), vals)
    return M


# ---------------------------------------------------------------------------
# S⁻, S⁺ and S = S⁺ − S⁻  (stoichiometric matrices)
# ---------------------------------------------------------------------------


def build_S_minus_plus(
    network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE
) -> Tuple[MatrixLike, MatrixLike]:
    """
    Build the **substrate matrix** :math:`S^-` and **product matrix**
    :math:`S^+` of a network.

    Rows follow the analysis species (constant species are dropped, see
    :meth:`ReactionNetwork.species_map`), columns follow the reactions.

    :param network: Flat reaction network.
    :param fmt: Dense or sparse output.
    :returns: ``(S_minus, S_plus)``, each of shape ``(n_species, n_reactions)``
              with nonnegative integer entries.

    .. code-block:: python

        from crnkit.CRN.Props import stoich

        S_minus, S_plus = stoich.build_S_minus_plus(rn)
    """
    require_flat(network, "build_S_minus_plus")
    fmt = MatrixFormat(fmt)
    smap = network.species_map()
    shape = (network.num_species(), network.num_reactions())

    sides = []
    for attr in ("substrates", "products"):
        rows, cols, vals = [], [], []
        for j, rx in enumerate(network.reactions):
            for i, c in getattr(rx, attr).items():
                if i in smap:
                    rows.append(smap[i])
                    cols.append(j)
                    vals.append(c)
        sides.append(_from_triplets(rows, cols, vals, shape, fmt))
    return sides[0], sides[1]


def build_S(network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE) -> MatrixLike:
    """
    Build the **net stoichiometric matrix** :math:`S` defined by

    .. math::

        S = S^+ - S^-.

    :param network: Flat reaction network.
    :param fmt: Dense or sparse output.
    :returns: Integer matrix of shape ``(n_species, n_reactions)``.
    """
    S_minus, S_plus = build_S_minus_plus(network, fmt)
    S = S_plus - S_minus
    if sparse.issparse(S):
        S = sparse.csc_matrix(S)
        S.eliminate_zeros()
    return S


def stoichiometric_matrix(network) -> np.ndarray:
    """Dense net stoichiometric matrix; shorthand for ``build_S(network)``."""
    return build_S(network, MatrixFormat.DENSE)


# ---------------------------------------------------------------------------
# Complex composition matrix Z
# ---------------------------------------------------------------------------


def complex_stoich_matrix(
    network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE
) -> MatrixLike:
    """
    Complex composition matrix :math:`Z` (species × complexes).

    Column ``k`` holds the stoichiometry of complex ``k``, so that the net
    stoichiometric matrix factors as :math:`S = Z B`.

    The result is cached on ``network.properties`` together with its format.

    :param network: Flat reaction network.
    :param fmt: Dense or sparse output.
    :returns: Integer matrix of shape ``(n_species, n_complexes)``.
    """
    fmt = MatrixFormat(fmt)
    props = network.properties
    if props.complex_stoich_format is not fmt:
        complexes, _ = reaction_complexes(network, props.incidence_format or fmt)
        rows, cols, vals = [], [], []
        for k, rc in enumerate(complexes):
            for i, c in rc:
                rows.append(i)
                cols.append(k)
                vals.append(c)
        shape = (network.num_species(), len(complexes))
        props.complex_stoich_mat = _from_triplets(rows, cols, vals, shape, fmt)
        props.complex_stoich_format = fmt
        LOGGER.debug("%s: built %s complex stoichiometry matrix", network.name, fmt.value)
    return props.complex_stoich_mat
