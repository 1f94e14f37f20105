from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple, Union

import numpy as np
from scipy import sparse

from .exceptions import StructuralPreconditionError
from .properties import MatrixFormat
from .utils import merge_pairs, multiset_key, require_flat

LOGGER = logging.getLogger(__name__)

MatrixLike = Union[np.ndarray, sparse.csc_matrix]
ComplexMap = Dict["ReactionComplex", List[Tuple[int, int]]]

__all__ = [
    "ReactionComplex",
    "filter_constant_species",
    "reaction_complex_map",
    "reaction_complexes",
]


@dataclass(frozen=True)
class ReactionComplex:
    """
    A reaction complex: a multiset of species rows with positive coefficients.

    The pairs are stored sorted by species row with duplicates merged, so
    equality and hashing only depend on the multiset. The empty complex
    (``∅``) has no elements.

    :param elements: ``(species_row, coefficient)`` pairs in any order.
    :type elements: Tuple[Tuple[int, int], ...]

    .. code-block:: python

        ReactionComplex.from_pairs([2, 0, 2], [1, 1, 1])
        # ReactionComplex(elements=((0, 1), (2, 2)))
    """

    elements: Tuple[Tuple[int, int], ...] = ()

    def __post_init__(self) -> None:
        merged = merge_pairs([i for i, _ in self.elements], [c for _, c in self.elements])
        if any(c < 0 for c in merged.values()):
            raise ValueError(f"complex coefficients must be nonnegative: {self.elements}")
        object.__setattr__(self, "elements", multiset_key(merged))

    @classmethod
    def from_pairs(cls, species_ids: Sequence[int], stoich: Sequence[int]) -> "ReactionComplex":
        """Build a complex from parallel id / coefficient sequences."""
        if len(species_ids) != len(stoich):
            raise ValueError(
                f"species_ids and stoich differ in length ({len(species_ids)} != {len(stoich)})"
            )
        return cls(tuple(zip(species_ids, stoich)))

    @property
    def species_ids(self) -> List[int]:
        return [i for i, _ in self.elements]

    @property
    def stoichiometry(self) -> List[int]:
        return [c for _, c in self.elements]

    def is_empty(self) -> bool:
        return not self.elements

    def to_vector(self, n_species: int) -> np.ndarray:
        """
        Dense composition vector of length ``n_species``.

        :raises IndexError: If a species row is out of range.
        """
        vec = np.zeros(n_species, dtype=np.int64)
        for i, c in self.elements:
            vec[i] = c
        return vec

    def label(self, names: Sequence[str]) -> str:
        """Readable form such as ``"2*A + B"`` (``"∅"`` when empty)."""
        if not self.elements:
            return "∅"
        return " + ".join(names[i] if c == 1 else f"{c}*{names[i]}" for i, c in self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(self.elements)


def filter_constant_species(
    side: Mapping[int, int], species: Sequence, species_map: Mapping[int, int]
) -> Tuple[List[int], List[int]]:
    """
    Translate one side of a reaction into analysis rows, dropping constant
    species.

    :param side: Mapping species index -> coefficient.
    :param species: Full species list of the network.
    :param species_map: Species index -> analysis row
        (see :meth:`ReactionNetwork.species_map`).
    :returns: ``(rows, coefficients)``.
    """
    if all(not species[i].constant for i in side):
        return [species_map[i] for i in side], list(side.values())
    ids: List[int] = []
    stoich: List[int] = []
    for i, c in side.items():
        if species[i].constant:
            continue
        ids.append(species_map[i])
        stoich.append(c)
    return ids, stoich


def reaction_complex_map(network) -> ComplexMap:
    """
    Ordered map from each reaction complex to the reactions it takes part in.

    Keys follow discovery order (reactions in order, substrate side before
    product side). Each value lists ``(reaction_index, -1)`` when the complex
    is the substrate of that reaction and ``(reaction_index, +1)`` when it is
    the product. The result is cached on ``network.properties``.

    :param network: Flat reaction network.
    :returns: Complex -> list of ``(reaction_index, sign)``.
    :raises UnsupportedCompositionError: If the network has sub-systems.
    :raises StructuralPreconditionError: If the network has no reactions.
    """
    require_flat(network, "reaction_complex_map")
    props = network.properties
    if props.complex_to_rxs_map:
        return props.complex_to_rxs_map
    if network.num_reactions() == 0:
        raise StructuralPreconditionError(
            "There must be at least one reaction to find reaction complexes."
        )

    smap = network.species_map()
    cmap: ComplexMap = {}
    for j, rx in enumerate(network.reactions):
        for side, sign in ((rx.substrates, -1), (rx.products, 1)):
            ids, stoich = filter_constant_species(side, network.species, smap)
            cmap.setdefault(ReactionComplex.from_pairs(ids, stoich), []).append((j, sign))

    props.complex_to_rxs_map = cmap
    LOGGER.debug("%s: %d reaction complexes", network.name, len(cmap))
    return cmap


def reaction_complexes(
    network, fmt: Union[MatrixFormat, str] = MatrixFormat.DENSE
) -> Tuple[List[ReactionComplex], MatrixLike]:
    """
    Reaction complexes and the complex-reaction incidence matrix ``B``.

    ``B[i, j]`` is -1 when complex ``i`` is the substrate complex of reaction
    ``j`` and +1 when it is the product complex; a reaction whose two sides
    are the same complex gives a zero column.

    :param network: Flat reaction network.
    :param fmt: ``MatrixFormat.DENSE`` (``numpy.ndarray``) or
        ``MatrixFormat.SPARSE`` (``scipy.sparse.csc_matrix``). A cached matrix
        in the other format is rebuilt.
    :returns: ``(complexes, B)``.
    """
    fmt = MatrixFormat(fmt)
    props = network.properties
    if props.incidence_format is not fmt or not props.complexes:
        cmap = reaction_complex_map(network)
        B = _incidence_from_map(cmap, network.num_reactions(), fmt)
        props.complexes = list(cmap)
        props.incidence_mat = B
        props.incidence_format = fmt
        LOGGER.debug("%s: built %s incidence matrix %s", network.name, fmt.value, B.shape)
    return props.complexes, props.incidence_mat


def _incidence_from_map(cmap: ComplexMap, n_reactions: int, fmt: MatrixFormat) -> MatrixLike:
    shape = (len(cmap), n_reactions)
    if fmt is MatrixFormat.DENSE:
        B = np.zeros(shape, dtype=np.int64)
        for i, entries in enumerate(cmap.values()):
            for j, sign in entries:
                B[i, j] += sign
        return B

    rows: List[int] = []
    cols: List[int] = []
    vals: List[int] = []
    for i, entries in enumerate(cmap.values()):
        for j, sign in entries:
            rows.append(i)
            cols.append(j)
            vals.append(sign)
    # duplicates are summed by the conversion, so self-loops cancel out
    B = sparse.coo_matrix((vals, (rows, cols)), shape=shape, dtype=np.int64).tocsc()
    B.eliminate_zeros()
    return B
