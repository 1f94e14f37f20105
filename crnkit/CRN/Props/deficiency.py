"""Deficiency, linkage-class subnetworks and the :class:`DeficiencyAnalyzer`.

The free functions compute and cache the structural quantities on the
network's :class:`~crnkit.CRN.properties.NetworkProperties`;
:class:`DeficiencyAnalyzer` is a chainable summary object on top of them
that also runs the structural Feinberg-style checks (Deficiency Zero,
Deficiency One, regularity).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import Any, Dict, List, Optional

from ..complexes import reaction_complex_map
from ..core import Reaction, ReactionNetwork
from .conservation import conservation_laws
from .incidence import incidence_graph
from .linkage import (
    is_weakly_reversible,
    linkage_classes,
    terminal_linkage_classes,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "deficiency",
    "subnetworks",
    "linkage_deficiencies",
    "DeficiencySummary",
    "DeficiencyAnalyzer",
]


# ---------------------------------------------------------------------------
# Cached structural quantities
# ---------------------------------------------------------------------------


def deficiency(network) -> int:
    """
    Network deficiency :math:`\\delta = n - \\ell - s`.

    ``n`` is the number of complexes, ``ell`` the number of linkage classes
    and ``s`` the rank of the stoichiometric matrix.

    :param network: Flat reaction network.
    :returns: Nonnegative integer. Cached.
    :reference: Feinberg, *Foundations of Chemical Reaction Network Theory*.
    """
    props = network.properties
    if props.deficiency is None:
        conservation_laws(network)
        n = incidence_graph(network).number_of_nodes()
        ell = len(linkage_classes(network))
        props.deficiency = n - ell - props.rank
        LOGGER.debug(
            "%s: deficiency %d (n=%d, l=%d, s=%d)", network.name, props.deficiency, n, ell, props.rank
        )
    return props.deficiency


def _subnetwork(network, rx_idxs: List[int], name: str) -> ReactionNetwork:
    used = sorted({i for j in rx_idxs for i in network.reactions[j].species_ids()})
    varying = [i for i in used if not network.species[i].constant]
    fixed = [i for i in used if network.species[i].constant]
    remap = {old: new for new, old in enumerate(varying + fixed)}

    reactions = []
    symbols = set()
    for j in rx_idxs:
        rx = network.reactions[j]
        symbols |= rx.rate.free_symbols
        reactions.append(
            Reaction(
                substrates={remap[i]: c for i, c in rx.substrates.items()},
                products={remap[i]: c for i, c in rx.products.items()},
                rate=rx.rate,
                only_use_rate=rx.only_use_rate,
                metadata=dict(rx.metadata),
            )
        )
    return ReactionNetwork(
        species=[network.species[i] for i in varying + fixed],
        reactions=reactions,
        parameters=[p for p in network.parameters if p in symbols],
        name=name,
    )


def subnetworks(network) -> List[ReactionNetwork]:
    """
    One subnetwork per linkage class.

    Subnetwork ``i`` (named ``f"{network.name}_{i}"``, 1-based) holds the
    reactions of linkage class ``i`` in parent order, the species they use
    (non-constant species in parent order, then constant ones) and the
    parameters their rates reference. Each subnetwork has its own cache.

    :param network: Flat reaction network.
    :returns: List aligned with :func:`linkage_classes`. Cached.
    """
    props = network.properties
    if not props.subnetworks:
        lcs = linkage_classes(network)
        complex_rxs = [[j for j, _ in entries] for entries in reaction_complex_map(network).values()]
        props.subnetworks = [
            _subnetwork(
                network,
                sorted({j for k in lc for j in complex_rxs[k]}),
                f"{network.name}_{i + 1}",
            )
            for i, lc in enumerate(lcs)
        ]
    return props.subnetworks


def linkage_deficiencies(network) -> List[int]:
    """
    Per-linkage-class deficiencies :math:`\\delta_i = n_i - 1 - s_i`.

    :param network: Flat reaction network.
    :returns: One value per linkage class.
    """
    out = []
    for lc, sub in zip(linkage_classes(network), subnetworks(network)):
        conservation_laws(sub)
        out.append(len(lc) - 1 - sub.properties.rank)
    return out


# ---------------------------------------------------------------------------
# Structural summary and Feinberg-style checks
# ---------------------------------------------------------------------------


@dataclass
class DeficiencySummary:
    """
    Snapshot of the structural counts behind the deficiency.

    :param n_species: Analysis (non-constant) species.
    :param n_reactions: Reactions, parallel ones included.
    :param n_complexes: Distinct reaction complexes.
    :param n_linkage_classes: Weakly connected components of the incidence graph.
    :param stoich_rank: Rank of the net stoichiometric matrix.
    :param deficiency: ``n_complexes - n_linkage_classes - stoich_rank``.
    :param weakly_reversible: Every linkage class is strongly connected.
    """

    n_species: int
    n_reactions: int
    n_complexes: int
    n_linkage_classes: int
    stoich_rank: int
    deficiency: int
    weakly_reversible: bool


class DeficiencyAnalyzer:
    """
    Chainable view of a network's deficiency data with the structural tests
    of the Deficiency Zero and Deficiency One theorems.

    Nothing is computed in the constructor. ``compute_*`` methods fill the
    analyzer from the network's property cache and return ``self``.

    :param network: Flat :class:`~crnkit.CRN.core.ReactionNetwork`.

    .. code-block:: python

        analyzer = DeficiencyAnalyzer(rn).compute_summary().compute_linkage_deficiencies()
        analyzer.check_deficiency_one()
        print(analyzer.explain())
    """

    def __init__(self, network: ReactionNetwork) -> None:
        self._network = network
        self._summary: Optional[DeficiencySummary] = None
        self._per_class: Optional[List[int]] = None

    def compute_summary(self) -> "DeficiencyAnalyzer":
        """Fill :attr:`summary` (counts, rank, deficiency, weak reversibility)."""
        rn = self._network
        delta = deficiency(rn)
        self._summary = DeficiencySummary(
            n_species=rn.num_species(),
            n_reactions=rn.num_reactions(),
            n_complexes=incidence_graph(rn).number_of_nodes(),
            n_linkage_classes=len(linkage_classes(rn)),
            stoich_rank=int(rn.properties.rank),
            deficiency=int(delta),
            weakly_reversible=bool(is_weakly_reversible(rn)),
        )
        return self

    def compute_linkage_deficiencies(self) -> "DeficiencyAnalyzer":
        """Fill :attr:`linkage_deficiencies` via :func:`linkage_deficiencies`."""
        self._per_class = linkage_deficiencies(self._network)
        return self

    def _require(self, what: str, per_class: bool = False) -> DeficiencySummary:
        if self._summary is None:
            raise RuntimeError(f"call compute_summary() before {what}()")
        if per_class and self._per_class is None:
            raise RuntimeError(f"call compute_linkage_deficiencies() before {what}()")
        return self._summary

    def check_deficiency_zero(self) -> bool:
        """
        Hypotheses of the Deficiency Zero Theorem: ``delta == 0`` and weak
        reversibility.

        :raises RuntimeError: Without a prior :meth:`compute_summary`.
        :reference: Feinberg (1972); Horn (1972).
        """
        s = self._require("check_deficiency_zero")
        return s.deficiency == 0 and s.weakly_reversible

    def check_deficiency_one(self) -> bool:
        """
        Structural hypotheses of the Deficiency One Theorem:

        - no linkage class has deficiency above one,
        - the linkage-class deficiencies add up to ``delta``,
        - the network is regular (see :meth:`check_regularity`).

        :raises RuntimeError: Unless both ``compute_*`` methods have run.
        :reference: Feinberg, *Chemical reaction network structure and the
            stability of complex isothermal reactors* (1987).
        """
        s = self._require("check_deficiency_one", per_class=True)
        if max(self._per_class, default=0) > 1 or sum(self._per_class) != s.deficiency:
            return False
        return self.check_regularity()

    def check_regularity(self) -> bool:
        """True when every linkage class holds exactly one terminal strong linkage class."""
        rn = self._network
        lcs = linkage_classes(rn)
        owner = {k: i for i, lc in enumerate(lcs) for k in lc}
        hits = [0] * len(lcs)
        for tlc in terminal_linkage_classes(rn):
            hits[owner[tlc[0]]] += 1
        return all(h == 1 for h in hits)

    @property
    def summary(self) -> Optional[DeficiencySummary]:
        return self._summary

    @property
    def linkage_deficiencies(self) -> Optional[List[int]]:
        return self._per_class

    def as_dict(self) -> Dict[str, Any]:
        """Plain dict of whatever has been computed so far."""
        out: Dict[str, Any] = asdict(self._summary) if self._summary is not None else {}
        if self._per_class is not None:
            out["linkage_deficiencies"] = list(self._per_class)
        return out

    def explain(self) -> str:
        """One-line description of the computed state."""
        s = self._summary
        if s is None:
            return "No computations performed yet; call compute_summary() first."
        return (
            f"{self._network.name}: Deficiency={s.deficiency}, "
            f"{s.n_complexes} complexes in {s.n_linkage_classes} linkage classes, "
            f"rank {s.stoich_rank}, "
            f"{'weakly reversible' if s.weakly_reversible else 'not weakly reversible'}"
        )

    def __repr__(self) -> str:
        delta = self._summary.deficiency if self._summary is not None else None
        return f"DeficiencyAnalyzer(network={self._network.name!r}, deficiency={delta})"
