from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import sympy as sp

from .properties import MatrixFormat, NetworkProperties
from .utils import as_int, parse_side

LOGGER = logging.getLogger(__name__)

RateLike = Union[str, int, float, sp.Expr]


def as_rate(rate: RateLike) -> sp.Expr:
    """
    Convert a rate specification into a :mod:`sympy` expression.

    Plain identifiers become symbols directly (so names such as ``"E"`` or
    ``"I"`` are never mistaken for sympy constants); other strings are parsed
    with :func:`sympy.sympify`.

    :param rate: Symbol name, expression string, number or sympy expression.
    :returns: Sympy expression.
    """
    if isinstance(rate, str):
        return sp.Symbol(rate) if rate.isidentifier() else sp.sympify(rate)
    return sp.sympify(rate)


@dataclass(frozen=True)
class Species:
    """
    A single chemical species in a reaction network.

    :param name: Human-readable identifier (e.g. 'A', 'ES1', 'KKK').
    :type name: str
    :param constant: Constant species appear in reactions but are held fixed;
        they are dropped from complexes and stoichiometric matrices.
    :type constant: bool
    :param metadata: Optional arbitrary metadata. Ignored for equality and
        hashing.
    :type metadata: Dict[str, Any]
    """

    name: str
    constant: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def symbol(self) -> sp.Symbol:
        """Sympy symbol named after the species."""
        return sp.Symbol(self.name)


@dataclass
class Reaction:
    """
    A single reaction ``substrates -> products``.

    :param substrates: Mapping species index -> stoichiometric coefficient.
    :type substrates: Dict[int, int]
    :param products: Mapping species index -> stoichiometric coefficient.
    :type products: Dict[int, int]
    :param rate: Rate constant or expression; its free symbols are the
        parameters of the reaction.
    :type rate: sympy.Expr
    :param only_use_rate: When True the rate is used verbatim instead of being
        scaled by mass-action monomials.
    :type only_use_rate: bool
    :param metadata: Optional metadata such as annotations or provenance.
    :type metadata: Dict[str, Any]
    """

    substrates: Dict[int, int]
    products: Dict[int, int]
    rate: Any = 1
    only_use_rate: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.substrates = _clean_side(self.substrates)
        self.products = _clean_side(self.products)
        self.rate = as_rate(self.rate)

    def species_ids(self) -> List[int]:
        """Indices of every species taking part, substrates first."""
        seen = dict.fromkeys(list(self.substrates) + list(self.products))
        return list(seen)

    def net_stoichiometry(self) -> Dict[int, int]:
        """Net change per species index (zero entries removed)."""
        net: Dict[int, int] = dict(self.products)
        for i, c in self.substrates.items():
            net[i] = net.get(i, 0) - c
        return {i: c for i, c in net.items() if c != 0}


def _clean_side(side: Mapping[int, Any]) -> Dict[int, int]:
    out: Dict[int, int] = {}
    for i, c in side.items():
        c = as_int(c)
        if c < 0:
            raise ValueError(f"negative stoichiometric coefficient {c} for species {i}")
        if c:
            out[int(i)] = out.get(int(i), 0) + c
    return out


def _collect_parameters(
    reactions: Sequence[Reaction], species_names: Iterable[str]
) -> List[sp.Symbol]:
    taken = set(species_names)
    params: Dict[sp.Symbol, None] = {}
    for rx in reactions:
        for sym in sorted(rx.rate.free_symbols, key=lambda s: s.name):
            if sym.name not in taken:
                params.setdefault(sym, None)
    return list(params)


@dataclass(eq=False)
class ReactionNetwork:
    """
    Chemical reaction network with a lazily filled structural cache.

    The structural quantities (complexes, incidence matrix, linkage classes,
    deficiency, conservation laws, ...) are computed on first request and
    stored in :attr:`properties`. The cache is never invalidated
    automatically: call ``network.properties.reset()`` after mutating
    :attr:`species` or :attr:`reactions`.

    Typical usage::

        from crnkit.CRN import ReactionNetwork

        rn = ReactionNetwork.from_mappings(
            [
                (["E", "S"], ["ES"], "k1"),
                (["ES"], ["E", "S"], "k2"),
                (["ES"], ["E", "P"], "k3"),
            ],
            name="mm",
        )
        rn.deficiency()            # -> 0
        rn.conservation_laws()     # -> 2 x 4 integer matrix

    :param species: Ordered list of species.
    :type species: List[Species]
    :param reactions: Ordered list of reactions; species indices refer to
        ``species``.
    :type reactions: List[Reaction]
    :param parameters: Parameter symbols. Defaults to the free symbols of the
        rates (first appearance order) that are not species names.
    :type parameters: Optional[List[sympy.Symbol]]
    :param name: Network name, used for subnetwork and namespace names.
    :type name: str
    :param systems: Nested sub-systems; analyses require :meth:`flatten`.
    :type systems: List[ReactionNetwork]
    """

    species: List[Species]
    reactions: List[Reaction]
    parameters: Optional[List[sp.Symbol]] = None
    name: str = "rn"
    systems: List["ReactionNetwork"] = field(default_factory=list)
    properties: NetworkProperties = field(
        default_factory=NetworkProperties, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.species = list(self.species)
        self.reactions = list(self.reactions)
        self.systems = list(self.systems)
        names = [s.name for s in self.species]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate species names in network {self.name!r}")
        n = len(self.species)
        for j, rx in enumerate(self.reactions):
            bad = [i for i in rx.species_ids() if not 0 <= i < n]
            if bad:
                raise ValueError(
                    f"reaction {j} refers to unknown species indices {bad} "
                    f"(network has {n} species)"
                )
        if self.parameters is None:
            self.parameters = _collect_parameters(self.reactions, names)
        else:
            self.parameters = [as_rate(p) for p in self.parameters]

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_mappings(
        cls,
        reactions: Iterable[Sequence[Any]],
        *,
        name: str = "rn",
        constant_species: Iterable[str] = (),
        species: Optional[Sequence[str]] = None,
        parameters: Optional[Sequence[RateLike]] = None,
    ) -> "ReactionNetwork":
        """
        Build a network from ``(substrates, products, rate[, only_use_rate])``
        tuples.

        Each side is ``None`` (the empty complex), a species name, a list of
        names (repeats add up) or a ``{name: coefficient}`` mapping. Species
        are indexed in order of first appearance unless ``species`` fixes the
        order up front.

        :param reactions: Reaction tuples.
        :param name: Network name.
        :param constant_species: Names of species held constant.
        :param species: Optional explicit species order; names met in the
            reactions but not listed are appended.
        :param parameters: Optional explicit parameter order.
        :returns: New network.
        :rtype: ReactionNetwork
        :raises ValueError: On a malformed reaction tuple.
        """
        constant = set(constant_species)
        index: Dict[str, int] = {}
        order: List[str] = []

        def _idx(sname: str) -> int:
            if sname not in index:
                index[sname] = len(order)
                order.append(sname)
            return index[sname]

        for sname in species or ():
            _idx(sname)

        rxns: List[Reaction] = []
        for item in reactions:
            if len(item) not in (3, 4):
                raise ValueError(
                    f"expected (substrates, products, rate[, only_use_rate]), got {item!r}"
                )
            subs, prods, rate = item[0], item[1], item[2]
            only = bool(item[3]) if len(item) == 4 else False
            rxns.append(
                Reaction(
                    substrates={_idx(k): v for k, v in parse_side(subs).items()},
                    products={_idx(k): v for k, v in parse_side(prods).items()},
                    rate=rate,
                    only_use_rate=only,
                )
            )

        unknown = constant.difference(order)
        if unknown:
            LOGGER.warning("Constant species %s do not occur in any reaction.", sorted(unknown))
        sp_list = [Species(s, constant=s in constant) for s in order]
        return cls(species=sp_list, reactions=rxns, parameters=parameters, name=name)

    # ------------------------------------------------------------------
    # Basic accessors
    # ------------------------------------------------------------------
    @property
    def analysis_species(self) -> List[Species]:
        """Non-constant species, in declaration order."""
        return [s for s in self.species if not s.constant]

    def species_map(self) -> Dict[int, int]:
        """Map a species index to its row in the stoichiometric matrices."""
        rows = [i for i, s in enumerate(self.species) if not s.constant]
        return {i: r for r, i in enumerate(rows)}

    def species_symbols(self) -> List[sp.Symbol]:
        """Sympy symbols of the analysis species (matrix row order)."""
        return [s.symbol for s in self.analysis_species]

    def parameter_map(self) -> Dict[sp.Symbol, int]:
        return {p: i for i, p in enumerate(self.parameters)}

    def num_species(self) -> int:
        """Number of analysis (non-constant) species."""
        return len(self.analysis_species)

    def num_reactions(self) -> int:
        return len(self.reactions)

    def num_params(self) -> int:
        return len(self.parameters)

    def reaction_rates(self) -> List[sp.Expr]:
        return [rx.rate for rx in self.reactions]

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------
    def flatten(self, name: Optional[str] = None) -> "ReactionNetwork":
        """
        Merge all sub-systems into a single flat network.

        Species and parameters of a sub-system ``sub`` are renamed to
        ``"sub.<name>"`` (recursively) and rate expressions are rewritten
        accordingly. The result owns a fresh, empty property cache.

        :param name: Name of the flattened network (defaults to this one's).
        :returns: New network without sub-systems.
        :rtype: ReactionNetwork
        """
        species = list(self.species)
        reactions = [replace(rx, metadata=dict(rx.metadata)) for rx in self.reactions]
        params = list(self.parameters)

        for sub in self.systems:
            flat = sub.flatten()
            prefix = f"{sub.name}."
            renames = {p: sp.Symbol(prefix + p.name) for p in flat.parameters}
            offset = len(species)
            species.extend(replace(s, name=prefix + s.name) for s in flat.species)
            params.extend(renames[p] for p in flat.parameters)
            for s in flat.species:
                renames.setdefault(s.symbol, sp.Symbol(prefix + s.name))
            for rx in flat.reactions:
                reactions.append(
                    Reaction(
                        substrates={i + offset: c for i, c in rx.substrates.items()},
                        products={i + offset: c for i, c in rx.products.items()},
                        rate=rx.rate.xreplace(renames),
                        only_use_rate=rx.only_use_rate,
                        metadata=dict(rx.metadata),
                    )
                )

        LOGGER.debug(
            "Flattened %s: %d species, %d reactions", self.name, len(species), len(reactions)
        )
        return ReactionNetwork(
            species=species,
            reactions=reactions,
            parameters=params,
            name=name or self.name,
        )

    # ------------------------------------------------------------------
    # Convenience analysis wrappers
    # ------------------------------------------------------------------
    def reaction_complexes(self, fmt: MatrixFormat = MatrixFormat.DENSE) -> Tuple[list, Any]:
        """See :func:`crnkit.CRN.complexes.reaction_complexes`."""
        from .complexes import reaction_complexes

        return reaction_complexes(self, fmt)

    def linkage_classes(self) -> List[List[int]]:
        """See :func:`crnkit.CRN.Props.linkage.linkage_classes`."""
        from .Props.linkage import linkage_classes

        return linkage_classes(self)

    def deficiency(self) -> int:
        """See :func:`crnkit.CRN.Props.deficiency.deficiency`."""
        from .Props.deficiency import deficiency

        return deficiency(self)

    def is_reversible(self) -> bool:
        from .Props.linkage import is_reversible

        return is_reversible(self)

    def is_weakly_reversible(self) -> bool:
        from .Props.linkage import is_weakly_reversible

        return is_weakly_reversible(self)

    def conservation_laws(self, **kwargs: Any):
        """See :func:`crnkit.CRN.Props.conservation.conservation_laws`."""
        from .Props.conservation import conservation_laws

        return conservation_laws(self, **kwargs)

    def is_complex_balanced(self, rates: Mapping[Any, float], **kwargs: Any) -> bool:
        from .Props.balance import is_complex_balanced

        return is_complex_balanced(self, rates, **kwargs)

    def is_detailed_balanced(self, rates: Mapping[Any, float], **kwargs: Any) -> bool:
        from .Props.balance import is_detailed_balanced

        return is_detailed_balanced(self, rates, **kwargs)

    def robust_species(self) -> List[int]:
        from .Props.robustness import robust_species

        return robust_species(self)

    def __repr__(self) -> str:
        return (
            f"ReactionNetwork(name={self.name!r}, species={len(self.species)}, "
            f"reactions={len(self.reactions)}, systems={len(self.systems)})"
        )
