from __future__ import annotations

import logging
from itertools import combinations
from typing import List

import numpy as np

from ..properties import MatrixFormat
from .deficiency import deficiency
from .incidence import incidence_graph
from .linkage import terminal_linkage_classes
from .stoich import complex_stoich_matrix

LOGGER = logging.getLogger(__name__)

__all__ = ["robust_species"]


def robust_species(network) -> List[int]:
    """
    Species with absolute concentration robustness (Shinar–Feinberg test).

    For a deficiency-one mass-action network, a species is robust when two
    non-terminal complexes differ in that species only. Networks of any other
    deficiency are not covered by the test and yield an empty list.

    The criterion is sufficient, not necessary, and assumes the network has a
    positive steady state.

    :param network: Flat reaction network.
    :returns: Analysis-species rows, in order of discovery. An empty list
        (with a warning logged) when the deficiency is not one, since the
        test does not apply. Cached.
    :reference: Shinar & Feinberg, *Structural sources of robustness in
        biochemical reaction networks*, Science 327 (2010).

    .. code-block:: python

        rn = ReactionNetwork.from_mappings(idhkp_idh_reactions)
        [rn.analysis_species[i].name for i in robust_species(rn)]  # ["I"]
    """
    props = network.properties
    if props.robust_species is not None:
        return props.robust_species

    delta = deficiency(network)
    if delta != 1:
        LOGGER.warning(
            "%s: deficiency %d, absolute concentration robustness test needs deficiency one",
            network.name,
            delta,
        )
        props.robust_species = []
        return props.robust_species

    Z = complex_stoich_matrix(network, MatrixFormat.DENSE)
    terminal = {k for tlc in terminal_linkage_classes(network) for k in tlc}
    nonterminal = [k for k in incidence_graph(network) if k not in terminal]

    robust: List[int] = []
    for a, b in combinations(sorted(nonterminal), 2):
        diff = np.flatnonzero(Z[:, a] != Z[:, b])
        if len(diff) == 1 and int(diff[0]) not in robust:
            robust.append(int(diff[0]))
    props.robust_species = robust
    return robust
