"""
Public API for :mod:`crnkit.CRN`.

Structural analysis of chemical reaction networks: reaction complexes,
incidence matrices and graphs, linkage classes, deficiency, conservation
laws, complex and detailed balance, and absolute concentration robustness.

Re-exported names
-----------------
- :class:`~crnkit.CRN.core.Species`, :class:`~crnkit.CRN.core.Reaction`,
  :class:`~crnkit.CRN.core.ReactionNetwork`
- :class:`~crnkit.CRN.complexes.ReactionComplex`
- :class:`~crnkit.CRN.properties.NetworkProperties`,
  :class:`~crnkit.CRN.properties.MatrixFormat`
- the analysis functions of :mod:`crnkit.CRN.Props`
- the error classes of :mod:`crnkit.CRN.exceptions`
"""

from __future__ import annotations
from typing import List

from ..version import __version__
from .core import Species, Reaction, ReactionNetwork
from .complexes import (
    ReactionComplex,
    filter_constant_species,
    reaction_complex_map,
    reaction_complexes,
)
from .properties import MatrixFormat, NetworkProperties
from .exceptions import (
    CRNError,
    StructuralPreconditionError,
    UnsupportedCompositionError,
    ConservationLawOverflowError,
    InternalInconsistencyError,
    ParameterMismatchError,
)
from .Props.stoich import build_S, build_S_minus_plus, complex_stoich_matrix, stoichiometric_matrix
from .Props.incidence import (
    incidence_matrix,
    complex_outgoing_matrix,
    incidence_graph,
    incidence_matrix_graph,
)
from .Props.linkage import (
    linkage_classes,
    strong_linkage_classes,
    terminal_linkage_classes,
    is_reversible,
    is_weakly_reversible,
    is_forest_like,
)
from .Props.deficiency import (
    deficiency,
    subnetworks,
    linkage_deficiencies,
    DeficiencyAnalyzer,
    DeficiencySummary,
)
from .Props.conservation import (
    integer_nullspace,
    conservation_laws_from_matrix,
    conservation_laws,
    conserved_equations,
    conservation_law_constants,
    conserved_quantities,
    check_conserved_initial_conditions,
)
from .Props.balance import rate_matrix, matrix_tree, is_complex_balanced, is_detailed_balanced
from .Props.robustness import robust_species

__all__: List[str] = [
    "__version__",
    "Species",
    "Reaction",
    "ReactionNetwork",
    "ReactionComplex",
    "filter_constant_species",
    "reaction_complex_map",
    "reaction_complexes",
    "MatrixFormat",
    "NetworkProperties",
    "CRNError",
    "StructuralPreconditionError",
    "UnsupportedCompositionError",
    "ConservationLawOverflowError",
    "InternalInconsistencyError",
    "ParameterMismatchError",
    "build_S",
    "build_S_minus_plus",
    "stoichiometric_matrix",
    "complex_stoich_matrix",
    "incidence_matrix",
    "complex_outgoing_matrix",
    "incidence_graph",
    "incidence_matrix_graph",
    "linkage_classes",
    "strong_linkage_classes",
    "terminal_linkage_classes",
    "is_reversible",
    "is_weakly_reversible",
    "is_forest_like",
    "deficiency",
    "subnetworks",
    "linkage_deficiencies",
    "DeficiencyAnalyzer",
    "DeficiencySummary",
    "integer_nullspace",
    "conservation_laws_from_matrix",
    "conservation_laws",
    "conserved_equations",
    "conservation_law_constants",
    "conserved_quantities",
    "check_conserved_initial_conditions",
    "rate_matrix",
    "matrix_tree",
    "is_complex_balanced",
    "is_detailed_balanced",
    "robust_species",
]
