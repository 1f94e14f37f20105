from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx
import numpy as np
from scipy import sparse


class MatrixFormat(str, Enum):
    """Storage format of a cached structural matrix."""

    DENSE = "dense"
    SPARSE = "sparse"

    @classmethod
    def of(cls, mat: Any) -> "MatrixFormat":
        """Return the format tag matching ``mat``."""
        return cls.SPARSE if sparse.issparse(mat) else cls.DENSE


@dataclass
class NetworkProperties:
    """
    Memoization table for the structural quantities of one network.

    Every field starts at an empty sentinel (empty container, or ``None``
    where an empty result is itself a valid answer) and is only assigned after
    the computation that produces it has succeeded. Nothing is invalidated
    automatically; call :meth:`reset` after mutating the owning network.

    Matrix fields keep the :class:`MatrixFormat` they were built with in the
    matching ``*_format`` field so a request for the other format triggers a
    rebuild.
    """

    # complexes and incidence structure
    complex_to_rxs_map: Dict[Any, List[Tuple[int, int]]] = field(default_factory=dict)
    complexes: List[Any] = field(default_factory=list)
    incidence_mat: Any = None
    incidence_format: Optional[MatrixFormat] = None
    complex_stoich_mat: Any = None
    complex_stoich_format: Optional[MatrixFormat] = None
    complex_outgoing_mat: Any = None
    complex_outgoing_format: Optional[MatrixFormat] = None
    incidence_graph: Optional[nx.MultiDiGraph] = None

    # connectivity
    linkage_classes: List[List[int]] = field(default_factory=list)
    strong_linkage_classes: List[List[int]] = field(default_factory=list)
    terminal_linkage_classes: List[List[int]] = field(default_factory=list)
    deficiency: Optional[int] = None
    subnetworks: List[Any] = field(default_factory=list)

    # conservation laws
    conservation_mat: Optional[np.ndarray] = None
    col_order: List[int] = field(default_factory=list)
    requested_col_order: List[int] = field(default_factory=list)
    conservation_dtype: Any = None
    rank: Optional[int] = None
    nullity: Optional[int] = None
    indep_species: List[int] = field(default_factory=list)
    dep_species: List[int] = field(default_factory=list)
    conserved_constants: List[Any] = field(default_factory=list)
    conserved_eqs: List[Any] = field(default_factory=list)
    constant_defs: List[Any] = field(default_factory=list)

    # absolute concentration robustness
    robust_species: Optional[List[int]] = None

    def reset(self) -> "NetworkProperties":
        """Restore every field to its empty sentinel."""
        fresh = NetworkProperties()
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))
        return self

    def cached_fields(self) -> List[str]:
        """Names of the fields currently holding a value."""
        return [f.name for f in fields(self) if not _is_unset(getattr(self, f.name))]

    def is_empty(self) -> bool:
        """True when nothing has been cached yet."""
        return not self.cached_fields()

    def __repr__(self) -> str:
        return f"NetworkProperties(cached={self.cached_fields()})"


def _is_unset(value: Any) -> bool:
    return value is None or (isinstance(value, (list, dict)) and not value)
