from __future__ import annotations


class CRNError(RuntimeError):
    """Base class for all CRN-specific errors."""


class StructuralPreconditionError(CRNError):
    """Raised when a structural quantity is requested on a network that cannot
    define it (e.g. reaction complexes of a network without reactions)."""


class UnsupportedCompositionError(CRNError):
    """Raised when an analysis is requested on a network that still contains
    sub-systems; call :meth:`ReactionNetwork.flatten` first."""


class ConservationLawOverflowError(CRNError, OverflowError):
    """Raised when the conservation law matrix fails the exact ``C @ S == 0``
    check, typically because the integer dtype was too narrow."""


class InternalInconsistencyError(CRNError):
    """Raised on a broken internal invariant (a logic error, not bad input)."""


class ParameterMismatchError(CRNError, ValueError):
    """Raised when supplied parameter values do not match the parameters of
    the network they are applied to."""
