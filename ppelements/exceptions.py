"""Custom exception classes for the PPElements package.

This module defines the hierarchy of exceptions raised by PPElements. All of
them inherit from :py:class:`PPElementsError` so that callers can catch every
package-specific failure with a single except clause, while the subclasses
name the precise contract that was broken (a missing capability, a statistics
vector of the wrong size, a cyclic model, and so on).

Argument validation that is not specific to the element model (bad
probabilities, non-positive rates, ...) raises the built-in ``ValueError`` and
``TypeError`` instead.
"""


class PPElementsError(Exception):
    """Base class for all exceptions in the PPElements package.

    Example:
        >>> try:
        ...     # PPElements operations
        ...     pass
        ... except PPElementsError as e:
        ...     print(f"PPElements error occurred: {e}")
    """


class UnsupportedCapabilityError(PPElementsError):
    """Raised when an element is asked for a capability its type does not provide.

    Typical causes are enumerating an element with continuous support or asking
    a factor-based engine to build factors for an element that cannot express
    its distribution as a table. The request is never skipped or approximated.
    """


class DimensionMismatchError(PPElementsError):
    """Raised when a sufficient-statistics vector has the wrong length.

    Statistics are never padded or truncated to fit a parameter family.
    """


class CyclicDependencyError(PPElementsError):
    """Raised when traversing element dependencies revisits an element.

    A cycle always indicates a model-construction bug in the caller, so it is
    not recoverable at the element level.
    """


class ScopeError(PPElementsError):
    """Raised when an element references an element outside its visible scope.

    Elements may only depend on elements in their own universe or an ancestor
    universe.
    """


class UnsetFactorCellError(PPElementsError):
    """Raised when the weights of a factor are read before every cell was set."""


class ImpossibleEvidenceError(PPElementsError):
    """Raised when the evidence in a model has zero total probability."""
