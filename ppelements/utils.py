# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the PPElements package.

This module provides small helpers that support the core functionality of
PPElements, including:

    - Lazy importing mechanisms to break circular imports between components
    - Order-preserving de-duplication of enumerated values
    - Normalization of non-negative weight vectors

Users will not typically need to interact with this module directly--it is designed
to be used internally by PPElements.
"""

from __future__ import annotations

import importlib.util
import sys

from typing import Any, Iterable

import numpy as np

from ppelements.exceptions import ImpossibleEvidenceError


def lazy_import(name: str):
    """Import a module whose body only executes on first attribute access.

    Element modules that refer to each other at call time (for example
    ``abstract_element`` wrapping plain values in ``Constant``) use this to
    avoid import cycles.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.
    """
    if name in sys.modules:
        return sys.modules[name]

    spec = importlib.util.find_spec(name)

    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)

    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def unique_in_order(values: Iterable[Any]) -> tuple[Any, ...]:
    """Remove duplicates from an iterable while keeping first-seen order.

    :param values: Hashable values to de-duplicate
    :type values: Iterable[Any]

    :returns: The distinct values in the order they were first seen
    :rtype: tuple[Any, ...]

    Example:
        >>> unique_in_order([2, 1, 2, 3, 1])
        (2, 1, 3)
    """
    return tuple(dict.fromkeys(values))


def normalize(weights) -> np.ndarray:
    """Scale non-negative weights so that they sum to one.

    :param weights: Non-negative weights
    :type weights: npt.ArrayLike

    :returns: Normalized copy of the weights
    :rtype: np.ndarray

    :raises ImpossibleEvidenceError: If the weights sum to zero
    """
    weights = np.asarray(weights, dtype=float)
    total = weights.sum()
    if total <= 0 or not np.isfinite(total):
        raise ImpossibleEvidenceError(
            "Evidence has zero probability; cannot normalize an all-zero weight vector"
        )
    return np.asarray(weights / total)
