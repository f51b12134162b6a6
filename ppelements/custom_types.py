# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for PPElements.

This module provides type aliases and unions for the values that flow between
elements, factors, parameters and inference engines.

All imports are conditional on TYPE_CHECKING to avoid circular imports while
maintaining proper type hints for development and documentation tools.
"""

from typing import Any, Callable, TYPE_CHECKING, Union

# Everything in this file is only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:

    import numpy as np

    from ppelements.model.components import abstract_element

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

Float = Union[float, "np.floating"]
"""Type alias for floating-point values.

Accepts both Python's built-in float and NumPy floating-point types.

:type: Union[float, np.floating]
"""

# Element types
Value = Any
"""Type alias for element values.

Element values are arbitrary Python objects. Values of enumerable elements must
be hashable because they key variable domains and chain caches.

:type: Any
"""

Randomness = Any
"""Type alias for the intermediate randomness an element samples before it
produces a value. ``None`` for deterministic elements.

:type: Any
"""

ElementLike = Union["abstract_element.Element", Value]
"""Type alias for arguments accepted where an element is expected. Plain values
are wrapped in :py:class:`~ppelements.model.components.constants.Constant`.

:type: Union[abstract_element.Element, Any]
"""

Predicate = Callable[[Any], bool]
"""Type alias for conditions placed on element values.

:type: Callable[[Any], bool]
"""

# Learning types
OutcomeDistribution = list[tuple[float, Any]]
"""Type alias for posterior outcome distributions returned by inference engines,
given as ``(probability, outcome)`` pairs.

:type: list[tuple[float, Any]]
"""
