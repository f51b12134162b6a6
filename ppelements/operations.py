# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Common deterministic operations on elements.

Every operation in this module is a thin constructor around
:py:class:`~ppelements.model.components.transformations.apply.Apply` with a
pure function from the :py:mod:`operator` module. Arguments may be elements or
plain values; plain values are wrapped in constants.

    **Usage:**

    .. code-block:: python

      import ppelements as ppe

      die1 = ppe.Select({1: 1 / 3, 2: 1 / 3, 3: 1 / 3})
      die2 = ppe.Select({1: 1 / 3, 2: 1 / 3, 3: 1 / 3})
      total = ppe.operations.add(die1, die2)
      is_four = ppe.operations.equals(total, 4)
"""

from __future__ import annotations

import operator

from typing import Any, Callable

from ppelements.model.components.transformations.apply import Apply


def build_operation(
    name: str, fn: Callable[..., Any], doc: str
) -> Callable[..., Apply]:
    """Build an element constructor applying ``fn`` to its arguments.

    :param name: Name of the resulting constructor
    :type name: str
    :param fn: Pure function of the argument values
    :type fn: Callable[..., Any]
    :param doc: Docstring of the resulting constructor
    :type doc: str

    :returns: Function taking elements or plain values (and the optional
        ``name`` and ``universe`` keywords) and returning an
        :py:class:`~ppelements.model.components.transformations.apply.Apply`
    :rtype: Callable[..., Apply]
    """

    def operation(*args: Any, **kwargs: Any) -> Apply:
        return Apply(fn, *args, **kwargs)

    operation.__name__ = name
    operation.__doc__ = doc
    return operation


equals = build_operation(
    "equals", operator.eq, "Element that is True when both arguments are equal."
)
not_equals = build_operation(
    "not_equals", operator.ne, "Element that is True when the arguments differ."
)
add = build_operation("add", operator.add, "Sum of the two arguments.")
multiply = build_operation("multiply", operator.mul, "Product of the two arguments.")
logical_and = build_operation(
    "logical_and",
    lambda a, b: bool(a and b),
    "Element that is True when both arguments are truthy.",
)
logical_or = build_operation(
    "logical_or",
    lambda a, b: bool(a or b),
    "Element that is True when either argument is truthy.",
)
negate = build_operation("negate", operator.not_, "Logical negation of the argument.")
