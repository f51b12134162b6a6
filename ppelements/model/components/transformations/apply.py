# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Deterministic application of a function to the values of other elements.

An :py:class:`Apply` element holds a pure function and an ordered tuple of
parent elements. Its value is the function evaluated on the parents' current
values and it has no randomness of its own. The function is re-evaluated on
every call to :py:meth:`Apply.generate_value`; results are never cached, so an
apply element always reflects the latest parent values.

Plain Python values given as arguments are wrapped in
:py:class:`~ppelements.model.components.constants.Constant` elements.

Example:
    >>> import ppelements as ppe
    >>> die = ppe.Select({1: 0.5, 2: 0.5})
    >>> doubled = ppe.Apply(lambda x: 2 * x, die)
    >>> ctx = VariableContext()
    >>> ctx.values(doubled)
    (2, 4)
"""

from __future__ import annotations

import itertools

from typing import Any, Callable, Optional, TYPE_CHECKING

import numpy as np

from ppelements import utils
from ppelements.inference.factors import factor as factor_module
from ppelements.model.components import abstract_element, capabilities

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.inference.factors import variable as variable_module
    from ppelements.universe import Universe


class Apply(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    abstract_element.Element,
):
    """Element whose value is a function of its parents' values.

    :param fn: Pure function taking one positional argument per parent
    :type fn: Callable[..., Any]
    :param args: Parent elements or plain values
    :type args: Any
    :param name: Name of the element. Defaults to "".
    :type name: str
    :param universe: Universe of the element. Defaults to the default universe.
    :type universe: Optional[Universe]

    Enumeration maps ``fn`` over the cross-product of the parents' enumerated
    values and removes duplicates, keeping first-seen order. The factor of an
    apply element is the indicator table over ``(*parents, self)``: weight one
    where the element's value equals ``fn`` of the parents' values, zero
    elsewhere.
    """

    DETERMINISTIC = True

    def __init__(
        self,
        fn: Callable[..., Any],
        *args: Any,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        self.fn = fn
        self._args: tuple[abstract_element.Element, ...] = tuple(
            abstract_element.to_element(arg, universe=universe) for arg in args
        )
        super().__init__(name=name, universe=universe)

    def args(self) -> tuple[abstract_element.Element, ...]:
        return self._args

    def generate_randomness(self) -> None:
        """Apply elements have no randomness."""
        return None

    def generate_value(
        self, randomness: "custom_types.Randomness"  # pylint: disable=unused-argument
    ) -> "custom_types.Value":
        """Evaluate the function on the parents' current values."""
        return self.fn(*(parent.value for parent in self._args))

    def density(self, value: "custom_types.Value") -> float:
        """``1.0`` for the value implied by the current parents, ``0.0`` otherwise."""
        try:
            return 1.0 if bool(value == self.generate_value(None)) else 0.0
        except (TypeError, ValueError):
            return 0.0

    def make_values(self, context: "variable_module.VariableContext") -> tuple[Any, ...]:
        parent_domains = [context.values(parent) for parent in self._args]
        return utils.unique_in_order(
            self.fn(*combination) for combination in itertools.product(*parent_domains)
        )

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        parent_variables = [context.variable(parent) for parent in self._args]
        own_variable = context.variable(self)
        factor = factor_module.Factor([*parent_variables, own_variable])

        parent_shape = tuple(variable.size for variable in parent_variables)
        for parent_indices in np.ndindex(*parent_shape):
            result = self.fn(
                *(
                    variable.domain[index]
                    for variable, index in zip(parent_variables, parent_indices)
                )
            )
            result_index = own_variable.index(result)
            for own_index in range(own_variable.size):
                factor.set(
                    (*parent_indices, own_index),
                    1.0 if own_index == result_index else 0.0,
                )
        return [factor]

    def __str__(self) -> str:
        fn_name = getattr(self.fn, "__name__", type(self.fn).__name__)
        parents = ", ".join(parent.name for parent in self._args)
        return f"{self.name} = {fn_name}({parents})"
