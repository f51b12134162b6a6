# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Constant value elements for PPElements models.

This module provides the Constant class for representing fixed values in
PPElements models. Constants are the degenerate case of the generation
protocol: their randomness is ``None``, their value never changes and their
single-value support is enumerable and expressible as a one-cell factor.

Plain Python values passed where an element is expected (for example the
arguments of :py:class:`~ppelements.model.components.transformations.apply.Apply`)
are wrapped in constants automatically.

**Basic Usage:**

.. code-block:: python

    import ppelements as ppe

    threshold = ppe.Constant(0.5)
    label = ppe.Constant("spam", name="label")
"""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

from ppelements.inference.factors import factor as factor_module
from ppelements.model.components import abstract_element, capabilities

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.inference.factors import variable as variable_module
    from ppelements.universe import Universe


class Constant(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    capabilities.Cacheable,
    abstract_element.Element,
):
    """Represents a constant value in PPElements models.

    :param value: The constant value to wrap
    :type value: Any
    :param kwargs: Additional keyword arguments passed to parent class

    :ivar constant: The stored constant value

    Since constants represent fixed values, generation simply returns the stored
    value, the density is ``1`` at that value and ``0`` everywhere else, and the
    enumerated support is the one-element tuple ``(value,)``.
    """

    DETERMINISTIC = True

    def __init__(
        self,
        value: Any,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        # Set the value before registering the element
        self.constant = value

        # Initialize the parent class
        super().__init__(name=name, universe=universe)

        # A constant is always generated
        self.value = value

    def generate_randomness(self) -> None:
        """Constants have no randomness."""
        return None

    def generate_value(
        self, randomness: "custom_types.Randomness"  # pylint: disable=unused-argument
    ) -> "custom_types.Value":
        """Return the fixed value."""
        return self.constant

    def density(self, value: "custom_types.Value") -> float:
        """Return ``1.0`` at the constant value and ``0.0`` everywhere else."""
        return 1.0 if bool(value == self.constant) else 0.0

    def make_values(
        self, context: "variable_module.VariableContext"  # pylint: disable=unused-argument
    ) -> tuple[Any, ...]:
        """The support of a constant is its value."""
        return (self.constant,)

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        """A single-cell factor of weight one."""
        factor = factor_module.Factor([context.variable(self)])
        factor.set((0,), 1.0)
        return [factor]

    def __str__(self) -> str:
        return f"{self.name} = {self.constant!r}"
