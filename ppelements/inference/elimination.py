# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Exact inference by variable elimination.

The engine builds the factors of every relevant element through one
:py:class:`~ppelements.inference.factors.variable.VariableContext`, then, for
each target, multiplies factors together and sums out every other variable.
Variables are eliminated greedily, always picking the variable whose
elimination produces the smallest intermediate table.

All relevant elements must provide the enumeration and factor capabilities;
otherwise :py:class:`~ppelements.exceptions.UnsupportedCapabilityError` is
raised when the factors are built.
"""

from __future__ import annotations

import functools

from typing import Sequence, TYPE_CHECKING

import numpy as np

from ppelements import utils
from ppelements.inference.base import FactoredEngine
from ppelements.inference.factors.factor import Factor
from ppelements.inference.factors.variable import Variable

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.model.components import abstract_element


def elimination_cost(factors: Sequence[Factor], variable: Variable) -> int:
    """Size of the table produced by multiplying every factor mentioning ``variable``."""
    involved = utils.unique_in_order(
        v
        for factor in factors
        if variable in factor.variables
        for v in factor.variables
    )
    return int(np.prod([v.size for v in involved]))


def eliminate(factors: Sequence[Factor], keep: Variable) -> Factor:
    """Sum every variable except ``keep`` out of the product of ``factors``.

    :param factors: Complete factors
    :type factors: Sequence[Factor]
    :param keep: Variable to keep
    :type keep: Variable

    :returns: Unnormalized factor over ``keep`` alone
    :rtype: Factor
    """
    factors = list(factors)
    remaining = [
        v
        for v in utils.unique_in_order(v for f in factors for v in f.variables)
        if v is not keep
    ]

    while remaining:
        variable = min(remaining, key=lambda v: elimination_cost(factors, v))
        remaining.remove(variable)

        involved = [factor for factor in factors if variable in factor.variables]
        factors = [factor for factor in factors if variable not in factor.variables]
        factors.append(functools.reduce(Factor.product, involved).sum_out(variable))

    unit = Factor.from_weights([keep], np.ones(keep.size))
    return functools.reduce(Factor.product, factors, unit)


class VariableElimination(FactoredEngine):
    """Exact posterior marginals by variable elimination.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param universe: Universe to run inference in
    :type universe: Optional[Universe]

    Example:
        >>> rain = ppe.Flip(0.2)
        >>> sprinkler = ppe.Flip(0.4)
        >>> wet = ppe.operations.logical_or(rain, sprinkler)
        >>> wet.observe(True)
        >>> ve = ppe.VariableElimination(rain).run()
        >>> round(ve.probability(rain, True), 4)
        0.3846
    """

    def _infer(
        self,
    ) -> dict["abstract_element.Element", "custom_types.OutcomeDistribution"]:
        distributions = {}
        with self.run_context() as context:
            factors = self.collect_factors(context)
            for target in self.targets:
                variable = context.variable(target)
                marginal = eliminate(factors, variable).normalized()
                distributions[target] = [
                    (float(p), value)
                    for p, value in zip(marginal.weights, variable.domain)
                ]
        return distributions
