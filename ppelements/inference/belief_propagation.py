# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Sum-product (loopy) belief propagation on the factor graph of a model.

Messages flow between factors and variables in synchronous sweeps. On models
whose factor graph is a tree the resulting beliefs are the exact marginals;
on graphs with loops (chains, for example, connect their parent, themselves
and every subordinate) they are an approximation that usually converges
within a few sweeps.
"""

from __future__ import annotations

import functools

from typing import Optional, TYPE_CHECKING

import numpy as np

from ppelements import utils
from ppelements.defaults import DEFAULT_BP_ITERATIONS, DEFAULT_PROBABILITY_TOLERANCE
from ppelements.inference.base import FactoredEngine
from ppelements.inference.factors.factor import Factor
from ppelements.inference.factors.variable import Variable, VariableContext

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.model.components import abstract_element
    from ppelements.universe import Universe


def _scaled(message: np.ndarray) -> np.ndarray:
    """Scale a message to sum to one, leaving all-zero messages unchanged."""
    total = message.sum()
    return message / total if total > 0 else message


class BeliefPropagation(FactoredEngine):
    """Posterior marginals by loopy belief propagation.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param iterations: Maximum number of message-passing sweeps. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_BP_ITERATIONS`.
    :type iterations: int
    :param tolerance: Sweeps stop early once no message changes by more than
        this amount. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_PROBABILITY_TOLERANCE`.
    :type tolerance: float
    :param universe: Universe to run inference in
    :type universe: Optional[Universe]

    :ivar n_sweeps: Number of sweeps performed by the last run
    """

    def __init__(
        self,
        *targets: "abstract_element.Element",
        iterations: int = DEFAULT_BP_ITERATIONS,
        tolerance: float = DEFAULT_PROBABILITY_TOLERANCE,
        universe: Optional["Universe"] = None,
    ):
        if iterations < 1:
            raise ValueError(f"iterations must be positive, got {iterations}")
        super().__init__(*targets, universe=universe)
        self.iterations = iterations
        self.tolerance = tolerance
        self.n_sweeps = 0

    def _factor_to_variable(
        self,
        factor: Factor,
        variable: Variable,
        incoming: dict[tuple[int, int], np.ndarray],
        factor_index: int,
        variable_ids: dict[int, int],
    ) -> np.ndarray:
        """Message from a factor to one of its variables."""
        product = factor
        for other in factor.variables:
            if other is variable:
                continue
            message = incoming[(variable_ids[id(other)], factor_index)]
            product = product.product(Factor.from_weights([other], message))
        for other in factor.variables:
            if other is not variable:
                product = product.sum_out(other)
        return _scaled(product.weights)

    def _infer(
        self,
    ) -> dict["abstract_element.Element", "custom_types.OutcomeDistribution"]:
        with self.run_context() as context:
            return self._propagate(context)

    def _propagate(
        self, context: VariableContext
    ) -> dict["abstract_element.Element", "custom_types.OutcomeDistribution"]:
        """Loopy message passing over the factors collected into ``context``."""
        factors = self.collect_factors(context)
        variables = list(utils.unique_in_order(v for f in factors for v in f.variables))
        variable_ids = {id(v): i for i, v in enumerate(variables)}
        edges = [
            (variable_ids[id(v)], f_index)
            for f_index, factor in enumerate(factors)
            for v in factor.variables
        ]

        # Messages keyed by (variable index, factor index)
        to_factor = {
            edge: np.full(variables[edge[0]].size, 1.0 / variables[edge[0]].size)
            for edge in edges
        }
        to_variable = dict(to_factor)

        for sweep in range(self.iterations):
            new_to_variable = {
                (v_index, f_index): self._factor_to_variable(
                    factors[f_index],
                    variables[v_index],
                    to_factor,
                    f_index,
                    variable_ids,
                )
                for v_index, f_index in edges
            }
            new_to_factor = {
                (v_index, f_index): _scaled(
                    functools.reduce(
                        np.multiply,
                        [
                            new_to_variable[(v_index, other)]
                            for other_v, other in edges
                            if other_v == v_index and other != f_index
                        ],
                        np.ones(variables[v_index].size),
                    )
                )
                for v_index, f_index in edges
            }

            change = max(
                (
                    float(np.abs(new_to_variable[edge] - to_variable[edge]).max())
                    for edge in edges
                ),
                default=0.0,
            )
            to_variable, to_factor = new_to_variable, new_to_factor
            if change < self.tolerance:
                break
        self.n_sweeps = sweep + 1

        distributions = {}
        for target in self.targets:
            variable = context.variable(target)
            v_index = variable_ids[id(variable)]
            belief = functools.reduce(
                np.multiply,
                [to_variable[edge] for edge in edges if edge[0] == v_index],
                np.ones(variable.size),
            )
            distributions[target] = [
                (float(p), value)
                for p, value in zip(utils.normalize(belief), variable.domain)
            ]
        return distributions
