# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Elements whose distribution is set by a learnable parameter.

A parameterized element holds a non-owning reference to one
:py:class:`~ppelements.model.components.parameters.Parameter` and reads the
parameter's current expected value every time it generates, scores or builds
factors. It also knows how to turn a posterior distribution over its own
outcomes into sufficient statistics for its parameter, which is what the
expectation-maximization driver accumulates.

The parameter is not one of the element's arguments. Parameters therefore
enter inference only through their learned value, and every inference engine
ignores elements that provide the ``LEARNING`` capability.

Example:
    >>> import ppelements as ppe
    >>> bias = ppe.BetaParameter(1.0, 1.0)
    >>> tosses = [ppe.ParameterizedFlip(bias) for _ in range(10)]
    >>> for toss, outcome in zip(tosses, [True] * 7 + [False] * 3):
    ...     toss.observe(outcome)
    >>> results = ppe.ExpectationMaximization(bias, iterations=1).run()
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ppelements.exceptions import DimensionMismatchError
from ppelements.model.components.atomic import Binomial, Flip, Select
from ppelements.model.components.parameters import (
    BetaParameter,
    DirichletParameter,
    Parameter,
)
from ppelements.universe import get_default_universe

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.universe import Universe


def _check_parameter_scope(
    parameter: Parameter, universe: Optional["Universe"]
) -> None:
    """Raise a ScopeError before registration if the parameter is not visible."""
    (universe if universe is not None else get_default_universe()).check_scope(
        parameter
    )


class ParameterizedFlip(Flip):
    """Flip whose probability of True is a learnable Beta parameter.

    :param parameter: Parameter giving the probability of True
    :type parameter: BetaParameter
    """

    def __init__(
        self,
        parameter: BetaParameter,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        _check_parameter_scope(parameter, universe)
        self.parameter = parameter
        super().__init__(parameter.expected_value, name=name, universe=universe)
        parameter.register_element(self)

    @property
    def probability(self) -> float:
        return float(self.parameter.expected_value)

    def distribution_to_statistics(
        self, distribution: "custom_types.OutcomeDistribution"
    ) -> np.ndarray:
        """Expected ``(True, False)`` counts under a posterior over the outcome."""
        return self.parameter.distribution_to_statistics(distribution)


class ParameterizedSelect(Select):
    """Select whose outcome probabilities are a learnable Dirichlet parameter.

    :param parameter: Parameter giving the outcome probabilities
    :type parameter: DirichletParameter
    :param outcomes: Distinct outcomes, one per parameter slot
    :type outcomes: Sequence[Any]

    :raises DimensionMismatchError: If the number of outcomes differs from the
        parameter's dimension
    :raises ValueError: If the outcomes are not distinct
    """

    def __init__(
        self,
        parameter: DirichletParameter,
        outcomes: Sequence[Any],
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if len(outcomes) != parameter.dimension:
            raise DimensionMismatchError(
                f"{parameter} has {parameter.dimension} slots but {len(outcomes)} "
                "outcomes were given"
            )
        probabilities = dict(zip(outcomes, parameter.expected_value.tolist()))
        if len(probabilities) != len(outcomes):
            raise ValueError(f"Outcomes must be distinct, got {outcomes}")

        _check_parameter_scope(parameter, universe)
        self.parameter = parameter
        super().__init__(probabilities, name=name, universe=universe)
        parameter.register_element(self)

    @property
    def probabilities(self) -> tuple[float, ...]:
        return tuple(self.parameter.expected_value.tolist())

    def distribution_to_statistics(
        self, distribution: "custom_types.OutcomeDistribution"
    ) -> np.ndarray:
        """Expected count of every outcome under a posterior over the outcome."""
        return self.parameter.distribution_to_statistics(
            [
                (probability, self.outcomes.index(outcome))
                for probability, outcome in distribution
            ]
        )


class ParameterizedBinomial(Binomial):
    """Binomial whose success probability is a learnable Beta parameter.

    :param n_trials: Number of trials
    :type n_trials: int
    :param parameter: Parameter giving the success probability
    :type parameter: BetaParameter

    An outcome of ``k`` successes contributes the statistics ``(k, n - k)``.
    """

    def __init__(
        self,
        n_trials: int,
        parameter: BetaParameter,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        _check_parameter_scope(parameter, universe)
        self.parameter = parameter
        super().__init__(
            n_trials, parameter.expected_value, name=name, universe=universe
        )
        parameter.register_element(self)

    @property
    def probability(self) -> float:
        return float(self.parameter.expected_value)

    def distribution_to_statistics(
        self, distribution: "custom_types.OutcomeDistribution"
    ) -> np.ndarray:
        """Expected ``(successes, failures)`` under a posterior over the count."""
        statistics = self.parameter.zero_sufficient_statistics()
        for probability, successes in distribution:
            statistics += probability * np.array(
                [successes, self.n_trials - successes], dtype=float
            )
        return statistics
