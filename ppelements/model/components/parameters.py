# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

r"""Learnable parameters with conjugate sufficient statistics.

A parameter is an element whose distribution is a conjugate prior (Beta or
Dirichlet) and which can be *learned*: it accumulates a vector of sufficient
statistics of fixed dimension ``d`` and updates its hyperparameters to

    .. math::
        \text{learned} = \text{prior} + \text{statistics}

The prior and the learned hyperparameters are stored as immutable
:py:class:`ParameterState` values. A parameter holds exactly one mutable slot,
:py:attr:`Parameter.state`, which the expectation-maximization driver replaces
at iteration boundaries.

Parameters are consumed through the elements that reference them (see
:py:mod:`~ppelements.model.components.parameterized`). Those elements read the
parameter's current :py:attr:`~Parameter.expected_value` and translate
posterior outcome distributions into the parameter's statistics.

Outcomes are mapped to statistics slots as follows:

.. list-table::

    * - Family
      - Dimension
      - Slot of an outcome
    * - :py:class:`BetaParameter`
      - 2
      - ``True`` is slot 0, ``False`` is slot 1, integers are slot indices
    * - :py:class:`DirichletParameter`
      - ``k``
      - integers are slot indices

Example:
    >>> fairness = BetaParameter(2.0, 2.0)
    >>> fairness.maximize(np.array([6.0, 2.0]))
    >>> fairness.expected_value
    0.666...
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, NamedTuple, Optional, TYPE_CHECKING

import numpy as np

from scipy import stats

from ppelements.exceptions import DimensionMismatchError
from ppelements.model.components import capabilities
from ppelements.model.components.atomic import ScipyElement

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.model.components import abstract_element
    from ppelements.universe import Universe


class ParameterState(NamedTuple):
    """Immutable hyperparameters of a parameter.

    :param hyperparameters: One positive hyperparameter per statistics slot
    """

    hyperparameters: tuple[float, ...]

    @property
    def total(self) -> float:
        """Sum of the hyperparameters."""
        return float(sum(self.hyperparameters))


class Parameter(capabilities.Learnable, ScipyElement):
    """Base class for learnable conjugate parameters.

    :param hyperparameters: Positive prior hyperparameters, one per statistics
        slot
    :type hyperparameters: float
    :param name: Name of the element. Defaults to "".
    :type name: str
    :param universe: Universe of the element. Defaults to the default universe.
    :type universe: Optional[Universe]

    :raises ValueError: If a hyperparameter is not positive

    :ivar prior: Prior hyperparameters. Never modified.
    :ivar state: Current learned hyperparameters
    :ivar parameterized_elements: Elements reading this parameter, in
        registration order
    """

    def __init__(
        self,
        *hyperparameters: float,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        prior = tuple(float(h) for h in hyperparameters)
        if any(h <= 0 for h in prior):
            raise ValueError(f"Hyperparameters must be positive, got {prior}")

        self.prior = ParameterState(prior)
        self.state = self.prior
        self.parameterized_elements: list["abstract_element.Element"] = []

        super().__init__(name=name, universe=universe)

    @abstractmethod
    def slot(self, outcome: Any) -> int:
        """Statistics slot of an outcome.

        :raises ValueError: If the outcome has no slot
        """

    def register_element(self, element: "abstract_element.Element") -> None:
        """Record an element that reads this parameter.

        Elements that have been deactivated since they registered are dropped.
        """
        self.parameterized_elements = [
            registered
            for registered in self.parameterized_elements
            if registered.active
        ]
        if element not in self.parameterized_elements:
            self.parameterized_elements.append(element)

    @property
    def dimension(self) -> int:
        return len(self.prior.hyperparameters)

    def zero_sufficient_statistics(self) -> np.ndarray:
        return np.zeros(self.dimension)

    def sufficient_statistics(self, outcome: Any) -> np.ndarray:
        """One-hot statistics vector for a single outcome.

        :param outcome: Outcome value or slot index
        :type outcome: Any

        :returns: Vector with a one in the outcome's slot
        :rtype: np.ndarray
        """
        statistics = self.zero_sufficient_statistics()
        statistics[self.slot(outcome)] = 1.0
        return statistics

    def distribution_to_statistics(
        self, distribution: "custom_types.OutcomeDistribution"
    ) -> np.ndarray:
        """Expected statistics under a distribution over outcomes.

        The probability of every outcome is added to the outcome's slot.

        :param distribution: ``(probability, outcome)`` pairs
        :type distribution: custom_types.OutcomeDistribution

        :returns: Statistics vector of length :py:attr:`dimension`
        :rtype: np.ndarray
        """
        statistics = self.zero_sufficient_statistics()
        for probability, outcome in distribution:
            statistics[self.slot(outcome)] += probability
        return statistics

    def with_updated_statistics(self, statistics: np.ndarray) -> ParameterState:
        """State obtained by adding statistics to the prior.

        :param statistics: Accumulated statistics of length :py:attr:`dimension`
        :type statistics: np.ndarray

        :returns: The new state. The parameter itself is not modified.
        :rtype: ParameterState

        :raises DimensionMismatchError: If the statistics have the wrong length
        """
        statistics = np.asarray(statistics, dtype=float)
        if statistics.shape != (self.dimension,):
            raise DimensionMismatchError(
                f"{self} expects {self.dimension} sufficient statistics, got "
                f"shape {statistics.shape}"
            )
        return ParameterState(
            tuple(
                float(h) for h in np.asarray(self.prior.hyperparameters) + statistics
            )
        )

    def maximize(self, statistics: np.ndarray) -> None:
        """Set the learned state to the prior plus ``statistics``."""
        self.set_state(self.with_updated_statistics(statistics))

    def set_state(self, state: ParameterState) -> None:
        """Replace the learned state.

        :raises DimensionMismatchError: If the state has the wrong dimension
        """
        if len(state.hyperparameters) != self.dimension:
            raise DimensionMismatchError(
                f"{self} expects {self.dimension} hyperparameters, got "
                f"{len(state.hyperparameters)}"
            )
        self.state = state

    def reset(self) -> None:
        """Forget everything learned and return to the prior."""
        self.state = self.prior

    @property
    def learned(self) -> np.ndarray:
        """Current learned hyperparameters as an array."""
        return np.array(self.state.hyperparameters)


class BetaParameter(Parameter):
    """Learnable Beta-distributed probability.

    :param alpha: Prior pseudo-count of True outcomes
    :type alpha: float
    :param beta: Prior pseudo-count of False outcomes
    :type beta: float

    Slot 0 counts True outcomes and slot 1 counts False outcomes. Integer
    outcomes are taken as slot indices.
    """

    SCIPY_DIST = stats.beta
    SCIPY_NAMES = {"learned_alpha": "a", "learned_beta": "b"}

    def __init__(
        self,
        alpha: float,
        beta: float,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        super().__init__(alpha, beta, name=name, universe=universe)

    def slot(self, outcome: Any) -> int:
        if isinstance(outcome, (bool, np.bool_)):
            return 0 if outcome else 1
        if isinstance(outcome, (int, np.integer)) and 0 <= outcome < 2:
            return int(outcome)
        raise ValueError(f"{outcome!r} is not an outcome of {self}")

    @property
    def learned_alpha(self) -> float:
        """Learned pseudo-count of True outcomes."""
        return self.state.hyperparameters[0]

    @property
    def learned_beta(self) -> float:
        """Learned pseudo-count of False outcomes."""
        return self.state.hyperparameters[1]

    @property
    def expected_value(self) -> float:
        """Mean ``alpha / (alpha + beta)`` of the learned distribution."""
        return self.learned_alpha / self.state.total

    @property
    def map_value(self) -> float:
        """Mode ``(alpha - 1) / (alpha + beta - 2)``, or 0.5 when ``alpha + beta == 2``."""
        if self.state.total == 2:
            return 0.5
        return (self.learned_alpha - 1) / (self.state.total - 2)


class DirichletParameter(Parameter):
    """Learnable Dirichlet-distributed probability vector.

    :param alphas: Prior pseudo-count of every outcome slot. At least two are
        required.
    :type alphas: float

    :raises ValueError: If fewer than two alphas are given
    """

    SCIPY_DIST = stats.dirichlet
    SCIPY_NAMES = {"learned_alphas": "alpha"}

    def __init__(
        self,
        *alphas: float,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if len(alphas) < 2:
            raise ValueError("DirichletParameter requires at least two alphas")
        super().__init__(*alphas, name=name, universe=universe)

    def generate_randomness(self) -> tuple[float, ...]:
        draw = self.SCIPY_DIST.rvs(self.learned_alphas, random_state=self.get_rng())
        return tuple(float(p) for p in draw[0])

    def slot(self, outcome: Any) -> int:
        if (
            isinstance(outcome, (int, np.integer))
            and not isinstance(outcome, (bool, np.bool_))
            and 0 <= outcome < self.dimension
        ):
            return int(outcome)
        raise ValueError(f"{outcome!r} is not an outcome slot of {self}")

    @property
    def learned_alphas(self) -> np.ndarray:
        """Learned pseudo-counts of every slot."""
        return self.learned

    @property
    def expected_value(self) -> np.ndarray:
        """Mean ``alphas / sum(alphas)`` of the learned distribution."""
        return self.learned / self.state.total

    @property
    def map_value(self) -> np.ndarray:
        """Mode ``(alphas - 1) / (sum(alphas) - k)``, or uniform when ``sum(alphas) == k``.

        The mode is only a probability vector when every alpha is at least one.
        """
        if self.state.total == self.dimension:
            return np.full(self.dimension, 1.0 / self.dimension)
        return (self.learned - 1) / (self.state.total - self.dimension)
