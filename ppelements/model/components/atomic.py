# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

r"""Atomic elements: leaf random variables with fixed hyperparameters.

Atomic elements have no element arguments. Their randomness is drawn from the
global :py:obj:`ppelements.RNG` and mapped to a value without consulting any
other element.

Two families are provided:

    - Finite-support elements (:py:class:`Flip`, :py:class:`Select`,
      :py:class:`Binomial`) provide the enumeration and factor capabilities
      and carry the ``CACHEABLE`` marker, so chains over them cache their
      subordinates by default.
    - Continuous elements (:py:class:`Normal`, :py:class:`Exponential`) cannot
      be enumerated but provide their own Metropolis-Hastings proposal kernels.

Distributions backed by SciPy declare ``SCIPY_DIST`` together with a mapping
from element attribute names to SciPy argument names, in the same way for
every element type:

.. code-block:: python

    class Normal(ScipyElement):
        SCIPY_DIST = stats.norm
        SCIPY_NAMES = {"mean": "loc", "std": "scale"}
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TYPE_CHECKING

import numpy as np

from scipy import stats

from ppelements.defaults import (
    DEFAULT_LOG_PROPOSAL_SCALE,
    DEFAULT_PROBABILITY_TOLERANCE,
    DEFAULT_PROPOSAL_SCALE,
)
from ppelements.inference.factors import factor as factor_module
from ppelements.model.components import abstract_element, capabilities

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.inference.factors import variable as variable_module
    from ppelements.universe import Universe


def check_probability(probability: float) -> float:
    """Validate a probability and return it as a float.

    :raises ValueError: If the probability is outside ``[0, 1]``
    """
    probability = float(probability)
    if not 0.0 <= probability <= 1.0:
        raise ValueError(f"Probability must be in [0, 1], got {probability}")
    return probability


def density_factor(
    element: abstract_element.Element, context: "variable_module.VariableContext"
) -> factor_module.Factor:
    """Single-variable factor holding the density of every enumerated value.

    :param element: Enumerable element without element arguments
    :type element: abstract_element.Element
    :param context: Per-run memoization context
    :type context: variable_module.VariableContext

    :returns: Factor over the element's own variable
    :rtype: factor_module.Factor
    """
    variable = context.variable(element)
    factor = factor_module.Factor([variable])
    for index, value in enumerate(variable.domain):
        factor.set((index,), element.density(value))
    return factor


class ScipyElement(abstract_element.Element):
    """Base class for atomic elements whose distribution comes from SciPy.

    The randomness of a SciPy-backed element is its value: a draw is made from
    ``SCIPY_DIST`` and returned unchanged by :py:meth:`generate_value`.

    :cvar SCIPY_DIST: SciPy distribution object (e.g. ``scipy.stats.norm``)
    :cvar SCIPY_NAMES: Mapping from element attribute names to SciPy argument
        names
    :cvar SCIPY_TRANSFORMS: Optional transforms applied to attribute values
        before they are passed to SciPy, keyed by attribute name
    """

    SCIPY_DIST: Optional[stats.rv_continuous | stats.rv_discrete] = None
    SCIPY_NAMES: dict[str, str] = {}
    SCIPY_TRANSFORMS: dict[str, Callable[[Any], Any]] = {}

    def scipy_params(self) -> dict[str, Any]:
        """Current hyperparameters translated to SciPy argument names."""
        return {
            scipy_name: self.SCIPY_TRANSFORMS.get(name, lambda x: x)(
                getattr(self, name)
            )
            for name, scipy_name in self.SCIPY_NAMES.items()
        }

    def generate_randomness(self) -> "custom_types.Value":
        """Draw a value from the SciPy distribution."""
        draw = self.SCIPY_DIST.rvs(**self.scipy_params(), random_state=self.get_rng())
        return np.asarray(draw).item()

    def generate_value(self, randomness: "custom_types.Randomness") -> "custom_types.Value":
        """The randomness of a SciPy-backed element is its value."""
        return randomness

    def density(self, value: "custom_types.Value") -> float:
        """Probability mass (discrete) or density (continuous) of ``value``."""
        if isinstance(value, (bool, np.bool_)):
            return 0.0
        scorer = (
            self.SCIPY_DIST.pmf
            if isinstance(self.SCIPY_DIST, stats.rv_discrete)
            else self.SCIPY_DIST.pdf
        )
        try:
            density = float(scorer(value, **self.scipy_params()))
        except (TypeError, ValueError):
            return 0.0
        return density if np.isfinite(density) else 0.0


class Flip(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    capabilities.Cacheable,
    abstract_element.Element,
):
    """Boolean element that is True with a fixed probability.

    :param probability: Probability of True
    :type probability: float

    The randomness is a uniform draw ``r`` from ``[0, 1)`` and the value is
    ``r < probability``.

    Example:
        >>> rain = Flip(0.2, name="rain")
        >>> rain.density(True)
        0.2
    """

    def __init__(
        self,
        probability: float,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        self._probability = check_probability(probability)
        super().__init__(name=name, universe=universe)

    @property
    def probability(self) -> float:
        """Probability that the element is True."""
        return self._probability

    def generate_randomness(self) -> float:
        return float(self.get_rng().random())

    def generate_value(self, randomness: "custom_types.Randomness") -> bool:
        return bool(randomness < self.probability)

    def density(self, value: "custom_types.Value") -> float:
        if not isinstance(value, (bool, np.bool_)):
            return 0.0
        return self.probability if value else 1.0 - self.probability

    def make_values(
        self, context: "variable_module.VariableContext"  # pylint: disable=unused-argument
    ) -> tuple[Any, ...]:
        return (True, False)

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        return [density_factor(self, context)]


class Select(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    capabilities.Cacheable,
    abstract_element.Element,
):
    """Categorical element over a fixed set of outcomes.

    :param probabilities: Mapping from outcome to probability. Outcomes must be
        hashable and the probabilities must sum to one.
    :type probabilities: dict[Any, float]

    :raises ValueError: If a probability is outside ``[0, 1]`` or the
        probabilities do not sum to one

    The randomness is a uniform draw from ``[0, 1)``; the value is the first
    outcome (in insertion order) whose cumulative probability exceeds it.

    Example:
        >>> weather = Select({"sun": 0.2, "rain": 0.3, "snow": 0.5})
        >>> weather.density("rain")
        0.3
    """

    def __init__(
        self,
        probabilities: dict[Any, float],
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if not probabilities:
            raise ValueError("Select requires at least one outcome")
        self.outcomes: tuple[Any, ...] = tuple(probabilities)
        self._probabilities = tuple(
            check_probability(p) for p in probabilities.values()
        )
        if abs(sum(self._probabilities) - 1.0) > DEFAULT_PROBABILITY_TOLERANCE:
            raise ValueError(
                f"Select probabilities must sum to 1, got {sum(self._probabilities)}"
            )
        super().__init__(name=name, universe=universe)

    @property
    def probabilities(self) -> tuple[float, ...]:
        """Probability of each outcome, in outcome order."""
        return self._probabilities

    def generate_randomness(self) -> float:
        return float(self.get_rng().random())

    def generate_value(self, randomness: "custom_types.Randomness") -> "custom_types.Value":
        index = int(np.searchsorted(np.cumsum(self.probabilities), randomness, "right"))
        return self.outcomes[min(index, len(self.outcomes) - 1)]

    def density(self, value: "custom_types.Value") -> float:
        try:
            index = self.outcomes.index(value)
        except ValueError:
            return 0.0
        return float(self.probabilities[index])

    def make_values(
        self, context: "variable_module.VariableContext"  # pylint: disable=unused-argument
    ) -> tuple[Any, ...]:
        return self.outcomes

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        return [density_factor(self, context)]


class Binomial(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    capabilities.Cacheable,
    ScipyElement,
):
    """Number of successes in a fixed number of independent trials.

    :param n_trials: Number of trials
    :type n_trials: int
    :param probability: Success probability of each trial
    :type probability: float

    :raises ValueError: If ``n_trials`` is negative
    """

    SCIPY_DIST = stats.binom
    SCIPY_NAMES = {"n_trials": "n", "probability": "p"}

    def __init__(
        self,
        n_trials: int,
        probability: float,
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if n_trials < 0:
            raise ValueError(f"n_trials must be non-negative, got {n_trials}")
        self.n_trials = int(n_trials)
        self._probability = check_probability(probability)
        super().__init__(name=name, universe=universe)

    @property
    def probability(self) -> float:
        """Success probability of each trial."""
        return self._probability

    def generate_randomness(self) -> int:
        return int(super().generate_randomness())

    def make_values(
        self, context: "variable_module.VariableContext"  # pylint: disable=unused-argument
    ) -> tuple[Any, ...]:
        return tuple(range(self.n_trials + 1))

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        return [density_factor(self, context)]


class Normal(capabilities.ProposalKernel, ScipyElement):
    """Gaussian element with a random-walk proposal kernel.

    :param mean: Mean of the distribution
    :type mean: float
    :param std: Standard deviation of the distribution
    :type std: float
    :param proposal_scale: Standard deviation of the random-walk step. Defaults
        to :py:data:`~ppelements.defaults.DEFAULT_PROPOSAL_SCALE`.
    :type proposal_scale: float

    :raises ValueError: If ``std`` or ``proposal_scale`` is not positive

    The proposal kernel is symmetric, so the transition ratio of every proposal
    is one.
    """

    SCIPY_DIST = stats.norm
    SCIPY_NAMES = {"mean": "loc", "std": "scale"}

    def __init__(
        self,
        mean: float,
        std: float,
        *,
        proposal_scale: float = DEFAULT_PROPOSAL_SCALE,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if std <= 0 or proposal_scale <= 0:
            raise ValueError("std and proposal_scale must be positive")
        self.mean = float(mean)
        self.std = float(std)
        self.proposal_scale = float(proposal_scale)
        super().__init__(name=name, universe=universe)

    def propose(self, randomness: "custom_types.Randomness") -> float:
        return float(randomness + self.get_rng().normal(0.0, self.proposal_scale))

    def proposal_density(
        self,
        from_randomness: "custom_types.Randomness",
        to_randomness: "custom_types.Randomness",
    ) -> float:
        return float(
            stats.norm.pdf(to_randomness, loc=from_randomness, scale=self.proposal_scale)
        )

    def randomness_density(self, randomness: "custom_types.Randomness") -> float:
        return self.density(randomness)


class Exponential(capabilities.ProposalKernel, ScipyElement):
    """Exponential element with a multiplicative log-normal proposal kernel.

    :param rate: Rate of the distribution
    :type rate: float
    :param proposal_scale: Log-scale standard deviation of the multiplicative
        step. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_LOG_PROPOSAL_SCALE`.
    :type proposal_scale: float

    :raises ValueError: If ``rate`` or ``proposal_scale`` is not positive

    A proposal multiplies the current value by ``exp(eps)`` with
    ``eps ~ Normal(0, proposal_scale)``, which keeps proposals positive. The
    kernel is asymmetric: the transition ratio ``q(r1 -> r0) / q(r0 -> r1)``
    equals ``r1 / r0``.
    """

    SCIPY_DIST = stats.expon
    SCIPY_NAMES = {"rate": "scale"}
    SCIPY_TRANSFORMS = {"rate": lambda x: 1 / x}

    def __init__(
        self,
        rate: float,
        *,
        proposal_scale: float = DEFAULT_LOG_PROPOSAL_SCALE,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if rate <= 0 or proposal_scale <= 0:
            raise ValueError("rate and proposal_scale must be positive")
        self.rate = float(rate)
        self.proposal_scale = float(proposal_scale)
        super().__init__(name=name, universe=universe)

    def propose(self, randomness: "custom_types.Randomness") -> float:
        return float(randomness * np.exp(self.get_rng().normal(0.0, self.proposal_scale)))

    def proposal_density(
        self,
        from_randomness: "custom_types.Randomness",
        to_randomness: "custom_types.Randomness",
    ) -> float:
        return float(
            stats.lognorm.pdf(to_randomness, self.proposal_scale, scale=from_randomness)
        )

    def randomness_density(self, randomness: "custom_types.Randomness") -> float:
        return self.density(randomness)
