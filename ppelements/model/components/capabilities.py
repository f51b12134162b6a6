# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Optional capabilities that element types can provide.

Every element implements the generation protocol (randomness, value, density,
args). Everything else is optional and is declared by inheriting one of the
mixins in this module:

    - :py:class:`Enumerable`: finite-support enumeration (``make_values``)
    - :py:class:`FactorMaker`: tabular factor construction (``make_factors``)
    - :py:class:`ProposalKernel`: custom Metropolis-Hastings proposals
    - :py:class:`Learnable`: the parameter and sufficient-statistics protocol
    - :py:class:`Cacheable`: marker for small-support elements, which lets
      :py:func:`~ppelements.model.components.transformations.chain.chain`
      pick the caching policy automatically

Each mixin carries a :py:class:`Capability` tag. The element metaclass collects
the tags of every mixin a class inherits into its ``CAPABILITIES`` frozenset, so
engines ask ``element.provides(Capability.FACTORS)`` instead of inspecting
types.
"""

from __future__ import annotations

import enum

from abc import ABC, abstractmethod
from typing import Any, NamedTuple, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.inference.factors import factor as factor_module
    from ppelements.inference.factors import variable as variable_module


class Capability(enum.Enum):
    """Tags naming the optional protocols an element type can provide."""

    ENUMERATION = "enumeration"
    FACTORS = "factors"
    PROPOSAL = "proposal"
    LEARNING = "learning"
    CACHEABLE = "cacheable"


class Enumerable(ABC):
    """Mixin for element types with finite support."""

    CAPABILITY = Capability.ENUMERATION

    @abstractmethod
    def make_values(
        self, context: "variable_module.VariableContext"
    ) -> tuple[Any, ...]:
        """Enumerate every value the element can take.

        :param context: Per-run memoization context. Parent values must be
            requested through it, never computed directly.
        :type context: variable_module.VariableContext

        :returns: Distinct values in a fixed order
        :rtype: tuple[Any, ...]
        """


class FactorMaker(ABC):
    """Mixin for element types that can express their distribution as tables."""

    CAPABILITY = Capability.FACTORS

    @abstractmethod
    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list["factor_module.Factor"]:
        """Build the factors describing this element's local distribution.

        :param context: Per-run memoization context providing variable handles
        :type context: variable_module.VariableContext

        :returns: Complete, unnormalized factors. The variables of every factor
            include this element's own variable.
        :rtype: list[factor_module.Factor]
        """


class Cacheable:  # pylint: disable=too-few-public-methods
    """Marker for element types whose support is small enough to cache on."""

    CAPABILITY = Capability.CACHEABLE


class Proposal(NamedTuple):
    """Candidate randomness returned by ``next_randomness``.

    The two ratios are kept separate because annealed samplers weight them
    differently. The sampler, never the element, decides acceptance.

    :param randomness: Proposed randomness ``r1``
    :param transition_ratio: ``q(r1 -> r0) / q(r0 -> r1)``
    :param model_ratio: ``p(r1) / p(r0)``
    """

    randomness: Any
    transition_ratio: float
    model_ratio: float


class ProposalKernel(ABC):
    """Mixin for element types that override the default symmetric proposal.

    Subclasses describe their kernel through :py:meth:`propose` and
    :py:meth:`proposal_density`; the ratios returned by
    :py:meth:`next_randomness` are then computed from those two methods and
    :py:meth:`randomness_density`.
    """

    CAPABILITY = Capability.PROPOSAL

    def next_randomness(self, randomness: "custom_types.Randomness") -> Proposal:
        """Propose a new randomness from the element's own kernel.

        :param randomness: Current randomness ``r0``
        :type randomness: custom_types.Randomness

        :returns: Proposal carrying ``r1`` and the separate transition and model
            ratios
        :rtype: Proposal
        """
        proposed = self.propose(randomness)
        current_density = self.randomness_density(randomness)
        model_ratio = (
            self.randomness_density(proposed) / current_density
            if current_density > 0
            else float("inf")
        )
        return Proposal(
            proposed,
            float(self.transition_ratio(randomness, proposed)),
            float(model_ratio),
        )

    @abstractmethod
    def propose(self, randomness: "custom_types.Randomness") -> "custom_types.Randomness":
        """Draw a candidate randomness given the current one."""

    @abstractmethod
    def proposal_density(
        self,
        from_randomness: "custom_types.Randomness",
        to_randomness: "custom_types.Randomness",
    ) -> float:
        """Density of proposing ``to_randomness`` when at ``from_randomness``."""

    @abstractmethod
    def randomness_density(self, randomness: "custom_types.Randomness") -> float:
        """Density of ``randomness`` under the element's generative process."""

    def transition_ratio(
        self,
        from_randomness: "custom_types.Randomness",
        to_randomness: "custom_types.Randomness",
    ) -> float:
        """Ratio ``q(to -> from) / q(from -> to)`` of the proposal kernel.

        :raises ZeroDivisionError: If the forward move has zero density
        """
        return self.proposal_density(
            to_randomness, from_randomness
        ) / self.proposal_density(from_randomness, to_randomness)


class Learnable(ABC):
    """Mixin for elements that act as learnable parameters.

    A learnable element owns a vector of sufficient statistics of fixed
    dimension and updates its learned value from accumulated statistics.
    """

    CAPABILITY = Capability.LEARNING

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of the sufficient-statistics vector."""

    @abstractmethod
    def zero_sufficient_statistics(self) -> np.ndarray:
        """Statistics vector of zeros with length :py:attr:`dimension`."""

    @abstractmethod
    def sufficient_statistics(self, outcome: Any) -> np.ndarray:
        """One-hot statistics vector for a single observed outcome."""

    @abstractmethod
    def maximize(self, statistics: np.ndarray) -> None:
        """Update the learned value from accumulated statistics."""

    @abstractmethod
    def distribution_to_statistics(
        self, distribution: "custom_types.OutcomeDistribution"
    ) -> np.ndarray:
        """Convert a posterior outcome distribution into a statistics vector."""

    @property
    @abstractmethod
    def expected_value(self) -> Any:
        """Expectation under the learned hyperparameters."""

    @property
    @abstractmethod
    def map_value(self) -> Any:
        """Maximum-a-posteriori value under the learned hyperparameters."""


def collect_capabilities(cls: type) -> frozenset[Capability]:
    """Gather the capability tags of every mixin in a class's MRO.

    :param cls: Element class
    :type cls: type

    :returns: Capability tags provided by the class
    :rtype: frozenset[Capability]
    """
    return frozenset(
        base.__dict__["CAPABILITY"]
        for base in cls.__mro__
        if "CAPABILITY" in base.__dict__
    )
