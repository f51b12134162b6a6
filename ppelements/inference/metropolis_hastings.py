# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

r"""Single-site Metropolis-Hastings over element randomness.

Each step picks one unobserved stochastic element uniformly at random, asks it
for a new randomness through :py:meth:`next_randomness
<ppelements.model.components.abstract_element.Element.next_randomness>` and
regenerates every element's value from its (mostly unchanged) randomness. The
move is accepted with probability

    .. math::
        \min\left(1,\ t \cdot (m \cdot s)^{1/T}\right)

where :math:`t` is the proposal's transition ratio, :math:`m` its model ratio,
:math:`s` the ratio of the evidence scores of the new and old states and
:math:`T` the temperature. The element only reports the ratios; acceptance is
decided here. Rejected moves restore the previous state of every element.

Elements without a proposal kernel use the default proposal, a fresh draw from
the generative process, for which both ratios are one.
"""

from __future__ import annotations

import math
import warnings

from typing import Any, Optional, TYPE_CHECKING

import ppelements

from ppelements.defaults import (
    DEFAULT_MH_BURN_IN,
    DEFAULT_MH_INIT_ATTEMPTS,
    DEFAULT_MH_INTERVAL,
    DEFAULT_N_SAMPLES,
)
from ppelements.exceptions import ImpossibleEvidenceError
from ppelements.inference.base import SamplingEngine, generation_order
from ppelements.model.components.capabilities import Proposal

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.model.components import abstract_element
    from ppelements.universe import Universe


def acceptance_probability(
    proposal: Proposal, score_ratio: float = 1.0, temperature: float = 1.0
) -> float:
    """Probability of accepting a proposed move.

    :param proposal: Proposal returned by ``next_randomness``
    :type proposal: Proposal
    :param score_ratio: Ratio of the evidence scores of the proposed and current
        states. Defaults to 1.0.
    :type score_ratio: float
    :param temperature: Annealing temperature applied to the model and score
        ratios. Defaults to 1.0.
    :type temperature: float

    :returns: ``min(1, transition_ratio * (model_ratio * score_ratio) ** (1 / T))``
    :rtype: float

    :raises ValueError: If the temperature is not positive
    """
    if temperature <= 0:
        raise ValueError(f"temperature must be positive, got {temperature}")
    if score_ratio == 0 or proposal.model_ratio == 0 or proposal.transition_ratio == 0:
        return 0.0
    try:
        ratio = proposal.transition_ratio * (proposal.model_ratio * score_ratio) ** (
            1 / temperature
        )
    except OverflowError:
        return 1.0
    return 1.0 if math.isnan(ratio) else float(min(1.0, ratio))


class MetropolisHastings(SamplingEngine):
    """Posterior distributions from a single-site Metropolis-Hastings chain.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param n_samples: Number of samples to record. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_N_SAMPLES`.
    :type n_samples: int
    :param burn_in: Steps taken before the first sample is recorded. Defaults
        to :py:data:`~ppelements.defaults.DEFAULT_MH_BURN_IN`.
    :type burn_in: int
    :param interval: Steps between recorded samples. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_MH_INTERVAL`.
    :type interval: int
    :param temperature: Annealing temperature. Defaults to 1.0.
    :type temperature: float
    :param progress_bar: Whether to display a progress bar. Defaults to True.
    :type progress_bar: bool
    :param universe: Universe to run inference in
    :type universe: Optional[Universe]

    :ivar n_proposed: Number of moves proposed in the last run
    :ivar n_accepted: Number of moves accepted in the last run
    """

    def __init__(
        self,
        *targets: "abstract_element.Element",
        n_samples: int = DEFAULT_N_SAMPLES,
        burn_in: int = DEFAULT_MH_BURN_IN,
        interval: int = DEFAULT_MH_INTERVAL,
        temperature: float = 1.0,
        progress_bar: bool = True,
        universe: Optional["Universe"] = None,
    ):
        if burn_in < 0 or interval < 1 or temperature <= 0:
            raise ValueError(
                "burn_in must be non-negative, interval and temperature positive"
            )
        super().__init__(
            *targets, n_samples=n_samples, progress_bar=progress_bar, universe=universe
        )
        self.burn_in = burn_in
        self.interval = interval
        self.temperature = temperature
        self.n_proposed = 0
        self.n_accepted = 0
        self._score = 0.0

    def score(self) -> float:
        """Product of the sample weights of every element in the current state."""
        return float(
            math.prod(
                element.sample_weight() for element in generation_order(self.elements)
            )
        )

    def initialize(self) -> None:
        """Generate the model forward until the evidence has positive weight.

        :raises ImpossibleEvidenceError: If no consistent state is found within
            :py:data:`~ppelements.defaults.DEFAULT_MH_INIT_ATTEMPTS` attempts
        """
        for _ in range(DEFAULT_MH_INIT_ATTEMPTS):
            for element in self.elements:
                element.generate(fresh=True)
            self._score = self.score()
            if self._score > 0:
                return
        raise ImpossibleEvidenceError(
            f"No state consistent with the evidence found in "
            f"{DEFAULT_MH_INIT_ATTEMPTS} forward samples"
        )

    def candidates(self) -> list["abstract_element.Element"]:
        """Elements whose randomness can be proposed in the current state."""
        return [
            element
            for element in generation_order(self.elements)
            if not element.DETERMINISTIC and not element.is_clamped
        ]

    def step(self) -> bool:
        """Propose one move and accept or reject it.

        :returns: Whether the move was accepted. False if there was nothing to
            propose.
        :rtype: bool
        """
        candidates = self.candidates()
        if not candidates:
            return False
        element = candidates[int(ppelements.RNG.integers(len(candidates)))]

        states = {e: e.snapshot() for e in generation_order(self.elements)}
        proposal = element.next_randomness(element.randomness)
        element.randomness = proposal.randomness
        for e in self.elements:
            e.generate(fresh=False)

        new_score = self.score()
        probability = acceptance_probability(
            proposal, new_score / self._score, self.temperature
        )
        self.n_proposed += 1

        if ppelements.RNG.random() < probability:
            self.n_accepted += 1
            self._score = new_score
            return True

        for e, state in states.items():
            e.restore(state)
        return False

    @property
    def acceptance_rate(self) -> float:
        """Fraction of accepted moves in the last run."""
        return self.n_accepted / self.n_proposed if self.n_proposed else 0.0

    def _infer(
        self,
    ) -> dict["abstract_element.Element", "custom_types.OutcomeDistribution"]:
        self._reset_tallies()
        self.n_proposed = self.n_accepted = 0
        self.initialize()

        total = self.burn_in + self.n_samples * self.interval
        with self._progress(total, "Metropolis-Hastings") as pbar:
            for _ in range(self.burn_in):
                self.step()
                pbar.update(1)

            for _ in range(self.n_samples):
                for _ in range(self.interval):
                    self.step()
                    pbar.update(1)
                self._record(1.0)
                pbar.set_postfix(
                    {"acceptance": f"{self.acceptance_rate:.2f}"}, refresh=False
                )

        if self.n_proposed and not self.n_accepted:
            warnings.warn(
                "Metropolis-Hastings accepted no proposals; the reported "
                "distributions are the initial state."
            )

        return self._tallies_to_distributions()
