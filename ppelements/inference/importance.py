# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Importance sampling by likelihood weighting.

Every sample generates the whole model forward from the prior. Observed
stochastic elements are clamped to their observation and contribute the
density of that observation to the sample's weight; conditions, constraints
and observations on deterministic elements contribute their evidence weight.
Samples of weight zero are kept but do not count toward any distribution.

Unlike the factored engines, importance sampling only needs the generation
protocol, so it also works on models with continuous elements.
"""

from __future__ import annotations

import math

from typing import TYPE_CHECKING

from ppelements.inference.base import SamplingEngine, generation_order

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.model.components import abstract_element


class ImportanceSampling(SamplingEngine):
    """Posterior distributions from likelihood-weighted forward samples.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param n_samples: Number of samples to draw. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_N_SAMPLES`.
    :type n_samples: int
    :param progress_bar: Whether to display a progress bar. Defaults to True.
    :type progress_bar: bool
    :param universe: Universe to run inference in
    :type universe: Optional[Universe]

    :ivar n_rejected: Number of samples of weight zero in the last run
    """

    n_rejected: int = 0

    def sample(self) -> float:
        """Generate the model once and return the sample's weight."""
        elements = self.elements
        for element in elements:
            element.generate(fresh=True)
        return float(
            math.prod(element.sample_weight() for element in generation_order(elements))
        )

    def _infer(
        self,
    ) -> dict["abstract_element.Element", "custom_types.OutcomeDistribution"]:
        self._reset_tallies()
        self.n_rejected = 0

        with self._progress(self.n_samples, "Importance sampling") as pbar:
            for _ in range(self.n_samples):
                weight = self.sample()
                if weight > 0:
                    self._record(weight)
                else:
                    self.n_rejected += 1
                pbar.update(1)

        return self._tallies_to_distributions()
