# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Shared interface of the inference engines.

Every engine is constructed over a set of target elements, run once with
:py:meth:`InferenceEngine.run` and then queried:

.. code-block:: python

    engine = ppe.VariableElimination(rain, wet).run()
    engine.distribution(rain)           # [(0.8, False), (0.2, True)] or similar
    engine.probability(rain, True)      # 0.2
    engine.probability(total, lambda v: v > 3)
    engine.expectation(total, float)

Engines consider the top-level elements of the targets' universe and of its
ancestors, in creation order. Elements that provide the ``LEARNING``
capability are never part of inference: parameters only influence a model
through the elements that read their learned values.
"""

from __future__ import annotations

import contextlib

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Iterable, Iterator, Optional, TYPE_CHECKING, Union

from tqdm import tqdm

from ppelements import utils
from ppelements.defaults import DEFAULT_N_SAMPLES
from ppelements.inference.factors import variable as variable_module
from ppelements.model.components import abstract_element
from ppelements.model.components.capabilities import Capability
from ppelements.model.components.transformations.chain import Chain
from ppelements.universe import get_default_universe

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.universe import Universe


def generation_order(
    elements: Iterable[abstract_element.Element],
) -> list[abstract_element.Element]:
    """Elements together with the current context elements of every chain.

    The context elements of a chain are listed before the chain, in creation
    order.

    :param elements: Top-level elements in creation order
    :type elements: Iterable[abstract_element.Element]

    :returns: Every element whose state changes when ``elements`` are generated
    :rtype: list[abstract_element.Element]
    """
    order = []
    for element in elements:
        if isinstance(element, Chain):
            order.extend(generation_order(element.context_elements))
        order.append(element)
    return order


class InferenceEngine(ABC):
    """Base class of all inference engines.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param universe: Universe to run inference in. Defaults to the universe of
        the first target, or the default universe if there are no targets.
    :type universe: Optional[Universe]

    :raises ScopeError: If a target is not visible from the universe
    """

    def __init__(
        self,
        *targets: abstract_element.Element,
        universe: Optional["Universe"] = None,
    ):
        if universe is None:
            universe = targets[0].universe if targets else get_default_universe()
        for target in targets:
            universe.check_scope(target)

        self.universe = universe
        self.targets: tuple[abstract_element.Element, ...] = utils.unique_in_order(
            targets
        )
        self.has_run = False
        self._distributions: dict[
            abstract_element.Element, "custom_types.OutcomeDistribution"
        ] = {}

    @property
    def elements(self) -> tuple[abstract_element.Element, ...]:
        """Top-level elements taking part in inference, outermost universe first."""
        return tuple(
            element
            for universe in reversed(self.universe.lineage)
            for element in universe.elements
            if not element.provides(Capability.LEARNING)
        )

    def run(self) -> InferenceEngine:
        """Run inference and store the distribution of every target.

        :returns: Self-reference for method chaining
        :rtype: InferenceEngine

        :raises ImpossibleEvidenceError: If the evidence has zero probability
        """
        self._distributions = self._infer()
        self.has_run = True
        return self

    @abstractmethod
    def _infer(
        self,
    ) -> dict[abstract_element.Element, "custom_types.OutcomeDistribution"]:
        """Compute the posterior distribution of every target."""

    def distribution(
        self, target: abstract_element.Element
    ) -> "custom_types.OutcomeDistribution":
        """Posterior distribution of a target.

        :param target: One of the engine's targets
        :type target: abstract_element.Element

        :returns: ``(probability, value)`` pairs with positive-or-zero
            probabilities summing to one
        :rtype: custom_types.OutcomeDistribution

        :raises RuntimeError: If the engine has not been run
        :raises KeyError: If the element is not a target of the engine
        """
        if not self.has_run:
            raise RuntimeError(f"{type(self).__name__} has not been run")
        if target not in self._distributions:
            raise KeyError(f"{target} is not a target of {type(self).__name__}")
        return list(self._distributions[target])

    def probability(
        self,
        target: abstract_element.Element,
        value: Union["custom_types.Predicate", Any],
    ) -> float:
        """Posterior probability of a value, or of the values satisfying a predicate.

        :param target: One of the engine's targets
        :type target: abstract_element.Element
        :param value: Value to compare against, or a predicate on values
        :type value: Union[custom_types.Predicate, Any]

        :returns: The probability
        :rtype: float
        """
        predicate = value if callable(value) else (lambda v: bool(v == value))
        return float(
            sum(
                probability
                for probability, outcome in self.distribution(target)
                if predicate(outcome)
            )
        )

    def expectation(
        self, target: abstract_element.Element, fn: Callable[[Any], float]
    ) -> float:
        """Posterior expectation of a function of the target's value.

        :param target: One of the engine's targets
        :type target: abstract_element.Element
        :param fn: Function from values to numbers
        :type fn: Callable[[Any], float]

        :returns: The expectation
        :rtype: float
        """
        return float(
            sum(
                probability * fn(outcome)
                for probability, outcome in self.distribution(target)
            )
        )


class FactoredEngine(InferenceEngine):
    """Base class of the engines that work on tabular factors."""

    def relevant_elements(
        self, context: "variable_module.VariableContext"
    ) -> tuple[abstract_element.Element, ...]:
        """Top-level elements the targets and the evidence depend on.

        Elements that are neither ancestors of a target nor of an element with
        evidence sum out to one and are skipped. Chains contribute the
        subordinates of every parent value as dependencies, and a context
        element depends on the chain that owns it, whose factors include its own.

        :param context: Per-run memoization context
        :type context: variable_module.VariableContext

        :returns: Relevant elements in creation order
        :rtype: tuple[abstract_element.Element, ...]
        """
        elements = self.elements
        stack = list(self.targets) + [
            element for element in generation_order(elements) if element.has_evidence
        ]
        seen = set()
        while stack:
            element = stack.pop()
            if element in seen:
                continue
            seen.add(element)
            stack.extend(element.args())
            if element.owner is not None:
                stack.append(element.owner)
            if isinstance(element, Chain):
                for parent_value in context.values(element.parent):
                    subordinate, created = context.subordinate(element, parent_value)
                    stack.append(subordinate)
                    stack.extend(created)

        return tuple(element for element in elements if element in seen)

    @contextlib.contextmanager
    def run_context(self) -> Iterator["variable_module.VariableContext"]:
        """Fresh memoization context, released when the run ends."""
        context = variable_module.VariableContext()
        try:
            yield context
        finally:
            context.release()

    def collect_factors(self, context: "variable_module.VariableContext") -> list:
        """Factors of every relevant element, including evidence factors.

        A target that no relevant element reaches contributes its own factors.
        """
        factors = []
        for element in self.relevant_elements(context):
            factors.extend(context.factors(element))
        for target in self.targets:
            factors.extend(context.factors(target))
        return factors


class SamplingEngine(InferenceEngine):
    """Base class of the engines that estimate distributions from weighted samples.

    :param targets: Elements whose posterior distributions are wanted
    :type targets: abstract_element.Element
    :param n_samples: Number of samples to collect. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_N_SAMPLES`.
    :type n_samples: int
    :param progress_bar: Whether to display a progress bar. Defaults to True.
    :type progress_bar: bool
    :param universe: Universe to run inference in
    :type universe: Optional[Universe]

    Target values are tallied by equality, so they must be hashable.
    """

    def __init__(
        self,
        *targets: abstract_element.Element,
        n_samples: int = DEFAULT_N_SAMPLES,
        progress_bar: bool = True,
        universe: Optional["Universe"] = None,
    ):
        if n_samples < 1:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        super().__init__(*targets, universe=universe)
        self.n_samples = n_samples
        self.progress_bar = progress_bar
        self._tallies: dict[abstract_element.Element, defaultdict] = {}

    def _reset_tallies(self) -> None:
        self._tallies = {target: defaultdict(float) for target in self.targets}

    def _record(self, weight: float) -> None:
        """Add the current value of every target with the given weight."""
        for target in self.targets:
            self._tallies[target][target.value] += weight

    def _tallies_to_distributions(
        self,
    ) -> dict[abstract_element.Element, "custom_types.OutcomeDistribution"]:
        """Normalize the tallies of every target.

        :raises ImpossibleEvidenceError: If every sample has zero weight
        """
        distributions = {}
        for target, tally in self._tallies.items():
            values = list(tally)
            probabilities = utils.normalize([tally[value] for value in values])
            distributions[target] = [
                (float(p), value) for p, value in zip(probabilities, values)
            ]
        return distributions

    def _progress(self, total: int, desc: str) -> tqdm:
        return tqdm(total=total, desc=desc, disable=not self.progress_bar)
