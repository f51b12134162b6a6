# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Expectation-maximization learning of conjugate parameters.

Each iteration of :py:class:`ExpectationMaximization` runs in two phases:

    1. **Expectation**: the statistics of every parameter are zeroed and an
       inference engine is run with the active elements that read the
       parameters as targets. Every target converts its posterior distribution
       into statistics for its parameter, which are summed per parameter.
       Parameters are read-only during this phase.
    2. **Maximization**: the new state of every parameter is computed from its
       accumulated statistics, and only then are all new states committed
       together.

The loop runs for a fixed number of iterations, or stops early once a full
iteration changes no expected value by more than a tolerance.

Example:
    >>> import ppelements as ppe
    >>> bias = ppe.BetaParameter(1.0, 1.0, name="bias")
    >>> for outcome in [True] * 7 + [False] * 3:
    ...     ppe.ParameterizedFlip(bias).observe(outcome)
    >>> results = ppe.ExpectationMaximization(bias, iterations=3).run()
    >>> round(bias.expected_value, 4)
    0.6667
"""

from __future__ import annotations

import warnings

from typing import Any, Optional, TYPE_CHECKING, Union

import numpy as np
import pandas as pd

from tqdm import tqdm

from ppelements import utils
from ppelements.defaults import DEFAULT_EM_ENGINE, DEFAULT_EM_ITERATIONS
from ppelements.inference.base import InferenceEngine
from ppelements.inference.belief_propagation import BeliefPropagation
from ppelements.inference.elimination import VariableElimination
from ppelements.inference.importance import ImportanceSampling
from ppelements.inference.metropolis_hastings import MetropolisHastings
from ppelements.model.components.capabilities import Capability

if TYPE_CHECKING:
    from ppelements.model.components import abstract_element
    from ppelements.model.components.parameters import Parameter

ENGINES: dict[str, type[InferenceEngine]] = {
    "mh": MetropolisHastings,
    "importance": ImportanceSampling,
    "ve": VariableElimination,
    "bp": BeliefPropagation,
}
"""Inference engines available to the expectation step, by name."""


class EMResults:
    """Trajectory of the expected values of learned parameters.

    :param parameters: Parameters that were learned
    :type parameters: tuple[Parameter, ...]

    :ivar history: Expected value of every parameter before the first iteration
        (entry 0) and after every completed iteration, keyed by parameter name
    """

    def __init__(self, parameters: tuple["Parameter", ...]):
        self.parameters = parameters
        self.history: list[dict[str, Any]] = []

    def record(self) -> None:
        """Append the current expected value of every parameter."""
        self.history.append(
            {
                parameter.name: np.copy(parameter.expected_value)
                if isinstance(parameter.expected_value, np.ndarray)
                else parameter.expected_value
                for parameter in self.parameters
            }
        )

    @property
    def n_iterations(self) -> int:
        """Number of completed iterations."""
        return max(len(self.history) - 1, 0)

    def last_change(self) -> float:
        """Largest change of any expected value in the last iteration.

        :returns: The change, or infinity if no iteration was completed
        :rtype: float
        """
        if len(self.history) < 2:
            return float("inf")
        previous, current = self.history[-2], self.history[-1]
        return float(
            max(
                np.max(np.abs(np.asarray(current[name]) - np.asarray(previous[name])))
                for name in current
            )
        )

    def converged(self, tolerance: float) -> bool:
        """Whether the last iteration changed every expected value by less than ``tolerance``."""
        return self.last_change() < tolerance

    def to_dataframe(self) -> pd.DataFrame:
        """History as a data frame with one row per iteration.

        Vector-valued parameters are split into one column per component,
        named ``<parameter>[<index>]``.

        :returns: Data frame indexed by iteration
        :rtype: pd.DataFrame
        """
        rows = []
        for values in self.history:
            row = {}
            for name, value in values.items():
                if isinstance(value, np.ndarray):
                    row.update({f"{name}[{i}]": float(v) for i, v in enumerate(value)})
                else:
                    row[name] = float(value)
            rows.append(row)
        return pd.DataFrame(rows).rename_axis("iteration")


class ExpectationMaximization:
    """Learn parameters by alternating inference and conjugate updates.

    :param parameters: Parameters to learn
    :type parameters: Parameter
    :param iterations: Maximum number of iterations. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_EM_ITERATIONS`.
    :type iterations: int
    :param engine: Name of the inference engine used in the expectation step
        (one of :py:data:`ENGINES`) or an engine class. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_EM_ENGINE`.
    :type engine: Union[str, type[InferenceEngine]]
    :param engine_kwargs: Keyword arguments passed to the engine. Defaults to
        None.
    :type engine_kwargs: Optional[dict[str, Any]]
    :param tolerance: Stop once an iteration changes no expected value by more
        than this amount. Defaults to None (always run every iteration).
    :type tolerance: Optional[float]
    :param progress_bar: Whether to display a progress bar. Defaults to True.
    :type progress_bar: bool

    :raises ValueError: If no parameters are given, an argument is not a
        learnable parameter, the number of iterations is not positive or the
        engine name is unknown
    """

    def __init__(
        self,
        *parameters: "Parameter",
        iterations: int = DEFAULT_EM_ITERATIONS,
        engine: Union[str, type[InferenceEngine]] = DEFAULT_EM_ENGINE,
        engine_kwargs: Optional[dict[str, Any]] = None,
        tolerance: Optional[float] = None,
        progress_bar: bool = True,
    ):
        if not parameters:
            raise ValueError("At least one parameter is required")
        for parameter in parameters:
            if not parameter.provides(Capability.LEARNING):
                raise ValueError(f"{parameter} is not a learnable parameter")
        if iterations < 1:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if isinstance(engine, str):
            if engine not in ENGINES:
                raise ValueError(
                    f"Unknown engine '{engine}'. Options are {sorted(ENGINES)}"
                )
            engine = ENGINES[engine]

        self.parameters: tuple["Parameter", ...] = utils.unique_in_order(parameters)
        self.iterations = iterations
        self.engine = engine
        self.engine_kwargs = engine_kwargs or {}
        self.tolerance = tolerance
        self.progress_bar = progress_bar

    @property
    def targets(self) -> tuple["abstract_element.Element", ...]:
        """Active elements reading any of the parameters."""
        return utils.unique_in_order(
            element
            for parameter in self.parameters
            for element in parameter.parameterized_elements
            if element.active
        )

    def expectation_step(self) -> dict["Parameter", np.ndarray]:
        """Run inference and accumulate the statistics of every parameter.

        :returns: Summed statistics per parameter
        :rtype: dict[Parameter, np.ndarray]
        """
        statistics = {
            parameter: parameter.zero_sufficient_statistics()
            for parameter in self.parameters
        }
        targets = self.targets
        if not targets:
            return statistics

        # Only the elements captured before the run are engine targets
        engine = self.engine(*targets, **self.engine_kwargs).run()
        for element in targets:
            statistics[element.parameter] += element.distribution_to_statistics(
                engine.distribution(element)
            )
        return statistics

    def maximization_step(self, statistics: dict["Parameter", np.ndarray]) -> None:
        """Compute every new state, then commit all of them.

        :param statistics: Summed statistics per parameter
        :type statistics: dict[Parameter, np.ndarray]

        :raises DimensionMismatchError: If any statistics vector has the wrong
            length. No parameter is modified in that case.
        """
        new_states = {
            parameter: parameter.with_updated_statistics(statistics[parameter])
            for parameter in self.parameters
        }
        for parameter, state in new_states.items():
            parameter.set_state(state)

    def run(self) -> EMResults:
        """Run the expectation-maximization loop.

        :returns: The trajectory of the parameters' expected values
        :rtype: EMResults
        """
        results = EMResults(self.parameters)
        results.record()

        with tqdm(
            total=self.iterations,
            desc="EM iterations",
            postfix={"change": "N/A"},
            disable=not self.progress_bar,
        ) as pbar:
            for _ in range(self.iterations):
                self.maximization_step(self.expectation_step())
                results.record()

                # Update progress bar
                pbar.update(1)
                pbar.set_postfix({"change": f"{results.last_change():.2e}"})

                # Check for convergence
                if self.tolerance is not None and results.converged(self.tolerance):
                    break

            # Note that convergence was not reached if the loop completes
            else:
                if self.tolerance is not None:
                    warnings.warn(
                        f"EM did not converge to a tolerance of {self.tolerance} "
                        f"within {self.iterations} iterations."
                    )

        return results
