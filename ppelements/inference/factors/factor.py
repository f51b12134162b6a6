# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tabular factors over finite-domain variables.

A :py:class:`Factor` is a dense table of non-negative weights indexed by the
joint values of an ordered tuple of distinct
:py:class:`~ppelements.inference.factors.variable.Variable` handles. Cell
``(i, j, ...)`` holds the weight of the assignment
``(variables[0].domain[i], variables[1].domain[j], ...)``.

Factors are built cell by cell with :py:meth:`Factor.set`. Cells start out unset
(``nan``) and a factor whose weights are read before every cell was assigned
raises :py:class:`~ppelements.exceptions.UnsetFactorCellError`, so an element
that forgets part of its table fails loudly instead of contributing zeros.

Example:
    >>> ctx = VariableContext()
    >>> weather = ppe.Select({"sun": 0.2, "rain": 0.3, "snow": 0.5})
    >>> [factor] = weather.make_factors(ctx)
    >>> factor.weights
    array([0.2, 0.3, 0.5])
"""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

import numpy as np

from ppelements import utils
from ppelements.exceptions import UnsetFactorCellError

if TYPE_CHECKING:
    from ppelements.inference.factors import variable as variable_module


class Factor:
    """Table of non-negative weights over an ordered tuple of variables.

    :param variables: Distinct variables spanned by the factor, in axis order.
        A factor over no variables holds a single scalar weight.
    :type variables: Sequence[variable_module.Variable]

    :raises ValueError: If a variable appears more than once
    """

    def __init__(self, variables: Sequence["variable_module.Variable"]):
        self.variables: tuple["variable_module.Variable", ...] = tuple(variables)
        if len(set(map(id, self.variables))) != len(self.variables):
            raise ValueError(f"Factor variables must be distinct: {self.variables}")

        self._table = np.full(self.shape, np.nan)

    @classmethod
    def from_weights(
        cls, variables: Sequence["variable_module.Variable"], weights: np.ndarray
    ) -> Factor:
        """Build a complete factor from an array of weights.

        :param variables: Variables spanned by the factor
        :type variables: Sequence[variable_module.Variable]
        :param weights: Weights with one axis per variable
        :type weights: np.ndarray

        :returns: The factor
        :rtype: Factor

        :raises ValueError: If the array shape does not match the variables or a
            weight is negative
        """
        factor = cls(variables)
        weights = np.asarray(weights, dtype=float)
        if weights.shape != factor.shape:
            raise ValueError(
                f"Weights of shape {weights.shape} do not match factor shape "
                f"{factor.shape}"
            )
        if np.any(weights < 0):
            raise ValueError("Factor weights must be non-negative")
        factor._table = weights.copy()  # pylint: disable=protected-access
        return factor

    def set(self, indices: tuple[int, ...], weight: float) -> None:
        """Assign the weight of one cell.

        :param indices: One domain index per variable
        :type indices: tuple[int, ...]
        :param weight: Non-negative weight of the cell
        :type weight: float

        :raises ValueError: If the weight is negative or not a number
        :raises IndexError: If the indices do not address a cell
        """
        weight = float(weight)
        if not weight >= 0:
            raise ValueError(f"Factor weights must be non-negative, got {weight}")
        if len(indices) != len(self.variables):
            raise IndexError(
                f"Expected {len(self.variables)} indices, got {len(indices)}"
            )
        self._table[tuple(indices)] = weight

    def get(self, indices: tuple[int, ...]) -> float:
        """Read the weight of one cell.

        :raises UnsetFactorCellError: If the cell was never assigned
        """
        weight = float(self._table[tuple(indices)])
        if np.isnan(weight):
            raise UnsetFactorCellError(f"Cell {indices} of {self} has not been set")
        return weight

    @property
    def weights(self) -> np.ndarray:
        """Copy of the complete weight table.

        :raises UnsetFactorCellError: If any cell is unset
        """
        if not self.is_complete:
            missing = np.argwhere(np.isnan(self._table))
            raise UnsetFactorCellError(
                f"{len(missing)} cell(s) of {self} have not been set, first "
                f"{tuple(missing[0])}"
            )
        return self._table.copy()

    @property
    def is_complete(self) -> bool:
        """Whether every cell has been assigned."""
        return not np.isnan(self._table).any()

    @property
    def shape(self) -> tuple[int, ...]:
        """Domain size of every variable, in axis order."""
        return tuple(variable.size for variable in self.variables)

    def _aligned(self, variables: tuple["variable_module.Variable", ...]) -> np.ndarray:
        """Weights transposed to ``variables`` order with size-1 axes for the rest."""
        axes = [self.variables.index(v) for v in variables if v in self.variables]
        shape = [v.size if v in self.variables else 1 for v in variables]
        return np.transpose(self.weights, axes).reshape(shape)

    def product(self, other: Factor) -> Factor:
        """Pointwise product over the union of both factors' variables.

        :param other: Factor to multiply with
        :type other: Factor

        :returns: New factor whose variables are this factor's followed by the
            other factor's remaining variables
        :rtype: Factor
        """
        variables = self.variables + tuple(
            v for v in other.variables if v not in self.variables
        )
        return Factor.from_weights(
            variables, np.asarray(self._aligned(variables) * other._aligned(variables))
        )

    def sum_out(self, variable: "variable_module.Variable") -> Factor:
        """Marginalize one variable out of the factor.

        :raises ValueError: If the variable is not spanned by the factor
        """
        if variable not in self.variables:
            raise ValueError(f"{variable} is not a variable of {self}")
        axis = self.variables.index(variable)
        return Factor.from_weights(
            self.variables[:axis] + self.variables[axis + 1 :],
            np.asarray(self.weights.sum(axis=axis)),
        )

    def normalized(self) -> Factor:
        """Copy of the factor scaled so that its weights sum to one.

        :raises ImpossibleEvidenceError: If every weight is zero
        """
        return Factor.from_weights(self.variables, utils.normalize(self.weights))

    def __repr__(self) -> str:
        names = ", ".join(v.element.name for v in self.variables)
        return f"Factor({names})"
