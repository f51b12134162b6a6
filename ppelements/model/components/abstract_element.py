# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Abstract base class for PPElements elements.

This module defines the foundational abstract class of every random variable in
a PPElements model. Users typically do not interact with this module directly;
instead, they use the concrete elements in
:py:mod:`ppelements.model.components.atomic`,
:py:mod:`ppelements.model.components.constants` and the composition constructs
in :py:mod:`ppelements.model.components.transformations`.

Core Abstractions:

    - **Generation Protocol**: ``generate_randomness`` draws an intermediate
      randomness, ``generate_value`` maps it deterministically to a value and
      ``density`` scores values (``0`` outside the support, never an error)
    - **Component Hierarchy**: Parent-child relationships induced by ``args``
    - **Capability Dispatch**: Optional protocols declared through the mixins
      in :py:mod:`~ppelements.model.components.capabilities`
    - **Evidence**: Observations, conditions and constraints on values

Key Responsibilities:

    - Register the element with its universe and receive an immutable identity
    - Validate that parents are visible from the element's universe
    - Maintain the current randomness and value used by samplers
    - Provide the default symmetric Metropolis-Hastings proposal
    - Traverse the dependency graph and report cycles
"""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from typing import Any, Callable, Optional, TYPE_CHECKING, Union

import numpy as np

import ppelements
from ppelements import utils
from ppelements.exceptions import CyclicDependencyError, UnsupportedCapabilityError
from ppelements.model.components import capabilities
from ppelements.model.components.capabilities import Capability, Proposal
from ppelements.universe import get_default_universe

# Lazy imports to avoid circular imports
constants_module = utils.lazy_import("ppelements.model.components.constants")

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.universe import ElementId, Universe


class ElementMeta(ABCMeta):
    """Metaclass recording the capabilities of every element class.

    :param name: Name of the class being created
    :type name: str
    :param bases: Base classes for the new class
    :type bases: tuple
    :param attrs: Class attributes dictionary
    :type attrs: dict

    The metaclass gathers the :py:class:`~ppelements.model.components.capabilities.Capability`
    tag of every capability mixin in the class's MRO and assigns the result to
    :py:attr:`Element.CAPABILITIES`.
    """

    def __init__(cls, name, bases, attrs):
        """Record the capability tags of the new class."""
        # Run the parent class's __init__ method
        super().__init__(name, bases, attrs)

        # Tag the class with its capabilities
        cls.CAPABILITIES = capabilities.collect_capabilities(cls)


class Element(metaclass=ElementMeta):
    """Base class for all elements of a PPElements model.

    :param name: Name of the element, unique among the top-level elements of its
        universe. A default name is generated if empty. Defaults to "".
    :type name: str
    :param universe: Universe that owns the element. Defaults to the current
        default universe (the chain's universe inside a chain function).
    :type universe: Optional[Universe]

    :ivar id: Immutable identity assigned by the universe
    :ivar owner: Chain whose function created the element, or None
    :ivar randomness: Randomness of the most recent generation
    :ivar value: Value of the most recent generation
    :ivar active: False once the element has been deactivated by its universe

    :cvar DETERMINISTIC: Whether the element's value is a function of its args
        alone. Deterministic elements use ``None`` as their randomness.
    :cvar CAPABILITIES: Capability tags provided by the class. Set by the
        metaclass.

    .. important::
        :py:meth:`args` is consulted from ``__init__`` to check scopes and
        record children. Subclasses must therefore store their parents before
        calling ``super().__init__``.
    """

    DETERMINISTIC: bool = False
    """Class variable noting whether the element's value is a function of its args."""

    CAPABILITIES: frozenset[Capability] = frozenset()
    """Class variable giving the optional capabilities of the element type."""

    def __init__(self, *, name: str = "", universe: Optional["Universe"] = None):
        """Register the element and link it to its parents."""
        self.universe: "Universe" = (
            universe if universe is not None else get_default_universe()
        )

        # Parents must be visible from this universe
        for parent in self.args():
            self.universe.check_scope(parent)

        # Receive an identity
        self.id: "ElementId"
        self.name: str
        self.owner: Optional[Element]
        self.id, self.name, self.owner = self.universe.register(self, name)
        self.active: bool = True

        # Generation state
        self.randomness: "custom_types.Randomness" = None
        self.value: "custom_types.Value" = None

        # Evidence
        self.has_observation: bool = False
        self.observation: "custom_types.Value" = None
        self.condition: Optional["custom_types.Predicate"] = None
        self.constraint: Optional[Callable[[Any], float]] = None

        # Link parent and child elements
        self._children: list[Element] = []
        for parent in self.args():
            parent._record_child(self)  # pylint: disable=protected-access

    def _record_child(self, child: Element) -> None:
        """Record a child element in the dependency graph.

        A child that uses this element more than once is recorded once.
        """
        if child not in self._children:
            self._children.append(child)

    def args(self) -> tuple[Element, ...]:
        """Parents of this element. Empty for atomic elements.

        :returns: Elements whose values this element depends on
        :rtype: tuple[Element, ...]
        """
        return ()

    @abstractmethod
    def generate_randomness(self) -> "custom_types.Randomness":
        """Draw a fresh randomness from the element's generative process.

        Implementations consume entropy only from :py:meth:`get_rng`.
        """

    @abstractmethod
    def generate_value(
        self, randomness: "custom_types.Randomness"
    ) -> "custom_types.Value":
        """Map a randomness to a value.

        Must be referentially consistent: equal randomness (and equal parent
        values) always yields equal values.
        """

    @abstractmethod
    def density(self, value: "custom_types.Value") -> float:
        """Probability density or mass of ``value`` under the current distribution.

        Must return ``0.0`` for values outside the support and never raise.
        """

    def generate(self, fresh: bool = True) -> None:
        """Regenerate the element's randomness and value.

        :param fresh: Whether to draw new randomness. When False, the current
            randomness is kept (if there is one) and only the value is
            recomputed, e.g. after a parent changed. Defaults to True.
        :type fresh: bool

        Observed stochastic elements are clamped: their value is always the
        observation.
        """
        if fresh or (self.randomness is None and not self.DETERMINISTIC):
            self.randomness = self.generate_randomness()
        if self.is_clamped:
            self.value = self.observation
        else:
            self.value = self.generate_value(self.randomness)

    def next_randomness(self, randomness: "custom_types.Randomness") -> Proposal:
        """Default symmetric Metropolis-Hastings proposal.

        The current randomness is ignored and a fresh one is drawn from the
        generative process, so both ratios are ``1.0``. This is only correct
        because the generative process itself is the proposal.

        :param randomness: Current randomness (unused)
        :type randomness: custom_types.Randomness

        :returns: Proposal with unit transition and model ratios
        :rtype: Proposal
        """
        return Proposal(self.generate_randomness(), 1.0, 1.0)

    def provides(self, capability: Capability) -> bool:
        """Check whether the element type provides a capability.

        :param capability: Capability to look up
        :type capability: Capability

        :returns: True if the capability is provided
        :rtype: bool
        """
        return capability in self.CAPABILITIES

    def capability(self, capability: Capability) -> Element:
        """Typed optional-capability lookup.

        :param capability: Capability required by the caller
        :type capability: Capability

        :returns: This element, known to implement the capability
        :rtype: Element

        :raises UnsupportedCapabilityError: If the element type does not provide
            the capability
        """
        if not self.provides(capability):
            raise UnsupportedCapabilityError(
                f"{self} ({type(self).__name__}) does not provide the "
                f"'{capability.value}' capability"
            )
        return self

    def observe(self, value: "custom_types.Value") -> Element:
        """Condition the element on taking exactly ``value``.

        :param value: Observed value
        :type value: custom_types.Value

        :returns: Self-reference for method chaining
        :rtype: Element
        """
        self.has_observation = True
        self.observation = value
        if self.is_clamped:
            self.value = value
        return self

    def unobserve(self) -> Element:
        """Remove the observation from the element.

        :returns: Self-reference for method chaining
        :rtype: Element
        """
        self.has_observation = False
        self.observation = None
        return self

    def set_condition(self, condition: Optional["custom_types.Predicate"]) -> Element:
        """Restrict the element to values satisfying a predicate.

        :param condition: Predicate on values, or None to remove the condition
        :type condition: Optional[custom_types.Predicate]

        :returns: Self-reference for method chaining
        :rtype: Element
        """
        self.condition = condition
        return self

    def set_constraint(self, constraint: Optional[Callable[[Any], float]]) -> Element:
        """Weight the element's values by a non-negative function.

        :param constraint: Function from values to non-negative weights, or None
            to remove the constraint
        :type constraint: Optional[Callable[[Any], float]]

        :returns: Self-reference for method chaining
        :rtype: Element
        """
        self.constraint = constraint
        return self

    def evidence_weight(self, value: "custom_types.Value") -> float:
        """Weight the evidence on this element assigns to ``value``.

        :param value: Candidate value
        :type value: custom_types.Value

        :returns: ``0.0`` if the value contradicts the observation or condition,
            otherwise the constraint weight (``1.0`` without a constraint)
        :rtype: float
        """
        if self.has_observation and not bool(value == self.observation):
            return 0.0
        if self.condition is not None and not self.condition(value):
            return 0.0
        if self.constraint is None:
            return 1.0
        weight = float(self.constraint(value))
        if weight < 0:
            raise ValueError(f"Constraint of {self} returned negative weight {weight}")
        return weight

    def sample_weight(self) -> float:
        """Importance weight of the current value given the evidence.

        Clamped elements contribute the density of their observation
        (likelihood weighting); all others contribute their evidence weight.

        :returns: Non-negative weight
        :rtype: float
        """
        weight = self.evidence_weight(self.value)
        if self.is_clamped and weight > 0:
            weight *= self.density(self.value)
        return weight

    def snapshot(self) -> Any:
        """Capture the generation state so that a sampler can roll it back."""
        return self.randomness, self.value

    def restore(self, state: Any) -> None:
        """Roll the generation state back to a :py:meth:`snapshot`."""
        self.randomness, self.value = state

    def get_rng(
        self, seed: Optional["custom_types.Integer"] = None
    ) -> np.random.Generator:
        """Get random number generator for sampling operations.

        :param seed: Optional seed for reproducible generation. Defaults to None.
        :type seed: Optional[custom_types.Integer]

        :returns: NumPy random number generator
        :rtype: np.random.Generator

        Returns the global :py:obj:`ppelements.RNG` if no seed is provided, otherwise
        creates a new generator with the specified seed.
        """
        if seed is None:
            return ppelements.RNG
        return np.random.default_rng(seed)

    def walk_tree(
        self,
        walk_down: bool = False,
        _recursion_depth: int = 1,
        _path: frozenset = frozenset(),
    ) -> list[tuple[int, Element, Element]]:
        """Traverse the element dependency graph.

        :param walk_down: Whether to walk toward children (True) or parents
            (False). Defaults to False.
        :type walk_down: bool

        :returns: List of (depth, current_element, relative_element) tuples
        :rtype: list[tuple[int, Element, Element]]

        :raises CyclicDependencyError: If the traversal revisits an element on
            the current path
        """
        path = _path | {self}
        relatives = self.children if walk_down else self.parents

        to_return = []
        for relative in relatives:
            if relative in path:
                raise CyclicDependencyError(
                    f"Cycle detected between {self} and {relative}"
                )
            to_return.append((_recursion_depth, self, relative))
            to_return.extend(
                relative.walk_tree(
                    walk_down=walk_down,
                    _recursion_depth=_recursion_depth + 1,
                    _path=path,
                )
            )
        return to_return

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.name})"

    __repr__ = __str__

    @property
    def is_clamped(self) -> bool:
        """Whether the element is stochastic and observed."""
        return self.has_observation and not self.DETERMINISTIC

    @property
    def has_evidence(self) -> bool:
        """Whether the element carries an observation, condition or constraint."""
        return (
            self.has_observation
            or self.condition is not None
            or self.constraint is not None
        )

    @property
    def parents(self) -> tuple[Element, ...]:
        """Alias of :py:meth:`args`."""
        return self.args()

    @property
    def children(self) -> tuple[Element, ...]:
        """Elements that take this element as an argument."""
        return tuple(self._children)


def to_element(
    value: Union[Element, Any], universe: Optional["Universe"] = None
) -> Element:
    """Wrap a plain value into a :py:class:`~ppelements.model.components.constants.Constant`.

    :param value: Element or plain value
    :type value: Union[Element, Any]
    :param universe: Universe of the constant. Defaults to the default universe.
    :type universe: Optional[Universe]

    :returns: The element itself, or a new constant holding the value
    :rtype: Element
    """
    if isinstance(value, Element):
        return value
    return constants_module.Constant(value, universe=universe)
