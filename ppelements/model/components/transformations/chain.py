# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Dependent branching: elements whose distribution is chosen by a parent value.

A chain holds one parent element and a function mapping a parent *value* to a
subordinate *element*. Whenever the chain is generated, the parent's current
value selects (or constructs) the subordinate and the chain's value becomes
the subordinate's value.

Elements constructed while the function runs are the chain's *context
elements*. They are owned by the chain, are not name-resolvable in the
universe, and are regenerated together with the chain whenever the
subordinate they belong to is selected.

Two policies decide when the function is called:

    - :py:class:`CachingChain` keeps a bounded LRU table keyed by parent value
      and returns the identical subordinate for a parent value it has seen.
      Evicted entries are dropped silently and their context elements are
      deactivated.
    - :py:class:`NonCachingChain` builds a new subordinate whenever it is asked
      for one through :py:meth:`Chain.get`. During generation the current
      subordinate is kept for as long as the parent value does not change.

The :py:func:`chain` constructor picks the caching policy automatically when
the parent type carries the ``CACHEABLE`` marker or the function is decorated
with :py:func:`small_support`. Either policy can always be requested
explicitly.

Example:
    >>> import ppelements as ppe
    >>> rain = ppe.Flip(0.2, name="rain")
    >>> wet = ppe.chain(rain, lambda r: ppe.Flip(0.9 if r else 0.1), name="wet")
    >>> isinstance(wet, ppe.CachingChain)
    True
"""

from __future__ import annotations

from abc import abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Optional, TYPE_CHECKING

from ppelements import utils
from ppelements.defaults import DEFAULT_CHAIN_CACHE_CAPACITY
from ppelements.exceptions import CyclicDependencyError
from ppelements.inference.factors import factor as factor_module
from ppelements.model.components import abstract_element, capabilities
from ppelements.model.components.capabilities import Capability

if TYPE_CHECKING:
    from ppelements import custom_types
    from ppelements.inference.factors import variable as variable_module
    from ppelements.universe import Universe

# A subordinate together with the context elements created with it
Expansion = tuple[abstract_element.Element, tuple[abstract_element.Element, ...]]


class Chain(
    capabilities.Enumerable,
    capabilities.FactorMaker,
    abstract_element.Element,
):
    """Base class of the chain policies.

    :param parent: Element whose value selects the subordinate
    :type parent: Any
    :param fn: Function from a parent value to an element
    :type fn: Callable[[Any], abstract_element.Element]
    :param name: Name of the element. Defaults to "".
    :type name: str
    :param universe: Universe of the element. Defaults to the default universe.
    :type universe: Optional[Universe]

    Subclasses decide how subordinates are looked up by implementing
    :py:meth:`expand`.

    .. note::
        Elements that ``fn`` returns without creating them must already exist
        when the chain is constructed, so that generating elements in creation
        order generates them before the chain.
    """

    DETERMINISTIC = True

    def __init__(
        self,
        parent: Any,
        fn: Callable[[Any], abstract_element.Element],
        *,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        self.parent = abstract_element.to_element(parent, universe=universe)
        self.fn = fn

        # Current selection
        self._subordinate: Optional[abstract_element.Element] = None
        self._context: tuple[abstract_element.Element, ...] = ()
        self._selected_for: Any = None

        super().__init__(name=name, universe=universe)

    def args(self) -> tuple[abstract_element.Element, ...]:
        return (self.parent,)

    def _construct(self, parent_value: Any) -> Expansion:
        """Run the chain function and collect the elements it creates.

        :raises TypeError: If the function does not return an element
        :raises CyclicDependencyError: If the function returns the chain itself
        """
        with self.universe.context(self) as created:
            subordinate = self.fn(parent_value)

        if subordinate is self:
            raise CyclicDependencyError(f"The function of {self} returned {self}")
        if not isinstance(subordinate, abstract_element.Element):
            raise TypeError(
                f"The function of {self} must return an element, got "
                f"{type(subordinate).__name__}"
            )
        self.universe.check_scope(subordinate)

        return subordinate, tuple(created)

    def _discard(self, expansion: Expansion) -> None:
        """Deactivate the context elements of a dropped subordinate."""
        for element in expansion[1]:
            self.universe.deactivate(element)

    @abstractmethod
    def expand(self, parent_value: Any) -> Expansion:
        """Subordinate and context elements for a parent value.

        :param parent_value: Value of the parent
        :type parent_value: Any

        :returns: The subordinate element and the context elements created with
            it, in creation order
        :rtype: tuple[abstract_element.Element, tuple[abstract_element.Element, ...]]
        """

    def get(self, parent_value: Any) -> abstract_element.Element:
        """Subordinate element for a parent value.

        :param parent_value: Value of the parent
        :type parent_value: Any

        :returns: The subordinate element
        :rtype: abstract_element.Element
        """
        return self.expand(parent_value)[0]

    def _select(self, parent_value: Any) -> Expansion:
        """Subordinate used during generation for a parent value."""
        return self.expand(parent_value)

    def _current(self) -> abstract_element.Element:
        """Selected subordinate, selecting one for the parent's value if needed."""
        if self._subordinate is None:
            self._subordinate, self._context = self._select(self.parent.value)
            self._selected_for = self.parent.value
        return self._subordinate

    def lookup(self, parent_value: Any) -> Expansion:
        """Expansion factored inference uses for a parent value.

        :param parent_value: Value of the parent
        :type parent_value: Any

        :returns: The subordinate element and its context elements
        :rtype: tuple[abstract_element.Element, tuple[abstract_element.Element, ...]]
        """
        return self.expand(parent_value)

    def release(
        self, expansion: Expansion  # pylint: disable=unused-argument
    ) -> None:
        """Give back an expansion obtained from :py:meth:`lookup`.

        Cached expansions stay live.
        """

    def generate(self, fresh: bool = True) -> None:
        """Select the subordinate for the parent's current value and regenerate it.

        :param fresh: Whether the context elements draw new randomness. The
            context elements of a subordinate that was not selected before this
            call always draw new randomness, so switching subordinates forward
            samples them. Defaults to True.
        :type fresh: bool
        """
        parent_value = self.parent.value
        subordinate, context = self._select(parent_value)
        switched = subordinate is not self._subordinate
        self._subordinate, self._context = subordinate, context
        self._selected_for = parent_value

        for element in self._context:
            element.generate(fresh or switched)

        self.randomness = None
        self.value = self.generate_value(None)

    def generate_randomness(self) -> None:
        """Chains have no randomness of their own."""
        return None

    def generate_value(
        self, randomness: "custom_types.Randomness"  # pylint: disable=unused-argument
    ) -> "custom_types.Value":
        """Current value of the selected subordinate."""
        return self._current().value

    def density(self, value: "custom_types.Value") -> float:
        """Density of ``value`` under the subordinate for the parent's value."""
        return self._current().density(value)

    def snapshot(self) -> Any:
        return (
            super().snapshot(),
            self._subordinate,
            self._context,
            self._selected_for,
        )

    def restore(self, state: Any) -> None:
        base, self._subordinate, self._context, self._selected_for = state
        super().restore(base)

    def make_values(self, context: "variable_module.VariableContext") -> tuple[Any, ...]:
        values = []
        for parent_value in context.values(self.parent):
            subordinate, _ = context.subordinate(self, parent_value)
            values.extend(context.values(subordinate))
        return utils.unique_in_order(values)

    def make_factors(
        self, context: "variable_module.VariableContext"
    ) -> list[factor_module.Factor]:
        """One selector factor per parent value, then the context elements' factors.

        For parent index ``i`` with subordinate ``s``, the selector factor over
        ``(parent, chain, s)`` has weight one wherever the parent index is not
        ``i`` and is the indicator ``chain == s`` where it is.
        """
        parent_variable = context.variable(self.parent)
        own_variable = context.variable(self)

        factors = []
        for parent_index, parent_value in enumerate(parent_variable.domain):
            subordinate, created = context.subordinate(self, parent_value)

            # The subordinate is the parent itself: chain == parent value
            if subordinate is self.parent:
                factor = factor_module.Factor([parent_variable, own_variable])
                selected = own_variable.index(parent_value)
                for p in range(parent_variable.size):
                    for j in range(own_variable.size):
                        factor.set(
                            (p, j),
                            1.0 if p != parent_index or j == selected else 0.0,
                        )
                factors.append(factor)

            else:
                sub_variable = context.variable(subordinate)
                selected = [own_variable.index(v) for v in sub_variable.domain]
                factor = factor_module.Factor(
                    [parent_variable, own_variable, sub_variable]
                )
                for p in range(parent_variable.size):
                    for j in range(own_variable.size):
                        for k in range(sub_variable.size):
                            factor.set(
                                (p, j, k),
                                1.0 if p != parent_index or j == selected[k] else 0.0,
                            )
                factors.append(factor)

            for element in created:
                factors.extend(context.factors(element))

        return factors

    @property
    def subordinate(self) -> Optional[abstract_element.Element]:
        """Subordinate selected by the most recent generation."""
        return self._subordinate

    @property
    def context_elements(self) -> tuple[abstract_element.Element, ...]:
        """Context elements of the currently selected subordinate."""
        return self._context


class CachingChain(Chain):
    """Chain that memoizes subordinates in a bounded LRU table.

    :param parent: Element whose value selects the subordinate
    :type parent: Any
    :param fn: Function from a parent value to an element
    :type fn: Callable[[Any], abstract_element.Element]
    :param capacity: Maximum number of parent values remembered. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_CHAIN_CACHE_CAPACITY`.
    :type capacity: int

    Parent values are compared by equality and must be hashable.

    :raises ValueError: If the capacity is not positive
    """

    def __init__(
        self,
        parent: Any,
        fn: Callable[[Any], abstract_element.Element],
        *,
        capacity: int = DEFAULT_CHAIN_CACHE_CAPACITY,
        name: str = "",
        universe: Optional["Universe"] = None,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._cache: OrderedDict[Any, Expansion] = OrderedDict()
        super().__init__(parent, fn, name=name, universe=universe)

    def expand(self, parent_value: Any) -> Expansion:
        if parent_value in self._cache:
            self._cache.move_to_end(parent_value)
            return self._cache[parent_value]

        expansion = self._construct(parent_value)
        self._cache[parent_value] = expansion
        if len(self._cache) > self.capacity:
            _, evicted = self._cache.popitem(last=False)
            self._discard(evicted)
        return expansion

    @property
    def cache_size(self) -> int:
        """Number of parent values currently cached."""
        return len(self._cache)


class NonCachingChain(Chain):
    """Chain that constructs a new subordinate for every request.

    During generation the current subordinate is reused while the parent value
    is unchanged, so repeated regeneration with a fixed parent only resamples
    the subordinate's randomness.
    """

    def expand(self, parent_value: Any) -> Expansion:
        return self._construct(parent_value)

    def _select(self, parent_value: Any) -> Expansion:
        if self._subordinate is not None and bool(self._selected_for == parent_value):
            return self._subordinate, self._context

        expansion = self._construct(parent_value)
        if self._subordinate is not None:
            self._discard((self._subordinate, self._context))
        return expansion

    def lookup(self, parent_value: Any) -> Expansion:
        """The current selection if it was made for ``parent_value``, else a new one."""
        if self._subordinate is not None and bool(self._selected_for == parent_value):
            return self._subordinate, self._context
        return self._construct(parent_value)

    def release(self, expansion: Expansion) -> None:
        """Deactivate the context elements of an expansion that is not selected."""
        if expansion[0] is not self._subordinate:
            self._discard(expansion)


def small_support(
    fn: Callable[[Any], abstract_element.Element],
) -> Callable[[Any], abstract_element.Element]:
    """Mark a chain function as having a small-support parent.

    :py:func:`chain` selects the caching policy for marked functions.

    Example:
        >>> @small_support
        ... def pick(weather):
        ...     return ppe.Flip(0.8 if weather == "rain" else 0.1)
    """
    fn.SMALL_SUPPORT = True
    return fn


def chain(
    parent: Any,
    fn: Callable[[Any], abstract_element.Element],
    caching: Optional[bool] = None,
    capacity: Optional[int] = None,
    *,
    name: str = "",
    universe: Optional["Universe"] = None,
) -> Chain:
    """Build a chain, choosing the caching policy when none is requested.

    :param parent: Element whose value selects the subordinate
    :type parent: Any
    :param fn: Function from a parent value to an element
    :type fn: Callable[[Any], abstract_element.Element]
    :param caching: Force the caching (True) or non-caching (False) policy. By
        default caching is used when the parent type is marked ``CACHEABLE`` or
        ``fn`` is decorated with :py:func:`small_support`.
    :type caching: Optional[bool]
    :param capacity: Cache capacity of a caching chain. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_CHAIN_CACHE_CAPACITY`.
    :type capacity: Optional[int]

    :returns: The new chain
    :rtype: Chain

    :raises ValueError: If a capacity is given for a non-caching chain
    """
    parent = abstract_element.to_element(parent, universe=universe)
    if caching is None:
        caching = parent.provides(Capability.CACHEABLE) or getattr(
            fn, "SMALL_SUPPORT", False
        )

    if caching:
        return CachingChain(
            parent,
            fn,
            capacity=DEFAULT_CHAIN_CACHE_CAPACITY if capacity is None else capacity,
            name=name,
            universe=universe,
        )
    if capacity is not None:
        raise ValueError("A capacity can only be given to a caching chain")
    return NonCachingChain(parent, fn, name=name, universe=universe)
