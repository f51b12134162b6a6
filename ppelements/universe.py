# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Element identity and scoping.

A :py:class:`Universe` is the collection that owns elements. It hands out
immutable :py:class:`ElementId` identities, resolves element names (first in
itself, then in its ancestors) and keeps the creation order that inference
engines use as a topological order of the model.

Universes can be nested. An element may only take arguments from its own
universe or from an ancestor universe; references into a child or sibling
universe are rejected with :py:class:`~ppelements.exceptions.ScopeError`.

Elements created while a chain function runs are *context elements*. They
receive an identity from the universe but are owned by the chain: they are
not name-resolvable and are not part of :py:attr:`Universe.elements`. The
chain regenerates them whenever it selects the subordinate they belong to.

Example:
    >>> import ppelements as ppe
    >>> outer = ppe.Universe("outer")
    >>> rain = ppe.Flip(0.2, name="rain", universe=outer)
    >>> inner = ppe.Universe("inner", parent=outer)
    >>> inner["rain"] is rain
    True
"""

from __future__ import annotations

import contextlib
import itertools

from typing import Iterator, NamedTuple, Optional, TYPE_CHECKING

from ppelements.defaults import DEFAULT_UNIVERSE_NAME
from ppelements.exceptions import ScopeError

if TYPE_CHECKING:
    from ppelements.model.components import abstract_element

# Universe ids are unique across the process
_UNIVERSE_IDS = itertools.count()


class ElementId(NamedTuple):
    """Immutable identity of an element.

    :param universe_id: Id of the universe that created the element
    :param index: Creation index of the element within that universe
    """

    universe_id: int
    index: int


class Universe:
    """Scope that owns a set of elements and resolves their names.

    :param name: Human-readable name of the universe. Defaults to
        :py:data:`~ppelements.defaults.DEFAULT_UNIVERSE_NAME`.
    :type name: str
    :param parent: Enclosing universe whose elements are visible from this one.
        Defaults to None.
    :type parent: Optional[Universe]
    """

    def __init__(self, name: str = DEFAULT_UNIVERSE_NAME, parent: Optional[Universe] = None):
        self.name = name
        self.parent = parent
        self.id: int = next(_UNIVERSE_IDS)

        # Creation counter. Indices are never reused, even after `clear`.
        self._counter = itertools.count()

        # Top-level elements in creation order, keyed by name
        self._named: dict[str, "abstract_element.Element"] = {}

        # Stack of open chain contexts. Each entry collects the elements created
        # while the corresponding chain function runs.
        self._context_stack: list[
            tuple["abstract_element.Element", list["abstract_element.Element"]]
        ] = []

    def register(
        self, element: "abstract_element.Element", name: str = ""
    ) -> tuple[ElementId, str, Optional["abstract_element.Element"]]:
        """Register a newly constructed element.

        :param element: Element being constructed
        :type element: abstract_element.Element
        :param name: Requested name. A default name is generated if empty.
        :type name: str

        :returns: The identity, final name and owning chain (None for top-level
            elements) of the element
        :rtype: tuple[ElementId, str, Optional[abstract_element.Element]]

        :raises ValueError: If a top-level element with the same name already
            exists in this universe
        """
        element_id = ElementId(self.id, next(self._counter))
        name = name or f"{type(element).__name__}_{element_id.index}"

        # Elements created inside a chain function belong to that chain
        if self._context_stack:
            owner, created = self._context_stack[-1]
            created.append(element)
            return element_id, name, owner

        # Top-level names must be unique
        if name in self._named:
            raise ValueError(f"An element named '{name}' already exists in {self}")
        self._named[name] = element

        return element_id, name, None

    @contextlib.contextmanager
    def context(
        self, owner: "abstract_element.Element"
    ) -> Iterator[list["abstract_element.Element"]]:
        """Collect the elements created while a chain function runs.

        :param owner: Chain that is constructing a subordinate element
        :type owner: abstract_element.Element

        :returns: Context manager yielding the list of created elements, in
            creation order
        """
        created: list["abstract_element.Element"] = []
        self._context_stack.append((owner, created))
        _ACTIVE_UNIVERSES.append(self)
        try:
            yield created
        finally:
            _ACTIVE_UNIVERSES.pop()
            self._context_stack.pop()

    def check_scope(self, element: "abstract_element.Element") -> None:
        """Make sure an element is visible from this universe.

        :param element: Element that is about to be referenced
        :type element: abstract_element.Element

        :raises ScopeError: If the element belongs to neither this universe nor
            one of its ancestors
        """
        if element.universe not in self.lineage:
            raise ScopeError(
                f"{element} belongs to {element.universe}, which is not visible "
                f"from {self}"
            )

    def deactivate(self, element: "abstract_element.Element") -> None:
        """Remove an element from name resolution and mark it inactive.

        :param element: Element to deactivate
        :type element: abstract_element.Element
        """
        if self._named.get(element.name) is element:
            del self._named[element.name]
        element.active = False

    def clear(self) -> None:
        """Deactivate every top-level element of this universe."""
        for element in list(self._named.values()):
            self.deactivate(element)

    def get(
        self, name: str, default: Optional["abstract_element.Element"] = None
    ) -> Optional["abstract_element.Element"]:
        """Resolve a name in this universe, then in its ancestors.

        :param name: Name of the element
        :type name: str
        :param default: Value returned when the name is unknown. Defaults to None.

        :returns: The element or the default
        """
        for universe in self.lineage:
            if name in universe._named:  # pylint: disable=protected-access
                return universe._named[name]  # pylint: disable=protected-access
        return default

    def __getitem__(self, name: str) -> "abstract_element.Element":
        if (element := self.get(name)) is None:
            raise KeyError(f"No element named '{name}' visible from {self}")
        return element

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self._named)

    def __str__(self) -> str:
        return f"Universe({self.name!r})"

    __repr__ = __str__

    @property
    def elements(self) -> tuple["abstract_element.Element", ...]:
        """Active top-level elements of this universe in creation order.

        :returns: Elements in an order that is topological for their args
        :rtype: tuple[abstract_element.Element, ...]
        """
        return tuple(self._named.values())

    @property
    def lineage(self) -> tuple[Universe, ...]:
        """This universe followed by its ancestors, innermost first."""
        lineage = []
        universe = self
        while universe is not None:
            lineage.append(universe)
            universe = universe.parent
        return tuple(lineage)


_DEFAULT_UNIVERSE: Universe = Universe()

# Universes with an open chain context. Elements constructed without an explicit
# universe inside a chain function join the chain's universe.
_ACTIVE_UNIVERSES: list[Universe] = []


def get_default_universe() -> Universe:
    """Return the universe used by elements constructed without one.

    Inside a chain function this is the universe of the chain; otherwise it is
    the process-wide default universe.

    :returns: The universe new elements join by default
    :rtype: Universe
    """
    if _ACTIVE_UNIVERSES:
        return _ACTIVE_UNIVERSES[-1]
    return _DEFAULT_UNIVERSE


def reset_default_universe(name: str = DEFAULT_UNIVERSE_NAME) -> Universe:
    """Replace the default universe with a new, empty one.

    :param name: Name of the new universe
    :type name: str

    :returns: The new default universe
    :rtype: Universe
    """
    global _DEFAULT_UNIVERSE  # pylint: disable=global-statement
    _DEFAULT_UNIVERSE = Universe(name)
    return _DEFAULT_UNIVERSE
