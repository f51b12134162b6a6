# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Variable handles and the per-run memoization context.

Factor-based algorithms never work with elements directly. They work with
:py:class:`Variable` handles: finite-domain wrappers exposing the element's
enumerated values in a fixed order. Because an element usually appears in
several factors (its own, its children's, its evidence) and those factors must
agree on what index ``i`` means, every request for the same element within one
run must return the *same* handle.

That guarantee is provided by :py:class:`VariableContext`, an explicit arena
passed to every ``make_values``/``make_factors`` call. A context is scoped to a
single inference run, so concurrent runs are independent by construction. A
context can be shared between threads by creating it with ``shared=True``,
which guards its tables with a re-entrant lock.
"""

from __future__ import annotations

import contextlib
import threading

from typing import Any, Optional, TYPE_CHECKING

from ppelements.exceptions import CyclicDependencyError
from ppelements.inference.factors import factor as factor_module
from ppelements.model.components.capabilities import Capability

if TYPE_CHECKING:
    from ppelements.model.components import abstract_element


class Variable:
    """Canonical finite-domain handle for an element.

    :param element: Element the variable stands for
    :type element: abstract_element.Element
    :param domain: Distinct values of the element, in index order
    :type domain: tuple[Any, ...]

    Variables compare by identity. Create them through
    :py:meth:`VariableContext.variable` rather than directly.
    """

    def __init__(self, element: "abstract_element.Element", domain: tuple[Any, ...]):
        self.element = element
        self.domain = domain
        self._index = {value: i for i, value in enumerate(domain)}
        if len(self._index) != len(domain):
            raise ValueError(f"Domain of {element} contains duplicate values")

    def index(self, value: Any) -> int:
        """Position of a value in the domain.

        :raises KeyError: If the value is not in the domain
        """
        return self._index[value]

    def __contains__(self, value: Any) -> bool:
        return value in self._index

    def __len__(self) -> int:
        return len(self.domain)

    def __repr__(self) -> str:
        return f"Variable({self.element.name}, size={self.size})"

    @property
    def size(self) -> int:
        """Number of values in the domain."""
        return len(self.domain)


class VariableContext:
    """Memoization arena for one factor-based inference run.

    :param shared: Whether the context will be used from several threads. If
        True, every table access is guarded by a re-entrant lock. Defaults to
        False.
    :type shared: bool

    The context memoizes, per element identity:

    - enumerated values (:py:meth:`values`)
    - variable handles (:py:meth:`variable`)
    - chain subordinates per parent value (:py:meth:`subordinate`)
    - which elements already contributed factors (:py:meth:`factors`)
    """

    def __init__(self, shared: bool = False):
        self.shared = shared
        self._lock = threading.RLock() if shared else None

        self._values: dict["abstract_element.Element", tuple[Any, ...]] = {}
        self._variables: dict["abstract_element.Element", Variable] = {}
        self._subordinates: dict[
            tuple["abstract_element.Element", Any],
            tuple["abstract_element.Element", tuple["abstract_element.Element", ...]],
        ] = {}
        self._factored: set["abstract_element.Element"] = set()

        # Elements whose values are currently being enumerated
        self._in_progress: list["abstract_element.Element"] = []

    def _guard(self):
        """Lock the tables if the context is shared."""
        return self._lock if self._lock is not None else contextlib.nullcontext()

    def values(self, element: "abstract_element.Element") -> tuple[Any, ...]:
        """Enumerated values of an element, computed once per context.

        :param element: Element to enumerate
        :type element: abstract_element.Element

        :returns: Distinct values in a fixed order
        :rtype: tuple[Any, ...]

        :raises UnsupportedCapabilityError: If the element is not enumerable
        :raises CyclicDependencyError: If enumerating the element requires its
            own values
        """
        with self._guard():
            if element in self._values:
                return self._values[element]

            if element in self._in_progress:
                cycle = " -> ".join(
                    str(e)
                    for e in self._in_progress[self._in_progress.index(element) :]
                )
                raise CyclicDependencyError(f"Cyclic dependency: {cycle} -> {element}")

            enumerable = element.capability(Capability.ENUMERATION)
            self._in_progress.append(element)
            try:
                values = tuple(enumerable.make_values(self))
            finally:
                self._in_progress.pop()

            self._values[element] = values
            return values

    def variable(self, element: "abstract_element.Element") -> Variable:
        """Variable handle of an element. Repeated requests return the same handle.

        :param element: Element to wrap
        :type element: abstract_element.Element

        :returns: The memoized handle
        :rtype: Variable
        """
        with self._guard():
            if element not in self._variables:
                self._variables[element] = Variable(element, self.values(element))
            return self._variables[element]

    def subordinate(
        self, chain: "abstract_element.Element", parent_value: Any
    ) -> tuple["abstract_element.Element", tuple["abstract_element.Element", ...]]:
        """Subordinate element a chain uses for a parent value in this run.

        :param chain: Chain being expanded
        :type chain: abstract_element.Element
        :param parent_value: Value of the chain's parent
        :type parent_value: Any

        :returns: The subordinate and the context elements created with it
        :rtype: tuple[abstract_element.Element, tuple[abstract_element.Element, ...]]
        """
        with self._guard():
            key = (chain, parent_value)
            if key not in self._subordinates:
                self._subordinates[key] = chain.lookup(parent_value)
            return self._subordinates[key]

    def release(self) -> None:
        """Hand every chain expansion of this run back to its chain.

        Non-caching chains deactivate the context elements built for the run, so
        they do not outlive it.
        """
        with self._guard():
            for (chain, _), expansion in self._subordinates.items():
                chain.release(expansion)
            self._subordinates.clear()

    def factors(
        self, element: "abstract_element.Element"
    ) -> list["factor_module.Factor"]:
        """Factors of an element followed by its evidence factor.

        Each element contributes its factors once per context; later requests
        return an empty list.

        :param element: Element whose factors are needed
        :type element: abstract_element.Element

        :returns: The element's factors, or an empty list if already produced
        :rtype: list[factor_module.Factor]

        :raises UnsupportedCapabilityError: If the element cannot build factors
        """
        with self._guard():
            if element in self._factored:
                return []
            self._factored.add(element)

            factors = list(element.capability(Capability.FACTORS).make_factors(self))
            if (evidence := self.evidence_factor(element)) is not None:
                factors.append(evidence)
            return factors

    def evidence_factor(
        self, element: "abstract_element.Element"
    ) -> Optional["factor_module.Factor"]:
        """Single-variable factor encoding the evidence on an element.

        :returns: The factor, or None if the element carries no evidence
        :rtype: Optional[factor_module.Factor]
        """
        if not element.has_evidence:
            return None

        variable = self.variable(element)
        factor = factor_module.Factor([variable])
        for index, value in enumerate(variable.domain):
            factor.set((index,), element.evidence_weight(value))
        return factor

    @property
    def variables(self) -> tuple[Variable, ...]:
        """Every variable handle created so far."""
        return tuple(self._variables.values())
