# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
PPElements: composable random-variable elements and the inference machinery
that consumes them.

PPElements models a probabilistic program as a graph of elements. Each element
knows how to generate randomness, turn that randomness into a value, and score
values with a density. What else an element can do (enumerate its support,
build tabular factors, propose Metropolis-Hastings moves, act as a learnable
parameter) is decided by the capability mixins its class inherits. Inference
engines and the expectation-maximization driver dispatch on those
capabilities.

Key Features:
    - Universes that scope element identity and naming
    - Deterministic apply and dependent chain composition
    - Per-run variable memoization and tabular factor construction
    - Custom proposal kernels with separate transition and model ratios
    - Conjugate parameters learned from sufficient statistics

Global Variables:
    RNG: Global random number generator used by every element
    __version__: Package version string

Example:
    >>> import ppelements as ppe
    >>> ppe.manual_seed(42)
    >>> coin = ppe.Flip(0.3)
    >>> ppe.VariableElimination(coin).run().probability(coin, True)
    0.3
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("ppelements")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for PPElements.

Every element draws its randomness from this generator, so seeding it with
:py:func:`manual_seed` makes a single-threaded run reproducible.

:type: np.random.Generator
"""

# Get custom types if TYPE_CHECKING is True
if TYPE_CHECKING:
    from ppelements import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for the global random number generator.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import ppelements as ppe
        >>> ppe.manual_seed(42)
        >>> first = ppe.Flip(0.5).generate_randomness()
        >>> ppe.manual_seed(42)
        >>> first == ppe.Flip(0.5).generate_randomness()
        True

    Note:
        This function rebinds module-level state and should typically be called
        once at the beginning of a script. Elements always look the generator up
        at draw time, so reseeding takes effect immediately.
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from ppelements import operations
from ppelements.universe import (
    Universe,
    get_default_universe,
    reset_default_universe,
)
from ppelements.model.components.abstract_element import Element
from ppelements.model.components.capabilities import Capability, Proposal
from ppelements.model.components.constants import Constant
from ppelements.model.components.atomic import (
    Binomial,
    Exponential,
    Flip,
    Normal,
    Select,
)
from ppelements.model.components.transformations.apply import Apply
from ppelements.model.components.transformations.chain import (
    CachingChain,
    NonCachingChain,
    chain,
    small_support,
)
from ppelements.model.components.parameters import (
    BetaParameter,
    DirichletParameter,
    ParameterState,
)
from ppelements.model.components.parameterized import (
    ParameterizedBinomial,
    ParameterizedFlip,
    ParameterizedSelect,
)
from ppelements.inference.factors.factor import Factor
from ppelements.inference.factors.variable import Variable, VariableContext
from ppelements.inference.belief_propagation import BeliefPropagation
from ppelements.inference.elimination import VariableElimination
from ppelements.inference.em import EMResults, ExpectationMaximization
from ppelements.inference.importance import ImportanceSampling
from ppelements.inference.metropolis_hastings import (
    MetropolisHastings,
    acceptance_probability,
)
