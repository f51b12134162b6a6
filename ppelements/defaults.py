# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for PPElements components.

This module centralizes default values used across the package, including
composition caching, sampling budgets, proposal kernels and parameter
learning.

The module is organized into logical groups covering:
    - Universe and element construction defaults
    - Chain caching defaults
    - Sampling and message-passing budgets
    - Expectation-maximization defaults

Default values cannot be programmatically altered. Every function that uses one
of them accepts an explicit argument that overrides it.
"""

# Universe defaults
DEFAULT_UNIVERSE_NAME: str = "universe"
"""Name given to universes created without an explicit name.

:type: str
"""

DEFAULT_PROBABILITY_TOLERANCE: float = 1e-8
"""Absolute tolerance used when checking that probabilities sum to one.

:type: float
"""

# Chain defaults
DEFAULT_CHAIN_CACHE_CAPACITY: int = 10
"""Default number of subordinate elements remembered by a caching chain.

Caching chains are meant for parents with a handful of outcomes, so the table
is kept small. Once full, the least recently used entry is evicted.

:type: int
"""

# Sampling defaults
DEFAULT_N_SAMPLES: int = 10000
"""Default number of samples drawn by the sampling engines.

:type: int
"""

DEFAULT_MH_BURN_IN: int = 1000
"""Default number of Metropolis-Hastings steps discarded before recording.

:type: int
"""

DEFAULT_MH_INTERVAL: int = 1
"""Default number of Metropolis-Hastings steps between recorded samples.

:type: int
"""

DEFAULT_MH_INIT_ATTEMPTS: int = 1000
"""Default number of forward samples tried when looking for a Metropolis-Hastings
starting state that satisfies the evidence.

:type: int
"""

DEFAULT_PROPOSAL_SCALE: float = 1.0
"""Default standard deviation of the Gaussian random-walk proposal.

:type: float
"""

DEFAULT_LOG_PROPOSAL_SCALE: float = 0.5
"""Default log-space standard deviation of the multiplicative (log-normal)
random-walk proposal used for positive elements.

:type: float
"""

# Message-passing defaults
DEFAULT_BP_ITERATIONS: int = 20
"""Default number of synchronous message-passing sweeps in belief propagation.

Belief propagation is exact after a number of sweeps equal to the diameter of
a tree-structured factor graph; loopy graphs are approximated.

:type: int
"""

# Expectation-maximization defaults
DEFAULT_EM_ITERATIONS: int = 10
"""Default number of expectation-maximization iterations.

:type: int
"""

DEFAULT_EM_ENGINE: str = "ve"
"""Default inference engine used to estimate posteriors in the expectation step.

:type: str
"""
