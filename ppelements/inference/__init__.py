# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Inference engines and the expectation-maximization driver.

Exact engines (:py:mod:`~ppelements.inference.elimination`,
:py:mod:`~ppelements.inference.belief_propagation`) consume the enumeration and
factor capabilities. Sampling engines (:py:mod:`~ppelements.inference.importance`,
:py:mod:`~ppelements.inference.metropolis_hastings`) only need the generation
protocol and, for MCMC, the optional proposal capability.
"""
