# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Composition constructs that build elements out of other elements."""
