# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Variable handles, the per-run memoization context and tabular factors."""
