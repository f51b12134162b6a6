# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Element classes and the capability mixins they combine."""
