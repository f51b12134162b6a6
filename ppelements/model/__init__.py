# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Element model of PPElements.

Models are graphs of elements. The building blocks live in
:py:mod:`ppelements.model.components`:

    - :py:mod:`~ppelements.model.components.constants` and
      :py:mod:`~ppelements.model.components.atomic` for leaf elements
    - :py:mod:`~ppelements.model.components.transformations` for apply and
      chain composition
    - :py:mod:`~ppelements.model.components.parameters` and
      :py:mod:`~ppelements.model.components.parameterized` for learnable
      parameters and the elements that read them
"""
