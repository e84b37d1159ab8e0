# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for StanRelabel.

This module provides type aliases used throughout the StanRelabel package for
type checking and documentation purposes.

All imports are conditional on TYPE_CHECKING to avoid circular imports while
maintaining proper type hints for development and documentation tools.
"""

from typing import TYPE_CHECKING, Union

# Everything in this file is only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:

    import numpy as np

    from stanrelabel.description import terms

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

# Name table types
Label = Union[str, int]
"""Type alias for a label used in a relabeled parameter name. Integers are used
for sequential indices.

:type: Union[str, int]
"""

TermGroup = Union[
    "terms.FixedEffects",
    "terms.SpecialEffects",
    "terms.CategorySpecificEffects",
    "terms.SmoothTerms",
    "terms.GaussianProcessTerms",
    "terms.AutocorrelationTerms",
]
"""Type alias for the term groups that can be attached to a predictor node.

:type: Union[terms.FixedEffects, terms.SpecialEffects, ...]
"""
