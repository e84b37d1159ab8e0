# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for StanRelabel package components.

This module centralizes default values used across the package, including the
canonical order of parameter classes, naming conventions for relabeled
parameters, and switches controlling the renaming machinery.

The module is organized into logical groups covering:
    - Naming conventions for relabeled parameters
    - Canonical ordering of parameter classes
    - Renaming executor behavior
    - Prior-sensitivity defaults

Default values cannot be programmatically altered. Functions that depend on them
expose keyword arguments defaulting to the values defined here.
"""

# Naming defaults
LEVEL_FILLER: str = "."
"""Replacement for whitespace in group-level labels.

Stan output readers do not accept whitespace in parameter names, so any space,
tab, carriage return, or newline within a level label is replaced by this string.

:type: str
"""

CORNAME_SEP: str = "__"
"""Separator used when joining the labels of a correlation parameter.

For example, the correlation between ``Intercept`` and ``x`` within grouping
variable ``site`` is named ``cor_site__Intercept__x``.

:type: str
"""

INTERCEPT_NAME: str = "Intercept"
"""Label of intercept coefficients.

:type: str
"""

DERIVED_XI_SOURCE: str = "tmp_xi"
"""Class of the unconstrained column from which the shape parameter ``xi`` is
derived.

:type: str
"""

DERIVED_XI_TARGET: str = "xi"
"""Class of the derived, constrained shape parameter.

:type: str
"""

# The canonical order of parameter classes. Distributional parameters are
# inserted directly after "lscale".
CLASS_ORDER_HEAD: tuple[str, ...] = (
    "b",
    "bs",
    "bsp",
    "bcs",
    "ar",
    "ma",
    "sderr",
    "lagsar",
    "errorsar",
    "car",
    "rhocar",
    "sdcar",
    "cosy",
    "cortime",
    "sd",
    "cor",
    "df",
    "sds",
    "sdgp",
    "lscale",
)
"""Parameter classes ranked before the distributional parameters.

:type: tuple[str, ...]
"""

CLASS_ORDER_TAIL: tuple[str, ...] = (
    "hs",
    "R2D2",
    "sdb",
    "sdbsp",
    "sdbs",
    "sdar",
    "sdma",
    "lncor",
    "Intercept",
    "tmp",
    "rescor",
    "delta",
    "simo",
    "r",
    "s",
    "zgp",
    "rcar",
    "sbhaz",
    "Ymi",
    "Yl",
    "meanme",
    "sdme",
    "corme",
    "Xme",
    "prior",
    "lprior",
    "lp",
)
"""Parameter classes ranked after the distributional parameters.

:type: tuple[str, ...]
"""

# Executor defaults
DEFAULT_STRICT: bool = False
"""Whether a rename operation with mismatched replacement and match counts
raises instead of warning.

:type: bool
"""

DEFAULT_USE_DASK: bool = False
"""Whether per-chain mutations are dispatched through Dask.

:type: bool
"""

DEFAULT_DASK_SCHEDULER: str = "threads"
"""Dask scheduler used for per-chain mutations.

:type: str
"""

# Prior sensitivity defaults
DEFAULT_LOG_PRIOR_NAME: str = "lprior"
"""Name of the column holding the joint log prior density.

:type: str
"""
