# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the StanRelabel package.

This module provides various utility functions that support the core
functionality of StanRelabel, including:

    - Lazy importing mechanisms for performance optimization
    - Naming helpers shared by the rename plan builder
    - A numerically stable logistic function
    - A per-chain map that optionally fans out through Dask

Users will not typically need to interact with this module directly--it is designed
to be used internally by StanRelabel.
"""

from __future__ import annotations

import importlib.util
import re
import sys

from typing import Callable, Iterable, Sequence, TYPE_CHECKING

import dask
import numpy as np
import numpy.typing as npt

from stanrelabel.defaults import (
    CORNAME_SEP,
    DEFAULT_DASK_SCHEDULER,
    LEVEL_FILLER,
)

if TYPE_CHECKING:
    from stanrelabel import custom_types

# Whitespace that is not allowed within level labels
_WHITESPACE_RE = re.compile(r"[ \t\r\n]")


def lazy_import(name: str):
    """Import a module only when it is first needed.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return sys.modules[name]

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def usc(value: str, where: str = "prefix") -> str:
    """Add an underscore to a non-empty string.

    :param value: String to decorate
    :type value: str
    :param where: Whether to add the underscore before ("prefix") or after
        ("suffix") the string. Defaults to "prefix".
    :type where: str

    :returns: The decorated string, or the empty string if ``value`` is empty
    :rtype: str

    Example:
        >>> usc("sigma")
        '_sigma'
        >>> usc("sigma", "suffix")
        'sigma_'
        >>> usc("")
        ''
    """
    if not value:
        return value
    if where == "prefix":
        return f"_{value}"
    if where == "suffix":
        return f"{value}_"
    raise ValueError(f"`where` must be 'prefix' or 'suffix', got '{where}'.")


def combine_prefix(dpar: str = "", nlpar: str = "", resp: str = "") -> str:
    """Combine the components identifying a predictor into a naming prefix.

    The ``mu`` distributional parameter never appears in parameter names, so it
    is dropped. The remaining non-empty components are joined by underscores.

    :param dpar: Distributional parameter name. Defaults to "".
    :type dpar: str
    :param nlpar: Non-linear parameter name. Defaults to "".
    :type nlpar: str
    :param resp: Response name. Defaults to "".
    :type resp: str

    :returns: The combined prefix, without leading underscore
    :rtype: str

    Example:
        >>> combine_prefix(dpar="sigma", resp="y1")
        'sigma_y1'
        >>> combine_prefix(dpar="mu")
        ''
    """
    if dpar == "mu":
        dpar = ""
    return "_".join(part for part in (dpar, nlpar, resp) if part)


def sanitize_labels(labels: Iterable[custom_types.Label]) -> list[str]:
    """Replace whitespace in labels so that they are valid within Stan names.

    :param labels: Labels to sanitize
    :type labels: Iterable[custom_types.Label]

    :returns: Sanitized labels as strings
    :rtype: list[str]

    Example:
        >>> sanitize_labels(["New York", "Paris"])
        ['New.York', 'Paris']
    """
    return [_WHITESPACE_RE.sub(LEVEL_FILLER, str(label)) for label in labels]


def get_cornames(
    names: Sequence[str], cor_type: str = "cor", sep: str = CORNAME_SEP
) -> list[str]:
    """Build the names of the lower-triangular elements of a correlation matrix.

    Pairs are generated in the order in which Stan stores the lower triangle of a
    correlation matrix: for ``i = 2..n`` and ``j = 1..i-1`` the pair ``(j, i)``.

    :param names: Labels of the correlated quantities
    :type names: Sequence[str]
    :param cor_type: Class of the correlation parameters. Defaults to "cor".
    :type cor_type: str
    :param sep: Separator between the class and the labels. Defaults to "__".
    :type sep: str

    :returns: The correlation parameter names. Empty if fewer than two names.
    :rtype: list[str]

    Example:
        >>> get_cornames(["a", "b", "c"], "cor_g")
        ['cor_g__a__b', 'cor_g__a__c', 'cor_g__b__c']
    """
    return [
        f"{cor_type}{sep}{names[j]}{sep}{names[i]}"
        for i in range(1, len(names))
        for j in range(i)
    ]


def make_index_names(
    rownames: Sequence[custom_types.Label],
    colnames: Sequence[custom_types.Label] | None = None,
) -> list[str]:
    """Build bracketed index expressions.

    With only ``rownames`` this gives one-dimensional indices. With ``colnames``
    as well, all (row, column) pairs are generated with the row index varying
    fastest, matching the column-major layout of Stan output.

    :param rownames: Labels of the first index
    :type rownames: Sequence[custom_types.Label]
    :param colnames: Labels of the second index. Defaults to None.
    :type colnames: Optional[Sequence[custom_types.Label]]

    :returns: Index expressions including brackets
    :rtype: list[str]

    Example:
        >>> make_index_names(["A", "B"], ["Intercept"])
        ['[A,Intercept]', '[B,Intercept]']
    """
    if colnames is None:
        return [f"[{row}]" for row in rownames]
    return [f"[{row},{col}]" for col in colnames for row in rownames]


def stable_sigmoid(exponent: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]:
    r"""Compute the sigmoid (inverse logit) function in a numerically stable way.

    :param exponent: Input values for sigmoid computation
    :type exponent: npt.NDArray[np.floating]

    :returns: Sigmoid values with the same shape as input
    :rtype: npt.NDArray[np.floating]

    The function uses the identity:

    .. math::

        \sigma(x) =
        \begin{cases}
            \frac{1}{1 + e^{-x}} & \text{if } x \geq 0 \\
            \frac{e^{x}}{1 + e^{x}} & \text{if } x < 0
        \end{cases}
    """
    exponent = np.asarray(exponent, dtype=float)

    # Empty array to store the results
    sigma_exponent = np.full_like(exponent, np.nan)

    # Different approach for positive and negative values
    mask = exponent >= 0
    sigma_exponent[mask] = 1 / (1 + np.exp(-exponent[mask]))
    neg_calc = np.exp(exponent[~mask])
    sigma_exponent[~mask] = neg_calc / (1 + neg_calc)

    # We should have no NaN values in the result
    assert not np.any(np.isnan(sigma_exponent))
    return sigma_exponent


def map_chains(
    func: Callable,
    chains: Sequence[npt.NDArray],
    use_dask: bool = False,
) -> list[npt.NDArray]:
    """Apply a function to the draws of every chain.

    Chains are independent, so when ``use_dask`` is set the calls are wrapped in
    ``dask.delayed`` and computed together. Any shared decision (renames, column
    orders) must already be fixed before this is called.

    :param func: Function mapping one chain's draws to new draws
    :type func: Callable
    :param chains: Draws of each chain
    :type chains: Sequence[npt.NDArray]
    :param use_dask: Whether to fan out through Dask. Defaults to False.
    :type use_dask: bool

    :returns: The transformed draws of each chain, in chain order
    :rtype: list[npt.NDArray]
    """
    if not use_dask:
        return [func(chain) for chain in chains]

    # Queue up the delayed computations and run them together
    delayed = [dask.delayed(func)(chain) for chain in chains]
    return list(dask.compute(*delayed, scheduler=DEFAULT_DASK_SCHEDULER))
