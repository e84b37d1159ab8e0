# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Canonical ordering of the columns of a sample store.

After renaming, columns are still in the order Stan emitted them, which follows
the declaration order of the generated program. This module restores a canonical
presentation order in which parameter classes appear by their rank in
:py:data:`~stanrelabel.defaults.CLASS_ORDER_HEAD`, the distributional parameters,
and :py:data:`~stanrelabel.defaults.CLASS_ORDER_TAIL`.

The class of a variable is the leading run of its name before the first
underscore (``b`` for ``b_x1``, ``r`` for ``r_site``, ``lp`` for ``lp__``).
Variables of unknown classes are placed last, in their original order. Within a
class, intercept variables (names ending in ``_Intercept``, optionally followed by
``_<digits>``) are placed ahead of all other variables. The columns of each variable
keep their relative order.
"""

from __future__ import annotations

import re

from typing import Sequence

import numpy as np

from stanrelabel.defaults import (
    CLASS_ORDER_HEAD,
    CLASS_ORDER_TAIL,
    DEFAULT_USE_DASK,
    INTERCEPT_NAME,
)
from stanrelabel.store import SampleStore, split_flat_name
from stanrelabel.utils import map_chains

_CLASS_RE = re.compile(r"^[^_]+")
_INTERCEPT_RE = re.compile(rf"_{INTERCEPT_NAME}(_\d+)?$")


def get_class_order(dpars: Sequence[str] = ()) -> list[str]:
    """The ranked list of parameter classes.

    :param dpars: Distributional parameters of the model. These are ranked
        directly after the length-scales of Gaussian processes. Classes named
        like a distributional parameter the model does not have are unknown
        and ranked last. Defaults to an empty sequence.
    :type dpars: Sequence[str]

    :returns: Unique parameter classes in canonical order
    :rtype: list[str]
    """
    return list(dict.fromkeys((*CLASS_ORDER_HEAD, *dpars, *CLASS_ORDER_TAIL)))


def get_class(variable: str) -> str:
    """The parameter class of a variable.

    Example:
        >>> get_class("sd_site__Intercept")
        'sd'
        >>> get_class("lp__")
        'lp'
    """
    if (match_obj := _CLASS_RE.match(variable)) is None:
        return variable
    return match_obj.group(0)


def is_intercept(variable: str) -> bool:
    """Whether a variable holds an intercept."""
    return _INTERCEPT_RE.search(variable) is not None


def order_variables(
    variables: Sequence[str], dpars: Sequence[str] = ()
) -> list[str]:
    """Sort variables into canonical order.

    :param variables: Variable names in their current order
    :type variables: Sequence[str]
    :param dpars: Distributional parameters of the model. Defaults to an empty
        sequence.
    :type dpars: Sequence[str]

    :returns: The variables in canonical order
    :rtype: list[str]
    """
    ranks = {cls: rank for rank, cls in enumerate(get_class_order(dpars))}
    return sorted(
        variables,
        key=lambda variable: (
            ranks.get(get_class(variable), len(ranks)),
            not is_intercept(variable),
        ),
    )


def get_column_order(names: Sequence[str], dpars: Sequence[str] = ()) -> list[int]:
    """Positions of the columns of a name table in canonical order.

    Columns are keyed by the rank of their variable and then by their position
    among the columns of that variable.

    :param names: Flat name table
    :type names: Sequence[str]
    :param dpars: Distributional parameters of the model. Defaults to an empty
        sequence.
    :type dpars: Sequence[str]

    :returns: The column positions in their new order
    :rtype: list[int]

    Example:
        >>> get_column_order(["lp__", "prior_b", "b_x1", "b_Intercept"])
        [3, 2, 1, 0]
    """
    variables = [split_flat_name(name)[0] for name in names]
    variable_rank = {
        variable: rank
        for rank, variable in enumerate(
            order_variables(list(dict.fromkeys(variables)), dpars)
        )
    }

    # Position of each column among the columns of its variable
    seen: dict[str, int] = {}
    intra = []
    for variable in variables:
        intra.append(seen.get(variable, 0))
        seen[variable] = intra[-1] + 1

    return sorted(
        range(len(names)),
        key=lambda colind: (variable_rank[variables[colind]], intra[colind]),
    )


def reorder_pars(
    store: SampleStore,
    dpars: Sequence[str] = (),
    use_dask: bool = DEFAULT_USE_DASK,
) -> SampleStore:
    """Permute a sample store into canonical order.

    The name table, the draws of every chain, and the per-column metadata are
    permuted identically.

    :param store: The store to reorder
    :type store: SampleStore
    :param dpars: Distributional parameters of the model. Defaults to an empty
        sequence.
    :type dpars: Sequence[str]
    :param use_dask: Whether to permute the chains through Dask. Defaults to False.
    :type use_dask: bool

    :returns: A new, reordered store
    :rtype: SampleStore
    """
    order = get_column_order(store.names, dpars)
    if order == list(range(len(order))):
        return store.copy()

    index = np.array(order, dtype=int)
    return store.replace(
        names=[store.names[colind] for colind in order],
        chains=map_chains(lambda chain: chain[:, index], store.chains, use_dask),
        column_meta=[store.column_meta[colind] for colind in order],
    )
