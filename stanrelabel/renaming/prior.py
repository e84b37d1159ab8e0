# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Mirroring of parameter renames onto prior draws.

When prior draws are stored alongside posterior draws, every parameter class
``<class>`` has a twin ``prior_<class>``. Where a single class carries priors that
differ between its elements, the twins are further disambiguated by a
double-underscore numeric suffix (``prior_b__2``), which refers to the position of
the element within the class.
"""

from __future__ import annotations

import re

from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np

from stanrelabel.renaming import matcher
from stanrelabel.renaming.operations import RenameOperation

if TYPE_CHECKING:
    from stanrelabel import custom_types

PRIOR_PREFIX = "prior_"

# Trailing element index of a vector prior
_VECTOR_INDEX_RE = re.compile(r"\[\d+\]$")

# Trailing disambiguator of a scalar prior
_SCALAR_INDEX_RE = re.compile(r"__(\d+)$")
_SCALAR_SUB_RE = re.compile(r"_\d+$")


def rename_prior(
    cls: str,
    names: Sequence[str],
    labels: Optional[Sequence[custom_types.Label]] = None,
    new_class: Optional[str] = None,
    vector: bool = False,
) -> list[RenameOperation]:
    """Build the rename operation for the prior draws of a parameter class.

    :param cls: Class whose prior twins are renamed, e.g. ``"b"`` or ``"sd_1"``
    :type cls: str
    :param names: Flat name table
    :type names: Sequence[str]
    :param labels: Labels substituted for numeric indices. In vector form, the
        ``k``-th matched name has its trailing ``[<digits>]`` replaced by
        ``_<labels[k]>``. In scalar form, a trailing ``__<d>`` is replaced by
        ``_<labels[d - 1]>`` (consuming one underscore). Defaults to None.
    :type labels: Optional[Sequence[custom_types.Label]]
    :param new_class: Replacement for ``cls``. Defaults to ``cls``.
    :type new_class: Optional[str]
    :param vector: Whether the prior draws form a vector. Defaults to False.
    :type vector: bool

    :returns: A list with at most one operation. Empty if no prior draws match
        or if no name would change.
    :rtype: list[RenameOperation]

    Example:
        >>> rename_prior("b", ["prior_b", "prior_b__2"], labels=["Intercept", "x1"])
        [RenameOperation(positions=[1], names=['prior_b_x1'])]
    """
    # Find the prior twins
    old_prefix = f"{PRIOR_PREFIX}{cls}"
    mask = matcher.match(names, old_prefix, "__")
    positions = mask.nonzero()[0]
    if len(positions) == 0:
        return []

    # Swap in the new class
    new_prefix = f"{PRIOR_PREFIX}{cls if new_class is None else new_class}"
    old_names = [names[pos] for pos in positions]
    new_names = [new_prefix + name[len(old_prefix) :] for name in old_names]

    # Resolve numeric indices
    if vector:
        if labels is not None:
            for ind, label in enumerate(labels[: len(new_names)]):
                new_names[ind] = _VECTOR_INDEX_RE.sub(f"_{label}", new_names[ind])
    elif labels is not None:
        for ind, name in enumerate(new_names):
            if (digits := _SCALAR_INDEX_RE.search(name)) is None:
                continue
            labind = int(digits.group(1)) - 1
            if 0 <= labind < len(labels):
                new_names[ind] = _SCALAR_SUB_RE.sub(
                    lambda _, label=str(labels[labind]): label, name
                )

    # Only emit the columns that actually change
    changed = [
        (pos, new) for pos, old, new in zip(positions, old_names, new_names) if old != new
    ]
    if not changed:
        return []
    changed_mask = np.zeros_like(mask)
    changed_mask[[pos for pos, _ in changed]] = True
    return [RenameOperation(changed_mask, [new for _, new in changed])]
