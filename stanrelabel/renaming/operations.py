# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Rename operations: match-and-replace instructions over the name table."""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from stanrelabel import custom_types


class RenameOperation:
    """Replace the names of a selected subset of columns.

    The ``k``-th selected column (in table order) receives ``names[k]``. When a
    ``sort`` permutation is given, the values of the selected columns are also
    reordered relative to each other: after the operation, the ``k``-th selected
    column holds the values previously held by the ``sort[k]``-th selected
    column. Positions outside the mask are never touched.

    :param mask: Boolean mask over the name table selecting the columns
    :type mask: Sequence[bool] | npt.NDArray[np.bool_]
    :param names: Replacement names, one per selected column
    :type names: Sequence[str]
    :param sort: 0-based permutation of the selected columns. Defaults to None.
    :type sort: Optional[Sequence[custom_types.Integer]]

    Example:
        >>> op = RenameOperation([True, True, False], ["b_Intercept", "b_x1"])
        >>> op.n_matched
        2
    """

    def __init__(
        self,
        mask: Sequence[bool] | npt.NDArray[np.bool_],
        names: Sequence[str],
        sort: Optional[Sequence[custom_types.Integer]] = None,
    ):
        self.mask = np.asarray(mask, dtype=bool)
        self.names = [str(name) for name in names]
        self.sort = None if sort is None else [int(ind) for ind in sort]

    @property
    def positions(self) -> npt.NDArray[np.int64]:
        """Positions of the selected columns in the name table."""
        return np.flatnonzero(self.mask)

    @property
    def n_matched(self) -> int:
        """Number of selected columns."""
        return int(self.mask.sum())

    @property
    def is_noop(self) -> bool:
        """Whether the operation selects no columns at all."""
        return self.n_matched == 0

    @property
    def is_consistent(self) -> bool:
        """Whether there is exactly one replacement name per selected column."""
        return len(self.names) == self.n_matched

    @property
    def has_valid_sort(self) -> bool:
        """Whether ``sort`` is absent or a permutation of the selected columns."""
        return self.sort is None or sorted(self.sort) == list(range(self.n_matched))

    def __repr__(self) -> str:
        sort = "" if self.sort is None else f", sort={self.sort}"
        return (
            f"RenameOperation(positions={self.positions.tolist()}, "
            f"names={self.names}{sort})"
        )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, RenameOperation)
            and np.array_equal(self.mask, other.mask)
            and self.names == other.names
            and self.sort == other.sort
        )
