# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Application of a rename plan to a sample store.

Applying a plan happens in two phases. First, the shared name table is updated
and the value permutations of all operations are composed into a single column
permutation. This is done exactly once, regardless of the number of chains.
Second, the composed permutation is applied to every chain. The chains are
independent of one another at that point, so the second phase can be dispatched
through Dask.
"""

from __future__ import annotations

import warnings

from typing import Sequence, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from stanrelabel.defaults import DEFAULT_STRICT, DEFAULT_USE_DASK
from stanrelabel.exceptions import RenameMismatchError, RenameMismatchWarning
from stanrelabel.utils import map_chains

if TYPE_CHECKING:
    from stanrelabel.renaming.operations import RenameOperation
    from stanrelabel.store import SampleStore


def _report_mismatch(message: str, strict: bool) -> None:
    """Raise or warn about an operation that cannot be fully applied."""
    if strict:
        raise RenameMismatchError(message)
    warnings.warn(message, RenameMismatchWarning, stacklevel=3)


def resolve_plan(
    names: Sequence[str],
    plan: Sequence[RenameOperation],
    strict: bool = DEFAULT_STRICT,
) -> tuple[list[str], npt.NDArray[np.int64]]:
    """Compute the renamed name table and the column permutation of a plan.

    :param names: Flat name table before renaming
    :type names: Sequence[str]
    :param plan: Rename operations, applied in order
    :type plan: Sequence[RenameOperation]
    :param strict: Whether to raise on operations whose replacement count differs
        from their match count, rather than warning and renaming only the first
        ``min(len(names), count(mask))`` matched columns. Defaults to False.
    :type strict: bool

    :returns: The new name table and the source column of every column, such that
        ``new_chain = old_chain[:, source]``.
    :rtype: tuple[list[str], npt.NDArray[np.int64]]

    :raises RenameMismatchError: In strict mode, on any count mismatch or invalid
        permutation
    """
    names = list(names)
    source = np.arange(len(names))

    for operation in plan:
        # Nothing to do for features absent from the model
        if operation.is_noop:
            continue

        # The mask must have been built from a table of the same size
        if len(operation.mask) != len(names):
            raise ValueError(
                f"Rename operation mask has {len(operation.mask)} entries, but the "
                f"name table has {len(names)}."
            )
        positions = operation.positions

        # Rename at most as many columns as there are names
        if not operation.is_consistent:
            _report_mismatch(
                f"Rename operation selects {operation.n_matched} columns but "
                f"provides {len(operation.names)} names. Only the first "
                f"{min(operation.n_matched, len(operation.names))} selected "
                f"columns are renamed: {operation!r}",
                strict,
            )
        for position, new_name in zip(positions, operation.names):
            names[position] = new_name

        # Permute values within the selected columns
        if operation.sort is not None:
            if not operation.has_valid_sort:
                _report_mismatch(
                    f"Rename operation has an invalid permutation {operation.sort} "
                    f"for {operation.n_matched} selected columns. Values are left "
                    "in place.",
                    strict,
                )
                continue
            source[positions] = source[positions[operation.sort]]

    return names, source


def apply_plan(
    store: SampleStore,
    plan: Sequence[RenameOperation],
    strict: bool = DEFAULT_STRICT,
    use_dask: bool = DEFAULT_USE_DASK,
) -> SampleStore:
    """Apply a rename plan to a sample store.

    Names are updated once in the shared name table. Values are only moved by
    operations carrying a permutation, and then identically in every chain.
    Column metadata stays attached to its column position, since renaming never
    changes which quantity a position refers to.

    :param store: The store to rename
    :type store: SampleStore
    :param plan: Rename operations, applied in order
    :type plan: Sequence[RenameOperation]
    :param strict: Whether to raise on count mismatches instead of warning.
        Defaults to False.
    :type strict: bool
    :param use_dask: Whether to permute the chains through Dask. Defaults to False.
    :type use_dask: bool

    :returns: A new, renamed store
    :rtype: SampleStore

    :raises RenameMismatchError: In strict mode, on any count mismatch
    :raises DuplicateNameError: If the renamed table contains duplicates
    """
    names, source = resolve_plan(store.names, plan, strict=strict)

    # Only touch the draws if some values actually move
    if np.array_equal(source, np.arange(len(source))):
        chains = [chain.copy() for chain in store.chains]
    else:
        chains = map_chains(lambda chain: chain[:, source], store.chains, use_dask)

    return store.replace(names=names, chains=chains)
