# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Top-level relabeling pipeline.

:py:func:`rename_pars` composes the individual stages into the full post-fit
transformation of a raw sample store:

    1. Record the original flat names.
    2. Build the rename plan from the model description.
    3. Apply the plan to the names (and, where required, values) of all chains.
    4. Append derived quantities that Stan does not store.
    5. Permute all columns into canonical order.

Derived quantities are appended before reordering so that they receive their
canonical position as well. As a consequence, running the pipeline on its own
output leaves it unchanged.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from cmdstanpy.stanfit import CmdStanMCMC

from stanrelabel.defaults import DEFAULT_STRICT, DEFAULT_USE_DASK
from stanrelabel.derived import compute_quantities, PredictionPreparer
from stanrelabel.renaming import apply_plan, build_plan
from stanrelabel.reorder import reorder_pars
from stanrelabel.store import SampleStore

if TYPE_CHECKING:
    from stanrelabel.description import ModelDescription


def rename_pars(
    store: SampleStore,
    description: ModelDescription,
    prepare_predictions: Optional[PredictionPreparer] = None,
    strict: bool = DEFAULT_STRICT,
    use_dask: bool = DEFAULT_USE_DASK,
) -> SampleStore:
    """Rename, augment, and reorder the draws of a fitted model.

    :param store: Raw sample store with the flat names emitted by Stan
    :type store: SampleStore
    :param description: Structural description of the compiled model
    :type description: ModelDescription
    :param prepare_predictions: Prediction collaborator used to compute derived
        quantities. Defaults to None, in which case derived quantities that need
        it are skipped with a warning.
    :type prepare_predictions: Optional[PredictionPreparer]
    :param strict: Whether rename operations whose replacement count differs from
        their match count raise instead of warning. Defaults to False.
    :type strict: bool
    :param use_dask: Whether per-chain mutations are dispatched through Dask.
        Defaults to False.
    :type use_dask: bool

    :returns: The relabeled store. A store without draws is returned unchanged.
    :rtype: SampleStore

    Example:
        >>> store = SampleStore(
        ...     names=["b_1[1]", "b_1[2]", "lp__"], chains=[np.zeros((10, 3))]
        ... )
        >>> description = ModelDescription(
        ...     responses=[
        ...         ResponseDescription(
        ...             predictors=[
        ...                 PredictorDescription(terms=[FixedEffects(["Intercept", "x1"])])
        ...             ]
        ...         )
        ...     ]
        ... )
        >>> rename_pars(store, description).names
        ['b_Intercept', 'b_x1', 'lp__']
    """
    if store.is_empty:
        return store

    # Keep the names Stan emitted. A store that was relabeled before keeps the
    # names recorded back then.
    if store.original_names is None:
        store = store.replace(original_names=store.names)

    # Rename
    plan = build_plan(description, store.names)
    store = apply_plan(store, plan, strict=strict, use_dask=use_dask)

    # Augment and reorder
    store = compute_quantities(store, description, prepare_predictions)
    return reorder_pars(store, dpars=description.dpars, use_dask=use_dask)


def relabel_cmdstan(
    fit: CmdStanMCMC,
    description: ModelDescription,
    progress: bool = False,
    **kwargs,
) -> SampleStore:
    """Load CmdStan sampling output and relabel it.

    :param fit: Sampling output
    :type fit: CmdStanMCMC
    :param description: Structural description of the compiled model
    :type description: ModelDescription
    :param progress: Whether to display a progress bar while loading. Defaults
        to False.
    :type progress: bool
    :param kwargs: Passed on to :py:func:`rename_pars`

    :returns: The relabeled store
    :rtype: SampleStore
    """
    return rename_pars(
        SampleStore.from_cmdstan(fit, progress=progress), description, **kwargs
    )
