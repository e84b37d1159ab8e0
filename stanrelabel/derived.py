# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Synthesis of derived quantities that Stan does not store.

Some parameters are defined in the model block of the generated program and are
therefore never written to the output. The paradigm case is the shape parameter
``xi`` of the generalized extreme value family: Stan samples an unconstrained
``tmp_xi`` and maps it onto an interval whose bounds depend on the fitted mean,
the fitted scale, and the observed response. This module recomputes ``xi`` from
the stored draws and appends it to the sample store.

Mean and scale draws are obtained from an external prediction collaborator, a
callable mapping a sample store to one :py:class:`PreparedResponse` per response.
Draws passed to and returned from the collaborator are the kept (post-warmup)
draws of all chains, concatenated chain after chain.
"""

from __future__ import annotations

import warnings

from typing import Callable, Mapping, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from stanrelabel.defaults import DERIVED_XI_SOURCE, DERIVED_XI_TARGET
from stanrelabel.exceptions import DerivedQuantityWarning
from stanrelabel.store import SampleStore
from stanrelabel.utils import stable_sigmoid, usc

if TYPE_CHECKING:
    from stanrelabel.description import ModelDescription


class PreparedResponse:
    """Fitted mean and scale of one response together with its observed values.

    :param mu: Draws of the mean, shaped (n_draws, n_obs)
    :type mu: npt.ArrayLike
    :param sigma: Draws of the scale, shaped (n_draws, n_obs) or (n_draws,)
    :type sigma: npt.ArrayLike
    :param y: Observed response values, shaped (n_obs,)
    :type y: npt.ArrayLike

    :raises ValueError: If the shapes are inconsistent
    """

    def __init__(self, mu: npt.ArrayLike, sigma: npt.ArrayLike, y: npt.ArrayLike):
        self.mu = np.asarray(mu, dtype=float)
        self.sigma = np.asarray(sigma, dtype=float)
        self.y = np.asarray(y, dtype=float).ravel()

        # A scale that does not vary over observations is broadcast
        if self.sigma.ndim == 1:
            self.sigma = self.sigma[:, None]

        if self.mu.ndim != 2:
            raise ValueError(f"`mu` must be two-dimensional, got {self.mu.ndim}.")
        if self.mu.shape[1] != self.y.shape[0]:
            raise ValueError(
                f"`mu` covers {self.mu.shape[1]} observations, but `y` has "
                f"{self.y.shape[0]}."
            )
        if self.sigma.shape[0] != self.mu.shape[0] or self.sigma.shape[1] not in (
            1,
            self.mu.shape[1],
        ):
            raise ValueError(
                f"`sigma` with shape {self.sigma.shape} does not match `mu` with "
                f"shape {self.mu.shape}."
            )

    @property
    def n_draws(self) -> int:
        """Number of draws."""
        return self.mu.shape[0]


PredictionPreparer = Callable[[SampleStore], Mapping[str, PreparedResponse]]
"""Callable returning the prepared predictions of every response of a model,
keyed by response label ("" for univariate models).
"""


def get_xi_bounds(
    prepared: PreparedResponse,
) -> tuple[npt.NDArray[np.floating], npt.NDArray[np.floating]]:
    r"""Per-draw bounds of the admissible shape parameter.

    With standardized residuals :math:`z = (y - \mu) / \sigma`, the shape is
    bounded by :math:`-1 / \min(z)` and :math:`-1 / \max(z)`, sorted per draw.

    :param prepared: Fitted mean, scale, and observed response
    :type prepared: PreparedResponse

    :returns: Lower and upper bound of each draw
    :rtype: tuple[npt.NDArray[np.floating], npt.NDArray[np.floating]]
    """
    z = (prepared.y[None, :] - prepared.mu) / prepared.sigma
    bounds = -1 / np.stack([z.min(axis=1), z.max(axis=1)], axis=1)
    bounds.sort(axis=1)
    return bounds[:, 0], bounds[:, 1]


def compute_xi(
    store: SampleStore, prepared: PreparedResponse, resp: str = ""
) -> SampleStore:
    """Compute ``xi`` of one response and append it to the store.

    The unconstrained draws ``tmp_xi`` are mapped through the logistic function
    onto the per-draw bounds. Every chain receives the new column behind a
    zero-filled warmup segment of the chain's own warmup length.

    :param store: The store holding ``tmp_xi`` for the response
    :type store: SampleStore
    :param prepared: Fitted mean, scale, and observed response
    :type prepared: PreparedResponse
    :param resp: Response label. Defaults to "".
    :type resp: str

    :returns: A new store with the ``xi`` column appended
    :rtype: SampleStore

    :raises KeyError: If ``tmp_xi`` is missing from the store
    :raises ValueError: If the prepared predictions do not cover all kept draws,
        or if any kept draw of ``tmp_xi`` is not finite
    """
    # Map the unconstrained draws onto the bounds
    tmp_xi = store.kept_draws(f"{DERIVED_XI_SOURCE}{usc(resp)}")
    if prepared.n_draws != len(tmp_xi):
        raise ValueError(
            f"Prepared predictions hold {prepared.n_draws} draws, but the store "
            f"holds {len(tmp_xi)} kept draws."
        )
    if not np.all(np.isfinite(tmp_xi)):
        raise ValueError(
            f"'{DERIVED_XI_SOURCE}{usc(resp)}' holds "
            f"{np.count_nonzero(~np.isfinite(tmp_xi))} non-finite kept draws."
        )
    lower, upper = get_xi_bounds(prepared)
    xi = stable_sigmoid(tmp_xi) * (upper - lower) + lower

    # Split by chain and pad with the warmup placeholder
    n_kept = [chain.shape[0] - warmup for chain, warmup in zip(store.chains, store.warmup)]
    chains = [
        np.column_stack([chain, np.concatenate([np.zeros(warmup), part])])
        for chain, warmup, part in zip(
            store.chains, store.warmup, np.split(xi, np.cumsum(n_kept)[:-1])
        )
    ]

    return store.replace(
        names=[*store.names, f"{DERIVED_XI_TARGET}{usc(resp)}"],
        chains=chains,
        column_meta=[*store.column_meta, {}],
    )


def get_pending_xi(store: SampleStore, description: ModelDescription) -> list[str]:
    """Responses with an unconstrained ``tmp_xi`` but no ``xi`` column."""
    return [
        resp
        for resp in description.response_names
        if f"{DERIVED_XI_SOURCE}{usc(resp)}" in store
        and f"{DERIVED_XI_TARGET}{usc(resp)}" not in store
    ]


def compute_quantities(
    store: SampleStore,
    description: ModelDescription,
    prepare_predictions: Optional[PredictionPreparer] = None,
) -> SampleStore:
    """Compute all derived quantities missing from a store.

    If the prediction collaborator is missing or fails, a
    :py:class:`~stanrelabel.exceptions.DerivedQuantityWarning` is issued and the
    store is returned without the derived columns. A response whose quantity
    cannot be computed is skipped with the same warning; other responses are
    still processed. A derived column is only ever added in full.

    :param store: The store to augment
    :type store: SampleStore
    :param description: The model description
    :type description: ModelDescription
    :param prepare_predictions: Prediction collaborator. Defaults to None.
    :type prepare_predictions: Optional[PredictionPreparer]

    :returns: The store with all computable derived quantities appended
    :rtype: SampleStore
    """
    if not (pending := get_pending_xi(store, description)):
        return store

    # Obtain the fitted means and scales
    if prepare_predictions is None:
        warnings.warn(
            "Computing 'xi' requires prepared predictions, but none were provided. "
            "The parameter is not added.",
            DerivedQuantityWarning,
        )
        return store
    try:
        prepared = prepare_predictions(store)
    except Exception as error:  # pylint: disable=broad-except
        warnings.warn(
            f"Trying to compute 'xi' was unsuccessful: {error!r}. The parameter "
            "is not added.",
            DerivedQuantityWarning,
        )
        return store

    for resp in pending:
        if resp not in prepared:
            warnings.warn(
                f"No prepared predictions for response '{resp}'. 'xi' is not added.",
                DerivedQuantityWarning,
            )
            continue
        try:
            store = compute_xi(store, prepared[resp], resp)
        except ValueError as error:
            warnings.warn(
                f"Could not compute 'xi' for response '{resp}': {error}",
                DerivedQuantityWarning,
            )

    return store
