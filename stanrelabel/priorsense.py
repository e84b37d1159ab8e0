# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Data for prior and likelihood power-scaling sensitivity analysis.

Power-scaling sensitivity analysis perturbs either the prior or the likelihood by
raising it to a power ``alpha`` and reweights the posterior draws accordingly. The
functions in this module extract what such an analysis needs from a relabeled
sample store:

    - the draws of all parameters, excluding the log prior and log density
    - the draws of the joint log prior density
    - the pointwise log-likelihood, arranged by draw and chain
    - the log importance ratios of a power-scaling perturbation and their
      Pareto-smoothed, normalized weights

All arrays are laid out as (draw, chain, ...), matching the draws-array layout
used by posterior analysis tools.
"""

from __future__ import annotations

from typing import Optional, Sequence

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from scipy.special import logsumexp

from stanrelabel.defaults import DEFAULT_LOG_PRIOR_NAME
from stanrelabel.store import SampleStore, split_flat_name


def get_draws(
    store: SampleStore,
    variables: Optional[Sequence[str]] = None,
    log_prior_name: str = DEFAULT_LOG_PRIOR_NAME,
) -> pd.DataFrame:
    """Kept draws of a store as a data frame.

    Rows are draws, chain after chain. Besides one column per flat name, the frame
    holds the bookkeeping columns ``.chain``, ``.iteration`` (within the chain),
    and ``.draw`` (across chains), all starting at 1.

    :param store: The sample store
    :type store: SampleStore
    :param variables: Variables to include. Defaults to all variables except the
        log prior and the log density ``lp__``.
    :type variables: Optional[Sequence[str]]
    :param log_prior_name: Name of the log prior variable. Defaults to "lprior".
    :type log_prior_name: str

    :returns: The draws
    :rtype: pd.DataFrame
    """
    if variables is None:
        excluded = {log_prior_name, "lp__"}
        columns = [
            colind
            for colind, name in enumerate(store.names)
            if split_flat_name(name)[0] not in excluded
        ]
    else:
        selected = set(variables)
        columns = [
            colind
            for colind, name in enumerate(store.names)
            if split_flat_name(name)[0] in selected
        ]

    # Stack the kept draws of all chains
    kept = [chain[warmup:, columns] for chain, warmup in zip(store.chains, store.warmup)]
    draws = pd.DataFrame(
        np.concatenate(kept, axis=0), columns=[store.names[ind] for ind in columns]
    )
    draws[".chain"] = np.concatenate(
        [np.full(len(part), chainind) for chainind, part in enumerate(kept, start=1)]
    )
    draws[".iteration"] = np.concatenate([np.arange(1, len(part) + 1) for part in kept])
    draws[".draw"] = np.arange(1, len(draws) + 1)
    return draws


def log_prior_draws(
    store: SampleStore, log_prior_name: str = DEFAULT_LOG_PRIOR_NAME
) -> npt.NDArray[np.floating]:
    """Kept draws of the joint log prior density.

    :param store: The sample store
    :type store: SampleStore
    :param log_prior_name: Name of the log prior column. Defaults to "lprior".
    :type log_prior_name: str

    :returns: Log prior draws shaped (n_draws, n_chains)
    :rtype: npt.NDArray[np.floating]

    :raises KeyError: If the store has no log prior column
    """
    colind = store.column_index(log_prior_name)
    return np.stack(
        [chain[warmup:, colind] for chain, warmup in zip(store.chains, store.warmup)],
        axis=1,
    )


def log_lik_draws(log_lik: npt.ArrayLike, n_chains: int) -> xr.DataArray:
    """Arrange pointwise log-likelihood draws by draw and chain.

    :param log_lik: Pointwise log-likelihood shaped (n_draws_total, n_obs), with
        the draws of all chains concatenated chain after chain
    :type log_lik: npt.ArrayLike
    :param n_chains: Number of chains
    :type n_chains: int

    :returns: Log-likelihood with dimensions (draw, chain, log_lik), the last
        labeled ``log_lik[1]`` through ``log_lik[n_obs]``
    :rtype: xr.DataArray

    :raises ValueError: If the draws cannot be split evenly into chains
    """
    log_lik = np.asarray(log_lik, dtype=float)
    if log_lik.ndim == 1:
        log_lik = log_lik[:, None]
    if log_lik.shape[0] % n_chains != 0:
        raise ValueError(
            f"Cannot split {log_lik.shape[0]} draws evenly into {n_chains} chains."
        )

    # (chain * draw, obs) -> (draw, chain, obs)
    n_draws = log_lik.shape[0] // n_chains
    arranged = log_lik.reshape(n_chains, n_draws, -1).transpose(1, 0, 2)
    return xr.DataArray(
        arranged,
        dims=("draw", "chain", "log_lik"),
        coords={
            "draw": np.arange(n_draws),
            "chain": np.arange(n_chains),
            "log_lik": [f"log_lik[{ind}]" for ind in range(1, arranged.shape[2] + 1)],
        },
    )


def powerscale_log_ratio(
    component_draws: npt.ArrayLike | xr.DataArray, alpha: float
) -> npt.NDArray[np.floating]:
    """Log importance ratios of power-scaling a component by ``alpha``.

    :param component_draws: Log density draws of the component shaped
        (n_draws, n_chains, ...). Trailing dimensions are summed over.
    :type component_draws: Union[npt.ArrayLike, xr.DataArray]
    :param alpha: Power-scaling exponent
    :type alpha: float

    :returns: Log ratios shaped (n_draws, n_chains)
    :rtype: npt.NDArray[np.floating]
    """
    draws = np.asarray(component_draws, dtype=float)
    if draws.ndim > 2:
        draws = draws.reshape(*draws.shape[:2], -1).sum(axis=2)
    return draws * (alpha - 1)


class PriorSenseData:
    """Everything needed for a power-scaling sensitivity analysis of a fit.

    :param draws: Parameter draws, see :py:func:`get_draws`
    :type draws: pd.DataFrame
    :param log_prior: Log prior draws shaped (n_draws, n_chains)
    :type log_prior: npt.NDArray[np.floating]
    :param log_lik: Pointwise log-likelihood, see :py:func:`log_lik_draws`.
        Defaults to None.
    :type log_lik: Optional[xr.DataArray]
    """

    def __init__(
        self,
        draws: pd.DataFrame,
        log_prior: npt.NDArray[np.floating],
        log_lik: Optional[xr.DataArray] = None,
    ):
        self.draws = draws
        self.log_prior = log_prior
        self.log_lik = log_lik

    @property
    def n_chains(self) -> int:
        """Number of chains."""
        return self.log_prior.shape[1]

    def get_component(self, component: str) -> npt.NDArray | xr.DataArray:
        """Log density draws of the "prior" or "likelihood" component.

        :raises ValueError: If the component is unknown or unavailable
        """
        if component == "prior":
            return self.log_prior
        if component == "likelihood":
            if self.log_lik is None:
                raise ValueError("No log-likelihood draws are available.")
            return self.log_lik
        raise ValueError(
            f"`component` must be 'prior' or 'likelihood', got '{component}'."
        )


def create_priorsense_data(
    store: SampleStore,
    log_lik: Optional[npt.ArrayLike] = None,
    log_prior_name: str = DEFAULT_LOG_PRIOR_NAME,
) -> PriorSenseData:
    """Bundle the data for a power-scaling sensitivity analysis.

    :param store: The relabeled sample store, holding the log prior column
    :type store: SampleStore
    :param log_lik: Pointwise log-likelihood shaped (n_draws_total, n_obs).
        Defaults to None.
    :type log_lik: Optional[npt.ArrayLike]
    :param log_prior_name: Name of the log prior column. Defaults to "lprior".
    :type log_prior_name: str

    :returns: The bundled data
    :rtype: PriorSenseData
    """
    return PriorSenseData(
        draws=get_draws(store, log_prior_name=log_prior_name),
        log_prior=log_prior_draws(store, log_prior_name=log_prior_name),
        log_lik=None if log_lik is None else log_lik_draws(log_lik, store.n_chains),
    )


class PowerscaleWeights:
    """Pareto-smoothed importance weights of a power-scaling perturbation.

    :ivar log_weights: Normalized log weights shaped (n_draws, n_chains)
    :ivar pareto_k: Estimated Pareto shape of the weight tail
    :ivar n_eff: Effective number of draws under the weights
    """

    def __init__(
        self, log_weights: npt.NDArray[np.floating], pareto_k: float, n_eff: float
    ):
        self.log_weights = log_weights
        self.pareto_k = pareto_k
        self.n_eff = n_eff

    def __repr__(self) -> str:
        return f"PowerscaleWeights(pareto_k={self.pareto_k:.3f}, n_eff={self.n_eff:.1f})"


def powerscale_weights(
    data: PriorSenseData, alpha: float, component: str = "prior"
) -> PowerscaleWeights:
    """Pareto-smoothed importance weights for power-scaling a component.

    :param data: The sensitivity data
    :type data: PriorSenseData
    :param alpha: Power-scaling exponent
    :type alpha: float
    :param component: Component to perturb, "prior" or "likelihood". Defaults to
        "prior".
    :type component: str

    :returns: The smoothed weights
    :rtype: PowerscaleWeights
    """
    log_ratio = powerscale_log_ratio(data.get_component(component), alpha)

    # Smooth over all draws, chain after chain
    smoothed, pareto_k = az.psislw(log_ratio.T.ravel(), reff=1.0)
    smoothed = np.asarray(smoothed, dtype=float)
    return PowerscaleWeights(
        log_weights=smoothed.reshape(log_ratio.shape[1], -1).T,
        pareto_k=float(np.asarray(pareto_k)),
        n_eff=float(np.exp(-logsumexp(2 * smoothed))),
    )
