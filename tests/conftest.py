"""Shared fixtures for the StanRelabel test suite."""

from unittest.mock import Mock

import numpy as np
import pytest

from cmdstanpy.stanfit import CmdStanMCMC

from stanrelabel import (
    FixedEffects,
    GroupLevelTerm,
    ModelDescription,
    PredictorDescription,
    ResponseDescription,
    SampleStore,
)
from stanrelabel.renaming import apply_plan, build_plan


def _make_store(names, n_chains=2, n_iter=10, warmup=0, seed=0):
    rng = np.random.default_rng(seed)
    chains = [rng.normal(size=(n_iter, len(names))) for _ in range(n_chains)]
    return SampleStore(names=names, chains=chains, warmup=[warmup] * n_chains)


def _describe(*terms, special_prior=False, dpar="mu", resp="", **kwargs):
    """Description of a univariate model with a single predictor node."""
    return ModelDescription(
        responses=[
            ResponseDescription(
                resp=resp,
                predictors=[
                    PredictorDescription(
                        dpar=dpar, resp=resp, terms=terms, special_prior=special_prior
                    )
                ],
            )
        ],
        **kwargs,
    )


def _make_fit(column_names, n_chains=2, n_sampling=10, n_warmup=0, seed=0):
    """Stand-in for CmdStan sampling output."""
    rng = np.random.default_rng(seed)
    fit = Mock(spec=CmdStanMCMC)
    fit.metadata.cmdstan_config = {"save_warmup": n_warmup > 0}
    fit.draws.return_value = rng.normal(
        size=(n_warmup + n_sampling, n_chains, len(column_names))
    )
    fit.num_draws_sampling = n_sampling
    fit.column_names = tuple(column_names)
    return fit


def _relabel_names(names, description):
    """Names after applying the rename plan only."""
    store = _make_store(names, n_chains=1, n_iter=2)
    return apply_plan(store, build_plan(description, names)).names


@pytest.fixture
def make_store():
    return _make_store


@pytest.fixture
def make_fit():
    return _make_fit


@pytest.fixture
def describe():
    return _describe


@pytest.fixture
def relabel_names():
    return _relabel_names


@pytest.fixture
def fixed_effects_description():
    return _describe(FixedEffects(["Intercept", "x1"]))


@pytest.fixture
def site_description():
    return ModelDescription(
        group_terms=[GroupLevelTerm(id=1, group="site", coef="Intercept")],
        group_levels={"site": ["A", "B", "C"]},
    )
