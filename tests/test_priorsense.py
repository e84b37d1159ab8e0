import numpy as np
import pytest

from scipy.special import logsumexp

from stanrelabel.priorsense import (
    create_priorsense_data,
    get_draws,
    log_lik_draws,
    log_prior_draws,
    powerscale_log_ratio,
    powerscale_weights,
    PriorSenseData,
)

NAMES = ["b_x", "lprior", "lp__", "r_site[A]"]


@pytest.fixture(name="store")
def fixture_store(make_store):
    return make_store(NAMES, n_chains=2, n_iter=10, warmup=3)


def test_draws_exclude_log_densities(store):
    draws = get_draws(store)

    assert list(draws.columns) == ["b_x", "r_site[A]", ".chain", ".iteration", ".draw"]
    assert len(draws) == 14
    assert draws[".chain"].tolist() == [1] * 7 + [2] * 7
    assert draws[".iteration"].tolist() == list(range(1, 8)) * 2
    assert draws[".draw"].tolist() == list(range(1, 15))
    np.testing.assert_array_equal(draws["b_x"].to_numpy(), store.kept_draws("b_x"))


def test_draws_of_selected_variables(store):
    draws = get_draws(store, variables=["r_site"])
    assert list(draws.columns) == ["r_site[A]", ".chain", ".iteration", ".draw"]


def test_log_prior_is_arranged_by_draw_and_chain(store):
    log_prior = log_prior_draws(store)
    assert log_prior.shape == (7, 2)
    np.testing.assert_array_equal(log_prior, store["lprior"][:, 3:].T)


def test_missing_log_prior_raises(make_store):
    with pytest.raises(KeyError):
        log_prior_draws(make_store(["b_x", "lp__"]))


def test_log_lik_layout():
    log_lik = log_lik_draws(np.arange(12.0).reshape(6, 2), n_chains=2)

    assert log_lik.dims == ("draw", "chain", "log_lik")
    assert log_lik.shape == (3, 2, 2)
    assert list(log_lik.coords["log_lik"].values) == ["log_lik[1]", "log_lik[2]"]
    # Draws of the second chain follow those of the first
    np.testing.assert_array_equal(log_lik.sel(chain=1, draw=0).values, [6.0, 7.0])


def test_log_lik_requires_even_split():
    with pytest.raises(ValueError, match="evenly"):
        log_lik_draws(np.zeros((5, 2)), n_chains=2)


def test_log_ratio_sums_trailing_dimensions():
    draws = np.ones((4, 2, 3))
    np.testing.assert_allclose(powerscale_log_ratio(draws, alpha=0.5), -1.5)
    np.testing.assert_allclose(
        powerscale_log_ratio(np.ones((4, 2)), alpha=2.0), np.ones((4, 2))
    )


def test_create_priorsense_data(store):
    data = create_priorsense_data(store, log_lik=np.zeros((14, 3)))

    assert isinstance(data, PriorSenseData)
    assert data.n_chains == 2
    assert data.log_prior.shape == (7, 2)
    assert data.log_lik.shape == (7, 2, 3)
    assert "lprior" not in data.draws.columns


def test_component_lookup(store):
    data = create_priorsense_data(store)
    assert data.get_component("prior") is data.log_prior
    with pytest.raises(ValueError, match="No log-likelihood"):
        data.get_component("likelihood")
    with pytest.raises(ValueError, match="must be 'prior' or 'likelihood'"):
        data.get_component("posterior")


def test_powerscale_weights_are_normalized(make_store):
    store = make_store(["b_x", "lprior", "lp__"], n_chains=2, n_iter=500, seed=3)
    weights = powerscale_weights(create_priorsense_data(store), alpha=0.8)

    assert weights.log_weights.shape == (500, 2)
    assert np.isfinite(weights.pareto_k)
    assert 0 < weights.n_eff <= 1000
    np.testing.assert_allclose(logsumexp(weights.log_weights), 0.0, atol=1e-8)
