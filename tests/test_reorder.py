import numpy as np

from stanrelabel.reorder import (
    get_class,
    get_class_order,
    get_column_order,
    is_intercept,
    reorder_pars,
)


def test_class_extraction():
    assert get_class("b_x1") == "b"
    assert get_class("r_site__sigma") == "r"
    assert get_class("lp__") == "lp"
    assert get_class("Intercept") == "Intercept"
    assert get_class("prior_sd_site") == "prior"


def test_intercept_detection():
    assert is_intercept("b_Intercept")
    assert is_intercept("b_sigma_Intercept")
    assert is_intercept("b_Intercept_1")
    assert not is_intercept("b_x1")
    assert not is_intercept("b_Intercept_x")


def test_class_order_is_unique_and_places_dpars_after_lscale():
    order = get_class_order(["mu", "sigma", "b"])
    assert len(order) == len(set(order))
    assert order.index("lscale") < order.index("sigma") < order.index("hs")
    assert order.index("b") == 0
    assert order[-3:] == ["prior", "lprior", "lp"]


def test_fixed_effects_precede_priors_and_log_density(make_store):
    store = make_store(["lp__", "prior_b", "b_x1", "b_Intercept"])
    assert reorder_pars(store).names == ["b_Intercept", "b_x1", "prior_b", "lp__"]


def test_intercepts_lead_their_class():
    names = ["b_x1", "b_sigma_Intercept", "b_x2", "b_Intercept"]
    ordered = [names[ind] for ind in get_column_order(names)]
    assert ordered == ["b_sigma_Intercept", "b_Intercept", "b_x1", "b_x2"]


def test_distributional_parameters_follow_group_level_terms():
    names = ["Intercept", "sigma", "sd_site__Intercept", "b_x"]
    ordered = [names[ind] for ind in get_column_order(names, dpars=["mu", "sigma"])]
    assert ordered == ["b_x", "sd_site__Intercept", "sigma", "Intercept"]


def test_unknown_classes_go_last_in_original_order():
    names = ["zzz", "lp__", "aaa[1]", "b_x"]
    ordered = [names[ind] for ind in get_column_order(names)]
    assert ordered == ["b_x", "lp__", "zzz", "aaa[1]"]


def test_columns_of_a_variable_keep_their_order():
    names = [
        "r_site[B,Intercept]",
        "sd_site__Intercept",
        "r_site[A,Intercept]",
        "r_site[C,Intercept]",
    ]
    ordered = [names[ind] for ind in get_column_order(names)]
    assert ordered == [
        "sd_site__Intercept",
        "r_site[B,Intercept]",
        "r_site[A,Intercept]",
        "r_site[C,Intercept]",
    ]


def test_values_and_metadata_follow_their_columns(make_store):
    names = ["lp__", "r_site[A,Intercept]", "sd_site__Intercept", "b_x"]
    store = make_store(names, n_chains=3).replace(
        column_meta=[{"constrained": ind} for ind in range(4)]
    )

    reordered = reorder_pars(store)

    assert reordered.names == [
        "b_x",
        "sd_site__Intercept",
        "r_site[A,Intercept]",
        "lp__",
    ]
    assert [meta["constrained"] for meta in reordered.column_meta] == [3, 2, 1, 0]
    for old, new in zip(store.chains, reordered.chains):
        for newind, name in enumerate(reordered.names):
            np.testing.assert_array_equal(new[:, newind], old[:, names.index(name)])


def test_every_b_precedes_every_prior(make_store):
    names = ["prior_b_x1", "b_x1", "prior_sd_site", "b_Intercept", "sd_site__x"]
    reordered = reorder_pars(make_store(names)).names
    last_b = max(reordered.index(name) for name in reordered if get_class(name) == "b")
    first_prior = min(
        reordered.index(name) for name in reordered if get_class(name) == "prior"
    )
    assert last_b < first_prior


def test_reordering_is_stable_under_repetition(make_store):
    names = ["lp__", "sigma", "b_x1", "r_site[A,Intercept]", "b_Intercept"]
    once = reorder_pars(make_store(names), dpars=["sigma"])
    twice = reorder_pars(once, dpars=["sigma"])
    assert once.names == twice.names


def test_dask_matches_serial(make_store):
    store = make_store(["lp__", "b_x1", "sd_g__Intercept"], n_chains=4)
    serial = reorder_pars(store)
    parallel = reorder_pars(store, use_dask=True)
    assert serial.names == parallel.names
    for left, right in zip(serial.chains, parallel.chains):
        np.testing.assert_array_equal(left, right)


def test_undeclared_distributional_parameter_is_unknown():
    names = ["alpha", "lp__", "sigma", "b_x"]
    ordered = [names[ind] for ind in get_column_order(names, dpars=["mu", "sigma"])]
    assert ordered == ["b_x", "sigma", "lp__", "alpha"]
