from stanrelabel.renaming import rename_prior


def test_scalar_prior_resolves_disambiguator():
    names = ["b[1]", "prior_b", "prior_b__2", "lp__"]
    (operation,) = rename_prior("b", names, labels=["Intercept", "x1"])
    assert operation.positions.tolist() == [2]
    assert operation.names == ["prior_b_x1"]


def test_unchanged_priors_are_skipped():
    assert rename_prior("b", ["prior_b"], labels=["x1"]) == []


def test_no_prior_draws():
    assert rename_prior("b", ["b[1]", "lp__"], labels=["x1"]) == []


def test_new_class_with_prefixed_labels():
    names = ["prior_sd_1", "prior_sd_1__2"]
    (operation,) = rename_prior(
        "sd_1", names, labels=["_Intercept", "_x"], new_class="sd_site"
    )
    assert operation.names == ["prior_sd_site", "prior_sd_site__x"]


def test_out_of_range_disambiguator_is_left_alone():
    assert rename_prior("b", ["prior_b__5"], labels=["x1", "x2"]) == []


def test_vector_prior_new_class():
    names = ["prior_simo_1[1]", "prior_simo_1[2]", "prior_simo_2[1]"]
    (operation,) = rename_prior(
        "simo_1", names, new_class="simo_moincome1", vector=True
    )
    assert operation.positions.tolist() == [0, 1]
    assert operation.names == ["prior_simo_moincome1[1]", "prior_simo_moincome1[2]"]


def test_vector_prior_labels_replace_indices():
    (operation,) = rename_prior(
        "z", ["prior_z[1]", "prior_z[2]"], labels=["a", "b"], vector=True
    )
    assert operation.names == ["prior_z_a", "prior_z_b"]


def test_at_most_one_operation():
    names = ["prior_b__1", "prior_b__2", "prior_b__3"]
    operations = rename_prior("b", names, labels=["x1", "x2", "x3"])
    assert len(operations) == 1
    assert operations[0].names == ["prior_b_x1", "prior_b_x2", "prior_b_x3"]
