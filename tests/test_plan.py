import numpy as np
import pytest

from stanrelabel import (
    AutocorrelationTerms,
    CategorySpecificEffects,
    FixedEffects,
    GaussianProcess,
    GaussianProcessTerms,
    GroupLevelTerm,
    MeasurementErrorTerm,
    ModelDescription,
    PredictorDescription,
    ResponseDescription,
    SmoothTerms,
    SpecialEffects,
)
from stanrelabel.exceptions import DuplicateNameError
from stanrelabel.renaming import apply_plan, build_plan
from stanrelabel.renaming.plan import TERM_RENAMERS


def test_fixed_effects(relabel_names, fixed_effects_description):
    names = ["b_1[1]", "b_1[2]", "lp__"]
    assert relabel_names(names, fixed_effects_description) == [
        "b_Intercept",
        "b_x1",
        "lp__",
    ]


def test_fixed_effects_of_distributional_parameter(relabel_names, describe):
    description = describe(FixedEffects(["x1", "x2"]), dpar="sigma")
    names = ["b[1]", "b_sigma[1]", "b_sigma[2]"]
    assert relabel_names(names, description) == ["b[1]", "b_sigma_x1", "b_sigma_x2"]


def test_fixed_effects_prior(relabel_names, describe):
    description = describe(FixedEffects(["x1", "x2"]))
    names = ["b[1]", "b[2]", "prior_b__1", "prior_b__2"]
    assert relabel_names(names, description) == [
        "b_x1",
        "b_x2",
        "prior_b_x1",
        "prior_b_x2",
    ]


def test_special_prior_shadow_class(relabel_names, describe):
    names = ["b[1]", "sdb[1]"]
    assert relabel_names(names, describe(FixedEffects(["x1"]))) == ["b_x1", "sdb[1]"]
    assert relabel_names(
        names, describe(FixedEffects(["x1"]), special_prior=True)
    ) == ["b_x1", "sdb_x1"]


def test_special_effects_and_simplexes(relabel_names, describe):
    description = describe(SpecialEffects(["moincome"], simplex_labels=["moincome1"]))
    names = [
        "bsp[1]",
        "simo_1[1]",
        "simo_1[2]",
        "prior_simo_1[1]",
        "prior_simo_1[2]",
    ]
    assert relabel_names(names, description) == [
        "bsp_moincome",
        "simo_moincome1[1]",
        "simo_moincome1[2]",
        "prior_simo_moincome1[1]",
        "prior_simo_moincome1[2]",
    ]


def test_category_specific_effects_are_regrouped(make_store, describe):
    description = describe(CategorySpecificEffects(["x1", "x2"]))
    names = ["b_Intercept[1]", "b_Intercept[2]", "b_Intercept[3]"] + [
        f"bcs[{ind}]" for ind in range(1, 7)
    ]
    store = make_store(names, n_iter=3)

    # Column-major coefficient-by-threshold storage: 10 * coef + threshold
    for chain in store.chains:
        chain[:, 3:] = [11, 21, 12, 22, 13, 23]

    renamed = apply_plan(store, build_plan(description, names))
    assert renamed.names[3:] == [
        "bcs_x1[1]",
        "bcs_x1[2]",
        "bcs_x1[3]",
        "bcs_x2[1]",
        "bcs_x2[2]",
        "bcs_x2[3]",
    ]
    for chain in renamed.chains:
        assert chain[:, 3:].tolist() == [[11, 12, 13, 21, 22, 23]] * 3

    # Intercepts are untouched
    for old, new in zip(store.chains, renamed.chains):
        np.testing.assert_array_equal(old[:, :3], new[:, :3])


def test_category_specific_explicit_threshold_count(relabel_names, describe):
    description = describe(CategorySpecificEffects(["x1"], n_thresholds=2))
    assert relabel_names(["bcs[1]", "bcs[2]"], description) == [
        "bcs_x1[1]",
        "bcs_x1[2]",
    ]


def test_smooth_terms(relabel_names, describe):
    description = describe(SmoothTerms(["sx"], [2], basis_names=["sx_1"]))
    names = [
        "bs[1]",
        "sds_1[1]",
        "sds_1[2]",
        "s_1_1[1]",
        "s_1_1[2]",
        "s_1_2[1]",
        "prior_sds_1",
    ]
    assert relabel_names(names, description) == [
        "bs_sx_1",
        "sds_sx_1",
        "sds_sx_2",
        "s_sx_1[1]",
        "s_sx_1[2]",
        "s_sx_2[1]",
        "prior_sds_sx",
    ]


def test_smooth_terms_require_matching_basis_counts():
    with pytest.raises(ValueError, match="number of bases"):
        SmoothTerms(["sx", "sz"], [1])


def test_gaussian_process_single_label(relabel_names, describe):
    description = describe(
        GaussianProcessTerms([GaussianProcess(["gpx"], ["gpx"])])
    )
    names = ["sdgp_1[1]", "lscale_1[1,1]", "zgp_1[1]", "zgp_1[2]", "prior_sdgp_1"]
    assert relabel_names(names, description) == [
        "sdgp_gpx",
        "lscale_gpx",
        "zgp_gpx[1]",
        "zgp_gpx[2]",
        "prior_sdgp",
    ]


def test_gaussian_process_by_levels(relabel_names, describe):
    labels = ["gpxzA", "gpxzB"]
    description = describe(GaussianProcessTerms([GaussianProcess(labels, labels)]))
    names = [
        "sdgp_1[1]",
        "sdgp_1[2]",
        "lscale_1[1,1]",
        "lscale_1[2,1]",
        "zgp_1_1[1]",
        "zgp_1_2[1]",
        "zgp_1_2[2]",
    ]
    assert relabel_names(names, description) == [
        "sdgp_gpxzA",
        "sdgp_gpxzB",
        "lscale_gpxzA",
        "lscale_gpxzB",
        "zgp_gpxzA[1]",
        "zgp_gpxzB[1]",
        "zgp_gpxzB[2]",
    ]


def test_unstructured_autocorrelation(relabel_names, describe):
    description = describe(AutocorrelationTerms(["unstr"], times=[1, 2, 3]))
    names = ["cortime[1]", "cortime[2]", "cortime[3]"]
    assert relabel_names(names, description) == [
        "cortime__1__2",
        "cortime__1__3",
        "cortime__2__3",
    ]
    assert relabel_names(names, describe(AutocorrelationTerms(["ar"]))) == names


def test_single_group_level_term(relabel_names, site_description):
    names = ["sd_1[1]", "r_1_1[1]", "r_1_1[2]", "r_1_1[3]"]
    assert relabel_names(names, site_description) == [
        "sd_site__Intercept",
        "r_site[A,Intercept]",
        "r_site[B,Intercept]",
        "r_site[C,Intercept]",
    ]


def test_correlated_group_level_terms(relabel_names):
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(id=1, group="site", coef="Intercept", cn=1),
            GroupLevelTerm(id=1, group="site", coef="x", cn=2),
        ],
        group_levels={"site": ["A", "B"]},
    )
    names = [
        "sd_1[1]",
        "sd_1[2]",
        "cor_1[1]",
        "r_1_1[1]",
        "r_1_1[2]",
        "r_1_2[1]",
        "r_1_2[2]",
        "prior_sd_1",
        "prior_cor_1",
    ]
    assert relabel_names(names, description) == [
        "sd_site__Intercept",
        "sd_site__x",
        "cor_site__Intercept__x",
        "r_site[A,Intercept]",
        "r_site[B,Intercept]",
        "r_site[A,x]",
        "r_site[B,x]",
        "prior_sd_site",
        "prior_cor_site",
    ]


def test_uncorrelated_group_level_terms_have_no_correlation_rename():
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(id=1, group="site", coef="Intercept", cn=1, cor=False),
            GroupLevelTerm(id=1, group="site", coef="x", cn=2, cor=False),
        ],
        group_levels={"site": ["A", "B"]},
    )
    plan = build_plan(description, ["sd_1[1]", "sd_1[2]", "cor_1[1]"])
    assert not any(
        name.startswith("cor_") for operation in plan for name in operation.names
    )


def test_group_level_terms_by_levels(relabel_names):
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(
                id=1, group="site", coef=coef, cn=cn, by="z", bylevels=["a", "b"]
            )
            for cn, coef in enumerate(["Intercept", "x"], start=1)
        ],
        group_levels={"site": ["A"]},
    )
    names = ["sd_1[1]", "sd_1[2]", "sd_1[3]", "sd_1[4]", "cor_1[1]", "cor_1[2]"]
    assert relabel_names(names, description) == [
        "sd_site__Intercept:a",
        "sd_site__x:a",
        "sd_site__Intercept:b",
        "sd_site__x:b",
        "cor_site__Intercept:a__x:a",
        "cor_site__Intercept:b__x:b",
    ]


def test_group_levels_are_sanitized(relabel_names):
    description = ModelDescription(
        group_terms=[GroupLevelTerm(id=1, group="city", coef="Intercept")],
        group_levels={"city": ["New York", "Paris"]},
    )
    assert relabel_names(["r_1_1[1]", "r_1_1[2]"], description) == [
        "r_city[New.York,Intercept]",
        "r_city[Paris,Intercept]",
    ]


def test_group_level_terms_of_distributional_parameter(relabel_names):
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(id=2, group="site", coef="Intercept", dpar="sigma")
        ],
        group_levels={"site": ["A", "B"]},
    )
    names = ["sd_2[1]", "r_2_sigma_1[1]", "r_2_sigma_1[2]"]
    assert relabel_names(names, description) == [
        "sd_site__sigma_Intercept",
        "r_site__sigma[A,Intercept]",
        "r_site__sigma[B,Intercept]",
    ]


def test_student_group_level_degrees_of_freedom(relabel_names):
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(id=1, group="site", coef="Intercept", dist="student")
        ],
        group_levels={"site": ["A"]},
    )
    assert relabel_names(["df_1", "df_10"], description) == ["df_site", "df_10"]


def test_grouped_thresholds(relabel_names):
    description = ModelDescription(
        responses=[ResponseDescription(thresholds={"g1": [1, 2], "g2": [1, 2, 3]})]
    )
    names = [
        "b_Intercept_1[1]",
        "b_Intercept_1[2]",
        "b_Intercept_2[1]",
        "b_Intercept_2[2]",
        "b_Intercept_2[3]",
    ]
    assert relabel_names(names, description) == [
        "b_Intercept[g1,1]",
        "b_Intercept[g1,2]",
        "b_Intercept[g2,1]",
        "b_Intercept[g2,2]",
        "b_Intercept[g2,3]",
    ]


def test_ungrouped_thresholds_are_not_renamed():
    description = ModelDescription(
        responses=[ResponseDescription(thresholds={"": [1, 2]})]
    )
    assert build_plan(description, ["b_Intercept[1]", "b_Intercept[2]"]) == []


def test_grouped_hazard_baselines(relabel_names):
    description = ModelDescription(
        responses=[ResponseDescription(hazard_groups=["a", "b"])]
    )
    names = ["sbhaz[1,1]", "sbhaz[1,2]", "sbhaz[2,1]", "sbhaz[2,2]"]
    assert relabel_names(names, description) == [
        "sbhaz[a,1]",
        "sbhaz[a,2]",
        "sbhaz[b,1]",
        "sbhaz[b,2]",
    ]


def test_grouped_measurement_error(relabel_names):
    description = ModelDescription(
        me_terms=[
            MeasurementErrorTerm("mex", grname="g", cor=True),
            MeasurementErrorTerm("mez", grname="g", cor=True),
        ],
        me_levels={"g": ["l 1", "l2"]},
    )
    names = [
        "meanme_1[1]",
        "meanme_1[2]",
        "sdme_1[1]",
        "sdme_1[2]",
        "Xme_1[1]",
        "Xme_1[2]",
        "Xme_2[1]",
        "Xme_2[2]",
        "corme_1[1]",
        "prior_corme_1",
    ]
    assert relabel_names(names, description) == [
        "meanme_mex",
        "meanme_mez",
        "sdme_mex",
        "sdme_mez",
        "Xme_mex[l.1]",
        "Xme_mex[l2]",
        "Xme_mez[l.1]",
        "Xme_mez[l2]",
        "corme_g__mex__mez",
        "prior_corme_g",
    ]


def test_ungrouped_measurement_error(relabel_names):
    description = ModelDescription(me_terms=[MeasurementErrorTerm("mex")])
    names = ["meanme_1[1]", "sdme_1[1]", "Xme_1[1]", "Xme_1[2]", "Xme_1[3]"]
    assert relabel_names(names, description) == [
        "meanme_mex",
        "sdme_mex",
        "Xme_mex[1]",
        "Xme_mex[2]",
        "Xme_mex[3]",
    ]


def test_missing_values(relabel_names):
    description = ModelDescription(
        responses=[ResponseDescription(resp="y1", missing_indices=[2, 5])]
    )
    assert relabel_names(["Ymi_y1[1]", "Ymi_y1[2]"], description) == [
        "Ymi_y1[2]",
        "Ymi_y1[5]",
    ]


def test_logistic_normal_correlations(relabel_names):
    description = ModelDescription(
        responses=[ResponseDescription(family_categories=["b", "c", "d"])]
    )
    assert relabel_names(["lncor[1]", "lncor[2]", "lncor[3]"], description) == [
        "lncor__b__c",
        "lncor__b__d",
        "lncor__c__d",
    ]


def test_residual_correlations(relabel_names):
    description = ModelDescription(
        responses=[ResponseDescription(resp="y1"), ResponseDescription(resp="y2")],
        rescor=True,
    )
    assert relabel_names(["rescor[1]"], description) == ["rescor__y1__y2"]


def test_absent_features_are_noops(relabel_names, describe):
    description = describe(
        FixedEffects(["x1"]),
        SmoothTerms(["sx"], [1]),
        group_terms=[GroupLevelTerm(id=1, group="site", coef="Intercept")],
        group_levels={"site": ["A"]},
    )
    assert relabel_names(["b[1]", "lp__"], description) == ["b_x1", "lp__"]


def test_traversal_order(describe):
    description = describe(
        SmoothTerms(["sx"], [1], basis_names=["sx_1"]),
        FixedEffects(["x1"]),
        group_terms=[GroupLevelTerm(id=1, group="site", coef="Intercept")],
        group_levels={"site": ["A"]},
    )
    names = ["sd_1[1]", "bs[1]", "b[1]"]
    plan = [operation for operation in build_plan(description, names)]
    first_names = [operation.names[0] for operation in plan if operation.names]
    assert first_names.index("b_x1") < first_names.index("bs_sx_1")
    assert first_names.index("bs_sx_1") < first_names.index("sd_site__Intercept")


def test_dispatch_table_covers_all_term_kinds():
    assert list(TERM_RENAMERS) == ["fe", "sp", "cs", "sm", "gp", "ac"]


def test_builder_does_not_touch_names():
    description = ModelDescription(
        responses=[
            ResponseDescription(
                predictors=[PredictorDescription(terms=[FixedEffects(["x1"])])]
            )
        ]
    )
    names = ["b[1]"]
    build_plan(description, names)
    assert names == ["b[1]"]


def test_duplicate_term_kinds_are_rejected():
    with pytest.raises(ValueError, match="Duplicate term group kinds"):
        PredictorDescription(terms=[FixedEffects(["x"]), FixedEffects(["z"])])


def test_missing_group_levels_are_rejected():
    with pytest.raises(ValueError, match="Missing levels"):
        ModelDescription(group_terms=[GroupLevelTerm(id=1, group="site", coef="x")])


def test_by_levels_are_used_verbatim(relabel_names):
    description = ModelDescription(
        group_terms=[
            GroupLevelTerm(
                id=1, group="site", coef="Intercept", by="z", bylevels=["za", "zb"]
            )
        ],
        group_levels={"site": ["A"]},
    )
    assert relabel_names(["sd_1[1]", "sd_1[2]"], description) == [
        "sd_site__Intercept:za",
        "sd_site__Intercept:zb",
    ]


def test_colliding_group_levels_name_the_group():
    description = ModelDescription(
        group_terms=[GroupLevelTerm(id=1, group="city", coef="Intercept")],
        group_levels={"city": ["New York", "New.York", "Paris"]},
    )
    names = ["sd_1[1]", "r_1_1[1]", "r_1_1[2]", "r_1_1[3]"]
    with pytest.raises(DuplicateNameError, match="'city'.*New York, New.York"):
        build_plan(description, names)


def test_colliding_measurement_error_levels_are_rejected():
    description = ModelDescription(
        me_terms=[MeasurementErrorTerm("x", grname="g")],
        me_levels={"g": ["a b", "a.b"]},
    )
    with pytest.raises(DuplicateNameError, match="'g'"):
        build_plan(description, ["Xme_1[1]", "Xme_1[2]"])
