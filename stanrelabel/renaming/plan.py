# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Construction of the rename plan from a model description.

The rename plan is the ordered list of :py:class:`RenameOperation` objects that
turns the flat, positional names emitted by Stan into human-readable names. It is
built by walking the model description in a fixed order:

    1. For every predictor node of every response, its term groups in the order
       fixed effects, special effects, category-specific effects, smooth terms,
       Gaussian processes, autocorrelation terms. Each kind of term group is
       handled by the function registered for its ``KIND`` in
       :py:data:`TERM_RENAMERS`.
    2. Group-level effects (standard deviations, correlations, per-level draws,
       degrees of freedom).
    3. For every response, thresholds and hazard baselines.
    4. Latent measurement-error variables.
    5. For every response, missing-value placeholders and family-specific
       correlations.
    6. Residual correlations between responses.

Any rename of a class with prior twins is mirrored onto them through
:py:func:`~stanrelabel.renaming.prior.rename_prior`.

The plan is built once from the shared name table and never touches draws. Some
operations may select zero columns when the corresponding feature is absent from
the fitted model; these are no-ops when applied.

Throughout, ``p`` denotes the naming prefix of a predictor with a leading
underscore, or the empty string for the main predictor of a univariate model.
"""

from __future__ import annotations

import re

from typing import Callable, Mapping, Optional, Sequence, TYPE_CHECKING

from stanrelabel import utils
from stanrelabel.description import terms
from stanrelabel.exceptions import DuplicateNameError
from stanrelabel.renaming import matcher
from stanrelabel.renaming.operations import RenameOperation
from stanrelabel.renaming.prior import rename_prior

if TYPE_CHECKING:
    from stanrelabel import custom_types
    from stanrelabel.description import (
        GroupLevelTerm,
        ModelDescription,
        PredictorDescription,
        ResponseDescription,
    )


def _rename(
    names: Sequence[str],
    prefix: str,
    new_names: Sequence[str],
    disambiguator: Optional[str] = None,
    sort: Optional[Sequence[custom_types.Integer]] = None,
) -> RenameOperation:
    """Rename all columns of a class."""
    return RenameOperation(
        matcher.match(names, prefix, disambiguator), new_names, sort=sort
    )


def _rename_regex(
    names: Sequence[str], pattern: str, new_names: Sequence[str]
) -> RenameOperation:
    """Rename all columns matching an anchored regular expression."""
    return RenameOperation(matcher.match_regex(names, pattern), new_names)


def _sequential(new_class: str, n: int) -> list[str]:
    """``<new_class>[1]`` through ``<new_class>[n]``."""
    return [f"{new_class}[{ind}]" for ind in range(1, n + 1)]


def _level_labels(
    levels: Mapping[str, Sequence[custom_types.Label]], group: str
) -> list[str]:
    """Sanitized level labels of a grouping variable.

    :raises DuplicateNameError: If distinct levels sanitize to the same label
    """
    labels = utils.sanitize_labels(levels[group])
    if len(set(labels)) != len(labels):
        collisions = sorted(
            {
                str(level)
                for level, label in zip(levels[group], labels)
                if labels.count(label) > 1
            }
        )
        raise DuplicateNameError(
            f"Levels of grouping variable '{group}' collide after replacing "
            f"whitespace: {', '.join(collisions)}"
        )
    return labels


def rename_fixed_effects(
    predictor: PredictorDescription,
    term: terms.FixedEffects,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename population-level coefficients ``b{p}`` to ``b{p}_<coef>``.

    The shrinkage scales ``sdb{p}`` of a special prior are renamed the same way.
    """
    p = utils.usc(predictor.prefix)
    plan = [_rename(names, f"b{p}", [f"b{p}_{coef}" for coef in term.coefs], "_")]
    plan.extend(rename_prior(f"b{p}", names, labels=term.coefs))
    if predictor.special_prior:
        plan.append(
            _rename(names, f"sdb{p}", [f"sdb{p}_{coef}" for coef in term.coefs], "_")
        )
    return plan


def rename_special_effects(
    predictor: PredictorDescription,
    term: terms.SpecialEffects,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename special-effect coefficients and the simplexes of monotonic effects.

    ``bsp{p}`` becomes ``bsp{p}_<coef>`` and the ``i``-th simplex ``simo{p}_<i>``
    becomes ``simo{p}_<label>[1..n]``.
    """
    p = utils.usc(predictor.prefix)
    plan = [
        _rename(names, f"bsp{p}", [f"bsp{p}_{coef}" for coef in term.coefs], "_")
    ]
    plan.extend(rename_prior(f"bsp{p}", names, labels=term.coefs))

    for simoind, label in enumerate(term.simplex_labels, start=1):
        simo_old = f"simo{p}_{simoind}"
        simo_new = f"simo{p}_{label}"
        plan.append(
            _rename(
                names,
                simo_old,
                _sequential(simo_new, matcher.count(names, simo_old)),
            )
        )
        plan.extend(rename_prior(simo_old, names, new_class=simo_new, vector=True))

    if predictor.special_prior:
        plan.append(
            _rename(
                names, f"sdbsp{p}", [f"sdbsp{p}_{coef}" for coef in term.coefs], "_"
            )
        )
    return plan


def rename_category_specific(
    predictor: PredictorDescription,
    term: terms.CategorySpecificEffects,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename category-specific coefficients ``bcs{p}`` to
    ``bcs{p}_<coef>[<threshold>]``.

    Stan stores these as a coefficient-by-threshold matrix in column-major order.
    The new names are coefficient-major, so the values are permuted accordingly.
    """
    p = utils.usc(predictor.prefix)

    # Without an explicit count, there is one threshold per intercept column
    if (n_thres := term.n_thresholds) is None:
        n_thres = int(
            matcher.match_regex(
                names, rf"^{re.escape(f'b{p}_Intercept')}\["
            ).sum()
        )
    if n_thres == 0:
        return []

    ncs = len(term.coefs)
    new_names = [
        f"bcs{p}_{coef}[{thres}]"
        for coef in term.coefs
        for thres in range(1, n_thres + 1)
    ]
    sort = [
        ind for coefind in range(ncs) for ind in range(coefind, n_thres * ncs, ncs)
    ]
    plan = [_rename(names, f"bcs{p}", new_names, "_", sort=sort)]
    plan.extend(rename_prior(f"bcs{p}", names, labels=term.coefs))
    return plan


def rename_smooths(
    predictor: PredictorDescription,
    term: terms.SmoothTerms,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename the coefficients, standard deviations, and penalized bases of
    smooth terms.
    """
    p = utils.usc(predictor.prefix)
    plan = []

    # Unpenalized basis coefficients
    if term.basis_names:
        plan.append(
            _rename(
                names, f"bs{p}", [f"bs{p}_{basis}" for basis in term.basis_names], "_"
            )
        )
        plan.extend(rename_prior(f"bs{p}", names, labels=term.basis_names))
    if predictor.special_prior:
        plan.append(
            _rename(
                names,
                f"sdbs{p}",
                [f"sdbs{p}_{basis}" for basis in term.basis_names],
                "_",
            )
        )

    # Standard deviations and penalized bases of each smooth
    for smind, (label, nbases) in enumerate(zip(term.labels, term.nbases), start=1):
        sds_new = f"sds{p}_{label}"
        plan.append(
            _rename(
                names,
                f"sds{p}_{smind}",
                [f"{sds_new}_{basis}" for basis in range(1, nbases + 1)],
            )
        )
        plan.extend(rename_prior(f"sds{p}_{smind}", names, new_class=sds_new))
        for basis in range(1, nbases + 1):
            s_old = f"s{p}_{smind}_{basis}"
            plan.append(
                _rename(
                    names,
                    s_old,
                    _sequential(
                        f"s{p}_{label}_{basis}", matcher.count(names, s_old)
                    ),
                )
            )

    return plan


def rename_gaussian_processes(
    predictor: PredictorDescription,
    term: terms.GaussianProcessTerms,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename the hyperparameters and latent weights of Gaussian processes."""
    p = utils.usc(predictor.prefix)
    sdgp, lscale, zgp = f"sdgp{p}", f"lscale{p}", f"zgp{p}"
    plan = []

    for gpind, process in enumerate(term.processes, start=1):
        # Marginal standard deviations and length-scales
        for cls, labels in (
            (sdgp, process.sdgp_labels),
            (lscale, process.lscale_labels),
        ):
            plan.append(
                _rename(names, f"{cls}_{gpind}", [f"{cls}_{lab}" for lab in labels])
            )
            plan.extend(
                rename_prior(f"{cls}_{gpind}", names, labels=labels, new_class=cls)
            )

        # Latent weights are nested by level of a categorical 'by' variable
        if process.has_by_levels:
            latent = [
                (f"{zgp}_{gpind}_{levelind}", label)
                for levelind, label in enumerate(process.sdgp_labels, start=1)
            ]
        else:
            latent = [(f"{zgp}_{gpind}", process.sdgp_labels[0])]
        for zgp_old, label in latent:
            if n_latent := matcher.count(names, zgp_old):
                plan.append(
                    _rename(names, zgp_old, _sequential(f"{zgp}_{label}", n_latent))
                )

    return plan


def rename_autocorrelation(
    predictor: PredictorDescription,
    term: terms.AutocorrelationTerms,
    names: Sequence[str],
) -> list[RenameOperation]:
    """Rename unstructured residual correlations ``cortime`` after the
    correlated time points.
    """
    if not term.has_class("unstr"):
        return []
    corname = f"cortime{utils.usc(predictor.resp)}"
    return [
        _rename_regex(
            names,
            rf"^{re.escape(corname)}\[",
            utils.get_cornames(term.times, corname),
        )
    ]


TERM_RENAMERS: dict[str, Callable[..., list[RenameOperation]]] = {
    terms.FixedEffects.KIND: rename_fixed_effects,
    terms.SpecialEffects.KIND: rename_special_effects,
    terms.CategorySpecificEffects.KIND: rename_category_specific,
    terms.SmoothTerms.KIND: rename_smooths,
    terms.GaussianProcessTerms.KIND: rename_gaussian_processes,
    terms.AutocorrelationTerms.KIND: rename_autocorrelation,
}
"""Rename functions by term group kind, in traversal order."""


def rename_predictor(
    predictor: PredictorDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename all term groups of a predictor node.

    :param predictor: The predictor node
    :type predictor: PredictorDescription
    :param names: Flat name table
    :type names: Sequence[str]

    :returns: The rename operations of the node, in traversal order
    :rtype: list[RenameOperation]
    """
    plan = []
    for kind, renamer in TERM_RENAMERS.items():
        if (term := predictor.get_term(kind)) is not None:
            plan.extend(renamer(predictor, term, names))
    return plan


def _group_rnames(rows: Sequence[GroupLevelTerm]) -> list[list[str]]:
    """Labels of the coefficients of one group-level id, one list per level of
    the ``by`` variable (or a single list without one).
    """
    rnames = [row.rname for row in rows]
    if not (rows[0].by and rows[0].bylevels):
        return [rnames]
    return [[f"{rname}:{level}" for rname in rnames] for level in rows[0].bylevels]


def rename_group_level(
    description: ModelDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename group-level standard deviations, correlations, per-level draws, and
    degrees of freedom.

    For every id, ``sd_<id>`` becomes ``sd_<group>__<coef>`` and, when more than
    one correlated coefficient is present, ``cor_<id>`` becomes
    ``cor_<group>__<coef1>__<coef2>``. Each row's draws ``r_<id>{p}_<cn>`` become
    ``r_<group>{_p}[<level>,<coef>]``. Student-t groups additionally have their
    ``df_<ggn>`` renamed to ``df_<group>``.

    :param description: The model description
    :type description: ModelDescription
    :param names: Flat name table
    :type names: Sequence[str]

    :returns: The rename operations
    :rtype: list[RenameOperation]
    """
    plan = []
    if not description.group_terms:
        return plan

    # Group the rows by id
    by_id: dict[int, list[GroupLevelTerm]] = {}
    for row in description.group_terms:
        by_id.setdefault(row.id, []).append(row)

    for group_id, rows in by_id.items():
        group = rows[0].group
        rnames = _group_rnames(rows)
        flat_rnames = [rname for level in rnames for rname in level]

        # Standard deviations
        plan.append(
            _rename(
                names,
                f"sd_{group_id}",
                [f"sd_{group}__{rname}" for rname in flat_rnames],
            )
        )
        plan.extend(
            rename_prior(
                f"sd_{group_id}",
                names,
                labels=[f"_{rname}" for rname in flat_rnames],
                new_class=f"sd_{group}",
            )
        )

        # Correlations
        if len(rows) > 1 and rows[0].cor:
            cor_names = [
                corname
                for level in rnames
                for corname in utils.get_cornames(level, f"cor_{group}")
            ]
            plan.append(_rename(names, f"cor_{group_id}", cor_names, "_"))
            plan.extend(
                rename_prior(f"cor_{group_id}", names, new_class=f"cor_{group}")
            )

    # Per-level draws are only present when they were saved
    if any(name.startswith("r_") for name in names):
        for row in description.group_terms:
            p = utils.usc(row.prefix)
            levels = _level_labels(description.group_levels, row.group)
            plan.append(
                _rename(
                    names,
                    f"r_{row.id}{p}_{row.cn}",
                    [
                        f"r_{row.group}{utils.usc(p)}{index}"
                        for index in utils.make_index_names(levels, [row.coef])
                    ],
                )
            )

    # Degrees of freedom of Student-t distributed effects
    student = dict.fromkeys(
        (row.ggn, row.group)
        for row in description.group_terms
        if row.dist == "student"
    )
    for ggn, group in student:
        plan.append(_rename_regex(names, rf"^df_{ggn}$", [f"df_{group}"]))

    return plan


def rename_thresholds(
    response: ResponseDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename grouped ordinal thresholds ``b{p}_Intercept_<i>[<k>]`` to
    ``b{p}_Intercept[<group>,<threshold>]``.

    Only required when thresholds were estimated per group.
    """
    if not response.has_thres_groups:
        return []
    intercept = re.escape(f"b{utils.usc(response.prefix)}_Intercept")
    new_class = f"b{utils.usc(response.prefix)}_Intercept"
    return [
        _rename_regex(
            names,
            rf"^{intercept}_{groupind}\[",
            [f"{new_class}[{group},{thres}]" for thres in thresholds],
        )
        for groupind, (group, thresholds) in enumerate(
            response.thresholds.items(), start=1
        )
    ]


def rename_hazard(
    response: ResponseDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename grouped baseline hazard coefficients ``sbhaz{p}[<k>,<j>]`` to
    ``sbhaz{p}[<group>,<j>]``.

    Only required when baseline hazards were estimated per group.
    """
    if not response.has_bhaz_groups:
        return []
    sbhaz = f"sbhaz{utils.usc(response.prefix)}"
    plan = []
    for groupind, group in enumerate(response.hazard_groups, start=1):
        mask = matcher.match_regex(names, rf"^{re.escape(sbhaz)}\[{groupind},")
        plan.append(
            RenameOperation(
                mask,
                [f"{sbhaz}[{group},{ind}]" for ind in range(1, int(mask.sum()) + 1)],
            )
        )
    return plan


def rename_measurement_error(
    description: ModelDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename the hyperparameters, latent values, and correlations of
    noise-free variables, one grouping at a time.

    :param description: The model description
    :type description: ModelDescription
    :param names: Flat name table
    :type names: Sequence[str]

    :returns: The rename operations
    :rtype: list[RenameOperation]
    """
    plan = []
    rows = description.me_terms
    has_latent = any(name.startswith("Xme_") for name in names)
    groups = list(dict.fromkeys(row.grname for row in rows))

    for groupind, group in enumerate(groups, start=1):
        members = [rowind for rowind, row in enumerate(rows) if row.grname == group]
        coefs = [rows[rowind].coef for rowind in members]

        # Means and standard deviations
        for par in ("meanme", "sdme"):
            hpar = f"{par}_{groupind}"
            plan.append(_rename(names, hpar, [f"{par}_{coef}" for coef in coefs]))
            plan.extend(rename_prior(hpar, names, labels=coefs, new_class=par))

        # Latent values. These are numbered across all groupings.
        if has_latent:
            for rowind in members:
                xme_old = f"Xme_{rowind + 1}"
                xme_new = f"Xme_{rows[rowind].coef}"
                if group:
                    new_names = [
                        f"{xme_new}[{level}]"
                        for level in _level_labels(description.me_levels, group)
                    ]
                else:
                    new_names = _sequential(xme_new, matcher.count(names, xme_old))
                plan.append(_rename(names, xme_old, new_names))

        # Correlations
        if rows[members[0]].cor and len(members) > 1:
            cor_type = f"corme{utils.usc(group)}"
            plan.append(
                _rename(
                    names, f"corme_{groupind}", utils.get_cornames(coefs, cor_type)
                )
            )
            plan.extend(rename_prior(f"corme_{groupind}", names, new_class=cor_type))

    return plan


def rename_missing(
    response: ResponseDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Index estimated missing responses ``Ymi{p}`` by their observation."""
    if not response.missing_indices:
        return []
    ymi = f"Ymi{utils.usc(response.prefix)}"
    mask = matcher.match_regex(names, rf"^{re.escape(ymi)}\[")
    if not mask.any():
        return []
    return [RenameOperation(mask, [f"{ymi}[{ind}]" for ind in response.missing_indices])]


def rename_family_correlations(
    response: ResponseDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename the category correlations ``lncor`` of logistic-normal families."""
    if not response.family_categories:
        return []
    return [
        _rename_regex(
            names, r"^lncor\[", utils.get_cornames(response.family_categories, "lncor")
        )
    ]


def rename_residual_correlations(
    description: ModelDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Rename the residual correlations ``rescor`` of multivariate models."""
    if not description.rescor:
        return []
    return [
        _rename_regex(
            names,
            r"^rescor\[",
            utils.get_cornames(description.response_names, "rescor"),
        )
    ]


def build_plan(
    description: ModelDescription, names: Sequence[str]
) -> list[RenameOperation]:
    """Build the full, ordered rename plan for a flat name table.

    :param description: The model description
    :type description: ModelDescription
    :param names: Flat name table of the raw sample store
    :type names: Sequence[str]

    :returns: The rename operations in application order
    :rtype: list[RenameOperation]

    Example:
        >>> description = ModelDescription(
        ...     responses=[
        ...         ResponseDescription(
        ...             predictors=[
        ...                 PredictorDescription(terms=[FixedEffects(["Intercept", "x1"])])
        ...             ]
        ...         )
        ...     ]
        ... )
        >>> build_plan(description, ["b_1[1]", "b_1[2]", "lp__"])
        [RenameOperation(positions=[0, 1], names=['b_Intercept', 'b_x1'])]
    """
    names = list(names)
    plan = []

    # Additive predictor terms
    for response in description.responses:
        for predictor in response.predictors:
            plan.extend(rename_predictor(predictor, names))

    # Group-level effects span responses
    plan.extend(rename_group_level(description, names))

    # Response-level structures
    for response in description.responses:
        plan.extend(rename_thresholds(response, names))
        plan.extend(rename_hazard(response, names))

    plan.extend(rename_measurement_error(description, names))

    for response in description.responses:
        plan.extend(rename_missing(response, names))
        plan.extend(rename_family_correlations(response, names))

    plan.extend(rename_residual_correlations(description, names))

    return plan
