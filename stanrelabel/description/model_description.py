# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Structural description of a compiled regression model.

The model description is produced upstream, when the model formula is compiled
into a Stan program, and is consumed read-only by the rename plan builder. It is a
tree keyed by response and by distributional or non-linear parameter:

    - :py:class:`ModelDescription` holds the responses together with the
      structures that span responses (group-level terms, latent measurement-error
      variables, residual correlations).
    - :py:class:`ResponseDescription` holds the predictor nodes of one response and
      its response-level structures (thresholds, hazard baselines, missing values,
      logistic-normal categories).
    - :py:class:`PredictorDescription` holds the term groups of one distributional
      or non-linear parameter.
    - :py:class:`GroupLevelTerm` and :py:class:`MeasurementErrorTerm` are the rows
      of the group-level and measurement-error frames.

Every label referenced here, combined with the naming prefix of its class, is
expected to match a flat name present in the sample store. Labels that do not
match result in no-op renames, never in errors.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, TYPE_CHECKING

from stanrelabel import utils

if TYPE_CHECKING:
    from stanrelabel import custom_types


class _Described:
    """Mixin giving descriptions a readable representation and value equality."""

    def __repr__(self) -> str:
        fields = ", ".join(f"{key}={value!r}" for key, value in vars(self).items())
        return f"{type(self).__name__}({fields})"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)


class PredictorDescription(_Described):
    """Term groups of one distributional or non-linear parameter.

    :param dpar: Distributional parameter. Defaults to "mu".
    :type dpar: str
    :param nlpar: Non-linear parameter. Defaults to "".
    :type nlpar: str
    :param resp: Response the predictor belongs to. Defaults to "".
    :type resp: str
    :param terms: Term groups of the predictor. Defaults to an empty sequence.
    :type terms: Sequence[custom_types.TermGroup]
    :param special_prior: Whether a special shrinkage prior (e.g. horseshoe or
        R2D2) was placed on the coefficients, giving rise to ``sdb*`` classes.
        Defaults to False.
    :type special_prior: bool

    :raises ValueError: If two term groups share the same kind
    """

    def __init__(
        self,
        dpar: str = "mu",
        nlpar: str = "",
        resp: str = "",
        terms: Sequence[custom_types.TermGroup] = (),
        special_prior: bool = False,
    ):
        self.dpar = dpar
        self.nlpar = nlpar
        self.resp = resp
        self.terms = list(terms)
        self.special_prior = special_prior

        # Each kind of term group can appear at most once
        kinds = [term.KIND for term in self.terms]
        if len(set(kinds)) != len(kinds):
            raise ValueError(
                f"Duplicate term group kinds in predictor '{self.prefix}': {kinds}"
            )

    @property
    def prefix(self) -> str:
        """The naming prefix of the predictor, without leading underscore."""
        return utils.combine_prefix(dpar=self.dpar, nlpar=self.nlpar, resp=self.resp)

    def get_term(self, kind: str) -> Optional[custom_types.TermGroup]:
        """Get the term group of a given kind.

        :param kind: The ``KIND`` tag of the term group
        :type kind: str

        :returns: The term group or None if the predictor has no such terms
        :rtype: Optional[custom_types.TermGroup]
        """
        for term in self.terms:
            if term.KIND == kind:
                return term
        return None


class ResponseDescription(_Described):
    """Predictor nodes and response-level structures of one response.

    :param resp: Response label. Empty for univariate models. Defaults to "".
    :type resp: str
    :param predictors: Predictor nodes, one per distributional or non-linear
        parameter. Defaults to an empty sequence.
    :type predictors: Sequence[PredictorDescription]
    :param dpars: Distributional parameters of the response family. Defaults to
        ``("mu",)``.
    :type dpars: Sequence[str]
    :param thresholds: Threshold labels per threshold group of ordinal models. The
        key of an ungrouped model is "". Defaults to None.
    :type thresholds: Optional[Mapping[str, Sequence[custom_types.Label]]]
    :param hazard_groups: Groups of the baseline hazard of Cox models. Defaults
        to None.
    :type hazard_groups: Optional[Sequence[str]]
    :param missing_indices: Observation indices of missing response values that
        were estimated. Defaults to None.
    :type missing_indices: Optional[Sequence[custom_types.Integer]]
    :param family_categories: Predicted categories of a logistic-normal family.
        Defaults to None.
    :type family_categories: Optional[Sequence[str]]
    """

    def __init__(
        self,
        resp: str = "",
        predictors: Sequence[PredictorDescription] = (),
        dpars: Sequence[str] = ("mu",),
        thresholds: Optional[Mapping[str, Sequence[custom_types.Label]]] = None,
        hazard_groups: Optional[Sequence[str]] = None,
        missing_indices: Optional[Sequence[custom_types.Integer]] = None,
        family_categories: Optional[Sequence[str]] = None,
    ):
        self.resp = resp
        self.predictors = list(predictors)
        self.dpars = list(dpars)
        self.thresholds = (
            {} if thresholds is None else {k: list(v) for k, v in thresholds.items()}
        )
        self.hazard_groups = [] if hazard_groups is None else list(hazard_groups)
        self.missing_indices = (
            [] if missing_indices is None else [int(ind) for ind in missing_indices]
        )
        self.family_categories = (
            [] if family_categories is None else list(family_categories)
        )

        # All predictors must belong to this response
        if mismatched := [p.resp for p in self.predictors if p.resp != resp]:
            raise ValueError(
                f"Predictors of response '{resp}' are labeled with responses "
                f"{mismatched}."
            )

    @property
    def prefix(self) -> str:
        """The naming prefix of response-level parameters, without leading
        underscore.
        """
        return utils.combine_prefix(resp=self.resp)

    @property
    def has_thres_groups(self) -> bool:
        """Whether thresholds were estimated per group."""
        return any(self.thresholds)

    @property
    def has_bhaz_groups(self) -> bool:
        """Whether baseline hazards were estimated per group."""
        return any(self.hazard_groups)


class GroupLevelTerm(_Described):
    """One row of the group-level frame: a single coefficient varying over the
    levels of a grouping variable.

    :param id: Identifier shared by all coefficients modeled jointly (the ``<id>``
        in ``sd_<id>``, ``cor_<id>``, and ``r_<id>_<cn>``).
    :type id: custom_types.Integer
    :param group: Name of the grouping variable, e.g. ``"site"``.
    :type group: str
    :param coef: Coefficient label, e.g. ``"Intercept"``.
    :type coef: str
    :param cn: Position of the coefficient within its id, starting at 1.
    :type cn: custom_types.Integer
    :param dpar: Distributional parameter of the coefficient. Defaults to "mu".
    :type dpar: str
    :param nlpar: Non-linear parameter of the coefficient. Defaults to "".
    :type nlpar: str
    :param resp: Response of the coefficient. Defaults to "".
    :type resp: str
    :param cor: Whether correlations between the coefficients of this id were
        estimated. Defaults to True.
    :type cor: bool
    :param by: Name of a variable whose levels receive separate standard
        deviations and correlations. Defaults to "".
    :type by: str
    :param bylevels: Levels of the ``by`` variable. Each label is used verbatim
        in ``<coef>:<label>``, without the name of the ``by`` variable, so pass
        labels that already carry it (e.g. ``"za"``) where it should appear.
        Defaults to an empty sequence.
    :type bylevels: Sequence[str]
    :param dist: Distribution of the group-level effects, "gaussian" or
        "student". Defaults to "gaussian".
    :type dist: str
    :param ggn: Global number of the grouping factor, used to name the degrees of
        freedom of Student-t group-level effects. Defaults to ``id``.
    :type ggn: Optional[custom_types.Integer]
    """

    def __init__(
        self,
        id: custom_types.Integer,  # pylint: disable=redefined-builtin
        group: str,
        coef: str,
        cn: custom_types.Integer = 1,
        dpar: str = "mu",
        nlpar: str = "",
        resp: str = "",
        cor: bool = True,
        by: str = "",
        bylevels: Sequence[str] = (),
        dist: str = "gaussian",
        ggn: Optional[custom_types.Integer] = None,
    ):
        self.id = int(id)
        self.group = group
        self.coef = coef
        self.cn = int(cn)
        self.dpar = dpar
        self.nlpar = nlpar
        self.resp = resp
        self.cor = cor
        self.by = by
        self.bylevels = list(bylevels)
        self.dist = dist
        self.ggn = self.id if ggn is None else int(ggn)

    @property
    def prefix(self) -> str:
        """The naming prefix of the coefficient, without leading underscore."""
        return utils.combine_prefix(dpar=self.dpar, nlpar=self.nlpar, resp=self.resp)

    @property
    def rname(self) -> str:
        """The coefficient label qualified by its predictor prefix."""
        return utils.usc(self.prefix, "suffix") + self.coef


class MeasurementErrorTerm(_Described):
    """One row of the measurement-error frame: a latent, noise-free variable.

    :param coef: Label of the latent variable, e.g. ``"mex"`` for ``me(x, sdx)``.
    :type coef: str
    :param grname: Grouping variable over whose levels the latent values are
        defined. Empty if the latent values are defined per observation.
        Defaults to "".
    :type grname: str
    :param cor: Whether correlations between the latent variables of the same
        grouping were estimated. Defaults to False.
    :type cor: bool
    """

    def __init__(self, coef: str, grname: str = "", cor: bool = False):
        self.coef = coef
        self.grname = grname
        self.cor = cor


class ModelDescription(_Described):
    """Structural description of a compiled model.

    :param responses: One description per response. Defaults to a single,
        unnamed response without terms.
    :type responses: Optional[Sequence[ResponseDescription]]
    :param group_terms: Rows of the group-level frame. Defaults to an empty
        sequence.
    :type group_terms: Sequence[GroupLevelTerm]
    :param group_levels: Level labels of each grouping variable. Defaults to None.
    :type group_levels: Optional[Mapping[str, Sequence[custom_types.Label]]]
    :param me_terms: Rows of the measurement-error frame. Defaults to an empty
        sequence.
    :type me_terms: Sequence[MeasurementErrorTerm]
    :param me_levels: Level labels of the grouping variables of measurement-error
        terms. Defaults to None.
    :type me_levels: Optional[Mapping[str, Sequence[custom_types.Label]]]
    :param rescor: Whether residual correlations between the responses of a
        multivariate model were estimated. Defaults to False.
    :type rescor: bool

    Example:
        >>> description = ModelDescription(
        ...     responses=[
        ...         ResponseDescription(
        ...             predictors=[
        ...                 PredictorDescription(
        ...                     terms=[FixedEffects(["Intercept", "x1"])]
        ...                 )
        ...             ]
        ...         )
        ...     ],
        ...     group_terms=[GroupLevelTerm(id=1, group="site", coef="Intercept")],
        ...     group_levels={"site": ["A", "B", "C"]},
        ... )
    """

    def __init__(
        self,
        responses: Optional[Sequence[ResponseDescription]] = None,
        group_terms: Sequence[GroupLevelTerm] = (),
        group_levels: Optional[Mapping[str, Sequence[custom_types.Label]]] = None,
        me_terms: Sequence[MeasurementErrorTerm] = (),
        me_levels: Optional[Mapping[str, Sequence[custom_types.Label]]] = None,
        rescor: bool = False,
    ):
        self.responses = (
            [ResponseDescription()] if responses is None else list(responses)
        )
        self.group_terms = list(group_terms)
        self.group_levels = {
            k: list(v) for k, v in (group_levels or {}).items()
        }
        self.me_terms = list(me_terms)
        self.me_levels = {k: list(v) for k, v in (me_levels or {}).items()}
        self.rescor = rescor

        # Every grouping variable needs its levels
        if missing := {term.group for term in self.group_terms} - set(
            self.group_levels
        ):
            raise ValueError(
                f"Missing levels for grouping variables: {', '.join(sorted(missing))}"
            )
        if missing := {
            term.grname for term in self.me_terms if term.grname
        } - set(self.me_levels):
            raise ValueError(
                "Missing levels for measurement-error grouping variables: "
                f"{', '.join(sorted(missing))}"
            )

    @property
    def response_names(self) -> list[str]:
        """Labels of all responses."""
        return [response.resp for response in self.responses]

    @property
    def dpars(self) -> list[str]:
        """Distributional parameters of all responses, without duplicates."""
        return list(
            dict.fromkeys(dpar for response in self.responses for dpar in response.dpars)
        )
