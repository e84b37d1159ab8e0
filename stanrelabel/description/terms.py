# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Term groups attached to the predictor nodes of a model description.

Each class in this module describes one kind of additive predictor term as it was
compiled into the Stan program, carrying exactly the labels required to turn the
positional flat names emitted by Stan back into meaningful names. Term groups form
a tagged union: every concrete class sets a distinct ``KIND`` tag, and the rename
plan builder dispatches on it.

The kinds are:

    - ``fe``: population-level ("fixed") effects
    - ``sp``: special effects, including monotonic effects and their simplexes
    - ``cs``: category-specific effects of ordinal models
    - ``sm``: smooth terms (splines)
    - ``gp``: Gaussian processes
    - ``ac``: autocorrelation structures
"""

from __future__ import annotations

from abc import ABC
from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from stanrelabel import custom_types


class TermGroup(ABC):
    """Base class for all term groups.

    :cvar KIND: Tag identifying the kind of term group
    """

    KIND: str = ""
    """Tag identifying the kind of term group."""

    def __repr__(self) -> str:
        fields = ", ".join(f"{key}={value!r}" for key, value in vars(self).items())
        return f"{type(self).__name__}({fields})"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)


class FixedEffects(TermGroup):
    """Population-level coefficients of a predictor.

    :param coefs: Coefficient labels in the order of the Stan coefficient vector
    :type coefs: Sequence[str]

    Example:
        >>> FixedEffects(["Intercept", "x1"])
    """

    KIND = "fe"

    def __init__(self, coefs: Sequence[str]):
        self.coefs = list(coefs)


class SpecialEffects(TermGroup):
    """Special-effect coefficients of a predictor.

    :param coefs: Coefficient labels in the order of the Stan coefficient vector
    :type coefs: Sequence[str]
    :param simplex_labels: Labels of the simplex parameters of monotonic effects,
        one per monotonic component, in the order Stan numbers them. Defaults to
        an empty sequence.
    :type simplex_labels: Sequence[str]

    Example:
        >>> SpecialEffects(["moincome"], simplex_labels=["moincome1"])
    """

    KIND = "sp"

    def __init__(self, coefs: Sequence[str], simplex_labels: Sequence[str] = ()):
        self.coefs = list(coefs)
        self.simplex_labels = list(simplex_labels)


class CategorySpecificEffects(TermGroup):
    """Category-specific coefficients of an ordinal predictor.

    Stan stores these as a coefficient-by-threshold matrix, so each coefficient
    is estimated once per threshold.

    :param coefs: Coefficient labels
    :type coefs: Sequence[str]
    :param n_thresholds: Number of thresholds. If None, the number is derived from
        the intercept columns present in the sample store. Defaults to None.
    :type n_thresholds: Optional[custom_types.Integer]
    """

    KIND = "cs"

    def __init__(
        self,
        coefs: Sequence[str],
        n_thresholds: Optional[custom_types.Integer] = None,
    ):
        self.coefs = list(coefs)
        self.n_thresholds = None if n_thresholds is None else int(n_thresholds)


class SmoothTerms(TermGroup):
    """Smooth terms of a predictor.

    :param labels: Label of each smooth term, e.g. ``"sx"`` for ``s(x)``
    :type labels: Sequence[str]
    :param nbases: Number of penalized bases of each smooth term
    :type nbases: Sequence[custom_types.Integer]
    :param basis_names: Labels of the unpenalized (fixed) basis coefficients of all
        smooth terms. Defaults to an empty sequence.
    :type basis_names: Sequence[str]

    :raises ValueError: If ``labels`` and ``nbases`` differ in length
    """

    KIND = "sm"

    def __init__(
        self,
        labels: Sequence[str],
        nbases: Sequence[custom_types.Integer],
        basis_names: Sequence[str] = (),
    ):
        if len(labels) != len(nbases):
            raise ValueError(
                "Each smooth term needs exactly one number of bases. Got "
                f"{len(labels)} labels and {len(nbases)} basis counts."
            )
        self.labels = list(labels)
        self.nbases = [int(nb) for nb in nbases]
        self.basis_names = list(basis_names)


class GaussianProcess:
    """Labels of a single Gaussian process term.

    :param sdgp_labels: Labels of the marginal standard deviations. There is one
        label per level of a categorical ``by`` variable, or a single label.
    :type sdgp_labels: Sequence[str]
    :param lscale_labels: Labels of the length-scales, flattened column-major over
        levels and input dimensions.
    :type lscale_labels: Sequence[str]

    Example:
        >>> GaussianProcess(["gpx"], ["gpx"])
        >>> GaussianProcess(["gpx:zA", "gpx:zB"], ["gpx:zA", "gpx:zB"])
    """

    def __init__(self, sdgp_labels: Sequence[str], lscale_labels: Sequence[str]):
        self.sdgp_labels = list(sdgp_labels)
        self.lscale_labels = list(lscale_labels)

    @property
    def has_by_levels(self) -> bool:
        """Whether the process is estimated separately per level of a ``by``
        variable.
        """
        return len(self.sdgp_labels) > 1

    def __repr__(self) -> str:
        return f"GaussianProcess({self.sdgp_labels!r}, {self.lscale_labels!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GaussianProcess) and vars(self) == vars(other)


class GaussianProcessTerms(TermGroup):
    """All Gaussian process terms of a predictor, in the order Stan numbers them.

    :param processes: The Gaussian process terms
    :type processes: Sequence[GaussianProcess]
    """

    KIND = "gp"

    def __init__(self, processes: Sequence[GaussianProcess]):
        self.processes = list(processes)


class AutocorrelationTerms(TermGroup):
    """Autocorrelation structures of a predictor.

    Only unstructured residual correlation matrices need relabeling. Their labels
    are the distinct time points.

    :param classes: Autocorrelation classes present, e.g. ``("ar", "unstr")``.
        Defaults to an empty sequence.
    :type classes: Sequence[str]
    :param times: Labels of the time points of an unstructured correlation
        matrix. Defaults to an empty sequence.
    :type times: Sequence[custom_types.Label]
    """

    KIND = "ac"

    def __init__(self, classes: Sequence[str] = (), times: Sequence = ()):
        self.classes = list(classes)
        self.times = [str(time) for time in times]

    def has_class(self, acclass: str) -> bool:
        """Check whether a given autocorrelation class is present.

        :param acclass: Autocorrelation class to check
        :type acclass: str

        :returns: Whether the class is present
        :rtype: bool
        """
        return acclass in self.classes
