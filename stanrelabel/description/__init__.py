# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Structural model descriptions consumed by the rename plan builder.

This submodule defines the read-only input describing how a model formula was
compiled into a Stan program: which responses, distributional parameters, and
term groups exist, and which labels (coefficients, group levels, smooth and
Gaussian process labels, thresholds) belong to them.
"""

from stanrelabel.description.model_description import (
    GroupLevelTerm,
    MeasurementErrorTerm,
    ModelDescription,
    PredictorDescription,
    ResponseDescription,
)
from stanrelabel.description.terms import (
    AutocorrelationTerms,
    CategorySpecificEffects,
    FixedEffects,
    GaussianProcess,
    GaussianProcessTerms,
    SmoothTerms,
    SpecialEffects,
    TermGroup,
)
