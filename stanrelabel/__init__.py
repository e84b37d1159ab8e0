# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
StanRelabel: Human-readable parameter names for Stan draws of formula-based models.

Stan only knows the positional, auto-generated names of the program it runs
(``b[1]``, ``sd_1[2]``, ``r_1_2[17]``). When that program was generated from a
regression formula, StanRelabel reconstructs the meaning of every draw column from
a structural description of the model, restores a canonical presentation order,
and computes derived quantities that Stan never writes out.

Key Features:
    - Rename plans covering fixed, special, category-specific, smooth, Gaussian
      process, group-level, threshold, hazard, measurement-error, and correlation
      parameters, including their prior draws
    - Canonical reordering of all columns
    - Derived quantities such as the bounded shape ``xi``
    - Loading from CmdStan output and export to ArviZ
    - Type-safe construction with runtime type checking

Global Variables:
    __version__: Package version string

Example:
    >>> import stanrelabel as srl
    >>> store = srl.load_cmdstan_csv("output/")
    >>> description = srl.ModelDescription(
    ...     responses=[
    ...         srl.ResponseDescription(
    ...             predictors=[
    ...                 srl.PredictorDescription(
    ...                     terms=[srl.FixedEffects(["Intercept", "x1"])]
    ...                 )
    ...             ]
    ...         )
    ...     ]
    ... )
    >>> relabeled = srl.rename_pars(store, description)
"""

from typeguard import install_import_hook

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("stanrelabel")

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from stanrelabel import utils
from stanrelabel.description import (
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
from stanrelabel.derived import compute_quantities, PreparedResponse
from stanrelabel.pipeline import relabel_cmdstan, rename_pars
from stanrelabel.renaming import apply_plan, build_plan, RenameOperation
from stanrelabel.reorder import reorder_pars
from stanrelabel.store import load_cmdstan_csv, SampleStore

# Lazy imports for performance
priorsense = utils.lazy_import("stanrelabel.priorsense")
