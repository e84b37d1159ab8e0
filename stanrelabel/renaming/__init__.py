# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Renaming of flat Stan parameter names.

This submodule turns the positional names emitted by Stan into human-readable
names in three steps: the :py:mod:`~stanrelabel.renaming.matcher` selects the
columns of a parameter class, the :py:mod:`~stanrelabel.renaming.plan` builder
walks a model description to produce an ordered list of
:py:class:`~stanrelabel.renaming.operations.RenameOperation` objects, and the
:py:mod:`~stanrelabel.renaming.executor` applies them to a sample store.
"""

from stanrelabel.renaming.executor import apply_plan, resolve_plan
from stanrelabel.renaming.matcher import match, match_regex
from stanrelabel.renaming.operations import RenameOperation
from stanrelabel.renaming.plan import build_plan
from stanrelabel.renaming.prior import rename_prior
