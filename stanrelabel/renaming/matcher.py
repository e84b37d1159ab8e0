# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Boundary-aware matching of parameter classes against flat names.

Stan emits parameters under flat names of the form ``<class>``,
``<class>_<k>``, or ``<class>_<k>[<j>]``. Selecting all columns of a class by a
plain prefix test would confuse classes that share a prefix (``b`` and ``bs``,
``sd_1`` and ``sd_12``). All selections therefore go through :py:func:`match`,
which requires the character following the class to be a boundary: the end of
the name, an opening bracket, or (when a disambiguator is given) the
disambiguator followed by digits and then one of the former two.
"""

from __future__ import annotations

import re

from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt


def build_pattern(prefix: str, disambiguator: Optional[str] = None) -> re.Pattern:
    """Build the anchored regular expression matching a parameter class.

    :param prefix: Class name to match, e.g. ``"b"`` or ``"sd_1"``
    :type prefix: str
    :param disambiguator: Separator preceding a numeric disambiguator, typically
        ``"_"`` (code generator) or ``"__"`` (prior draws). Defaults to None, in
        which case no numeric suffix is allowed.
    :type disambiguator: Optional[str]

    :returns: The compiled pattern
    :rtype: re.Pattern

    Example:
        >>> build_pattern("b", "_").pattern
        '^b(?:_\\d+)?(?:\\[|$)'
    """
    suffix = "" if disambiguator is None else rf"(?:{re.escape(disambiguator)}\d+)?"
    return re.compile(rf"^{re.escape(prefix)}{suffix}(?:\[|$)")


def match_regex(
    names: Sequence[str], pattern: str | re.Pattern
) -> npt.NDArray[np.bool_]:
    """Positional mask of the names matching a regular expression.

    The pattern is applied with :py:func:`re.search`, so it should carry its own
    ``^`` anchor.

    :param names: Flat name table
    :type names: Sequence[str]
    :param pattern: Regular expression
    :type pattern: Union[str, re.Pattern]

    :returns: Boolean mask over ``names``
    :rtype: npt.NDArray[np.bool_]
    """
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    return np.array(
        [compiled.search(name) is not None for name in names], dtype=bool
    )


def match(
    names: Sequence[str], prefix: str, disambiguator: Optional[str] = None
) -> npt.NDArray[np.bool_]:
    """Positional mask of the names belonging to a parameter class.

    :param names: Flat name table
    :type names: Sequence[str]
    :param prefix: Class name to match
    :type prefix: str
    :param disambiguator: Separator preceding an optional numeric disambiguator.
        Defaults to None.
    :type disambiguator: Optional[str]

    :returns: Boolean mask over ``names``
    :rtype: npt.NDArray[np.bool_]

    Example:
        >>> match(["b[1]", "bs[1]", "b_2[1]", "b_x"], "b", "_").tolist()
        [True, False, True, False]
    """
    return match_regex(names, build_pattern(prefix, disambiguator))


def count(
    names: Sequence[str], prefix: str, disambiguator: Optional[str] = None
) -> int:
    """Number of names belonging to a parameter class. See :py:func:`match`."""
    return int(match(names, prefix, disambiguator).sum())
