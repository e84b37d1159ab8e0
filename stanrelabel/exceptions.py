# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Custom exception and warning classes for the StanRelabel package.

This module defines a hierarchy of custom exceptions used throughout the
StanRelabel package to provide clear error reporting. All custom exceptions
inherit from the base StanRelabelError class and all custom warnings inherit
from StanRelabelWarning, so that both can be handled (or filtered) as a unit.
"""


class StanRelabelError(Exception):
    """Base class for all exceptions in the StanRelabel package.

    :param message: Error message describing the exception
    :type message: str

    Example:
        >>> try:
        ...     store = rename_pars(store, description)
        ... except StanRelabelError as e:
        ...     print(f"StanRelabel error occurred: {e}")
    """


class SampleStoreError(StanRelabelError):
    """Raised when a sample store is internally inconsistent.

    Every chain of a sample store must hold the same number of columns as the
    name table and the same number of draws per column. This exception is raised
    whenever that invariant would be violated.
    """


class DuplicateNameError(SampleStoreError):
    """Raised when renaming would leave the name table with duplicate entries."""


class RenameMismatchError(StanRelabelError):
    """Raised in strict mode when a rename operation selects a different number
    of columns than it provides replacement names for.
    """


class StanRelabelWarning(UserWarning):
    """Base class for all warnings issued by the StanRelabel package."""


class RenameMismatchWarning(StanRelabelWarning):
    """Issued when a rename operation is only partially applied.

    A rename operation whose replacement count differs from its match count
    renames only the first ``min(len(names), count(mask))`` matched columns. The
    remaining columns keep their flat names.
    """


class DerivedQuantityWarning(StanRelabelWarning):
    """Issued when a derived quantity could not be computed and was skipped."""
