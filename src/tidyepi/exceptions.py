"""
Exceptions that are used throughout
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

import pandas as pd


class MissingOptionalDependencyError(ImportError):
    """
    Raised when an optional dependency is missing

    For example, plotting dependencies like matplotlib
    """

    def __init__(self, callable_name: str, requirement: str) -> None:
        """
        Initialise the error

        Parameters
        ----------
        callable_name
            The name of the callable that requires the dependency

        requirement
            The name of the requirement
        """
        error_msg = f"`{callable_name}` requires {requirement} to be installed"
        super().__init__(error_msg)


class MalformedDateLabelError(ValueError):
    """
    Raised when a label (or value) cannot be interpreted as a calendar date
    """

    def __init__(self, labels: Collection[Any], expected_format: str) -> None:
        """
        Initialise the error

        Parameters
        ----------
        labels
            The labels that could not be parsed

        expected_format
            Description of the format we expected
        """
        error_msg = (
            f"Could not parse {len(labels)} label(s) as dates. "
            f"Expected format: {expected_format}. "
            f"Unparseable labels: {list(labels)}"
        )
        super().__init__(error_msg)
        self.labels = list(labels)


class JoinKeyCollisionError(ValueError):
    """
    Raised when a join key appears more than once in a single source

    This indicates duplicate rows upstream.
    We never de-duplicate these silently.
    """

    def __init__(self, source_name: str, duplicates: pd.Index) -> None:
        """
        Initialise the error

        Parameters
        ----------
        source_name
            Name of the source in which the duplicates were found

        duplicates
            The keys which appear more than once
        """
        error_msg = (
            f"The keys of {source_name!r} are not unique. "
            f"The following keys appear more than once:\n{duplicates.to_frame(index=False)}"
        )
        super().__init__(error_msg)


class MissingLookupError(ValueError):
    """
    Raised when identities have no match in an auxiliary lookup table
    """

    def __init__(self, lookup_name: str, missing: pd.Index) -> None:
        """
        Initialise the error

        Parameters
        ----------
        lookup_name
            Name of the lookup table

        missing
            The identities that have no match in the lookup table
        """
        error_msg = (
            f"{len(missing)} identities have no match in {lookup_name!r}:\n"
            f"{missing.to_frame(index=False)}"
        )
        super().__init__(error_msg)


class InsufficientDataError(ValueError):
    """
    Raised when there is not enough data to fit a trend
    """

    def __init__(self, n_distinct: int, n_required: int = 2) -> None:
        """
        Initialise the error

        Parameters
        ----------
        n_distinct
            Number of distinct explanatory values that were available

        n_required
            Number of distinct explanatory values required
        """
        error_msg = (
            f"At least {n_required} distinct dates are required to fit a trend, "
            f"received {n_distinct}"
        )
        super().__init__(error_msg)


class DegenerateRangeError(ValueError):
    """
    Raised when a normalisation range has zero width
    """

    def __init__(self, degenerate: pd.DataFrame) -> None:
        """
        Initialise the error

        Parameters
        ----------
        degenerate
            The groups (and their min/max) for which min equals max
        """
        error_msg = f"The normalisation range is zero for:\n{degenerate}"
        super().__init__(error_msg)
