"""
Useful assertions
"""

from __future__ import annotations

from collections.abc import Collection

import pandas as pd


def assert_index_is_multiindex(pandas_obj: pd.DataFrame | pd.Series) -> None:
    """
    Assert that the index of a pandas object is a [pd.MultiIndex][pandas.MultiIndex]

    Parameters
    ----------
    pandas_obj
        Object to check

    Raises
    ------
    AssertionError
        `pandas_obj`'s index is not a [pd.MultiIndex][pandas.MultiIndex]
    """
    if not isinstance(pandas_obj.index, pd.MultiIndex):
        msg = f"The index is not a `pd.MultiIndex`, instead we have {type(pandas_obj.index)=}"
        raise AssertionError(msg)


def assert_has_index_levels(
    pandas_obj: pd.DataFrame | pd.Series, levels: Collection[str]
) -> None:
    """
    Assert that a pandas object has the given index levels

    Parameters
    ----------
    pandas_obj
        Object to check

    levels
        Levels that must be in the index

    Raises
    ------
    AssertionError
        `pandas_obj` is missing one or more of `levels`
    """
    missing_levels = [v for v in levels if v not in pandas_obj.index.names]
    if missing_levels:
        msg = (
            f"The index is missing the following levels: {missing_levels}. "
            f"Available levels: {list(pandas_obj.index.names)}"
        )
        raise AssertionError(msg)


def assert_has_columns(df: pd.DataFrame, columns: Collection[str]) -> None:
    """
    Assert that a [pd.DataFrame][pandas.DataFrame] has the given columns

    Raises
    ------
    AssertionError
        `df` is missing one or more of `columns`
    """
    missing_columns = [c for c in columns if c not in df.columns]
    if missing_columns:
        msg = (
            f"The data is missing the following columns: {missing_columns}. "
            f"Available columns: {df.columns.tolist()}"
        )
        raise AssertionError(msg)


def assert_data_is_all_numeric(pandas_obj: pd.DataFrame | pd.Series) -> None:
    """
    Assert that all the data in a pandas object is numeric

    Parameters
    ----------
    pandas_obj
        Object to check

    Raises
    ------
    AssertionError
        Some of the data is not numeric
    """
    if isinstance(pandas_obj, pd.Series):
        if not pd.api.types.is_numeric_dtype(pandas_obj.dtype):
            msg = f"{pandas_obj.name} is not numeric: {pandas_obj.dtype=}"
            raise AssertionError(msg)

        return

    non_numeric = [
        c for c in pandas_obj.columns if not pd.api.types.is_numeric_dtype(pandas_obj[c])
    ]
    if non_numeric:
        msg = f"The following columns are not numeric: {non_numeric}"
        raise AssertionError(msg)
