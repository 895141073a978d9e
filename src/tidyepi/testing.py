"""
Code to support our tests

This is here, rather than in our `tests` directory
because of the issues that come
when you turn your tests into a package using `__init__.py` files
(for details, see https://docs.pytest.org/en/7.1.x/explanation/goodpractices.html#choosing-an-import-mode).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from tidyepi.exceptions import MissingOptionalDependencyError

RNG = np.random.default_rng()

JHU_IDENTITY_COLUMNS: tuple[str, ...] = ("Province/State", "Country/Region")
"""
Identity columns of the global confirmed cases and deaths tables
"""

JHU_DROP_COLUMNS: tuple[str, ...] = ("Lat", "Long")
"""
Columns of the global tables which are neither identity nor dates
"""


def get_wide_table(
    values: Mapping[tuple[str | None, ...], Sequence[float]],
    date_labels: Sequence[str],
    identity_columns: Sequence[str] = JHU_IDENTITY_COLUMNS,
    drop_columns: Sequence[str] = JHU_DROP_COLUMNS,
) -> pd.DataFrame:
    """
    Get a wide table like the ones published in the global case/death tables

    Parameters
    ----------
    values
        Map from identity to the values for each date

    date_labels
        Labels of the date columns (e.g. "1/22/20")

    identity_columns
        Names of the identity columns

    drop_columns
        Names of extra columns to include (filled with random numbers)

    Returns
    -------
    :
        Wide table
    """
    rows = []
    for identity, row_values in values.items():
        if len(row_values) != len(date_labels):
            msg = f"{identity=} has {len(row_values)} values, expected {len(date_labels)}"
            raise ValueError(msg)

        row: dict[str, Any] = dict(zip(identity_columns, identity))
        row.update({c: RNG.random() for c in drop_columns})
        row.update(dict(zip(date_labels, row_values)))
        rows.append(row)

    return pd.DataFrame(rows, columns=[*identity_columns, *drop_columns, *date_labels])


def get_incident_log(
    counts: Mapping[tuple[str, str], int],
    date_column: str = "OCCUR_DATE",
    group_column: str = "BORO",
) -> pd.DataFrame:
    """
    Get an incident log, one row per incident

    Parameters
    ----------
    counts
        Map from (date, group) to the number of incidents

        Dates should be formatted like "08/27/2006".

    date_column
        Name of the column holding the date

    group_column
        Name of the column holding the group

    Returns
    -------
    :
        Incident log, in random row order
    """
    rows = [
        {date_column: date, group_column: group}
        for (date, group), n in counts.items()
        for _ in range(n)
    ]
    res = pd.DataFrame(rows, columns=[date_column, group_column])
    res = res.iloc[RNG.permutation(res.shape[0])].reset_index(drop=True)
    res.insert(0, "INCIDENT_KEY", np.arange(res.shape[0]) + 10_000_000)

    return res


def assert_frame_equal(
    res: pd.DataFrame, exp: pd.DataFrame, rtol: float = 1e-8, **kwargs: Any
) -> None:
    """
    Assert two [pd.DataFrame][pandas.DataFrame]'s are equal.

    This is a very thin wrapper around
    [pd.testing.assert_frame_equal][pandas.testing.assert_frame_equal]
    that makes some use of [pandas_indexing][]
    to give slightly nicer and clearer errors.

    Parameters
    ----------
    res
        Result

    exp
        Expected value

    rtol
        Relative tolerance

    **kwargs
        Passed to [pd.testing.assert_frame_equal][pandas.testing.assert_frame_equal]

    Raises
    ------
    AssertionError
        The frames aren't equal
    """
    try:
        from pandas_indexing.core import uniquelevel
    except ImportError as exc:
        raise MissingOptionalDependencyError(
            "assert_frame_equal", requirement="pandas_indexing"
        ) from exc

    for idx_name in res.index.names:
        idx_diffs = uniquelevel(res, idx_name).symmetric_difference(  # type: ignore
            uniquelevel(exp, idx_name)  # type: ignore
        )
        if not idx_diffs.empty:
            msg = f"Differences in the {idx_name} (res on the left): {idx_diffs=}"
            raise AssertionError(msg)

    if isinstance(res.index, pd.MultiIndex):
        res = res.reorder_levels(exp.index.names)

    pd.testing.assert_frame_equal(
        res,
        exp,
        check_like=True,
        check_exact=False,
        rtol=rtol,
        **kwargs,
    )
