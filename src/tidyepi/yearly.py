"""
Year-on-year normalisation

Re-expresses each date as (year, day of year)
and rescales values within each year to [0, 1]
so that years can be compared with each other.
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np
import pandas as pd

from tidyepi.assertions import assert_has_columns, assert_has_index_levels
from tidyepi.exceptions import DegenerateRangeError

logger = logging.getLogger(__name__)


def add_year_and_day_of_year(
    df: pd.DataFrame,
    date_level: str = "date",
    year_column: str = "year",
    day_of_year_column: str = "day_of_year",
) -> pd.DataFrame:
    """
    Add the calendar year and day of year of each row

    Parameters
    ----------
    df
        Data to annotate

    date_level
        Level which holds the dates

    year_column
        Name of the column in which to store the year

    day_of_year_column
        Name of the column in which to store the day of the year (1 to 366)

    Returns
    -------
    :
        `df` with the year and day of year columns added
    """
    assert_has_index_levels(df, [date_level])

    dates = pd.DatetimeIndex(df.index.get_level_values(date_level))

    res = df.copy()
    res[year_column] = dates.year.to_numpy()
    res[day_of_year_column] = dates.dayofyear.to_numpy()

    return res


def normalise_by_year(  # noqa: PLR0913
    df: pd.DataFrame,
    raw_column: str,
    smoothed_column: str,
    date_level: str = "date",
    on_degenerate: Literal["nan", "raise"] = "nan",
    prefix: str = "normalised_",
    degenerate_column: str = "degenerate_range",
) -> pd.DataFrame:
    """
    Rescale raw and smoothed values to [0, 1] within each year

    For each group and year, with `lo` and `hi` the minimum and maximum
    of the smoothed values in that year,
    each value `v` (raw or smoothed) becomes `(v - lo) / (hi - lo)`.
    Raw values can therefore fall outside [0, 1].

    If `hi == lo` (a flat year), the range is degenerate
    and no meaningful rescaling exists.

    Parameters
    ----------
    df
        Data to normalise

        Groups are defined by all the index levels other than `date_level`.

    raw_column
        Column holding the raw values

    smoothed_column
        Column holding the smoothed values (see [smooth_timeseries][(p).smoothing.])

    date_level
        Level which holds the dates

    on_degenerate
        What to do if a year has a degenerate range

        - "nan": all normalised values for that year are NaN
          and `degenerate_column` is `True` for every row in that year
        - "raise": raise a [DegenerateRangeError][(p).exceptions.]

    prefix
        Prefix used to name the normalised columns

    degenerate_column
        Name of the column which flags rows in a year with a degenerate range

    Returns
    -------
    :
        `df` with year, day of year,
        the normalised columns and `degenerate_column` added

    Raises
    ------
    DegenerateRangeError
        `on_degenerate` is "raise" and a year has a degenerate range
    """
    if on_degenerate not in ("nan", "raise"):
        raise NotImplementedError(on_degenerate)

    assert_has_columns(df, [raw_column, smoothed_column])

    res = add_year_and_day_of_year(df, date_level=date_level)

    group_keys = [
        *(
            res.index.get_level_values(n)
            for n in res.index.names
            if n != date_level
        ),
        res["year"].to_numpy(),
    ]
    smoothed_grouped = res[smoothed_column].groupby(group_keys)
    lo = smoothed_grouped.transform("min")
    hi = smoothed_grouped.transform("max")
    width = hi - lo

    # NaN width (no smoothed values at all) counts as degenerate too
    degenerate = ~(width > 0)
    if degenerate.any():
        degenerate_years = (
            pd.DataFrame({"min": lo, "max": hi, "year": res["year"]})
            .loc[degenerate]
            .drop_duplicates()
        )
        if on_degenerate == "raise":
            raise DegenerateRangeError(degenerate=degenerate_years)

        logger.warning(
            "Normalisation range is zero for %s year(s), "
            "their normalised values will be NaN:\n%s",
            degenerate_years.shape[0],
            degenerate_years,
        )

    safe_width = width.where(~degenerate)
    res[f"{prefix}{raw_column}"] = (res[raw_column] - lo) / safe_width
    res[f"{prefix}{smoothed_column}"] = (res[smoothed_column] - lo) / safe_width
    res[degenerate_column] = np.asarray(degenerate)

    return res
