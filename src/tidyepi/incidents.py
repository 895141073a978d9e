"""
Incident logs, i.e. tables with one row per event

For example, a shooting incident log looks like the below.

```python
   INCIDENT_KEY OCCUR_DATE       BORO  STATISTICAL_MURDER_FLAG
0      24050482 08/27/2006      BRONX                    False
1      77673979 03/11/2011     QUEENS                    False
```

These are turned into daily counts,
which can then be smoothed and normalised like any other series.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd

from tidyepi.assertions import assert_has_columns
from tidyepi.exceptions import MalformedDateLabelError

logger = logging.getLogger(__name__)


def parse_occurrence_dates(
    dates: pd.Series, date_format: str | None = "%m/%d/%Y"
) -> pd.DatetimeIndex:
    """
    Parse the occurrence dates of an incident log

    Parameters
    ----------
    dates
        Dates to parse

    date_format
        Format of the dates (see [pd.to_datetime][pandas.to_datetime])

        If `None`, pandas infers the format.

    Returns
    -------
    :
        Parsed dates, normalised to midnight

    Raises
    ------
    MalformedDateLabelError
        Some of the dates could not be parsed (missing dates included)
    """
    parsed = pd.to_datetime(dates, format=date_format, errors="coerce")
    bad = parsed.isna()
    if bad.any():
        raise MalformedDateLabelError(
            dates[bad].unique().tolist(),
            expected_format=date_format if date_format is not None else "any",
        )

    return pd.DatetimeIndex(parsed).normalize()


def count_incidents(  # noqa: PLR0913
    incident_log: pd.DataFrame,
    date_column: str,
    by: Sequence[str] = (),
    metric_name: str = "incidents",
    date_format: str | None = "%m/%d/%Y",
    date_level: str = "date",
    fill_missing_dates: bool = True,
) -> pd.Series:
    """
    Count incidents per day

    Parameters
    ----------
    incident_log
        Incident log, one row per incident

    date_column
        Column which holds the date on which each incident occurred

    by
        Categorical columns by which to split the counts (e.g. borough)

    metric_name
        Name of the output

    date_format
        Format of the dates in `date_column`
        (see [parse_occurrence_dates][(m).])

    date_level
        Name of the date level in the output

    fill_missing_dates
        Should days on which no incidents occurred be filled with zero?

        The filled span runs from the first to the last date in the log,
        for every group.
        A day with no incidents is a genuine count of zero,
        so this does not invent data.

    Returns
    -------
    :
        Count of incidents per (group, date)

    Raises
    ------
    MalformedDateLabelError
        Some of the dates could not be parsed
    """
    assert_has_columns(incident_log, [date_column, *by])

    dates = parse_occurrence_dates(incident_log[date_column], date_format=date_format)
    keys = [
        *(incident_log[c].fillna("").astype(str).to_numpy() for c in by),
        dates.rename(date_level),
    ]
    counts = pd.Series(1, index=incident_log.index).groupby(keys).sum()
    counts.index = counts.index.set_names([*by, date_level])

    if fill_missing_dates and not counts.empty:
        all_dates = pd.date_range(dates.min(), dates.max(), freq="D", name=date_level)
        if by:
            groups = counts.index.droplevel(date_level).unique()
            if not isinstance(groups, pd.MultiIndex):
                groups = pd.MultiIndex.from_arrays([groups])

            full_index = pd.MultiIndex.from_tuples(
                [(*g, d) for g in groups for d in all_dates],
                names=[*by, date_level],
            )
        else:
            full_index = all_dates

        counts = counts.reindex(full_index, fill_value=0)

    counts = counts.astype(int)
    counts.name = metric_name
    logger.info(
        "Counted %s incidents into %s daily values", incident_log.shape[0], counts.size
    )

    return counts.sort_index()


def add_cumulative_by_year(
    daily: pd.DataFrame,
    column: str,
    date_level: str = "date",
    suffix: str = "_year_to_date",
) -> pd.DataFrame:
    """
    Add the running total of a column within each calendar year

    Parameters
    ----------
    daily
        Daily data

        Groups are defined by all the index levels other than `date_level`.

    column
        Column to accumulate

    date_level
        Level which holds the dates

    suffix
        Suffix used to name the running total

    Returns
    -------
    :
        `daily`, sorted, with the running total added
    """
    assert_has_columns(daily, [column])

    res = daily.sort_index()
    years = pd.DatetimeIndex(res.index.get_level_values(date_level)).year
    keys = [
        *(res.index.get_level_values(n) for n in res.index.names if n != date_level),
        years,
    ]
    res[f"{column}{suffix}"] = res[column].groupby(keys).cumsum()

    return res
