"""
Conversion between wide (one column per date) and long (tidy) tables

The wide tables we consume look like the below,
i.e. a handful of identity columns,
perhaps some columns we don't care about (coordinates, internal IDs)
and then one column per date.

```python
  Province/State Country/Region      Lat      Long  1/22/20  1/23/20
0            NaN    Afghanistan  33.9391  67.7100        0        0
1       Victoria      Australia -37.8136 144.9631        0        1
```
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Collection, Sequence
from typing import Any

import numpy as np
import pandas as pd

from tidyepi.assertions import assert_has_columns, assert_has_index_levels
from tidyepi.exceptions import MalformedDateLabelError
from tidyepi.typing import ObservationSeries, TimeseriesDataFrame

logger = logging.getLogger(__name__)

DATE_LABEL_FORMAT: str = "month/day/year, year with 2 or 4 digits (e.g. 1/22/20)"
"""
Description of the date label format found in the source tables
"""

DATE_LABEL_REGEXP: re.Pattern[str] = re.compile(
    r"^\s*(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{2}|\d{4})\s*$"
)
"""
Regular expression used to parse date labels
"""

TWO_DIGIT_YEAR_CENTURY: int = 2000
"""
Century added to two-digit years
"""


def parse_date_label(label: Any) -> pd.Timestamp:
    """
    Parse a column label into a date

    Parameters
    ----------
    label
        Label to parse

        Datetime-like labels are passed straight through.
        Strings must be month/day/year, with a 2- or 4-digit year.

    Returns
    -------
    :
        Parsed date (normalised to midnight)

    Raises
    ------
    MalformedDateLabelError
        `label` could not be parsed
    """
    if isinstance(label, (pd.Timestamp, dt.date, np.datetime64)):
        return pd.Timestamp(label).normalize()

    if not isinstance(label, str):
        raise MalformedDateLabelError([label], expected_format=DATE_LABEL_FORMAT)

    match = DATE_LABEL_REGEXP.match(label)
    if match is None:
        raise MalformedDateLabelError([label], expected_format=DATE_LABEL_FORMAT)

    year = int(match.group("year"))
    if len(match.group("year")) == 2:  # noqa: PLR2004
        year += TWO_DIGIT_YEAR_CENTURY

    try:
        return pd.Timestamp(
            year=year, month=int(match.group("month")), day=int(match.group("day"))
        )
    except ValueError as exc:
        # e.g. 2/30/20
        raise MalformedDateLabelError(
            [label], expected_format=DATE_LABEL_FORMAT
        ) from exc


def parse_date_labels(labels: Sequence[Any], date_level: str = "date") -> pd.DatetimeIndex:
    """
    Parse a collection of labels into dates

    Unlike [parse_date_label][(m).], all failures are collected
    so the error reports every bad label at once.

    Parameters
    ----------
    labels
        Labels to parse

    date_level
        Name to give the output index

    Returns
    -------
    :
        Parsed dates

    Raises
    ------
    MalformedDateLabelError
        One or more of `labels` could not be parsed
    """
    parsed = []
    bad = []
    for label in labels:
        try:
            parsed.append(parse_date_label(label))
        except MalformedDateLabelError:
            bad.append(label)

    if bad:
        raise MalformedDateLabelError(bad, expected_format=DATE_LABEL_FORMAT)

    return pd.DatetimeIndex(parsed, name=date_level)


def to_timeseries_dataframe(
    wide: pd.DataFrame,
    identity_columns: Sequence[str],
    drop_columns: Collection[str] = (),
    date_level: str = "date",
    missing_identity_value: str = "",
) -> TimeseriesDataFrame:
    """
    Convert a wide table into a [TimeseriesDataFrame][(p).typing.]

    Parameters
    ----------
    wide
        Wide table (identity columns plus one column per date)

    identity_columns
        Columns which identify each row

    drop_columns
        Columns to drop before reshaping (e.g. coordinates, internal IDs)

        These are neither identity nor dates.

    date_level
        Name to give the date axis

    missing_identity_value
        Value to use where an identity field is missing in the source

        Identity fields are otherwise used exactly as they are,
        i.e. no other normalisation of the strings is performed.

    Returns
    -------
    :
        Data with the identity in the index and dates as columns

    Raises
    ------
    MalformedDateLabelError
        A column which is neither an identity nor a drop column
        cannot be parsed as a date
    """
    assert_has_columns(wide, [*identity_columns, *drop_columns])

    wide_kept = wide.drop(columns=list(drop_columns))
    date_columns = [c for c in wide_kept.columns if c not in identity_columns]
    dates = parse_date_labels(date_columns, date_level=date_level)

    identity = wide_kept[list(identity_columns)].fillna(missing_identity_value).astype(str)

    res = pd.DataFrame(
        wide_kept[date_columns].to_numpy(),
        columns=dates,
        index=pd.MultiIndex.from_frame(identity),
    )
    # Columns in chronological order, whatever order the source used
    res = res.sort_index(axis="columns")

    return res


def melt_wide_table(  # noqa: PLR0913
    wide: pd.DataFrame,
    identity_columns: Sequence[str],
    metric_name: str,
    drop_columns: Collection[str] = (),
    date_level: str = "date",
    missing_identity_value: str = "",
) -> ObservationSeries:
    """
    Reshape a wide table into observations

    Parameters
    ----------
    wide
        Wide table (identity columns plus one column per date)

    identity_columns
        Columns which identify each row

    metric_name
        Name of the metric held in the table (e.g. "cases")

    drop_columns
        Columns to drop before reshaping (e.g. coordinates, internal IDs)

    date_level
        Name of the date level in the output

    missing_identity_value
        Value to use where an identity field is missing in the source

    Returns
    -------
    :
        One value per (identity, date), named `metric_name`

    Raises
    ------
    MalformedDateLabelError
        A column which is neither an identity nor a drop column
        cannot be parsed as a date
    """
    tsdf = to_timeseries_dataframe(
        wide,
        identity_columns=identity_columns,
        drop_columns=drop_columns,
        date_level=date_level,
        missing_identity_value=missing_identity_value,
    )

    res = tsdf.stack(future_stack=True)
    res.name = metric_name
    logger.debug(
        "Reshaped %s rows x %s dates of %r into %s observations",
        tsdf.shape[0],
        tsdf.shape[1],
        metric_name,
        res.shape[0],
    )

    return res


def pivot_observations(
    observations: ObservationSeries, date_level: str = "date"
) -> TimeseriesDataFrame:
    """
    Pivot observations back into the wide shape

    This is the inverse of [melt_wide_table][(m).]
    (modulo the dropped columns, which are gone for good).

    Parameters
    ----------
    observations
        Observations to pivot

    date_level
        Level which holds the dates

    Returns
    -------
    :
        Data with the identity in the index and dates as columns
    """
    assert_has_index_levels(observations, [date_level])

    return observations.unstack(date_level).sort_index(axis="columns")
