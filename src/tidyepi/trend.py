"""
Linear trend fitting

Used to overlay (and extrapolate) straight-line trends on the data.
"""

from __future__ import annotations

import logging

import numpy as np
import numpy.typing as npt
import pandas as pd
from attrs import define, field

from tidyepi.assertions import assert_has_columns, assert_has_index_levels
from tidyepi.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

TREND_STATUS_OK: str = "ok"
"""
Status of a group for which the trend was fitted
"""

TREND_STATUS_INSUFFICIENT_DATA: str = "insufficient-data"
"""
Status of a group which did not have enough data to fit a trend
"""


def to_ordinal(x: npt.ArrayLike | pd.Index) -> npt.NDArray[np.floating]:
    """
    Convert dates into numeric ordinals

    Parameters
    ----------
    x
        Values to convert

        Datetime-like values are converted to proleptic Gregorian ordinals
        (1 January of year 1 is day 1).
        Numeric values are returned as floats, unchanged.

    Returns
    -------
    :
        Numeric values
    """
    if isinstance(x, pd.Index):
        values = x
    else:
        arr = np.asarray(x)
        if arr.dtype.kind in "iuf":
            return arr.astype(float)

        values = pd.Index(arr)

    if pd.api.types.is_numeric_dtype(values.dtype):
        return values.to_numpy(dtype=float)

    dates = pd.DatetimeIndex(values)

    return np.array([d.toordinal() for d in dates], dtype=float)


@define(frozen=True)
class LinearTrend:
    """
    A straight line fitted by ordinary least squares
    """

    slope: float
    """
    Change in the value per unit of the explanatory variable (per day for dates)
    """

    intercept: float
    """
    Value where the explanatory variable is zero
    """

    predicted: npt.NDArray[np.floating] = field(eq=False, repr=False)
    """
    Predicted value at each of the points used to fit the trend
    """

    def predict(self, x: npt.ArrayLike | pd.Index) -> npt.NDArray[np.floating]:
        """
        Predict values at the given points

        Parameters
        ----------
        x
            Points at which to predict (dates or numeric values)

        Returns
        -------
        :
            Predicted values
        """
        return self.intercept + self.slope * to_ordinal(x)


def fit_linear_trend(x: npt.ArrayLike | pd.Index, y: npt.ArrayLike) -> LinearTrend:
    """
    Fit a straight line to `y` as a function of `x`

    Pairs in which `y` is undefined (NaN) are not used in the fit,
    but a predicted value is still returned for them.

    Parameters
    ----------
    x
        Explanatory values (dates or numeric values)

    y
        Response values

    Returns
    -------
    :
        Fitted trend, with a predicted value at every value of `x`

    Raises
    ------
    InsufficientDataError
        There are fewer than two distinct values of `x` with a defined `y`

    ValueError
        `x` and `y` are not the same length
    """
    x_num = to_ordinal(x)
    y_arr = np.asarray(y, dtype=float)
    if x_num.shape != y_arr.shape:
        msg = f"x and y must be the same shape, received {x_num.shape=} {y_arr.shape=}"
        raise ValueError(msg)

    defined = ~np.isnan(y_arr)
    x_fit = x_num[defined]
    y_fit = y_arr[defined]

    n_distinct = np.unique(x_fit).size
    if n_distinct < 2:  # noqa: PLR2004
        raise InsufficientDataError(n_distinct=n_distinct)

    # Centre x so large ordinals don't cost us precision
    x_mean = x_fit.mean()
    y_mean = y_fit.mean()
    x_centred = x_fit - x_mean
    slope = float(np.sum(x_centred * (y_fit - y_mean)) / np.sum(x_centred**2))
    intercept = float(y_mean - slope * x_mean)

    return LinearTrend(
        slope=slope,
        intercept=intercept,
        predicted=intercept + slope * x_num,
    )


@define
class TrendFitResult:
    """
    Result of fitting trends to each group with [fit_trends][(m).]
    """

    predicted: pd.Series
    """
    Predicted values, with the same index as the input data

    NaN for groups for which no trend could be fitted.
    """

    parameters: pd.DataFrame
    """
    Trend parameters for each group

    Columns: slope, intercept, n_points and status.
    The slope and intercept are NaN if status is not "ok".
    """


def fit_trends(
    df: pd.DataFrame,
    column: str,
    date_level: str = "date",
    suffix: str = "_trend",
) -> TrendFitResult:
    """
    Fit a linear trend (value as a function of date) to each group

    Groups are defined by all the index levels other than `date_level`.
    A group without enough data does not stop the other groups being fitted.

    Parameters
    ----------
    df
        Data to which to fit

    column
        Column to fit

    date_level
        Level which holds the dates

    suffix
        Suffix used to name the predicted values

    Returns
    -------
    :
        Predicted values and parameters for each group
    """
    assert_has_index_levels(df, [date_level])
    assert_has_columns(df, [column])

    group_levels = [n for n in df.index.names if n != date_level]
    if group_levels:
        groups = list(df[column].groupby(group_levels, sort=True))
    else:
        groups = [((), df[column])]

    predicted_l = []
    parameters_l = []
    for key, gseries in groups:
        n_points = int(gseries.notna().sum())
        try:
            trend = fit_linear_trend(gseries.index.get_level_values(date_level), gseries)
        except InsufficientDataError as exc:
            logger.warning("Could not fit a trend to %s for %s: %s", column, key, exc)
            predicted_l.append(pd.Series(np.nan, index=gseries.index))
            parameters_l.append(
                (np.nan, np.nan, n_points, TREND_STATUS_INSUFFICIENT_DATA)
            )
            continue

        predicted_l.append(pd.Series(trend.predicted, index=gseries.index))
        parameters_l.append((trend.slope, trend.intercept, n_points, TREND_STATUS_OK))

    if predicted_l:
        predicted = pd.concat(predicted_l).reindex(df.index)
    else:
        predicted = pd.Series(np.nan, index=df.index, dtype=float)

    predicted.name = f"{column}{suffix}"

    if group_levels:
        parameters_index = pd.MultiIndex.from_tuples(
            [key if isinstance(key, tuple) else (key,) for key, _ in groups],
            names=group_levels,
        )
    else:
        parameters_index = pd.RangeIndex(1)

    parameters = pd.DataFrame(
        parameters_l,
        columns=["slope", "intercept", "n_points", "status"],
        index=parameters_index,
    )

    return TrendFitResult(predicted=predicted, parameters=parameters)
