"""
Centred moving-average smoothing
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import pandas as pd
from pandas_openscm.parallelisation import ParallelOpConfig, apply_op_parallel_progress

from tidyepi.assertions import assert_has_columns, assert_has_index_levels

logger = logging.getLogger(__name__)


def centered_moving_average(
    values: npt.ArrayLike, window: int
) -> npt.NDArray[np.floating]:
    """
    Calculate a centred moving average with edge-clamped windows

    With `mid = window // 2`, the value at index `i` is the mean of
    `values[i - mid]` through `values[i - mid + window - 1]`,
    except near the ends of the sequence, where the window is clamped
    (shrinks) so that it only includes values which exist.

    Interior values are calculated with a running sum,
    i.e. each step adds the contribution of the entering element
    and subtracts the contribution of the leaving element,
    rather than re-summing the full window.

    Parameters
    ----------
    values
        Values to smooth, ordered in time

    window
        Length of the window

        Odd lengths give a symmetric window.
        Lengths less than one are treated as one (i.e. no smoothing).
        If `window` is longer than `values`, `values` is returned unchanged.

    Returns
    -------
    :
        Smoothed values, always the same length as `values`

    Raises
    ------
    ValueError
        `values` is not one-dimensional or contains NaN
    """
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        msg = f"values must be one-dimensional, received {arr.shape=}"
        raise ValueError(msg)

    if np.isnan(arr).any():
        msg = "values must not contain NaN, drop undefined values before smoothing"
        raise ValueError(msg)

    n = arr.size
    window = max(int(window), 1)
    if window == 1 or window > n:
        return arr.copy()

    mid = window // 2
    res = np.empty_like(arr)

    # Left edge: window clamped at the start of the sequence
    for i in range(mid):
        res[i] = arr[: i - mid + window].mean()

    # Seed with the first full window, then slide
    res[mid] = arr[:window].mean()
    for i in range(mid + 1, n - mid):
        entering = arr[i - mid + window - 1]
        leaving = arr[i - mid - 1]
        res[i] = res[i - 1] + (entering - leaving) / window

    # Right edge: window clamped at the end of the sequence
    for i in range(max(n - mid, mid + 1), n):
        res[i] = arr[i - mid :].mean()

    return res


def smooth_series(values: pd.Series, window: int) -> pd.Series:
    """
    Smooth a single series, skipping undefined values

    Undefined (NaN) values are not passed to the moving average.
    The defined values are smoothed as one contiguous sequence
    and undefined positions stay undefined in the output.

    Parameters
    ----------
    values
        Series to smooth, ordered in time

    window
        Length of the window (see [centered_moving_average][(m).])

    Returns
    -------
    :
        Smoothed series, with the same index as `values`
    """
    defined = values.notna().to_numpy()
    res = pd.Series(np.nan, index=values.index, name=values.name, dtype=float)
    if defined.any():
        res.iloc[defined] = centered_moving_average(values.to_numpy()[defined], window)

    return res


def smooth_group(
    gdf: pd.DataFrame, columns: Sequence[str], window: int, suffix: str
) -> pd.DataFrame:
    """
    Smooth the given columns of a single group

    Parameters
    ----------
    gdf
        Data for the group, sorted by date

    columns
        Columns to smooth

    window
        Length of the window

    suffix
        Suffix used to name the smoothed columns

    Returns
    -------
    :
        Smoothed columns, with the same index as `gdf`
    """
    return pd.concat(
        [
            smooth_series(gdf[column], window=window).rename(f"{column}{suffix}")
            for column in columns
        ],
        axis="columns",
    )


def smooth_timeseries(  # noqa: PLR0913
    df: pd.DataFrame,
    columns: Sequence[str],
    window: int,
    date_level: str = "date",
    suffix: str = "_smoothed",
    progress: bool = False,
    n_processes: int | None = None,
) -> pd.DataFrame:
    """
    Add smoothed copies of columns, smoothing each group independently

    Groups are defined by all the index levels other than `date_level`.

    Parameters
    ----------
    df
        Data to smooth

    columns
        Columns to smooth

    window
        Length of the window (see [centered_moving_average][(m).])

    date_level
        Level which holds the dates

    suffix
        Suffix used to name the smoothed columns

    progress
        Should a progress bar be shown?

    n_processes
        Number of processes to use for smoothing groups in parallel

        Set to `None` to process in serial.

    Returns
    -------
    :
        `df`, sorted, with the smoothed columns added
    """
    assert_has_index_levels(df, [date_level])
    assert_has_columns(df, columns)

    res = df.sort_index()
    if res.empty:
        for column in columns:
            res[f"{column}{suffix}"] = pd.Series(dtype=float)

        return res

    group_levels = [n for n in res.index.names if n != date_level]
    if group_levels:
        groups = (gdf for _, gdf in res[list(columns)].groupby(group_levels, sort=False))
    else:
        groups = iter([res[list(columns)]])

    smoothed = pd.concat(
        apply_op_parallel_progress(
            func_to_call=smooth_group,
            iterable_input=groups,
            parallel_op_config=ParallelOpConfig.from_user_facing(
                progress=progress,
                max_workers=n_processes,
                progress_results_kwargs=dict(desc="Groups to smooth"),
            ),
            columns=columns,
            window=window,
            suffix=suffix,
        )
    )

    res = pd.concat([res, smoothed.reindex(res.index)], axis="columns")
    logger.debug("Smoothed %s with a window of %s", list(columns), window)

    return res

