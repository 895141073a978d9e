"""
Aggregation helpers
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Sequence
from typing import Callable, Union

import numpy as np
import pandas as pd
from typing_extensions import TypeAlias

from tidyepi.assertions import assert_has_columns, assert_has_index_levels

logger = logging.getLogger(__name__)

GroupBy: TypeAlias = Union[None, str, Sequence[str], Callable[[tuple[str, ...]], Hashable]]
"""
Ways of selecting the group to which each record belongs

- `None`: everything is in a single (global) group
- a level name or list of level names: group by those levels of the index
- a callable: called with each identity (as a tuple), returns the group label
"""


def get_group_keys(
    combined: pd.DataFrame,
    group_by: GroupBy,
    date_level: str = "date",
    group_level: str = "group",
    global_label: str = "ALL",
) -> list[pd.Index]:
    """
    Get the keys used to group combined records

    Parameters
    ----------
    combined
        Combined records

    group_by
        Group selector (see [GroupBy][(m).])

    date_level
        Level which holds the dates

    group_level
        Name of the group level in the output
        (only used if `group_by` is `None` or a callable)

    global_label
        Label of the single group if `group_by` is `None`

    Returns
    -------
    :
        Keys to pass to `groupby` (group keys followed by the dates)
    """
    dates = combined.index.get_level_values(date_level)

    if group_by is None:
        labels = pd.Index(np.full(combined.shape[0], global_label), name=group_level)
        return [labels, dates]

    if isinstance(group_by, str):
        group_by = [group_by]

    if callable(group_by):
        identities = combined.index.droplevel(date_level)
        if not isinstance(identities, pd.MultiIndex):
            identities = pd.MultiIndex.from_arrays([identities])

        labels = pd.Index([group_by(tuple(i)) for i in identities], name=group_level)
        return [labels, dates]

    assert_has_index_levels(combined, group_by)
    if date_level in group_by:
        msg = f"{date_level=} is always used for grouping, it cannot be in {group_by=}"
        raise ValueError(msg)

    return [*(combined.index.get_level_values(lvl) for lvl in group_by), dates]


def add_incremental(
    cumulative: pd.DataFrame,
    metrics: Sequence[str],
    date_level: str = "date",
    incremental_prefix: str = "new_",
) -> pd.DataFrame:
    """
    Add the per-period increments of cumulative metrics

    The increment for a date is the cumulative value at that date
    minus the cumulative value at the immediately preceding date in the series.
    The first increment in each series is undefined (NaN), never zero.
    Decreases in the cumulative value (i.e. revisions in the source)
    are passed through as negative increments, they are not clamped.

    Parameters
    ----------
    cumulative
        Cumulative data, indexed by group levels and date

    metrics
        Metrics for which to calculate increments

    date_level
        Level which holds the dates

    incremental_prefix
        Prefix used to name the increment columns

    Returns
    -------
    :
        `cumulative` with increment columns added
    """
    assert_has_columns(cumulative, metrics)

    res = cumulative.sort_index()
    group_levels = [n for n in res.index.names if n != date_level]
    if group_levels:
        increments = res[list(metrics)].groupby(group_levels, sort=False).diff()
    else:
        increments = res[list(metrics)].diff()

    for metric in metrics:
        res[f"{incremental_prefix}{metric}"] = increments[metric]

    return res


def aggregate_metrics(  # noqa: PLR0913
    combined: pd.DataFrame,
    metrics: Sequence[str],
    group_by: GroupBy = None,
    date_level: str = "date",
    group_level: str = "group",
    global_label: str = "ALL",
    lookup_columns: Sequence[str] = ("population",),
    incremental_prefix: str = "new_",
) -> pd.DataFrame:
    """
    Aggregate combined records into cumulative and incremental series per group

    Parameters
    ----------
    combined
        Combined records (see [join_metrics][(p).joining.])

    metrics
        Cumulative metrics to sum

        Within a group, absent values contribute zero to the sum.

    group_by
        Group selector (see [GroupBy][(m).])

    date_level
        Level which holds the dates

    group_level
        Name of the group level in the output
        (only used if `group_by` is `None` or a callable)

    global_label
        Label of the single group if `group_by` is `None`

    lookup_columns
        Static attribute columns to sum alongside the metrics

        These are only summed if they are in `combined`.
        A group with no values at all stays absent (NaN) rather than zero.

    incremental_prefix
        Prefix used to name the increment columns

    Returns
    -------
    :
        One row per (group, date), sorted ascending by date within each group,
        with the summed metrics, their increments
        and any summed lookup columns.
    """
    assert_has_index_levels(combined, [date_level])
    assert_has_columns(combined, metrics)

    keys = get_group_keys(
        combined,
        group_by=group_by,
        date_level=date_level,
        group_level=group_level,
        global_label=global_label,
    )

    res = combined[list(metrics)].groupby(keys, sort=True).sum()

    lookup_present = [c for c in lookup_columns if c in combined.columns]
    if lookup_present:
        lookup_summed = combined[lookup_present].groupby(keys, sort=True).sum(min_count=1)
        res = pd.concat([res, lookup_summed], axis="columns")

    res = add_incremental(
        res,
        metrics=metrics,
        date_level=date_level,
        incremental_prefix=incremental_prefix,
    )
    logger.info(
        "Aggregated %s records into %s groups over %s dates",
        combined.shape[0],
        res.index.droplevel(date_level).nunique(),
        res.index.get_level_values(date_level).nunique(),
    )

    return res


def add_per_capita(
    aggregated: pd.DataFrame,
    metrics: Sequence[str],
    population_column: str = "population",
    per: float = 100_000,
    suffix: str = "_per_capita",
) -> pd.DataFrame:
    """
    Add metrics expressed per head of population

    Parameters
    ----------
    aggregated
        Data to which to add the per capita metrics

    metrics
        Metrics to express per capita

    population_column
        Column holding the population

    per
        Number of people to express the metric relative to
        (e.g. 100 000 gives cases per 100 000 people)

    suffix
        Suffix used to name the new columns

    Returns
    -------
    :
        `aggregated` with the per capita columns added.
        These are NaN where the population is absent or zero.
    """
    assert_has_columns(aggregated, [*metrics, population_column])

    res = aggregated.copy()
    population = res[population_column].where(res[population_column] > 0)
    for metric in metrics:
        res[f"{metric}{suffix}"] = res[metric] / population * per

    return res
