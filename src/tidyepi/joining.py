"""
Joining of observations from multiple sources

Metric sources (e.g. confirmed cases and deaths) are outer joined
on (identity, date).
Static attributes (e.g. population) are left joined on identity only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal

import numpy as np
import pandas as pd
from pandas_openscm.indexing import multi_index_match

from tidyepi.assertions import assert_data_is_all_numeric, assert_index_is_multiindex
from tidyepi.exceptions import JoinKeyCollisionError, MissingLookupError
from tidyepi.typing import ObservationSeries

logger = logging.getLogger(__name__)


def assert_no_join_key_collisions(
    pandas_obj: pd.DataFrame | pd.Series, source_name: str
) -> None:
    """
    Assert that every key in the index of `pandas_obj` is unique

    Parameters
    ----------
    pandas_obj
        Object to check

    source_name
        Name of the source, used in the error message

    Raises
    ------
    JoinKeyCollisionError
        One or more keys appear more than once
    """
    duplicated = pandas_obj.index.duplicated(keep=False)
    if duplicated.any():
        raise JoinKeyCollisionError(
            source_name=source_name,
            duplicates=pandas_obj.index[duplicated].unique(),
        )


def outer_join_metrics(metrics: Iterable[ObservationSeries]) -> pd.DataFrame:
    """
    Outer join metric observations on (identity, date)

    Parameters
    ----------
    metrics
        Observations to join, each named after its metric

    Returns
    -------
    :
        One row per (identity, date) seen in any of `metrics`,
        one column per metric.
        Where a source has no value for a given (identity, date),
        the value is NaN (i.e. absent, not zero).

    Raises
    ------
    JoinKeyCollisionError
        An (identity, date) appears more than once within a single source

    ValueError
        The sources are not keyed in the same way or share a metric name
    """
    metrics_l = list(metrics)
    if not metrics_l:
        msg = "At least one metric source is required"
        raise ValueError(msg)

    names = [m.name for m in metrics_l]
    if len(set(names)) != len(names):
        msg = f"Metric names must be unique, received {names}"
        raise ValueError(msg)

    index_names = metrics_l[0].index.names
    for m in metrics_l:
        if m.index.names != index_names:
            msg = (
                "All metric sources must have the same index levels. "
                f"{m.name!r} has {list(m.index.names)}, "
                f"{metrics_l[0].name!r} has {list(index_names)}"
            )
            raise ValueError(msg)

        assert_no_join_key_collisions(m, source_name=str(m.name))

    res = pd.concat(metrics_l, axis="columns", join="outer").sort_index()

    return res


def left_join_lookup(
    combined: pd.DataFrame,
    lookup: pd.DataFrame,
    lookup_name: str = "lookup",
    on_missing: Literal["ignore", "warn", "raise"] = "warn",
) -> pd.DataFrame:
    """
    Left join static attributes onto combined records

    The join is done on the levels of `lookup`'s index only,
    so each attribute is broadcast across all dates for an identity.

    Parameters
    ----------
    combined
        Combined records to which to add the attributes

    lookup
        Lookup table

        The index names must be a subset of `combined`'s index names.
        Each column is added to `combined`.

    lookup_name
        Name of the lookup, used in messages

    on_missing
        What to do if there are identities in `combined`
        that have no match in `lookup`.
        Regardless of this setting, identities are matched exactly
        (no canonicalisation of the strings is done).

        - "ignore": keep the records, with the attributes absent
        - "warn": same as "ignore", but log a warning
        - "raise": raise a [MissingLookupError][(p).exceptions.]

    Returns
    -------
    :
        `combined` with `lookup`'s columns added
        (NaN where there is no match)

    Raises
    ------
    JoinKeyCollisionError
        The keys of `lookup` are not unique

    MissingLookupError
        `on_missing` is "raise" and some identities have no match in `lookup`
    """
    if on_missing not in ("ignore", "warn", "raise"):
        raise NotImplementedError(on_missing)

    missing_levels = [n for n in lookup.index.names if n not in combined.index.names]
    if missing_levels:
        msg = (
            f"{lookup_name!r} is keyed on levels which are not in the data: "
            f"{missing_levels}. Available levels: {list(combined.index.names)}"
        )
        raise ValueError(msg)

    clashing_columns = [c for c in lookup.columns if c in combined.columns]
    if clashing_columns:
        msg = f"{lookup_name!r} columns are already in the data: {clashing_columns}"
        raise ValueError(msg)

    assert_no_join_key_collisions(lookup, source_name=lookup_name)

    lookup_keys = list(lookup.index.names)
    lookup_multi = lookup
    if not isinstance(lookup.index, pd.MultiIndex):
        lookup_multi = lookup.set_axis(
            pd.MultiIndex.from_arrays([lookup.index], names=lookup_keys)
        )

    matched = multi_index_match(combined.index, lookup_multi.index)
    if not matched.all():
        unmatched = (
            combined.index[~matched]
            .droplevel([n for n in combined.index.names if n not in lookup_keys])
            .unique()
        )
        if on_missing == "raise":
            raise MissingLookupError(lookup_name=lookup_name, missing=unmatched)

        if on_missing == "warn":
            logger.warning(
                "%s identities have no match in %r, their values will be absent: %s",
                len(unmatched),
                lookup_name,
                unmatched.tolist(),
            )

    target = combined.index.droplevel(
        [n for n in combined.index.names if n not in lookup_keys]
    )
    if isinstance(target, pd.MultiIndex):
        target = target.reorder_levels(lookup_keys)

    res = combined.copy()
    for col in lookup.columns:
        res[col] = lookup[col].reindex(target).to_numpy()

    return res


def join_metrics(  # noqa: PLR0913
    metrics: Iterable[ObservationSeries],
    lookup: pd.DataFrame | None = None,
    primary_metric: str | None = None,
    drop_non_positive: bool = True,
    lookup_name: str = "lookup",
    on_missing_lookup: Literal["ignore", "warn", "raise"] = "warn",
) -> pd.DataFrame:
    """
    Join metric observations and static attributes into combined records

    Parameters
    ----------
    metrics
        Observations to join, each named after its metric

    lookup
        Optional lookup table of static attributes (e.g. population)

        See [left_join_lookup][(m).] for details.

    primary_metric
        The metric which determines whether a record carries any signal

        If not supplied, the first metric in `metrics` is used.

    drop_non_positive
        Should records whose primary metric is zero or negative be dropped?

        Records where the primary metric is absent are kept
        (absent is not the same as zero).

    lookup_name
        Name of the lookup, used in messages

    on_missing_lookup
        Passed to [left_join_lookup][(m).] as `on_missing`

    Returns
    -------
    :
        Combined records

    Raises
    ------
    JoinKeyCollisionError
        An (identity, date) appears more than once within a single source
        or the lookup's keys are not unique
    """
    metrics_l = list(metrics)
    res = outer_join_metrics(metrics_l)
    assert_index_is_multiindex(res)
    assert_data_is_all_numeric(res)

    if lookup is not None:
        res = left_join_lookup(
            res, lookup=lookup, lookup_name=lookup_name, on_missing=on_missing_lookup
        )

    if drop_non_positive:
        if primary_metric is None:
            primary_metric = str(metrics_l[0].name)

        non_positive = np.asarray(res[primary_metric] <= 0)
        logger.debug(
            "Dropping %s of %s records with non-positive %r",
            non_positive.sum(),
            res.shape[0],
            primary_metric,
        )
        res = res.loc[~non_positive]

    return res
