"""
Pipelines which compose the individual steps

Each step produces a fresh table which is consumed by the next step.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal

import attr
import pandas as pd
from attrs import define, field

from tidyepi.aggregation import GroupBy, add_per_capita, aggregate_metrics
from tidyepi.assertions import (
    assert_data_is_all_numeric,
    assert_has_columns,
    assert_index_is_multiindex,
)
from tidyepi.incidents import add_cumulative_by_year, count_incidents
from tidyepi.joining import join_metrics
from tidyepi.reshaping import melt_wide_table
from tidyepi.smoothing import smooth_timeseries
from tidyepi.trend import fit_trends
from tidyepi.yearly import normalise_by_year

logger = logging.getLogger(__name__)


def validate_window(instance: Any, attribute: attr.Attribute[Any], value: int) -> None:
    """
    Validate a smoothing window length

    Raises
    ------
    TypeError
        `value` is not an integer

    ValueError
        `value` is less than one
    """
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"`{attribute.name}` must be an integer, received {value!r}"
        raise TypeError(msg)

    if value < 1:
        msg = f"`{attribute.name}` must be at least 1, received {value}"
        raise ValueError(msg)


@define
class CaseTrendsResult:
    """
    Result of running [CaseTrendsPipeline][(m).]
    """

    combined: pd.DataFrame
    """
    Combined records, one row per (identity, date)
    """

    aggregated: pd.DataFrame
    """
    One row per (group, date)

    Holds the cumulative metrics, their increments,
    the smoothed increments, per capita metrics (if population was supplied)
    and the trend in each smoothed increment.
    """

    trend_parameters: dict[str, pd.DataFrame]
    """
    Parameters of the trend fitted to each smoothed increment, per group
    """


@define
class CaseTrendsPipeline:
    """
    Pipeline from wide case (and death) tables to aggregated, smoothed trends
    """

    identity_columns: list[str]
    """
    Columns in the wide tables which identify each row
    """

    metrics: list[str] = field(factory=lambda: ["cases", "deaths"])
    """
    Names of the metrics

    The first metric is the primary metric,
    records where it is not positive are dropped.
    """

    drop_columns: list[str] = field(factory=list)
    """
    Columns in the wide tables which are neither identity nor dates
    """

    group_by: GroupBy = None
    """
    How to group records for aggregation (see [GroupBy][(p).aggregation.])
    """

    smoothing_window: int = field(default=7, validator=validate_window)
    """
    Length of the window used for smoothing the increments
    """

    population_column: str = "population"
    """
    Column in the population lookup which holds the population
    """

    per_capita: float = 100_000
    """
    Number of people per capita metrics are expressed relative to
    """

    on_missing_population: Literal["ignore", "warn", "raise"] = "warn"
    """
    What to do if identities have no match in the population lookup
    """

    date_level: str = "date"
    """
    Name of the date level
    """

    group_level: str = "group"
    """
    Name of the group level, if `group_by` is `None` or a callable
    """

    global_label: str = "ALL"
    """
    Label of the single group if `group_by` is `None`
    """

    incremental_prefix: str = "new_"
    """
    Prefix used to name the increments of the metrics
    """

    run_checks: bool = True
    """
    If `True`, run checks on the output data
    """

    progress: bool = False
    """
    Should progress bars be shown for each operation?
    """

    n_processes: int | None = None
    """
    Number of processes to use for parallel processing.

    Set to `None` to process in serial.
    """

    @metrics.validator
    def validate_metrics(
        self, attribute: attr.Attribute[Any], value: list[str]
    ) -> None:
        """
        Validate the metrics
        """
        if not value:
            msg = "At least one metric is required"
            raise ValueError(msg)

        if len(set(value)) != len(value):
            msg = f"Metric names must be unique, received {value}"
            raise ValueError(msg)

    def __call__(
        self,
        wide_tables: Mapping[str, pd.DataFrame],
        population: pd.DataFrame | None = None,
    ) -> CaseTrendsResult:
        """
        Run the pipeline

        Parameters
        ----------
        wide_tables
            Wide table for each metric

        population
            Population lookup, indexed by (a subset of) the identity columns

        Returns
        -------
        :
            Result of running the pipeline

        Raises
        ------
        MalformedDateLabelError
            A wide table has a column which cannot be interpreted as a date

        JoinKeyCollisionError
            A source has duplicate keys
        """
        missing_tables = [m for m in self.metrics if m not in wide_tables]
        if missing_tables:
            msg = f"No wide table supplied for {missing_tables}"
            raise KeyError(msg)

        observations = [
            melt_wide_table(
                wide_tables[metric],
                identity_columns=self.identity_columns,
                metric_name=metric,
                drop_columns=self.drop_columns,
                date_level=self.date_level,
            )
            for metric in self.metrics
        ]

        lookup = None
        if population is not None:
            assert_has_columns(population, [self.population_column])
            lookup = population[[self.population_column]]

        combined = join_metrics(
            observations,
            lookup=lookup,
            primary_metric=self.metrics[0],
            lookup_name="population",
            on_missing_lookup=self.on_missing_population,
        )

        aggregated = aggregate_metrics(
            combined,
            metrics=self.metrics,
            group_by=self.group_by,
            date_level=self.date_level,
            group_level=self.group_level,
            global_label=self.global_label,
            lookup_columns=[self.population_column],
            incremental_prefix=self.incremental_prefix,
        )

        incremental = [f"{self.incremental_prefix}{m}" for m in self.metrics]
        aggregated = smooth_timeseries(
            aggregated,
            columns=incremental,
            window=self.smoothing_window,
            date_level=self.date_level,
            progress=self.progress,
            n_processes=self.n_processes,
        )

        if self.population_column in aggregated.columns:
            aggregated = add_per_capita(
                aggregated,
                metrics=[*self.metrics, *incremental],
                population_column=self.population_column,
                per=self.per_capita,
            )

        trend_parameters = {}
        for column in incremental:
            smoothed_column = f"{column}_smoothed"
            trend = fit_trends(aggregated, smoothed_column, date_level=self.date_level)
            aggregated[trend.predicted.name] = trend.predicted
            trend_parameters[smoothed_column] = trend.parameters

        if self.run_checks:
            assert_index_is_multiindex(aggregated)
            assert_data_is_all_numeric(aggregated)
            if aggregated.index.duplicated().any():
                msg = "The aggregated output is not uniquely keyed by (group, date)"
                raise AssertionError(msg)

        return CaseTrendsResult(
            combined=combined,
            aggregated=aggregated,
            trend_parameters=trend_parameters,
        )


@define
class IncidentTrendsResult:
    """
    Result of running [IncidentTrendsPipeline][(m).]
    """

    daily: pd.DataFrame
    """
    Daily counts, their smoothed values and the year-to-date totals
    """

    normalised: pd.DataFrame
    """
    Daily values annotated with year and day of year,
    rescaled to [0, 1] within each year
    """


@define
class IncidentTrendsPipeline:
    """
    Pipeline from an incident log to smoothed, year-normalised daily counts
    """

    date_column: str
    """
    Column in the incident log which holds the date of each incident
    """

    by: list[str] = field(factory=list)
    """
    Categorical columns by which to split the counts
    """

    metric_name: str = "incidents"
    """
    Name of the daily count
    """

    date_format: str | None = "%m/%d/%Y"
    """
    Format of the dates in the incident log
    """

    smoothing_window: int = field(default=31, validator=validate_window)
    """
    Length of the window used for smoothing the daily counts
    """

    on_degenerate: Literal["nan", "raise"] = "nan"
    """
    What to do if a year's smoothed values are flat
    (see [normalise_by_year][(p).yearly.])
    """

    date_level: str = "date"
    """
    Name of the date level
    """

    progress: bool = False
    """
    Should progress bars be shown for each operation?
    """

    n_processes: int | None = None
    """
    Number of processes to use for parallel processing.

    Set to `None` to process in serial.
    """

    def __call__(self, incident_log: pd.DataFrame) -> IncidentTrendsResult:
        """
        Run the pipeline

        Parameters
        ----------
        incident_log
            Incident log, one row per incident

        Returns
        -------
        :
            Result of running the pipeline

        Raises
        ------
        MalformedDateLabelError
            Some of the incident dates could not be parsed
        """
        counts = count_incidents(
            incident_log,
            date_column=self.date_column,
            by=self.by,
            metric_name=self.metric_name,
            date_format=self.date_format,
            date_level=self.date_level,
        )

        daily = smooth_timeseries(
            counts.to_frame(),
            columns=[self.metric_name],
            window=self.smoothing_window,
            date_level=self.date_level,
            progress=self.progress,
            n_processes=self.n_processes,
        )
        daily = add_cumulative_by_year(
            daily, column=self.metric_name, date_level=self.date_level
        )

        normalised = normalise_by_year(
            daily[[self.metric_name, f"{self.metric_name}_smoothed"]],
            raw_column=self.metric_name,
            smoothed_column=f"{self.metric_name}_smoothed",
            date_level=self.date_level,
            on_degenerate=self.on_degenerate,
        )

        return IncidentTrendsResult(daily=daily, normalised=normalised)
