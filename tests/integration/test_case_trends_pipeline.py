"""
Integration tests of `tidyepi.pipeline.CaseTrendsPipeline`
"""

from __future__ import annotations

import logging
import re

import numpy as np
import pandas as pd
import pytest

from tidyepi.exceptions import JoinKeyCollisionError, MalformedDateLabelError
from tidyepi.pipeline import CaseTrendsPipeline
from tidyepi.smoothing import centered_moving_average
from tidyepi.testing import JHU_DROP_COLUMNS, JHU_IDENTITY_COLUMNS, get_wide_table

DATE_LABELS = ["1/22/20", "1/23/20", "1/24/20", "1/25/20", "1/26/20", "1/27/20"]
DATES = pd.date_range("2020-01-22", periods=len(DATE_LABELS), name="date")


@pytest.fixture
def wide_tables():
    cases = get_wide_table(
        {
            (None, "Afghanistan"): [1, 2, 4, 8, 16, 32],
            ("Victoria", "Australia"): [0, 1, 3, 6, 10, 15],
            ("New South Wales", "Australia"): [1, 1, 2, 3, 5, 8],
        },
        date_labels=DATE_LABELS,
    )
    deaths = get_wide_table(
        {
            (None, "Afghanistan"): [0, 0, 1, 1, 2, 3],
            ("Victoria", "Australia"): [0, 0, 0, 1, 1, 1],
            ("New South Wales", "Australia"): [0, 0, 0, 0, 1, 1],
        },
        date_labels=DATE_LABELS,
    )

    return {"cases": cases, "deaths": deaths}


@pytest.fixture
def population():
    return pd.DataFrame(
        {"population": [38_000_000.0, 25_000_000.0]},
        index=pd.Index(["Afghanistan", "Australia"], name="Country/Region"),
    )


def get_pipeline(**kwargs):
    return CaseTrendsPipeline(
        identity_columns=list(JHU_IDENTITY_COLUMNS),
        drop_columns=list(JHU_DROP_COLUMNS),
        **kwargs,
    )


def test_global(wide_tables):
    res = get_pipeline(smoothing_window=3)(wide_tables)

    # Victoria's first day has zero cases so the record is dropped
    assert ("Victoria", "Australia", DATES[0]) not in res.combined.index
    assert res.combined.shape[0] == 3 * 6 - 1

    aggregated = res.aggregated
    assert aggregated.index.names == ["group", "date"]
    assert aggregated.shape[0] == len(DATES)

    exp_cases = np.array([2, 4, 9, 17, 31, 55], dtype=float)
    np.testing.assert_equal(aggregated["cases"].to_numpy(), exp_cases)
    np.testing.assert_equal(
        aggregated["new_cases"].to_numpy(), np.concatenate([[np.nan], np.diff(exp_cases)])
    )
    # The undefined first increment is skipped, not treated as zero
    assert np.isnan(aggregated["new_cases_smoothed"].iloc[0])
    np.testing.assert_allclose(
        aggregated["new_cases_smoothed"].iloc[1:].to_numpy(),
        centered_moving_average(np.diff(exp_cases), 3),
    )

    assert "new_cases_smoothed_trend" in aggregated.columns
    assert "new_deaths_smoothed_trend" in aggregated.columns
    assert aggregated["new_cases_smoothed_trend"].notna().all()

    params = res.trend_parameters["new_cases_smoothed"]
    assert params.shape[0] == 1
    assert params["status"].iloc[0] == "ok"
    assert params["slope"].iloc[0] > 0

    # No population supplied
    assert "population" not in aggregated.columns
    assert "cases_per_capita" not in aggregated.columns


def test_by_country_with_population(wide_tables, population):
    res = get_pipeline(group_by="Country/Region", smoothing_window=3, per_capita=1_000_000)(
        wide_tables, population=population
    )

    aggregated = res.aggregated
    assert aggregated.index.names == ["Country/Region", "date"]
    assert set(aggregated.index.get_level_values("Country/Region")) == {
        "Afghanistan",
        "Australia",
    }

    np.testing.assert_equal(
        aggregated.loc["Australia", "cases"].to_numpy(), [1, 2, 5, 9, 15, 23]
    )
    # Victoria is absent on the first day so only New South Wales contributes
    np.testing.assert_equal(
        aggregated.loc["Australia", "population"].to_numpy(),
        [25_000_000.0, *([50_000_000.0] * 5)],
    )
    np.testing.assert_allclose(
        aggregated.loc["Afghanistan", "cases_per_capita"].to_numpy(),
        np.array([1, 2, 4, 8, 16, 32]) / 38.0,
    )
    assert "new_deaths_per_capita" in aggregated.columns

    assert res.trend_parameters["new_cases_smoothed"].shape[0] == 2  # noqa: PLR2004


def test_population_missing_warns(wide_tables, population, caplog):
    with caplog.at_level(logging.WARNING, logger="tidyepi.joining"):
        res = get_pipeline(group_by="Country/Region")(
            wide_tables, population=population.loc[["Australia"]]
        )

    assert "have no match in 'population'" in caplog.text
    assert res.aggregated.loc["Afghanistan", "population"].isna().all()
    assert res.aggregated.loc["Afghanistan", "cases_per_capita"].isna().all()


def test_callable_group_by(wide_tables):
    res = get_pipeline(
        group_by=lambda identity: "Victoria" if identity[0] == "Victoria" else "Rest",
        group_level="region",
    )(wide_tables)

    assert res.aggregated.index.names == ["region", "date"]
    np.testing.assert_equal(
        res.aggregated.loc["Victoria", "cases"].to_numpy(), [1, 3, 6, 10, 15]
    )


def test_short_group_trend_not_fitted(wide_tables):
    wide_tables["cases"] = get_wide_table(
        {
            (None, "Afghanistan"): [1, 2, 4, 8, 16, 32],
            # Only one positive value
            ("Victoria", "Australia"): [0, 0, 0, 0, 0, 3],
        },
        date_labels=DATE_LABELS,
    )
    wide_tables["deaths"] = get_wide_table(
        {
            (None, "Afghanistan"): [0, 0, 1, 1, 2, 3],
            ("Victoria", "Australia"): [0, 0, 0, 0, 0, 1],
        },
        date_labels=DATE_LABELS,
    )

    res = get_pipeline(group_by="Country/Region")(wide_tables)

    params = res.trend_parameters["new_cases_smoothed"].reset_index().set_index(
        "Country/Region"
    )
    assert params.loc["Afghanistan", "status"] == "ok"
    assert params.loc["Australia", "status"] == "insufficient-data"
    assert res.aggregated.loc["Australia", "new_cases_smoothed_trend"].isna().all()


def test_malformed_date_label(wide_tables):
    wide_tables["deaths"] = wide_tables["deaths"].rename(columns={"1/24/20": "24 Jan"})

    with pytest.raises(MalformedDateLabelError, match=re.escape("['24 Jan']")):
        get_pipeline()(wide_tables)


def test_duplicate_rows(wide_tables):
    wide_tables["cases"] = pd.concat([wide_tables["cases"], wide_tables["cases"].iloc[[0]]])

    with pytest.raises(JoinKeyCollisionError, match="The keys of 'cases' are not unique"):
        get_pipeline()(wide_tables)


def test_missing_table(wide_tables):
    with pytest.raises(KeyError, match="No wide table supplied"):
        get_pipeline(metrics=["cases", "deaths", "recovered"])(wide_tables)


@pytest.mark.parametrize(
    "smoothing_window, exp_error",
    (
        pytest.param(0, pytest.raises(ValueError, match="must be at least 1"), id="zero"),
        pytest.param(-7, pytest.raises(ValueError, match="must be at least 1"), id="negative"),
        pytest.param(7.0, pytest.raises(TypeError, match="must be an integer"), id="float"),
        pytest.param(True, pytest.raises(TypeError, match="must be an integer"), id="bool"),
    ),
)
def test_invalid_smoothing_window(smoothing_window, exp_error):
    with exp_error:
        get_pipeline(smoothing_window=smoothing_window)


@pytest.mark.parametrize(
    "metrics, error_msg",
    (
        pytest.param([], "At least one metric is required", id="empty"),
        pytest.param(["cases", "cases"], "Metric names must be unique", id="duplicated"),
    ),
)
def test_invalid_metrics(metrics, error_msg):
    with pytest.raises(ValueError, match=error_msg):
        get_pipeline(metrics=metrics)
