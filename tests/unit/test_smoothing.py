"""
Tests of `tidyepi.smoothing`
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tidyepi.smoothing import centered_moving_average, smooth_series, smooth_timeseries

RNG = np.random.default_rng(seed=20200122)


def test_centered_moving_average_known_sequence():
    res = centered_moving_average([1, 2, 3, 4, 5, 6, 7], window=3)

    # Edges: clamped windows
    np.testing.assert_allclose(res[0], (1 + 2) / 2)
    np.testing.assert_allclose(res[6], (6 + 7) / 2)
    # Interior: simple centred three-point averages
    np.testing.assert_allclose(res[1], (1 + 2 + 3) / 3)
    np.testing.assert_allclose(res[2], (2 + 3 + 4) / 3)
    np.testing.assert_allclose(res[3], (3 + 4 + 5) / 3)
    np.testing.assert_allclose(res[5], (5 + 6 + 7) / 3)


def test_centered_moving_average_wider_window_edges():
    values = np.array([4.0, 8.0, 6.0, -1.0, 3.0, 10.0, 2.0, 5.0])

    res = centered_moving_average(values, window=5)

    exp = np.array(
        [
            values[:3].mean(),
            values[:4].mean(),
            values[0:5].mean(),
            values[1:6].mean(),
            values[2:7].mean(),
            values[3:8].mean(),
            values[4:].mean(),
            values[5:].mean(),
        ]
    )
    np.testing.assert_allclose(res, exp)


@pytest.mark.parametrize("window", (3, 5, 7, 15))
def test_centered_moving_average_matches_brute_force(window):
    values = RNG.integers(0, 1000, size=200).astype(float)

    res = centered_moving_average(values, window=window)

    exp = pd.Series(values).rolling(window, center=True, min_periods=1).mean()
    np.testing.assert_allclose(res, exp.to_numpy(), rtol=1e-10)


@pytest.mark.parametrize("n", (1, 2, 5, 7, 30))
@pytest.mark.parametrize("window", (-3, 0, 1, 2, 3, 4, 7, 30, 100))
def test_centered_moving_average_length(n, window):
    values = RNG.random(n)

    res = centered_moving_average(values, window=window)

    assert res.shape == values.shape
    assert np.isfinite(res).all()


@pytest.mark.parametrize("window", (-1, 0, 1))
def test_centered_moving_average_no_smoothing(window):
    values = np.array([3.0, 1.0, 4.0, 1.0, 5.0])

    res = centered_moving_average(values, window=window)

    np.testing.assert_equal(res, values)


def test_centered_moving_average_window_longer_than_series():
    values = np.array([3.0, 1.0, 4.0])

    res = centered_moving_average(values, window=4)

    np.testing.assert_equal(res, values)


def test_centered_moving_average_window_equal_to_series():
    values = np.array([3.0, 1.0, 4.0, 1.0, 5.0])

    res = centered_moving_average(values, window=5)

    np.testing.assert_allclose(
        res,
        [
            values[:3].mean(),
            values[:4].mean(),
            values.mean(),
            values[1:].mean(),
            values[2:].mean(),
        ],
    )


def test_centered_moving_average_does_not_modify_input():
    values = np.array([3.0, 1.0, 4.0, 1.0, 5.0])
    values_orig = values.copy()

    centered_moving_average(values, window=3)

    np.testing.assert_equal(values, values_orig)


def test_centered_moving_average_nan_is_an_error():
    with pytest.raises(ValueError, match="must not contain NaN"):
        centered_moving_average([1.0, np.nan, 3.0], window=3)


def test_smooth_series_skips_undefined():
    values = pd.Series([np.nan, 2.0, 4.0, 6.0, np.nan, 8.0])

    res = smooth_series(values, window=3)

    assert res.shape == values.shape
    assert np.isnan(res.iloc[0])
    assert np.isnan(res.iloc[4])
    np.testing.assert_allclose(
        res.iloc[[1, 2, 3, 5]].to_numpy(),
        centered_moving_average([2.0, 4.0, 6.0, 8.0], window=3),
    )


def test_smooth_series_all_undefined():
    values = pd.Series([np.nan, np.nan])

    res = smooth_series(values, window=3)

    assert res.isna().all()


@pytest.mark.parametrize("n_processes", (None, 2))
def test_smooth_timeseries_groups_independent(n_processes):
    dates = pd.date_range("2020-03-01", periods=6)
    a = np.array([1.0, 4.0, 2.0, 8.0, 5.0, 7.0])
    b = np.array([10.0, 10.0, 30.0, 20.0, 40.0, 50.0])
    df = pd.DataFrame(
        {"new_cases": np.concatenate([b, a])},
        index=pd.MultiIndex.from_product([["B", "A"], dates], names=["group", "date"]),
    )

    res = smooth_timeseries(df, columns=["new_cases"], window=3, n_processes=n_processes)

    assert res.shape == (12, 2)
    np.testing.assert_allclose(
        res.loc["A", "new_cases_smoothed"].to_numpy(), centered_moving_average(a, 3)
    )
    np.testing.assert_allclose(
        res.loc["B", "new_cases_smoothed"].to_numpy(), centered_moving_average(b, 3)
    )
    # Original values untouched
    np.testing.assert_equal(res.loc["A", "new_cases"].to_numpy(), a)


def test_smooth_timeseries_date_only_index():
    dates = pd.date_range("2020-03-01", periods=5, name="date")
    df = pd.DataFrame({"incidents": [1.0, 3.0, 2.0, 4.0, 3.0]}, index=dates)

    res = smooth_timeseries(df, columns=["incidents"], window=3, suffix="_ma")

    np.testing.assert_allclose(
        res["incidents_ma"].to_numpy(), [2.0, 2.0, 3.0, 3.0, 3.5]
    )
