"""
Tests of `tidyepi.incidents`
"""

from __future__ import annotations

import re

import numpy as np
import pandas as pd
import pytest

from tidyepi.exceptions import MalformedDateLabelError
from tidyepi.incidents import add_cumulative_by_year, count_incidents
from tidyepi.testing import get_incident_log


@pytest.fixture
def incident_log():
    return get_incident_log(
        {
            ("08/27/2020", "BRONX"): 2,
            ("08/29/2020", "BRONX"): 1,
            ("08/28/2020", "QUEENS"): 3,
        }
    )


def test_count_incidents(incident_log):
    res = count_incidents(incident_log, date_column="OCCUR_DATE")

    exp = pd.Series(
        [2, 3, 1],
        index=pd.date_range("2020-08-27", periods=3, name="date"),
        name="incidents",
    )
    pd.testing.assert_series_equal(res, exp, check_freq=False, check_dtype=False)


def test_count_incidents_by_group(incident_log):
    res = count_incidents(incident_log, date_column="OCCUR_DATE", by=["BORO"])

    assert res.index.names == ["BORO", "date"]
    # Days without incidents are zero, not absent
    np.testing.assert_equal(res.loc["BRONX"].to_numpy(), [2, 0, 1])
    np.testing.assert_equal(res.loc["QUEENS"].to_numpy(), [0, 3, 0])
    assert res.sum() == incident_log.shape[0]


def test_count_incidents_no_fill(incident_log):
    res = count_incidents(
        incident_log, date_column="OCCUR_DATE", by=["BORO"], fill_missing_dates=False
    )

    assert res.shape == (3,)
    assert ("BRONX", pd.Timestamp("2020-08-28")) not in res.index


def test_count_incidents_missing_group_value():
    incident_log = get_incident_log({("01/02/2021", "BRONX"): 1, ("01/02/2021", "X"): 2})
    incident_log.loc[incident_log["BORO"] == "X", "BORO"] = None

    res = count_incidents(incident_log, date_column="OCCUR_DATE", by=["BORO"])

    assert res.loc[("", pd.Timestamp("2021-01-02"))] == 2  # noqa: PLR2004


def test_count_incidents_bad_dates(incident_log):
    incident_log.loc[0, "OCCUR_DATE"] = "2020-08-27"
    incident_log.loc[1, "OCCUR_DATE"] = "not a date"

    error_msg = re.escape("Could not parse 2 label(s)")
    with pytest.raises(MalformedDateLabelError, match=error_msg) as exc_info:
        count_incidents(incident_log, date_column="OCCUR_DATE")

    assert set(exc_info.value.labels) == {"2020-08-27", "not a date"}


def test_count_incidents_missing_column(incident_log):
    error_msg = re.escape("missing the following columns: ['PRECINCT']")
    with pytest.raises(AssertionError, match=error_msg):
        count_incidents(incident_log, date_column="OCCUR_DATE", by=["PRECINCT"])


def test_add_cumulative_by_year():
    daily = pd.DataFrame(
        {"incidents": [1, 2, 3, 4]},
        index=pd.MultiIndex.from_product(
            [["BRONX"], pd.date_range("2020-12-30", periods=4)], names=["BORO", "date"]
        ),
    )

    res = add_cumulative_by_year(daily, column="incidents")

    # Resets at the start of each year
    np.testing.assert_equal(res["incidents_year_to_date"].to_numpy(), [1, 3, 3, 7])
