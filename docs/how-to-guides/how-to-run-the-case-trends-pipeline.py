# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: percent
#       format_version: '1.3'
#       jupytext_version: 1.16.6
#   kernelspec:
#     display_name: Python 3 (ipykernel)
#     language: python
#     name: python3
# ---

# %% [markdown]
# # How to run the case trends pipeline
#
# Here we demonstrate how to go from wide tables of cumulative cases and deaths
# (one row per location, one column per date)
# to aggregated, smoothed daily increments with trend lines.
# We also show the incident-log variant,
# which goes from one row per incident to year-normalised daily counts.

# %% [markdown]
# ## Imports

# %%
import logging

import numpy as np
import pandas as pd

from tidyepi.pipeline import CaseTrendsPipeline, IncidentTrendsPipeline
from tidyepi.testing import get_incident_log

# %%
logging.basicConfig(level=logging.INFO)

# %% [markdown]
# ## Starting point
#
# The starting point is one wide table per metric.
# Each row is identified by its identity columns
# (here province/state and country/region).
# Every other column must either be declared as a column to drop
# or be a date label like "1/22/20".
# Undeclared columns which aren't dates are an error,
# we never guess which columns hold data.

# %%
# All the code to generate these demo tables
# (you would normally read the published tables instead).
date_labels = [f"{d.month}/{d.day}/{d.year % 100}" for d in pd.date_range("2020-01-22", periods=60)]
growth = np.cumsum(np.round(np.exp(np.linspace(0.0, 4.0, len(date_labels)))))

identities = [
    (np.nan, "Afghanistan", 33.9, 67.7),
    ("Victoria", "Australia", -37.8, 144.9),
    ("New South Wales", "Australia", -33.9, 151.2),
]


def make_wide(scale):
    """Make a demo wide table"""
    return pd.DataFrame(
        [
            [province, country, lat, long, *(growth * scale * (i + 1)).round()]
            for i, (province, country, lat, long) in enumerate(identities)
        ],
        columns=["Province/State", "Country/Region", "Lat", "Long", *date_labels],
    )


wide_tables = {"cases": make_wide(1.0), "deaths": make_wide(0.02)}
wide_tables["cases"].iloc[:, :8]

# %% [markdown]
# An optional population lookup can be supplied.
# It can be keyed on any subset of the identity columns
# and is joined by exact matching of the identity values.

# %%
population = pd.DataFrame(
    {"population": [38_928_341.0, 25_499_881.0]},
    index=pd.Index(["Afghanistan", "Australia"], name="Country/Region"),
)
population

# %% [markdown]
# ## Run
#
# The pipeline is configured up front, then called with the data.
# Here we group by country.
# Passing `group_by=None` aggregates everything into a single global series,
# a callable can be used for arbitrary groupings.

# %%
case_trends = CaseTrendsPipeline(
    identity_columns=["Province/State", "Country/Region"],
    drop_columns=["Lat", "Long"],
    group_by="Country/Region",
    smoothing_window=7,
)
res = case_trends(wide_tables, population=population)

# %% [markdown]
# The combined records have one row per identity and date,
# with one column per metric plus the looked-up population.

# %%
res.combined

# %% [markdown]
# The aggregated data has one row per group and date.
# It holds the cumulative values, the daily increments,
# the smoothed increments, per capita values and the trend lines.

# %%
res.aggregated

# %%
res.trend_parameters["new_cases_smoothed"]

# %% [markdown]
# ## Incident logs
#
# Incident logs have one row per event.
# These are counted per day (days without incidents count as zero),
# smoothed, then rescaled to [0, 1] within each year
# so that years can be compared with each other.

# %%
rng = np.random.default_rng(seed=0)
incident_log = get_incident_log(
    {
        (d.strftime("%m/%d/%Y"), boro): int(rng.poisson(4 + 2 * np.sin(d.dayofyear / 58)))
        for d in pd.date_range("2019-01-01", "2020-12-31")
        for boro in ["BRONX", "QUEENS"]
    }
)
incident_log

# %%
incident_trends = IncidentTrendsPipeline(
    date_column="OCCUR_DATE", by=["BORO"], smoothing_window=31
)
incident_res = incident_trends(incident_log)
incident_res.normalised
