"""
Type hints that are used throughout
"""

from __future__ import annotations

import pandas as pd
from typing_extensions import TypeAlias

TimeseriesDataFrame: TypeAlias = pd.DataFrame
"""
Type alias for the wide [pandas.DataFrame][pd.DataFrame] shape

For typing purposes, this is just a direct alias of [pandas.DataFrame][pd.DataFrame].
However, the point of defining this
is to provide greater clarity of the kind of data we expect.

We expect a collection of timeseries.
The columns are calendar dates (a [pd.DatetimeIndex][pandas.DatetimeIndex]).
The index contains the identity of each timeseries.
As a result, the data itself should be numerical only.

```python
                            2020-01-22  2020-01-23
country     province
Australia   Victoria               0.0         1.0
Canada      Ontario                1.0         3.0
```
"""

ObservationSeries: TypeAlias = pd.Series
"""
Type alias for the long (tidy) shape

One value per (identity, date).
The index is a [pd.MultiIndex][pandas.MultiIndex]
made up of the identity levels followed by a date level.
The name of the series is the name of the metric.

```python
country     province  date
Australia   Victoria  2020-01-22    0.0
                      2020-01-23    1.0
Canada      Ontario   2020-01-22    1.0
                      2020-01-23    3.0
Name: cases, dtype: float64
```
"""
