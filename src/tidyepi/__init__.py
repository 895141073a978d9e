"""
Tidy-data transformation and trend analysis of epidemiological and incident timeseries.
"""

import importlib.metadata

__version__ = importlib.metadata.version("tidyepi")
