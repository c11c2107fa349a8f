"""
This file control the interface of the alexinflow module.

Overview:
The inflow forecasts for Lake Alexandrina (FLOW and TEMP) and the preprocessors
they depend on are accessed through this module.

Change Log:
2025-05-07, Initial public interface.
"""
from alexinflow.config import ForecastConfig, load_flare_config
from alexinflow.utils.exceptions import UsageError, DataUnavailableError, NumericDegeneracyWarning
from alexinflow import pre
from alexinflow.forecast import *
