"""
Run configuration for the inflow forecasts.

Overview:
`ForecastConfig` is an immutable dataclass holding everything a forecast cycle needs
(reference date, horizon, site, ensemble size, file locations). It is passed
explicitly into every component; nothing in alexinflow reads global state or
environment variables.

Key Steps:
1. Load the FLARE yaml configuration files.
config_dict = load_flare_config("configuration/default/configure_flare.yml",
                                "configuration/default/configure_run.yml")

2. Build the config.
config = ForecastConfig.from_flare_config(config_dict, lake_directory=".")

Technical Notes:
- Either `forecast_horizon` (days) or `end_date` must be given; the other is derived.
  When both are given the end date wins.
- `seed` controls every random draw of the cycle (observation noise, random walk,
  residual noise). None gives a fresh, unseeded generator.

Links:
- FLARE: https://flare-forecast.org

Change Log:
2025-05-07, Initial version of the forecast configuration.
"""
import os
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
import pandas as pd
import yaml

from alexinflow.utils.dates import daily_range
from alexinflow.utils.exceptions import UsageError

__all__ = ["ForecastConfig", "load_flare_config"]


def _deep_merge(base, update):
    """Recursively merge dict `update` into a copy of dict `base`."""
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_flare_config(*filenames):
    """
    Read one or more FLARE yaml files and deep-merge them in order.

    Parameters
    ----------
    *filenames : str
        Paths to yaml files, e.g., configure_flare.yml and configure_run.yml.
        Later files override earlier ones.

    Returns
    -------
    dict
        Merged configuration.
    """
    config = {}
    for filename in filenames:
        with open(filename, "r") as f:
            content = yaml.safe_load(f) or {}
        config = _deep_merge(config, content)
    return config


def _is_missing(value):
    return value is None or (isinstance(value, str) and value.strip().upper() in ("", "NA"))


@dataclass(frozen=True)
class ForecastConfig:
    """
    Immutable settings for one forecast cycle.

    Attributes
    ----------
    reference_date : pd.Timestamp
        First forecast day (FLARE `forecast_start_datetime`), normalized to midnight.
    forecast_horizon : int, optional
        Number of days after the reference date to forecast.
    end_date : pd.Timestamp, optional
        Last forecast day. Derived from `forecast_horizon` when not given.
    site_id : str
        Lake site identifier. Default is 'ALEX'.
    ensemble_size : int
        Number of ensemble members FLARE expects in the inflow files.
    weather_uncertainty : bool
        If False only one weather driver member is used for temperature.
    qaqc_data_directory : str
        Directory with the cleaned targets (e.g., ALEX-targets-inflow.csv).
    helper_data_directory : str
        Directory with the static helper tables (losses, travel times, eflows, entitlements).
    met_drivers_directory : str, optional
        Root of the partitioned weather driver archive.
    upstream_lookback_days : int
        Length of the upstream observation window used to fit the random walk. Default is 60.
    training_years : int
        Years of weather and targets used to train the temperature model. Default is 5.
    seed : int, optional
        Seed for all random draws in the cycle.
    """
    reference_date: pd.Timestamp
    forecast_horizon: Optional[int] = None
    end_date: Optional[pd.Timestamp] = None
    site_id: str = "ALEX"
    ensemble_size: int = 1
    weather_uncertainty: bool = True
    qaqc_data_directory: str = "targets"
    helper_data_directory: str = os.path.join("R", "helper_data")
    met_drivers_directory: Optional[str] = None
    upstream_lookback_days: int = 60
    training_years: int = 5
    seed: Optional[int] = None

    def __post_init__(self):
        reference_date = pd.Timestamp(self.reference_date).normalize()
        object.__setattr__(self, "reference_date", reference_date)

        horizon = self.forecast_horizon
        end_date = self.end_date
        if _is_missing(end_date) and _is_missing(horizon):
            raise UsageError("Either forecast_horizon or end_date must be given.")
        if _is_missing(end_date):
            end_date = reference_date + pd.Timedelta(days=int(horizon))
        else:
            end_date = pd.Timestamp(end_date).normalize()
            horizon = (end_date - reference_date).days
        if end_date < reference_date:
            raise UsageError(f"end_date {end_date.date()} is before reference_date {reference_date.date()}.")

        object.__setattr__(self, "forecast_horizon", int(horizon))
        object.__setattr__(self, "end_date", end_date)

        if int(self.ensemble_size) < 1:
            raise UsageError(f"ensemble_size must be at least 1, got {self.ensemble_size}.")
        if int(self.upstream_lookback_days) < 1:
            raise UsageError("upstream_lookback_days must be positive.")

    @property
    def forecast_dates(self):
        """Daily DatetimeIndex from the reference date to the end date (inclusive)."""
        return daily_range(self.reference_date, self.end_date)

    @property
    def upstream_start(self):
        """First day of the upstream observation window."""
        return self.reference_date - pd.Timedelta(days=self.upstream_lookback_days)

    @property
    def training_start(self):
        """First day of the temperature training window."""
        return self.reference_date - pd.DateOffset(years=self.training_years)

    @property
    def noaa_date(self):
        """Reference date of the weather forecast used (the day before the reference date)."""
        return self.reference_date - pd.Timedelta(days=1)

    def helper_file(self, filename):
        """Full path to a file in the helper data directory."""
        return os.path.join(self.helper_data_directory, filename)

    def targets_file(self, filename=None):
        """Full path to a targets file, default '<site_id>-targets-inflow.csv'."""
        filename = filename or f"{self.site_id}-targets-inflow.csv"
        return os.path.join(self.qaqc_data_directory, filename)

    def make_rng(self):
        """A new numpy Generator seeded from `seed`."""
        return np.random.default_rng(self.seed)

    def with_overrides(self, **kwargs):
        """Return a copy of the config with some fields replaced."""
        return replace(self, **kwargs)

    @classmethod
    def from_flare_config(cls, config, lake_directory=None, **overrides):
        """
        Build the config from a (merged) FLARE configuration dictionary.

        Parameters
        ----------
        config : dict
            FLARE configuration as read by `load_flare_config`.
        lake_directory : str, optional
            Root of the lake directory. Relative paths are resolved against it.
        **overrides
            Any ForecastConfig field, taking precedence over the FLARE values.

        Returns
        -------
        ForecastConfig
        """
        run_config = config.get("run_config", {})
        if _is_missing(run_config.get("forecast_start_datetime")):
            raise UsageError("run_config.forecast_start_datetime is required.")

        def _path(value, default):
            value = default if _is_missing(value) else value
            if lake_directory is not None and not os.path.isabs(value):
                value = os.path.join(lake_directory, value)
            return value

        file_path = config.get("file_path", {})
        horizon = run_config.get("forecast_horizon")
        end_date = run_config.get("end_datetime")
        kwargs = dict(
            reference_date=run_config["forecast_start_datetime"],
            forecast_horizon=None if _is_missing(horizon) else int(horizon),
            end_date=None if _is_missing(end_date) else end_date,
            site_id=config.get("location", {}).get("site_id", "ALEX"),
            ensemble_size=int(config.get("da_setup", {}).get("ensemble_size", 1)),
            weather_uncertainty=bool(config.get("uncertainty", {}).get("weather", True)),
            qaqc_data_directory=_path(file_path.get("qaqc_data_directory"), "targets"),
            helper_data_directory=_path(file_path.get("helper_data_directory"),
                                        os.path.join("R", "helper_data")),
            met_drivers_directory=None if _is_missing(file_path.get("met_drivers_directory"))
            else _path(file_path.get("met_drivers_directory"), ""),
        )
        kwargs.update(overrides)
        return cls(**kwargs)
