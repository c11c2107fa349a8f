import warnings

import numpy as np
import pandas as pd
import pytest

from alexinflow import ForecastConfig
from alexinflow.pre.regression import RegressionSpec, fit_regression
from alexinflow.utils.dates import month_names

REFERENCE_DATE = pd.Timestamp("2025-03-01")


def make_bulk_export(dates, values):
    """Build the text of a WaterDataSA bulk export csv."""
    header = ["Bulk Export", "Dataset: test", "Station: test", "Units: ML/day",
              "Timestamp (UTC+09:30),Value"]
    rows = [f"{pd.Timestamp(d):%Y-%m-%d} 09:00,{v}" for d, v in zip(dates, values)]
    return "\n".join(header + rows) + "\n"


def make_fetcher(values_by_date):
    """Fetcher serving a fixed {date: value} series, restricted to the requested window."""
    series = pd.Series(list(values_by_date.values()),
                       index=pd.DatetimeIndex(list(values_by_date.keys())),
                       dtype=float).sort_index()
    calls = []

    def fetcher(dataset_name, start_date, end_date):
        calls.append((dataset_name, start_date, end_date))
        window = series.loc[pd.Timestamp(start_date):pd.Timestamp(end_date)]
        return make_bulk_export(window.index, window.to_numpy())

    fetcher.calls = calls
    return fetcher


def constant_model(response, predictor, value, group=None, degree=1):
    """Fit a regression to a constant response so that it predicts `value` everywhere."""
    x = np.linspace(500.0, 20000.0, 24)
    data = pd.DataFrame({predictor: x, response: value})
    if group is not None:
        data[group] = np.tile(np.arange(1, 13), 2)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return fit_regression(data, RegressionSpec(response, predictor, group=group, degree=degree))


@pytest.fixture
def config():
    return ForecastConfig(reference_date=REFERENCE_DATE, forecast_horizon=10, seed=42)


@pytest.fixture
def constant_loss_model():
    return constant_model("loss", "QSA", 50.0, group="month")


@pytest.fixture
def constant_tt_model():
    return constant_model("travel_time", "flow", 6.0, degree=3)


@pytest.fixture
def helper_dir(tmp_path):
    """Helper tables with the layout of the lake's R/helper_data directory."""
    helper = tmp_path / "helper_data"
    helper.mkdir()

    losses = pd.DataFrame({"month": month_names})
    for flow in (5, 10, 20, 40):
        losses[f"GLd_{flow}"] = [1.5 + 0.05 * flow + 0.1 * i for i in range(12)]
    losses.to_csv(helper / "modelled_losses.csv", index=False)

    flows = np.array([1000, 3000, 5000, 10000, 20000, 40000, 60000, 80000])
    pd.DataFrame({"QSA_MLd": flows,
                  "travel_time": 20 - 12 * flows / flows.max()}).to_csv(
        helper / "travel_times.csv", index=False)

    pd.DataFrame({"month": month_names, "eflow_GLm": [31.0] * 12}).to_csv(
        helper / "eflow.csv", index=False)
    pd.DataFrame({"month": month_names, "ent_MLd": [500.0] * 12}).to_csv(
        helper / "entitlement_flow.csv", index=False)
    return helper


@pytest.fixture
def constant_upstream_fetcher():
    dates = pd.date_range(REFERENCE_DATE - pd.Timedelta(days=90), REFERENCE_DATE, freq="D")
    return make_fetcher(dict(zip(dates, [1000.0] * len(dates))))
