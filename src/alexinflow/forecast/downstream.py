"""
Routes upstream flow to the lake inflow using the loss and travel time models.

Overview:
Each upstream daily flow arrives at the lake after a flow-dependent travel time,
reduced by a flow- and month-dependent loss. Arrivals that land on the same day are
averaged, and days that receive no arrival are linearly interpolated between their
neighbours so that every requested date has a prediction.

Key Steps:
1. Predict loss (by month) and travel time for each upstream day, with optional
   residual noise.
2. Shift each day by its rounded travel time.
3. Average arrivals per downstream date and join onto the requested dates.
4. Interpolate missing days (edges take the nearest value) and subtract the loss.

Technical Notes:
- Travel times are rounded half-to-even (numpy rounding).
- "historical" as `forecast_dates` returns predictions for the input dates.

Change Log:
2025-05-07, Initial version of the downstream routing.
"""
import numpy as np
import pandas as pd

from alexinflow.utils.exceptions import UsageError
from alexinflow.utils.timeseries import (aggregate_duplicate_dates, normalize_dates,
                                         outer_join_dates, interpolate_with_edge_clamp)

__all__ = ["predict_downstream", "resolve_forecast_dates"]


def resolve_forecast_dates(forecast_dates, data_dates):
    """
    Turn the `forecast_dates` argument into a DatetimeIndex of unique dates.

    Parameters
    ----------
    forecast_dates : str, list, pd.DatetimeIndex or pd.DataFrame
        "historical" for the input dates, a sequence of dates, or a frame with a
        `datetime` column.
    data_dates : array-like
        Dates of the upstream data.

    Returns
    -------
    pd.DatetimeIndex
    """
    if isinstance(forecast_dates, str):
        if forecast_dates != "historical":
            raise UsageError(f"forecast_dates must be 'historical' or a set of dates, got '{forecast_dates}'.")
        dates = data_dates
    elif isinstance(forecast_dates, pd.DataFrame):
        if "datetime" not in forecast_dates.columns:
            raise UsageError("forecast_dates frame must have a 'datetime' column.")
        dates = forecast_dates["datetime"]
    else:
        dates = forecast_dates
    return normalize_dates(dates).unique().sort_values()


def predict_downstream(data,
                       forecast_dates,
                       loss_model,
                       tt_model,
                       loss_unc=True,
                       tt_unc=True,
                       upstream_col="flow",
                       rng=None):
    """
    Predict the daily inflow at the lake from upstream flow.

    Parameters
    ----------
    data : pd.DataFrame
        Upstream flow with columns `datetime` and `upstream_col` (ML/d).
    forecast_dates : str or array-like
        "historical" or the dates to predict (see `resolve_forecast_dates`).
    loss_model : RegressionModel
        Loss model, grouped by month.
    tt_model : RegressionModel
        Travel time model (days).
    loss_unc, tt_unc : bool
        Add Gaussian noise with the model's residual sd to each prediction. Default True.
    upstream_col : str
        Name of the upstream flow column. Default is 'flow'.
    rng : np.random.Generator, optional
        Random generator for the prediction noise.

    Returns
    -------
    pd.DataFrame
        Columns: datetime, prediction (ML/d), one row per requested date.
    """
    for col in ("datetime", upstream_col):
        if col not in data.columns:
            raise UsageError(f"Column '{col}' not found in upstream data.")
    rng = rng if rng is not None else np.random.default_rng()

    data = data[["datetime", upstream_col]].copy()
    data["datetime"] = normalize_dates(data["datetime"])
    dates = resolve_forecast_dates(forecast_dates, data["datetime"])

    data = data.dropna(subset=[upstream_col]).sort_values("datetime").reset_index(drop=True)
    if data.empty:
        raise UsageError("No upstream flow values to route downstream.")

    flow = data[upstream_col].to_numpy(dtype=float)
    months = data["datetime"].dt.month.to_numpy()

    loss = loss_model.predict(flow, group=months)
    if loss_unc:
        loss = loss + rng.normal(0.0, loss_model.residual_sd, size=len(loss))

    travel_time = tt_model.predict(flow)
    if tt_unc:
        travel_time = travel_time + rng.normal(0.0, tt_model.residual_sd, size=len(travel_time))
    travel_time = np.round(travel_time).astype(int)

    arrivals = pd.DataFrame({
        "datetime": data["datetime"] + pd.to_timedelta(travel_time, unit="D"),
        "flow": flow,
        "loss": loss,
    })
    arrivals = aggregate_duplicate_dates(arrivals, value_cols=["flow", "loss"])
    arrivals = outer_join_dates(arrivals, dates).set_index("datetime")

    flow_down = interpolate_with_edge_clamp(arrivals["flow"])
    loss_down = interpolate_with_edge_clamp(arrivals["loss"])
    prediction = (flow_down - loss_down).loc[dates]

    return pd.DataFrame({"datetime": dates, "prediction": prediction.to_numpy()})
