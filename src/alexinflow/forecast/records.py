"""
Forecast record tables shared by the FLOW and TEMP inflow forecasts.

Technical Notes:
- Every forecast is a long table with the columns in `FORECAST_COLUMNS`; one row
  per (datetime, parameter).
- `replicate_ensemble` copies members so that a forecast with few members has
  the ensemble size FLARE expects.

Change Log:
2025-05-07, Initial version of the forecast record helpers.
"""
import math

import pandas as pd

from alexinflow.utils.exceptions import UsageError

__all__ = [
    "FORECAST_COLUMNS",
    "validate_forecast_records",
    "replicate_ensemble",
    "combine_inflow_forecasts",
    "save_forecast",
]

FORECAST_COLUMNS = ["datetime", "prediction", "reference_date", "model_id",
                    "variable", "flow_number", "parameter"]


def validate_forecast_records(df):
    """
    Check a forecast table has all record columns and return them in order.

    Raises
    ------
    UsageError
        If a column is missing.
    """
    missing = [c for c in FORECAST_COLUMNS if c not in df.columns]
    if missing:
        raise UsageError(f"Forecast table is missing columns {missing}.")
    return df[FORECAST_COLUMNS].reset_index(drop=True)


def replicate_ensemble(df, target):
    """
    Copy ensemble members so the forecast has exactly `target` members.

    Members are first re-indexed to 0..c-1 (in sorted order). Each member is copied
    `ceil(target / c)` times, copy k of member i getting parameter `k + i * copies`,
    and parameters >= target are dropped.

    Parameters
    ----------
    df : pd.DataFrame
        Forecast records.
    target : int
        Required number of ensemble members.

    Returns
    -------
    pd.DataFrame
        Records sorted by datetime then parameter.
    """
    target = int(target)
    if target < 1:
        raise UsageError(f"Target ensemble size must be at least 1, got {target}.")
    df = validate_forecast_records(df)
    members = sorted(df["parameter"].unique())
    if not members:
        return df
    member_index = {m: i for i, m in enumerate(members)}
    copies = math.ceil(target / len(members))

    index = df["parameter"].map(member_index)
    replicated = []
    for k in range(copies):
        copy = df.copy()
        copy["parameter"] = k + index * copies
        replicated.append(copy)
    out = pd.concat(replicated, ignore_index=True)
    out = out.loc[out["parameter"] < target].copy()
    out["parameter"] = out["parameter"].astype(int)
    return out.sort_values(["datetime", "parameter"]).reset_index(drop=True)


def combine_inflow_forecasts(flow_fc, temp_fc):
    """Stack the FLOW and TEMP forecasts into one table ordered by variable, datetime, parameter."""
    combined = pd.concat([validate_forecast_records(flow_fc),
                          validate_forecast_records(temp_fc)], ignore_index=True)
    return combined.sort_values(["variable", "datetime", "parameter"]).reset_index(drop=True)


def save_forecast(df, filename):
    """
    Write forecast records to csv with ISO dates.

    Parameters
    ----------
    df : pd.DataFrame
        Forecast records.
    filename : str
        Output csv path.
    """
    out = validate_forecast_records(df).copy()
    for col in ("datetime", "reference_date"):
        out[col] = pd.to_datetime(out[col]).dt.strftime("%Y-%m-%d")
    out.to_csv(filename, index=False)
    print(f"Forecast saved to {filename}")
