"""
Loads the cleaned inflow observations (targets) for the lake.

Overview:
The targets file holds observed inflow variables (e.g., TEMP, FLOW) for each named
inflow. Observations before the reference date are read and gaps are linearly
interpolated within each series, so that the temperature model has a complete
record of the previous day's value.

Technical Notes:
- Expected columns: datetime, site_id, inflow_name, variable, observation.
- Interpolation is done per (site_id, inflow_name, variable); values before the
  first or after the last observation take the nearest observed value.

Change Log:
2025-05-07, Initial version of the inflow targets reader.
"""
import pandas as pd

from alexinflow.utils.exceptions import UsageError, DataUnavailableError
from alexinflow.utils.timeseries import aggregate_duplicate_dates, interpolate_with_edge_clamp

__all__ = ["load_inflow_targets", "select_target_series"]

target_columns = ["datetime", "site_id", "inflow_name", "variable", "observation"]


def load_inflow_targets(filename, reference_date):
    """
    Read inflow observations before the reference date and fill gaps.

    Parameters
    ----------
    filename : str
        Path to the targets csv.
    reference_date : str or pd.Timestamp
        Only observations strictly before this date are kept.

    Returns
    -------
    pd.DataFrame
        Columns: date, site_id, inflow_name, variable, observation.
    """
    targets = pd.read_csv(filename)
    missing = [c for c in target_columns if c not in targets.columns]
    if missing:
        raise UsageError(f"Columns {missing} not found in targets file {filename}.")

    reference_date = pd.Timestamp(reference_date).normalize()
    targets["datetime"] = pd.to_datetime(targets["datetime"]).dt.normalize()
    targets = targets.loc[targets["datetime"] < reference_date]
    targets = targets.rename(columns={"datetime": "date"})

    filled = []
    for _, group in targets.groupby(["site_id", "inflow_name", "variable"], sort=False):
        series = group.set_index("date")["observation"].astype(float).sort_index()
        group = group.sort_values("date").copy()
        group["observation"] = interpolate_with_edge_clamp(series).to_numpy()
        filled.append(group)
    if not filled:
        return targets.reset_index(drop=True)
    return pd.concat(filled, ignore_index=True)


def select_target_series(targets, variable="TEMP", inflow_name="murray"):
    """
    Extract one daily observation series from the targets table.

    Parameters
    ----------
    targets : pd.DataFrame
        Output of `load_inflow_targets`.
    variable : str
        Target variable. Default is 'TEMP'.
    inflow_name : str
        Named inflow. Default is 'murray'.

    Returns
    -------
    pd.DataFrame
        Columns: date, observation. One row per date (duplicates averaged).

    Raises
    ------
    DataUnavailableError
        If no observations exist for the variable and inflow.
    """
    subset = targets.loc[(targets["variable"] == variable) &
                         (targets["inflow_name"] == inflow_name), ["date", "observation"]]
    if subset.empty:
        raise DataUnavailableError("inflow targets",
                                   f"no observations for variable '{variable}' and inflow '{inflow_name}'")
    return aggregate_duplicate_dates(subset, date_col="date", value_cols=["observation"])
