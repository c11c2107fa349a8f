"""
Monthly physical limits on the flow across the SA border.

Overview:
South Australia's monthly flow is bounded below by its entitlement and above by the
entitlement plus the environmental flow allocation. The random-walk forecast of
upstream flow is confined to these bounds.

Technical Notes:
- eflow table: columns `month` (name) and `eflow_GLm` (GL/month), converted to ML/d.
- entitlement table: columns `month` (name) and `ent_MLd` (already ML/d).
- min = entitlement, max = entitlement + eflow.
- Months with an incomplete entry have no bound; clipping issues a
  NumericDegeneracyWarning and leaves those values unchanged.

Change Log:
2025-05-07, Initial version of the monthly flow bounds.
"""
import warnings
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
import pandas as pd

from alexinflow.utils.constants import gld_to_mld
from alexinflow.utils.dates import month_to_number, monthly_volume_to_daily
from alexinflow.utils.exceptions import UsageError, NumericDegeneracyWarning

__all__ = ["BoundTable", "load_flow_bounds"]


@dataclass(frozen=True)
class BoundTable:
    """
    Mapping from month (1-12) to (min, max) flow in ML/d.

    Attributes
    ----------
    bounds : Mapping[int, tuple]
        Read-only {month: (min, max)}.
    """
    bounds: MappingProxyType

    def __post_init__(self):
        checked = {}
        for month, (lo, hi) in dict(self.bounds).items():
            month = month_to_number(month)
            lo, hi = float(lo), float(hi)
            if lo > hi:
                raise UsageError(f"Flow bounds for month {month} have min {lo} > max {hi}.")
            checked[month] = (lo, hi)
        object.__setattr__(self, "bounds", MappingProxyType(checked))

    @classmethod
    def from_frame(cls, df, month_col="month", min_col="min", max_col="max"):
        """Build a BoundTable from a frame with month, min and max columns, skipping incomplete rows."""
        for col in (month_col, min_col, max_col):
            if col not in df.columns:
                raise UsageError(f"Column '{col}' not found in flow bounds table.")
        complete = df.dropna(subset=[month_col, min_col, max_col])
        return cls({month_to_number(m): (lo, hi) for m, lo, hi in
                    zip(complete[month_col], complete[min_col], complete[max_col])})

    def to_frame(self):
        """Return the bounds as a DataFrame with columns month, min, max."""
        rows = [(m, lo, hi) for m, (lo, hi) in sorted(self.bounds.items())]
        return pd.DataFrame(rows, columns=["month", "min", "max"])

    def get(self, month):
        """(min, max) for a month, or None if the month has no bound."""
        return self.bounds.get(month_to_number(month))

    def clip(self, values, dates):
        """
        Clamp values to the bounds of the month of each date.

        Parameters
        ----------
        values : array-like
            Flow values (ML/d).
        dates : array-like of datetime
            Dates aligned with `values`.

        Returns
        -------
        np.ndarray
            Clipped values. Values in months without bounds are returned unchanged.
        """
        values = np.asarray(values, dtype=float)
        months = pd.DatetimeIndex(dates).month.to_numpy()
        lo = np.array([self.bounds.get(m, (np.nan, np.nan))[0] for m in months])
        hi = np.array([self.bounds.get(m, (np.nan, np.nan))[1] for m in months])

        missing = sorted(set(months[np.isnan(lo)].tolist()))
        if missing:
            warnings.warn(f"No entitlement/eflow bounds for months {missing}; values not bounded.",
                          NumericDegeneracyWarning)

        out = values.copy()
        has_bound = ~np.isnan(lo)
        out[has_bound] = np.clip(values[has_bound], lo[has_bound], hi[has_bound])
        return out


def load_flow_bounds(eflow_file="R/helper_data/eflow.csv",
                     entitlement_file="R/helper_data/entitlement_flow.csv"):
    """
    Combine the environmental flow and entitlement tables into monthly flow bounds.

    Parameters
    ----------
    eflow_file : str
        csv with columns month (name) and eflow_GLm.
    entitlement_file : str
        csv with columns month (name) and ent_MLd.

    Returns
    -------
    BoundTable
    """
    eflows = pd.read_csv(eflow_file)
    entitlement = pd.read_csv(entitlement_file)
    for df, cols, name in ((eflows, ["month", "eflow_GLm"], "eflow"),
                           (entitlement, ["month", "ent_MLd"], "entitlement")):
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise UsageError(f"Columns {missing} not found in {name} table.")

    eflows = eflows.assign(month=[month_to_number(m) for m in eflows["month"]])
    entitlement = entitlement.assign(month=[month_to_number(m) for m in entitlement["month"]])

    # GL/month -> ML/d
    eflows["eflow_MLd"] = monthly_volume_to_daily(eflows["eflow_GLm"], eflows["month"]) * gld_to_mld

    min_max_flows = pd.merge(eflows, entitlement, on="month", how="outer")
    min_max_flows["min"] = min_max_flows["ent_MLd"]
    min_max_flows["max"] = min_max_flows["ent_MLd"] + min_max_flows["eflow_MLd"]

    incomplete = sorted(min_max_flows.loc[min_max_flows[["min", "max"]].isna().any(axis=1), "month"])
    absent = sorted(set(range(1, 13)) - set(min_max_flows["month"]))
    if incomplete or absent:
        warnings.warn(f"Months {sorted(set(incomplete) | set(absent))} have no complete entitlement/eflow entry.",
                      NumericDegeneracyWarning)
    return BoundTable.from_frame(min_max_flows[["month", "min", "max"]])
