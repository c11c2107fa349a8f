"""
Functions for working directly with daily timeseries.

Overview:
These functions are broadly applicable across the alexinflow codebase. Timeseries
are either pd.Series with a DatetimeIndex or pd.DataFrames with a `datetime` column
holding one value per calendar day.

Technical Notes:
- Duplicate dates are always resolved by taking the mean.
- `interpolate_with_edge_clamp` interpolates linearly in time inside the data and
  holds the nearest known value beyond either end.
- `interpolate_gaps` only bridges gaps up to `max_gap` days; longer gaps are left
  missing as a whole (no partial filling).

Links:
- NA

Change Log:
2025-05-07, Initial version of the daily timeseries helpers.
"""

import datetime as dt

import numpy as np
import pandas as pd

__all__ = [
    "subset_timeseries",
    "normalize_dates",
    "aggregate_duplicate_dates",
    "outer_join_dates",
    "forward_fill_daily",
    "interpolate_with_edge_clamp",
    "interpolate_gaps",
    "last_contiguous_segment",
    "get_rollmean_timeseries",
]


def subset_timeseries(timeseries, start_date, end_date, end_inclusive=True):
    """
    Take a subset of pd.Series timeseries data between start_date and end_date.

    Parameters
    ----------
    timeseries : pd.Series or pd.DataFrame
        The timeseries data to subset, indexed by datetime.
    start_date : str or pd.Timestamp
        The start date for the subset. If str, should be in 'YYYY-MM-DD' format.
    end_date : str or pd.Timestamp
        The end date for the subset. If str, should be in 'YYYY-MM-DD' format.
    end_inclusive : bool, optional
        Whether to include the end date in the subset. Default is True.

    Returns
    -------
    pd.Series
        The subset of the timeseries data between start_date and end_date.
    """
    data = timeseries.copy()
    if isinstance(start_date, str):
        start_date = pd.to_datetime(start_date)
    if isinstance(end_date, str):
        end_date = pd.to_datetime(end_date)
    if not end_inclusive and end_date is not None:
        end_date = end_date - dt.timedelta(days=1)

    if start_date is not None:
        data = data.loc[start_date:]
    if end_date is not None:
        data = data.loc[:end_date]
    return data


def normalize_dates(values):
    """Convert date-like values to midnight pd.Timestamps (a DatetimeIndex)."""
    return pd.DatetimeIndex(pd.to_datetime(values)).normalize()


def aggregate_duplicate_dates(df, date_col="datetime", value_cols=None):
    """
    Collapse rows sharing the same date to a single row, taking the mean of values.

    Parameters
    ----------
    df : pd.DataFrame
        Frame with a date column.
    date_col : str
        Name of the date column. Default is 'datetime'.
    value_cols : list of str, optional
        Columns to average. Defaults to every other column.

    Returns
    -------
    pd.DataFrame
        One row per distinct date, sorted by date. NaN values are ignored in the mean.
    """
    if value_cols is None:
        value_cols = [c for c in df.columns if c != date_col]
    out = df.groupby(date_col, sort=True)[list(value_cols)].mean()
    return out.reset_index()


def outer_join_dates(df, dates, date_col="datetime"):
    """
    Outer join a frame onto a set of dates, keeping every date from both and sorting.

    Dates present only in `dates` get NaN values.
    """
    axis = pd.DataFrame({date_col: normalize_dates(dates).unique()})
    out = df.merge(axis, on=date_col, how="outer")
    return out.sort_values(date_col).reset_index(drop=True)


def forward_fill_daily(series, start_date, end_date):
    """
    Make sure a daily series covers [start_date, end_date] and carry the last known value forward.

    Dates outside the window that are present in `series` are retained.

    Parameters
    ----------
    series : pd.Series
        Daily values indexed by date.
    start_date, end_date : str or pd.Timestamp
        Window that must be present without gaps.

    Returns
    -------
    pd.Series
        Series with the union of the original index and the window, forward filled.
        Leading values before the first observation remain missing.
    """
    window = pd.date_range(pd.Timestamp(start_date).normalize(),
                           pd.Timestamp(end_date).normalize(), freq="D")
    index = series.index.union(window)
    out = series.reindex(index).sort_index()
    out.index.name = series.index.name
    return out.ffill()


def interpolate_with_edge_clamp(series):
    """
    Linearly interpolate missing values in time and clamp beyond the known range.

    Parameters
    ----------
    series : pd.Series
        Values indexed by a DatetimeIndex (sorted).

    Returns
    -------
    pd.Series
        Series without missing values, unless `series` has no known values at all.
    """
    if series.notna().sum() == 0:
        return series.copy()
    if series.notna().sum() == 1:
        return series.ffill().bfill()
    out = series.interpolate(method="time", limit_area="inside")
    return out.ffill().bfill()


def interpolate_gaps(series, max_gap=5, fill_leading=True):
    """
    Interpolate interior gaps of at most `max_gap` consecutive missing days.

    Parameters
    ----------
    series : pd.Series
        Daily values indexed by a sorted DatetimeIndex without missing dates.
    max_gap : int
        Longest run of missing values that will be bridged. Longer runs stay missing.
    fill_leading : bool
        If True, missing values before the first observation take the first
        observed value. Trailing missing values are never filled.

    Returns
    -------
    pd.Series
    """
    out = series.astype(float)
    missing = out.isna()
    if missing.all():
        return out.copy()

    # each run of missing values shares a group with the observation before it
    run_id = out.notna().cumsum()
    gap_size = missing.groupby(run_id).transform("sum")

    interpolated = out.interpolate(method="time", limit_area="inside")
    out = out.where(~(missing & interpolated.notna() & (gap_size <= max_gap)), interpolated)
    if fill_leading:
        out = out.where(run_id > 0, out.loc[out.first_valid_index()])
    return out


def last_contiguous_segment(series):
    """
    Return the last run of consecutive non-missing values of a daily series.

    Trailing missing values are dropped, and everything before the last
    remaining gap is truncated.
    """
    values = series.to_numpy(dtype=float)
    known = np.flatnonzero(~np.isnan(values))
    if len(known) == 0:
        return series.iloc[0:0]
    end = known[-1]
    start = end
    while start > 0 and not np.isnan(values[start - 1]):
        start -= 1
    return series.iloc[start:end + 1]


def get_rollmean_timeseries(timeseries, window, fill_start=False):
    """
    Calculates the right-aligned rolling mean of a timeseries for a given window size.

    Parameters
    ----------
    timeseries : pd.Series or pd.DataFrame
        The timeseries data to calculate the rolling mean for.
    window : int
        The window size for the rolling mean.
    fill_start : bool
        If True, the first `window - 1` values are the mean of the values available
        so far. Otherwise they are NaN.

    Returns
    -------
    pd.Series or pd.DataFrame
        The rolling mean transformed timeseries data.
    """
    if fill_start:
        return timeseries.rolling(window=window, min_periods=1).mean()
    return timeseries.rolling(window=window).mean()
