"""
Helpers for calendar handling of monthly reference tables.

Overview:
The DEW loss, entitlement and environmental flow tables are monthly and keyed by
English month names. These helpers convert names to month numbers and monthly
volumes to daily rates.

Technical Notes:
- Monthly volumes are converted using a non-leap year, matching the tables
  which are given for a typical year.

Links:
- NA

Change Log:
2025-05-07, Initial version of the month helpers.
"""
import calendar

import numpy as np
import pandas as pd

from alexinflow.utils.exceptions import UsageError

month_names = list(calendar.month_name)[1:]
_month_lookup = {name.lower(): i + 1 for i, name in enumerate(month_names)}
_month_lookup.update({name[:3].lower(): i + 1 for i, name in enumerate(month_names)})

# Reference (non-leap) year used for days-in-month
_reference_year = 2001


def month_to_number(month):
    """
    Convert a month name, abbreviation or number to an integer 1-12.

    Parameters
    ----------
    month : str or int
        E.g., "January", "jan" or 1.

    Returns
    -------
    int
        Month number.

    Raises
    ------
    UsageError
        If the month cannot be interpreted.
    """
    if isinstance(month, (int, np.integer)) and 1 <= month <= 12:
        return int(month)
    if isinstance(month, str):
        key = month.strip().lower()
        if key in _month_lookup:
            return _month_lookup[key]
        if key.isdigit() and 1 <= int(key) <= 12:
            return int(key)
    if isinstance(month, float) and month.is_integer() and 1 <= month <= 12:
        return int(month)
    raise UsageError(f"Unrecognised month: {month!r}")


def days_in_month(month):
    """Number of days in the month (1-12) of a non-leap year."""
    return calendar.monthrange(_reference_year, month_to_number(month))[1]


def monthly_volume_to_daily(volume, month):
    """
    Convert a monthly volume (e.g., GL/month) to a daily rate (GL/d) for that month.

    Works elementwise when `volume` and `month` are array-like.
    """
    if np.ndim(month) == 0:
        return volume / days_in_month(month)
    ndays = np.array([days_in_month(m) for m in month], dtype=float)
    return np.asarray(volume, dtype=float) / ndays


def daily_range(start_date, end_date):
    """Inclusive daily DatetimeIndex between two dates (normalized to midnight)."""
    start_date = pd.Timestamp(start_date).normalize()
    end_date = pd.Timestamp(end_date).normalize()
    return pd.date_range(start_date, end_date, freq="D", name="datetime")
