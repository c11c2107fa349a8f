import numpy as np
import pandas as pd
import pytest

from alexinflow import UsageError
from alexinflow.utils.dates import month_to_number, days_in_month, monthly_volume_to_daily
from alexinflow.utils.timeseries import (interpolate_gaps, last_contiguous_segment,
                                         forward_fill_daily, interpolate_with_edge_clamp,
                                         aggregate_duplicate_dates, subset_timeseries)


def daily(values, start="2025-01-01"):
    return pd.Series(values, index=pd.date_range(start, periods=len(values), freq="D"), dtype=float)


def test_month_to_number():
    assert month_to_number("January") == 1
    assert month_to_number("sep") == 9
    assert month_to_number(12) == 12
    assert month_to_number("03") == 3
    with pytest.raises(UsageError):
        month_to_number("Smarch")
    with pytest.raises(UsageError):
        month_to_number(13)


def test_days_in_month():
    assert days_in_month("February") == 28
    assert np.allclose(monthly_volume_to_daily([31.0, 28.0], [1, 2]), [1.0, 1.0])


def test_interpolate_gaps_respects_max_gap():
    values = [np.nan, 1.0, np.nan, np.nan, 4.0] + [np.nan] * 6 + [11.0, np.nan]
    out = interpolate_gaps(daily(values), max_gap=5)
    assert out.iloc[0] == 1.0, "Leading edge should take the first observation."
    assert list(out.iloc[1:5]) == [1.0, 2.0, 3.0, 4.0]
    assert out.iloc[5:11].isna().all(), "Gaps longer than max_gap stay missing."
    assert np.isnan(out.iloc[-1]), "Trailing values are never filled."


def test_interpolate_gaps_boundary_lengths():
    values = [0.0] + [np.nan] * 3 + [4.0] + [np.nan] * 4 + [9.0] + [np.nan, np.nan]
    out = interpolate_gaps(daily(values), max_gap=3)
    assert np.allclose(out.iloc[:5], [0.0, 1.0, 2.0, 3.0, 4.0]), "A gap of exactly max_gap is bridged."
    assert out.iloc[5:9].isna().all(), "A gap of max_gap + 1 stays missing."
    assert out.iloc[9] == 9.0
    assert out.iloc[10:].isna().all()

    leading = interpolate_gaps(daily([np.nan, np.nan, 5.0, 6.0]), fill_leading=False)
    assert leading.iloc[:2].isna().all()
    assert list(leading.iloc[2:]) == [5.0, 6.0]
    assert interpolate_gaps(daily([np.nan, np.nan])).isna().all()


def test_last_contiguous_segment():
    series = daily([1.0, 2.0, np.nan, 3.0, 4.0, np.nan])
    segment = last_contiguous_segment(series)
    assert list(segment) == [3.0, 4.0]
    assert last_contiguous_segment(daily([np.nan, np.nan])).empty


def test_forward_fill_daily():
    series = daily([1.0, 2.0])
    out = forward_fill_daily(series, "2025-01-01", "2025-01-05")
    assert list(out) == [1.0, 2.0, 2.0, 2.0, 2.0]


def test_interpolate_with_edge_clamp():
    out = interpolate_with_edge_clamp(daily([np.nan, 2.0, np.nan, 4.0, np.nan]))
    assert list(out) == [2.0, 2.0, 3.0, 4.0, 4.0]


def test_aggregate_duplicate_dates():
    df = pd.DataFrame({"datetime": pd.to_datetime(["2025-01-02", "2025-01-01", "2025-01-02"]),
                       "flow": [1.0, 5.0, 3.0]})
    out = aggregate_duplicate_dates(df)
    assert list(out["flow"]) == [5.0, 2.0]


def test_subset_timeseries():
    series = daily(np.arange(10.0))
    assert len(subset_timeseries(series, "2025-01-03", "2025-01-05")) == 3
    assert len(subset_timeseries(series, "2025-01-03", "2025-01-05", end_inclusive=False)) == 2
