import pandas as pd
import pytest

from alexinflow import UsageError
from alexinflow.forecast import (FORECAST_COLUMNS, replicate_ensemble, combine_inflow_forecasts,
                                 save_forecast, validate_forecast_records)


def make_records(members, variable="TEMP", n_dates=2):
    dates = pd.date_range("2025-03-01", periods=n_dates, freq="D")
    rows = [{"datetime": d, "prediction": float(m), "reference_date": dates[0],
             "model_id": "xgboost_temp", "variable": variable, "flow_number": 1, "parameter": m}
            for d in dates for m in members]
    return pd.DataFrame(rows)


def test_replicate_ensemble():
    fc = replicate_ensemble(make_records([0, 1, 2]), 7)
    assert sorted(fc["parameter"].unique()) == list(range(7))
    # copies = ceil(7 / 3) = 3; member 1 becomes parameters 3, 4, 5
    first_day = fc.loc[fc["datetime"] == fc["datetime"].min()].set_index("parameter")["prediction"]
    assert list(first_day.loc[[3, 4, 5]]) == [1.0, 1.0, 1.0]
    assert first_day.loc[6] == 2.0


def test_replicate_reindexes_members():
    # non-contiguous member labels are re-indexed before copying
    fc = replicate_ensemble(make_records([1, 5]), 4)
    assert sorted(fc["parameter"].unique()) == [0, 1, 2, 3]
    assert len(fc) == 4 * 2


def test_replicate_truncates():
    fc = replicate_ensemble(make_records([0, 1, 2, 3]), 2)
    assert sorted(fc["parameter"].unique()) == [0, 1]


def test_validate_records():
    with pytest.raises(UsageError):
        validate_forecast_records(make_records([0]).drop(columns="model_id"))
    with pytest.raises(UsageError):
        replicate_ensemble(make_records([0]), 0)


def test_combine_and_save(tmp_path):
    combined = combine_inflow_forecasts(make_records([0, 1], variable="FLOW"),
                                        make_records([0, 1]))
    assert list(combined.columns) == FORECAST_COLUMNS
    assert list(combined["variable"].unique()) == ["FLOW", "TEMP"]

    out = tmp_path / "inflow_forecast.csv"
    save_forecast(combined, str(out))
    saved = pd.read_csv(out)
    assert saved["datetime"].iloc[0] == "2025-03-01"
    assert len(saved) == 8
