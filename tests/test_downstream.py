import numpy as np
import pandas as pd
import pytest

from alexinflow import predict_downstream, UsageError


def upstream_series(n=60, start="2025-01-01"):
    dates = pd.date_range(start, periods=n, freq="D")
    flow = 1000.0 + 200.0 * np.sin(np.arange(n) / 5.0)
    return pd.DataFrame({"datetime": dates, "flow": flow})


def test_constant_travel_time_and_loss(constant_loss_model, constant_tt_model):
    data = upstream_series()
    out = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                             loss_unc=False, tt_unc=False)
    out = out.set_index("datetime")["prediction"]
    upstream = data.set_index("datetime")["flow"]

    # interior dates: those receiving an arrival from 6 days earlier
    interior = out.index[6:]
    expected = upstream.shift(6, freq="D").loc[interior] - 50.0
    assert np.allclose(out.loc[interior], expected), "flow_down[d] should equal flow_up[d-6] - 50."


def test_historical_dates(constant_loss_model, constant_tt_model):
    data = upstream_series(n=20)
    data = pd.concat([data, data.iloc[[3]]], ignore_index=True)  # duplicate date
    out = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                             loss_unc=False, tt_unc=False)
    assert set(out["datetime"]) == set(data["datetime"])
    assert len(out) == 20


def test_requested_dates(constant_loss_model, constant_tt_model):
    data = upstream_series(n=20)
    dates = pd.date_range("2025-01-25", periods=5, freq="D")
    out = predict_downstream(data, dates, constant_loss_model, constant_tt_model,
                             loss_unc=False, tt_unc=False)
    assert list(out["datetime"]) == list(dates)
    assert out["prediction"].notna().all()

    frame = predict_downstream(data, pd.DataFrame({"datetime": dates}), constant_loss_model,
                               constant_tt_model, loss_unc=False, tt_unc=False)
    assert frame.equals(out)


def test_bad_forecast_dates_string(constant_loss_model, constant_tt_model):
    with pytest.raises(UsageError):
        predict_downstream(upstream_series(), "future", constant_loss_model, constant_tt_model)


def test_missing_upstream_column(constant_loss_model, constant_tt_model):
    data = upstream_series().rename(columns={"flow": "QSA"})
    with pytest.raises(UsageError):
        predict_downstream(data, "historical", constant_loss_model, constant_tt_model)
    out = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                             upstream_col="QSA", loss_unc=False, tt_unc=False)
    assert len(out) == len(data)


def test_idempotent_without_uncertainty(constant_loss_model, constant_tt_model):
    data = upstream_series()
    first = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                               loss_unc=False, tt_unc=False, rng=np.random.default_rng(1))
    second = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                                loss_unc=False, tt_unc=False, rng=np.random.default_rng(2))
    assert first.equals(second), "Output should be bit-identical without uncertainty."


def test_gaps_are_interpolated(constant_loss_model, constant_tt_model):
    data = upstream_series(n=30)
    data.loc[10:12, "flow"] = np.nan
    out = predict_downstream(data, "historical", constant_loss_model, constant_tt_model,
                             loss_unc=False, tt_unc=False)
    assert out["prediction"].notna().all()
