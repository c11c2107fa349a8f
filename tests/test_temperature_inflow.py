import warnings

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LinearRegression

from alexinflow import generate_temp_inflow_fc, DataUnavailableError, UsageError
from alexinflow.forecast import TemperatureForecaster, build_training_frame, FORECAST_COLUMNS

from conftest import REFERENCE_DATE


def synthetic_met(n_members=3, start=REFERENCE_DATE - pd.Timedelta(days=120),
                  end=REFERENCE_DATE + pd.Timedelta(days=15), seed=0):
    rng = np.random.default_rng(seed)
    dates = pd.date_range(start, end, freq="D")
    frames = []
    for m in range(n_members):
        temperature = 20 + 5 * np.sin(np.arange(len(dates)) / 10.0) + rng.normal(0, 1, len(dates))
        frames.append(pd.DataFrame({
            "date": dates,
            "parameter": m,
            "precip": rng.gamma(1.0, 2.0, len(dates)),
            "temperature": temperature,
            "threeday_temp": pd.Series(temperature).rolling(3, min_periods=1).mean().to_numpy(),
            "doy": dates.dayofyear,
        }))
    return pd.concat(frames, ignore_index=True)


def lag_only_targets(start=REFERENCE_DATE - pd.Timedelta(days=120), end=REFERENCE_DATE - pd.Timedelta(days=1)):
    """Observations where today's temperature is 0.9 * yesterday's + 2."""
    dates = pd.date_range(start, end, freq="D")
    obs = [10.0]
    for _ in range(len(dates) - 1):
        obs.append(0.9 * obs[-1] + 2.0)
    return pd.DataFrame({"date": dates, "site_id": "ALEX", "inflow_name": "murray",
                         "variable": "TEMP", "observation": obs})


def test_build_training_frame():
    met = synthetic_met()
    targets = lag_only_targets()
    training = build_training_frame(met, targets[["date", "observation"]], REFERENCE_DATE)

    assert training["date"].max() == REFERENCE_DATE - pd.Timedelta(days=1)
    assert len(training) == len(targets) - 1, "First observation has no lag."
    assert np.allclose(training["observation"], 0.9 * training["lag_obs"] + 2.0)

    member_median = met.loc[met["date"] == training["date"].iloc[0], "temperature"].median()
    assert np.isclose(training["temperature"].iloc[0], member_median)


def test_lag_recovery(config):
    met = synthetic_met()
    targets = lag_only_targets()
    config = config.with_overrides(ensemble_size=3)

    fc = generate_temp_inflow_fc(config, met=met, inflow_targets=targets,
                                 regressor=LinearRegression())
    assert list(fc.columns) == FORECAST_COLUMNS

    expected = {}
    previous = targets["observation"].iloc[-1]
    for date in config.forecast_dates:
        previous = 0.9 * previous + 2.0
        expected[date] = previous

    for member, member_fc in fc.groupby("parameter"):
        member_fc = member_fc.set_index("datetime")["prediction"]
        assert list(member_fc.index) == list(config.forecast_dates)
        assert np.allclose(member_fc.to_numpy(), [expected[d] for d in member_fc.index], atol=1e-6), \
            f"Member {member} does not feed its own prediction back as lag_obs."

    assert set(fc["model_id"]) == {"xgboost_temp"}
    assert set(fc["variable"]) == {"TEMP"}


def test_negative_predictions_are_clamped(config):
    met = synthetic_met()
    targets = lag_only_targets()
    targets["observation"] = -targets["observation"]
    fc = generate_temp_inflow_fc(config, met=met, inflow_targets=targets,
                                 regressor=LinearRegression())
    assert (fc["prediction"] >= 0).all()


def test_ensemble_replicated_to_config_size(config):
    config = config.with_overrides(ensemble_size=7)
    fc = generate_temp_inflow_fc(config, met=synthetic_met(n_members=3),
                                 inflow_targets=lag_only_targets(),
                                 regressor=LinearRegression())
    assert sorted(fc["parameter"].unique()) == list(range(7))
    assert len(fc) == 7 * len(config.forecast_dates)


def test_single_member_without_weather_uncertainty(config):
    config = config.with_overrides(ensemble_size=4, weather_uncertainty=False)
    met = synthetic_met(n_members=3)
    met.loc[met["parameter"] != 1, "temperature"] += 100.0  # other members differ
    fc = generate_temp_inflow_fc(config, met=met, inflow_targets=lag_only_targets(),
                                 regressor=LinearRegression())
    by_date = fc.groupby("datetime")["prediction"].nunique()
    assert (by_date == 1).all(), "All members should be copies of a single weather member."
    assert sorted(fc["parameter"].unique()) == [0, 1, 2, 3]


def test_xgboost_pipeline(config):
    forecaster = TemperatureForecaster(param_grid={"xgb__max_depth": [2],
                                                   "xgb__n_estimators": [20, 40]},
                                       random_state=0)
    training = build_training_frame(synthetic_met(), lag_only_targets()[["date", "observation"]],
                                    REFERENCE_DATE)
    forecaster.fit(training)
    assert forecaster.best_params_["xgb__max_depth"] == 2
    pred = forecaster.predict(training)
    assert pred.shape == (len(training),)
    assert np.sqrt(np.mean((pred - training["observation"]) ** 2)) < 1.0


def test_missing_targets(config):
    targets = lag_only_targets()
    targets["inflow_name"] = "other"
    with pytest.raises(DataUnavailableError):
        generate_temp_inflow_fc(config, met=synthetic_met(), inflow_targets=targets,
                                regressor=LinearRegression())


def test_missing_future_weather(config):
    met = synthetic_met(end=REFERENCE_DATE + pd.Timedelta(days=3))
    with pytest.raises(DataUnavailableError):
        generate_temp_inflow_fc(config, met=met, inflow_targets=lag_only_targets(),
                                regressor=LinearRegression())


def test_forecaster_requires_features():
    with pytest.raises(UsageError):
        TemperatureForecaster(regressor=LinearRegression()).fit(pd.DataFrame({"observation": [1.0]}))


class DetachedFitRegressor:
    """Regressor whose fit returns None, as some estimator wrappers do."""
    def __init__(self):
        self.model = LinearRegression()

    def fit(self, X, y):
        self.model.fit(X, y)

    def predict(self, X):
        return self.model.predict(X)


def test_regressor_fit_return_value_is_ignored(config):
    regressor = DetachedFitRegressor()
    fc = generate_temp_inflow_fc(config, met=synthetic_met(), inflow_targets=lag_only_targets(),
                                 regressor=regressor)
    assert len(fc) == config.ensemble_size * len(config.forecast_dates)

    first_day = fc.loc[fc["datetime"] == config.forecast_dates[0], "prediction"]
    expected = 0.9 * lag_only_targets()["observation"].iloc[-1] + 2.0
    assert np.allclose(first_day, expected, atol=1e-6), \
        "The injected regressor should be used for prediction after fit."
