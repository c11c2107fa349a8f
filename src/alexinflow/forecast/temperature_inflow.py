"""
Ensemble forecast of the inflow water temperature (TEMP).

Overview:
A gradient boosted regression predicts today's inflow temperature from
yesterday's value and the weather. The model is trained on the member-median
historical weather joined with the observed inflow temperature, then run forward
one day at a time for each weather ensemble member, feeding each prediction back
as that member's next lagged value.

Key Steps:
1. Daily weather features per member (see `alexinflow.pre.met_drivers`).
2. Training frame: member-median features up to the reference date joined with
   the observations; lag_obs is the previous day's observation.
3. Tune `Pipeline(StandardScaler, XGBRegressor)` over tree depth and number of
   trees with 5-fold cross-validation (RMSE), refit on all training rows.
4. Forecast from the reference date to the end date per member, starting from the
   last observation. Negative predictions are set to 0.
5. Replicate members to the configured ensemble size.

Technical Notes:
- Any estimator with sklearn's fit/predict interface can replace the tuned model.

Change Log:
2025-05-07, Initial version of the TEMP inflow forecast.
"""
import numpy as np
import pandas as pd
from sklearn.model_selection import GridSearchCV, KFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from alexinflow.forecast.records import FORECAST_COLUMNS, replicate_ensemble
from alexinflow.pre.inflow_targets import load_inflow_targets, select_target_series
from alexinflow.pre.met_drivers import MetDriverLoader
from alexinflow.utils.exceptions import UsageError, DataUnavailableError

__all__ = [
    "TemperatureForecaster",
    "build_training_frame",
    "generate_temp_inflow_fc",
    "temp_features",
]

temp_model_id = "xgboost_temp"
temp_features = ["lag_obs", "doy", "threeday_temp", "temperature", "precip"]
met_feature_columns = ["precip", "temperature", "threeday_temp", "doy"]

default_param_grid = {
    "xgb__max_depth": [2, 4, 6],
    "xgb__n_estimators": [50, 100, 200],
}


def build_training_frame(met, observations, reference_date):
    """
    Join member-median weather features with the observed series.

    Parameters
    ----------
    met : pd.DataFrame
        Daily features per member (date, parameter, precip, temperature, threeday_temp, doy).
    observations : pd.DataFrame
        Observed series with columns date, observation.
    reference_date : pd.Timestamp
        Last date of the training period (inclusive).

    Returns
    -------
    pd.DataFrame
        Columns: date, the weather features, observation, lag_obs. Rows without an
        observation or a lagged observation are dropped.
    """
    reference_date = pd.Timestamp(reference_date).normalize()
    historical = met.loc[met["date"] <= reference_date]
    training = (historical.groupby("date")[met_feature_columns]
                .median()
                .reset_index())

    obs = observations.set_index("date")["observation"].astype(float).sort_index()
    lagged = obs.shift(1, freq="D")
    training["observation"] = training["date"].map(obs)
    training["lag_obs"] = training["date"].map(lagged)
    return (training.dropna(subset=["observation", "lag_obs"])
            .sort_values("date")
            .reset_index(drop=True))


class TemperatureForecaster:
    """
    Regression of the inflow temperature on its lagged value and the weather.

    Attributes
    ----------
    features : list of str
        Predictor columns, in order.
    model_ : estimator
        The fitted estimator (after `fit`).
    best_params_ : dict
        Hyper-parameters chosen by cross-validation (empty if a regressor was given).
    """
    def __init__(self,
                 regressor=None,
                 param_grid=None,
                 n_splits=5,
                 features=None,
                 random_state=None):
        """
        Initialize the TemperatureForecaster.

        Parameters
        ----------
        regressor : estimator, optional
            Estimator with fit(X, y) and predict(X). Default tunes an xgboost pipeline.
        param_grid : dict, optional
            Grid searched for the xgboost pipeline, keys prefixed with 'xgb__'.
        n_splits : int
            Number of cross-validation folds. Default is 5.
        features : list of str, optional
            Predictor columns. Default is `temp_features`.
        random_state : int, optional
            Seed for the folds and xgboost.
        """
        self.regressor = regressor
        self.param_grid = param_grid if param_grid is not None else default_param_grid
        self.n_splits = n_splits
        self.features = list(features) if features is not None else list(temp_features)
        self.random_state = random_state
        self.model_ = None
        self.best_params_ = {}

    def _xgboost_search(self):
        import xgboost as xgb

        pipeline = Pipeline([
            ("scaler", StandardScaler()),
            ("xgb", xgb.XGBRegressor(objective="reg:squarederror",
                                     random_state=self.random_state,
                                     n_jobs=1)),
        ])
        folds = KFold(n_splits=self.n_splits, shuffle=True, random_state=self.random_state)
        return GridSearchCV(pipeline,
                            param_grid=self.param_grid,
                            cv=folds,
                            scoring="neg_root_mean_squared_error",
                            refit=True)

    def fit(self, training):
        """
        Fit the model on a training frame.

        Parameters
        ----------
        training : pd.DataFrame
            Output of `build_training_frame`.

        Returns
        -------
        TemperatureForecaster
        """
        missing = [c for c in self.features + ["observation"] if c not in training.columns]
        if missing:
            raise UsageError(f"Columns {missing} not found in the training frame.")
        training = training.dropna(subset=self.features + ["observation"])
        X = training[self.features]
        y = training["observation"].to_numpy(dtype=float)

        if self.regressor is not None:
            self.regressor.fit(X, y)
            self.model_ = self.regressor
            return self

        if len(training) < self.n_splits:
            raise UsageError(f"Need at least {self.n_splits} training rows for "
                             f"{self.n_splits}-fold cross-validation, got {len(training)}.")
        search = self._xgboost_search()
        search.fit(X, y)
        self.model_ = search.best_estimator_
        self.best_params_ = dict(search.best_params_)
        return self

    def predict(self, X):
        """Predict the temperature for a frame holding the feature columns."""
        assert self.model_ is not None, "Model has not been fit. Run fit() first."
        return np.asarray(self.model_.predict(X[self.features]), dtype=float)

    def forecast(self, met, forecast_dates, last_observation):
        """
        Run the model forward one day at a time for every weather member.

        Parameters
        ----------
        met : pd.DataFrame
            Daily features per member covering `forecast_dates`.
        forecast_dates : pd.DatetimeIndex
            Dates to forecast, in order.
        last_observation : float
            Observation on the day before the first forecast date.

        Returns
        -------
        pd.DataFrame
            Columns: datetime, parameter, prediction.
        """
        future = met.loc[met["date"].isin(forecast_dates)]
        members = sorted(future["parameter"].unique())
        state = {m: float(last_observation) for m in members}

        predictions = []
        for date in forecast_dates:
            single_date = future.loc[future["date"] == date].sort_values("parameter").copy()
            if single_date.empty:
                raise DataUnavailableError("met drivers", f"no driver data for {date.date()}")
            single_date["lag_obs"] = single_date["parameter"].map(state)
            pred = np.maximum(self.predict(single_date), 0.0)
            for m, p in zip(single_date["parameter"], pred):
                state[m] = p
            predictions.append(pd.DataFrame({"datetime": date,
                                             "parameter": single_date["parameter"].to_numpy(),
                                             "prediction": pred}))
        return pd.concat(predictions, ignore_index=True)


def _select_weather_members(met, weather_uncertainty):
    """Keep every member, or only one (member 1, else the lowest) without weather uncertainty."""
    if weather_uncertainty:
        return met
    members = sorted(met["parameter"].unique())
    keep = 1 if 1 in members else members[0]
    return met.loc[met["parameter"] == keep]


def generate_temp_inflow_fc(config,
                            met=None,
                            inflow_targets=None,
                            regressor=None,
                            param_grid=None,
                            target_variable="TEMP",
                            inflow_name="murray",
                            print_status=False):
    """
    Generate the ensemble inflow temperature (TEMP) forecast.

    Parameters
    ----------
    config : ForecastConfig
        Forecast cycle settings.
    met : pd.DataFrame, optional
        Daily weather features per member. Default reads the driver archive under
        `config.met_drivers_directory`.
    inflow_targets : pd.DataFrame, optional
        Targets table as returned by `load_inflow_targets`. Default reads
        `config.targets_file()`.
    regressor : estimator, optional
        Replaces the tuned xgboost pipeline.
    param_grid : dict, optional
        Grid for the xgboost pipeline.
    target_variable, inflow_name : str
        Series to forecast. Default 'TEMP' of the 'murray' inflow.
    print_status : bool
        Print progress messages. Default is False.

    Returns
    -------
    pd.DataFrame
        Forecast records with `config.ensemble_size` members, sorted by datetime then parameter.
    """
    if met is None:
        loader = MetDriverLoader(config.met_drivers_directory,
                                 config.site_id,
                                 config.reference_date,
                                 training_start=config.training_start,
                                 print_status=print_status)
        met = loader.process()
    met = _select_weather_members(met, config.weather_uncertainty)

    if print_status:
        print("getting historic observations")
    if inflow_targets is None:
        inflow_targets = load_inflow_targets(config.targets_file(), config.reference_date)
    observations = select_target_series(inflow_targets, variable=target_variable,
                                        inflow_name=inflow_name)
    observations = observations.loc[observations["date"] < config.reference_date]
    if observations.empty:
        raise DataUnavailableError("inflow targets", "no observations before the reference date")

    training = build_training_frame(met, observations, config.reference_date)
    if training.empty:
        raise DataUnavailableError("inflow targets", "no overlap between observations and weather drivers")

    if print_status:
        print("running xgboost forecast")
    forecaster = TemperatureForecaster(regressor=regressor,
                                       param_grid=param_grid,
                                       random_state=config.seed)
    forecaster.fit(training)

    last_observation = observations["observation"].iloc[-1]
    temp_fc = forecaster.forecast(met, config.forecast_dates, last_observation)
    temp_fc["reference_date"] = config.reference_date
    temp_fc["model_id"] = temp_model_id
    temp_fc["variable"] = target_variable
    temp_fc["flow_number"] = 1

    return replicate_ensemble(temp_fc[FORECAST_COLUMNS], config.ensemble_size)
