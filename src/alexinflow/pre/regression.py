"""
Linear regression models used to route upstream flow to the lake inflow.

Overview:
This module provides the typed regression machinery behind the loss and travel time
models. A `RegressionSpec` names the response, the (single) continuous predictor,
an optional grouping variable, the polynomial degree and whether the group enters
additively or interacts with the predictor. `fit_regression` builds the design
matrix explicitly and fits it with statsmodels OLS, returning an immutable
`RegressionModel`. `RegressionModelFitter` is the base class for the preprocessors
that load a helper table, inject observation uncertainty and fit the model.

Technical Notes:
- The predictor is centered and scaled before raising it to powers; predictions are
  identical to an unscaled (or orthogonal) polynomial fit, but better conditioned.
- Group levels use treatment coding with the first (sorted) level as the baseline.
- Observation uncertainty is represented by replicating every training row
  `n_samples` times and adding N(0, mean(response) * obs_unc) noise to the response.
- `residual_sd` is the sample standard deviation (ddof=1) of the OLS residuals and
  is used by callers to add prediction noise.

Links:
- See DEW (2021) modelled losses for the River Murray below the SA border.

Change Log:
2025-05-07, Initial version of the regression spec, model and fitter base class.
"""
import warnings
from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

from alexinflow.pre.datapreprocessor_ABC import DataPreprocessor
from alexinflow.utils.constants import epsilon
from alexinflow.utils.exceptions import UsageError, NumericDegeneracyWarning

__all__ = [
    "RegressionSpec",
    "RegressionModel",
    "fit_regression",
    "add_observation_noise",
    "RegressionModelFitter",
]


@dataclass(frozen=True)
class RegressionSpec:
    """
    Description of a single-predictor regression.

    Attributes
    ----------
    response : str
        Column holding the response variable.
    predictor : str
        Column holding the continuous predictor.
    group : str, optional
        Column holding a categorical grouping variable (e.g., month). Default is None.
    interaction : bool
        If True, the predictor terms interact with the group. Default is False (additive).
    degree : int
        Polynomial degree of the predictor. Default is 1.
    """
    response: str
    predictor: str
    group: Optional[str] = None
    interaction: bool = False
    degree: int = 1

    def __post_init__(self):
        if int(self.degree) < 1:
            raise UsageError(f"Polynomial degree must be at least 1, got {self.degree}.")
        if self.interaction and self.group is None:
            raise UsageError("An interaction requires a grouping variable.")

    @property
    def columns(self):
        """Columns of the training table referenced by the spec."""
        cols = [self.response, self.predictor]
        if self.group is not None:
            cols.append(self.group)
        return cols

    def validate(self, columns):
        """Raise UsageError if any column named by the spec is missing from `columns`."""
        missing = [c for c in self.columns if c not in columns]
        if missing:
            raise UsageError(f"Regression variables {missing} not found in training data columns {list(columns)}.")


def _design_matrix(x, group, spec, x_mean, x_scale, group_levels):
    """Build the OLS design matrix and matching term names."""
    x = np.asarray(x, dtype=float)
    z = (x - x_mean) / x_scale
    columns = [np.ones(len(z))]
    names = ["const"]
    powers = []
    for k in range(1, spec.degree + 1):
        columns.append(z ** k)
        powers.append(z ** k)
        names.append(spec.predictor if k == 1 else f"{spec.predictor}^{k}")

    if spec.group is not None:
        if group is None:
            raise UsageError(f"Model requires the grouping variable '{spec.group}'.")
        group = np.asarray(group)
        unknown = set(pd.unique(group)) - set(group_levels)
        if unknown:
            raise UsageError(f"Unknown levels {sorted(unknown)} for grouping variable '{spec.group}'.")
        for level in group_levels[1:]:
            dummy = (group == level).astype(float)
            columns.append(dummy)
            names.append(f"{spec.group}[{level}]")
            if spec.interaction:
                for k, zk in enumerate(powers, start=1):
                    columns.append(dummy * zk)
                    term = spec.predictor if k == 1 else f"{spec.predictor}^{k}"
                    names.append(f"{term}:{spec.group}[{level}]")
    return np.column_stack(columns), names


@dataclass(frozen=True, eq=False)
class RegressionModel:
    """
    A fitted single-predictor regression. Immutable once fit.

    Attributes
    ----------
    spec : RegressionSpec
        The spec used to fit the model.
    params : np.ndarray
        OLS coefficients, in the order of `term_names`.
    term_names : tuple of str
        Names of the design matrix columns.
    x_mean, x_scale : float
        Centering and scaling applied to the predictor.
    group_levels : tuple
        Sorted levels of the grouping variable (empty if no group).
    residual_sd : float
        Sample standard deviation of the residuals.
    n_obs : int
        Number of training rows (after observation noise replication).
    """
    spec: RegressionSpec
    params: np.ndarray
    term_names: tuple
    x_mean: float
    x_scale: float
    group_levels: tuple
    residual_sd: float
    n_obs: int

    def predict(self, x, group=None):
        """
        Point predictions for predictor values `x`.

        Parameters
        ----------
        x : array-like
            Predictor values.
        group : array-like, optional
            Group values aligned with `x`. Required if the model has a group,
            ignored otherwise.

        Returns
        -------
        np.ndarray
        """
        if self.spec.group is None:
            group = None
        X, _ = _design_matrix(x, group, self.spec, self.x_mean,
                              self.x_scale, self.group_levels)
        return X @ self.params

    def coefficient_table(self):
        """Return the coefficients (on the scaled predictor) as a DataFrame."""
        return pd.DataFrame({"term": list(self.term_names), "estimate": self.params})


def fit_regression(training_data, spec):
    """
    Fit an OLS regression described by `spec`.

    Parameters
    ----------
    training_data : pd.DataFrame
        Table containing the columns named by the spec.
    spec : RegressionSpec
        Regression description.

    Returns
    -------
    RegressionModel
    """
    spec.validate(training_data.columns)
    df = training_data.dropna(subset=spec.columns)
    if len(df) == 0:
        raise UsageError("No complete rows available to fit the regression.")

    x = df[spec.predictor].to_numpy(dtype=float)
    y = df[spec.response].to_numpy(dtype=float)
    group = df[spec.group].to_numpy() if spec.group is not None else None
    group_levels = tuple(sorted(pd.unique(group))) if group is not None else ()

    x_mean = float(np.mean(x))
    x_scale = float(np.std(x))
    if x_scale < epsilon:
        warnings.warn(f"Predictor '{spec.predictor}' has zero variance; using unscaled values.",
                      NumericDegeneracyWarning)
        x_scale = 1.0

    X, names = _design_matrix(x, group, spec, x_mean, x_scale, group_levels)
    model = sm.OLS(y, X, hasconst=True).fit()
    params = np.asarray(model.params, dtype=float)

    resid = np.asarray(model.resid, dtype=float)
    residual_sd = float(np.std(resid, ddof=1)) if len(resid) > 1 else 0.0
    if residual_sd < epsilon:
        warnings.warn(f"Regression of '{spec.response}' has zero residual variance.",
                      NumericDegeneracyWarning)

    return RegressionModel(
        spec=spec,
        params=params,
        term_names=tuple(names),
        x_mean=x_mean,
        x_scale=x_scale,
        group_levels=group_levels,
        residual_sd=residual_sd,
        n_obs=len(y),
    )


def add_observation_noise(training_data, response, obs_unc=0.0, n_samples=10, rng=None):
    """
    Replicate each row and perturb the response to represent observation uncertainty.

    Parameters
    ----------
    training_data : pd.DataFrame
        Training table.
    response : str
        Column to perturb.
    obs_unc : float
        Observation uncertainty as a proportion of the mean response. Default is 0.
    n_samples : int
        Number of synthetic samples per row. Default is 10.
    rng : np.random.Generator, optional
        Random generator.

    Returns
    -------
    pd.DataFrame
        Table with `n_samples` rows per original row.
    """
    if obs_unc < 0:
        raise UsageError(f"obs_unc must be non-negative, got {obs_unc}.")
    if response not in training_data.columns:
        raise UsageError(f"Response '{response}' not found in training data.")
    if obs_unc == 0:
        warnings.warn("obs_unc is 0; the regression is fit without observation noise.",
                      NumericDegeneracyWarning)
    rng = rng if rng is not None else np.random.default_rng()

    obs_sd = float(training_data[response].mean()) * obs_unc
    replicated = training_data.loc[training_data.index.repeat(n_samples)].reset_index(drop=True)
    noise = rng.normal(0.0, abs(obs_sd), size=len(replicated))
    replicated[response] = replicated[response].astype(float) + noise
    return replicated


class RegressionModelFitter(DataPreprocessor):
    """
    Base class for preprocessors that fit a regression from a helper table.

    Methods
    -------
    load()
        Abstract method to load the training table into `self.training_data`.
    process()
        Inject observation noise and fit the regression.
    save()
        Save the fitted coefficients to csv.
    train_regression()
        Fit and return the regression model.
    """
    def __init__(self,
                 model_dat,
                 spec,
                 obs_unc=0.0,
                 n_samples=10,
                 rng=None,
                 output_file=None):
        """
        Initialize the RegressionModelFitter.

        Parameters
        ----------
        model_dat : str
            Path to the csv table used to fit the model.
        spec : RegressionSpec
            Regression description.
        obs_unc : float
            Observation uncertainty as a proportion of the mean response. Default is 0.
        n_samples : int
            Synthetic samples per training row. Default is 10.
        rng : np.random.Generator, optional
            Random generator for the observation noise.
        output_file : str, optional
            Where `save()` writes the coefficient table.
        """
        super().__init__()
        self.spec = spec
        self.obs_unc = obs_unc
        self.n_samples = n_samples
        self.rng = rng if rng is not None else np.random.default_rng()

        self.input_dirs = {"model_dat": model_dat}
        self.output_dirs = {"coefficients": output_file}

        self.training_data = None
        self.model = None

    @abstractmethod
    def load(self):
        """Load the training table into `self.training_data`."""
        pass

    def train_regression(self):
        """Inject observation noise and fit the regression.

        Returns
        -------
        RegressionModel
        """
        if self.training_data is None:
            self.load()
        noisy = add_observation_noise(self.training_data,
                                      self.spec.response,
                                      obs_unc=self.obs_unc,
                                      n_samples=self.n_samples,
                                      rng=self.rng)
        return fit_regression(noisy, self.spec)

    def process(self):
        """Run the full fitting workflow."""
        self.model = self.train_regression()
        self.processed_data["coefficients"] = self.model.coefficient_table()
        return self.model

    def save(self):
        """Save the fitted coefficients to csv."""
        assert self.model is not None, "Model has not been fit. Cannot save."
        fname = self.output_dirs["coefficients"]
        if fname is None:
            raise UsageError("No output file given for the coefficient table.")
        table = self.processed_data["coefficients"].copy()
        table.loc[len(table)] = ["residual_sd", self.model.residual_sd]
        table.to_csv(fname, index=False)
        print(f"Saved coefficients to {fname}")
