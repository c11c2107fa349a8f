"""
Random walk model used to extend the upstream flow beyond the last observation.

Overview:
Each future step equals the previous value plus a Gaussian innovation. The
innovation standard deviation is estimated from the first differences of the
observed series (no drift), and `generate` simulates independent sample paths.

Technical Notes:
- sigma = sqrt(mean(diff(y)^2)), the maximum likelihood estimate for a random walk
  without drift.
- A series with fewer than two values has sigma = 0 (persistence) and issues a
  NumericDegeneracyWarning.

Change Log:
2025-05-07, Initial version of the random walk model.
"""
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from alexinflow.utils.exceptions import UsageError, NumericDegeneracyWarning

__all__ = ["RandomWalkModel"]


@dataclass(frozen=True)
class RandomWalkModel:
    """
    A fitted random walk.

    Attributes
    ----------
    last_date : pd.Timestamp
        Date of the last observation.
    last_value : float
        Last observed value, the starting point of every simulated path.
    sigma : float
        Standard deviation of the daily innovations.
    n_obs : int
        Number of observations used in the fit.
    """
    last_date: pd.Timestamp
    last_value: float
    sigma: float
    n_obs: int

    @classmethod
    def fit(cls, series):
        """
        Fit a random walk to a daily series.

        Parameters
        ----------
        series : pd.Series
            Values indexed by consecutive dates, without missing values.

        Returns
        -------
        RandomWalkModel
        """
        values = series.to_numpy(dtype=float)
        if len(values) == 0:
            raise UsageError("Cannot fit a random walk to an empty series.")
        if np.isnan(values).any():
            raise UsageError("Random walk series must not contain missing values.")

        diffs = np.diff(values)
        if len(diffs) == 0:
            warnings.warn("Random walk fit to a single value; innovations set to zero.",
                          NumericDegeneracyWarning)
            sigma = 0.0
        else:
            sigma = float(np.sqrt(np.mean(diffs ** 2)))
        return cls(last_date=pd.Timestamp(series.index[-1]).normalize(),
                   last_value=float(values[-1]),
                   sigma=sigma,
                   n_obs=len(values))

    def generate(self, h, times=1, rng=None):
        """
        Simulate future sample paths.

        Parameters
        ----------
        h : int
            Number of days to simulate after `last_date`.
        times : int
            Number of independent paths. Default is 1.
        rng : np.random.Generator, optional
            Random generator.

        Returns
        -------
        pd.DataFrame
            Long table with columns datetime, parameter (0-based path index), flow,
            ordered by parameter then datetime.
        """
        if h < 0 or times < 1:
            raise UsageError(f"Invalid simulation size h={h}, times={times}.")
        rng = rng if rng is not None else np.random.default_rng()
        dates = pd.date_range(self.last_date + pd.Timedelta(days=1), periods=h, freq="D")

        innovations = rng.normal(0.0, self.sigma, size=(times, h))
        paths = self.last_value + np.cumsum(innovations, axis=1)

        return pd.DataFrame({
            "datetime": np.tile(dates.to_numpy(), times),
            "parameter": np.repeat(np.arange(times), h),
            "flow": paths.reshape(-1),
        })
