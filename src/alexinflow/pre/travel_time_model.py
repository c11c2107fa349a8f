"""
Preprocessor for fitting the travel time model between the SA border and the lake.

Overview:
Travel times were estimated from Source model output as the lag between flow at the
SA border and Lock 1, plus the travel time from Lock 1 to Wellington. This class
fits a cubic polynomial `travel_time ~ poly(flow, 3)` to that table.

Technical Notes:
- Input columns: a flow column whose name contains `_MLd` (renamed to `flow`) and a
  `travel_time` column in days.
- Predictions are continuous; callers round them to whole days.
- A 4th order polynomial was no better than the cubic.

Example Usage:
from alexinflow.pre import TravelTimeModelFitter
tt_model = TravelTimeModelFitter(model_dat="R/helper_data/travel_times.csv").process()

Change Log:
2025-05-07, Initial version of the travel time model fitter.
"""
import pandas as pd

from alexinflow.pre.regression import RegressionModelFitter, RegressionSpec
from alexinflow.utils.exceptions import UsageError

__all__ = ["TravelTimeModelFitter", "model_traveltime", "default_traveltime_spec"]

default_traveltime_spec = RegressionSpec(response="travel_time", predictor="flow", degree=3)


class TravelTimeModelFitter(RegressionModelFitter):
    """
    Fits a polynomial regression of travel time (days) on upstream flow (ML/d).
    """
    def __init__(self,
                 model_dat="R/helper_data/travel_times.csv",
                 obs_unc=0.0,
                 spec=default_traveltime_spec,
                 flow_col_pattern="_MLd",
                 n_samples=10,
                 rng=None,
                 output_file=None):
        """
        Initialize the TravelTimeModelFitter.

        Args:
            model_dat (str): Path to the travel time table.
            obs_unc (float): Observation uncertainty as a proportion of the mean travel time. Default is 0.
            spec (RegressionSpec): Regression description. Default is a cubic in flow.
            flow_col_pattern (str): Substring identifying the flow column. Default is '_MLd'.
            n_samples (int): Synthetic samples per row. Default is 10.
            rng (np.random.Generator): Random generator for the observation noise.
            output_file (str): Where `save()` writes the coefficients.
        """
        super().__init__(model_dat, spec, obs_unc=obs_unc, n_samples=n_samples,
                         rng=rng, output_file=output_file)
        self.flow_col_pattern = flow_col_pattern

    def load(self):
        """Load the travel time table and rename the flow column to the spec predictor."""
        fname = self.input_dirs["model_dat"]
        raw = pd.read_csv(fname)
        self.raw_data["model_dat"] = raw

        flow_cols = [c for c in raw.columns if self.flow_col_pattern in str(c)]
        if len(flow_cols) > 1:
            raise UsageError(f"Multiple flow columns matching '{self.flow_col_pattern}': {flow_cols}")
        df = raw.copy()
        if flow_cols:
            df = df.rename(columns={flow_cols[0]: self.spec.predictor})

        self.spec.validate(df.columns)
        df[self.spec.predictor] = pd.to_numeric(df[self.spec.predictor])
        df[self.spec.response] = pd.to_numeric(df[self.spec.response])
        self.training_data = df
        return df


def model_traveltime(model_dat="R/helper_data/travel_times.csv",
                     obs_unc=0.0,
                     spec=default_traveltime_spec,
                     rng=None):
    """
    Fit the travel time model from the travel time table.

    Parameters
    ----------
    model_dat : str
        Path to the travel time table (flow in ML/d, travel_time in days).
    obs_unc : float
        Observation uncertainty as a proportion of the mean travel time. Default is 0.
    spec : RegressionSpec
        Regression description. Default is `travel_time ~ poly(flow, 3)`.
    rng : np.random.Generator, optional
        Random generator for the observation noise.

    Returns
    -------
    RegressionModel
        Fitted travel time model.
    """
    fitter = TravelTimeModelFitter(model_dat=model_dat, obs_unc=obs_unc, spec=spec, rng=rng)
    return fitter.process()
