"""
Preprocessor for fitting the river loss model between the SA border and the lake.

Overview:
Losses (evaporation, seepage and extraction) between the upstream gauge and the
lake are taken from DEW modelled losses, tabulated per month for a set of border
flows. This class reshapes that table and fits `loss ~ QSA + month`, so that the
loss can be predicted for any upstream flow and month.

Technical Notes:
- Input columns: `month` (name or number) and wide columns `GLd_<flow>`, where the
  suffix is the border flow in GL/d and the cell is the loss in GL/month.
- Both loss and flow are converted to ML/d.
- Observation uncertainty is applied as a proportion of the mean loss.

Example Usage:
from alexinflow.pre import LossModelFitter
fitter = LossModelFitter(model_dat="R/helper_data/modelled_losses.csv", obs_unc=0.1)
loss_model = fitter.process()

Links:
- NA

Change Log:
2025-05-07, Initial version of the loss model fitter.
"""
import pandas as pd

from alexinflow.pre.regression import RegressionModelFitter, RegressionSpec
from alexinflow.utils.constants import gld_to_mld
from alexinflow.utils.dates import month_to_number, monthly_volume_to_daily
from alexinflow.utils.exceptions import UsageError

__all__ = ["LossModelFitter", "model_losses", "default_loss_spec"]

default_loss_spec = RegressionSpec(response="loss", predictor="QSA", group="month")


class LossModelFitter(RegressionModelFitter):
    """
    Fits a regression of downstream loss on upstream flow and month.

    Example usage:
    ```python
    from alexinflow.pre import LossModelFitter

    fitter = LossModelFitter(model_dat="R/helper_data/modelled_losses.csv")
    loss_model = fitter.process()
    loss_model.predict([5000.0], group=[1])
    ```
    """
    def __init__(self,
                 model_dat="R/helper_data/modelled_losses.csv",
                 obs_unc=0.0,
                 spec=default_loss_spec,
                 wide_prefix="GLd_",
                 month_col="month",
                 n_samples=10,
                 rng=None,
                 output_file=None):
        """
        Initialize the LossModelFitter.

        Args:
            model_dat (str): Path to the modelled losses table (GL/month per border flow in GL/d).
            obs_unc (float): Observation uncertainty as a proportion of the mean loss. Default is 0.
            spec (RegressionSpec): Regression description. Default is `loss ~ QSA + month`.
            wide_prefix (str): Prefix of the wide flow columns. Default is 'GLd_'.
            month_col (str): Name of the month column in the table. Default is 'month'.
            n_samples (int): Synthetic samples per row. Default is 10.
            rng (np.random.Generator): Random generator for the observation noise.
            output_file (str): Where `save()` writes the coefficients.
        """
        super().__init__(model_dat, spec, obs_unc=obs_unc, n_samples=n_samples,
                         rng=rng, output_file=output_file)
        self.wide_prefix = wide_prefix
        self.month_col = month_col

    def load(self):
        """
        Load the modelled losses and reshape them to one row per (month, flow).

        Returns
        -------
        pd.DataFrame
            Columns: month (int), <predictor> (ML/d), <response> (ML/d).
        """
        fname = self.input_dirs["model_dat"]
        raw = pd.read_csv(fname)
        self.raw_data["model_dat"] = raw
        self.training_data = self.reshape_losses(raw)
        return self.training_data

    def reshape_losses(self, raw):
        """
        Pivot the wide losses table to long format and convert units to ML/d.

        Parameters
        ----------
        raw : pd.DataFrame
            Table with a month column and `<wide_prefix><flow>` columns.

        Returns
        -------
        pd.DataFrame
        """
        if self.month_col not in raw.columns:
            raise UsageError(f"Column '{self.month_col}' not found in losses table.")
        wide_cols = [c for c in raw.columns if str(c).startswith(self.wide_prefix)]
        if not wide_cols:
            raise UsageError(f"No columns starting with '{self.wide_prefix}' found in losses table.")

        x, y = self.spec.predictor, self.spec.response
        group = self.spec.group or self.month_col

        long = raw.melt(id_vars=[self.month_col], value_vars=wide_cols,
                        var_name=x, value_name=y)
        long[self.month_col] = [month_to_number(m) for m in long[self.month_col]]

        # GL/month -> ML/d and GL/d -> ML/d
        long[y] = monthly_volume_to_daily(pd.to_numeric(long[y]), long[self.month_col]) * gld_to_mld
        long[x] = pd.to_numeric(long[x].str[len(self.wide_prefix):]) * gld_to_mld
        if group != self.month_col:
            long[group] = long[self.month_col]

        self.spec.validate(long.columns)
        return long.reset_index(drop=True)


def model_losses(model_dat="R/helper_data/modelled_losses.csv",
                 obs_unc=0.0,
                 spec=default_loss_spec,
                 rng=None):
    """
    Fit the loss model from the modelled losses table.

    Parameters
    ----------
    model_dat : str
        Path to the losses table, in GL/month.
    obs_unc : float
        Observation uncertainty as a proportion of the mean loss. Default is 0.
    spec : RegressionSpec
        Regression description. Default is `loss ~ QSA + month` (additive).
    rng : np.random.Generator, optional
        Random generator for the observation noise.

    Returns
    -------
    RegressionModel
        Fitted loss model.
    """
    fitter = LossModelFitter(model_dat=model_dat, obs_unc=obs_unc, spec=spec, rng=rng)
    return fitter.process()
