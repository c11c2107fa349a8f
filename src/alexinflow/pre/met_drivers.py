"""
Loads the ensemble weather drivers used by the inflow temperature model.

Overview:
NOAA GEFS drivers for the site are stored as a partitioned parquet archive. The
historical "analysis" partition (stage3) holds the past weather per ensemble member,
and the "forecast" partition (stage2) holds the forecast issued on the day before the
reference date. This class reads both, converts them to daily values per member
and derives the features used by the temperature model.

Key Steps:
1. Read `<root>/stage3/site_id=<site>` for (training_start, reference_date).
2. Read `<root>/stage2/reference_datetime=<reference_date - 1 day>/site_id=<site>` for
   datetime >= reference_date.
3. Rename variables, convert air temperature from K to degC.
4. Per (date, member): total precipitation and median air temperature.
5. Per member: right-aligned 3-day rolling mean temperature and day of year.

Technical Notes:
- Partitions are read with pandas + pyarrow, filtering on `variable`.
- Expected columns: datetime, variable, prediction, parameter (ensemble member).
- Timestamps are converted to UTC and made timezone naive.

Change Log:
2025-05-07, Initial version of the GEFS driver loader.
"""
import os

import pandas as pd

from alexinflow.pre.datapreprocessor_ABC import DataPreprocessor
from alexinflow.utils.constants import kelvin_offset
from alexinflow.utils.exceptions import DataUnavailableError, UsageError
from alexinflow.utils.timeseries import get_rollmean_timeseries

__all__ = ["MetDriverLoader", "daily_met_features"]

# GEFS variable names -> names used in the feature table
met_variable_names = {
    "precipitation_flux": "precipitation",
    "air_temperature": "temperature_2m",
}


def _naive_utc(values):
    """Convert datetimes to timezone-naive UTC timestamps."""
    return pd.to_datetime(values, utc=True).dt.tz_localize(None)


def daily_met_features(met, rolling_window=3):
    """
    Aggregate sub-daily driver values to daily features per ensemble member.

    Parameters
    ----------
    met : pd.DataFrame
        Long table with columns datetime, parameter, variable, prediction, where
        `variable` is 'precipitation' or 'temperature_2m' (degC).
    rolling_window : int
        Window of the rolling mean temperature. Default is 3 days.

    Returns
    -------
    pd.DataFrame
        Columns: date, parameter, precip, temperature, threeday_temp, doy.
    """
    wide = met.pivot_table(index=["datetime", "parameter"], columns="variable",
                           values="prediction", aggfunc="mean").reset_index()
    for var in ("precipitation", "temperature_2m"):
        if var not in wide.columns:
            raise DataUnavailableError("met drivers", f"variable '{var}' not found")
    wide["date"] = wide["datetime"].dt.normalize()

    daily = (wide.groupby(["date", "parameter"])
             .agg(precip=("precipitation", "sum"),
                  temperature=("temperature_2m", "median"))
             .reset_index()
             .sort_values(["parameter", "date"])
             .reset_index(drop=True))

    daily["threeday_temp"] = (daily.groupby("parameter")["temperature"]
                              .transform(lambda x: get_rollmean_timeseries(x, rolling_window)))
    daily["doy"] = daily["date"].dt.dayofyear
    return daily


class MetDriverLoader(DataPreprocessor):
    """
    Reads the historical and forecast weather driver partitions for one site.
    """
    def __init__(self,
                 drivers_directory,
                 site_id,
                 reference_date,
                 training_start=None,
                 met_vars=("precipitation_flux", "air_temperature"),
                 historical_stage="stage3",
                 forecast_stage="stage2",
                 print_status=False):
        """
        Initialize the MetDriverLoader.

        Parameters
        ----------
        drivers_directory : str
            Root of the driver archive (e.g., '<bucket>/flare/drivers/met/gefs-v12').
        site_id : str
            Site identifier, e.g., 'ALEX'.
        reference_date : str or pd.Timestamp
            Forecast reference date.
        training_start : str or pd.Timestamp, optional
            Earliest historical date to read. Default is five years before the reference date.
        met_vars : tuple of str
            GEFS variables to read.
        historical_stage, forecast_stage : str
            Names of the historical and forecast partitions.
        print_status : bool
            Print progress messages. Default is False.
        """
        super().__init__()
        if drivers_directory is None:
            raise UsageError("A met drivers directory is required.")
        unknown = [v for v in met_vars if v not in met_variable_names]
        if unknown:
            raise UsageError(f"Unsupported met variables {unknown}.")

        self.site_id = site_id
        self.reference_date = pd.Timestamp(reference_date).normalize()
        self.training_start = (pd.Timestamp(training_start).normalize() if training_start is not None
                               else self.reference_date - pd.DateOffset(years=5))
        self.met_vars = tuple(met_vars)
        self.print_status = print_status

        noaa_date = (self.reference_date - pd.Timedelta(days=1)).strftime("%Y-%m-%d")
        self.input_dirs = {
            "historical": os.path.join(drivers_directory, historical_stage, f"site_id={site_id}"),
            "future": os.path.join(drivers_directory, forecast_stage,
                                   f"reference_datetime={noaa_date}", f"site_id={site_id}"),
        }

    def _read_partition(self, path):
        if not os.path.exists(path):
            raise DataUnavailableError("met drivers", f"partition not found: {path}")
        df = pd.read_parquet(path, filters=[("variable", "in", list(self.met_vars))])
        for col in ("datetime", "variable", "prediction", "parameter"):
            if col not in df.columns:
                raise DataUnavailableError("met drivers", f"column '{col}' missing in {path}")
        df["datetime"] = _naive_utc(df["datetime"])
        df["variable"] = df["variable"].astype(str)
        return df[["datetime", "parameter", "variable", "prediction"]]

    def load(self):
        """
        Read the historical and forecast partitions.

        Returns
        -------
        tuple of pd.DataFrame
            (historical, future) long tables.
        """
        if self.print_status:
            print("getting met data")
        historical = self._read_partition(self.input_dirs["historical"])
        historical = historical.loc[(historical["datetime"] < self.reference_date) &
                                    (historical["datetime"] > self.training_start)]
        future = self._read_partition(self.input_dirs["future"])
        future = future.loc[future["datetime"] >= self.reference_date]

        self.raw_data["historical"] = historical
        self.raw_data["future"] = future
        return historical, future

    def process(self):
        """
        Combine past and future drivers into daily features per ensemble member.

        Returns
        -------
        pd.DataFrame
            Columns: date, parameter, precip, temperature, threeday_temp, doy.
        """
        if "historical" not in self.raw_data:
            self.load()
        met = pd.concat([self.raw_data["historical"], self.raw_data["future"]], ignore_index=True)
        if met.empty:
            raise DataUnavailableError("met drivers", "no driver data for the requested window",
                                       site_id=self.site_id)

        met["variable"] = met["variable"].map(met_variable_names)
        is_temp = met["variable"] == "temperature_2m"
        met.loc[is_temp, "prediction"] = met.loc[is_temp, "prediction"] - kelvin_offset
        met["parameter"] = met["parameter"].astype(int)

        self.processed_data["met"] = daily_met_features(met)
        return self.processed_data["met"]

    def save(self, filename):
        """Save the daily driver features to csv."""
        assert "met" in self.processed_data, "No processed met data. Run process() first."
        self.processed_data["met"].to_csv(filename, index=False)
        print(f"Data saved to {filename}")
