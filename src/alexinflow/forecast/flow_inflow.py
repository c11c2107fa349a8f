"""
Ensemble forecast of the river inflow to the lake (FLOW).

Overview:
The recent upstream flow is downloaded and extended to the end of the forecast
with a random walk, one sample path per ensemble member. The extended paths are
confined to the monthly entitlement / environmental flow bounds and then routed
downstream with the loss and travel time models.

Key Steps:
1. Retrieve upstream flow for [reference_date - 60 days, reference_date] in ML/d.
2. Join onto the forecast dates, bridge short gaps and fit a random walk to the
   last contiguous run of observations.
3. Simulate one path per member up to the end date and clip to the monthly bounds.
4. Per member, fill the missing upstream days with its path and predict downstream.

Technical Notes:
- Observed upstream values are never replaced by simulated values.
- Output columns: datetime, prediction, reference_date, model_id, variable,
  flow_number, parameter.

Example Usage:
from alexinflow import ForecastConfig, generate_flow_inflow_fc
config = ForecastConfig(reference_date="2025-03-01", forecast_horizon=30, seed=1)
flow_fc = generate_flow_inflow_fc(config, n_members=31, print_status=True)

Change Log:
2025-05-07, Initial version of the FLOW inflow forecast.
"""
import pandas as pd

from alexinflow.forecast.downstream import predict_downstream
from alexinflow.forecast.random_walk import RandomWalkModel
from alexinflow.forecast.records import FORECAST_COLUMNS
from alexinflow.pre.flow_bounds import load_flow_bounds
from alexinflow.pre.loss_model import model_losses
from alexinflow.pre.travel_time_model import model_traveltime
from alexinflow.pre.upstream_flow import UpstreamFlowRetriever
from alexinflow.utils.exceptions import UsageError, DataUnavailableError
from alexinflow.utils.timeseries import interpolate_gaps, last_contiguous_segment

__all__ = ["generate_flow_inflow_fc", "extend_upstream"]

flow_model_id = "process_flow"
max_interpolation_gap = 5


def extend_upstream(upstream, forecast_dates, n_members, bounds=None, rng=None):
    """
    Extend the upstream record to the end of the forecast with bounded random walks.

    Parameters
    ----------
    upstream : pd.DataFrame
        Observed upstream flow, columns datetime and flow (ML/d).
    forecast_dates : pd.DatetimeIndex
        Dates to forecast.
    n_members : int
        Number of random walk paths.
    bounds : BoundTable, optional
        Monthly min/max flows. No clipping if None.
    rng : np.random.Generator, optional
        Random generator.

    Returns
    -------
    tuple
        (all_upstream, paths): the observed flow on the full daily axis (with short
        gaps bridged) as a Series, and the simulated paths as a long DataFrame
        (datetime, parameter, flow).
    """
    flow = upstream.set_index("datetime")["flow"].astype(float).sort_index()
    axis = pd.date_range(min(flow.index.min(), forecast_dates.min()),
                         max(flow.index.max(), forecast_dates.max()),
                         freq="D", name="datetime")
    all_upstream = interpolate_gaps(flow.reindex(axis), max_gap=max_interpolation_gap,
                                    fill_leading=True)

    segment = last_contiguous_segment(all_upstream)
    if segment.empty:
        raise DataUnavailableError("upstream flow", "no observations to fit the random walk")
    rw = RandomWalkModel.fit(segment)

    h = (forecast_dates.max() - rw.last_date).days
    paths = rw.generate(max(h, 0), times=n_members, rng=rng)
    if bounds is not None and len(paths) > 0:
        paths["flow"] = bounds.clip(paths["flow"], paths["datetime"])
    return all_upstream, paths


def generate_flow_inflow_fc(config,
                            n_members=1,
                            upstream_unit="MLd",
                            upstream_location="QSA",
                            loss_unc=True,
                            tt_unc=True,
                            loss_model=None,
                            tt_model=None,
                            fetcher=None,
                            bounds=None,
                            rng=None,
                            print_status=False):
    """
    Generate the ensemble inflow (FLOW) forecast.

    Parameters
    ----------
    config : ForecastConfig
        Forecast cycle settings.
    n_members : int
        Number of ensemble members. Default is 1.
    upstream_unit : str
        Units of the upstream data: 'MLd', 'm3s' or 'GLd'. Default is 'MLd'.
    upstream_location : str
        'QSA' (SA border) or 'L1' (Lock 1). Default is 'QSA'.
    loss_unc, tt_unc : bool
        Include the loss / travel time model uncertainty. Default True.
    loss_model, tt_model : RegressionModel, optional
        Fitted models. Default fits them from the helper data directory.
    fetcher : callable, optional
        `fetcher(dataset_name, start_date, end_date) -> str`. Default downloads
        from WaterDataSA.
    bounds : BoundTable, optional
        Monthly flow bounds. Default reads eflow.csv and entitlement_flow.csv from
        the helper data directory.
    rng : np.random.Generator, optional
        Random generator. Default is `config.make_rng()`.
    print_status : bool
        Print progress messages. Default is False.

    Returns
    -------
    pd.DataFrame
        Forecast records sorted by datetime then parameter.
    """
    if int(n_members) < 1:
        raise UsageError(f"n_members must be at least 1, got {n_members}.")
    n_members = int(n_members)
    rng = rng if rng is not None else config.make_rng()

    if loss_model is None:
        loss_model = model_losses(config.helper_file("modelled_losses.csv"), rng=rng)
    if tt_model is None:
        tt_model = model_traveltime(config.helper_file("travel_times.csv"), rng=rng)
    if bounds is None:
        bounds = load_flow_bounds(config.helper_file("eflow.csv"),
                                  config.helper_file("entitlement_flow.csv"))

    if print_status:
        print("Getting upstream data")
    retriever = UpstreamFlowRetriever(location=upstream_location,
                                      start_date=config.upstream_start,
                                      end_date=config.reference_date,
                                      unit=upstream_unit,
                                      fetcher=fetcher,
                                      print_status=print_status)
    retriever.load()
    upstream = retriever.process()

    if print_status:
        print("Fitting RW for upstream")
    forecast_dates = config.forecast_dates
    all_upstream, paths = extend_upstream(upstream, forecast_dates, n_members,
                                          bounds=bounds, rng=rng)

    if print_status:
        print("Generating downstream predictions")
    downstream_fc = []
    for m in range(n_members):
        member_path = paths.loc[paths["parameter"] == m].set_index("datetime")["flow"]
        member_path = member_path.reindex(all_upstream.index)
        upstream_m = all_upstream.fillna(member_path)

        predictions = predict_downstream(upstream_m.rename("flow").reset_index(),
                                         forecast_dates,
                                         loss_model,
                                         tt_model,
                                         loss_unc=loss_unc,
                                         tt_unc=tt_unc,
                                         rng=rng)
        predictions["reference_date"] = config.reference_date
        predictions["model_id"] = flow_model_id
        predictions["variable"] = "FLOW"
        predictions["flow_number"] = 1
        predictions["parameter"] = m
        downstream_fc.append(predictions)

    downstream_fc = pd.concat(downstream_fc, ignore_index=True)[FORECAST_COLUMNS]
    return downstream_fc.sort_values(["datetime", "parameter"]).reset_index(drop=True)
