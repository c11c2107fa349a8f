import pandas as pd
import pytest
import yaml

from alexinflow import ForecastConfig, load_flare_config, UsageError


def test_horizon_gives_end_date():
    config = ForecastConfig(reference_date="2025-03-01 00:00:00", forecast_horizon=10)
    assert config.end_date == pd.Timestamp("2025-03-11")
    assert len(config.forecast_dates) == 11, "Forecast dates should include both ends."
    assert config.upstream_start == pd.Timestamp("2024-12-31")
    assert config.noaa_date == pd.Timestamp("2025-02-28")


def test_end_date_wins_over_horizon():
    config = ForecastConfig(reference_date="2025-03-01", forecast_horizon=10, end_date="2025-03-05")
    assert config.forecast_horizon == 4
    assert config.end_date == pd.Timestamp("2025-03-05")


def test_missing_horizon_and_end_date():
    with pytest.raises(UsageError):
        ForecastConfig(reference_date="2025-03-01")
    with pytest.raises(UsageError):
        ForecastConfig(reference_date="2025-03-01", forecast_horizon="NA", end_date=None)


def test_end_date_before_reference():
    with pytest.raises(UsageError):
        ForecastConfig(reference_date="2025-03-01", end_date="2025-02-01")


def test_invalid_ensemble_size():
    with pytest.raises(UsageError):
        ForecastConfig(reference_date="2025-03-01", forecast_horizon=5, ensemble_size=0)


def test_seeded_rng_is_reproducible():
    config = ForecastConfig(reference_date="2025-03-01", forecast_horizon=5, seed=3)
    assert config.make_rng().normal() == config.make_rng().normal()


def test_from_flare_config(tmp_path):
    flare = {
        "location": {"site_id": "ALEX"},
        "da_setup": {"ensemble_size": 31},
        "uncertainty": {"weather": False},
        "file_path": {"qaqc_data_directory": "targets",
                      "met_drivers_directory": "drivers/met/gefs-v12"},
    }
    run = {"run_config": {"forecast_start_datetime": "2025-03-01 00:00:00",
                          "forecast_horizon": 30,
                          "end_datetime": "NA"}}
    flare_file = tmp_path / "configure_flare.yml"
    run_file = tmp_path / "configure_run.yml"
    flare_file.write_text(yaml.safe_dump(flare))
    run_file.write_text(yaml.safe_dump(run))

    merged = load_flare_config(flare_file, run_file)
    config = ForecastConfig.from_flare_config(merged, lake_directory=str(tmp_path), seed=1)

    assert config.reference_date == pd.Timestamp("2025-03-01")
    assert config.forecast_horizon == 30
    assert config.ensemble_size == 31
    assert config.weather_uncertainty is False
    assert config.seed == 1
    assert config.targets_file() == str(tmp_path / "targets" / "ALEX-targets-inflow.csv")
    assert config.met_drivers_directory == str(tmp_path / "drivers/met/gefs-v12")


def test_from_flare_config_requires_start():
    with pytest.raises(UsageError):
        ForecastConfig.from_flare_config({"run_config": {"forecast_horizon": 5}})
