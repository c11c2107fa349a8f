import pytest


def test_import_alexinflow():
    try:
        import alexinflow
    except ImportError as e:
        pytest.fail(f"Failed to import alexinflow: {e}")

    for name in ("ForecastConfig", "generate_flow_inflow_fc", "generate_temp_inflow_fc",
                 "predict_downstream", "RandomWalkModel", "pre"):
        assert hasattr(alexinflow, name), f"alexinflow.{name} is not exposed."


def test_import_preprocessors():
    from alexinflow.pre import (LossModelFitter, TravelTimeModelFitter,
                                UpstreamFlowRetriever, MetDriverLoader,
                                model_losses, model_traveltime, load_flow_bounds)
