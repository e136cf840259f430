import os

import pytest

from fitness_roi.config import PipelineConfig, load_config


def test_environment_routes_output_and_schema():
    dev = PipelineConfig("dev", input_path="/in", output_path=None)
    prod = PipelineConfig("prod", input_path="/in")

    assert dev.schema == "DEV"
    assert prod.schema == "PROD"
    assert dev.output_path != prod.output_path
    assert prod.warehouse_options["sfSchema"] == "PROD"
    assert prod.warehouse_table("user_roi") == f"{prod.warehouse_options['sfDatabase']}.PROD.USER_ROI"


def test_feed_locations_follow_input_format():
    csv = PipelineConfig(input_path="/in")
    parquet = PipelineConfig(input_path="/in", input_format="parquet")

    assert csv.feed_location("registrations") == os.path.join("/in", "registrations.csv")
    assert parquet.feed_location("registrations") == os.path.join("/in", "registrations")


def test_unknown_environment_is_rejected():
    with pytest.raises(ValueError):
        PipelineConfig("staging")


def test_load_config_reads_environment_variables(monkeypatch):
    monkeypatch.setenv("FITNESS_ROI_ENV", "prod")
    monkeypatch.setenv("FITNESS_ROI_USE_WAREHOUSE", "true")

    pipeline_config = load_config(input_path="/in")

    assert pipeline_config.environment == "prod"
    assert pipeline_config.use_warehouse is True
    assert pipeline_config.input_path == "/in"
