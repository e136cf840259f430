"""
pipeline.py - Build and run the user ROI pipeline

This module:
1. Wires raw sources, staging, intermediate and mart tasks into a DAG
2. Runs the DAG and collects anomaly counts into a RunReport
3. Runs the output data tests on the marts
4. Materializes the marts only when everything above succeeded

Lineage:
    raw_* -> stg_* -> int_resolved_attribution -> int_users -> user_roi
    raw_transactions -> stg_transactions -> int_user_ltv -> user_roi
    user_roi -> channel_roi_summary
"""

import uuid
import logging
from datetime import datetime, timedelta
from functools import partial

from fitness_roi import config
from fitness_roi.aggregation.channel_roi import summarize_channel_roi
from fitness_roi.aggregation.lifetime_value import aggregate_lifetime_value
from fitness_roi.aggregation.user_roi import materialize_user_roi
from fitness_roi.exceptions import PipelineError
from fitness_roi.ingestion.raw_sources import load_raw_feed
from fitness_roi.orchestration.report import RunReport
from fitness_roi.orchestration.task_graph import TaskGraph
from fitness_roi.quality.checks import (
    run_data_tests, completeness_metrics, USER_ROI_TESTS, CHANNEL_ROI_TESTS
)
from fitness_roi.transformation.attribution import resolve_attribution
from fitness_roi.transformation.staging import (
    normalize_registrations, normalize_transactions, normalize_appsflyer,
    normalize_google_ads, normalize_campaign_costs
)
from fitness_roi.transformation.users import consolidate_users
from fitness_roi.warehouse.load_marts import materialize_outputs

logger = logging.getLogger(__name__)

MARTS = [config.USER_ROI_TABLE, config.CHANNEL_ROI_TABLE]

STAGING = {
    config.REGISTRATIONS: ("stg_registrations", normalize_registrations),
    config.TRANSACTIONS: ("stg_transactions", normalize_transactions),
    config.APPSFLYER: ("stg_appsflyer", normalize_appsflyer),
    config.GOOGLE_ADS: ("stg_google_ads", normalize_google_ads),
    config.CAMPAIGN_COSTS: ("stg_campaign_costs", normalize_campaign_costs),
}


def get_date_to_process(date_arg=None):
    """Determine the date to process from argument or default to yesterday"""
    if date_arg:
        try:
            return datetime.strptime(date_arg, "%Y-%m-%d")
        except ValueError:
            logger.warning(f"Invalid date format: {date_arg}. Using yesterday's date.")

    return datetime.now() - timedelta(days=1)


def _source(raw):
    # Raw feeds may be given as DataFrames or as zero-argument loaders
    return raw if callable(raw) else (lambda: raw)


def _staging_task(normalize, raw_task):
    def run(**upstream):
        return normalize(upstream[raw_task])
    return run


def build_user_roi_graph(raw_feeds):
    """TaskGraph for one run over the given raw feeds"""
    graph = TaskGraph("user_roi")

    for feed_name, (staging_task, normalize) in STAGING.items():
        raw_task = f"raw_{feed_name}"
        graph.add_task(raw_task, _source(raw_feeds[feed_name]))
        graph.add_task(staging_task, _staging_task(normalize, raw_task), upstream=[raw_task])

    graph.add_task(
        "int_resolved_attribution",
        lambda stg_appsflyer, stg_google_ads, stg_campaign_costs:
            resolve_attribution(stg_appsflyer, stg_google_ads, stg_campaign_costs),
        upstream=["stg_appsflyer", "stg_google_ads", "stg_campaign_costs"],
    )
    graph.add_task(
        "int_users",
        lambda stg_registrations, int_resolved_attribution:
            consolidate_users(stg_registrations, int_resolved_attribution),
        upstream=["stg_registrations", "int_resolved_attribution"],
    )
    graph.add_task(
        "int_user_ltv",
        lambda stg_transactions: aggregate_lifetime_value(stg_transactions),
        upstream=["stg_transactions"],
    )
    graph.add_task(
        config.USER_ROI_TABLE,
        lambda int_users, int_user_ltv: materialize_user_roi(int_users, int_user_ltv),
        upstream=["int_users", "int_user_ltv"],
    )
    graph.add_task(
        config.CHANNEL_ROI_TABLE,
        lambda user_roi: summarize_channel_roi(user_roi),
        upstream=[config.USER_ROI_TABLE],
    )
    return graph


def compute_marts(raw_feeds, report):
    """Run every transformation; returns task name -> DataFrame"""
    graph = build_user_roi_graph(raw_feeds)
    logger.info(f"Execution order: {' -> '.join(graph.execution_order())}")
    return graph.run(on_anomalies=report.record_anomalies)


def validate_marts(results, report):
    """Cache the marts, run their data tests and record their sizes"""
    marts = {name: results[name].cache() for name in MARTS}

    run_data_tests(marts[config.USER_ROI_TABLE], config.USER_ROI_TABLE, USER_ROI_TESTS)
    run_data_tests(marts[config.CHANNEL_ROI_TABLE], config.CHANNEL_ROI_TABLE, CHANNEL_ROI_TESTS)

    report.quality[config.USER_ROI_TABLE] = completeness_metrics(
        marts[config.USER_ROI_TABLE], config.USER_ROI_TABLE
    )
    for name, df in marts.items():
        report.record_output(name, df.count())
    return marts


def run_pipeline(spark, pipeline_config, processing_date=None, raw_feeds=None, write=True):
    """Run the whole pipeline once; returns (RunReport, marts).

    Nothing is written unless every stage and every data test succeeded.
    """
    processing_date = processing_date or get_date_to_process()
    run_id = uuid.uuid4().hex[:12]
    report = RunReport(run_id, pipeline_config.environment, processing_date, strict=pipeline_config.strict)
    logger.info(f"Starting user ROI run {run_id} with {pipeline_config}")

    if raw_feeds is None:
        raw_feeds = {
            feed_name: partial(load_raw_feed, spark, pipeline_config, feed_name)
            for feed_name in config.RAW_FEEDS
        }

    try:
        results = compute_marts(raw_feeds, report)
        marts = validate_marts(results, report)

        if write:
            locations = materialize_outputs(spark, marts, pipeline_config, run_id, processing_date)
            report.locations.update(locations)
    except PipelineError as e:
        report.finish("failed")
        logger.error(f"Run {run_id} failed, no output written: {e}")
        raise

    report.finish("success")
    logger.info(f"Run {run_id} finished: {report.outputs}, anomalies {report.anomalies}")
    return report, marts
