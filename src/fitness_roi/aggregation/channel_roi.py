"""
channel_roi.py - Channel level ROI summary for reporting

Aggregates the user ROI mart per channel and attribution source. Organic
users are grouped under the "organic" channel.
"""

import logging

from pyspark.sql.functions import col, when, lit, coalesce, count, sum, round

from fitness_roi.aggregation.user_roi import safe_roi
from fitness_roi.schemas import REVENUE_TYPE, ORGANIC_CHANNEL

logger = logging.getLogger(__name__)


def summarize_channel_roi(user_roi):
    """channel_roi_summary: users, spend, revenue and ROI per channel"""
    logger.info("Creating channel ROI summary")

    summary = user_roi \
        .withColumn("channel", coalesce(col("channel"), lit(ORGANIC_CHANNEL))) \
        .groupBy("channel", "attribution_source") \
        .agg(
            count("device_id").alias("users"),
            sum(when(col("lifetime_revenue") > 0, 1).otherwise(0)).alias("paying_users"),
            sum("acquisition_cost").cast(REVENUE_TYPE).alias("total_acquisition_cost"),
            sum("lifetime_revenue").cast(REVENUE_TYPE).alias("total_lifetime_revenue")
        ) \
        .withColumn("roi", safe_roi(col("total_lifetime_revenue"), col("total_acquisition_cost"))) \
        .withColumn(
            "revenue_per_user",
            round(col("total_lifetime_revenue") / col("users"), 2).cast(REVENUE_TYPE)
        ) \
        .orderBy(col("total_lifetime_revenue").desc(), col("channel"))

    return summary, {}
