"""
user_roi.py - Final per-user ROI mart

This module:
1. Left-joins consolidated users with their lifetime value
2. Fills users without transactions with zero revenue
3. Calculates ROI with the zero-cost policy

Zero-cost policy: when acquisition_cost is 0 (organic users, or free
campaigns) roi is the lifetime revenue itself. Division only happens for a
positive cost, so no row can raise a division fault.
"""

import logging

from pyspark.sql.functions import col, when, lit, coalesce, round

from fitness_roi.schemas import REVENUE_TYPE, ROI_TYPE, USER_ROI_COLUMNS

logger = logging.getLogger(__name__)

ROI_SCALE = 4


def safe_roi(revenue, cost):
    """revenue / cost, or revenue itself when cost is zero"""
    return round(
        when(cost > 0, revenue / cost).otherwise(revenue),
        ROI_SCALE
    ).cast(ROI_TYPE)


def materialize_user_roi(users, lifetime_value):
    """user_roi: exactly one row per consolidated user"""
    logger.info("Materializing user ROI")

    user_roi = users \
        .join(lifetime_value.select("device_id", "lifetime_revenue"), ["device_id"], "left_outer") \
        .withColumn(
            "lifetime_revenue",
            coalesce(col("lifetime_revenue"), lit(0).cast(REVENUE_TYPE)).cast(REVENUE_TYPE)
        ) \
        .withColumn("roi", safe_roi(col("lifetime_revenue"), col("acquisition_cost"))) \
        .select(*USER_ROI_COLUMNS)

    return user_roi, {}
