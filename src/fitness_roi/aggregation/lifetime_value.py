"""
lifetime_value.py - Cumulative revenue per device

Revenue is summed as DecimalType so totals stay exact to the cent no matter
how many transactions a device has. Devices without transactions are absent
here; the ROI mart fills them with zero.
"""

import logging

from pyspark.sql.functions import sum, count, min, max

from fitness_roi.schemas import REVENUE_TYPE

logger = logging.getLogger(__name__)


def aggregate_lifetime_value(transactions):
    """int_user_ltv: lifetime revenue per device"""
    logger.info("Aggregating lifetime value per device")

    ltv = transactions \
        .groupBy("device_id") \
        .agg(
            sum("revenue_amount").cast(REVENUE_TYPE).alias("lifetime_revenue"),
            count("transaction_id").alias("transaction_count"),
            min("transaction_date").alias("first_transaction_date"),
            max("transaction_date").alias("last_transaction_date")
        )

    return ltv, {}
