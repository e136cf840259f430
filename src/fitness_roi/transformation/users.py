"""
users.py - Consolidate registered users with their attribution

Registration is the authoritative user universe: attribution rows for
devices that never registered are excluded and counted as
unregistered_attribution.
"""

import logging

from pyspark.sql.functions import col, lit, coalesce

from fitness_roi.schemas import MONEY_TYPE, CONSOLIDATED_USER_COLUMNS

logger = logging.getLogger(__name__)


def consolidate_users(registrations, resolved_attribution):
    """int_users: every registered device, paid or organic"""
    logger.info("Consolidating registered users with attribution")

    registered = registrations \
        .select("device_id", "registration_date", "country") \
        .withColumn("_registered", lit(True))

    attributed = resolved_attribution \
        .select("device_id", "channel", "campaign_id", "attribution_source", "acquisition_cost") \
        .withColumn("_attributed", lit(True))

    joined = registered.join(attributed, ["device_id"], "full_outer")

    unregistered = joined.filter(col("_registered").isNull()).count()
    if unregistered:
        logger.warning(f"Excluded {unregistered} attributed devices with no registration")

    users = joined \
        .filter(col("_registered")) \
        .withColumn("is_organic", col("_attributed").isNull()) \
        .withColumn(
            "acquisition_cost",
            coalesce(col("acquisition_cost"), lit(0).cast(MONEY_TYPE)).cast(MONEY_TYPE)
        ) \
        .select(*CONSOLIDATED_USER_COLUMNS)

    return users, {"unregistered_attribution": unregistered}
