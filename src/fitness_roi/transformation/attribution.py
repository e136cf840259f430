"""
attribution.py - Resolve one marketing attribution per device

This module:
1. Prices Google Ads installs with the campaign cost reference
2. Merges them with AppsFlyer installs, which carry their own cost
3. Gives AppsFlyer priority when a device appears in both feeds

Google-Ads-only devices whose campaign has no cost reference are left out
of the result, so they surface as organic users downstream, and counted as
missing_cost_reference.
"""

import logging

from pyspark.sql.functions import col, broadcast

from fitness_roi.schemas import MONEY_TYPE, RESOLVED_ATTRIBUTION_COLUMNS

logger = logging.getLogger(__name__)


def price_google_ads(google_ads, campaign_costs):
    """Attach cost_per_user to Google Ads rows; unmatched rows get a null cost"""
    return google_ads.join(
        broadcast(campaign_costs.select("campaign_id", "cost_per_user")),
        ["campaign_id"],
        "left_outer"
    )


def resolve_attribution(appsflyer, google_ads, campaign_costs):
    """int_resolved_attribution: at most one attribution row per device"""
    logger.info("Resolving attribution across AppsFlyer and Google Ads")

    appsflyer_devices = appsflyer.select("device_id")

    # Devices AppsFlyer already covers; their Google Ads rows are discarded
    dual_attributed = google_ads.join(appsflyer_devices, ["device_id"], "left_semi").count()
    google_only = google_ads.join(appsflyer_devices, ["device_id"], "left_anti")

    priced = price_google_ads(google_only, campaign_costs)
    missing_cost = priced.filter(col("cost_per_user").isNull()).count()
    if missing_cost:
        logger.warning(f"{missing_cost} Google Ads devices have no campaign cost reference; treating as organic")

    google_resolved = priced \
        .filter(col("cost_per_user").isNotNull()) \
        .withColumn("acquisition_cost", col("cost_per_user").cast(MONEY_TYPE)) \
        .select(*RESOLVED_ATTRIBUTION_COLUMNS)

    resolved = appsflyer.select(*RESOLVED_ATTRIBUTION_COLUMNS).unionByName(google_resolved)

    logger.info(f"Resolved attribution with {dual_attributed} AppsFlyer overrides of Google Ads")

    return resolved, {
        "missing_cost_reference": missing_cost,
        "dual_attribution_overrides": dual_attributed,
    }
