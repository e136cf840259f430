"""
staging.py - Normalize raw feeds into canonical record sets

This module:
1. Trims identifiers and turns blank strings into nulls
2. Casts dates and money to their canonical types
3. Drops structurally invalid rows and counts them per feed
4. Reduces duplicate attribution and transaction rows to one
5. Enforces key uniqueness for registrations and the cost reference

Every normalizer returns (dataframe, anomalies) where anomalies maps a
report category to the number of rows it removed.
"""

import logging

from pyspark.sql import Window
from pyspark.sql.functions import (
    col, when, lit, trim, lower, upper, coalesce, row_number
)
from pyspark.sql.types import DateType

from fitness_roi import config
from fitness_roi.quality.checks import assert_unique
from fitness_roi.schemas import (
    MONEY_TYPE, GOOGLE_ADS_CHANNEL, APPSFLYER_SOURCE, GOOGLE_ADS_SOURCE
)

logger = logging.getLogger(__name__)

UNKNOWN_CHANNEL = "unknown"


def clean_string(name):
    """Trimmed string column with blanks turned into nulls"""
    trimmed = trim(col(name))
    return when(trimmed == "", lit(None)).otherwise(trimmed)


def unparseable(name, parsed):
    """True when the raw value is present but did not cast"""
    return clean_string(name).isNotNull() & parsed.isNull()


def split_valid_rows(df, invalid_condition, feed):
    """Separate valid rows from invalid ones and count the invalid ones"""
    flagged = df.withColumn("_is_invalid", coalesce(invalid_condition, lit(True)))
    rejected = flagged.filter(col("_is_invalid")).count()
    valid = flagged.filter(~col("_is_invalid")).drop("_is_invalid")

    if rejected:
        logger.warning(f"Dropped {rejected} malformed rows from {feed}")
    return valid, rejected


def keep_first(df, key, order_columns):
    """Keep one row per key, the first by order_columns"""
    window = Window.partitionBy(key).orderBy(*order_columns)
    return df.withColumn("_row_number", row_number().over(window)) \
        .filter(col("_row_number") == 1) \
        .drop("_row_number")


def normalize_registrations(raw):
    """stg_registrations: one row per registered device"""
    logger.info("Normalizing registrations")

    typed = raw.select(
        clean_string("device_id").alias("device_id"),
        clean_string("registration_date").cast(DateType()).alias("registration_date"),
        upper(clean_string("country")).alias("country"),
        unparseable("registration_date", clean_string("registration_date").cast(DateType())).alias("_bad_date"),
    )

    registrations, rejected = split_valid_rows(
        typed,
        col("device_id").isNull() | col("_bad_date"),
        config.REGISTRATIONS,
    )
    registrations = registrations.drop("_bad_date")

    # Registration is the user universe; a duplicate device would double count
    assert_unique(registrations, "device_id", "stg_registrations")

    return registrations, {f"malformed_{config.REGISTRATIONS}": rejected}


def normalize_transactions(raw):
    """stg_transactions: one row per valid, distinct transaction"""
    logger.info("Normalizing transactions")

    revenue = clean_string("revenue_amount").cast(MONEY_TYPE)
    transaction_date = clean_string("transaction_date").cast(DateType())

    typed = raw.select(
        clean_string("device_id").alias("device_id"),
        clean_string("transaction_id").alias("transaction_id"),
        transaction_date.alias("transaction_date"),
        revenue.alias("revenue_amount"),
        unparseable("transaction_date", transaction_date).alias("_bad_date"),
    )

    transactions, rejected = split_valid_rows(
        typed,
        col("device_id").isNull()
        | col("transaction_id").isNull()
        | col("revenue_amount").isNull()
        | (col("revenue_amount") < 0)
        | col("_bad_date"),
        config.TRANSACTIONS,
    )
    transactions = transactions.drop("_bad_date")

    valid_count = transactions.count()
    transactions = keep_first(
        transactions,
        "transaction_id",
        [col("transaction_date").asc_nulls_last(), col("device_id")],
    )
    duplicates = valid_count - transactions.count()
    if duplicates:
        logger.warning(f"Dropped {duplicates} duplicate transaction_id rows")

    return transactions, {f"malformed_{config.TRANSACTIONS}": rejected + duplicates}


def _one_attribution_per_device(df, feed):
    """Earliest attribution wins when a feed repeats a device"""
    before = df.count()
    deduplicated = keep_first(
        df,
        "device_id",
        [col("attribution_date").asc_nulls_last(), col("campaign_id").asc_nulls_last()],
    )
    duplicates = before - deduplicated.count()
    if duplicates:
        logger.warning(f"Collapsed {duplicates} repeated attribution rows in {feed}")
    return deduplicated, duplicates


def normalize_appsflyer(raw):
    """stg_appsflyer: native channel, campaign and cost per device"""
    logger.info("Normalizing AppsFlyer attribution")

    cost = clean_string("acquisition_cost").cast(MONEY_TYPE)
    attribution_date = clean_string("attribution_date").cast(DateType())

    typed = raw.select(
        clean_string("device_id").alias("device_id"),
        coalesce(lower(clean_string("channel")), lit(UNKNOWN_CHANNEL)).alias("channel"),
        clean_string("campaign_id").alias("campaign_id"),
        attribution_date.alias("attribution_date"),
        cost.alias("acquisition_cost"),
        lit(APPSFLYER_SOURCE).alias("attribution_source"),
        unparseable("attribution_date", attribution_date).alias("_bad_date"),
    )

    appsflyer, rejected = split_valid_rows(
        typed,
        col("device_id").isNull()
        | col("acquisition_cost").isNull()
        | (col("acquisition_cost") < 0)
        | col("_bad_date"),
        config.APPSFLYER,
    )
    appsflyer, duplicates = _one_attribution_per_device(appsflyer.drop("_bad_date"), config.APPSFLYER)

    return appsflyer, {
        f"malformed_{config.APPSFLYER}": rejected,
        "duplicate_attribution": duplicates,
    }


def normalize_google_ads(raw):
    """stg_google_ads: campaign per device, cost resolved later"""
    logger.info("Normalizing Google Ads attribution")

    attribution_date = clean_string("attribution_date").cast(DateType())

    typed = raw.select(
        clean_string("device_id").alias("device_id"),
        lit(GOOGLE_ADS_CHANNEL).alias("channel"),
        clean_string("campaign_id").alias("campaign_id"),
        attribution_date.alias("attribution_date"),
        lit(GOOGLE_ADS_SOURCE).alias("attribution_source"),
        unparseable("attribution_date", attribution_date).alias("_bad_date"),
    )

    google_ads, rejected = split_valid_rows(
        typed,
        col("device_id").isNull() | col("_bad_date"),
        config.GOOGLE_ADS,
    )
    google_ads, duplicates = _one_attribution_per_device(google_ads.drop("_bad_date"), config.GOOGLE_ADS)

    return google_ads, {
        f"malformed_{config.GOOGLE_ADS}": rejected,
        "duplicate_attribution": duplicates,
    }


def normalize_campaign_costs(raw):
    """stg_campaign_costs: one cost per campaign"""
    logger.info("Normalizing campaign cost reference")

    typed = raw.select(
        clean_string("campaign_id").alias("campaign_id"),
        clean_string("cost_per_user").cast(MONEY_TYPE).alias("cost_per_user"),
    )

    costs, rejected = split_valid_rows(
        typed,
        col("campaign_id").isNull()
        | col("cost_per_user").isNull()
        | (col("cost_per_user") < 0),
        config.CAMPAIGN_COSTS,
    )

    assert_unique(costs, "campaign_id", "stg_campaign_costs")

    return costs, {f"malformed_{config.CAMPAIGN_COSTS}": rejected}
