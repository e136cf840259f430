"""Schemas for raw feeds and canonical record sets"""

from pyspark.sql.types import (
    StructType, StructField, StringType, DateType, DecimalType, BooleanType
)

from fitness_roi import config

MONEY_TYPE = DecimalType(18, 2)
REVENUE_TYPE = DecimalType(28, 2)
ROI_TYPE = DecimalType(32, 4)

ORGANIC_CHANNEL = "organic"
GOOGLE_ADS_CHANNEL = "google_ads"
APPSFLYER_SOURCE = "appsflyer"
GOOGLE_ADS_SOURCE = "google_ads"


def _raw(*names):
    # Raw feeds are read as text; typing happens in staging
    return StructType([StructField(name, StringType(), True) for name in names])


RAW_SCHEMAS = {
    config.REGISTRATIONS: _raw("device_id", "registration_date", "country"),
    config.TRANSACTIONS: _raw("device_id", "transaction_id", "transaction_date", "revenue_amount"),
    config.APPSFLYER: _raw("device_id", "channel", "campaign_id", "attribution_date", "acquisition_cost"),
    config.GOOGLE_ADS: _raw("device_id", "campaign_id", "attribution_date"),
    config.CAMPAIGN_COSTS: _raw("campaign_id", "cost_per_user"),
}

RESOLVED_ATTRIBUTION_COLUMNS = [
    "device_id", "channel", "campaign_id", "attribution_date",
    "acquisition_cost", "attribution_source",
]

CONSOLIDATED_USER_COLUMNS = [
    "device_id", "registration_date", "country", "is_organic", "channel",
    "campaign_id", "attribution_source", "acquisition_cost",
]

USER_ROI_SCHEMA = StructType([
    StructField("device_id", StringType(), False),
    StructField("channel", StringType(), True),
    StructField("campaign_id", StringType(), True),
    StructField("attribution_source", StringType(), True),
    StructField("is_organic", BooleanType(), False),
    StructField("registration_date", DateType(), True),
    StructField("acquisition_cost", MONEY_TYPE, False),
    StructField("lifetime_revenue", REVENUE_TYPE, False),
    StructField("roi", ROI_TYPE, False),
])

USER_ROI_COLUMNS = [field.name for field in USER_ROI_SCHEMA.fields]
