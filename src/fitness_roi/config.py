"""
config.py - Shared configuration for the user ROI pipeline

This module:
1. Defines storage locations for raw feeds and marts per environment
2. Builds the PipelineConfig passed to every run
3. Creates the SparkSession used by all stages

Paths and credentials can be overridden with FITNESS_ROI_* environment
variables so the same code runs against MinIO, a local /data mount or a
developer laptop.
"""

import os
import logging

from pyspark.sql import SparkSession

logger = logging.getLogger(__name__)

# Define storage locations
MINIO_ENDPOINT = os.environ.get("FITNESS_ROI_MINIO_ENDPOINT", "http://minio:9000")
MINIO_ACCESS_KEY = os.environ.get("FITNESS_ROI_MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.environ.get("FITNESS_ROI_MINIO_SECRET_KEY", "minioadmin")
SPARK_MASTER = os.environ.get("FITNESS_ROI_SPARK_MASTER", "local[*]")

RAW_DATA_PATH = os.environ.get("FITNESS_ROI_RAW_PATH", "/data/raw/fitness_app")
MARTS_PATH = os.environ.get("FITNESS_ROI_MARTS_PATH", "/data/marts")

# Raw feed names, also the file/directory names under the input location
REGISTRATIONS = "registrations"
TRANSACTIONS = "transactions"
APPSFLYER = "appsflyer_attribution"
GOOGLE_ADS = "google_ads_attribution"
CAMPAIGN_COSTS = "campaign_costs"

RAW_FEEDS = [REGISTRATIONS, TRANSACTIONS, APPSFLYER, GOOGLE_ADS, CAMPAIGN_COSTS]

# Mart table names
USER_ROI_TABLE = "user_roi"
CHANNEL_ROI_TABLE = "channel_roi_summary"

ENVIRONMENTS = {
    "dev": {
        "schema": "DEV",
        "output_path": os.path.join(MARTS_PATH, "dev"),
    },
    "prod": {
        "schema": "PROD",
        "output_path": os.path.join(MARTS_PATH, "prod"),
    },
}

SNOWFLAKE_JARS = "net.snowflake:snowflake-jdbc:3.13.30,net.snowflake:spark-snowflake_2.12:2.11.0-spark_3.3"


def snowflake_options(schema):
    """Snowflake connection options read from the environment"""
    return {
        "sfURL": os.environ.get("SNOWFLAKE_URL", ""),
        "sfUser": os.environ.get("SNOWFLAKE_USER", ""),
        "sfPassword": os.environ.get("SNOWFLAKE_PASSWORD", ""),
        "sfDatabase": os.environ.get("SNOWFLAKE_DATABASE", "FITNESS_ANALYTICS"),
        "sfSchema": schema,
        "sfWarehouse": os.environ.get("SNOWFLAKE_WAREHOUSE", "COMPUTE_WH"),
        "sfRole": os.environ.get("SNOWFLAKE_ROLE", "TRANSFORMER"),
    }


class PipelineConfig:
    """Everything a run needs to know about where to read and write.

    The config is built once and handed to the materialization step; no
    stage looks up environment routing on its own.
    """

    def __init__(self, environment="dev", input_path=None, output_path=None,
                 input_format="csv", use_warehouse=False, strict=False,
                 warehouse_options=None):
        if environment not in ENVIRONMENTS:
            raise ValueError(f"Unknown environment: {environment}. Expected one of {sorted(ENVIRONMENTS)}")
        if input_format not in ("csv", "parquet"):
            raise ValueError(f"Unsupported input format: {input_format}")

        self.environment = environment
        self.input_path = input_path or RAW_DATA_PATH
        self.output_path = output_path or ENVIRONMENTS[environment]["output_path"]
        self.input_format = input_format
        self.use_warehouse = use_warehouse
        self.strict = strict
        self.schema = ENVIRONMENTS[environment]["schema"]
        self.warehouse_options = warehouse_options or snowflake_options(self.schema)

    def feed_location(self, feed_name):
        """Location of a raw feed under the input path"""
        if self.input_format == "csv":
            return os.path.join(self.input_path, f"{feed_name}.csv")
        return os.path.join(self.input_path, feed_name)

    def output_location(self, table_name):
        """Location of a mart under the output path"""
        return os.path.join(self.output_path, table_name)

    def warehouse_table(self, table_name):
        """Fully qualified warehouse table for a mart"""
        return f"{self.warehouse_options['sfDatabase']}.{self.schema}.{table_name.upper()}"

    def __repr__(self):
        return (f"PipelineConfig(environment={self.environment!r}, input_path={self.input_path!r}, "
                f"output_path={self.output_path!r}, use_warehouse={self.use_warehouse}, strict={self.strict})")


def load_config(environment=None, **overrides):
    """Build a PipelineConfig for the given environment (FITNESS_ROI_ENV by default)"""
    environment = environment or os.environ.get("FITNESS_ROI_ENV", "dev")
    if "use_warehouse" not in overrides:
        overrides["use_warehouse"] = os.environ.get("FITNESS_ROI_USE_WAREHOUSE", "false").lower() == "true"
    return PipelineConfig(environment=environment, **overrides)


def get_spark_session(app_name="Fitness User ROI", master=None, use_warehouse=False):
    """Create or reuse the SparkSession with S3/MinIO configuration"""
    builder = SparkSession.builder \
        .appName(app_name) \
        .master(master or SPARK_MASTER) \
        .config("spark.sql.ansi.enabled", "false") \
        .config("spark.sql.session.timeZone", "UTC") \
        .config("spark.hadoop.fs.s3a.endpoint", MINIO_ENDPOINT) \
        .config("spark.hadoop.fs.s3a.access.key", MINIO_ACCESS_KEY) \
        .config("spark.hadoop.fs.s3a.secret.key", MINIO_SECRET_KEY) \
        .config("spark.hadoop.fs.s3a.path.style.access", "true") \
        .config("spark.hadoop.fs.s3a.impl", "org.apache.hadoop.fs.s3a.S3AFileSystem") \
        .config("spark.hadoop.fs.s3a.connection.ssl.enabled", "false")

    if use_warehouse:
        builder = builder.config("spark.jars.packages", SNOWFLAKE_JARS)

    spark = builder.getOrCreate()

    # Set log level to reduce noise
    spark.sparkContext.setLogLevel("WARN")
    logger.info(f"Spark session ready: {app_name} on {spark.sparkContext.master}")
    return spark
