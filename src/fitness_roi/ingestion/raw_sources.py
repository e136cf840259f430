"""
raw_sources.py - Load the raw fitness app feeds

This module:
1. Reads registrations, transactions, both attribution feeds and the
   campaign cost reference from CSV files or parquet directories
2. Applies the raw (all text) schema so staging sees uniform input
3. Fails the run with MissingSourceError when a feed cannot be read
"""

import logging

from pyspark.sql.functions import col
from pyspark.errors import AnalysisException

from fitness_roi.exceptions import MissingSourceError
from fitness_roi.schemas import RAW_SCHEMAS

logger = logging.getLogger(__name__)


def load_raw_feed(spark, pipeline_config, feed_name):
    """Load one raw feed with its raw schema"""
    if feed_name not in RAW_SCHEMAS:
        raise ValueError(f"Unknown raw feed: {feed_name}")

    schema = RAW_SCHEMAS[feed_name]
    location = pipeline_config.feed_location(feed_name)
    logger.info(f"Loading {feed_name} from {location}")

    try:
        if pipeline_config.input_format == "csv":
            df = spark.read \
                .option("header", "true") \
                .option("mode", "PERMISSIVE") \
                .schema(schema) \
                .csv(location)
        else:
            parquet = spark.read.parquet(location)
            missing = [name for name in schema.fieldNames() if name not in parquet.columns]
            if missing:
                raise MissingSourceError(f"{feed_name} at {location} is missing columns: {missing}")
            df = parquet.select(*[col(name).cast("string").alias(name) for name in schema.fieldNames()])
    except AnalysisException as e:
        logger.error(f"Error loading {feed_name} from {location}: {e}")
        raise MissingSourceError(f"Cannot read {feed_name} from {location}") from e

    return df

