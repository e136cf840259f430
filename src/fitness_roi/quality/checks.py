"""
checks.py - Data tests for staged feeds and marts

This module:
1. Enforces key uniqueness at the input boundary (fatal DuplicateKey)
2. Runs the generic unique / not_null / accepted_range tests on marts
3. Summarizes completeness of a dataset for the run report

Boundary checks run before any join so a duplicated key can never fan out
into the marts.
"""

import logging

from pyspark.sql.functions import col, count, lit, sum, when

from fitness_roi.exceptions import DuplicateKey, DataTestFailure

logger = logging.getLogger(__name__)

# Generic tests declared for each mart: (test, column[, argument])
USER_ROI_TESTS = [
    ("unique", "device_id"),
    ("not_null", "device_id"),
    ("not_null", "is_organic"),
    ("not_null", "acquisition_cost"),
    ("not_null", "lifetime_revenue"),
    ("not_null", "roi"),
    ("accepted_range", "acquisition_cost", 0),
    ("accepted_range", "lifetime_revenue", 0),
]

CHANNEL_ROI_TESTS = [
    ("not_null", "channel"),
    ("not_null", "users"),
    ("accepted_range", "total_acquisition_cost", 0),
    ("accepted_range", "total_lifetime_revenue", 0),
]


def find_duplicates(df, key, limit=5):
    """Return up to `limit` key values that occur more than once"""
    duplicates = df.groupBy(key) \
        .agg(count(lit(1)).alias("occurrences")) \
        .filter(col("occurrences") > 1) \
        .select(key) \
        .limit(limit) \
        .collect()
    return [row[key] for row in duplicates]


def assert_unique(df, key, dataset):
    """Raise DuplicateKey if `key` is not unique in `df`"""
    duplicates = find_duplicates(df, key)
    if duplicates:
        logger.error(f"Duplicate {key} values in {dataset}: {duplicates}")
        raise DuplicateKey(dataset, key, duplicates)
    return df


def count_test_failures(df, test_name, column, argument=None):
    """Number of rows that fail a single generic test"""
    if test_name == "unique":
        duplicated = df.filter(col(column).isNotNull()) \
            .groupBy(column) \
            .agg(count(lit(1)).alias("occurrences")) \
            .filter(col("occurrences") > 1)
        return duplicated.count()
    if test_name == "not_null":
        return df.filter(col(column).isNull()).count()
    if test_name == "accepted_range":
        return df.filter(col(column) < lit(argument)).count()
    raise ValueError(f"Unknown data test: {test_name}")


def run_data_tests(df, dataset, tests):
    """Run generic tests against a dataset; the first failure is fatal"""
    for test in tests:
        test_name, column = test[0], test[1]
        argument = test[2] if len(test) > 2 else None
        failures = count_test_failures(df, test_name, column, argument)
        if failures:
            logger.error(f"Data test {test_name}({column}) failed on {dataset}: {failures} rows")
            raise DataTestFailure(test_name, dataset, column, failures)
    logger.info(f"All {len(tests)} data tests passed on {dataset}")
    return df


def completeness_metrics(df, dataset):
    """Null counts per column, as reported alongside the run"""
    row = df.select(
        count(lit(1)).alias("_rows"),
        *[sum(when(col(name).isNull(), 1).otherwise(0)).alias(name) for name in df.columns]
    ).collect()[0]

    row_count = row["_rows"]
    null_counts = {name: int(row[name] or 0) for name in df.columns}
    return {
        "dataset": dataset,
        "record_count": row_count,
        "null_counts": null_counts,
    }
