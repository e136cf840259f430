"""
load_marts.py - Write the marts of a run to their destination

This module:
1. Stamps every mart with the processing date and run id
2. Writes to Snowflake when the warehouse is enabled: every mart goes to a
   run-scoped staging table, then each target is swapped with its staging
   table, and swaps already made are reverted if a later one fails
3. Otherwise writes parquet through the Hadoop FileSystem (local paths,
   s3a:// or hdfs://): every mart goes to a staging directory first and is
   moved into place only after all writes succeed

A failed run leaves the previous outputs untouched.
"""

import logging

from pyspark.sql.functions import lit

from fitness_roi.exceptions import MaterializationError

logger = logging.getLogger(__name__)

SNOWFLAKE_SOURCE = "net.snowflake.spark.snowflake"


def stamp_run(df, run_id, processing_date):
    """Add run metadata columns"""
    return df \
        .withColumn("processing_date", lit(processing_date.strftime("%Y-%m-%d"))) \
        .withColumn("run_id", lit(run_id))


# ---------------------------------------------------------------------------
# Snowflake
# ---------------------------------------------------------------------------

def save_to_warehouse(df, pipeline_config, table_name):
    """Overwrite a Snowflake table in the environment's schema"""
    options = dict(pipeline_config.warehouse_options)
    options["dbtable"] = table_name.upper()

    df.write \
        .format(SNOWFLAKE_SOURCE) \
        .options(**options) \
        .mode("overwrite") \
        .save()

    location = pipeline_config.warehouse_table(table_name)
    logger.info(f"Wrote {table_name} to Snowflake table {location}")
    return location


def run_warehouse_query(spark, pipeline_config, query):
    """Run one statement in the environment's Snowflake schema"""
    logger.info(f"Running on Snowflake: {query}")
    spark._jvm.net.snowflake.spark.snowflake.Utils.runQuery(pipeline_config.warehouse_options, query)


def staging_table_name(table_name, run_id):
    return f"{table_name}_staging_{run_id}".upper()


def swap_warehouse_tables(spark, pipeline_config, staged):
    """Swap every (staging table, target table) pair; undo all swaps on failure"""
    swapped = []
    try:
        for staging_table, table in staged:
            run_warehouse_query(spark, pipeline_config, f"CREATE TABLE IF NOT EXISTS {table} LIKE {staging_table}")
            run_warehouse_query(spark, pipeline_config, f"ALTER TABLE {table} SWAP WITH {staging_table}")
            swapped.append((staging_table, table))
    except Exception:
        # SWAP is its own inverse
        for staging_table, table in reversed(swapped):
            run_warehouse_query(spark, pipeline_config, f"ALTER TABLE {table} SWAP WITH {staging_table}")
        raise


def _drop_staging_tables(spark, pipeline_config, staged):
    for staging_table, _ in staged:
        try:
            run_warehouse_query(spark, pipeline_config, f"DROP TABLE IF EXISTS {staging_table}")
        except Exception as e:
            logger.warning(f"Could not drop Snowflake staging table {staging_table}: {e}")


def save_marts_to_warehouse(spark, outputs, pipeline_config, run_id):
    """Write all marts to Snowflake, all or nothing"""
    staged = []
    try:
        for table_name, df in outputs.items():
            staging_table = staging_table_name(table_name, run_id)
            staged.append((staging_table, table_name.upper()))
            save_to_warehouse(df, pipeline_config, staging_table)
        swap_warehouse_tables(spark, pipeline_config, staged)
    except Exception as e:
        logger.error(f"Error writing marts to Snowflake schema {pipeline_config.schema}: {e}")
        raise MaterializationError(f"Could not write marts to Snowflake schema {pipeline_config.schema}") from e
    finally:
        _drop_staging_tables(spark, pipeline_config, staged)

    return {table_name: pipeline_config.warehouse_table(table_name) for table_name in outputs}


# ---------------------------------------------------------------------------
# Parquet
# ---------------------------------------------------------------------------

def _hadoop_path(spark, location):
    """FileSystem and Path for a location, resolved the way Spark resolves it"""
    path = spark._jvm.org.apache.hadoop.fs.Path(location)
    return path.getFileSystem(spark._jsc.hadoopConfiguration()), path


def _exists(spark, location):
    fs, path = _hadoop_path(spark, location)
    return fs.exists(path)


def _delete(spark, location):
    fs, path = _hadoop_path(spark, location)
    if fs.exists(path):
        fs.delete(path, True)


def _rename(spark, source, destination):
    fs, source_path = _hadoop_path(spark, source)
    _, destination_path = _hadoop_path(spark, destination)
    if not fs.rename(source_path, destination_path):
        raise IOError(f"Could not move {source} to {destination}")


def _swap_into_place(spark, staged, run_id):
    """Move every (staging location, location) pair into place.

    Existing outputs are moved aside first and restored if any move fails,
    so either every mart is replaced or none is.
    """
    backups = {}
    placed = []
    try:
        for _, location in staged:
            if _exists(spark, location):
                backup = f"{location}.__previous_{run_id}"
                _delete(spark, backup)
                _rename(spark, location, backup)
                backups[location] = backup
        for staging_location, location in staged:
            _rename(spark, staging_location, location)
            placed.append(location)
    except Exception:
        for location in placed:
            _delete(spark, location)
        for location, backup in backups.items():
            _rename(spark, backup, location)
        raise

    for backup in backups.values():
        _delete(spark, backup)


def save_to_parquet(spark, outputs, pipeline_config, run_id):
    """Write all marts as parquet, all or nothing"""
    staged = []
    try:
        for table_name, df in outputs.items():
            location = pipeline_config.output_location(table_name)
            staging_location = f"{location}.__staging_{run_id}"
            staged.append((staging_location, location))
            df.write.mode("overwrite").parquet(staging_location)
        _swap_into_place(spark, staged, run_id)
    except Exception as e:
        logger.error(f"Error writing marts to {pipeline_config.output_path}: {e}")
        for staging_location, _ in staged:
            _delete(spark, staging_location)
        raise MaterializationError(f"Could not write marts to {pipeline_config.output_path}") from e

    for _, location in staged:
        logger.info(f"Wrote mart to {location}")
    return {table_name: location for table_name, (_, location) in zip(outputs, staged)}


def materialize_outputs(spark, outputs, pipeline_config, run_id, processing_date):
    """Write every mart for the run; returns table name -> written location"""
    stamped = {
        table_name: stamp_run(df, run_id, processing_date)
        for table_name, df in outputs.items()
    }

    if pipeline_config.use_warehouse:
        return save_marts_to_warehouse(spark, stamped, pipeline_config, run_id)
    return save_to_parquet(spark, stamped, pipeline_config, run_id)
