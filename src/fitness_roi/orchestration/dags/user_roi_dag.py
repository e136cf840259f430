"""
user_roi_dag.py - Daily schedule for the user ROI pipeline

This DAG:
1. Checks that every raw feed is present for the run
2. Submits the user ROI pipeline to Spark for the execution date
3. Writes marts to the environment named by the fitness_roi_env Variable

The pipeline itself validates, computes and writes all marts in a single
spark-submit, so a failed run never leaves partial output.
"""

from datetime import datetime, timedelta
from airflow import DAG
from airflow.operators.python import PythonOperator
from airflow.providers.apache.spark.operators.spark_submit import SparkSubmitOperator
from airflow.models import Variable
import os
import logging

from fitness_roi import config

# Default arguments
default_args = {
    'owner': 'analytics',
    'depends_on_past': False,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 1,
    'retry_delay': timedelta(minutes=5),
}

# Define the DAG
dag = DAG(
    'user_roi_dag',
    default_args=default_args,
    description='Compute per-user marketing ROI for the fitness app',
    schedule=timedelta(days=1),
    start_date=datetime(2025, 1, 1),
    catchup=False,
    tags=['marts', 'roi'],
)

ENVIRONMENT = Variable.get('fitness_roi_env', default_var='dev')
RAW_DATA_PATH = Variable.get('fitness_roi_raw_path', default_var=config.RAW_DATA_PATH)
JOB_PATH = Variable.get('fitness_roi_job_path', default_var='/src/fitness_roi/cli.py')


def check_raw_feeds(**kwargs):
    """Fail early when a raw feed is missing"""
    missing = []
    for feed_name in config.RAW_FEEDS:
        path = os.path.join(RAW_DATA_PATH, f"{feed_name}.csv")
        if os.path.exists(path):
            logging.info(f"Found {feed_name} at {path}")
        else:
            missing.append(path)

    if missing:
        raise FileNotFoundError(f"Missing raw feeds: {missing}")
    return len(config.RAW_FEEDS)


check_feeds = PythonOperator(
    task_id='check_raw_feeds',
    python_callable=check_raw_feeds,
    dag=dag,
)

run_user_roi = SparkSubmitOperator(
    task_id='run_user_roi',
    application=JOB_PATH,
    name='user_roi',
    conn_id='spark_default',
    application_args=["run", "--env", ENVIRONMENT, "--input-path", RAW_DATA_PATH, "{{ ds }}"],
    conf={
        'spark.master': config.SPARK_MASTER,
        'spark.driver.memory': '1g',
        'spark.executor.memory': '1g',
    },
    dag=dag,
)

check_feeds >> run_user_roi
