import pytest

from fitness_roi import config
from fitness_roi.config import get_spark_session
from fitness_roi.schemas import RAW_SCHEMAS


@pytest.fixture(scope="session")
def spark():
    """
    A local SparkSession shared by the whole test run.
    """
    session = get_spark_session(app_name="fitness-roi-tests", master="local[2]")
    session.conf.set("spark.sql.shuffle.partitions", "2")
    yield session
    session.stop()


@pytest.fixture
def raw_frame(spark):
    """Build a raw feed DataFrame from tuples in the feed's column order"""
    def build(feed_name, rows):
        return spark.createDataFrame(rows, RAW_SCHEMAS[feed_name])
    return build


@pytest.fixture
def make_feeds(raw_frame):
    """Build all five raw feeds; any feed not given is empty"""
    def build(registrations=(), transactions=(), appsflyer=(), google_ads=(), campaign_costs=()):
        return {
            config.REGISTRATIONS: raw_frame(config.REGISTRATIONS, list(registrations)),
            config.TRANSACTIONS: raw_frame(config.TRANSACTIONS, list(transactions)),
            config.APPSFLYER: raw_frame(config.APPSFLYER, list(appsflyer)),
            config.GOOGLE_ADS: raw_frame(config.GOOGLE_ADS, list(google_ads)),
            config.CAMPAIGN_COSTS: raw_frame(config.CAMPAIGN_COSTS, list(campaign_costs)),
        }
    return build


@pytest.fixture
def by_device():
    """Collect a DataFrame into {device_id: row dict}"""
    def collect(df):
        return {row["device_id"]: row.asDict() for row in df.collect()}
    return collect
