from datetime import date
from decimal import Decimal

import pytest

from fitness_roi import config
from fitness_roi.exceptions import DuplicateKey
from fitness_roi.transformation.staging import (
    normalize_registrations, normalize_transactions, normalize_appsflyer,
    normalize_google_ads, normalize_campaign_costs
)


def test_registrations_are_trimmed_typed_and_counted(raw_frame, by_device):
    raw = raw_frame(config.REGISTRATIONS, [
        (" dev-1 ", "2025-01-05", "us"),
        ("dev-2", None, "GB"),
        ("   ", "2025-01-06", "DE"),
        (None, "2025-01-06", "DE"),
        ("dev-3", "not-a-date", "FR"),
    ])

    registrations, anomalies = normalize_registrations(raw)
    rows = by_device(registrations)

    assert set(rows) == {"dev-1", "dev-2"}
    assert rows["dev-1"]["registration_date"] == date(2025, 1, 5)
    assert rows["dev-1"]["country"] == "US"
    assert rows["dev-2"]["registration_date"] is None
    assert anomalies == {"malformed_registrations": 3}


def test_duplicate_registration_is_fatal(raw_frame):
    raw = raw_frame(config.REGISTRATIONS, [
        ("dev-1", "2025-01-05", "US"),
        ("dev-1 ", "2025-01-07", "US"),
    ])

    with pytest.raises(DuplicateKey) as excinfo:
        normalize_registrations(raw)

    assert excinfo.value.key == "device_id"
    assert excinfo.value.duplicates == ["dev-1"]


def test_transactions_drop_invalid_money_and_duplicates(raw_frame):
    raw = raw_frame(config.TRANSACTIONS, [
        ("dev-1", "t-1", "2025-01-05", "20.00"),
        ("dev-1", "t-2", "2025-01-06", "-5.00"),
        ("dev-1", "t-3", "2025-01-06", "abc"),
        ("dev-1", "t-4", "2025-01-06", None),
        (None, "t-5", "2025-01-06", "10.00"),
        ("dev-1", None, "2025-01-06", "10.00"),
        ("dev-2", "t-6", "2025-01-09", "30"),
        ("dev-2", "t-6", "2025-01-08", "30"),
    ])

    transactions, anomalies = normalize_transactions(raw)
    rows = {row["transaction_id"]: row for row in transactions.collect()}

    assert set(rows) == {"t-1", "t-6"}
    assert rows["t-1"]["revenue_amount"] == Decimal("20.00")
    # earliest copy of a repeated transaction is kept
    assert rows["t-6"]["transaction_date"] == date(2025, 1, 8)
    assert anomalies == {"malformed_transactions": 6}


def test_zero_revenue_transaction_is_valid(raw_frame):
    raw = raw_frame(config.TRANSACTIONS, [("dev-1", "t-1", "2025-01-05", "0")])

    transactions, anomalies = normalize_transactions(raw)

    assert transactions.count() == 1
    assert anomalies["malformed_transactions"] == 0


def test_appsflyer_lowercases_channel_and_keeps_earliest_attribution(raw_frame, by_device):
    raw = raw_frame(config.APPSFLYER, [
        ("dev-1", " TikTok ", "c-1", "2025-01-05", "10.00"),
        ("dev-1", "Facebook", "c-2", "2025-01-02", "12.00"),
        ("dev-2", None, "c-3", "2025-01-02", "3.50"),
        ("dev-3", "tiktok", "c-1", "2025-01-02", "-1.00"),
        ("dev-4", "tiktok", "c-1", "2025-01-02", None),
    ])

    appsflyer, anomalies = normalize_appsflyer(raw)
    rows = by_device(appsflyer)

    assert set(rows) == {"dev-1", "dev-2"}
    assert rows["dev-1"]["channel"] == "facebook"
    assert rows["dev-1"]["acquisition_cost"] == Decimal("12.00")
    assert rows["dev-2"]["channel"] == "unknown"
    assert rows["dev-2"]["attribution_source"] == "appsflyer"
    assert anomalies == {"malformed_appsflyer_attribution": 2, "duplicate_attribution": 1}


def test_google_ads_rows_get_google_channel(raw_frame, by_device):
    raw = raw_frame(config.GOOGLE_ADS, [
        ("dev-1", "gads_001", "2025-01-05"),
        ("", "gads_001", "2025-01-05"),
        ("dev-2", None, "2025-01-05"),
    ])

    google_ads, anomalies = normalize_google_ads(raw)
    rows = by_device(google_ads)

    assert set(rows) == {"dev-1", "dev-2"}
    assert rows["dev-1"]["channel"] == "google_ads"
    assert rows["dev-1"]["attribution_source"] == "google_ads"
    assert anomalies["malformed_google_ads_attribution"] == 1


def test_campaign_costs_reject_negative_and_require_unique_campaign(raw_frame):
    raw = raw_frame(config.CAMPAIGN_COSTS, [
        ("gads_001", "10.00"),
        ("gads_002", "-2.00"),
        (None, "5.00"),
    ])

    costs, anomalies = normalize_campaign_costs(raw)

    assert [row["campaign_id"] for row in costs.collect()] == ["gads_001"]
    assert anomalies == {"malformed_campaign_costs": 2}

    duplicated = raw_frame(config.CAMPAIGN_COSTS, [("gads_001", "10.00"), ("gads_001", "8.00")])
    with pytest.raises(DuplicateKey):
        normalize_campaign_costs(duplicated)
