from decimal import Decimal

from fitness_roi import config
from fitness_roi.transformation.staging import normalize_registrations, normalize_appsflyer
from fitness_roi.transformation.users import consolidate_users


def test_users_are_paid_or_organic(raw_frame, by_device):
    registrations, _ = normalize_registrations(raw_frame(config.REGISTRATIONS, [
        ("dev-paid", "2025-01-01", "US"),
        ("dev-organic", "2025-01-02", "DE"),
    ]))
    attribution, _ = normalize_appsflyer(raw_frame(config.APPSFLYER, [
        ("dev-paid", "tiktok", "af_1", "2025-01-01", "8.50"),
        ("dev-ghost", "tiktok", "af_1", "2025-01-01", "8.50"),
    ]))

    users, anomalies = consolidate_users(registrations, attribution)
    rows = by_device(users)

    assert set(rows) == {"dev-paid", "dev-organic"}
    assert anomalies == {"unregistered_attribution": 1}

    assert rows["dev-paid"]["is_organic"] is False
    assert rows["dev-paid"]["channel"] == "tiktok"
    assert rows["dev-paid"]["acquisition_cost"] == Decimal("8.50")

    assert rows["dev-organic"]["is_organic"] is True
    assert rows["dev-organic"]["channel"] is None
    assert rows["dev-organic"]["campaign_id"] is None
    assert rows["dev-organic"]["acquisition_cost"] == Decimal("0")
