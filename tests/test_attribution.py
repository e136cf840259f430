from decimal import Decimal

from fitness_roi import config
from fitness_roi.transformation.attribution import resolve_attribution
from fitness_roi.transformation.staging import (
    normalize_appsflyer, normalize_google_ads, normalize_campaign_costs
)


def resolve(raw_frame, appsflyer=(), google_ads=(), campaign_costs=()):
    staged_appsflyer, _ = normalize_appsflyer(raw_frame(config.APPSFLYER, list(appsflyer)))
    staged_google, _ = normalize_google_ads(raw_frame(config.GOOGLE_ADS, list(google_ads)))
    staged_costs, _ = normalize_campaign_costs(raw_frame(config.CAMPAIGN_COSTS, list(campaign_costs)))
    return resolve_attribution(staged_appsflyer, staged_google, staged_costs)


def test_appsflyer_wins_over_google_ads(raw_frame, by_device):
    resolved, anomalies = resolve(
        raw_frame,
        appsflyer=[("dev-1", "tiktok", "af_tiktok_01", "2025-01-05", "10")],
        google_ads=[("dev-1", "gads_x", "2025-01-04")],
        campaign_costs=[("gads_x", "5")],
    )
    rows = by_device(resolved)

    assert resolved.count() == 1
    assert rows["dev-1"]["acquisition_cost"] == Decimal("10.00")
    assert rows["dev-1"]["channel"] == "tiktok"
    assert rows["dev-1"]["campaign_id"] == "af_tiktok_01"
    assert rows["dev-1"]["attribution_source"] == "appsflyer"
    assert anomalies["dual_attribution_overrides"] == 1


def test_google_only_device_is_priced_from_reference(raw_frame, by_device):
    resolved, anomalies = resolve(
        raw_frame,
        google_ads=[("dev-1", "gads_x", "2025-01-04")],
        campaign_costs=[("gads_x", "10.00")],
    )
    rows = by_device(resolved)

    assert rows["dev-1"]["acquisition_cost"] == Decimal("10.00")
    assert rows["dev-1"]["channel"] == "google_ads"
    assert rows["dev-1"]["attribution_source"] == "google_ads"
    assert anomalies == {"missing_cost_reference": 0, "dual_attribution_overrides": 0}


def test_unmapped_google_campaign_is_excluded_and_counted(raw_frame, by_device):
    resolved, anomalies = resolve(
        raw_frame,
        google_ads=[
            ("dev-1", "gads_unknown", "2025-01-04"),
            ("dev-2", None, "2025-01-04"),
            ("dev-3", "gads_x", "2025-01-04"),
        ],
        campaign_costs=[("gads_x", "4.00")],
    )

    assert set(by_device(resolved)) == {"dev-3"}
    assert anomalies["missing_cost_reference"] == 2


def test_unmapped_campaign_does_not_matter_when_appsflyer_covers_device(raw_frame):
    resolved, anomalies = resolve(
        raw_frame,
        appsflyer=[("dev-1", "facebook", "af_fb_01", "2025-01-05", "7.25")],
        google_ads=[("dev-1", "gads_unknown", "2025-01-04")],
    )

    assert resolved.count() == 1
    assert anomalies["missing_cost_reference"] == 0


def test_resolved_attribution_has_one_row_per_device(raw_frame):
    resolved, _ = resolve(
        raw_frame,
        appsflyer=[
            ("dev-1", "tiktok", "af_1", "2025-01-05", "10"),
            ("dev-1", "tiktok", "af_2", "2025-01-06", "11"),
            ("dev-2", "snapchat", "af_3", "2025-01-05", "2"),
        ],
        google_ads=[
            ("dev-2", "gads_x", "2025-01-04"),
            ("dev-3", "gads_x", "2025-01-04"),
            ("dev-3", "gads_x", "2025-01-05"),
        ],
        campaign_costs=[("gads_x", "5")],
    )

    device_ids = [row["device_id"] for row in resolved.collect()]
    assert sorted(device_ids) == ["dev-1", "dev-2", "dev-3"]
