"""
fitness_app.py - Generate synthetic raw feeds for the fitness app

Writes the five raw CSV feeds the pipeline reads:
registrations, transactions, appsflyer_attribution, google_ads_attribution
and campaign_costs.

The generated data deliberately contains the situations the pipeline has to
handle: organic users, devices attributed by both feeds, Google Ads
campaigns with no cost reference, attributed devices that never registered
and a small share of malformed rows.

Usage:
    python -m fitness_roi.data_generation.fitness_app --users 5000 --output-dir data/raw/fitness_app
"""

import os
import random
import argparse
import datetime
import logging

import numpy as np
import pandas as pd
from faker import Faker
from tqdm import tqdm

from fitness_roi import config

logger = logging.getLogger(__name__)

# Paid channels tracked by AppsFlyer: (campaign count, cost per install range)
APPSFLYER_CHANNELS = {
    "tiktok": (4, (2.5, 9.0)),
    "facebook": (5, (3.0, 12.0)),
    "instagram": (4, (3.5, 11.0)),
    "snapchat": (2, (1.5, 6.0)),
    "apple_search_ads": (3, (4.0, 15.0)),
}

GOOGLE_ADS_CAMPAIGNS = 6
GOOGLE_ADS_COST_RANGE = (2.0, 10.0)

# In-app purchases: (product, price, weight)
PRODUCTS = [
    ("monthly_premium", 9.99, 0.45),
    ("annual_premium", 59.99, 0.15),
    ("workout_pack", 4.99, 0.25),
    ("nutrition_plan", 14.99, 0.10),
    ("personal_coach_session", 29.99, 0.05),
]

COUNTRIES = ["US", "GB", "DE", "FR", "ES", "CA", "AU", "BR", "IN", "NL"]


class FitnessAppDataGenerator:
    def __init__(self, num_users=1000, start_date=None, end_date=None, paid_share=0.6,
                 overlap_share=0.05, unmapped_campaign_share=0.03, unregistered_share=0.02,
                 malformed_share=0.01, seed=42, output_dir=None):
        self.num_users = num_users
        self.start_date = datetime.datetime.strptime(start_date, '%Y-%m-%d').date() if start_date else datetime.date(2025, 1, 1)
        self.end_date = datetime.datetime.strptime(end_date, '%Y-%m-%d').date() if end_date else datetime.date(2025, 3, 31)
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")

        self.paid_share = paid_share
        self.overlap_share = overlap_share
        self.unmapped_campaign_share = unmapped_campaign_share
        self.unregistered_share = unregistered_share
        self.malformed_share = malformed_share
        self.output_dir = output_dir or config.RAW_DATA_PATH

        # Seed everything for reproducibility
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.random = random.Random(seed)
        self.rng = np.random.default_rng(seed)

        self.appsflyer_campaigns = []
        self.google_campaigns = []

    def initialize_campaigns(self):
        """Create AppsFlyer campaigns with native cost and Google Ads campaigns with reference cost"""
        self.appsflyer_campaigns = []
        for channel, (count, (low, high)) in APPSFLYER_CHANNELS.items():
            for number in range(1, count + 1):
                self.appsflyer_campaigns.append({
                    "campaign_id": f"af_{channel}_{number:02d}",
                    "channel": channel,
                    "cost_range": (low, high),
                })

        self.google_campaigns = [
            {
                "campaign_id": f"gads_{number:03d}",
                "cost_per_user": round(self.random.uniform(*GOOGLE_ADS_COST_RANGE), 2),
            }
            for number in range(1, GOOGLE_ADS_CAMPAIGNS + 1)
        ]
        logger.info(f"Initialized {len(self.appsflyer_campaigns)} AppsFlyer and {len(self.google_campaigns)} Google Ads campaigns")

    def random_date(self, start, end=None):
        return self.fake.date_between_dates(date_start=start, date_end=end or self.end_date)

    def generate_registrations(self):
        records = []
        for _ in tqdm(range(self.num_users), desc="Generating registrations"):
            records.append({
                "device_id": self.fake.unique.uuid4(),
                "registration_date": self.random_date(self.start_date).strftime('%Y-%m-%d'),
                "country": self.random.choice(COUNTRIES),
            })
        return pd.DataFrame(records, columns=["device_id", "registration_date", "country"])

    def generate_attribution(self, registrations):
        """Split paid users between AppsFlyer and Google Ads, with some overlap"""
        appsflyer_records = []
        google_records = []

        for user in registrations.itertuples(index=False):
            if self.random.random() >= self.paid_share:
                continue

            registered = datetime.datetime.strptime(user.registration_date, '%Y-%m-%d').date()
            in_appsflyer = self.random.random() < 0.7
            in_google = not in_appsflyer or self.random.random() < self.overlap_share

            if in_appsflyer:
                appsflyer_records.append(self._appsflyer_row(user.device_id, registered))
            if in_google:
                google_records.append(self._google_row(user.device_id, registered))

        # Installs that never made it to registration
        unregistered = int(len(registrations) * self.unregistered_share)
        for _ in range(unregistered):
            appsflyer_records.append(self._appsflyer_row(self.fake.unique.uuid4(), self.random_date(self.start_date)))

        appsflyer = pd.DataFrame(appsflyer_records, columns=["device_id", "channel", "campaign_id", "attribution_date", "acquisition_cost"])
        google_ads = pd.DataFrame(google_records, columns=["device_id", "campaign_id", "attribution_date"])
        return appsflyer, google_ads

    def _appsflyer_row(self, device_id, registered):
        campaign = self.random.choice(self.appsflyer_campaigns)
        return {
            "device_id": device_id,
            "channel": campaign["channel"],
            "campaign_id": campaign["campaign_id"],
            "attribution_date": registered.strftime('%Y-%m-%d'),
            "acquisition_cost": f"{self.random.uniform(*campaign['cost_range']):.2f}",
        }

    def _google_row(self, device_id, registered):
        if self.random.random() < self.unmapped_campaign_share:
            campaign_id = f"gads_unmapped_{self.random.randint(1, 3):03d}"
        else:
            campaign_id = self.random.choice(self.google_campaigns)["campaign_id"]
        return {
            "device_id": device_id,
            "campaign_id": campaign_id,
            "attribution_date": registered.strftime('%Y-%m-%d'),
        }

    def generate_transactions(self, registrations, paid_devices):
        """Purchases after registration; paid users buy a little more often"""
        products = [product for product, _, _ in PRODUCTS]
        prices = {product: price for product, price, _ in PRODUCTS}
        weights = np.array([weight for _, _, weight in PRODUCTS])
        weights = weights / weights.sum()

        records = []
        for user in tqdm(registrations.itertuples(index=False), total=len(registrations), desc="Generating transactions"):
            mean_purchases = 1.6 if user.device_id in paid_devices else 1.1
            purchase_count = int(self.rng.poisson(mean_purchases))
            registered = datetime.datetime.strptime(user.registration_date, '%Y-%m-%d').date()

            for product in self.rng.choice(products, size=purchase_count, p=weights):
                records.append({
                    "device_id": user.device_id,
                    "transaction_id": self.fake.unique.uuid4(),
                    "transaction_date": self.random_date(registered).strftime('%Y-%m-%d'),
                    "revenue_amount": f"{prices[product]:.2f}",
                })

        return pd.DataFrame(records, columns=["device_id", "transaction_id", "transaction_date", "revenue_amount"])

    def generate_campaign_costs(self):
        return pd.DataFrame(
            [{"campaign_id": c["campaign_id"], "cost_per_user": f"{c['cost_per_user']:.2f}"} for c in self.google_campaigns],
            columns=["campaign_id", "cost_per_user"],
        )

    def inject_malformed_rows(self, feeds):
        """Append rows staging must reject: missing device ids and negative money"""
        transactions = feeds[config.TRANSACTIONS]
        appsflyer = feeds[config.APPSFLYER]

        bad_transactions = int(len(transactions) * self.malformed_share)
        extra = []
        for number in range(bad_transactions):
            if number % 2 == 0:
                extra.append({"device_id": "", "transaction_id": self.fake.unique.uuid4(),
                              "transaction_date": self.start_date.strftime('%Y-%m-%d'), "revenue_amount": "9.99"})
            else:
                extra.append({"device_id": self.fake.uuid4(), "transaction_id": self.fake.unique.uuid4(),
                              "transaction_date": self.start_date.strftime('%Y-%m-%d'), "revenue_amount": "-9.99"})
        if extra:
            feeds[config.TRANSACTIONS] = pd.concat([transactions, pd.DataFrame(extra)], ignore_index=True)

        bad_attribution = int(len(appsflyer) * self.malformed_share)
        extra = [
            {"device_id": self.fake.unique.uuid4(), "channel": "tiktok", "campaign_id": "af_tiktok_01",
             "attribution_date": "not-a-date", "acquisition_cost": "-1.00"}
            for _ in range(bad_attribution)
        ]
        if extra:
            feeds[config.APPSFLYER] = pd.concat([appsflyer, pd.DataFrame(extra)], ignore_index=True)

        return feeds

    def generate(self):
        """Generate all raw feeds; returns feed name -> pandas DataFrame"""
        self.initialize_campaigns()
        registrations = self.generate_registrations()
        appsflyer, google_ads = self.generate_attribution(registrations)
        paid_devices = set(appsflyer["device_id"]) | set(google_ads["device_id"])

        feeds = {
            config.REGISTRATIONS: registrations,
            config.TRANSACTIONS: self.generate_transactions(registrations, paid_devices),
            config.APPSFLYER: appsflyer,
            config.GOOGLE_ADS: google_ads,
            config.CAMPAIGN_COSTS: self.generate_campaign_costs(),
        }
        return self.inject_malformed_rows(feeds)

    def save(self, feeds):
        """Write each feed as <output_dir>/<feed>.csv"""
        os.makedirs(self.output_dir, exist_ok=True)
        paths = {}
        for feed_name, df in feeds.items():
            path = os.path.join(self.output_dir, f"{feed_name}.csv")
            df.to_csv(path, index=False)
            paths[feed_name] = path
            logger.info(f"Wrote {len(df)} {feed_name} rows to {path}")
        return paths


def build_parser(parser=None):
    parser = parser or argparse.ArgumentParser(description='Generate synthetic fitness app raw feeds')
    parser.add_argument('--users', type=int, default=1000, help='Number of registered users')
    parser.add_argument('--start-date', default='2025-01-01', help='First registration date (YYYY-MM-DD)')
    parser.add_argument('--end-date', default='2025-03-31', help='Last activity date (YYYY-MM-DD)')
    parser.add_argument('--paid-share', type=float, default=0.6, help='Share of users acquired by paid campaigns')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    parser.add_argument('--output-dir', default=config.RAW_DATA_PATH, help='Directory for the CSV feeds')
    return parser


def generate_from_args(args):
    generator = FitnessAppDataGenerator(
        num_users=args.users,
        start_date=args.start_date,
        end_date=args.end_date,
        paid_share=args.paid_share,
        seed=args.seed,
        output_dir=args.output_dir,
    )
    return generator.save(generator.generate())


# Main execution
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    generate_from_args(build_parser().parse_args())
    print("Fitness app data generation complete!")
