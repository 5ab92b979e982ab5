"""Saathi Bazaar bulk buy management CLI.

Provides commands to create and drop the database schema, seed demo
campaigns, and run the overdue-campaign sweep.

Usage:
    python src/manage.py setup-db         # Create all tables
    python src/manage.py drop-db          # Drop all tables
    python src/manage.py seed             # Launch the demo campaigns
    python src/manage.py expire-overdue   # Fail open campaigns past their deadline (run from cron)
"""

import argparse
import sys
from datetime import UTC, datetime, timedelta

# Opening pledges stand in for vendors who joined before launch day
DEMO_CAMPAIGNS = [
    {
        "item_name": "Tomato",
        "unit": "kg",
        "cluster_location": "Sealdah_North",
        "target_qty": 50,
        "individual_price": 45,
        "bulk_price": 30,
        "deadline_in_days": 2,
        "opening_pledges": [("seed-vendor-001", "Ramesh Chaat Corner", 25)],
    },
    {
        "item_name": "Onion",
        "unit": "kg",
        "cluster_location": "NewTown_Central",
        "target_qty": 40,
        "individual_price": 28,
        "bulk_price": 22,
        "deadline_in_days": 1,
        "opening_pledges": [("seed-vendor-002", "Sharma Rolls", 10)],
    },
    {
        "item_name": "Potato",
        "unit": "bags",
        "cluster_location": "Howrah_Market",
        "target_qty": 10,
        "individual_price": 200,
        "bulk_price": 150,
        "deadline_in_days": 3,
        "opening_pledges": [],
    },
]


def _init_domain():
    from bulkbuy.domain import bulkbuy

    bulkbuy.init()
    return bulkbuy


def setup_database():
    from bulkbuy.utils.db import setup_db

    domain = _init_domain()
    print("Creating bulkbuy database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from bulkbuy.utils.db import drop_db

    domain = _init_domain()
    print("Dropping bulkbuy database schema...")
    drop_db(domain)
    print("Done.")


def seed_campaigns():
    domain = _init_domain()

    from bulkbuy import ledger

    now = datetime.now(UTC)
    with domain.domain_context():
        for spec in DEMO_CAMPAIGNS:
            campaign_id = ledger.launch_campaign(
                item_name=spec["item_name"],
                unit=spec["unit"],
                cluster_location=spec["cluster_location"],
                target_qty=spec["target_qty"],
                individual_price=spec["individual_price"],
                bulk_price=spec["bulk_price"],
                deadline=now + timedelta(days=spec["deadline_in_days"]),
            )
            for vendor_id, shop_name, quantity in spec["opening_pledges"]:
                ledger.contribute(campaign_id, vendor_id, quantity, shop_name=shop_name)
            print(f"  {spec['item_name']} @ {spec['cluster_location']}: {campaign_id}")

    print(f"Seeded {len(DEMO_CAMPAIGNS)} campaigns.")


def expire_overdue():
    domain = _init_domain()

    from bulkbuy import ledger

    with domain.domain_context():
        expired_count = ledger.expire_overdue_campaigns()
    print(f"Failed {expired_count} overdue campaign(s).")


def main():
    parser = argparse.ArgumentParser(description="Saathi Bazaar bulk buy management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("seed", help="Launch the demo campaigns")
    subparsers.add_parser("expire-overdue", help="Fail open campaigns past their deadline")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed":
        seed_campaigns()
    elif args.command == "expire-overdue":
        expire_overdue()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
