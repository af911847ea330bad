"""
Seed a demo head office with two branches, drivers, entries and occurrences.
Usage: python scripts/setup/seed_demo.py [--days 7] [--owner demo-admin]
"""

import argparse
import random
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime, timedelta
from gatehouse.database import create_tables, SessionLocal
from gatehouse.models.profile import Profile
from gatehouse.store.sql import SqlDocumentStore

DRIVERS = ["Ana Souza", "Bruno Lima", "Carla Dias", "Diego Rocha", "Elisa Prado", "Fabio Nunes"]
PLATES = ["ABC-1234", "BRA2E19", "QWE-9081", "RTY-5566", "JKL-3030", "MNO-7788", "PQR-1122"]
OCCURRENCES = ["Broken barrier", "Missing invoice", "Unscheduled arrival", "Cargo damage"]


def main():
    parser = argparse.ArgumentParser(description="Seed gatehouse demo data")
    parser.add_argument("--days", type=int, default=7, help="Days of history to generate")
    parser.add_argument("--owner", default="demo-admin", help="User id of the admin owner")
    args = parser.parse_args()

    create_tables()
    store = SqlDocumentStore()
    now = datetime.now()

    head = store.add_tenant("Demo Logistics", type="matriz", owner_id=args.owner)
    branches = [
        store.add_tenant(f"Demo Logistics - Branch {n}", type="filial",
                         parent_id=head.id, owner_id=args.owner)
        for n in (1, 2)
    ]

    with SessionLocal() as db:
        db.merge(Profile(user_id=args.owner, email="admin@demo.local", role="admin",
                         tenant_id=head.id, created_at=now))
        db.merge(Profile(user_id="demo-operator", email="gate@demo.local", role="operator",
                         tenant_id=head.id, allowed_pages="entries", created_at=now))
        db.commit()

    total = 0
    for tenant in [head] + branches:
        drivers = [store.add_driver(tenant.id, name, document=f"{random.randint(10**8, 10**9)}")
                   for name in random.sample(DRIVERS, 4)]
        for day in range(args.days):
            for _ in range(random.randint(3, 12)):
                entry_time = (now - timedelta(days=day)).replace(
                    hour=random.randint(6, 20), minute=random.randint(0, 59), second=0, microsecond=0)
                if entry_time > now:
                    continue
                stay = timedelta(minutes=random.randint(10, 600))
                exit_time = entry_time + stay if entry_time + stay < now and random.random() > 0.1 else None
                store.add_entry(tenant.id, entry_time=entry_time, driver_id=random.choice(drivers).id,
                                vehicle_plate=random.choice(PLATES), exit_time=exit_time)
                total += 1
            if random.random() > 0.5:
                store.add_occurrence(tenant.id, random.choice(OCCURRENCES),
                                     created_at=now - timedelta(days=day, hours=random.randint(0, 10)))

    print(f"✅ Seeded {total} entries across {1 + len(branches)} tenants")
    print(f"   Admin user id:    {args.owner}")
    print("   Operator user id: demo-operator")


if __name__ == "__main__":
    main()
