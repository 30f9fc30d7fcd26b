#!/usr/bin/env python3
"""
Populate a development database with fake users and prescriptions.

Usage: DB_URI=sqlite:///prescriptions.db python scripts/seed_data.py
Every seeded user gets the password printed at the end.
"""

import random

from faker import Faker
from werkzeug.security import generate_password_hash

from prescription_api.config import PRESCRIPTIONS_COLLECTION, USERS_COLLECTION, get_env
from prescription_api.database import RecordStore, init_engine
from prescription_api.models import Prescription

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_USERS = 5
PRESCRIPTIONS_PER_USER = (1, 6)   # min, max

MEDICATIONS = [
    "Tylenol", "Ibuprofen", "Amoxicillin", "Metformin", "Lisinopril",
    "Atorvastatin", "Levothyroxine", "Omeprazole", "Cetirizine", "Sertraline",
]
DIRECTIONS = [
    "Use with food", "Take on an empty stomach", "Drink with a full glass of water",
    "Do not combine with alcohol", "Swallow whole, do not crush",
]
SCHEDULES = ["Daily", "Twice a day", "Every morning", "Every 8 hours", "Before bed"]

fake = Faker()


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_users(store, n=NUM_USERS):
    """Insert *n* users; return their (username, password) pairs."""
    credentials = []
    for _ in range(n):
        username = f"{fake.user_name()}{fake.random_int(10, 99)}"
        password = fake.password(length=12)
        store.insert(
            {"username": username, "password_hash": generate_password_hash(password)},
            USERS_COLLECTION,
        )
        credentials.append((username, password))
    return credentials


def seed_prescriptions(store, usernames, per_user=PRESCRIPTIONS_PER_USER):
    """Insert a random number of prescriptions owned by each username."""
    lo, hi = per_user
    created = []
    for owner in usernames:
        for _ in range(random.randint(lo, hi)):
            prescription = Prescription(
                id=store.new_id(),
                name=random.choice(MEDICATIONS),
                owner=owner,
                directions=random.choice(DIRECTIONS),
                time=random.choice(SCHEDULES),
            )
            store.insert(prescription.to_dict(), PRESCRIPTIONS_COLLECTION)
            created.append(prescription)
    return created


# --------------------------------------------------------------------
# MAIN
# --------------------------------------------------------------------
def main():
    random.seed(42)
    Faker.seed(42)

    store = RecordStore(init_engine(get_env("DB_URI")))
    try:
        print("Seeding users...")
        credentials = seed_users(store)

        print("Seeding prescriptions...")
        created = seed_prescriptions(store, [u for u, _ in credentials])

        print(f"Done! {len(credentials)} users, {len(created)} prescriptions.")
        for username, password in credentials:
            print(f"  {username}:{password}")
    finally:
        store.close()


if __name__ == "__main__":
    main()
