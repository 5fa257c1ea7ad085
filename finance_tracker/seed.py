"""
seed.py
-------
Create an active demo account with default categories and a few months
of sample transactions.

    python -m finance_tracker.seed --email demo@example.com
"""

import argparse
import random
from datetime import timedelta

from finance_tracker import database
from finance_tracker.database import create_document, get_db, utcnow
from finance_tracker.logger import get_logger
from finance_tracker.schemas import Profile, Transaction, User
from finance_tracker.security import get_password_hash
from finance_tracker.services import category_service

logger = get_logger(__name__)

SAMPLE_EXPENSES = [
    ("Food & Dining", "Groceries", (20, 120)),
    ("Transportation", "Fuel", (30, 80)),
    ("Bills & Utilities", "Electricity bill", (60, 150)),
    ("Entertainment", "Movie night", (10, 40)),
    ("Shopping", "Clothes", (25, 200)),
]


def seed_demo_user(email: str, password: str, months: int = 3) -> str:
    """Insert the demo user and sample data, returning the new user id."""
    if get_db()["user"].find_one({"email": email}):
        raise SystemExit(f"User {email} already exists")

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        profile=Profile(first_name="Demo", last_name="User"),
        status="active",
        email_verified=True,
    )
    user_id = create_document("user", user)
    category_service.create_default_categories(user_id)
    by_name = {c["name"]: c for c in category_service.list_categories(user_id)}

    now = utcnow()
    created = 0
    for offset in range(months):
        month_start = (now.replace(day=1) - timedelta(days=31 * offset)).replace(day=1, hour=9)
        entries = [("Salary", "Monthly salary", 4200.0, month_start)]
        for name, description, (low, high) in SAMPLE_EXPENSES:
            day = month_start + timedelta(days=random.randint(1, 25))
            if day <= now:
                entries.append((name, description, round(random.uniform(low, high), 2), day))
        for name, description, amount, when in entries:
            category = by_name[name]
            create_document("transaction", Transaction(
                user_id=user_id,
                category_id=str(category["_id"]),
                amount=amount,
                type=category["type"],
                description=description,
                transaction_date=when,
                **Transaction.period_fields(when),
            ))
            created += 1
    logger.info(f"Seeded demo user {email} ({user_id}) with {created} transactions")
    return user_id


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo finance tracker account")
    parser.add_argument("--email", default="demo@example.com")
    parser.add_argument("--password", default="Demo@1234")
    parser.add_argument("--months", type=int, default=3)
    args = parser.parse_args()

    database.init_db()
    try:
        seed_demo_user(args.email.lower(), args.password, args.months)
    finally:
        database.close_db()


if __name__ == "__main__":
    main()
