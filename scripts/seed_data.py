#!/usr/bin/env python3
"""
Seed data script for testing the ledger.
Creates the backend tables and bucket, then adds sample receipts for one user.
"""

import os
import sys
import random
from datetime import datetime, timedelta

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from account.settings import UserSettings, UserSettingsRepository
from receipts.models import VALID_CATEGORIES, ExpenseType, Receipt, now_ms
from receipts.repository import ReceiptRepository
from shared.config import configure_logging, load_config
from shared.provisioning import ensure_bucket, ensure_tables


MERCHANTS = {
    'Food & Dining': ['Espresso House', 'Max Burgers', 'Pizza Hut', 'Local Restaurant'],
    'Transportation': ['Uber', 'SJ Rail', 'Circle K', 'Parking Garage'],
    'Accommodation': ['Scandic Hotel', 'Airbnb', 'Radisson Blu'],
    'Supplies': ['Staples', 'Clas Ohlson', 'Office Depot'],
    'Services': ['Print Shop', 'Dry Cleaner', 'Courier Service'],
    'Entertainment': ['Movie Theater', 'Concert Ticket', 'Bowling Alley'],
    'Health': ['Apoteket', 'Dental Clinic', 'Doctor Office'],
    'Shopping': ['IKEA', 'H&M', 'Apple Store'],
    'Utilities': ['Electric Company', 'Internet Provider', 'Phone Bill'],
    'Other': ['Miscellaneous Store', 'Unknown Merchant']
}

CURRENCIES = ['EUR', 'SEK', 'USD', 'NOK']


def build_receipts(num_receipts=20):
    """Build sample receipts spread over the last 60 days."""
    receipts = []
    created_at = now_ms()

    for i in range(num_receipts):
        # Random date within last 60 days
        days_ago = random.randint(0, 60)
        date = (datetime.utcnow() - timedelta(days=days_ago)).strftime('%Y-%m-%d')

        category = random.choice(VALID_CATEGORIES)
        merchant = random.choice(MERCHANTS.get(category, MERCHANTS['Other']))
        amount = round(random.uniform(5.0, 200.0), 2)

        receipts.append(Receipt(
            merchant_name=merchant,
            date=date,
            time=f"{random.randint(8, 20):02d}:{random.randint(0, 59):02d}",
            amount=amount,
            currency=random.choice(CURRENCIES),
            vat=round(amount * 0.2, 2),
            category=category,
            type=random.choice(list(ExpenseType)),
            created_at=created_at - i * 1000
        ))

    return receipts


def main():
    """Main function."""
    print("=" * 50)
    print("TallyLens - Seed Data Script")
    print("=" * 50)

    config = load_config()
    configure_logging(config.log_level)

    print("\nResources:")
    print(f"  region: {config.aws_region}")
    print(f"  receipts: {config.receipts_table}")
    print(f"  settings: {config.settings_table}")
    print(f"  feedback: {config.feedback_table}")
    print(f"  bucket: {config.receipts_bucket}")

    print("\nCreating missing tables...")
    created = ensure_tables(config)
    print(f"Created {len(created)} tables")

    print("\nChecking receipts bucket...")
    if ensure_bucket(config):
        print("Created bucket")
    else:
        print("Bucket already exists")

    # Get user ID
    user_id = input("\nEnter user ID (Cognito sub) to seed data for, or leave empty to skip: ").strip()
    if not user_id:
        print("No user ID given, skipping sample data")
        return

    # Get number of receipts
    num_receipts = input("Enter number of receipts to create (default: 20): ").strip()
    num_receipts = int(num_receipts) if num_receipts else 20

    full_name = input("Enter display name (optional): ").strip() or None

    print("\nSeeding receipts...")
    repository = ReceiptRepository(config)
    receipts = build_receipts(num_receipts)
    for receipt in receipts:
        repository.insert_receipt(user_id, receipt)
    print(f"Created {len(receipts)} receipts")

    print("\nSeeding settings...")
    UserSettingsRepository(config).save_settings(UserSettings(
        user_id=user_id,
        preferred_currency=config.default_currency,
        full_name=full_name
    ))

    print("\n" + "=" * 50)
    print("Data seeding complete!")
    print("=" * 50)
    print(f"\nCreated:")
    print(f"  - {len(receipts)} receipts")
    print(f"  - settings in {config.default_currency}")
    print(f"\nFor user: {user_id}")


if __name__ == '__main__':
    main()
