"""
Create demo account for testing and demos.

This script creates the demo buyer account used in the frontend:
- Reference: demo@example.com
- Name: Demo User

Requires SUPABASE_URL and SUPABASE_KEY.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.account_repository import SupabaseAccountRepository
from repositories.client import get_supabase

DEMO_REFERENCE = "demo@example.com"


def create_demo_account():
    """Create the demo account if it does not exist yet."""

    accounts = SupabaseAccountRepository(get_supabase())

    existing = accounts.find(DEMO_REFERENCE)
    if existing is not None:
        print(f"Demo account already exists: {existing.account_id}")
        print(f"Gold held: {existing.total_gold_purchased} g")
        return

    account = accounts.create(DEMO_REFERENCE, email=DEMO_REFERENCE, name="Demo User")
    print(f"Created demo account: {account.account_id}")


if __name__ == "__main__":
    create_demo_account()
