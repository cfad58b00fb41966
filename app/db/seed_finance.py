"""
Seed script for the finance tables.

This script:
1. Creates any missing tables
2. Upserts the standard income/expense categories
3. Upserts the starter wallets (opening balance 0; balances only move through postings)
"""
import asyncio
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import CategoryType, WalletType
from app.core.models import Category, Wallet
from app.db.session import AsyncSessionLocal, Base, engine


# (name, type, description)
CATEGORIES: List[Tuple[str, CategoryType, str]] = [
    ("Tuition Fee", CategoryType.INCOME, "Semester tuition charges"),
    ("Admission Fee", CategoryType.INCOME, "One-time admission processing fee"),
    ("Registration Fee", CategoryType.INCOME, "Per-semester registration"),
    ("Examination Fee", CategoryType.INCOME, "Mid/final term examination charges"),
    ("Lab Fee", CategoryType.INCOME, "Practical lab usage charges"),
    ("Library Fee", CategoryType.INCOME, "Library access and late fines"),
    ("Hostel Fee", CategoryType.INCOME, "On-campus accommodation charges"),
    ("Miscellaneous Income", CategoryType.INCOME, "Ad-hoc income not covered above"),
    ("Faculty Salary", CategoryType.EXPENSE, "Monthly salary for teaching staff"),
    ("Office Supplies", CategoryType.EXPENSE, "Stationery, printing, and office materials"),
    ("Bank Charges", CategoryType.EXPENSE, "Bank transaction and service fees"),
    ("Miscellaneous Expense", CategoryType.EXPENSE, "Ad-hoc expenses not covered above"),
]

# (name, type)
WALLETS: List[Tuple[str, WalletType]] = [
    ("Main Bank", WalletType.BANK),
    ("Payroll Account", WalletType.BANK),
    ("Front Desk Cash", WalletType.CASH),
    ("Admission Office Cash", WalletType.CASH),
    ("Reserve Fund", WalletType.INVESTMENT),
]


async def seed_finance(db: AsyncSession) -> None:
    categories_created = 0
    for name, category_type, description in CATEGORIES:
        existing = (
            await db.execute(select(Category).where(Category.name == name))
        ).scalar_one_or_none()
        if existing:
            existing.type = category_type.value
            existing.description = description
            existing.is_active = True
        else:
            db.add(Category(name=name, type=category_type.value, description=description, is_active=True))
            categories_created += 1

    wallets_created = 0
    for name, wallet_type in WALLETS:
        existing = (
            await db.execute(select(Wallet).where(Wallet.name == name))
        ).scalar_one_or_none()
        if existing:
            existing.is_active = True
        else:
            db.add(Wallet(name=name, type=wallet_type.value, currency=settings.default_currency, is_active=True))
            wallets_created += 1

    await db.commit()

    print("=" * 60)
    print("Finance Seeding Summary")
    print("=" * 60)
    print(f"Categories created: {categories_created} (of {len(CATEGORIES)})")
    print(f"Wallets created: {wallets_created} (of {len(WALLETS)})")
    print("=" * 60)


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        try:
            await seed_finance(db)
        except Exception as e:
            print(f"Error seeding finance data: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(main())
