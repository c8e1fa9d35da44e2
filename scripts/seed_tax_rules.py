"""Seed script for initial tax rules.

Run with:
    python scripts/seed_tax_rules.py

This creates the tables if needed and the reference jurisdiction rules.
"""

from __future__ import annotations

import asyncio

from payroll_tax.config import configure_logging
from payroll_tax.database import create_tables, dispose_db, get_session
from payroll_tax.seeds import seed_guyana


async def main() -> None:
    """Run all seed functions."""
    configure_logging()
    await create_tables()

    print("Seeding tax rules...")
    async with get_session() as session:
        jurisdiction = await seed_guyana(session)
        print(f"Seeded jurisdiction {jurisdiction.code} ({jurisdiction.name})")

    await dispose_db()
    print("Done!")


if __name__ == "__main__":
    asyncio.run(main())
