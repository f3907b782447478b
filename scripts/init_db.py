"""Create the scheduler tables directly, bypassing migrations.

Intended for local development databases. Use ``--seed-doctors`` to add a
few directory entries so alternative-doctor suggestions have something to
return.
"""

import argparse
import asyncio
from decimal import Decimal

from sqlalchemy import insert, select

from medibook.database import engine
from medibook.models.appointments import metadata as appointments_metadata
from medibook.models.doctors import doctors
from medibook.models.doctors import metadata as doctors_metadata

SAMPLE_DOCTORS = [
    {
        "id": "doc_cardio_1",
        "name": "Dr. Asha Rao",
        "specialization": "Cardiology",
        "experience_years": 12,
        "rating": Decimal("4.80"),
    },
    {
        "id": "doc_cardio_2",
        "name": "Dr. Vikram Shah",
        "specialization": "Cardiology",
        "experience_years": 8,
        "rating": Decimal("4.50"),
    },
    {
        "id": "doc_general_1",
        "name": "Dr. Kabir Das",
        "specialization": "General Medicine",
        "experience_years": 5,
        "rating": Decimal("4.20"),
    },
]


async def init_db(seed_doctors: bool = False) -> None:
    """Create all tables and optionally seed the doctor directory."""
    async with engine.begin() as conn:
        await conn.run_sync(appointments_metadata.create_all)
        await conn.run_sync(doctors_metadata.create_all)

        if seed_doctors:
            existing = set((await conn.execute(select(doctors.c.id))).scalars())
            missing = [doctor for doctor in SAMPLE_DOCTORS if doctor["id"] not in existing]
            if missing:
                await conn.execute(insert(doctors), missing)
            print(f"✓ Seeded {len(missing)} doctors")

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed-doctors", action="store_true", help="insert sample doctors")
    args = parser.parse_args()

    asyncio.run(init_db(seed_doctors=args.seed_doctors))
