"""
Seed the database with an admin account and Lagos demo data.

Run with: python -m scripts.seed_data

The admin credentials come from SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD.
"""

import asyncio
import os
import uuid

from sqlalchemy import select

from app.auth.password import hash_password
from app.database import async_session_maker, init_db
from app.models import (
    Event,
    EventCategory,
    Mapper,
    Severity,
    User,
    UserRole,
    VehicleType,
)

ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@safetymapper.ng")
ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "change-me-admin")

DEMO_PASSWORD = "mapper123"

# Demo mappers around Lagos
DEMO_MAPPERS = [
    {
        "name": "Tunde Bakare",
        "email": "tunde@demo.safetymapper.ng",
        "phone": "+2348030000001",
        "vehicle_type": VehicleType.DANFO_BUS,
        "vehicle_number": "LAG-123-XY",
        "current_lat": 6.4281,  # Victoria Island
        "current_lon": 3.4219,
    },
    {
        "name": "Chiamaka Obi",
        "email": "chiamaka@demo.safetymapper.ng",
        "phone": "+2348030000002",
        "vehicle_type": VehicleType.BOLT_UBER,
        "vehicle_number": "LAG-456-AB",
        "current_lat": 6.6018,  # Ikeja
        "current_lon": 3.3515,
    },
    {
        "name": "Musa Ibrahim",
        "email": "musa@demo.safetymapper.ng",
        "phone": "+2348030000003",
        "vehicle_type": VehicleType.OKADA_MOTORCYCLE,
        "vehicle_number": None,
        "current_lat": 6.5244,  # Yaba
        "current_lon": 3.3792,
    },
]

DEMO_EVENTS = [
    {
        "category": EventCategory.TRAFFIC,
        "title": "Heavy gridlock on Third Mainland Bridge",
        "description": "Both lanes at a standstill towards the Island.",
        "lat": 6.4994,
        "lon": 3.3958,
        "address": "Third Mainland Bridge",
        "severity": Severity.HIGH,
    },
    {
        "category": EventCategory.FLOOD,
        "title": "Flooded road at Lekki Phase 1",
        "description": "Water up to knee level after the morning rain.",
        "lat": 6.4474,
        "lon": 3.4723,
        "address": "Admiralty Way, Lekki",
        "severity": Severity.MEDIUM,
    },
    {
        "category": EventCategory.ACCIDENT,
        "title": "Collision near Ikeja Along",
        "description": "Two cars involved, one lane blocked.",
        "lat": 6.6143,
        "lon": 3.3570,
        "address": "Ikeja Along",
        "severity": Severity.CRITICAL,
    },
]


async def seed_admin(session) -> None:
    result = await session.execute(select(User).where(User.email == ADMIN_EMAIL))
    if result.scalar_one_or_none():
        print(f"✓ Admin {ADMIN_EMAIL} exists")
        return

    session.add(User(
        id=uuid.uuid4(),
        name="Admin",
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN.value,
    ))
    await session.flush()
    print(f"+ Created admin: {ADMIN_EMAIL}")


async def seed_mappers(session) -> list[Mapper]:
    mappers = []
    for data in DEMO_MAPPERS:
        result = await session.execute(select(Mapper).where(Mapper.email == data["email"]))
        mapper = result.scalar_one_or_none()
        if mapper:
            print(f"  ✓ {data['name']} exists")
        else:
            mapper = Mapper(
                id=uuid.uuid4(),
                password_hash=hash_password(DEMO_PASSWORD),
                agreed_to_terms=True,
                **{**data, "vehicle_type": data["vehicle_type"].value},
            )
            session.add(mapper)
            await session.flush()
            print(f"  + Created: {data['name']}")
        mappers.append(mapper)
    return mappers


async def seed_events(session, reporter: Mapper) -> None:
    for data in DEMO_EVENTS:
        result = await session.execute(select(Event).where(Event.title == data["title"]))
        if result.scalar_one_or_none():
            print(f"  ✓ {data['title']} exists")
            continue
        session.add(Event(
            id=uuid.uuid4(),
            reporter_id=reporter.id,
            reporter_name=reporter.name,
            reporter_role="mapper",
            verified=True,
            media=[],
            **{
                **data,
                "category": data["category"].value,
                "severity": data["severity"].value,
            },
        ))
        print(f"  + Created: {data['title']}")


async def main():
    """Main entry point."""
    print("=" * 50)
    print("Seeding SafetyMapper Database")
    print("=" * 50)

    print("\nInitializing database...")
    await init_db()

    async with async_session_maker() as session:
        await seed_admin(session)

        print("\nDemo mappers:")
        mappers = await seed_mappers(session)

        print("\nDemo events:")
        await seed_events(session, mappers[0])

        await session.commit()

    print("\n✓ Seed data complete!")


if __name__ == "__main__":
    asyncio.run(main())
