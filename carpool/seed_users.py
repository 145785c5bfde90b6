"""
Database seeding script for development users.

Creates one driver and two passengers and prints a development JWT for each,
since tokens are normally issued by the identity service.
Run this script after the database is set up.
"""

import asyncio

from sqlalchemy import select

from carpool.app.core.jwt import create_access_token
from carpool.app.db.session import AsyncSessionLocal, engine, Base
from carpool.app.models.user import User

DEV_USERS = [
    ("driver", "Dana Driver"),
    ("passenger1", "Pavel Passenger"),
    ("passenger2", "Olga Passenger"),
]


async def seed_users():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        existing = await db.execute(select(User).where(User.username == DEV_USERS[0][0]))
        if existing.scalar_one_or_none():
            print("ℹ️  Development users already exist, skipping seeding")
            return

        users = [User(username=username, name=name, is_active=True) for username, name in DEV_USERS]
        db.add_all(users)
        await db.commit()

        print("\n🎉 User seeding completed successfully!")
        print("\nDevelopment tokens:")
        for user in users:
            token = create_access_token(data={"sub": user.username, "user_id": user.id})
            print(f"  - {user.username:<11} (id={user.id}): {token}")


if __name__ == "__main__":
    asyncio.run(seed_users())
