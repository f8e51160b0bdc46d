"""
Seed the database for local development.

Creates the tables if needed, then a platform owner and one organization
with an admin and a member.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.core.database import Base, db_manager
from app.core.security import hash_password
from app.models import Organization, OrganizationStatus, Role, User, UserStatus

SEED_USERS = [
    ("owner@filevault.local", "Owner123!", "Platform", "Owner", Role.PLATFORM_OWNER),
    ("admin@acme.local", "Admin123!", "Acme", "Admin", Role.ORGANIZATION_ADMIN),
    ("member@acme.local", "Member123!", "Acme", "Member", Role.MEMBER),
]


async def seed_data() -> None:
    """Create initial development data."""
    print("🌱 Seeding database...")

    db_manager.init()

    async with db_manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async for db in db_manager.get_session():
        result = await db.execute(select(User.id).limit(1))
        if result.first():
            print("⚠️  Database already contains users. Skipping seed.")
            break

        organization = Organization(
            name="Acme Corporation",
            description="Development organization",
            storage_quota=1000,
            status=OrganizationStatus.ACTIVE.value,
        )
        db.add(organization)
        await db.flush()

        for email, password, first_name, last_name, role in SEED_USERS:
            db.add(User(
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=role.value,
                organization_id=None if role is Role.PLATFORM_OWNER else organization.id,
                status=UserStatus.ACTIVE.value,
            ))
            print(f"✅ Created {role.value}: {email} (password: {password})")

        print(f"✅ Created organization: {organization.name}")

    await db_manager.close()
    print("🎉 Seeding complete!")


if __name__ == "__main__":
    asyncio.run(seed_data())
