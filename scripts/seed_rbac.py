"""
Seed roles and permissions, optionally with a first SUPERADMIN account.

    python scripts/seed_rbac.py
    python scripts/seed_rbac.py --admin-email admin@example.com --admin-password '...'
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from assistflow.core.logging import setup_logging
from assistflow.domain.services.auth_service import hash_password
from assistflow.infrastructure.db.seed import seed_reference_data
from assistflow.infrastructure.db.session import dispose_engine, get_session_factory
from assistflow.infrastructure.repositories import SqlRbacRepository, SqlUserRepository


async def seed(admin_email: str | None, admin_password: str | None) -> None:
    session_factory = get_session_factory()
    async with session_factory() as session:
        await seed_reference_data(session)

        if admin_email and admin_password:
            users = SqlUserRepository(session)
            if await users.get_by_email(admin_email) is None:
                model = await users.add_user(
                    email=admin_email,
                    hashed_password=hash_password(admin_password),
                    full_name="Administrator",
                )
                role = await SqlRbacRepository(session).get_role("SUPERADMIN")
                model.roles.append(role)
                await session.commit()
                print(f"Created SUPERADMIN {admin_email} ({model.id})")
            else:
                print(f"{admin_email} already exists, left untouched")
    await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(seed(args.admin_email, args.admin_password))


if __name__ == "__main__":
    main()
