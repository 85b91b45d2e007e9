#!/usr/bin/env python3
"""
Create the first admin account.

Usage:
    python scripts/seed_admin.py --email admin@example.com --name "Admin" --dry-run
    python scripts/seed_admin.py --email admin@example.com --name "Admin" --confirm

The password is read from ADMIN_PASSWORD or prompted for.
Requires migrations to be applied (alembic upgrade head).
"""

import asyncio
import getpass
import os
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.models import UserRole
from tourdesk.core.auth.service import AuthService
from tourdesk.core.config import settings
from tourdesk.core.database.session import async_session
from tourdesk.core.exceptions import DuplicateError


async def run_seed(
    session: AsyncSession, email: str, full_name: str, password: str, dry_run: bool
) -> None:
    service = AuthService(session)
    try:
        user = await service.create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=UserRole.ADMIN,
        )
    except DuplicateError:
        print(f"User {email} already exists, nothing to do.")
        await session.rollback()
        return

    print(f"Admin {user.email} (id={user.id}) prepared.")
    if dry_run:
        await session.rollback()
        print("Dry run: rolled back.")
    else:
        await session.commit()
        print("Committed.")


async def main() -> None:
    import argparse
    parser = argparse.ArgumentParser(description="Create the first admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--dry-run", action="store_true", help="Do not commit")
    parser.add_argument("--confirm", action="store_true", help="Commit changes")
    args = parser.parse_args()
    if not args.dry_run and not args.confirm:
        print("Use --dry-run or --confirm")
        sys.exit(1)

    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    print("Database:", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?")
    print("Mode:", "DRY-RUN" if args.dry_run else "CONFIRM")
    async with async_session() as session:
        await run_seed(session, args.email, args.name, password, dry_run=args.dry_run)
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
