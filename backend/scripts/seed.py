"""Database seed script: permission catalog, built-in roles, first admin.

Safe to run repeatedly. Existing roles keep their permission sets unless
``--sync`` is given.

Run: python -m scripts.seed [--sync] [--admin-username admin]
The admin password is read from SEED_ADMIN_PASSWORD.
"""

import argparse
import asyncio
import os
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed RBAC data")
    parser.add_argument("--sync", action="store_true", help="Reset built-in roles to their declared permissions")
    parser.add_argument("--admin-username", default=os.getenv("SEED_ADMIN_USERNAME", "admin"))
    parser.add_argument("--admin-email", default=os.getenv("SEED_ADMIN_EMAIL", "admin@factory.local"))
    parser.add_argument("--skip-admin", action="store_true", help="Do not create the admin user")
    return parser.parse_args(argv)


async def seed(args: argparse.Namespace) -> None:
    """Seed the database with the catalog, roles and admin user."""
    from core.logging_config import setup_logging
    from core.rbac_seed import apply_seed, ensure_admin_user
    from db.database import AsyncSessionLocal, close_db, init_db

    setup_logging()
    await init_db()

    async with AsyncSessionLocal() as db:
        report = await apply_seed(db, sync=args.sync)
        print(f"[seed] Permissions created: {report.permissions_created}")
        print(f"[seed] Roles created: {', '.join(report.roles_created) or '-'}")
        if args.sync:
            print(f"[seed] Roles synced: {', '.join(report.roles_synced) or '-'}")

        if not args.skip_admin:
            password = os.getenv("SEED_ADMIN_PASSWORD")
            if not password:
                print("[seed] SEED_ADMIN_PASSWORD not set; skipping admin user")
            else:
                user, created = await ensure_admin_user(
                    db, args.admin_username, args.admin_email, password
                )
                state = "Created" if created else "Verified"
                print(f"[seed] {state} admin user: {user.username} ({user.id})")

        await db.commit()

    await close_db()
    print("[seed] Done")


if __name__ == "__main__":
    asyncio.run(seed(parse_args()))
