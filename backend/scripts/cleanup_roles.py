"""Retire a custom role: move its users to another role, then delete it.

Users are granted the target role before losing the old one. System roles
are never deleted.

Run: python -m scripts.cleanup_roles --from "Supervisor" --to "Manager" [--dry-run]
"""

import argparse
import asyncio
import os
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate users off a role and delete it")
    parser.add_argument("--from", dest="source", required=True, help="Role name to retire")
    parser.add_argument("--to", dest="target", required=True, help="Role name users move to")
    parser.add_argument("--dry-run", action="store_true", help="Report without changing anything")
    return parser.parse_args(argv)


async def cleanup(args: argparse.Namespace) -> int:
    """Returns a process exit code."""
    from core.exceptions import AppException
    from core.logging_config import setup_logging
    from db.database import AsyncSessionLocal, close_db
    from services.role_service import RoleService
    from services.user_role_service import UserRoleService

    setup_logging()

    try:
        async with AsyncSessionLocal() as db:
            roles = RoleService(db)
            source = await roles.get_by_name(args.source)
            target = await roles.get_by_name(args.target)
            if source is None or target is None:
                missing = args.source if source is None else args.target
                print(f"[cleanup] Role not found: {missing}")
                return 1
            if source.is_system:
                print(f"[cleanup] {source.name} is a system role and cannot be deleted")
                return 1

            holders = await roles.active_user_count(source.id)
            print(f"[cleanup] {source.name}: {holders} active user(s) -> {target.name}")
            if args.dry_run:
                return 0

            try:
                moved = await UserRoleService(db).migrate_users(source.id, target.id)
                summary = await roles.delete_role(source.id)
                await db.commit()
            except AppException as e:
                await db.rollback()
                print(f"[cleanup] Failed: {e.message}")
                return 1

            print(f"[cleanup] Moved {moved} user(s); deleted role {summary['role']}")
            return 0
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(cleanup(parse_args())))
