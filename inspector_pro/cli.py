"""CLI for Inspector Pro: bootstrap the database, seed users, run maintenance."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys


async def cmd_init_db(args):
    """Create all tables."""
    from inspector_pro.db.engine import create_all, engine

    await create_all()
    await engine.dispose()
    print("Database tables created")


async def cmd_create_user(args):
    """Create a user directly, pre-approved, without sending notifications."""
    from inspector_pro.db import crud
    from inspector_pro.db.engine import async_session_factory, create_all, engine
    from inspector_pro.models.user import ROLE_ADMIN, ROLE_INSPECTOR, ROLE_SUPER_ADMIN

    if args.role not in (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_INSPECTOR):
        print(f"Unknown role: {args.role}")
        sys.exit(1)

    await create_all()
    async with async_session_factory() as db:
        if await crud.get_user_by_email(db, args.email):
            print(f"A user with email {args.email} already exists")
            sys.exit(1)
        user = await crud.create_user(
            db, args.first_name, args.last_name, args.email, args.role, is_approved=True,
        )
    await engine.dispose()
    print(f"User created: {user.full_name} <{user.email}> role={user.role} (id={user.id})")


async def cmd_sweep_sessions(args):
    """Run a single session sweep and print its stats."""
    from inspector_pro.config import get_settings
    from inspector_pro.db.engine import async_session_factory, engine
    from inspector_pro.services.session_sweeper import sweep_once

    sweeper = get_settings().sweeper
    stats = await sweep_once(
        async_session_factory,
        session_ttl=args.ttl or sweeper.session_ttl,
        batch_size=args.batch_size or sweeper.batch_size,
    )
    await engine.dispose()
    print(f"Expiry cutoff: {stats.expiry.isoformat()}")
    print(f"Tokens matched: {stats.matched}")
    print(f"Batches written: {stats.batches} (failed: {stats.failed_batches})")


def main():
    parser = argparse.ArgumentParser(description="Inspector Pro CLI")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # create-user
    cu = subparsers.add_parser("create-user", help="Create an approved user")
    cu.add_argument("--email", required=True, help="User email")
    cu.add_argument("--first-name", required=True, help="First name")
    cu.add_argument("--last-name", default="", help="Last name")
    cu.add_argument("--role", default="admin", help="super_admin | admin | inspector")

    # sweep-sessions
    ss = subparsers.add_parser("sweep-sessions", help="Log out device sessions older than the TTL")
    ss.add_argument("--ttl", default="", help="Session TTL such as 7d or 24h (defaults to config)")
    ss.add_argument("--batch-size", type=int, default=0, help="Batch size (defaults to config)")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

    if args.command == "init-db":
        asyncio.run(cmd_init_db(args))
    elif args.command == "create-user":
        asyncio.run(cmd_create_user(args))
    elif args.command == "sweep-sessions":
        asyncio.run(cmd_sweep_sessions(args))


if __name__ == "__main__":
    main()
