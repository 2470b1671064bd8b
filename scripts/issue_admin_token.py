#!/usr/bin/env python3
"""CLI utility to sign a bearer token for an administrator of the merge engine."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from backend.app.auth.enums import AdminRole
from backend.app.auth.models import AuthBase
from backend.app.auth.repository import AuthRepository
from backend.app.auth.utils import JWTManager
from backend.app.config import AppConfig, ConfigError, load_config

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the token utility.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Administrator user id placed in the token subject")
    parser.add_argument(
        "--expires-minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (default: configured access token lifetime)",
    )
    parser.add_argument(
        "--register",
        action="store_true",
        help="Also create the admin_users entry in the configured database",
    )
    parser.add_argument(
        "--role",
        choices=[role.value for role in AdminRole],
        default=AdminRole.SUPER_ADMIN.value,
        help="Role stored when --register is given (default: super_admin)",
    )
    parser.add_argument(
        "--country",
        action="append",
        default=[],
        dest="countries",
        help="Assigned country code when --register is given; repeat for several",
    )
    return parser.parse_args(argv)


def issue_token(config: AppConfig, user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Return a signed access token whose subject is ``user_id``."""

    manager = JWTManager(config.auth.jwt)
    expires_delta = timedelta(minutes=expires_minutes) if expires_minutes else None
    return manager.create_access_token(user_id, expires_delta=expires_delta)


async def register_admin(
    config: AppConfig, user_id: str, role: AdminRole, countries: List[str]
) -> None:
    """Create the administrator entry the token will be resolved against."""

    engine = create_async_engine(config.database.url, future=True)
    try:
        async with engine.begin() as connection:
            await connection.run_sync(AuthBase.metadata.create_all)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with session_factory() as session:
            repository = AuthRepository(session)
            if await repository.get_active_admin(user_id) is not None:
                LOGGER.info("Administrator %s already registered", user_id)
                return
            await repository.create_admin(user_id, role=role, assigned_countries=countries)
            await repository.commit()
            LOGGER.info("Registered administrator %s with role %s", user_id, role.value)
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the token utility.

    Returns:
        int: Exit status code where ``0`` indicates success.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)

    try:
        config = load_config()
    except ConfigError as exc:
        print("Unable to load configuration:", exc, file=sys.stderr)
        return 1

    if args.register:
        asyncio.run(
            register_admin(
                config,
                args.user_id,
                AdminRole(args.role),
                [code.strip().upper() for code in args.countries if code.strip()],
            )
        )

    print(issue_token(config, args.user_id, args.expires_minutes))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
