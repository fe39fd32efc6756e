"""Operator commands.

    taskboard-admin create-admin --email ops@example.com --name "Ops"

The password is prompted for unless ``--password`` is given.
"""
import argparse
import asyncio
import getpass
import sys
from typing import Optional, Sequence

import pydantic
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from taskboard.core.database import AsyncSessionLocal, engine, init_models
from taskboard.core.exceptions import ValidationError
from taskboard.core.logging import setup_logging
from taskboard.models.enums import UserRole
from taskboard.models.user import User
from taskboard.schemas.auth import RegisterRequest
from taskboard.services.users import create_user


async def create_admin(
    account: RegisterRequest,
    session_factory=AsyncSessionLocal,
    db_engine: AsyncEngine = engine,
) -> User:
    await init_models(db_engine)
    async with session_factory() as session:
        return await create_user(session, account.name, account.email, account.password, UserRole.ADMIN)


async def _create_admin_and_dispose(account: RegisterRequest) -> User:
    try:
        return await create_admin(account)
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskboard-admin", description="Taskboard operator commands")
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create-admin", help="create an admin console account")
    create.add_argument("--email", required=True)
    create.add_argument("--name", default="Admin")
    create.add_argument("--password", default=None, help="prompted for when omitted")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    try:
        account = RegisterRequest(name=args.name, email=args.email, password=password)
    except pydantic.ValidationError as e:
        parser.error("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))

    setup_logging()
    try:
        user = asyncio.run(_create_admin_and_dispose(account))
    except ValidationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    logger.info(f"Admin account {user.email} created (id {user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
