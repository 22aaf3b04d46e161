#!/usr/bin/env python3
"""
Seed Users and Routing Rules
============================

Usage:
    python scripts/seed.py users scripts/seed.example.yaml
    python scripts/seed.py set-role someone@example.com admin

`users` creates any user or routing rule from the YAML file that does not
exist yet. `set-role` is the administrative role change path.
"""

import argparse
import asyncio
import sys
from pathlib import Path

import yaml

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import VALID_ROLES, Role  # noqa: E402
from src.identity.infrastructure import CredentialService, SQLAlchemyUserRepository  # noqa: E402
from src.infrastructure.database import (  # noqa: E402
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from src.routing.application import RoutingRuleCreateRequest  # noqa: E402
from src.routing.infrastructure import SQLAlchemyRoutingRuleRepository  # noqa: E402
from src.shared.infrastructure.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger("scripts.seed")


def load_seed_file(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping with 'users' and 'routing_rules'")
    return data


async def seed_from_file(path: Path) -> dict:
    """
    Create users, then routing rules (which may reference users by email).

    Returns:
        Counts of created and skipped records
    """
    data = load_seed_file(path)
    credentials = CredentialService()
    summary = {"users_created": 0, "users_skipped": 0, "rules_created": 0}

    async with get_session_context() as session:
        users = SQLAlchemyUserRepository(session)
        rules = SQLAlchemyRoutingRuleRepository(session)

        for entry in data.get("users") or []:
            email = str(entry["email"]).strip().lower()
            if await users.get_by_email(email):
                summary["users_skipped"] += 1
                logger.info("User exists, skipped", extra={"email": email})
                continue

            role = entry.get("role", Role.EMPLOYEE)
            if role not in VALID_ROLES:
                raise ValueError(f"Invalid role for {email}: {role}")

            await users.create(
                name=entry["name"],
                email=email,
                password_hash=credentials.hash_password(str(entry["password"])),
                role=role,
                department=entry.get("department")
            )
            summary["users_created"] += 1
            logger.info("User created", extra={"email": email, "role": role})

        for entry in data.get("routing_rules") or []:
            request = RoutingRuleCreateRequest(**entry)

            assignee_id = None
            assignee_email = entry.get("assigned_to_email")
            if assignee_email:
                assignee = await users.get_by_email(assignee_email)
                if assignee is None:
                    raise ValueError(f"Routing rule assignee not found: {assignee_email}")
                assignee_id = assignee.id

            await rules.create(
                category=request.category,
                assigned_team=request.assigned_team,
                assigned_to=assignee_id,
                priority=request.priority,
                active=request.active
            )
            summary["rules_created"] += 1
            logger.info(
                "Routing rule created",
                extra={"category": request.category, "team": request.assigned_team}
            )

    return summary


async def set_role(email: str, role: str) -> bool:
    """Returns False if no user has that email."""
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}. Must be one of: {VALID_ROLES}")

    async with get_session_context() as session:
        users = SQLAlchemyUserRepository(session)
        user = await users.get_by_email(email.strip().lower())
        if user is None:
            return False
        await users.update_role(user.id, role)

    logger.info("Role updated", extra={"email": email, "role": role})
    return True


async def _run(args: argparse.Namespace) -> int:
    init_database()
    try:
        await create_tables()
        if args.command == "users":
            summary = await seed_from_file(Path(args.file))
            print(f"Seed complete: {summary}")
            return 0

        if not await set_role(args.email, args.role):
            print(f"User not found: {args.email}", file=sys.stderr)
            return 1
        print(f"{args.email} is now {args.role}")
        return 0
    finally:
        await close_database()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed users and routing rules")
    subparsers = parser.add_subparsers(dest="command", required=True)

    users_parser = subparsers.add_parser("users", help="Seed users and routing rules from YAML")
    users_parser.add_argument("file", help="Path to the seed YAML file")

    role_parser = subparsers.add_parser("set-role", help="Change a user's role")
    role_parser.add_argument("email")
    role_parser.add_argument("role", choices=VALID_ROLES)

    args = parser.parse_args()
    setup_logging()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
