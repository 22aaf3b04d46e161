"""Tests for the seed script."""

import textwrap

import pytest

from scripts.seed import seed_from_file, set_role
from src.identity.infrastructure import SQLAlchemyUserRepository
from src.infrastructure.database import get_session_context
from src.routing.infrastructure import SQLAlchemyRoutingRuleRepository

SEED = textwrap.dedent("""
    users:
      - name: Ada Admin
        email: Ada@Example.com
        password: admin-pass
        role: admin
      - name: Riley Responder
        email: riley@example.com
        password: responder-pass
        role: responder
        department: IT Support
    routing_rules:
      - category: IT
        assigned_team: IT Support
        assigned_to_email: riley@example.com
        priority: 1
""")


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "seed.yaml"
    path.write_text(SEED, encoding="utf-8")
    return path


class TestSeedUsers:
    @pytest.mark.asyncio
    async def test_creates_users_and_rules(self, database, seed_file):
        summary = await seed_from_file(seed_file)
        assert summary == {"users_created": 2, "users_skipped": 0, "rules_created": 1}

        async with get_session_context() as session:
            admin = await SQLAlchemyUserRepository(session).get_by_email("ada@example.com")
            riley = await SQLAlchemyUserRepository(session).get_by_email("riley@example.com")
            rules = await SQLAlchemyRoutingRuleRepository(session).list_all()

        assert admin.role == "admin"
        assert admin.password_hash != "admin-pass"
        assert riley.department == "IT Support"
        assert rules[0].assigned_to == riley.id

    @pytest.mark.asyncio
    async def test_existing_users_skipped(self, database, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text("users:\n  - {name: Sam, email: sam@example.com, password: pw123456}\n", encoding="utf-8")

        await seed_from_file(path)
        summary = await seed_from_file(path)

        assert summary["users_created"] == 0
        assert summary["users_skipped"] == 1

    @pytest.mark.asyncio
    async def test_invalid_role(self, database, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("users:\n  - {name: X, email: x@example.com, password: pw, role: owner}\n", encoding="utf-8")
        with pytest.raises(ValueError):
            await seed_from_file(path)


class TestSetRole:
    @pytest.mark.asyncio
    async def test_promotes_user(self, database, create_user):
        await create_user("emp@example.com")
        assert await set_role("EMP@example.com", "admin") is True

        async with get_session_context() as session:
            user = await SQLAlchemyUserRepository(session).get_by_email("emp@example.com")
        assert user.role == "admin"

    @pytest.mark.asyncio
    async def test_unknown_user(self, database):
        assert await set_role("nobody@example.com", "admin") is False
