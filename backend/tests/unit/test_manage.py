"""
Tests for the click management commands.
"""

import json

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select

from estoque.core.security import decode_access_token
from estoque.db.base import Category as DbCategory
from estoque.db.base import Product as DbProduct
from estoque.db.base import Tax as DbTax
from manage import cli


@pytest.fixture
def runner():
    return CliRunner()


def test_issue_token_with_roles(runner):
    result = runner.invoke(
        cli,
        ["issue-token", "--email", "ops@estoque.com.br", "--role", "admin", "--role", "Read",
         "--user-id", "42", "--hours", "2"],
    )

    assert result.exit_code == 0, result.output
    payload = decode_access_token(result.output.strip())
    assert payload["sub"] == "42"
    assert payload["email"] == "ops@estoque.com.br"
    assert payload["roles"] == ["Admin", "Read"]
    assert payload["exp"] - payload["iat"] == 2 * 3600


def test_issue_token_requires_email(runner):
    result = runner.invoke(cli, ["issue-token"])
    assert result.exit_code != 0


def test_issue_token_rejects_unknown_role(runner):
    result = runner.invoke(cli, ["issue-token", "--email", "a@b.com", "--role", "Root"])
    assert result.exit_code != 0


def test_drop_tables_needs_confirmation(runner):
    result = runner.invoke(cli, ["drop-tables"])
    assert result.exit_code != 0
    assert "--yes" in result.output


def test_seed_demo_is_idempotent(runner, db_session):
    first = runner.invoke(cli, ["seed-demo"])
    second = runner.invoke(cli, ["seed-demo"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert db_session.scalar(select(func.count()).select_from(DbCategory)) == 1
    assert db_session.scalar(select(func.count()).select_from(DbProduct)) == 2
    assert db_session.scalar(select(func.count()).select_from(DbTax)) == 1


def test_cache_stats(runner):
    result = runner.invoke(cli, ["cache-stats"])

    assert result.exit_code == 0
    stats = json.loads(result.output)
    assert stats["size"] == 0
    assert "hit_rate" in stats
