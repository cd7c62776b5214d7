"""
Tests for the admin CLI.
"""

import pytest
from typer.testing import CliRunner

from telemed import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_database(database, monkeypatch):
    monkeypatch.setattr(cli, "db", database)
    return database


def test_create_and_list():
    result = runner.invoke(
        cli.app,
        ["create-code", "--agent", "agent-7", "--type", "percentage", "--value", "15", "--code", "agent15"],
    )

    assert result.exit_code == 0
    assert "AGENT15" in result.stdout

    listed = runner.invoke(cli.app, ["list-codes", "--agent", "agent-7"])
    assert listed.exit_code == 0
    assert "AGENT15" in listed.stdout


def test_create_rejects_bad_terms():
    result = runner.invoke(
        cli.app,
        ["create-code", "--agent", "agent-7", "--type", "percentage", "--value", "150"],
    )

    assert result.exit_code == 1


def test_quote(make_code):
    make_code(code="AGENT15", discount_value=15)

    result = runner.invoke(cli.app, ["quote", "AGENT15", "500"])

    assert result.exit_code == 0
    assert "425.00" in result.stdout


def test_quote_unknown_code():
    result = runner.invoke(cli.app, ["quote", "NOPE", "500"])

    assert result.exit_code == 1
    assert "not_found" in result.stdout


def test_deactivate(make_code, load_code):
    code = make_code(code="AGENT15")

    result = runner.invoke(cli.app, ["deactivate", str(code.id), "--reason", "campaign over"])

    assert result.exit_code == 0
    assert load_code(code.id).is_active is False
