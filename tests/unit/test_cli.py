"""
Unit tests for the tenantscope CLI.

The Graph client factory is patched so commands run against the fake
client from conftest.
"""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from tenantscope.cli import create_parser, main
from tenantscope.observability import StructuredFormatter
from tenantscope.observability.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs on the package logger."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = logger.level
    yield
    logger.handlers.clear()
    logger.setLevel(level)


@pytest.fixture
def config_file(tmp_path) -> str:
    """Write a configuration file with a complete tenant block."""
    path = tmp_path / "tenantscope.json"
    path.write_text(
        json.dumps(
            {
                "name": "contoso",
                "tenant": {
                    "tenant_id": "contoso",
                    "name": "Contoso",
                    "azure_tenant_id": "00000000-0000-0000-0000-000000000001",
                    "client_id": "11111111-1111-1111-1111-111111111111",
                    "client_secret": "secret",
                },
            }
        )
    )
    return str(path)


@pytest.fixture
def patched_factory(fake_client):
    """Patch GraphClientFactory to hand out the fake client."""
    factory_class = MagicMock()
    factory_class.return_value.create_client.return_value = fake_client
    with patch("tenantscope.graph.GraphClientFactory", factory_class):
        yield factory_class


# ============================================================================
# Parser Tests
# ============================================================================


class TestParser:
    """Tests for argument parsing."""

    def test_assess_arguments(self) -> None:
        """Test assess options."""
        args = create_parser().parse_args(
            ["assess", "--config", "c.yaml", "--domains", "audit_logging", "--format", "json"]
        )

        assert args.command == "assess"
        assert args.domains == "audit_logging"
        assert args.format == "json"

    def test_config_required(self) -> None:
        """Test inventory without --config is a usage error."""
        assert main(["inventory"]) == 2

    def test_no_command_prints_help(self, capsys) -> None:
        """Test running without a command prints help."""
        assert main([]) == 0
        assert "usage: tenantscope" in capsys.readouterr().out


# ============================================================================
# Command Tests
# ============================================================================


class TestCommands:
    """Tests for the CLI command handlers."""

    def test_modules_json(self, capsys) -> None:
        """Test listing modules as JSON."""
        assert main(["modules", "--format", "json"]) == 0

        entries = json.loads(capsys.readouterr().out)
        kinds = {(e["kind"], e["domain"]) for e in entries}
        assert ("assessment", "identity_and_access") in kinds
        assert ("assessment", "privileged_access") in kinds
        assert ("inventory", "tenant_baseline") in kinds
        assert all(e["required_permissions"] for e in entries)

    def test_bad_config(self, tmp_path, capsys) -> None:
        """Test a missing configuration file is a usage error."""
        code = main(["assess", "--config", str(tmp_path / "absent.json")])

        assert code == 2
        assert "Error: Cannot read configuration" in capsys.readouterr().out

    def test_unknown_domain(self, config_file, capsys) -> None:
        """Test an unknown --domains entry is a usage error."""
        code = main(["inventory", "--config", config_file, "--domains", "payroll"])

        assert code == 2
        assert "Invalid inventory domain: payroll" in capsys.readouterr().out

    def test_assess_json(self, config_file, patched_factory, capsys) -> None:
        """Test an assessment against an empty tenant completes."""
        code = main(
            ["assess", "--config", config_file, "--domains", "privileged_access", "--format", "json"]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["status"] == "completed"
        assert list(output["domain_scores"]) == ["privileged_access"]
        patched_factory.return_value.create_client.assert_called_once()

    def test_inventory_json(self, config_file, patched_factory, capsys) -> None:
        """Test an inventory of an empty tenant completes."""
        code = main(["inventory", "--config", config_file, "--format", "json"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["status"] == "completed"
        assert [s["domain"] for s in output["snapshots"]] == [
            "tenant_baseline",
            "identity_access",
        ]

    def test_permissions_missing(self, config_file, patched_factory, fake_client, capsys) -> None:
        """Test missing permissions are reported per module."""
        fake_client.permissions = ["Directory.Read.All", "Organization.Read.All"]

        code = main(["permissions", "--config", config_file, "--format", "json"])

        report = json.loads(capsys.readouterr().out)["missing_permissions"]
        assert code == 1
        assert report["Tenant & Org Baseline"] == []
        assert "User.Read.All" in report["Identity & Access"]

    def test_config_logging_section(self, tmp_path, monkeypatch) -> None:
        """Test the configuration file's logging section is applied."""
        monkeypatch.delenv("TENANTSCOPE_LOG_LEVEL", raising=False)
        monkeypatch.delenv("TENANTSCOPE_LOG_FORMAT", raising=False)
        path = tmp_path / "tenantscope.json"
        path.write_text(json.dumps({"logging": {"level": "WARNING", "format": "json"}}))

        # No tenant block, so the command stops after loading the file
        assert main(["inventory", "--config", str(path)]) == 2

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
