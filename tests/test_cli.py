#!/usr/bin/env python3
"""
Tests for the skillgate CLI.

Rich output is captured by swapping the shared console for one that writes
to a buffer; JSON output goes through click and lands in result.output.
"""

import json
import shutil
from io import StringIO
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from skillgate import __version__
from skillgate.cli import main
from skillgate.cli_helpers import print_error, print_success, print_warning

pytestmark = pytest.mark.cli


@pytest.fixture
def console_buf():
    buf = StringIO()
    con = Console(file=buf, force_terminal=False, width=160)
    with patch("skillgate.cli.console", con), patch("skillgate.cli_helpers.console", con):
        yield buf


@pytest.fixture
def cli_args(config_file, workspace, fixtures_dir):
    """Global options pointing the CLI at tmp dirs with three installed skills."""
    for name in ("malicious-skill", "medium-risk-skill", "safe-skill"):
        shutil.copytree(fixtures_dir / name, workspace / name)
    return ["--config", str(config_file), "--workspace", str(workspace)]


def _invoke(args):
    return CliRunner().invoke(main, args)


class TestGlobalOptions:
    def test_version(self):
        result = _invoke(["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = _invoke(["--help"])
        assert result.exit_code == 0
        for command in ("scan", "explain", "status", "quarantine", "restore", "allow"):
            assert command in result.output

    def test_invalid_config(self, tmp_path):
        config_file = tmp_path / "skillgate.yaml"
        config_file.write_text("skillgate:\n  max_reasons: 0\n")
        result = _invoke(["--config", str(config_file), "status", "--json"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestScanCommand:
    def test_json_without_yes_applies_nothing(self, cli_args):
        result = _invoke(cli_args + ["scan", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["totalSkills"] == 3
        assert [f["skillKey"] for f in data["findings"]] == ["malicious-skill"]
        assert data["actionsApplied"] == []

    def test_yes_quarantines(self, cli_args):
        result = _invoke(cli_args + ["scan", "--json", "--yes"])
        data = json.loads(result.output)
        assert data["actionsApplied"][0]["action"] == "quarantine"
        assert data["actionsApplied"][0]["success"] is True

    def test_all_flag(self, cli_args):
        data = json.loads(_invoke(cli_args + ["scan", "--json", "--all"]).output)
        assert len(data["findings"]) == 3

    def test_table_output(self, cli_args, console_buf):
        result = _invoke(cli_args + ["scan"])
        assert result.exit_code == 0
        text = console_buf.getvalue()
        assert "Scanned 3 of 3 skills (0 allowlisted)" in text
        assert "malicious-skill" in text
        assert "CRITICAL" in text

    def test_nothing_found(self, config_file, workspace, console_buf):
        result = _invoke(["--config", str(config_file), "--workspace", str(workspace), "scan"])
        assert result.exit_code == 0
        assert "No CRITICAL or HIGH findings." in console_buf.getvalue()


class TestStatusCommand:
    def test_json(self, cli_args):
        _invoke(cli_args + ["quarantine", "malicious-skill", "--yes"])
        data = json.loads(_invoke(cli_args + ["status", "--json"]).output)
        assert data["totalSkills"] == 3
        assert data["quarantinedCount"] == 1
        statuses = {s["skillKey"]: s["status"] for s in data["skills"]}
        assert statuses["malicious-skill"] == "quarantined"

    def test_table(self, cli_args, console_buf):
        result = _invoke(cli_args + ["status"])
        assert result.exit_code == 0
        text = console_buf.getvalue()
        assert "safe-skill" in text
        assert "Total: 3" in text


class TestExplainCommand:
    def test_explain(self, cli_args, console_buf):
        result = _invoke(cli_args + ["explain", "malicious-skill"])
        assert result.exit_code == 0
        text = console_buf.getvalue()
        assert "Risk Level: CRITICAL" in text
        assert "curl-pipe-bash" in text
        assert "No evidence recorded." in text

    def test_explain_unknown(self, cli_args, console_buf):
        result = _invoke(cli_args + ["explain", "ghost"])
        assert result.exit_code == 0
        assert "not found in any source" in console_buf.getvalue()

    def test_explain_shows_evidence(self, cli_args, console_buf):
        _invoke(cli_args + ["quarantine", "malicious-skill", "--yes"])
        _invoke(cli_args + ["explain", "malicious-skill"])
        text = console_buf.getvalue()
        assert "quarantined" in text
        assert "Evidence history (1)" in text
        assert "Evidence ID: ev-" in text


class TestGovernanceCommands:
    def test_quarantine_denied_without_yes(self, cli_args, console_buf):
        result = _invoke(cli_args + ["quarantine", "malicious-skill"])
        assert result.exit_code == 1
        assert "authorization denied" in console_buf.getvalue()

    def test_quarantine_and_restore(self, cli_args, console_buf):
        result = _invoke(cli_args + ["quarantine", "malicious-skill", "--yes"])
        assert result.exit_code == 0
        assert 'Quarantined "malicious-skill"' in console_buf.getvalue()
        assert "Backup:" in console_buf.getvalue()

        result = _invoke(cli_args + ["restore", "malicious-skill", "--yes"])
        assert result.exit_code == 0
        assert 'Restored "malicious-skill"' in console_buf.getvalue()

    def test_restore_not_quarantined(self, cli_args, console_buf):
        result = _invoke(cli_args + ["restore", "safe-skill", "--yes"])
        assert result.exit_code == 1
        assert "is not quarantined" in console_buf.getvalue()

    def test_allow(self, cli_args, console_buf):
        result = _invoke(cli_args + ["allow", "safe-skill", "--yes"])
        assert result.exit_code == 0
        assert 'Allowlisted "safe-skill"' in console_buf.getvalue()

        data = json.loads(_invoke(cli_args + ["scan", "--json"]).output)
        assert data["skippedSkills"] == 1


class TestPrintFunctions:
    def test_print_helpers(self, console_buf):
        print_success("Test passed")
        print_warning("Be careful")
        print_error("Something broke", fix_hint="Try restarting")
        text = console_buf.getvalue()
        assert "Test passed" in text
        assert "Be careful" in text
        assert "Hint: Try restarting" in text
