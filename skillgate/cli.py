#!/usr/bin/env python3
"""
SkillGate CLI

Usage:
    skillgate scan [--all] [--json] [--yes]
    skillgate explain SKILL_KEY
    skillgate status [--json]
    skillgate quarantine SKILL_KEY [--yes]
    skillgate restore SKILL_KEY [--yes]
    skillgate allow SKILL_KEY [--yes]
"""

import logging
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from skillgate import __version__
from skillgate.authz import Authorizer
from skillgate.cli_helpers import (
    LEVEL_ORDER,
    console,
    print_error,
    print_json,
    print_success,
    print_warning,
    styled_level,
    styled_status,
)
from skillgate.commands import (
    GovActionResult,
    GovernanceContext,
    gov_allow,
    gov_explain,
    gov_quarantine,
    gov_restore,
    gov_scan,
    gov_status,
)
from skillgate.config import load_governance_config
from skillgate.decision import format_assessment
from skillgate.evidence import format_evidence

YES_HELP = "Authorize the action without prompting"


def _build_context(obj: dict, yes: bool = False) -> GovernanceContext:
    config = load_governance_config(obj.get("config_path"))
    issues = config.validate()
    if issues:
        raise click.ClickException("Invalid configuration: " + "; ".join(issues))

    authorizer = None
    if yes:
        authorizer = Authorizer(auto_authorize=True)
    return GovernanceContext.from_config(
        config,
        workspace_dir=obj.get("workspace"),
        authorizer=authorizer,
    )


def _report_action(result: GovActionResult) -> None:
    if result.success:
        print_success(result.message)
    else:
        print_error(result.message)

    if result.evidence_id:
        suffix = "" if result.evidence_available else " [yellow](record missing)[/yellow]"
        console.print(f"  Evidence: {result.evidence_id}{suffix}")
    if result.backup_path:
        console.print(f"  Backup: {result.backup_path}")


@click.group()
@click.version_option(version=__version__, prog_name="skillgate")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Path to skillgate.yaml")
@click.option("--workspace", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Workspace skills directory (default: current directory)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, config_path: Optional[Path], workspace: Optional[Path], verbose: bool):
    """SkillGate - supply-chain governance for OpenClaw skills."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["workspace"] = workspace


@main.command("scan")
@click.option("--all", "all_findings", is_flag=True,
              help="Include skills without CRITICAL or HIGH findings")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--yes", is_flag=True, help=YES_HELP)
@click.pass_obj
def scan(obj, all_findings: bool, as_json: bool, yes: bool):
    """Scan all installed skills and apply automatic governance actions."""
    result = gov_scan(_build_context(obj, yes), all_findings=all_findings)

    if as_json:
        print_json(result.to_dict())
        return

    console.print(
        f"Scanned {result.scanned_skills} of {result.total_skills} skills "
        f"({result.skipped_skills} allowlisted)"
    )

    if not result.findings:
        print_success("No CRITICAL or HIGH findings.")
        return

    table = Table(title="Scan Findings")
    table.add_column("Skill", style="cyan")
    table.add_column("Source", style="white")
    table.add_column("Risk")
    table.add_column("Score", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Evidence", style="white")

    for f in sorted(result.findings, key=lambda f: LEVEL_ORDER.get(f.risk_level, 5)):
        table.add_row(
            f.skill_key,
            f.source,
            styled_level(f.risk_level),
            str(f.score),
            str(f.critical_count),
            str(f.high_count),
            f.evidence_id or "-",
        )
    console.print(table)

    for applied in result.actions_applied:
        if applied.success:
            print_success(f"{applied.action}: {applied.message}")
        else:
            print_warning(f"{applied.action} failed for {applied.skill_key}: {applied.message}")
    if result.actions_applied:
        console.print("\n[yellow]Changes take effect in new sessions or after restart.[/yellow]")


@main.command("explain")
@click.argument("skill_key")
@click.pass_obj
def explain(obj, skill_key: str):
    """Explain a skill's status, findings and evidence history."""
    result = gov_explain(_build_context(obj), skill_key)

    console.print(f"[bold]{skill_key}[/bold]: {styled_status(result.status)}")

    if not result.found:
        print_warning(f'Skill "{skill_key}" not found in any source')
    else:
        console.print(f"  Source: {result.skill.source}")
        console.print(f"  Path: {result.skill.path}\n")
        console.print(format_assessment(result.assessment), markup=False)

        for finding in result.findings:
            console.print(
                f"\n[{finding.severity}] {finding.rule} ({finding.file}:{finding.line})",
                markup=False,
            )
            console.print(f"  {finding.explanation}", markup=False)

    if result.evidence_history:
        console.print(f"\nEvidence history ({len(result.evidence_history)}):")
        for evidence in result.evidence_history:
            console.print(
                f"  {evidence.id}  {evidence.scan_timestamp}  {evidence.risk_level}",
                markup=False,
            )
        console.print("\nLatest evidence:", style="bold")
        console.print(format_evidence(result.evidence_history[0]), markup=False)
    else:
        console.print("\nNo evidence recorded.")


@main.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def status(obj, as_json: bool):
    """Show governance status for all installed skills."""
    result = gov_status(_build_context(obj))

    if as_json:
        print_json(result.to_dict())
        return

    if not result.skills:
        console.print("[white]No skills found.[/white]")
        return

    table = Table(title="Skill Governance Status")
    table.add_column("Skill", style="cyan")
    table.add_column("Source", style="white")
    table.add_column("Status")
    table.add_column("Last Risk")
    table.add_column("Last Scan", style="white")

    for entry in result.skills:
        table.add_row(
            entry.skill_key,
            entry.source,
            styled_status(entry.status),
            styled_level(entry.last_risk_level) if entry.last_risk_level else "-",
            entry.last_scan or "-",
        )
    console.print(table)

    summary = result.to_dict()
    console.print(
        f"\nTotal: {summary['totalSkills']}  "
        f"quarantined: {summary['quarantinedCount']}  "
        f"disabled: {summary['disabledCount']}  "
        f"allowlisted: {summary['allowlistedCount']}"
    )


@main.command("quarantine")
@click.argument("skill_key")
@click.option("--yes", is_flag=True, help=YES_HELP)
@click.pass_obj
def quarantine(obj, skill_key: str, yes: bool):
    """Scan a skill, record evidence and quarantine it."""
    result = gov_quarantine(_build_context(obj, yes), skill_key)
    _report_action(result)
    if not result.success:
        raise SystemExit(1)


@main.command("restore")
@click.argument("skill_key")
@click.option("--yes", is_flag=True, help=YES_HELP)
@click.pass_obj
def restore(obj, skill_key: str, yes: bool):
    """Restore a quarantined skill."""
    result = gov_restore(_build_context(obj, yes), skill_key)
    _report_action(result)
    if not result.success:
        raise SystemExit(1)


@main.command("allow")
@click.argument("skill_key")
@click.option("--yes", is_flag=True, help=YES_HELP)
@click.pass_obj
def allow(obj, skill_key: str, yes: bool):
    """Allowlist a skill so future scans skip it."""
    result = gov_allow(_build_context(obj, yes), skill_key)
    _report_action(result)
    if not result.success:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
