"""
SkillGate governance commands.

Each command wires discovery, scanner, assessor, evidence and governance
actions together in one sequence and returns a result object. Rendering is
left to the CLI.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from skillgate.actions import GovernanceActions
from skillgate.authz import AuthAction, AuthContext, Authorizer
from skillgate.config import GovernanceConfig, load_governance_config
from skillgate.decision import (
    RiskAssessment,
    RiskLevel,
    assess_risk,
    should_auto_disable,
    should_auto_quarantine,
)
from skillgate.discovery import SkillDiscovery
from skillgate.evidence import Evidence, EvidenceStore, generate_evidence
from skillgate.governance import GovernanceStore, describe_status
from skillgate.rules import Severity, explain_rule
from skillgate.scanner import ScanResult, Skill, SkillScanner

logger = logging.getLogger(__name__)

EVIDENCE_LEVELS = (RiskLevel.CRITICAL, RiskLevel.HIGH, RiskLevel.MEDIUM)


@dataclass
class GovernanceContext:
    """Everything a command needs, built once from configuration."""
    config: GovernanceConfig
    scanner: SkillScanner
    discovery: SkillDiscovery
    evidence: EvidenceStore
    store: GovernanceStore
    actions: GovernanceActions
    authorizer: Authorizer

    @classmethod
    def from_config(
        cls,
        config: Optional[GovernanceConfig] = None,
        workspace_dir: Optional[Path] = None,
        authorizer: Optional[Authorizer] = None,
    ) -> "GovernanceContext":
        config = config or load_governance_config()
        store = GovernanceStore(config.openclaw_config)
        evidence = EvidenceStore(config.evidence_path)
        return cls(
            config=config,
            scanner=SkillScanner(config=config),
            discovery=SkillDiscovery(
                workspace_dir=workspace_dir,
                managed_dir=config.managed_skills_path,
                openclaw_config_path=config.openclaw_config,
            ),
            evidence=evidence,
            store=store,
            actions=GovernanceActions(
                store=store,
                quarantine_dir=config.quarantine_path,
                backup_files=config.backup_files,
                evidence_store=evidence,
            ),
            authorizer=authorizer or Authorizer(
                auto_authorize=config.auto_authorize,
                timeout_seconds=config.auth_timeout_seconds,
            ),
        )

    def assess(self, skill: Skill) -> Tuple[ScanResult, RiskAssessment]:
        scan_result = self.scanner.scan(skill)
        return scan_result, assess_risk(scan_result.findings, self.config.max_reasons)


# =========================================================================
# scan
# =========================================================================


@dataclass
class SkillFindingSummary:
    skill_key: str
    source: str
    risk_level: str
    score: int
    finding_count: int
    critical_count: int
    high_count: int
    evidence_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skillKey": self.skill_key,
            "source": self.source,
            "riskLevel": self.risk_level,
            "score": self.score,
            "findingCount": self.finding_count,
            "criticalCount": self.critical_count,
            "highCount": self.high_count,
            "evidenceId": self.evidence_id,
        }


@dataclass
class ActionApplied:
    skill_key: str
    action: str
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skillKey": self.skill_key,
            "action": self.action,
            "success": self.success,
            "message": self.message,
        }


@dataclass
class GovScanResult:
    total_skills: int = 0
    scanned_skills: int = 0
    skipped_skills: int = 0
    findings: List[SkillFindingSummary] = field(default_factory=list)
    actions_applied: List[ActionApplied] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSkills": self.total_skills,
            "scannedSkills": self.scanned_skills,
            "skippedSkills": self.skipped_skills,
            "findings": [f.to_dict() for f in self.findings],
            "actionsApplied": [a.to_dict() for a in self.actions_applied],
        }


def gov_scan(ctx: GovernanceContext, all_findings: bool = False) -> GovScanResult:
    """
    Scan every discovered skill and apply automatic actions.

    Allowlisted skills are skipped. CRITICAL skills are quarantined and HIGH
    skills disabled, each only after the authorizer approves.
    """
    skills = ctx.discovery.discover()
    result = GovScanResult(total_skills=len(skills))

    for skill in skills:
        if ctx.actions.is_allowlisted(skill.skill_key):
            result.skipped_skills += 1
            continue

        scan_result, assessment = ctx.assess(skill)
        result.scanned_skills += 1

        critical = scan_result.count(Severity.CRITICAL)
        high = scan_result.count(Severity.HIGH)
        if not all_findings and critical + high == 0:
            continue

        evidence = None
        if assessment.level in EVIDENCE_LEVELS:
            evidence = generate_evidence(scan_result, assessment)
            ctx.evidence.save(evidence)

        result.findings.append(SkillFindingSummary(
            skill_key=skill.skill_key,
            source=skill.source,
            risk_level=assessment.level.value,
            score=assessment.score,
            finding_count=len(scan_result.findings),
            critical_count=critical,
            high_count=high,
            evidence_id=evidence.id if evidence else None,
        ))

        applied = _apply_automatic_action(ctx, skill, assessment, evidence)
        if applied is not None:
            result.actions_applied.append(applied)

    return result


def _apply_automatic_action(
    ctx: GovernanceContext,
    skill: Skill,
    assessment: RiskAssessment,
    evidence: Optional[Evidence],
) -> Optional[ActionApplied]:
    if should_auto_quarantine(assessment):
        auth = ctx.authorizer.require(AuthContext(
            action=AuthAction.QUARANTINE,
            skill_key=skill.skill_key,
            risk_level=assessment.level.value,
            evidence_id=evidence.id if evidence else None,
        ))
        if not auth.authorized or evidence is None:
            logger.info("Quarantine of %s not applied: %s", skill.skill_key, auth.reason)
            return None
        outcome = ctx.actions.quarantine_skill(
            skill, evidence, f"Auto-quarantine: {assessment.level.value} risk"
        )
        return ActionApplied(skill.skill_key, "quarantine", outcome.success, outcome.message)

    if should_auto_disable(assessment):
        auth = ctx.authorizer.require(AuthContext(
            action=AuthAction.DISABLE,
            skill_key=skill.skill_key,
            risk_level=assessment.level.value,
            evidence_id=evidence.id if evidence else None,
        ))
        if not auth.authorized:
            logger.info("Disable of %s not applied: %s", skill.skill_key, auth.reason)
            return None
        outcome = ctx.actions.disable_skill(
            skill, f"Auto-disable: {assessment.level.value} risk"
        )
        return ActionApplied(skill.skill_key, "disable", outcome.success, outcome.message)

    return None


# =========================================================================
# explain
# =========================================================================


@dataclass
class ExplainedFinding:
    rule: str
    severity: str
    file: str
    line: int
    description: str
    explanation: str


@dataclass
class GovExplainResult:
    skill_key: str
    found: bool = False
    status: str = "unmanaged"
    skill: Optional[Skill] = None
    assessment: Optional[RiskAssessment] = None
    findings: List[ExplainedFinding] = field(default_factory=list)
    evidence_history: List[Evidence] = field(default_factory=list)


def gov_explain(ctx: GovernanceContext, skill_key: str) -> GovExplainResult:
    """Explain a skill's status, current findings and evidence history."""
    result = GovExplainResult(
        skill_key=skill_key,
        status=describe_status(ctx.actions.get_skill_status(skill_key)),
        evidence_history=ctx.evidence.find_for_skill(skill_key),
    )

    skill = ctx.discovery.find(skill_key)
    if skill is None:
        return result

    result.found = True
    result.skill = skill
    scan_result, result.assessment = ctx.assess(skill)
    result.findings = [
        ExplainedFinding(
            rule=f.rule,
            severity=f.severity.value,
            file=f.file,
            line=f.line,
            description=f.description,
            explanation=explain_rule(f.rule),
        )
        for f in scan_result.findings
    ]
    return result


# =========================================================================
# status
# =========================================================================


@dataclass
class SkillStatusEntry:
    skill_key: str
    source: str
    path: str
    status: str
    quarantine: Optional[Dict[str, Any]] = None
    last_scan: Optional[str] = None
    last_risk_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "skillKey": self.skill_key,
            "source": self.source,
            "path": self.path,
            "status": self.status,
        }
        if self.quarantine:
            d["quarantineInfo"] = self.quarantine
        if self.last_scan:
            d["lastScan"] = self.last_scan
            d["lastRiskLevel"] = self.last_risk_level
        return d


@dataclass
class GovStatusResult:
    skills: List[SkillStatusEntry] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for s in self.skills if s.status == status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSkills": len(self.skills),
            "quarantinedCount": self.count("quarantined"),
            "allowlistedCount": self.count("allowlisted"),
            "disabledCount": self.count("disabled"),
            "enabledCount": self.count("enabled"),
            "unmanagedCount": self.count("unmanaged"),
            "skills": [s.to_dict() for s in self.skills],
        }


def gov_status(ctx: GovernanceContext) -> GovStatusResult:
    """Governance status of every discovered skill."""
    entries = ctx.store.entries()
    result = GovStatusResult()

    for skill in ctx.discovery.discover():
        entry = entries.get(skill.skill_key)
        status = SkillStatusEntry(
            skill_key=skill.skill_key,
            source=skill.source,
            path=str(skill.path),
            status=describe_status(entry),
        )
        if status.status == "quarantined":
            info = ctx.actions.is_quarantined(skill.skill_key)
            status.quarantine = info.to_dict() if info else None

        history = ctx.evidence.find_for_skill(skill.skill_key)
        if history:
            status.last_scan = history[0].scan_timestamp
            status.last_risk_level = history[0].risk_level

        result.skills.append(status)

    return result


# =========================================================================
# quarantine / restore / allow
# =========================================================================


@dataclass
class GovActionResult:
    success: bool
    skill_key: str
    message: str
    evidence_id: Optional[str] = None
    backup_path: Optional[str] = None
    evidence_available: bool = True


def gov_quarantine(ctx: GovernanceContext, skill_key: str) -> GovActionResult:
    """Scan a skill, record evidence, and quarantine it once authorized."""
    existing = ctx.actions.is_quarantined(skill_key)
    if existing is not None:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message=f'Skill "{skill_key}" is already quarantined (since {existing.timestamp})',
            evidence_id=existing.evidence_id,
            evidence_available=ctx.evidence.load(existing.evidence_id) is not None,
        )

    skill = ctx.discovery.find(skill_key)
    if skill is None:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message=f'Skill "{skill_key}" not found in any source',
        )

    scan_result, assessment = ctx.assess(skill)
    evidence = generate_evidence(scan_result, assessment)
    ctx.evidence.save(evidence)

    auth = ctx.authorizer.require(AuthContext(
        action=AuthAction.QUARANTINE,
        skill_key=skill_key,
        risk_level=assessment.level.value,
        evidence_id=evidence.id,
    ))
    if not auth.authorized:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message="Quarantine cancelled: authorization denied",
            evidence_id=evidence.id,
        )

    outcome = ctx.actions.quarantine_skill(
        skill, evidence, f"Manual quarantine: {assessment.level.value} risk"
    )
    return GovActionResult(
        success=outcome.success,
        skill_key=skill_key,
        message=outcome.message,
        evidence_id=evidence.id,
        backup_path=outcome.backup_path,
    )


def gov_restore(ctx: GovernanceContext, skill_key: str) -> GovActionResult:
    """Restore a quarantined skill once authorized."""
    info = ctx.actions.is_quarantined(skill_key)
    if info is None:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message=f'Skill "{skill_key}" is not quarantined',
        )

    evidence_available = ctx.evidence.load(info.evidence_id) is not None

    auth = ctx.authorizer.require(AuthContext(
        action=AuthAction.RESTORE,
        skill_key=skill_key,
        evidence_id=info.evidence_id,
    ))
    if not auth.authorized:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message="Restore cancelled: authorization denied",
            evidence_id=info.evidence_id,
            evidence_available=evidence_available,
        )

    outcome = ctx.actions.restore_skill(skill_key)
    return GovActionResult(
        success=outcome.success,
        skill_key=skill_key,
        message=outcome.message,
        evidence_id=info.evidence_id,
        backup_path=info.backup_path,
        evidence_available=evidence_available,
    )


def gov_allow(ctx: GovernanceContext, skill_key: str) -> GovActionResult:
    """Allowlist a skill once authorized. The skill need not be installed yet."""
    if ctx.actions.is_allowlisted(skill_key):
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message=f'Skill "{skill_key}" is already allowlisted',
        )

    auth = ctx.authorizer.require(AuthContext(
        action=AuthAction.ALLOW,
        skill_key=skill_key,
    ))
    if not auth.authorized:
        return GovActionResult(
            success=False,
            skill_key=skill_key,
            message="Allowlist cancelled: authorization denied",
        )

    outcome = ctx.actions.allowlist_skill(skill_key)
    return GovActionResult(
        success=outcome.success,
        skill_key=skill_key,
        message=outcome.message,
    )
