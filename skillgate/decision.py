"""
SkillGate Risk Assessment

Turns raw findings into a score, a risk level, a recommended action, and
the dangerous rule combinations ("combos") that were detected.

Scoring:
    score = sum(severity weight per finding) + sum(bonus per matched combo)

Level, first match wins:
    CRITICAL  any CRITICAL finding, or score >= 200   -> quarantine
    HIGH      two or more HIGH findings, or score >= 100 -> disable
    MEDIUM    one HIGH finding, or score >= 40        -> warn
    LOW       score > 0                               -> log
    SAFE      otherwise                               -> none
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from skillgate.scanner import Finding
from skillgate.rules import Severity


class RiskLevel(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    SAFE = "SAFE"


class RecommendedAction(str, Enum):
    QUARANTINE = "quarantine"
    DISABLE = "disable"
    WARN = "warn"
    LOG = "log"
    NONE = "none"


SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.HIGH: 50,
    Severity.MEDIUM: 20,
    Severity.LOW: 5,
    Severity.INFO: 1,
}

MAX_REASONS = 10


@dataclass(frozen=True)
class ComboDefinition:
    """A policy-significant co-occurrence of distinct rule ids."""
    name: str
    description: str
    rules: Tuple[str, ...]
    min_matches: int
    score_bonus: int


@dataclass(frozen=True)
class ComboMatch:
    name: str
    description: str
    score_bonus: int
    matched_rules: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "scoreBonus": self.score_bonus,
            "matchedRules": list(self.matched_rules),
        }


COMBOS: Tuple[ComboDefinition, ...] = (
    ComboDefinition(
        name="supply-chain-attack",
        description="Download + execute pattern detected",
        rules=("curl-pipe-bash", "wget-pipe-bash", "download-execute"),
        min_matches=1,
        score_bonus=100,
    ),
    ComboDefinition(
        name="obfuscated-execution",
        description="Obfuscated code with shell execution",
        rules=("obfuscated-code", "shell-exec", "base64-pipe-bash"),
        min_matches=2,
        score_bonus=80,
    ),
    ComboDefinition(
        name="credential-theft",
        description="Credential access with network exfiltration",
        rules=("hardcoded-token", "env-exfiltration", "network-request"),
        min_matches=2,
        score_bonus=70,
    ),
    ComboDefinition(
        name="destructive-payload",
        description="Destructive commands in install hook",
        rules=("rm-rf-root", "install-download", "metadata-install-download"),
        min_matches=1,
        score_bonus=100,
    ),
    ComboDefinition(
        name="install-hook-risky",
        description="Install hook with shell/network access",
        rules=("install-download", "metadata-install-download", "shell-exec"),
        min_matches=2,
        score_bonus=40,
    ),
)


@dataclass
class RiskAssessment:
    """Verdict derived from one set of findings. Never stored on its own."""
    level: RiskLevel
    score: int
    action: RecommendedAction
    reasons: List[str] = field(default_factory=list)
    combos: List[ComboMatch] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "action": self.action.value,
            "reasons": list(self.reasons),
            "combos": [c.to_dict() for c in self.combos],
        }


def detect_combos(rule_ids: Iterable[str]) -> List[ComboMatch]:
    """Match the combo table against a collection of rule ids."""
    present = set(rule_ids)
    matches = []
    for combo in COMBOS:
        matched = tuple(r for r in combo.rules if r in present)
        if len(matched) >= combo.min_matches:
            matches.append(ComboMatch(
                name=combo.name,
                description=combo.description,
                score_bonus=combo.score_bonus,
                matched_rules=matched,
            ))
    return matches


def assess_risk(findings: List[Finding], max_reasons: int = MAX_REASONS) -> RiskAssessment:
    """
    Assess risk based on findings.

    Args:
        findings: Findings from a scan, in any order
        max_reasons: Cap on the reasons list (earliest first)

    Returns:
        RiskAssessment with level, score, action, reasons and combos
    """
    score = 0
    reasons = []

    for finding in findings:
        score += SEVERITY_WEIGHTS[finding.severity]
        if finding.severity in (Severity.CRITICAL, Severity.HIGH):
            reasons.append(
                f"{finding.severity.value}: {finding.description} "
                f"({finding.file}:{finding.line})"
            )

    combos = detect_combos(f.rule for f in findings)
    for combo in combos:
        score += combo.score_bonus
        reasons.append(f"COMBO: {combo.description}")

    level, action = _determine_level(score, findings)

    return RiskAssessment(
        level=level,
        score=score,
        action=action,
        reasons=reasons[:max_reasons],
        combos=combos,
    )


def _determine_level(
    score: int, findings: List[Finding]
) -> Tuple[RiskLevel, RecommendedAction]:
    has_critical = any(f.severity == Severity.CRITICAL for f in findings)
    if has_critical or score >= 200:
        return RiskLevel.CRITICAL, RecommendedAction.QUARANTINE

    high_count = sum(1 for f in findings if f.severity == Severity.HIGH)
    if high_count >= 2 or score >= 100:
        return RiskLevel.HIGH, RecommendedAction.DISABLE

    if high_count >= 1 or score >= 40:
        return RiskLevel.MEDIUM, RecommendedAction.WARN

    if score > 0:
        return RiskLevel.LOW, RecommendedAction.LOG

    return RiskLevel.SAFE, RecommendedAction.NONE


def should_auto_quarantine(assessment: RiskAssessment) -> bool:
    return assessment.level == RiskLevel.CRITICAL


def should_auto_disable(assessment: RiskAssessment) -> bool:
    return assessment.level == RiskLevel.HIGH


def format_assessment(assessment: RiskAssessment) -> str:
    """Format a risk assessment for display."""
    lines = [
        f"Risk Level: {assessment.level.value} (score: {assessment.score})",
        f"Recommended Action: {assessment.action.value}",
    ]

    if assessment.combos:
        lines.append("\nCombos Detected:")
        for combo in assessment.combos:
            lines.append(f"  - {combo.name}: {combo.description}")

    if assessment.reasons:
        lines.append("\nReasons:")
        for reason in assessment.reasons:
            lines.append(f"  - {reason}")

    return "\n".join(lines)
