"""
SkillGate Evidence

Packages a scan and its assessment into an immutable, redacted record and
stores one JSON document per record under ~/.openclaw/evidence/<id>.json.

Evidence is append-only: a record is never edited after it is saved, only
superseded by a newer record for the same skill. Matched text from findings
is never written; each finding keeps only the SHA-256 of its snippet.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from skillgate import EVIDENCE_DIR
from skillgate.decision import RiskAssessment
from skillgate.redaction import redact_snippet
from skillgate.scanner import Finding, ScanResult
from skillgate.utils import atomic_write_json, generate_evidence_id, now_iso

logger = logging.getLogger(__name__)

_EVIDENCE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class RedactedFinding:
    """A finding with its matched text replaced by a hash."""
    rule: str
    severity: str
    file: str
    line: int
    description: str
    snippet_hash: str
    snippet_redacted: bool = True
    redaction_applied: bool = True

    @classmethod
    def from_finding(cls, finding: Finding) -> "RedactedFinding":
        redacted = redact_snippet(finding.match)
        return cls(
            rule=finding.rule,
            severity=finding.severity.value,
            file=finding.file,
            line=finding.line,
            description=finding.description,
            snippet_hash=redacted.hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule,
            "severity": self.severity,
            "file": self.file,
            "line": self.line,
            "description": self.description,
            "snippet_redacted": self.snippet_redacted,
            "snippet_hash": self.snippet_hash,
            "redaction_applied": self.redaction_applied,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedactedFinding":
        return cls(
            rule=data["rule"],
            severity=data["severity"],
            file=data["file"],
            line=int(data["line"]),
            description=data.get("description", ""),
            snippet_hash=data["snippet_hash"],
            snippet_redacted=bool(data.get("snippet_redacted", True)),
            redaction_applied=bool(data.get("redaction_applied", True)),
        )


@dataclass(frozen=True)
class Evidence:
    """Redacted justification of a risk verdict at a point in time."""
    id: str
    skill_key: str
    skill_path: str
    scan_timestamp: str
    risk_level: str
    risk_score: int
    recommended_action: str
    findings: Tuple[RedactedFinding, ...] = field(default_factory=tuple)
    combos: Tuple[str, ...] = field(default_factory=tuple)
    scanned_files: int = 0
    scan_duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk document shape."""
        return {
            "id": self.id,
            "skillKey": self.skill_key,
            "skillPath": self.skill_path,
            "scanTimestamp": self.scan_timestamp,
            "riskLevel": self.risk_level,
            "riskScore": self.risk_score,
            "recommendedAction": self.recommended_action,
            "findings": [f.to_dict() for f in self.findings],
            "combos": list(self.combos),
            "scannedFiles": self.scanned_files,
            "scanDuration": self.scan_duration_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        return cls(
            id=data["id"],
            skill_key=data["skillKey"],
            skill_path=data.get("skillPath", ""),
            scan_timestamp=data["scanTimestamp"],
            risk_level=data["riskLevel"],
            risk_score=int(data.get("riskScore", 0)),
            recommended_action=data.get("recommendedAction", "none"),
            findings=tuple(
                RedactedFinding.from_dict(f) for f in data.get("findings", [])
            ),
            combos=tuple(data.get("combos", [])),
            scanned_files=int(data.get("scannedFiles", 0)),
            scan_duration_ms=int(data.get("scanDuration", 0)),
        )


def generate_evidence(scan_result: ScanResult, assessment: RiskAssessment) -> Evidence:
    """
    Build an evidence record from a scan result and its assessment.

    The record gets a fresh id and is timestamped now, not at scan time.
    """
    return Evidence(
        id=generate_evidence_id(),
        skill_key=scan_result.skill.skill_key,
        skill_path=str(scan_result.skill.path),
        scan_timestamp=now_iso(),
        risk_level=assessment.level.value,
        risk_score=assessment.score,
        recommended_action=assessment.action.value,
        findings=tuple(RedactedFinding.from_finding(f) for f in scan_result.findings),
        combos=tuple(c.name for c in assessment.combos),
        scanned_files=scan_result.scanned_files,
        scan_duration_ms=scan_result.scan_duration_ms,
    )


class EvidenceStore:
    """One JSON document per evidence id in a single directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else EVIDENCE_DIR

    def path_for(self, evidence_id: str) -> Path:
        return self.directory / f"{evidence_id}.json"

    def save(self, evidence: Evidence) -> Path:
        """Persist a record atomically. Returns the document path."""
        path = self.path_for(evidence.id)
        atomic_write_json(path, evidence.to_dict())
        logger.info(
            "Saved evidence %s for %s (%s)",
            evidence.id, evidence.skill_key, evidence.risk_level,
        )
        return path

    def load(self, evidence_id: str) -> Optional[Evidence]:
        """Load a record by id, or None if it is missing or unreadable."""
        if not _EVIDENCE_ID_RE.match(evidence_id):
            return None
        return self._read(self.path_for(evidence_id))

    def find_for_skill(self, skill_key: str) -> List[Evidence]:
        """All records for a skill, newest first."""
        if not self.directory.is_dir():
            return []

        found = []
        for path in self.directory.glob("*.json"):
            evidence = self._read(path)
            if evidence is not None and evidence.skill_key == skill_key:
                found.append(evidence)

        found.sort(key=lambda e: e.scan_timestamp, reverse=True)
        return found

    def _read(self, path: Path) -> Optional[Evidence]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable evidence %s: %s", path, e)
            return None

        try:
            return Evidence.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed evidence %s: %s", path, e)
            return None


def format_evidence(evidence: Evidence) -> str:
    """Format an evidence record for display."""
    lines = [
        f"Evidence ID: {evidence.id}",
        f"Skill: {evidence.skill_key}",
        f"Scan Time: {evidence.scan_timestamp}",
        f"Risk Level: {evidence.risk_level} (score: {evidence.risk_score})",
        f"Action: {evidence.recommended_action}",
        f"Files Scanned: {evidence.scanned_files}",
    ]

    if evidence.combos:
        lines.append(f"\nCombos: {', '.join(evidence.combos)}")

    lines.append(f"\nFindings: {len(evidence.findings)}")
    for f in evidence.findings[:5]:
        lines.append(f"  - [{f.severity}] {f.rule} in {f.file}:{f.line}")
        lines.append(f"    {f.description}")

    if len(evidence.findings) > 5:
        lines.append(f"  ... and {len(evidence.findings) - 5} more")

    return "\n".join(lines)
