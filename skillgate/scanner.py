"""
SkillGate Scanner

Applies the rule table to every candidate file of a skill, then checks the
skill's declared install hook. Scanning is read-only text matching: nothing
in the skill is executed or imported.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from skillgate.config import GovernanceConfig
from skillgate.rules import (
    DEFAULT_RULES,
    METADATA_INSTALL_DESCRIPTION,
    METADATA_INSTALL_KEYWORDS,
    METADATA_INSTALL_RULE_ID,
    Rule,
    Severity,
)

logger = logging.getLogger(__name__)


@dataclass
class Skill:
    """A skill as handed over by discovery."""
    skill_key: str
    path: Path
    source: str = "workspace"  # "workspace", "managed", "extraDirs"
    metadata: Optional[Dict[str, Any]] = None

    @property
    def install_command(self) -> Optional[str]:
        """The declared ``openclaw.install`` hook, if any."""
        if not isinstance(self.metadata, dict):
            return None
        openclaw = self.metadata.get("openclaw")
        if not isinstance(openclaw, dict):
            return None
        install = openclaw.get("install")
        return install if isinstance(install, str) and install else None


@dataclass
class Finding:
    """One rule match within one scanned file."""
    rule: str
    severity: Severity
    file: str
    line: int
    match: str
    description: str
    column: Optional[int] = None


@dataclass
class ScanResult:
    """Raw findings for one skill."""
    skill: Skill
    findings: List[Finding] = field(default_factory=list)
    scanned_files: int = 0
    scan_duration_ms: int = 0

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)


class SkillScanner:
    """
    Rule-based scanner for skill directories.

    Findings come out in scan order: files sorted by relative path, then
    rules in table order, then matches in text order.
    """

    def __init__(
        self,
        config: Optional[GovernanceConfig] = None,
        rules: Optional[Iterable[Rule]] = None,
    ):
        self.config = config or GovernanceConfig()
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def scan(self, skill: Skill) -> ScanResult:
        """
        Scan a skill's files and metadata.

        Args:
            skill: The skill to scan

        Returns:
            ScanResult with findings in scan order
        """
        start_time = time.monotonic()
        root = Path(skill.path)

        files = self.collect_files(root)
        findings: List[Finding] = []
        for file_path in files:
            findings.extend(self.scan_file(file_path, root))

        install_finding = self._check_install_hook(skill)
        if install_finding is not None:
            findings.append(install_finding)

        return ScanResult(
            skill=skill,
            findings=findings,
            scanned_files=len(files),
            scan_duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    def collect_files(self, root: Path) -> List[Path]:
        """Collect candidate files, skipping hidden and excluded directories."""
        if not root.is_dir():
            return []

        allowed = {ext.lower() for ext in self.config.scan_extensions}
        excluded = set(self.config.excluded_dirs)
        files = []

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [
                d for d in dirnames
                if d not in excluded and not d.startswith(".")
            ]
            for name in filenames:
                if name.startswith("."):
                    continue
                path = Path(dirpath) / name
                if path.suffix.lower() in allowed:
                    files.append(path)

        return sorted(files, key=lambda p: p.relative_to(root).as_posix())

    def scan_file(self, file_path: Path, root: Path) -> List[Finding]:
        """
        Apply every applicable rule to one file.

        An unreadable file yields no findings.
        """
        try:
            content = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Skipping unreadable file %s: %s", file_path, e)
            return []

        rel_path = file_path.relative_to(root).as_posix()
        extension = file_path.suffix.lower()
        max_len = self.config.max_match_length
        findings = []

        for rule in self.rules:
            if not rule.applies_to(extension):
                continue
            for match in rule.pattern.finditer(content):
                offset = match.start()
                line_start = content.rfind("\n", 0, offset) + 1
                findings.append(Finding(
                    rule=rule.id,
                    severity=rule.severity,
                    file=rel_path,
                    line=content.count("\n", 0, offset) + 1,
                    column=offset - line_start + 1,
                    match=match.group(0)[:max_len],
                    description=rule.description,
                ))

        return findings

    def _check_install_hook(self, skill: Skill) -> Optional[Finding]:
        install = skill.install_command
        if install is None:
            return None

        lowered = install.lower()
        if not any(keyword in lowered for keyword in METADATA_INSTALL_KEYWORDS):
            return None

        return Finding(
            rule=METADATA_INSTALL_RULE_ID,
            severity=Severity.HIGH,
            file="skill.json",
            line=0,
            match=install[: self.config.max_match_length],
            description=METADATA_INSTALL_DESCRIPTION,
        )


def scan_skill(skill: Skill, config: Optional[GovernanceConfig] = None) -> ScanResult:
    """Scan a skill with the default rule table."""
    return SkillScanner(config=config).scan(skill)
