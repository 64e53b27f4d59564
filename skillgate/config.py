"""
SkillGate Configuration

Defines the GovernanceConfig dataclass and loading logic.
Configuration is stored in ~/.openclaw/skillgate.yaml under the 'skillgate' key.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from skillgate import (
    EVIDENCE_DIR,
    MANAGED_SKILLS_DIR,
    OPENCLAW_CONFIG_PATH,
    QUARANTINE_DIR,
    SKILLGATE_CONFIG_PATH,
)

SECTION = "skillgate"

# File extensions scanned inside a skill
DEFAULT_SCAN_EXTENSIONS = [
    ".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs",
    ".json", ".sh", ".bash", ".yaml", ".yml",
]

# Dependency, build and VCS directories never descended into
DEFAULT_EXCLUDED_DIRS = ["node_modules", "dist", ".git"]

# Metadata files copied into the quarantine backup
DEFAULT_BACKUP_FILES = ["skill.json", "package.json", "openclaw.skill.json"]


@dataclass
class GovernanceConfig:
    """Configuration for scanning, evidence and governance actions."""

    openclaw_config_path: str = str(OPENCLAW_CONFIG_PATH)
    evidence_dir: str = str(EVIDENCE_DIR)
    quarantine_dir: str = str(QUARANTINE_DIR)
    managed_skills_dir: str = str(MANAGED_SKILLS_DIR)

    # Authorization strategy: True skips the confirmation prompt
    auto_authorize: bool = False
    auth_timeout_seconds: float = 30.0

    max_match_length: int = 100
    max_reasons: int = 10
    scan_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_SCAN_EXTENSIONS)
    )
    excluded_dirs: List[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS)
    )
    backup_files: List[str] = field(
        default_factory=lambda: list(DEFAULT_BACKUP_FILES)
    )

    def validate(self) -> List[str]:
        """Validate configuration values. Returns list of issues."""
        issues = []
        if self.auth_timeout_seconds <= 0:
            issues.append("auth_timeout_seconds must be positive")
        if self.max_match_length < 1:
            issues.append("max_match_length must be >= 1")
        if self.max_reasons < 1:
            issues.append("max_reasons must be >= 1")
        for ext in self.scan_extensions:
            if not ext.startswith("."):
                issues.append(f"Invalid scan extension '{ext}': must start with '.'")
        return issues

    @property
    def openclaw_config(self) -> Path:
        return Path(self.openclaw_config_path).expanduser()

    @property
    def evidence_path(self) -> Path:
        return Path(self.evidence_dir).expanduser()

    @property
    def quarantine_path(self) -> Path:
        return Path(self.quarantine_dir).expanduser()

    @property
    def managed_skills_path(self) -> Path:
        return Path(self.managed_skills_dir).expanduser()


def load_governance_config(config_path: Optional[Path] = None) -> GovernanceConfig:
    """
    Load configuration from ~/.openclaw/skillgate.yaml.

    Falls back to defaults if file is missing or section is absent.

    Args:
        config_path: Override config file path (for testing)

    Returns:
        GovernanceConfig with loaded or default values
    """
    if config_path is None:
        config_path = SKILLGATE_CONFIG_PATH

    if not config_path.exists():
        return GovernanceConfig()

    try:
        with open(config_path) as f:
            full_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return GovernanceConfig()

    if not isinstance(full_config, dict):
        return GovernanceConfig()

    section = full_config.get(SECTION, {})
    if not section or not isinstance(section, dict):
        return GovernanceConfig()

    return _config_from_dict(section)


def _config_from_dict(data: Dict[str, Any]) -> GovernanceConfig:
    """Build GovernanceConfig from a dict, ignoring unknown keys."""
    known_fields = {f.name for f in GovernanceConfig.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in known_fields}
    return GovernanceConfig(**filtered)

