"""
SkillGate - Supply-chain governance for OpenClaw skills.

Scans installed skills for risky patterns, turns findings into a risk
verdict, and keeps a persistent governance state per skill.

Components:
- redaction: one-way hashing and partial redaction of sensitive text
- rules: the static detection rule table
- scanner: applies the rules to a skill's files and metadata
- decision: scoring, combo detection, risk level and recommended action
- evidence: redacted, append-only evidence records
- governance: locked, atomic store for per-skill governance entries
- actions: quarantine / restore / disable / allowlist
"""

from pathlib import Path

__version__ = "0.3.1"

# Directory constants
OPENCLAW_HOME = Path.home() / ".openclaw"
OPENCLAW_CONFIG_PATH = OPENCLAW_HOME / "openclaw.json"
EVIDENCE_DIR = OPENCLAW_HOME / "evidence"
QUARANTINE_DIR = OPENCLAW_HOME / "quarantine"
MANAGED_SKILLS_DIR = OPENCLAW_HOME / "skills"
SKILLGATE_CONFIG_PATH = OPENCLAW_HOME / "skillgate.yaml"


class SkillGateError(Exception):
    """Base exception for SkillGate programming and configuration errors."""
