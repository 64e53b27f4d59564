"""Pytest configuration and fixtures for SkillGate tests."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Optional

import pytest
import yaml

from skillgate.config import GovernanceConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def make_skill_dir(
    base: Path,
    name: str,
    files: Optional[Dict[str, str]] = None,
    metadata: Optional[dict] = None,
) -> Path:
    """Create a skill directory under *base* with the given files."""
    skill_dir = base / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    if metadata is not None:
        (skill_dir / "skill.json").write_text(json.dumps(metadata, indent=2))
    for rel_path, content in (files or {}).items():
        target = skill_dir / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return skill_dir


@pytest.fixture
def fixtures_dir():
    """Return the directory holding the sample skills."""
    return FIXTURES_DIR


@pytest.fixture
def gov_config(tmp_path):
    """A GovernanceConfig whose every path lives under tmp_path."""
    home = tmp_path / "openclaw"
    (home / "skills").mkdir(parents=True)
    return GovernanceConfig(
        openclaw_config_path=str(home / "openclaw.json"),
        evidence_dir=str(home / "evidence"),
        quarantine_dir=str(home / "quarantine"),
        managed_skills_dir=str(home / "skills"),
    )


@pytest.fixture
def config_file(tmp_path, gov_config):
    """skillgate.yaml holding gov_config under the skillgate section."""
    path = tmp_path / "skillgate.yaml"
    path.write_text(yaml.safe_dump({"skillgate": asdict(gov_config)}))
    return path


@pytest.fixture
def workspace(tmp_path):
    """An empty workspace directory for discovery."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def make_skill():
    """Factory fixture wrapping make_skill_dir."""
    return make_skill_dir
