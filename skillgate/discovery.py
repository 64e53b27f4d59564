"""
SkillGate Skill Discovery

Finds installed skills in three places, in order:
1. workspace  - the current working directory
2. managed    - ~/.openclaw/skills
3. extraDirs  - directories listed under skills.dirs in openclaw.json

A directory is a skill when it holds one of the marker files. The canonical
skillKey is metadata.openclaw.skillKey, then metadata.name, then the
directory name.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import json5
import yaml

from skillgate import MANAGED_SKILLS_DIR, OPENCLAW_CONFIG_PATH
from skillgate.scanner import Skill
from skillgate.utils import expand_path, read_json_document

logger = logging.getLogger(__name__)

SKILL_MARKERS = [
    "skill.json",
    "skill.yaml",
    "skill.yml",
    "package.json",
    "openclaw.skill.json",
]


def _parse_metadata(marker: Path) -> Optional[Dict[str, Any]]:
    """Parse a JSON5 or YAML marker into a metadata dict. Unparseable markers yield None."""
    text = marker.read_text(encoding="utf-8")
    try:
        if marker.suffix == ".json":
            data = json5.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        logger.debug("Unparseable skill metadata %s: %s", marker, e)
        return None
    return data if isinstance(data, dict) else None


def resolve_skill_key(directory_name: str, metadata: Optional[Dict[str, Any]]) -> str:
    """Pick the canonical skillKey for a skill directory."""
    if isinstance(metadata, dict):
        openclaw = metadata.get("openclaw")
        if isinstance(openclaw, dict) and isinstance(openclaw.get("skillKey"), str) \
                and openclaw["skillKey"]:
            return openclaw["skillKey"]
        if isinstance(metadata.get("name"), str) and metadata["name"]:
            return metadata["name"]
    return directory_name


def load_skill(skill_path: Path, source: str) -> Optional[Skill]:
    """Load one skill directory, or None if it has no marker file."""
    for marker_name in SKILL_MARKERS:
        marker = skill_path / marker_name
        try:
            metadata = _parse_metadata(marker)
        except (OSError, UnicodeDecodeError):
            continue
        return Skill(
            skill_key=resolve_skill_key(skill_path.name, metadata),
            path=skill_path,
            source=source,
            metadata=metadata,
        )
    return None


def discover_in_directory(directory: Path, source: str) -> List[Skill]:
    """Discover skills in the immediate children of a directory."""
    try:
        children = sorted(directory.iterdir())
    except OSError:
        return []

    skills = []
    for child in children:
        if child.name.startswith(".") or not child.is_dir():
            continue
        skill = load_skill(child, source)
        if skill is not None:
            skills.append(skill)
    return skills


class SkillDiscovery:
    """Discovers skills from workspace, managed and extra directories."""

    def __init__(
        self,
        workspace_dir: Optional[Path] = None,
        managed_dir: Optional[Path] = None,
        openclaw_config_path: Optional[Path] = None,
    ):
        self.workspace_dir = workspace_dir
        self.managed_dir = managed_dir or MANAGED_SKILLS_DIR
        self.openclaw_config_path = openclaw_config_path or OPENCLAW_CONFIG_PATH

    def sources(self) -> List[Tuple[Path, str]]:
        roots = [
            (self.workspace_dir or Path.cwd(), "workspace"),
            (self.managed_dir, "managed"),
        ]
        config = read_json_document(self.openclaw_config_path)
        skills_section = config.get("skills") if isinstance(config, dict) else None
        dirs = skills_section.get("dirs") if isinstance(skills_section, dict) else None
        for d in dirs if isinstance(dirs, list) else []:
            if isinstance(d, str):
                roots.append((expand_path(d), "extraDirs"))
        return roots

    def discover(self) -> List[Skill]:
        skills = []
        for directory, source in self.sources():
            skills.extend(discover_in_directory(directory, source))
        return skills

    def find(self, skill_key: str) -> Optional[Skill]:
        for skill in self.discover():
            if skill.skill_key == skill_key:
                return skill
        return None
