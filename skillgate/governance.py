"""
SkillGate Governance Store

Durable mapping of skillKey -> governance entry, kept inside the OpenClaw
config document:

    {
        "skills": {
            "entries": {
                "my-skill": {
                    "enabled": false,
                    "_quarantine": {
                        "timestamp": "2026-02-01T15:30:00.000Z",
                        "reason": "Auto-quarantine: CRITICAL risk",
                        "evidenceId": "ev-1a2b3c4d",
                        "backupPath": "/home/me/.openclaw/quarantine/my-skill-1769959800000"
                    }
                }
            }
        },
        ... other top-level keys, preserved untouched ...
    }

Every write is one cycle under an exclusive file lock: read the full
document, mutate it in memory, write the full document to a temp file and
rename it over the original. There are no field-level writes.
"""

import copy
import fcntl
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

from skillgate import OPENCLAW_CONFIG_PATH, SkillGateError
from skillgate.utils import atomic_write_json, load_json5_document, read_json_document

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUARANTINE_KEY = "_quarantine"
ALLOWLIST_KEY = "_allowlisted"


class GovernancePreconditionError(SkillGateError):
    """Raised inside a mutation to abort it without writing."""


@dataclass(frozen=True)
class QuarantineInfo:
    """The quarantine block of a governance entry."""
    timestamp: str
    reason: str
    evidence_id: str
    backup_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "timestamp": self.timestamp,
            "reason": self.reason,
            "evidenceId": self.evidence_id,
        }
        if self.backup_path is not None:
            d["backupPath"] = self.backup_path
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuarantineInfo":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            reason=str(data.get("reason", "")),
            evidence_id=str(data.get("evidenceId", "")),
            backup_path=data.get("backupPath"),
        )


def describe_status(entry: Optional[Dict[str, Any]]) -> str:
    """
    Collapse an entry into one status word.

    Returns one of: quarantined, allowlisted, disabled, enabled, unmanaged.
    """
    if not entry:
        return "unmanaged"
    if entry.get(QUARANTINE_KEY):
        return "quarantined"
    if entry.get(ALLOWLIST_KEY) is True:
        return "allowlisted"
    if entry.get("enabled") is False:
        return "disabled"
    if entry.get("enabled") is True:
        return "enabled"
    return "unmanaged"


class GovernanceStore:
    """
    Locked, atomic read-modify-write access to governance entries.

    Reads never raise: a missing or corrupt document reads as empty.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path is not None else OPENCLAW_CONFIG_PATH

    @property
    def lock_path(self) -> Path:
        return self.config_path.parent / f".{self.config_path.name}.lock"

    @contextmanager
    def _lock(self):
        """Acquire exclusive file lock for the read-modify-write cycle."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_fd = open(self.lock_path, "w")
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
            lock_fd.close()

    def load(self) -> Dict[str, Any]:
        """Load the full document, or {} if it is missing or unreadable."""
        data = read_json_document(self.config_path)
        if not isinstance(data, dict):
            return {}
        return data

    def entries(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of all governance entries."""
        skills = self.load().get("skills")
        if not isinstance(skills, dict):
            return {}
        entries = skills.get("entries")
        if not isinstance(entries, dict):
            return {}
        return {k: v for k, v in entries.items() if isinstance(v, dict)}

    def get_entry(self, skill_key: str) -> Optional[Dict[str, Any]]:
        """Copy of one entry, or None if the skill has no governance history."""
        entry = self.entries().get(skill_key)
        return copy.deepcopy(entry) if entry is not None else None

    def update(self, mutate: Callable[[Dict[str, Dict[str, Any]]], T]) -> T:
        """
        Run one locked read-modify-write cycle.

        *mutate* receives the mutable ``skills.entries`` mapping. Raising
        GovernancePreconditionError (or anything else) inside it aborts the
        cycle and leaves the document on disk unchanged.

        The document is parsed as JSON5. An existing document that cannot be
        parsed aborts the cycle with DocumentParseError instead of being
        overwritten.

        Returns:
            Whatever *mutate* returns
        """
        with self._lock():
            document = load_json5_document(self.config_path)
            if document is None:
                document = {}
            elif not isinstance(document, dict):
                raise SkillGateError(f"{self.config_path} is not a JSON object")

            skills = document.setdefault("skills", {})
            if not isinstance(skills, dict):
                raise SkillGateError(
                    f"'skills' in {self.config_path} is not an object"
                )
            entries = skills.setdefault("entries", {})
            if not isinstance(entries, dict):
                raise SkillGateError(
                    f"'skills.entries' in {self.config_path} is not an object"
                )

            result = mutate(entries)
            atomic_write_json(self.config_path, document)
            return result

    def update_entry(
        self,
        skill_key: str,
        mutate: Callable[[Dict[str, Any]], T],
    ) -> T:
        """Read-modify-write a single entry, creating it on first use."""

        def _apply(entries: Dict[str, Dict[str, Any]]) -> T:
            existing = entries.get(skill_key)
            entry = dict(existing) if isinstance(existing, dict) else {}
            result = mutate(entry)
            entries[skill_key] = entry
            return result

        return self.update(_apply)
