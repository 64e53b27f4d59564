"""
SkillGate Governance Actions

Quarantine, restore, disable and allowlist a skill. Each action is one
governance store mutation; quarantine also takes a best-effort backup of the
skill's metadata files first.

Quarantine and allowlist are mutually exclusive: a quarantined skill must be
restored before it can be allowlisted, and an allowlisted skill cannot be
quarantined.

Actions never raise. Precondition violations and persistence failures come
back as ActionResult(success=False) with a readable message.
"""

import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from skillgate import QUARANTINE_DIR
from skillgate.config import DEFAULT_BACKUP_FILES
from skillgate.evidence import Evidence, EvidenceStore
from skillgate.governance import (
    ALLOWLIST_KEY,
    QUARANTINE_KEY,
    GovernancePreconditionError,
    GovernanceStore,
    QuarantineInfo,
)
from skillgate.scanner import Skill
from skillgate.utils import now_iso

logger = logging.getLogger(__name__)

RESTART_NOTICE = "Changes take effect after restart."

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ActionResult:
    """Outcome of a governance action."""
    success: bool
    skill_key: str
    message: str
    config_updated: bool = False
    backup_path: Optional[str] = None
    evidence_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "success": self.success,
            "skillKey": self.skill_key,
            "configUpdated": self.config_updated,
            "message": self.message,
        }
        if self.backup_path is not None:
            d["backupPath"] = self.backup_path
        if self.evidence_id is not None:
            d["evidenceId"] = self.evidence_id
        return d


class GovernanceActions:
    """Applies governance decisions to the governance store."""

    def __init__(
        self,
        store: Optional[GovernanceStore] = None,
        quarantine_dir: Optional[Path] = None,
        backup_files: Optional[List[str]] = None,
        evidence_store: Optional[EvidenceStore] = None,
    ):
        self.store = store or GovernanceStore()
        self.quarantine_dir = Path(quarantine_dir) if quarantine_dir is not None else QUARANTINE_DIR
        self.backup_files = list(backup_files) if backup_files is not None else list(DEFAULT_BACKUP_FILES)
        # When set, quarantine refuses evidence ids that were never saved
        self.evidence_store = evidence_store

    # =========================================================================
    # Quarantine: backup + disable + record why
    # =========================================================================

    def quarantine_skill(
        self, skill: Skill, evidence: Evidence, reason: str
    ) -> ActionResult:
        """
        Quarantine a skill.

        Args:
            skill: The skill to quarantine
            evidence: Evidence justifying the quarantine
            reason: Human-readable reason stored with the entry

        Returns:
            ActionResult with backup_path and evidence_id on success
        """
        key = skill.skill_key

        existing = self.is_quarantined(key)
        if existing is not None:
            return ActionResult(
                success=False,
                skill_key=key,
                message=f'Skill "{key}" is already quarantined (since {existing.timestamp})',
            )
        if self.is_allowlisted(key):
            return ActionResult(
                success=False,
                skill_key=key,
                message=f'Skill "{key}" is allowlisted; remove it from the allowlist first',
            )
        if self.evidence_store is not None and self.evidence_store.load(evidence.id) is None:
            return ActionResult(
                success=False,
                skill_key=key,
                message=f"Evidence {evidence.id} has not been saved",
                evidence_id=evidence.id,
            )

        try:
            backup_path = self._backup_metadata(skill)
        except OSError as e:
            logger.warning("Quarantine of %s failed creating backup: %s", key, e)
            return ActionResult(
                success=False,
                skill_key=key,
                message=f"Failed to quarantine: {e}",
                evidence_id=evidence.id,
            )

        info = QuarantineInfo(
            timestamp=now_iso(),
            reason=reason,
            evidence_id=evidence.id,
            backup_path=str(backup_path),
        )

        def _mutate(entry: Dict[str, Any]) -> None:
            if entry.get(QUARANTINE_KEY):
                raise GovernancePreconditionError(f'Skill "{key}" is already quarantined')
            if entry.get(ALLOWLIST_KEY) is True:
                raise GovernancePreconditionError(
                    f'Skill "{key}" is allowlisted; remove it from the allowlist first'
                )
            entry["enabled"] = False
            entry[QUARANTINE_KEY] = info.to_dict()

        failure = self._apply(key, _mutate, "quarantine")
        if failure is not None:
            shutil.rmtree(backup_path, ignore_errors=True)
            failure.evidence_id = evidence.id
            return failure

        logger.info("Quarantined %s (evidence %s): %s", key, evidence.id, reason)
        return ActionResult(
            success=True,
            skill_key=key,
            message=f'Quarantined "{key}". {RESTART_NOTICE}',
            config_updated=True,
            backup_path=str(backup_path),
            evidence_id=evidence.id,
        )

    # =========================================================================
    # Restore: clear the quarantine block and re-enable
    # =========================================================================

    def restore_skill(self, skill_key: str) -> ActionResult:
        """Restore a quarantined skill. Other entry fields are left alone."""
        entry = self.store.get_entry(skill_key)
        if entry is None:
            return ActionResult(
                success=False,
                skill_key=skill_key,
                message=f'Skill "{skill_key}" not found in config',
            )
        if not entry.get(QUARANTINE_KEY):
            return ActionResult(
                success=False,
                skill_key=skill_key,
                message=f'Skill "{skill_key}" is not quarantined',
            )

        def _mutate(current: Dict[str, Any]) -> None:
            if not current.get(QUARANTINE_KEY):
                raise GovernancePreconditionError(f'Skill "{skill_key}" is not quarantined')
            del current[QUARANTINE_KEY]
            current["enabled"] = True

        failure = self._apply(skill_key, _mutate, "restore")
        if failure is not None:
            return failure

        logger.info("Restored %s", skill_key)
        return ActionResult(
            success=True,
            skill_key=skill_key,
            message=f'Restored "{skill_key}". {RESTART_NOTICE}',
            config_updated=True,
        )

    # =========================================================================
    # Disable: soft disable, no backup, no quarantine metadata
    # =========================================================================

    def disable_skill(self, skill: Skill, reason: str) -> ActionResult:
        key = skill.skill_key

        def _mutate(entry: Dict[str, Any]) -> None:
            entry["enabled"] = False

        failure = self._apply(key, _mutate, "disable")
        if failure is not None:
            return failure

        logger.info("Disabled %s: %s", key, reason)
        return ActionResult(
            success=True,
            skill_key=key,
            message=f'Disabled "{key}". {RESTART_NOTICE}',
            config_updated=True,
        )

    # =========================================================================
    # Allowlist: exempt from future scans
    # =========================================================================

    def allowlist_skill(self, skill_key: str) -> ActionResult:
        """
        Allowlist a skill. Callers are expected to skip scanning it from
        then on; the scanner itself does not consult the allowlist.
        """
        if self.is_quarantined(skill_key) is not None:
            return ActionResult(
                success=False,
                skill_key=skill_key,
                message=f'Skill "{skill_key}" is quarantined; restore it before allowlisting',
            )

        def _mutate(entry: Dict[str, Any]) -> None:
            if entry.get(QUARANTINE_KEY):
                raise GovernancePreconditionError(
                    f'Skill "{skill_key}" is quarantined; restore it before allowlisting'
                )
            entry["enabled"] = True
            entry[ALLOWLIST_KEY] = True

        failure = self._apply(skill_key, _mutate, "allowlist")
        if failure is not None:
            return failure

        logger.info("Allowlisted %s", skill_key)
        return ActionResult(
            success=True,
            skill_key=skill_key,
            message=f'Allowlisted "{skill_key}". Future scans will skip this skill.',
            config_updated=True,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def is_quarantined(self, skill_key: str) -> Optional[QuarantineInfo]:
        entry = self.store.get_entry(skill_key)
        if not entry:
            return None
        block = entry.get(QUARANTINE_KEY)
        if not isinstance(block, dict) or not block:
            return None
        return QuarantineInfo.from_dict(block)

    def is_allowlisted(self, skill_key: str) -> bool:
        entry = self.store.get_entry(skill_key)
        return bool(entry) and entry.get(ALLOWLIST_KEY) is True

    def get_skill_status(self, skill_key: str) -> Optional[Dict[str, Any]]:
        return self.store.get_entry(skill_key)

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _apply(self, skill_key: str, mutate, action: str) -> Optional[ActionResult]:
        """Run a store mutation, turning any failure into an ActionResult."""
        try:
            self.store.update_entry(skill_key, mutate)
        except GovernancePreconditionError as e:
            return ActionResult(success=False, skill_key=skill_key, message=str(e))
        except Exception as e:
            logger.warning("Failed to %s %s: %s", action, skill_key, e)
            return ActionResult(
                success=False,
                skill_key=skill_key,
                message=f"Failed to {action}: {e}",
            )
        return None

    def _backup_metadata(self, skill: Skill) -> Path:
        """
        Copy the skill's metadata files into a timestamped backup directory.

        Only metadata is copied, never the skill's code. Files that are
        missing or unreadable are skipped.
        """
        safe_key = _UNSAFE_NAME_CHARS.sub("_", skill.skill_key).strip("._") or "skill"
        backup_path = self.quarantine_dir / f"{safe_key}-{int(time.time() * 1000)}"
        backup_path.mkdir(parents=True, exist_ok=True)

        for name in self.backup_files:
            src = Path(skill.path) / name
            try:
                shutil.copy2(src, backup_path / name)
            except OSError:
                logger.debug("No %s to back up for %s", name, skill.skill_key)

        return backup_path
