"""
Tests for skillgate.commands: end-to-end governance flows over tmp dirs.
"""

import shutil

import pytest

from skillgate.authz import Authorizer
from skillgate.commands import (
    GovernanceContext,
    gov_allow,
    gov_explain,
    gov_quarantine,
    gov_restore,
    gov_scan,
    gov_status,
)

pytestmark = pytest.mark.security

ALLOW = Authorizer(auto_authorize=True)
DENY = Authorizer(interactive=False)


def _copy_fixture(fixtures_dir, workspace, name):
    shutil.copytree(fixtures_dir / name, workspace / name)


@pytest.fixture
def ctx_factory(gov_config, workspace):
    def _make(authorizer=ALLOW):
        return GovernanceContext.from_config(
            gov_config, workspace_dir=workspace, authorizer=authorizer,
        )
    return _make


@pytest.fixture
def populated(fixtures_dir, workspace):
    for name in ("malicious-skill", "medium-risk-skill", "safe-skill"):
        _copy_fixture(fixtures_dir, workspace, name)
    return workspace


# =============================================================================
# scan
# =============================================================================


class TestGovScan:
    def test_quarantines_critical_skill(self, ctx_factory, populated):
        ctx = ctx_factory()
        result = gov_scan(ctx)

        assert result.total_skills == 3
        assert result.scanned_skills == 3
        assert result.skipped_skills == 0
        assert [f.skill_key for f in result.findings] == ["malicious-skill"]

        summary = result.findings[0]
        assert summary.risk_level == "CRITICAL"
        assert summary.critical_count == 1
        assert summary.evidence_id is not None
        assert ctx.evidence.load(summary.evidence_id) is not None

        assert len(result.actions_applied) == 1
        applied = result.actions_applied[0]
        assert (applied.skill_key, applied.action, applied.success) == (
            "malicious-skill", "quarantine", True,
        )
        info = ctx.actions.is_quarantined("malicious-skill")
        assert info.evidence_id == summary.evidence_id

    def test_denied_authorization_applies_nothing(self, ctx_factory, populated):
        ctx = ctx_factory(DENY)
        result = gov_scan(ctx)

        assert result.actions_applied == []
        assert ctx.store.entries() == {}
        assert result.findings[0].evidence_id is not None

    def test_all_findings_includes_lower_levels(self, ctx_factory, populated):
        result = gov_scan(ctx_factory(DENY), all_findings=True)
        levels = {f.skill_key: f for f in result.findings}

        assert set(levels) == {"malicious-skill", "medium-risk-skill", "safe-skill"}
        assert levels["medium-risk-skill"].risk_level == "MEDIUM"
        assert levels["medium-risk-skill"].evidence_id is not None
        assert levels["safe-skill"].risk_level == "SAFE"
        assert levels["safe-skill"].evidence_id is None

    def test_allowlisted_skill_skipped(self, ctx_factory, populated):
        ctx = ctx_factory()
        ctx.actions.allowlist_skill("malicious-skill")

        result = gov_scan(ctx)

        assert result.skipped_skills == 1
        assert result.scanned_skills == 2
        assert result.findings == []
        assert ctx.actions.is_quarantined("malicious-skill") is None

    def test_high_risk_skill_disabled(self, ctx_factory, workspace, make_skill):
        make_skill(workspace, "spawner", files={
            "index.js": "exec(`${a}`);\nspawn(`${b}`);\n",
        }, metadata={"name": "spawner"})
        ctx = ctx_factory()

        result = gov_scan(ctx)

        assert result.findings[0].risk_level == "HIGH"
        assert result.actions_applied[0].action == "disable"
        assert ctx.store.get_entry("spawner") == {"enabled": False}

    def test_rescan_of_quarantined_skill_reports_failure(self, ctx_factory, populated):
        ctx = ctx_factory()
        gov_scan(ctx)
        second = gov_scan(ctx)
        assert second.actions_applied[0].success is False
        assert "already quarantined" in second.actions_applied[0].message

    def test_to_dict(self, ctx_factory, populated):
        d = gov_scan(ctx_factory(DENY)).to_dict()
        assert d["totalSkills"] == 3
        assert d["findings"][0]["skillKey"] == "malicious-skill"
        assert d["actionsApplied"] == []


# =============================================================================
# explain / status
# =============================================================================


class TestGovExplain:
    def test_explains_findings(self, ctx_factory, populated):
        result = gov_explain(ctx_factory(), "malicious-skill")

        assert result.found
        assert result.status == "unmanaged"
        assert result.assessment.level.value == "CRITICAL"
        rules = {f.rule: f for f in result.findings}
        assert "curl-pipe-bash" in rules
        assert "downloads and executes" in rules["curl-pipe-bash"].explanation

    def test_missing_skill_still_reports_history(self, ctx_factory, populated):
        ctx = ctx_factory()
        gov_scan(ctx)
        shutil.rmtree(populated / "malicious-skill")

        result = gov_explain(ctx, "malicious-skill")

        assert not result.found
        assert result.status == "quarantined"
        assert len(result.evidence_history) == 1


class TestGovStatus:
    def test_status_counts(self, ctx_factory, populated):
        ctx = ctx_factory()
        gov_scan(ctx)
        ctx.actions.allowlist_skill("safe-skill")

        result = gov_status(ctx)
        by_key = {s.skill_key: s for s in result.skills}

        assert by_key["malicious-skill"].status == "quarantined"
        assert by_key["malicious-skill"].quarantine["evidenceId"]
        assert by_key["malicious-skill"].last_risk_level == "CRITICAL"
        assert by_key["safe-skill"].status == "allowlisted"
        assert by_key["medium-risk-skill"].status == "unmanaged"

        d = result.to_dict()
        assert d["totalSkills"] == 3
        assert d["quarantinedCount"] == 1
        assert d["allowlistedCount"] == 1
        assert d["unmanagedCount"] == 1


# =============================================================================
# quarantine / restore / allow
# =============================================================================


class TestGovQuarantine:
    def test_quarantine(self, ctx_factory, populated):
        ctx = ctx_factory()
        result = gov_quarantine(ctx, "medium-risk-skill")

        assert result.success
        assert result.backup_path
        evidence = ctx.evidence.load(result.evidence_id)
        assert evidence.risk_level == "MEDIUM"
        assert ctx.actions.is_quarantined("medium-risk-skill").evidence_id == evidence.id

    def test_unknown_skill(self, ctx_factory, populated):
        result = gov_quarantine(ctx_factory(), "ghost")
        assert not result.success
        assert "not found" in result.message

    def test_denied_keeps_evidence(self, ctx_factory, populated):
        ctx = ctx_factory(DENY)
        result = gov_quarantine(ctx, "malicious-skill")
        assert not result.success
        assert "authorization denied" in result.message
        assert ctx.evidence.load(result.evidence_id) is not None
        assert ctx.actions.is_quarantined("malicious-skill") is None

    def test_already_quarantined(self, ctx_factory, populated):
        ctx = ctx_factory()
        first = gov_quarantine(ctx, "malicious-skill")
        again = gov_quarantine(ctx, "malicious-skill")
        assert not again.success
        assert "already quarantined" in again.message
        assert again.evidence_id == first.evidence_id
        assert again.evidence_available


class TestGovRestore:
    def test_restore(self, ctx_factory, populated):
        ctx = ctx_factory()
        quarantined = gov_quarantine(ctx, "malicious-skill")

        result = gov_restore(ctx, "malicious-skill")

        assert result.success
        assert result.evidence_id == quarantined.evidence_id
        assert ctx.actions.is_quarantined("malicious-skill") is None
        assert ctx.store.get_entry("malicious-skill")["enabled"] is True

    def test_not_quarantined(self, ctx_factory, populated):
        result = gov_restore(ctx_factory(), "safe-skill")
        assert not result.success
        assert "is not quarantined" in result.message

    def test_denied(self, ctx_factory, populated):
        gov_quarantine(ctx_factory(), "malicious-skill")
        ctx = ctx_factory(DENY)
        result = gov_restore(ctx, "malicious-skill")
        assert not result.success
        assert ctx.actions.is_quarantined("malicious-skill") is not None

    def test_missing_evidence_flagged(self, ctx_factory, populated):
        ctx = ctx_factory()
        quarantined = gov_quarantine(ctx, "malicious-skill")
        ctx.evidence.path_for(quarantined.evidence_id).unlink()

        result = gov_restore(ctx, "malicious-skill")

        assert result.success
        assert result.evidence_available is False


class TestGovAllow:
    def test_allow(self, ctx_factory):
        ctx = ctx_factory()
        result = gov_allow(ctx, "future-skill")
        assert result.success
        assert ctx.actions.is_allowlisted("future-skill")

    def test_already_allowlisted(self, ctx_factory):
        ctx = ctx_factory()
        gov_allow(ctx, "future-skill")
        result = gov_allow(ctx, "future-skill")
        assert not result.success
        assert "already allowlisted" in result.message

    def test_denied(self, ctx_factory):
        ctx = ctx_factory(DENY)
        assert not gov_allow(ctx, "x").success
        assert not ctx.actions.is_allowlisted("x")

    def test_quarantined_cannot_be_allowed(self, ctx_factory, populated):
        ctx = ctx_factory()
        gov_quarantine(ctx, "malicious-skill")
        result = gov_allow(ctx, "malicious-skill")
        assert not result.success
        assert "restore it before allowlisting" in result.message
