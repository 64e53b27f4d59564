"""
Property-based tests for SkillGate using Hypothesis.

1. Risk assessment: order independence and the score formula
2. Redaction: hashes are deterministic; partial_redact agrees with contains_sensitive
3. Scanner: no crashes on arbitrary file content
"""

import hashlib
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

settings.register_profile("skillgate", deadline=None, print_blob=True)
settings.load_profile("skillgate")

from skillgate.decision import SEVERITY_WEIGHTS, assess_risk
from skillgate.redaction import contains_sensitive, partial_redact, redact_snippet
from skillgate.rules import DEFAULT_RULES, Severity
from skillgate.scanner import Finding, Skill, SkillScanner

pytestmark = pytest.mark.core


# ============================================================================
# Strategies
# ============================================================================

findings_strategy = st.lists(
    st.builds(
        lambda rule, file, line: Finding(
            rule=rule.id,
            severity=rule.severity,
            file=file,
            line=line,
            match="x",
            description=rule.description,
        ),
        st.sampled_from(DEFAULT_RULES),
        st.sampled_from(["index.js", "lib/a.ts", "setup.sh"]),
        st.integers(min_value=1, max_value=500),
    ),
    max_size=25,
)

fuzz_text = st.text(max_size=2000)

sensitive_ish = st.one_of(
    fuzz_text,
    st.sampled_from([
        'api_key = "abc"',
        "Bearer abc.def",
        "redis://cache:6379",
        "root@example.com",
        "192.168.1.1",
    ]),
).flatmap(lambda s: st.tuples(fuzz_text, st.just(s), fuzz_text).map("".join))


# ============================================================================
# Risk assessment
# ============================================================================


@given(st.data(), findings_strategy)
def test_assessment_ignores_finding_order(data, findings):
    shuffled = data.draw(st.permutations(findings))
    a = assess_risk(findings)
    b = assess_risk(shuffled)
    assert a.level == b.level
    assert a.score == b.score
    assert a.action == b.action
    assert [c.name for c in a.combos] == [c.name for c in b.combos]


@given(findings_strategy)
def test_score_is_weights_plus_bonuses(findings):
    result = assess_risk(findings)
    expected = sum(SEVERITY_WEIGHTS[f.severity] for f in findings)
    expected += sum(c.score_bonus for c in result.combos)
    assert result.score == expected
    assert len(result.reasons) <= 10


@given(findings_strategy)
def test_any_critical_finding_means_critical(findings):
    if any(f.severity == Severity.CRITICAL for f in findings):
        assert assess_risk(findings).level.value == "CRITICAL"


# ============================================================================
# Redaction
# ============================================================================


@given(fuzz_text)
def test_redact_snippet_is_plain_sha256(text):
    result = redact_snippet(text)
    assert result.hash == "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()
    assert result.original_length == len(text)


@given(sensitive_ish)
def test_partial_redact_agrees_with_detection(text):
    redacted, count = partial_redact(text)
    assert (count > 0) == contains_sensitive(text)
    if count == 0:
        assert redacted == text
    else:
        assert "[REDACTED:" in redacted


# ============================================================================
# Scanner
# ============================================================================


@given(fuzz_text)
@settings(max_examples=50)
def test_scanner_handles_arbitrary_content(content):
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        (root / "index.js").write_text(content, encoding="utf-8")
        result = SkillScanner().scan(Skill(skill_key="fuzz", path=root))

    assert result.scanned_files == 1
    for finding in result.findings:
        assert finding.line >= 1
        assert finding.column >= 1
        assert len(finding.match) <= 100
