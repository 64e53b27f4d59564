"""
SkillGate Rule Set

A fixed, ordered table of detection rules. Rules are plain records consumed
by one generic matcher in the scanner; order only affects finding order.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Pattern, Tuple


class Severity(str, Enum):
    """Severity of a single finding."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


@dataclass(frozen=True)
class Rule:
    """A single detection rule."""
    id: str
    severity: Severity
    pattern: Pattern
    description: str
    # Extensions the rule is limited to; None means every scanned file
    file_types: Optional[Tuple[str, ...]] = None

    def applies_to(self, extension: str) -> bool:
        return self.file_types is None or extension in self.file_types


def _rx(expr: str) -> Pattern:
    return re.compile(expr, re.IGNORECASE)


# Checked once per skill against metadata.openclaw.install, not per file
METADATA_INSTALL_RULE_ID = "metadata-install-download"
METADATA_INSTALL_DESCRIPTION = "Install hook downloads external content"
METADATA_INSTALL_KEYWORDS = ("download", "curl", "wget")


DEFAULT_RULES: Tuple[Rule, ...] = (
    # CRITICAL: shell injection / supply-chain attacks
    Rule(
        id="curl-pipe-bash",
        severity=Severity.CRITICAL,
        pattern=_rx(r"curl\s+[^\n]*\|\s*(bash|sh|zsh)"),
        description="Remote code execution via curl pipe to shell",
    ),
    Rule(
        id="wget-pipe-bash",
        severity=Severity.CRITICAL,
        pattern=_rx(r"wget\s+[^\n]*\|\s*(bash|sh|zsh)"),
        description="Remote code execution via wget pipe to shell",
    ),
    Rule(
        id="base64-pipe-bash",
        severity=Severity.CRITICAL,
        pattern=_rx(r"base64\s+(-d|--decode)[^\n]*\|\s*(bash|sh|zsh)"),
        description="Obfuscated code execution via base64 decode",
    ),
    Rule(
        id="rm-rf-root",
        severity=Severity.CRITICAL,
        pattern=_rx(r"rm\s+-rf\s+(/|~/|\$HOME)"),
        description="Destructive command targeting root or home directory",
    ),
    Rule(
        id="eval-remote",
        severity=Severity.CRITICAL,
        pattern=_rx(r"eval\s*\(\s*(fetch|axios|http|request)\s*\("),
        description="Eval of remotely fetched content",
    ),

    # HIGH: dangerous patterns
    Rule(
        id="download-execute",
        severity=Severity.HIGH,
        pattern=_rx(
            r"(download|fetch|request)\s*\([^)]*\)\s*\.\s*then\s*\([^)]*\)"
            r"\s*\.\s*(exec|spawn|eval)"
        ),
        description="Download and execute pattern",
    ),
    Rule(
        id="env-exfiltration",
        severity=Severity.HIGH,
        pattern=_rx(
            r"process\.env\s*\[?\s*['\"][^'\"]+['\"]\s*\]?\s*\+\s*(fetch|axios|http|request)"
        ),
        description="Potential environment variable exfiltration",
    ),
    Rule(
        id="hardcoded-token",
        severity=Severity.HIGH,
        pattern=_rx(r"(api[_-]?key|secret|token|password)\s*[:=]\s*['\"][A-Za-z0-9]{20,}['\"]"),
        description="Hardcoded secret or API key",
    ),
    Rule(
        id="shell-spawn-untrusted",
        severity=Severity.HIGH,
        pattern=_rx(r"(exec|spawn|execSync|spawnSync)\s*\(\s*[`'\"]\s*\$\{"),
        description="Shell command with template literal (potential injection)",
    ),
    Rule(
        id="install-download",
        severity=Severity.HIGH,
        pattern=_rx(r"\"install\"\s*:\s*[\"'].*\b(curl|wget|download|fetch)\b"),
        description="Install hook downloads external content",
        file_types=(".json",),
    ),

    # MEDIUM: risky patterns
    Rule(
        id="dynamic-require",
        severity=Severity.MEDIUM,
        pattern=_rx(r"require\s*\(\s*[^'\"]"),
        description="Dynamic require with non-literal argument",
    ),
    Rule(
        id="fs-write-root",
        severity=Severity.MEDIUM,
        pattern=_rx(r"writeFile(Sync)?\s*\(\s*['\"]/(?!tmp)"),
        description="File write to root filesystem",
    ),
    Rule(
        id="network-listener",
        severity=Severity.MEDIUM,
        pattern=_rx(r"\.(listen|createServer)\s*\("),
        description="Creates network listener",
    ),
    Rule(
        id="obfuscated-code",
        severity=Severity.MEDIUM,
        pattern=_rx(r"\\x[0-9a-f]{2}.*\\x[0-9a-f]{2}.*\\x[0-9a-f]{2}"),
        description="Potentially obfuscated code (hex escapes)",
    ),

    # LOW: informational
    Rule(
        id="shell-exec",
        severity=Severity.LOW,
        pattern=_rx(r"(exec|spawn|execSync|spawnSync|child_process)"),
        description="Uses shell execution",
    ),
    Rule(
        id="network-request",
        severity=Severity.LOW,
        pattern=_rx(r"(fetch|axios|request|http\.get|https\.get)"),
        description="Makes network requests",
    ),
    Rule(
        id="file-system-access",
        severity=Severity.LOW,
        pattern=_rx(r"(readFile|writeFile|readdir|mkdir|unlink|rmdir)"),
        description="Accesses file system",
    ),
)


RULE_EXPLANATIONS: Dict[str, str] = {
    "curl-pipe-bash": (
        "This pattern downloads and executes code in one step, bypassing review. "
        "Attackers can modify the remote script at any time."
    ),
    "wget-pipe-bash": (
        "Same as curl|bash - downloading and executing untrusted code is a "
        "supply-chain attack vector."
    ),
    "base64-pipe-bash": (
        "Obfuscating code with base64 then executing it hides the payload from review."
    ),
    "rm-rf-root": (
        "Deleting from root or home directory can destroy your system or user data."
    ),
    "eval-remote": "Fetching code and evaluating it allows remote code execution.",
    "download-execute": (
        "The download-then-execute pattern is a classic supply-chain attack."
    ),
    "env-exfiltration": (
        "Sending environment variables over network can leak API keys and secrets."
    ),
    "hardcoded-token": (
        "Hardcoded secrets in source code are exposed to anyone with repo access."
    ),
    "shell-spawn-untrusted": (
        "Using template literals in shell commands enables injection attacks."
    ),
    "install-download": "Download during install runs before user can review the skill.",
    METADATA_INSTALL_RULE_ID: (
        "Install hook that downloads content runs automatically on skill install."
    ),
    "dynamic-require": "Dynamic requires can load unexpected modules based on user input.",
    "fs-write-root": "Writing to system directories can overwrite critical files.",
    "network-listener": "Creating a server may expose your machine to network attacks.",
    "obfuscated-code": (
        "Heavy obfuscation often indicates an attempt to hide malicious code."
    ),
    "shell-exec": (
        "Shell execution is powerful but can be dangerous if inputs are not sanitized."
    ),
    "network-request": "Network requests may send data to external servers.",
    "file-system-access": (
        "File system access requires trust - the skill can read/write your files."
    ),
}


def get_rules() -> List[Rule]:
    """Return a copy of the rule table."""
    return list(DEFAULT_RULES)


def explain_rule(rule_id: str) -> str:
    """Human-readable explanation of why a rule matters."""
    return RULE_EXPLANATIONS.get(rule_id, "This pattern may indicate risky behavior.")
