"""
SkillGate Authorization

Confirmation gate for governance actions with real-world effect. The gate
is fail-closed: a non-interactive session, a timeout, an error, or any
answer other than "yes" denies the action.

Automatic approval is an explicit strategy passed to the Authorizer
(``auto_authorize=True``), never process-wide state.
"""

import logging
import os
import select
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TextIO

import click

from skillgate.utils import now_iso

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class AuthAction(str, Enum):
    QUARANTINE = "quarantine"
    RESTORE = "restore"
    ALLOW = "allow"
    DISABLE = "disable"


@dataclass(frozen=True)
class AuthContext:
    action: AuthAction
    skill_key: str
    risk_level: Optional[str] = None
    evidence_id: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    authorized: bool
    action: AuthAction
    skill_key: str
    timestamp: str
    reason: str = ""


def is_non_interactive() -> bool:
    """True when stdin is not a terminal or we are running under CI."""
    try:
        tty = sys.stdin is not None and sys.stdin.isatty()
    except (AttributeError, ValueError):
        tty = False
    return not tty or os.environ.get("CI") == "true"


def build_prompt(ctx: AuthContext) -> str:
    """Build the confirmation text for an action."""
    lines = []

    if ctx.action == AuthAction.QUARANTINE:
        lines.append(f'QUARANTINE skill "{ctx.skill_key}"?')
        if ctx.risk_level:
            lines.append(f"   Risk Level: {ctx.risk_level}")
        if ctx.evidence_id:
            lines.append(f"   Evidence: {ctx.evidence_id}")
        lines.append("   This will disable the skill and create a backup.")
    elif ctx.action == AuthAction.RESTORE:
        lines.append(f'RESTORE skill "{ctx.skill_key}"?')
        lines.append("   This will re-enable a quarantined skill.")
    elif ctx.action == AuthAction.ALLOW:
        lines.append(f'ALLOWLIST skill "{ctx.skill_key}"?')
        lines.append("   This will skip future scans for this skill.")
    elif ctx.action == AuthAction.DISABLE:
        lines.append(f'DISABLE skill "{ctx.skill_key}"?')
        if ctx.risk_level:
            lines.append(f"   Risk Level: {ctx.risk_level}")

    lines.append("")
    lines.append('Type "yes" to confirm, anything else to cancel:')
    return "\n".join(lines)


def read_answer(text: str, timeout: float, stream: Optional[TextIO] = None) -> Optional[str]:
    """
    Print the prompt and read one line from *stream* (default stdin).

    The read happens in the calling thread, one byte at a time under
    ``select``, so nothing is left waiting on the stream after a timeout
    and a later prompt gets the next line typed. Returns None on timeout
    or end of input.
    """
    stream = stream if stream is not None else sys.stdin
    click.echo(text)
    click.echo("> ", nl=False)

    fd = stream.fileno()
    deadline = time.monotonic() + timeout
    chunks = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        ready, _, _ = select.select([fd], [], [], remaining)
        if not ready:
            return None
        ch = os.read(fd, 1)
        if not ch:
            if not chunks:
                return None
            break
        if ch == b"\n":
            break
        chunks.append(ch)
    return b"".join(chunks).decode("utf-8", errors="replace")


class Authorizer:
    """
    Decides whether a governance action may proceed.

    Args:
        auto_authorize: Approve every request without prompting
        timeout_seconds: How long to wait for an answer before denying
        interactive: Override TTY detection (None = detect)
        prompt_fn: Called with the prompt text and the timeout; returns the
            answer, or None when nothing arrived in time
    """

    def __init__(
        self,
        auto_authorize: bool = False,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        interactive: Optional[bool] = None,
        prompt_fn: Optional[Callable[[str, float], Optional[str]]] = None,
    ):
        self.auto_authorize = auto_authorize
        self.timeout_seconds = timeout_seconds
        self.interactive = interactive
        self.prompt_fn = prompt_fn or read_answer

    def require(self, ctx: AuthContext) -> AuthResult:
        if self.auto_authorize:
            return self._result(ctx, True, "Auto-authorized by configuration")

        interactive = self.interactive
        if interactive is None:
            interactive = not is_non_interactive()
        if not interactive:
            return self._result(ctx, False, "Non-interactive mode: authorization denied")

        try:
            answer = self.prompt_fn(build_prompt(ctx), self.timeout_seconds)
        except Exception as e:
            logger.debug("Authorization prompt failed: %s", e)
            answer = None
        if not isinstance(answer, str):
            return self._result(ctx, False, "Authorization failed (timeout or error)")

        confirmed = answer.strip().lower() == "yes"
        return self._result(ctx, confirmed, "User confirmed" if confirmed else "User denied")

    @staticmethod
    def _result(ctx: AuthContext, authorized: bool, reason: str) -> AuthResult:
        return AuthResult(
            authorized=authorized,
            action=ctx.action,
            skill_key=ctx.skill_key,
            timestamp=now_iso(),
            reason=reason,
        )
