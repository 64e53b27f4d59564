"""
Shared helpers: hashing, evidence ids, timestamps, JSON documents written
with temp file + rename, and JSON5 document reads.
"""

import hashlib
import json
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import json5

from skillgate import SkillGateError

logger = logging.getLogger(__name__)


def sha256(content: str) -> str:
    """Hex SHA-256 digest of a UTF-8 string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def generate_evidence_id() -> str:
    """Generate a fresh evidence id of the form ``ev-xxxxxxxx``."""
    return f"ev-{uuid.uuid4().hex[:8]}"


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def expand_path(path: str) -> Path:
    """Expand a leading ``~`` to the home directory."""
    return Path(path).expanduser()


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write JSON to *path* atomically.

    The payload goes to a temp file in the same directory which is then
    renamed over the target, so readers see either the old document or
    the complete new one. The temp file is removed if anything fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class DocumentParseError(SkillGateError):
    """An existing document could not be read or parsed."""


def load_json5_document(path: Path) -> Optional[Any]:
    """
    Parse a JSON5 document (comments, trailing commas, unquoted keys).

    Returns None when the file does not exist.

    Raises:
        DocumentParseError: The file exists but cannot be read or parsed
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentParseError(f"Cannot read {path}: {e}") from e
    try:
        return json5.loads(text)
    except ValueError as e:
        raise DocumentParseError(f"Cannot parse {path}: {e}") from e


def read_json_document(path: Path) -> Optional[Any]:
    """
    Read a JSON5 document, returning None when it is missing or unreadable.
    """
    try:
        return load_json5_document(path)
    except DocumentParseError as e:
        logger.warning("Ignoring unreadable document: %s", e)
        return None
