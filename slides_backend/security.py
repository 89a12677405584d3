from __future__ import annotations

import re
from pathlib import Path

from .config import IMAGE_EXT


_SESSION_ID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}")
_SLIDE_FILENAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*" + re.escape(IMAGE_EXT))


def is_valid_session_id(session_id: object) -> bool:
    """Hex/hyphen only, canonical UUID shape. Pure string check, no I/O."""
    return isinstance(session_id, str) and _SESSION_ID_RE.fullmatch(session_id) is not None


def is_valid_slide_filename(name: object) -> bool:
    """Alphanumeric/dot/dash/underscore basename ending in .png. Pure string check, no I/O."""
    return isinstance(name, str) and _SLIDE_FILENAME_RE.fullmatch(name) is not None


def normalize_session_id(session_id: str) -> str:
    """Validate and normalize a session id.

    Treat session IDs as capability tokens; keep them unguessable and validate
    them strictly since they become path segments.
    """
    if not is_valid_session_id(session_id):
        raise ValueError("Invalid session id")
    return session_id.lower()


def safe_join(session_dir: Path, filename: str) -> Path:
    """Path of `filename` inside a session directory, resolved.

    Slide lookups go through is_valid_slide_filename first; this only
    guarantees the resolved path is still a direct child of the session.
    """
    session_dir = session_dir.resolve()
    target = (session_dir / filename).resolve()
    if target.parent != session_dir:
        raise ValueError("Path escapes session directory")
    return target
