from __future__ import annotations

import logging
import re
import shutil
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .config import IMAGE_EXT, SLIDE_PREFIX, ServerConfig
from .errors import BadInputError, InternalError, NotFoundError
from .security import is_valid_slide_filename, normalize_session_id, safe_join


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionWorkspace:
    session_id: str
    root: Path
    created_at: float


def _now_epoch() -> float:
    return time.time()


_DIGITS_RE = re.compile(r"\d+")


def slide_sort_key(filename: str) -> tuple[int, str]:
    """Sort key using the numeric suffix of a rasterizer output name.

    slide-9.png < slide-10.png; names without digits sort first.
    """
    stem = Path(filename).stem
    numbers = _DIGITS_RE.findall(stem)
    return (int(numbers[-1]) if numbers else 0, filename)


def is_slide_output(name: str) -> bool:
    """True for rasterizer output: slide-<n>.png."""
    return name.startswith(SLIDE_PREFIX + "-") and name.lower().endswith(IMAGE_EXT)


def order_slide_files(names: Iterable[str]) -> list[str]:
    return sorted(names, key=slide_sort_key)


class DeletionScheduler:
    """Fire-and-forget delayed callbacks, one per key.

    Timers live in memory only; nothing survives a process restart.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}

    def schedule(self, key: str, delay: float, callback: Callable[[], None]) -> None:
        timer = threading.Timer(max(0.0, delay), self._fire, args=(key, callback))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(key, None)
            self._timers[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is not None and timer is threading.current_thread():
                del self._timers[key]
        try:
            callback()
        except Exception:
            logger.exception("Scheduled task %s failed", key)

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> int:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)


class SessionStore:
    """Per-conversion working directories under config.sessions_root."""

    def __init__(self, config: ServerConfig, scheduler: DeletionScheduler | None = None) -> None:
        self.root = config.sessions_root
        self.scheduler = scheduler or DeletionScheduler()

    def initialize(self) -> int:
        """Create the sessions root and purge directories left by a previous process.

        Deletion timers are not persisted, so leftovers would never be removed
        otherwise. Returns the number of purged directories.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        purged = self.purge_all()
        if purged:
            logger.info("Purged %d stale session(s) under %s", purged, self.root)
        return purged

    def _session_dir(self, session_id: str) -> Path:
        try:
            sid = normalize_session_id(session_id)
        except ValueError:
            raise BadInputError("Invalid session ID")
        return self.root / sid

    def create_session(self) -> SessionWorkspace:
        sid = str(uuid.uuid4())
        root = self.root / sid
        try:
            root.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            logger.error("Could not create session directory %s: %s", root, e)
            raise InternalError("Could not allocate a working directory") from e
        logger.debug("Created session %s", sid)
        return SessionWorkspace(session_id=sid, root=root, created_at=_now_epoch())

    def resolve(self, session_id: str, filename: str | None = None) -> Path:
        """Validate session id (and filename) and build the path. No filesystem access."""
        session_dir = self._session_dir(session_id)
        if filename is None:
            return session_dir
        if not is_valid_slide_filename(filename):
            raise BadInputError("Invalid path")
        try:
            return safe_join(session_dir, filename)
        except ValueError:
            raise BadInputError("Invalid path")

    def get(self, session_id: str) -> Path:
        session_dir = self.resolve(session_id)
        if not session_dir.is_dir():
            raise NotFoundError("Session not found or expired")
        return session_dir

    def image_path(self, session_id: str, filename: str) -> Path:
        path = self.resolve(session_id, filename)
        if not path.is_file():
            raise NotFoundError("Image not found")
        return path

    def list_images(self, session_id: str) -> list[str]:
        """Image filenames of a live session, in slide order."""
        session_dir = self.get(session_id)
        try:
            names = [p.name for p in session_dir.iterdir() if is_slide_output(p.name) and p.is_file()]
        except FileNotFoundError:
            # Lost a race with scheduled deletion.
            raise NotFoundError("Session not found or expired")
        if not names:
            raise NotFoundError("No images found")
        return order_slide_files(names)

    def delete_now(self, session_id: str) -> None:
        session_dir = self.resolve(session_id)
        if session_dir.exists():
            shutil.rmtree(session_dir, ignore_errors=True)
            logger.debug("Deleted session %s", session_dir.name)

    def schedule_delete(self, session_id: str, delay: float) -> float:
        """Delete the session after `delay` seconds. Returns the deadline (epoch)."""
        sid = self.resolve(session_id).name
        self.scheduler.schedule(sid, delay, lambda: self.delete_now(sid))
        return _now_epoch() + max(0.0, delay)

    def purge_all(self) -> int:
        deleted = 0
        if not self.root.exists():
            return 0
        for child in self.root.iterdir():
            if not child.is_dir():
                continue
            try:
                normalize_session_id(child.name)
            except ValueError:
                continue
            shutil.rmtree(child, ignore_errors=True)
            deleted += 1
        return deleted
