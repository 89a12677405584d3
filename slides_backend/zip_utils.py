from __future__ import annotations

import itertools
import logging
import zipfile
from pathlib import Path
from typing import Iterator, Sequence

from .errors import InternalError, NotFoundError
from .workspace import SessionStore


logger = logging.getLogger(__name__)

_COPY_CHUNK = 64 * 1024


class _ChunkSink:
    """Write-only, non-seekable file object; zipfile then writes data descriptors."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def archive_name(slide_number: int) -> str:
    return f"slide-{slide_number:03d}.png"


def iter_archive(paths: Sequence[Path]) -> Iterator[bytes]:
    """Stream a store-only ZIP of `paths`, renamed slide-001.png, slide-002.png, ...

    Entries are uncompressed: PNG is already compressed. An error before the
    first chunk propagates so the caller can still answer with an error
    status; once bytes have gone out it is logged and ends the stream.
    """
    sink = _ChunkSink()
    started = False
    try:
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_STORED) as zf:
            for index, path in enumerate(paths, start=1):
                info = zipfile.ZipInfo.from_file(path, arcname=archive_name(index))
                info.compress_type = zipfile.ZIP_STORED
                with path.open("rb") as src, zf.open(info, mode="w") as dest:
                    while True:
                        block = src.read(_COPY_CHUNK)
                        if not block:
                            break
                        dest.write(block)
                        chunk = sink.drain()
                        if chunk:
                            started = True
                            yield chunk
                chunk = sink.drain()
                if chunk:
                    started = True
                    yield chunk
        tail = sink.drain()
        if tail:
            yield tail
    except Exception:
        if not started:
            raise
        logger.exception("ZIP stream aborted after %d file(s)", len(paths))
        return


def build_archive(store: SessionStore, session_id: str) -> Iterator[bytes]:
    """Resolve the session and produce the first chunk before any response is sent.

    Bad input, a missing session and a first entry lost to deletion all raise
    here, ahead of the response headers.
    """
    names = store.list_images(session_id)
    session_dir = store.resolve(session_id)
    stream = iter_archive([session_dir / name for name in names])
    try:
        first = next(stream, b"")
    except FileNotFoundError:
        raise NotFoundError("Session not found or expired")
    except OSError as e:
        logger.error("Could not start ZIP for session %s: %s", session_id, e)
        raise InternalError("Failed to create ZIP") from e
    return itertools.chain([first], stream)
