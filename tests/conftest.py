"""
Pytest fixtures: isolated sessions root and a stand-in for soffice/pdftoppm.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from slides_backend.config import ServerConfig
from slides_backend.errors import ConversionStepError
from slides_backend.runner import ToolResult
from slides_backend.workspace import DeletionScheduler, SessionStore


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeTools:
    """Writes the files the real converters would write.

    pages: number of PNGs "rendered"; pdf_name: name soffice "produces"
    (None = no PDF at all); pad: zero padding of page numbers like pdftoppm.
    """

    def __init__(self, pages: int = 3, pdf_name: Optional[str] = "presentation.pdf", pad: int = 0,
                 fail_tool: Optional[str] = None) -> None:
        self.pages = pages
        self.pdf_name = pdf_name
        self.pad = pad
        self.fail_tool = fail_tool
        self.calls: List[tuple] = []

    def __call__(self, executable: str, args: Sequence[str], timeout: float) -> ToolResult:
        self.calls.append((executable, list(args), timeout))
        if executable == self.fail_tool:
            raise ConversionStepError(executable, "exit status 1", "boom")
        if "--convert-to" in args:
            outdir = Path(args[args.index("--outdir") + 1])
            if self.pdf_name:
                (outdir / self.pdf_name).write_bytes(b"%PDF-1.4\n")
        else:
            prefix = Path(args[-1])
            for page in range(1, self.pages + 1):
                name = f"{prefix.name}-{page:0{self.pad}d}.png" if self.pad else f"{prefix.name}-{page}.png"
                (prefix.parent / name).write_bytes(PNG_BYTES + str(page).encode())
        return ToolResult(returncode=0, stdout="", stderr="")


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    logging.getLogger().setLevel(logging.ERROR)
    yield


@pytest.fixture
def config(tmp_path) -> ServerConfig:
    return ServerConfig(
        sessions_root=(tmp_path / "sessions").resolve(),
        soffice_path="soffice",
        pdftoppm_path="pdftoppm",
        convert_timeout_seconds=5,
        render_dpi=300,
        retention_seconds=3600,
        max_upload_bytes=1024,
    )


@pytest.fixture
def scheduler():
    sched = DeletionScheduler()
    yield sched
    sched.cancel_all()


@pytest.fixture
def store(config, scheduler) -> SessionStore:
    s = SessionStore(config, scheduler)
    s.initialize()
    return s
