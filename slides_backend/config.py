from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


# Upload filter: extension or declared MIME type of a presentation document.
ALLOWED_UPLOAD_EXTS = {".pptx", ".ppt"}
ALLOWED_UPLOAD_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-powerpoint",
}

IMAGE_EXT = ".png"
# Stored input is always presentation<ext>, the PDF presentation.pdf.
STORED_BASENAME = "presentation"
# pdftoppm output prefix: slide-1.png, slide-01.png, ...
SLIDE_PREFIX = "slide"


@dataclass(frozen=True)
class ServerConfig:
    sessions_root: Path
    soffice_path: str = "soffice"
    pdftoppm_path: str = "pdftoppm"
    convert_timeout_seconds: float = 120.0
    render_dpi: int = 300
    retention_seconds: float = 2 * 60 * 60
    max_upload_bytes: int = 200 * 1024 * 1024


def _env_str(env: Mapping[str, str], key: str, default: str) -> str:
    raw = env.get(key)
    if raw and raw.strip():
        return raw.strip()
    return default


def load_config(env: Mapping[str, str] | None = None) -> ServerConfig:
    """Build the process-wide configuration from environment variables.

    Called once at startup; the result is passed explicitly to the session
    store, the pipeline and the app. Malformed numbers raise ValueError.
    """
    env = os.environ if env is None else env

    # Default: <tempdir>/pptx-converter-sessions. Override with SLIDES_SESSIONS_ROOT.
    root_raw = env.get("SLIDES_SESSIONS_ROOT")
    if root_raw and root_raw.strip():
        root = Path(root_raw.strip())
    else:
        root = Path(tempfile.gettempdir()) / "pptx-converter-sessions"

    retention_hours = float(_env_str(env, "SLIDES_RETENTION_HOURS", "2"))
    config = ServerConfig(
        sessions_root=root.resolve(),
        soffice_path=_env_str(env, "SLIDES_SOFFICE_PATH", "soffice"),
        pdftoppm_path=_env_str(env, "SLIDES_PDFTOPPM_PATH", "pdftoppm"),
        convert_timeout_seconds=float(_env_str(env, "SLIDES_CONVERT_TIMEOUT_SECONDS", "120")),
        render_dpi=int(_env_str(env, "SLIDES_RENDER_DPI", "300")),
        retention_seconds=max(0.0, retention_hours) * 3600.0,
        max_upload_bytes=int(_env_str(env, "SLIDES_MAX_UPLOAD_BYTES", str(200 * 1024 * 1024))),  # 200MB
    )
    if config.convert_timeout_seconds <= 0:
        raise ValueError("SLIDES_CONVERT_TIMEOUT_SECONDS must be positive")
    if config.render_dpi <= 0:
        raise ValueError("SLIDES_RENDER_DPI must be positive")
    if config.max_upload_bytes <= 0:
        raise ValueError("SLIDES_MAX_UPLOAD_BYTES must be positive")
    return config
