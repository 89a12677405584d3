from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .config import SLIDE_PREFIX, STORED_BASENAME, ServerConfig
from .errors import ConversionError, ConversionStepError, InternalError, SlidesError
from .runner import ToolRunner, run_tool
from .workspace import SessionStore, is_slide_output, order_slide_files


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slide:
    slide_number: int
    filename: str
    url: str


@dataclass(frozen=True)
class ConversionResult:
    session_id: str
    original_filename: str
    total_slides: int
    slides: tuple[Slide, ...]


def slide_url(session_id: str, filename: str) -> str:
    return f"/api/slides/{session_id}/{filename}"


def stored_input_name(original_filename: str) -> str:
    """presentation + the original extension, lowercased. The user-supplied name is not used on disk."""
    return STORED_BASENAME + Path(original_filename or "").suffix.lower()


class ConversionPipeline:
    """Upload bytes -> PDF (soffice) -> PNG per page (pdftoppm), in one session directory."""

    def __init__(self, config: ServerConfig, store: SessionStore, run: ToolRunner = run_tool) -> None:
        self.config = config
        self.store = store
        self.run = run

    def convert(self, data: bytes, original_filename: str) -> ConversionResult:
        ws = self.store.create_session()
        try:
            filenames = self._convert_in(ws.root, data, stored_input_name(original_filename))
            if not filenames:
                raise ConversionError("Conversion produced no images. The file may be corrupt or empty.")
        except ConversionStepError:
            # Tool detail is logged by the runner.
            self.store.delete_now(ws.session_id)
            raise
        except SlidesError as e:
            logger.error("Conversion of %r failed in session %s: %s", original_filename, ws.session_id, e)
            self.store.delete_now(ws.session_id)
            raise
        except Exception as e:
            logger.exception("Unexpected error converting %r in session %s", original_filename, ws.session_id)
            self.store.delete_now(ws.session_id)
            raise InternalError("Conversion failed") from e

        slides = tuple(
            Slide(slide_number=index, filename=name, url=slide_url(ws.session_id, name))
            for index, name in enumerate(filenames, start=1)
        )
        self.store.schedule_delete(ws.session_id, self.config.retention_seconds)
        logger.info("Converted %r into %d slide(s), session %s", original_filename, len(slides), ws.session_id)
        return ConversionResult(
            session_id=ws.session_id,
            original_filename=original_filename,
            total_slides=len(slides),
            slides=slides,
        )

    def _convert_in(self, session_dir: Path, data: bytes, input_name: str) -> list[str]:
        input_path = session_dir / input_name
        input_path.write_bytes(data)

        pdf_path = self._to_pdf(session_dir, input_path)
        self._to_png(session_dir, pdf_path)

        # Keep only final images. The stored input may itself carry an image extension.
        input_path.unlink(missing_ok=True)
        pdf_path.unlink(missing_ok=True)

        names = [p.name for p in session_dir.iterdir() if is_slide_output(p.name) and p.is_file()]
        return order_slide_files(names)

    def _to_pdf(self, session_dir: Path, input_path: Path) -> Path:
        self.run(
            self.config.soffice_path,
            [
                "--headless",
                "--norestore",
                "--nologo",
                "--nofirststartwizard",
                "--convert-to",
                "pdf",
                "--outdir",
                str(session_dir),
                str(input_path),
            ],
            self.config.convert_timeout_seconds,
        )
        pdf_path = session_dir / f"{STORED_BASENAME}.pdf"
        if not pdf_path.exists():
            candidates = sorted(p for p in session_dir.iterdir() if p.suffix.lower() == ".pdf" and p.is_file())
            if not candidates:
                raise ConversionError("Conversion produced no PDF")
            candidates[0].rename(pdf_path)
        return pdf_path

    def _to_png(self, session_dir: Path, pdf_path: Path) -> None:
        self.run(
            self.config.pdftoppm_path,
            ["-png", "-r", str(self.config.render_dpi), str(pdf_path), str(session_dir / SLIDE_PREFIX)],
            self.config.convert_timeout_seconds,
        )
