from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from slides_backend.config import (
    ALLOWED_UPLOAD_EXTS,
    ALLOWED_UPLOAD_MIME_TYPES,
    ServerConfig,
    load_config,
)
from slides_backend.errors import BadInputError, NotFoundError, SlidesError
from slides_backend.logging_setup import setup_logging
from slides_backend.pipeline import ConversionPipeline, ConversionResult
from slides_backend.runner import ToolRunner, run_tool
from slides_backend.workspace import DeletionScheduler, SessionStore
from slides_backend.zip_utils import build_archive


logger = logging.getLogger("slides_backend.server")


class SlideOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slide_number: int = Field(alias="slideNumber")
    filename: str
    url: str


class ConversionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    total_slides: int = Field(alias="totalSlides")
    original_filename: str = Field(alias="originalFilename")
    slides: List[SlideOut]

    @classmethod
    def from_result(cls, result: ConversionResult) -> "ConversionOut":
        return cls(
            session_id=result.session_id,
            total_slides=result.total_slides,
            original_filename=result.original_filename,
            slides=[
                SlideOut(slide_number=s.slide_number, filename=s.filename, url=s.url)
                for s in result.slides
            ],
        )


def is_presentation_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    ext = Path(filename or "").suffix.lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    return ext in ALLOWED_UPLOAD_EXTS or mime in ALLOWED_UPLOAD_MIME_TYPES


def create_app(config: Optional[ServerConfig] = None, run: ToolRunner = run_tool) -> FastAPI:
    config = config or load_config()
    scheduler = DeletionScheduler()
    store = SessionStore(config, scheduler)
    pipeline = ConversionPipeline(config, store, run=run)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        # Sessions do not survive a restart: stale directories are purged at startup.
        store.initialize()
        logger.info("Sessions root: %s", config.sessions_root)
        try:
            yield
        finally:
            cancelled = scheduler.cancel_all()
            if cancelled:
                logger.info("Dropped %d pending session deletion(s) on shutdown", cancelled)

    app = FastAPI(lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SlidesError)
    async def _slides_error_handler(request: Request, exc: SlidesError) -> JSONResponse:
        # Detail for 500-class errors is logged where they are raised.
        logger.debug("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse({"message": exc.message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"message": "Internal server error"}, status_code=500)

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return JSONResponse({"ok": True})

    @app.post("/api/convert")
    async def convert(file: Optional[UploadFile] = File(None)) -> JSONResponse:
        """Convert an uploaded .pptx/.ppt into one PNG per slide."""
        if file is None or not file.filename:
            raise BadInputError("No file uploaded")
        if not is_presentation_upload(file.filename, file.content_type):
            raise BadInputError("Only .pptx and .ppt files are allowed")

        # Limit read to enforce the upload ceiling.
        data = await file.read(config.max_upload_bytes + 1)
        if len(data) > config.max_upload_bytes:
            raise BadInputError("File too large")

        # soffice/pdftoppm block; keep them off the event loop.
        result = await run_in_threadpool(pipeline.convert, data, file.filename)
        return JSONResponse(ConversionOut.from_result(result).model_dump(by_alias=True))

    @app.get("/api/slides/{session_id}/{filename}")
    async def get_slide(session_id: str, filename: str) -> Response:
        """Serve one slide image.

        Security:
        - session_id must be a strict UUID (hex/hyphen)
        - filename must match the slide allow-list (no directories)
        - both are validated before the filesystem is touched
        """
        path = store.image_path(session_id, filename)
        try:
            data = await run_in_threadpool(path.read_bytes)
        except FileNotFoundError:
            # Deleted between lookup and read.
            raise NotFoundError("Image not found")
        return Response(
            content=data,
            media_type="image/png",
            headers={"Cache-Control": "public, max-age=3600", "X-Content-Type-Options": "nosniff"},
        )

    @app.get("/api/download-all/{session_id}")
    async def download_all(session_id: str) -> StreamingResponse:
        # Reads the first entry; keep file I/O off the event loop.
        stream = await run_in_threadpool(build_archive, store, session_id)
        headers = {
            "Content-Disposition": 'attachment; filename="slides.zip"',
            "Cache-Control": "no-store",
            "X-Content-Type-Options": "nosniff",
        }
        return StreamingResponse(stream, media_type="application/zip", headers=headers)

    return app


app = create_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    port = int(os.environ.get("PORT", "8010"))
    uvicorn.run("server:app", host="127.0.0.1", port=port, reload=False)
