"""ASGI entrypoint for hosted deployments: `uvicorn main:app`."""

from server import app

__all__ = ["app"]
