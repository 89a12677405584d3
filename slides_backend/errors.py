from __future__ import annotations


class SlidesError(Exception):
    """Base error; `message` is safe to show to the client."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadInputError(SlidesError):
    status_code = 400


class NotFoundError(SlidesError):
    status_code = 404


class ConversionError(SlidesError):
    status_code = 500


class ConversionStepError(ConversionError):
    """An external tool exited non-zero, timed out or could not be started."""

    def __init__(self, tool: str, reason: str, stderr: str = "") -> None:
        super().__init__(f"Conversion step failed: {tool}")
        self.tool = tool
        self.reason = reason
        self.stderr = stderr


class InternalError(SlidesError):
    status_code = 500
