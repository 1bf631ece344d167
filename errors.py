# errors.py — request-level and engine errors

from typing import Optional


class CutApiError(Exception):
    """Base error carrying the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CutApiError):
    status_code = 400


class UploadTooLarge(ValidationError):
    status_code = 413


class EngineError(CutApiError):
    """ffmpeg failed for one cut. Recorded per cut, never sent as a status."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode
