"""
app/errors.py

Domain exceptions raised by services and translated to HTTP by routers.
"""

from __future__ import annotations


class OrgPulseError(Exception):
    """
    Base class for application errors.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(OrgPulseError):
    status_code = 404


class AccessDeniedError(OrgPulseError):
    status_code = 403


class BadRequestError(OrgPulseError):
    status_code = 400


class ConflictError(OrgPulseError):
    status_code = 409


class PipelineError(OrgPulseError):
    """
    Raised when a pipeline step (fetch, generate, execute, save) fails.
    """

    status_code = 500
