# medassist/errors.py
from __future__ import annotations

from typing import Dict, Optional


class MedAssistError(Exception):
    """
    Base class for errors that map onto an HTTP status.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(MedAssistError):
    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class UnauthorizedError(MedAssistError):
    status_code = 401


class NotFoundError(MedAssistError):
    status_code = 404


class StorageUnavailableError(MedAssistError):
    """
    Raised once transient database failures have exhausted their retries.
    """

    status_code = 503
