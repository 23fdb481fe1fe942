from __future__ import annotations


class PawfectMatchError(Exception):
    """Base class for pipeline failures."""


class AuthError(PawfectMatchError):
    """The Petfinder credential exchange did not succeed."""


class UpstreamError(PawfectMatchError):
    """The Petfinder API answered with a failure or could not be reached."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class ValidationError(PawfectMatchError, ValueError):
    """Caller input that must not reach the upstream API."""
