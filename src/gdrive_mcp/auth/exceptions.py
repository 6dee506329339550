"""Exceptions raised by the credential lifecycle."""

from pathlib import Path


class AuthError(Exception):
    """Base class for authentication errors."""


class CredentialFileNotFoundError(AuthError, FileNotFoundError):
    """A credential or key file is absent."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Credential file not found: {path}")


class MalformedCredentialsError(AuthError, ValueError):
    """A persisted credential file could not be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed credential file {path}: {reason}")


class AuthenticationError(AuthError, RuntimeError):
    """No usable credential could be obtained by any strategy."""
