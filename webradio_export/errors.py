"""Exception hierarchy for the export pipeline."""

from __future__ import annotations


class ExportError(Exception):
    """Base class for every error raised by the export engine."""


class ExportValidationError(ExportError):
    """Input rejected before anything was written."""


class NoActiveStations(ExportValidationError):
    """A profile resolved to an empty station set.

    Publishing an empty feed would blank out a live player app, so callers
    must treat this as a rejection rather than a zero-result success.
    """

    def __init__(self, profile_id: str, profile_name: str = "") -> None:
        self.profile_id = profile_id
        self.profile_name = profile_name
        label = profile_name or profile_id
        super().__init__(f"Export profile '{label}' does not include any active stations to export.")


class CredentialError(ExportError):
    """Stored FTP credentials are incomplete or cannot be decrypted."""


class NetworkError(ExportError):
    """Remote delivery failed (timeout, refused connection, rejected login)."""

    def __init__(self, host: str, cause: BaseException) -> None:
        self.host = host
        self.cause = cause
        self.error_class = type(cause).__name__
        super().__init__(f"{self.error_class} while talking to {host}: {cause}")


class FatalIOError(ExportError):
    """The local output directory cannot be written."""


class ExportInProgress(ExportError):
    """A delivery for the same profile is already running."""

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"An export for profile '{profile_id}' is already running.")


class ProfileNotFound(ExportError, KeyError):
    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"Export profile not found: {profile_id}")

    def __str__(self) -> str:
        return self.args[0]


class PlayerNotFound(ExportError, KeyError):
    def __init__(self, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"Player app not found: {player_id}")

    def __str__(self) -> str:
        return self.args[0]


__all__ = [
    "CredentialError",
    "ExportError",
    "ExportInProgress",
    "ExportValidationError",
    "FatalIOError",
    "NetworkError",
    "NoActiveStations",
    "PlayerNotFound",
    "ProfileNotFound",
]
