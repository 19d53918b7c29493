"""
Exceptions raised while sorting a study.

Every error carries the process exit code the command line uses when the
error ends a run, so each failure category is distinguishable by the
listener that invoked us.

| Exit code | Error                      |
| --------- | -------------------------- |
| 3         | ConfigurationError         |
| 4         | LockError                  |
| 5         | DumpToolNotFoundError      |
| 6         | MetadataExtractionError    |
| 7         | PlacementError             |
| 8         | DirectoryCreationError     |
| 9         | CollisionLimitError        |

Exit code 2 is left to click for usage errors.
"""

from __future__ import annotations

from pathlib import Path


class DicomSorterError(Exception):
    """Base exception for DICOM sorting errors."""

    exit_code: int = 1

    def __init__(
        self, message: str = "An error occurred during DICOM sorting"
    ) -> None:
        super().__init__(message)


class ConfigurationError(DicomSorterError):
    """Raised when settings or side-car files are missing or unusable."""

    exit_code = 3

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(message)


class PolicyTableError(ConfigurationError):
    """Raised when the permission mapping file cannot be read."""

    def __init__(self, path: Path, reason: str | None = None) -> None:
        self.path = path
        message = f"Cannot read permission mapping file: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DumpToolNotFoundError(ConfigurationError):
    """Raised when the dcmdump executable is missing or not executable."""

    exit_code = 5

    def __init__(self, executable: Path) -> None:
        self.executable = executable
        super().__init__(f"{executable} not executable")


class LockError(DicomSorterError):
    """Raised when the exclusive run lock cannot be obtained."""

    exit_code = 4

    def __init__(self, lock_path: Path, reason: str | None = None) -> None:
        self.lock_path = lock_path
        message = f"Can't open lock: {lock_path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MetadataExtractionError(DicomSorterError):
    """Raised when the dump tool fails on a file."""

    exit_code = 6

    def __init__(
        self,
        path: Path,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.path = path
        self.returncode = returncode
        self.stderr = stderr
        message = f"Failed to extract metadata from {path}"
        if returncode is not None:
            message = f"{message} (exit status {returncode})"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class PlacementError(DicomSorterError):
    """Raised when a file cannot be moved into place.

    A failed move points at a structural problem (cross-device destination,
    wrong permissions on the archive) so it ends the whole run.
    """

    exit_code = 7

    def __init__(self, source: Path, destination: Path) -> None:
        self.source = source
        self.destination = destination
        super().__init__(f"Error renaming: {source} to {destination}")


class DirectoryCreationError(DicomSorterError):
    """Raised when a destination directory cannot be created."""

    exit_code = 8

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(f"Could not create directory {directory}")


class CollisionLimitError(DicomSorterError):
    """Raised when no free NonDupe suffix is found below the configured cap."""

    exit_code = 9

    def __init__(self, candidate: Path, limit: int) -> None:
        self.candidate = candidate
        self.limit = limit
        super().__init__(
            f"Gave up disambiguating {candidate} after {limit} NonDupe suffixes"
        )
