"""
Collision handling for synthesized file names.

Two files from the same series can produce the same stem (a resend of the
same instance, or a scanner that reuses instance numbers). Content decides
which case it is:

- same MD5 as the file already there: it is the same file, keep the name
  and let the move overwrite it,
- different MD5: append `NonDupe1`, `NonDupe2`, ... to the stem until a free
  name or an identical file turns up.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dicomsorter.exceptions import CollisionLimitError
from dicomsorter.loggers import logger

NONDUPE_SUFFIX = "NonDupe"
DEFAULT_MAX_SUFFIX = 1000
CHUNK_SIZE = 1 << 20


def file_digest(path: Path, chunk_size: int = CHUNK_SIZE) -> Optional[str]:
    """MD5 hex digest of `path`, or None when it cannot be read."""
    md5 = hashlib.md5()  # nosec B324 - content comparison, not security
    try:
        with path.open("rb") as f:
            while chunk := f.read(chunk_size):
                md5.update(chunk)
    except OSError as e:
        logger.warning("Could not compute digest", file=path, error=str(e))
        return None
    return md5.hexdigest()


@dataclass(frozen=True)
class CollisionResult:
    """Final destination file and whether an identical copy already sits there."""

    path: Path
    duplicate: bool = False
    suffix: int = 0


def nondupe_path(directory: Path, stem: str, extension: str, index: int) -> Path:
    if index == 0:
        return directory / f"{stem}{extension}"
    return directory / f"{stem}{NONDUPE_SUFFIX}{index}{extension}"


def resolve_collision(
    directory: Path,
    stem: str,
    extension: str,
    source: Path,
    max_suffix: int = DEFAULT_MAX_SUFFIX,
) -> CollisionResult:
    """
    Pick the file name `source` is placed under inside `directory`.

    Parameters
    ----------
    directory : Path
        Destination directory.
    stem : str
        Synthesized file name stem.
    extension : str
        Extension including the dot, e.g. `.dcm`.
    source : Path
        File being placed.
    max_suffix : int
        Highest NonDupe index tried.

    Returns
    -------
    CollisionResult
        The chosen path; `duplicate` is True when an identical file already
        exists there.

    Raises
    ------
    CollisionLimitError
        If every candidate up to `NonDupe<max_suffix>` is taken by a
        different file.
    """
    candidate = nondupe_path(directory, stem, extension, 0)
    if not candidate.exists():
        return CollisionResult(candidate)

    # unreadable files hash to None and never count as duplicates
    source_digest = file_digest(source)
    index = 0
    while candidate.exists():
        if source_digest is not None and source_digest == file_digest(candidate):
            logger.info("Identical file already in place", destination=candidate)
            return CollisionResult(candidate, duplicate=True, suffix=index)
        index += 1
        if index > max_suffix:
            raise CollisionLimitError(candidate, max_suffix)
        candidate = nondupe_path(directory, stem, extension, index)

    logger.info(
        "Name taken by a different file, using suffix",
        destination=candidate,
        suffix=index,
    )
    return CollisionResult(candidate, suffix=index)
