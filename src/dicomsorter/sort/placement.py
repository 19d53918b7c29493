"""
Placing files into the archive.

Directories are created one segment at a time so every new segment gets the
archive mode (0o770) and the owner/group of the rule that routed the file.
Files are moved in, set to 0o660 and handed to the same owner/group.

Ownership lookups go through injectable `pwd`/`grp` style functions and the
actual `chown` call is injectable too, so none of this needs root in tests.
"""

from __future__ import annotations

import grp
import os
import pwd
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from dicomsorter.exceptions import DirectoryCreationError, PlacementError
from dicomsorter.loggers import logger

DEFAULT_DIRECTORY_MODE = 0o770
DEFAULT_FILE_MODE = 0o660


class FileAction(Enum):
    MOVE = "move"
    COPY = "copy"

    def handle(self, source_path: Path, resolved_path: Path) -> None:
        match self:
            case FileAction.MOVE:
                # replace() overwrites an identical duplicate and refuses
                # to cross filesystems
                source_path.replace(resolved_path)
            case FileAction.COPY:
                shutil.copy2(source_path, resolved_path)

    @classmethod
    def validate(cls: Type["FileAction"], action: str) -> "FileAction":
        if not isinstance(action, cls):
            try:
                return cls(action)
            except ValueError as e:
                valid_actions = ", ".join([f"`{a.value}`" for a in cls])
                msg = f"Invalid action: {action}. Must be one of: {valid_actions}"
                raise ValueError(msg) from e
        return action

    @staticmethod
    def choices() -> List[str]:
        """Return a list of valid file actions."""
        return [action.value for action in FileAction]


@dataclass(frozen=True)
class PlacementDecision:
    """Final destination of one file. Nothing touches the disk before this exists."""

    destination: Path
    owner: str
    group: str
    duplicate: bool = False
    rule: str = ""

    @property
    def directory(self) -> Path:
        return self.destination.parent


@dataclass(frozen=True)
class Ownership:
    owner: str
    group: str
    uid: Optional[int]
    gid: Optional[int]

    @property
    def applicable(self) -> bool:
        return self.uid is not None and self.gid is not None


class OwnershipResolver:
    """
    Resolve owner/group names to ids, never handing out root.

    An unknown name or a zero id falls back to the fallback account. If the
    fallback is not usable either, the returned Ownership carries no ids and
    ownership is left alone.

    Parameters
    ----------
    fallback_owner, fallback_group : str
        Account substituted for names that do not resolve safely.
    user_lookup, group_lookup : Callable
        `pwd.getpwnam` / `grp.getgrnam` compatible lookups.
    """

    def __init__(
        self,
        fallback_owner: str = "admin",
        fallback_group: str = "admin",
        user_lookup: Callable[[str], Any] = pwd.getpwnam,
        group_lookup: Callable[[str], Any] = grp.getgrnam,
    ) -> None:
        self.fallback_owner = fallback_owner
        self.fallback_group = fallback_group
        self._user_lookup = user_lookup
        self._group_lookup = group_lookup
        self._cache: Dict[Tuple[str, str], Ownership] = {}

    def _uid(self, name: str) -> Optional[int]:
        try:
            return self._user_lookup(name).pw_uid
        except KeyError:
            return None

    def _gid(self, name: str) -> Optional[int]:
        try:
            return self._group_lookup(name).gr_gid
        except KeyError:
            return None

    def _lookup(self, owner: str, group: str) -> Optional[Ownership]:
        uid, gid = self._uid(owner), self._gid(group)
        if not uid or not gid:
            return None
        return Ownership(owner, group, uid, gid)

    def resolve(self, owner: str, group: str) -> Ownership:
        key = (owner, group)
        if key in self._cache:
            return self._cache[key]

        ownership = self._lookup(owner, group)
        if ownership is None:
            logger.warning(
                "Error resolving username, using fallback account",
                owner=owner,
                group=group,
                fallback_owner=self.fallback_owner,
                fallback_group=self.fallback_group,
            )
            ownership = self._lookup(self.fallback_owner, self.fallback_group)
        if ownership is None:
            logger.warning(
                "Fallback account does not resolve, ownership left unchanged",
                fallback_owner=self.fallback_owner,
                fallback_group=self.fallback_group,
            )
            ownership = Ownership(
                self.fallback_owner, self.fallback_group, None, None
            )

        self._cache[key] = ownership
        return ownership


class PlacementExecutor:
    """
    Apply a :class:`PlacementDecision` to the filesystem.

    Parameters
    ----------
    ownership_resolver : OwnershipResolver
        Turns decision owner/group names into ids.
    directory_mode : int
        Mode of every directory segment created.
    file_mode : int
        Mode of the placed file.
    action : FileAction
        Move (default) or copy the source file.
    chown : Callable
        `os.chown` compatible function.
    """

    def __init__(
        self,
        ownership_resolver: OwnershipResolver,
        directory_mode: int = DEFAULT_DIRECTORY_MODE,
        file_mode: int = DEFAULT_FILE_MODE,
        action: FileAction | str = FileAction.MOVE,
        chown: Callable[[Path, int, int], None] = os.chown,
    ) -> None:
        self.ownership_resolver = ownership_resolver
        self.directory_mode = directory_mode
        self.file_mode = file_mode
        self.action = FileAction.validate(action)
        self._chown = chown

    def apply_ownership(self, path: Path, ownership: Ownership) -> None:
        if not ownership.applicable:
            return
        try:
            self._chown(path, ownership.uid, ownership.gid)  # type: ignore[arg-type]
        except OSError as e:
            logger.warning(
                "Could not change ownership",
                path=path,
                owner=ownership.owner,
                group=ownership.group,
                error=str(e),
            )

    def ensure_directory(self, directory: Path, ownership: Ownership) -> List[Path]:
        """
        Create `directory` and any missing parents.

        Returns
        -------
        List[Path]
            The segments that were created, outermost first.

        Raises
        ------
        DirectoryCreationError
            If a segment cannot be created or a non-directory is in the way.
        """
        missing: List[Path] = []
        current = directory
        while not current.exists() and current != current.parent:
            missing.append(current)
            current = current.parent

        created: List[Path] = []
        for segment in reversed(missing):
            try:
                segment.mkdir(mode=self.directory_mode)
            except FileExistsError:
                continue
            except (OSError, ValueError) as e:
                raise DirectoryCreationError(segment) from e
            try:
                # mkdir's mode is filtered through the umask
                segment.chmod(self.directory_mode)
            except OSError as e:
                raise DirectoryCreationError(segment) from e
            self.apply_ownership(segment, ownership)
            created.append(segment)

        if not directory.is_dir():
            raise DirectoryCreationError(directory)
        if created:
            logger.debug("Created directories", directories=created)
        return created

    def place(self, source: Path, decision: PlacementDecision) -> Path:
        """
        Create the destination directory and move `source` into place.

        Raises
        ------
        DirectoryCreationError
            If the destination directory cannot be created.
        PlacementError
            If the file cannot be moved.
        """
        ownership = self.ownership_resolver.resolve(decision.owner, decision.group)
        self.ensure_directory(decision.directory, ownership)

        destination = decision.destination
        try:
            self.action.handle(source, destination)
        except (OSError, ValueError) as e:
            raise PlacementError(source, destination) from e

        try:
            destination.chmod(self.file_mode)
        except OSError as e:
            logger.warning(
                "Could not change file mode", path=destination, error=str(e)
            )
        self.apply_ownership(destination, ownership)
        return destination
