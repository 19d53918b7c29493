"""
Permission mapping: which owner, group and archive root a region gets.

The mapping file has one whitespace separated record per line:

    # region   owner    group      base path
    ACHTMAN    achtman  achtlab    /data/achtman
    NEURO      neuro    neurolab   /data/neuro imaging

The base path is the remainder of the line, so it may contain spaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from dicomsorter.exceptions import PolicyTableError
from dicomsorter.loggers import logger

COMMENT_PREFIX = "#"
FIELDS_PER_RECORD = 4


@dataclass(frozen=True)
class PolicyEntry:
    category: str
    owner: str
    group: str
    base_path: Path


class PolicyTable(Mapping[str, PolicyEntry]):
    """Read-only category -> PolicyEntry mapping, loaded once per run."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[PolicyEntry] = ()) -> None:
        # later records for the same category replace earlier ones
        self._entries = MappingProxyType(
            {entry.category: entry for entry in entries}
        )

    def __getitem__(self, category: str) -> PolicyEntry:
        return self._entries[category]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str = "<lines>") -> PolicyTable:
        """Parse mapping records, skipping blank, comment and malformed lines."""
        entries = []
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith(COMMENT_PREFIX):
                continue
            fields = line.split(None, FIELDS_PER_RECORD - 1)
            if len(fields) < FIELDS_PER_RECORD:
                logger.warning(
                    "Skipping malformed permission mapping line",
                    source=source,
                    lineno=lineno,
                    line=line,
                )
                continue
            category, owner, group, base_path = fields
            entries.append(
                PolicyEntry(category, owner, group, Path(base_path.strip()))
            )
        return cls(entries)

    @classmethod
    def from_file(cls, path: Path) -> PolicyTable:
        """
        Load the permission mapping file.

        Raises
        ------
        PolicyTableError
            If the file is missing or unreadable.
        """
        try:
            text = path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise PolicyTableError(path, reason=str(e)) from e
        table = cls.from_lines(text.splitlines(), source=str(path))
        logger.debug("Loaded permission mapping", path=path, entries=len(table))
        return table
