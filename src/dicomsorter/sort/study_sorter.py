"""
Sorting one study directory.

For every file in the directory, one at a time:

    dcmdump -> FieldMap -> stem + route -> collision check -> placement

Each file ends in a :class:`FileOutcome`. A file whose metadata cannot be
read, whose directory cannot be created, or that runs out of NonDupe
suffixes is left where it is and reported; the rest of the study is still
sorted. A failed move aborts the run. The study directory is removed once
it is empty.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from dicomsorter.config import DicomSorterSettings
from dicomsorter.dicom.dcmdump import MetadataSource
from dicomsorter.exceptions import (
    CollisionLimitError,
    ConfigurationError,
    DicomSorterError,
    DirectoryCreationError,
    MetadataExtractionError,
)
from dicomsorter.loggers import logger
from dicomsorter.sort.collision import resolve_collision
from dicomsorter.sort.filename import synthesize_stem
from dicomsorter.sort.placement import (
    FileAction,
    OwnershipResolver,
    PlacementDecision,
    PlacementExecutor,
)
from dicomsorter.sort.policy import PolicyTable
from dicomsorter.sort.routing import PathResolver


class OutcomeStatus(str, Enum):
    PLACED = "placed"
    DUPLICATE = "duplicate"
    PLANNED = "planned"
    FAILED = "failed"


@dataclass(frozen=True)
class FileOutcome:
    source: Path
    status: OutcomeStatus
    decision: Optional[PlacementDecision] = None
    error: Optional[DicomSorterError] = None


@dataclass
class StudyReport:
    """Outcomes of one run over a study directory."""

    study_directory: Path
    outcomes: List[FileOutcome] = field(default_factory=list)
    removed_directory: bool = False

    @property
    def failures(self) -> List[FileOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def exit_code(self) -> int:
        """0 when every file was handled, else the code of the first failure."""
        for outcome in self.failures:
            if outcome.error is not None:
                return outcome.error.exit_code
        return 0


class StudySorter:
    """
    Rename and relocate the files of a study into the archive.

    Parameters
    ----------
    settings : DicomSorterSettings
        Run configuration.
    metadata_source : MetadataSource
        Reads a FieldMap from a file, normally a `DcmdumpSource`.
    policy_table : PolicyTable, optional
        Permission mapping; loaded from `settings.policy_file` when omitted.
    ownership_resolver : OwnershipResolver, optional
        Defaults to a resolver using the settings' fallback account.
    action : FileAction | str
        Move (default) or copy files into the archive.
    chown : Callable
        `os.chown` compatible function.
    console : Console, optional
        Where the dry-run preview is printed.
    """

    def __init__(
        self,
        settings: DicomSorterSettings,
        metadata_source: MetadataSource,
        policy_table: Optional[PolicyTable] = None,
        ownership_resolver: Optional[OwnershipResolver] = None,
        action: FileAction | str = FileAction.MOVE,
        chown: Callable[[Path, int, int], None] = os.chown,
        console: Optional[Console] = None,
    ) -> None:
        self.settings = settings
        self.metadata_source = metadata_source
        if policy_table is None:
            policy_table = PolicyTable.from_file(settings.policy_file)
        self.resolver = PathResolver.from_settings(settings, policy_table)
        self.executor = PlacementExecutor(
            ownership_resolver
            or OwnershipResolver(settings.fallback_owner, settings.fallback_group),
            directory_mode=settings.directory_mode,
            file_mode=settings.file_mode,
            action=action,
            chown=chown,
        )
        self._console = console or Console()

    def plan(self, source: Path) -> PlacementDecision:
        """Decide where `source` goes without touching the filesystem."""
        fields = self.metadata_source.extract(source)
        stem = synthesize_stem(fields)
        route = self.resolver.resolve(fields)
        collision = resolve_collision(
            route.directory.absolute(),
            stem,
            self.settings.extension,
            source,
            max_suffix=self.settings.max_nondupe_suffix,
        )
        return PlacementDecision(
            destination=collision.path,
            owner=route.owner,
            group=route.group,
            duplicate=collision.duplicate,
            rule=route.rule,
        )

    def sort_file(self, source: Path, dry_run: bool = False) -> FileOutcome:
        """
        Plan and, unless `dry_run`, place a single file.

        Raises
        ------
        PlacementError
            If the file cannot be moved.
        MetadataExtractionError
            Only when `abort_on_extraction_error` is set.
        """
        log = logger.bind(source=source)
        try:
            decision = self.plan(source)
        except MetadataExtractionError as e:
            if self.settings.abort_on_extraction_error:
                raise
            log.error("Skipping file, metadata extraction failed", error=str(e))
            return FileOutcome(source, OutcomeStatus.FAILED, error=e)
        except CollisionLimitError as e:
            log.error("Skipping file, no free name", error=str(e))
            return FileOutcome(source, OutcomeStatus.FAILED, error=e)

        if dry_run:
            return FileOutcome(source, OutcomeStatus.PLANNED, decision)

        try:
            self.executor.place(source, decision)
        except DirectoryCreationError as e:
            log.error("Skipping file, destination unavailable", error=str(e))
            return FileOutcome(source, OutcomeStatus.FAILED, decision, e)

        log.info(
            "Placed file",
            destination=decision.destination,
            rule=decision.rule,
            duplicate=decision.duplicate,
        )
        status = (
            OutcomeStatus.DUPLICATE if decision.duplicate else OutcomeStatus.PLACED
        )
        return FileOutcome(source, status, decision)

    @staticmethod
    def study_files(study_directory: Path) -> List[Path]:
        return sorted(p for p in study_directory.iterdir() if p.is_file())

    def execute(self, study_directory: Path, dry_run: bool = False) -> StudyReport:
        """
        Sort every file in `study_directory`, then remove it if empty.

        Raises
        ------
        ConfigurationError
            If `study_directory` is not a readable directory.
        """
        try:
            files = self.study_files(study_directory)
        except OSError as e:
            msg = f"Could not open {study_directory}"
            raise ConfigurationError(msg) from e

        report = StudyReport(study_directory)
        started = time.perf_counter()
        logger.info(f"Found {len(files)} files", study=study_directory)
        for source in files:
            report.outcomes.append(self.sort_file(source, dry_run=dry_run))
        logger.info(
            "Sorted study",
            study=study_directory,
            files=len(files),
            failed=len(report.failures),
            seconds=round(time.perf_counter() - started, 4),
        )

        if dry_run:
            self.preview(report)
        else:
            report.removed_directory = self._remove_if_empty(study_directory)
        return report

    @staticmethod
    def _remove_if_empty(study_directory: Path) -> bool:
        try:
            study_directory.rmdir()
        except OSError as e:
            logger.warning(
                "Study directory not removed",
                study=study_directory,
                error=str(e),
            )
            return False
        return True

    def preview(self, report: StudyReport) -> None:
        """Print the planned destinations of a dry run as a tree."""
        self._console.print(
            "[bold green]:double_exclamation_mark: Dry run mode enabled. No files will be moved or copied. :double_exclamation_mark:[/bold green]"
        )
        tree = Tree(
            f":file_folder: {report.study_directory}/",
            guide_style="bold bright_blue",
        )
        by_directory: Dict[Path, List[FileOutcome]] = {}
        for outcome in report.outcomes:
            if outcome.decision is not None:
                by_directory.setdefault(outcome.decision.directory, []).append(
                    outcome
                )

        for directory in sorted(by_directory):
            first = by_directory[directory][0].decision
            branch = tree.add(
                Text.assemble(
                    Text(str(directory), style="bold yellow"),
                    Text(f"  [{first.owner}:{first.group} via {first.rule}]", style="dim"),  # type: ignore[union-attr]
                )
            )
            for outcome in by_directory[directory]:
                label = Text.assemble(
                    outcome.source.name,
                    " -> ",
                    Text(outcome.decision.destination.name, style="bold magenta"),  # type: ignore[union-attr]
                )
                if outcome.decision.duplicate:  # type: ignore[union-attr]
                    label.append(" (identical file exists)", style="dim")
                branch.add(label)

        if report.failures:
            failed = tree.add(Text("failed", style="bold red"))
            for outcome in report.failures:
                failed.add(Text(f"{outcome.source.name}: {outcome.error}"))

        self._console.print(tree)
