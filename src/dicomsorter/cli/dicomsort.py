import pathlib

import click

from dicomsorter import __version__
from dicomsorter.cli import set_log_verbosity
from dicomsorter.loggers import logger
from dicomsorter.sort.placement import FileAction


@click.command(name="dicom-sorter")
@click.argument(
    "study_directory",
    type=click.Path(
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
        path_type=pathlib.Path,
        resolve_path=True,
    ),
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=None,
    help="YAML settings file. Defaults to dicom-sorter.yaml in the working directory when present.",
)
@click.option(
    "--policy-file",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=None,
    help="Permission mapping: `<region> <owner> <group> <base path>` per line.",
)
@click.option(
    "--dcmdump",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=None,
    help="Path to the DCMTK dcmdump executable.",
)
@click.option(
    "--lock-file",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=None,
    help="Lock file shared by concurrent runs.",
)
@click.option(
    "--action",
    "-a",
    type=click.Choice(FileAction.choices(), case_sensitive=False),
    default=FileAction.MOVE.value,
    show_default=True,
    help="Move files into the archive, or copy them and leave the study in place.",
)
@click.option(
    "-n",
    "--dry-run",
    is_flag=True,
    help="Do not move or copy files, just print where they would go.",
)
@set_log_verbosity()
@click.version_option(
    version=__version__,
    package_name="dicom-sorter",
    prog_name="dicom-sorter",
    message="%(package)s:%(prog)s:%(version)s",
)
@click.help_option("-h", "--help")
@click.pass_context
def dicomsort(
    ctx: click.Context,
    study_directory: pathlib.Path,
    config_file: pathlib.Path | None,
    policy_file: pathlib.Path | None,
    dcmdump: pathlib.Path | None,
    lock_file: pathlib.Path | None,
    action: str,
    dry_run: bool,
    verbose: int,
    quiet: bool,
) -> None:
    """Rename and file a received DICOM study into the archive.

    Every file in STUDY_DIRECTORY is named and placed from its own header
    fields, then the emptied directory is removed.
    """
    logger.debug("Debug Args", args=locals())
    from dicomsorter.config import DicomSorterSettings
    from dicomsorter.dicom import DcmdumpSource
    from dicomsorter.exceptions import DicomSorterError
    from dicomsorter.lock import ExclusiveRunLock
    from dicomsorter.sort.policy import PolicyTable
    from dicomsorter.sort.study_sorter import StudySorter

    overrides = {
        key: value
        for key, value in (
            ("policy_file", policy_file),
            ("dcmdump", dcmdump),
            ("lock_file", lock_file),
        )
        if value is not None
    }

    try:
        settings = DicomSorterSettings.load(config_file, **overrides)
        with ExclusiveRunLock(settings.lock_file, settings.lock_retry_delay):
            source = DcmdumpSource(settings.dcmdump)
            table = PolicyTable.from_file(settings.policy_file)
            sorter = StudySorter(
                settings,
                source,
                policy_table=table,
                action=FileAction.validate(action.lower()),
            )
            report = sorter.execute(study_directory, dry_run=dry_run)
    except DicomSorterError as e:
        logger.debug("Run aborted", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        ctx.exit(e.exit_code)

    for outcome in report.failures:
        click.echo(f"Not sorted: {outcome.source} ({outcome.error})", err=True)
    ctx.exit(report.exit_code)


if __name__ == "__main__":
    dicomsort()
