import errno
import stat
from pathlib import Path

import pytest
from click.testing import CliRunner

from dicomsorter import __version__
from dicomsorter.cli.dicomsort import dicomsort

SERIES = Path("ACHTMAN/FMRI/Doe_John/20040730/3.t1_se_tra")
STEM = "Doe_John.20040730.105719.3.t1_se_tra.Echo_1"

# prints the file, which the tests fill with dcmdump output
FAKE_DCMDUMP = """#!/bin/sh
if grep -q CORRUPT "$1"; then
    echo "E: no valid DICOM file: $1" >&2
    exit 1
fi
cat "$1"
"""


class TestDicomSorterCLI:
    """End-to-end runs of the `dicom-sorter` command against a stand-in dcmdump."""

    @pytest.fixture
    def runner(self) -> CliRunner:
        return CliRunner()

    @pytest.fixture
    def dcmdump(self, tmp_path) -> Path:
        path = tmp_path / "bin" / "dcmdump"
        path.parent.mkdir()
        path.write_text(FAKE_DCMDUMP)
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return path

    @pytest.fixture
    def archive(self, tmp_path) -> Path:
        return tmp_path / "archive"

    @pytest.fixture
    def policy_file(self, tmp_path, archive) -> Path:
        path = tmp_path / "permission-mapping.txt"
        path.write_text(
            "# region owner group base path\n"
            f"ACHTMAN nosuch-owner nosuch-group {archive}\n"
        )
        return path

    @pytest.fixture
    def study(self, tmp_path, write_dump) -> Path:
        directory = tmp_path / "study"
        write_dump(directory / "MR.1", InstanceNumber="1")
        write_dump(directory / "MR.2", InstanceNumber="2")
        return directory

    @pytest.fixture
    def invoke(self, runner, tmp_path, dcmdump, policy_file):
        env = {
            # ownership names never resolve, so no chown is attempted
            "DICOMSORTER_FALLBACK_OWNER": "nosuch-owner",
            "DICOMSORTER_FALLBACK_GROUP": "nosuch-group",
            "DICOMSORTER_FALLBACK_ROOT": str(tmp_path / "fallback"),
        }

        def _invoke(*args: str, dcmdump_path: Path = dcmdump):
            return runner.invoke(
                dicomsort,
                [
                    *args,
                    "--dcmdump",
                    str(dcmdump_path),
                    "--policy-file",
                    str(policy_file),
                    "--lock-file",
                    str(tmp_path / "dicomd.lock"),
                ],
                env=env,
            )

        return _invoke

    def test_help(self, runner):
        result = runner.invoke(dicomsort, ["--help"])
        assert result.exit_code == 0
        assert "STUDY_DIRECTORY" in result.output
        assert "--dry-run" in result.output
        assert "--policy-file" in result.output

    def test_version(self, runner):
        result = runner.invoke(dicomsort, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_sorts_study(self, invoke, study, archive):
        result = invoke(str(study))

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in (archive / SERIES).iterdir()) == [
            f"{STEM}.0001.dcm",
            f"{STEM}.0002.dcm",
        ]
        assert not study.exists()

    def test_copy_keeps_study(self, invoke, study, archive):
        result = invoke(str(study), "--action", "copy")

        assert result.exit_code == 0, result.output
        assert len(list((archive / SERIES).iterdir())) == 2
        assert sorted(p.name for p in study.iterdir()) == ["MR.1", "MR.2"]

    def test_dry_run(self, invoke, study, archive):
        result = invoke(str(study), "-n")

        assert result.exit_code == 0, result.output
        assert "Dry run mode enabled" in result.output
        assert f"{STEM}.0001.dcm" in result.output
        assert not archive.exists()
        assert len(list(study.iterdir())) == 2

    def test_unreadable_file_is_left_behind(self, invoke, study, archive):
        (study / "MR.3").write_text("CORRUPT\n")

        result = invoke(str(study))

        assert result.exit_code == 6
        assert "Not sorted" in result.output
        assert [p.name for p in study.iterdir()] == ["MR.3"]
        assert len(list((archive / SERIES).iterdir())) == 2

    def test_failed_move_aborts(self, invoke, study, archive, monkeypatch):
        def cross_device(path, target):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr(Path, "replace", cross_device)

        result = invoke(str(study))

        assert result.exit_code == 7
        assert "Error renaming" in result.output
        assert sorted(p.name for p in study.iterdir()) == ["MR.1", "MR.2"]
        assert list((archive / SERIES).iterdir()) == []

    def test_missing_dcmdump(self, invoke, study, tmp_path):
        result = invoke(str(study), dcmdump_path=tmp_path / "nowhere" / "dcmdump")

        assert result.exit_code == 5
        assert "not executable" in result.output
        assert len(list(study.iterdir())) == 2

    def test_missing_policy_file(self, invoke, study, policy_file):
        policy_file.unlink()

        result = invoke(str(study))

        assert result.exit_code == 3
        assert "permission mapping" in result.output

    def test_missing_config_file(self, invoke, study, tmp_path):
        result = invoke(str(study), "--config", str(tmp_path / "missing.yaml"))

        assert result.exit_code == 3
        assert "Configuration file not found" in result.output

    def test_missing_study_directory(self, invoke, tmp_path):
        result = invoke(str(tmp_path / "no-such-study"))
        assert result.exit_code == 2

    def test_invalid_action(self, invoke, study):
        result = invoke(str(study), "--action", "symlink")
        assert result.exit_code == 2
