from __future__ import annotations

from pathlib import Path
from typing import List, Type

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from dicomsorter.exceptions import ConfigurationError
from dicomsorter.sort.collision import DEFAULT_MAX_SUFFIX
from dicomsorter.sort.placement import DEFAULT_DIRECTORY_MODE, DEFAULT_FILE_MODE
from dicomsorter.sort.routing import DEFAULT_DEVICE_OVERRIDES, DeviceOverride

DEFAULT_CONFIG_FILENAME = "dicom-sorter.yaml"


class DicomSorterSettings(BaseSettings):
    """
    Central configuration for a sorting run.

    Values come from keyword arguments, then `DICOMSORTER_*` environment
    variables, then `dicom-sorter.yaml` in the working directory. The
    settings object is frozen: it is read, never written, during a run.
    """

    dcmdump: Path = Field(
        default=Path("/usr/local/bin/dcmdump"),
        description="DCMTK dcmdump executable used to read DICOM headers.",
    )
    policy_file: Path = Field(
        default=Path("/etc/dicom-sorter/permission-mapping.txt"),
        description="Permission mapping: `<region> <owner> <group> <base path>` per line.",
    )
    lock_file: Path = Field(
        default=Path("/tmp/dicomd.lock"),  # nosec B108 - shared by concurrent runs
        description="Lock file serializing concurrent runs.",
    )
    lock_retry_delay: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between attempts to take a held lock.",
    )
    extension: str = Field(
        default=".dcm",
        pattern=r"^\.[A-Za-z0-9]+$",
        description="Extension given to placed files.",
    )
    directory_mode: int = Field(default=DEFAULT_DIRECTORY_MODE, ge=0, le=0o7777)
    file_mode: int = Field(default=DEFAULT_FILE_MODE, ge=0, le=0o7777)
    fallback_owner: str = Field(
        default="admin",
        description="Owner used for unmapped regions and unresolvable names.",
    )
    fallback_group: str = Field(default="admin")
    fallback_root: Path = Field(
        default=Path("/"),
        description="Archive root for regions missing from the permission mapping.",
    )
    max_nondupe_suffix: int = Field(
        default=DEFAULT_MAX_SUFFIX,
        ge=1,
        description="Highest NonDupe<N> suffix tried before giving up on a file.",
    )
    abort_on_extraction_error: bool = Field(
        default=False,
        description="Abort the whole run when dcmdump fails on one file instead of skipping it.",
    )
    device_overrides: List[DeviceOverride] = Field(
        default_factory=lambda: list(DEFAULT_DEVICE_OVERRIDES),
        description="Device routing rules checked before the permission mapping, in order.",
    )

    model_config = SettingsConfigDict(
        env_prefix="DICOMSORTER_",
        yaml_file=(Path().cwd() / DEFAULT_CONFIG_FILENAME,),
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @classmethod
    def from_user_yaml(cls, path: Path, **overrides: object) -> DicomSorterSettings:
        """Load settings from a YAML file.

        Keyword overrides win over `DICOMSORTER_*` environment variables,
        which win over the file.
        """
        if not path.is_file():
            msg = f"Configuration file not found: {path}"
            raise ConfigurationError(msg)
        from_file = YamlConfigSettingsSource(cls, yaml_file=path)()
        from_env = EnvSettingsSource(cls)()
        return cls(**{**from_file, **from_env, **overrides})

    @classmethod
    def load(
        cls, config_file: Path | None = None, **overrides: object
    ) -> DicomSorterSettings:
        """
        Build settings for a run, from `config_file` when given.

        Raises
        ------
        ConfigurationError
            If the file is missing or any value fails validation.
        """
        try:
            if config_file is not None:
                return cls.from_user_yaml(config_file, **overrides)
            return cls(**overrides)  # type: ignore[arg-type]
        except (ValidationError, yaml.YAMLError) as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e
