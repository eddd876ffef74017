# src/scala_suffix/config.py
"""
scala-suffix configuration.

Settings are loaded once at startup and passed explicitly to the code that
needs them. Sources, highest priority first:
- keyword arguments (the CLI uses these for overrides)
- TOML file (scala_suffix.toml, or $SCALA_SUFFIX_CONFIG)
- environment variables (SCALA_SUFFIX_ prefix, "__" for nested keys)
"""
import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    InitSettingsSource,
    SecretsSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

MANIFEST_MF = "META-INF/MANIFEST.MF"
DEFAULT_TOML_NAME = "scala_suffix.toml"
CONFIG_ENV_VAR = "SCALA_SUFFIX_CONFIG"


def default_toml_path() -> Path:
    """Config file location: $SCALA_SUFFIX_CONFIG, else ./scala_suffix.toml."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return Path.cwd() / DEFAULT_TOML_NAME


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "scala_suffix.log"
    rotation_size_mb: int = 10
    rotation_backup_count: int = 5
    format: str = "%(asctime)s [SUFFIX] %(levelname)s %(message)s"


class ZipParams(BaseModel):
    """
    How the patched manifest is written back into an archive.

    Immutable: build one at startup and hand it to every ArchivePatcher.
    """

    model_config = ConfigDict(frozen=True)

    file_name_in_zip: str = MANIFEST_MF
    include_root_folder: bool = True  # keep the META-INF/ prefix in the arcname
    override_existing: bool = True  # replace the entry rather than append

    @field_validator("file_name_in_zip")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip().replace("\\", "/")
        if not value or value.endswith("/"):
            raise ValueError("file_name_in_zip must name a file entry")
        return value


class SuffixConfig(BaseModel):
    """What to patch and where to stage extracted manifests."""

    libraries: List[str] = Field(default_factory=list)
    workspace_prefix: str = "scala-suffix-"
    workspace_dir: Optional[str] = None  # Default: system temp directory
    encoding: Optional[str] = None  # Default: platform encoding

    @field_validator("libraries")
    @classmethod
    def _drop_blank(cls, value: List[str]) -> List[str]:
        return [lib.strip() for lib in value if lib and lib.strip()]


class AppSettings(BaseSettings):
    """
    Main settings class that loads configuration from various sources.
    Uses defaults if the file or keys are missing.
    """

    logging: LoggingConfig = LoggingConfig()
    suffix: SuffixConfig = SuffixConfig()
    zip: ZipParams = ZipParams()

    model_config = SettingsConfigDict(
        extra="forbid",
        env_prefix="SCALA_SUFFIX_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: InitSettingsSource,
        env_settings: EnvSettingsSource,
        dotenv_settings: DotEnvSettingsSource,
        file_secret_settings: SecretsSettingsSource,
    ) -> Tuple[Callable, ...]:
        """
        Define the priority order for loading settings sources.
        The TOML file is inserted right after the explicit arguments.
        """
        toml_file = settings_cls.model_config.get("toml_file") or default_toml_path()
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


def load_settings(config_path: Optional[Path] = None, **overrides) -> AppSettings:
    """
    Build the settings object for one run.

    Args:
        config_path: Explicit TOML file; takes precedence over $SCALA_SUFFIX_CONFIG
        **overrides: Section values that win over every other source

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        pydantic.ValidationError: If any source holds invalid values
    """
    if config_path is None:
        return AppSettings(**overrides)

    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    class FileSettings(AppSettings):
        model_config = SettingsConfigDict(toml_file=config_path)

    return FileSettings(**overrides)
