# src/scala_suffix/__init__.py
"""
scala-suffix: declare Automatic-Module-Name in dependency JAR manifests.
"""

from scala_suffix.config import AppSettings, ZipParams, load_settings
from scala_suffix.dependencies import (
    Artifact,
    PatchOutcome,
    PatchRequest,
    PatchStatus,
    find_artifact,
    patch_one,
    resolve_requests,
    run,
)
from scala_suffix.manifest import (
    AUTOMATIC_MODULE_NAME,
    ArchiveCorruptionError,
    ArchivePatcher,
    ArchiveReadError,
    ArchiveWriteError,
    ManifestPatchError,
    MissingEntryFileError,
)
from scala_suffix.workspace import Workspace

__version__ = "0.1.0"

__all__ = [
    # Core
    "AUTOMATIC_MODULE_NAME",
    "ArchivePatcher",
    "ManifestPatchError",
    "ArchiveReadError",
    "MissingEntryFileError",
    "ArchiveWriteError",
    "ArchiveCorruptionError",
    # Orchestration
    "Artifact",
    "PatchRequest",
    "PatchStatus",
    "PatchOutcome",
    "find_artifact",
    "resolve_requests",
    "patch_one",
    "run",
    "Workspace",
    # Config
    "AppSettings",
    "ZipParams",
    "load_settings",
]
