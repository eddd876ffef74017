# src/scala_suffix/dependencies.py
"""
Dependency resolution and the per-archive patch loop.

Library identifiers come from configuration, either as a bare artifactId
("scala-library") or as "groupId:artifactId" ("org.scala-lang:scala-library").
Each identifier is matched against the resolved dependency set; every match
becomes a PatchRequest, and requests are patched one at a time inside a
freshly emptied workspace.
"""

import json
import logging
import re
import zipfile
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scala_suffix.config import ZipParams
from scala_suffix.manifest import ZIP_ERRORS, ArchivePatcher, ManifestPatchError
from scala_suffix.workspace import Workspace

logger = logging.getLogger(__name__)

POM_PROPERTIES_RE = re.compile(r"^META-INF/maven/[^/]+/[^/]+/pom\.properties$")
JAR_VERSION_SUFFIX_RE = re.compile(r"-\d[\w.+-]*$")


class DependencyListError(Exception):
    """Raised when a dependency listing cannot be loaded."""
    pass


class Artifact(BaseModel):
    """One resolved dependency and the archive that holds it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    group_id: str = Field(default="", alias="groupId")
    artifact_id: str = Field(alias="artifactId")
    version: Optional[str] = None
    file: Path


@dataclass(frozen=True, slots=True)
class PatchRequest:
    archive_path: Path
    library_name: str


class PatchStatus(StrEnum):
    NOOP = "NOOP"
    PATCHED = "PATCHED"
    MISSING = "MISSING"  # report-only: no declaration, nothing written
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class PatchOutcome:
    """Result of one PatchRequest. reason is set only for FAILED."""

    request: PatchRequest
    status: PatchStatus
    reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is PatchStatus.FAILED


# =============================================================================
# Matching
# =============================================================================


def parse_library_id(identifier: str) -> Optional[Tuple[Optional[str], str]]:
    """
    Split a library identifier into (group_id, artifact_id).

    A bare identifier has no group (None). A ':'-qualified one needs both
    parts; anything past the second ':' is ignored. Returns None when the
    identifier cannot name an artifact.
    """
    if ":" not in identifier:
        return None, identifier
    parts = identifier.split(":")
    while parts and parts[-1] == "":
        parts.pop()
    if len(parts) < 2:
        return None
    return parts[0].strip(), parts[1].strip()


def find_artifact(identifier: str, artifacts: Iterable[Artifact]) -> Optional[Artifact]:
    """First artifact matching the identifier, or None."""
    parsed = parse_library_id(identifier)
    if parsed is None:
        return None
    group_id, artifact_id = parsed

    for artifact in artifacts:
        if group_id is None:
            if artifact.artifact_id.strip() == artifact_id:
                return artifact
        elif artifact.group_id == group_id and artifact.artifact_id == artifact_id:
            return artifact
    return None


def resolve_requests(
    libraries: Iterable[str], artifacts: Sequence[Artifact]
) -> Iterator[PatchRequest]:
    """
    Yield one PatchRequest per configured library that resolves.

    Libraries keep their configured order; duplicates and unmatched
    identifiers are skipped.
    """
    for library in dict.fromkeys(libraries):
        artifact = find_artifact(library, artifacts)
        if artifact is None:
            logger.debug(f"No resolved dependency matches '{library}', skipping")
            continue
        yield PatchRequest(archive_path=artifact.file, library_name=library)


# =============================================================================
# Loading the resolved dependency set
# =============================================================================


def load_artifacts_json(path: Union[str, Path]) -> List[Artifact]:
    """
    Load a dependency listing written by the build.

    The file holds a JSON array of objects with groupId, artifactId,
    version and file keys (a {"dependencies": [...]} wrapper is accepted).
    Relative file paths are resolved against the listing's directory.

    Raises:
        DependencyListError: If the file is missing or malformed
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise DependencyListError(f"Cannot read dependency list {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("dependencies")
    if not isinstance(raw, list):
        raise DependencyListError(f"Dependency list {path} must be a JSON array")

    artifacts = []
    for i, item in enumerate(raw):
        try:
            artifact = Artifact.model_validate(item)
        except ValidationError as e:
            raise DependencyListError(f"Invalid dependency #{i} in {path}: {e}") from e
        if not artifact.file.is_absolute():
            artifact = artifact.model_copy(update={"file": path.parent / artifact.file})
        artifacts.append(artifact)
    return artifacts


def read_pom_properties(jar_path: Union[str, Path]) -> Optional[dict]:
    """
    Maven coordinates recorded in a JAR's pom.properties, if any.

    Raises:
        Any of ZIP_ERRORS: If the JAR cannot be read
    """
    with zipfile.ZipFile(jar_path) as zf:
        names = sorted(n for n in zf.namelist() if POM_PROPERTIES_RE.match(n))
        if not names:
            return None
        text = zf.read(names[0]).decode("latin-1")

    props = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "!")) or "=" not in line:
            continue
        key, _, value = line.partition("=")
        props[key.strip()] = value.strip()
    return props


def scan_jar_directory(directory: Union[str, Path]) -> List[Artifact]:
    """
    Build artifacts from every JAR under a directory.

    Coordinates come from META-INF/maven/.../pom.properties; JARs without it
    get an artifactId from the file name with the version suffix removed.
    Unreadable JARs are skipped with a warning.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DependencyListError(f"Not a directory: {directory}")

    artifacts = []
    for jar_path in sorted(directory.rglob("*.jar")):
        if not jar_path.is_file():
            continue
        try:
            props = read_pom_properties(jar_path)
        except ZIP_ERRORS as e:
            logger.warning(f"Skipping unreadable archive {jar_path}: {e}")
            continue

        if props and props.get("artifactId"):
            artifact = Artifact(
                group_id=props.get("groupId", ""),
                artifact_id=props["artifactId"],
                version=props.get("version"),
                file=jar_path,
            )
        else:
            artifact = Artifact(
                artifact_id=JAR_VERSION_SUFFIX_RE.sub("", jar_path.stem),
                file=jar_path,
            )
        artifacts.append(artifact)

    logger.debug(f"Found {len(artifacts)} archives under {directory}")
    return artifacts


# =============================================================================
# Patch loop
# =============================================================================


def patch_one(
    request: PatchRequest,
    workspace: Workspace,
    params: ZipParams,
    encoding: Optional[str] = None,
) -> PatchOutcome:
    """Patch one archive in a freshly emptied workspace."""
    with workspace.request_scope() as output_dir:
        try:
            patcher = ArchivePatcher(request.archive_path, output_dir, params, encoding)
            patched = patcher.patch(request.library_name)
        except ManifestPatchError as e:
            return PatchOutcome(request, PatchStatus.FAILED, reason=str(e))

    status = PatchStatus.PATCHED if patched else PatchStatus.NOOP
    return PatchOutcome(request, status)


def run(
    libraries: Iterable[str],
    artifacts: Sequence[Artifact],
    workspace: Workspace,
    params: ZipParams,
    encoding: Optional[str] = None,
) -> List[PatchOutcome]:
    """
    Patch every configured library that resolves, one after another.

    A failed request is logged and does not stop the ones after it.
    """
    outcomes = []
    for request in resolve_requests(libraries, artifacts):
        outcome = patch_one(request, workspace, params, encoding)
        if outcome.status is PatchStatus.PATCHED:
            logger.info(f"The manifest file fixed for: {request.library_name}")
        elif outcome.status is PatchStatus.NOOP:
            logger.debug(
                f"{request.archive_path.absolute()} already declares a module name, "
                f"leaving it unchanged"
            )
        else:
            logger.error(
                f"Failed to patch {request.archive_path.absolute()} "
                f"({request.library_name}): {outcome.reason}"
            )
        outcomes.append(outcome)
    return outcomes
