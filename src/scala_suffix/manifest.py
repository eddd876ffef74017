# src/scala_suffix/manifest.py
"""
Manifest patching for a single JAR archive.

ArchivePatcher extracts META-INF/MANIFEST.MF into a scratch directory, checks
it for an Automatic-Module-Name declaration and, when there is none, appends
one and writes the entry back into the archive.

Lifecycle of one patcher:
    OPENED -> EXTRACTED -> NOOP                      (patch() returns False)
                        -> MUTATED -> VALIDATED      (patch() returns True)
                                   -> FAILED         (patch() raises)

The patcher does not log outcomes; it returns or raises and leaves reporting
to the caller.
"""

import locale
import os
import posixpath
import shutil
import tempfile
import zipfile
import zlib
from enum import StrEnum
from pathlib import Path
from typing import List, Optional, Sequence, Union

from scala_suffix.config import MANIFEST_MF, ZipParams

AUTOMATIC_MODULE_NAME = "Automatic-Module-Name"

# zipfile raises NotImplementedError for unsupported compression methods and
# RuntimeError for encrypted entries.
ZIP_ERRORS = (OSError, EOFError, zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError)


class ManifestPatchError(Exception):
    """Base class for failures while patching one archive."""

    def __init__(self, message: str, path: Union[str, Path]):
        super().__init__(message)
        self.path = Path(path)


class ArchiveReadError(ManifestPatchError):
    """The archive cannot be opened or the manifest entry cannot be extracted."""


class MissingEntryFileError(ManifestPatchError):
    """The extracted manifest is gone from the workspace at patch time."""


class ArchiveWriteError(ManifestPatchError):
    """The patched manifest could not be written back into the archive."""


class ArchiveCorruptionError(ManifestPatchError):
    """The archive failed validation after the manifest was written back."""


class PatchState(StrEnum):
    OPENED = "OPENED"
    EXTRACTED = "EXTRACTED"
    NOOP = "NOOP"
    MUTATED = "MUTATED"
    VALIDATED = "VALIDATED"
    FAILED = "FAILED"


def has_module_declaration(lines: Sequence[str]) -> bool:
    """True if any line mentions the Automatic-Module-Name key, in any case."""
    key = AUTOMATIC_MODULE_NAME.lower()
    return any(key in line.lower() for line in lines)


def normalize_lines(lines: Sequence[str], library_name: str) -> List[str]:
    """Trim lines, drop blank ones and append the module declaration."""
    new_lines = [line.strip() for line in lines if line.strip()]
    new_lines.append(f"{AUTOMATIC_MODULE_NAME}: {library_name}")
    return new_lines


def is_valid_archive(archive_path: Union[str, Path]) -> bool:
    """
    Structural check of a zip archive.

    The central directory must be readable and every entry must decompress
    with a matching CRC.
    """
    archive_path = Path(archive_path)
    if not archive_path.is_file() or not zipfile.is_zipfile(archive_path):
        return False
    try:
        with zipfile.ZipFile(archive_path) as zf:
            return zf.testzip() is None
    except ZIP_ERRORS:
        return False


def read_manifest_lines(
    archive_path: Union[str, Path],
    entry_name: str = MANIFEST_MF,
    encoding: Optional[str] = None,
) -> List[str]:
    """
    Read the manifest lines straight from an archive, without a workspace.

    Raises:
        ArchiveReadError: If the archive or the entry cannot be read
    """
    archive_path = Path(archive_path)
    try:
        with zipfile.ZipFile(archive_path) as zf:
            data = zf.read(entry_name)
    except (KeyError, *ZIP_ERRORS) as e:
        raise ArchiveReadError(
            f"Cannot read {entry_name} from {archive_path.absolute()}: {e}",
            archive_path,
        ) from e
    try:
        text = data.decode(encoding or locale.getpreferredencoding(False))
    except (LookupError, UnicodeDecodeError) as e:
        raise ArchiveReadError(
            f"Cannot decode {entry_name} from {archive_path.absolute()}: {e}",
            archive_path,
        ) from e
    return text.splitlines()


class ArchivePatcher:
    """
    Adds an Automatic-Module-Name line to the manifest of one archive.

    One instance serves one patch() call. The output directory is borrowed
    from the caller, which is responsible for emptying it.
    """

    def __init__(
        self,
        archive_path: Union[str, Path],
        output_dir: Union[str, Path],
        params: Optional[ZipParams] = None,
        encoding: Optional[str] = None,
    ):
        """
        Open the archive and extract its manifest into output_dir.

        Args:
            archive_path: The JAR to patch
            output_dir: Scratch directory for the extracted manifest
            params: How to write the entry back (defaults to ZipParams())
            encoding: Manifest text encoding (defaults to the platform's)

        Raises:
            ArchiveReadError: If the archive cannot be opened or has no manifest
        """
        self.archive_path = Path(archive_path)
        self.output_dir = Path(output_dir)
        self.params = params or ZipParams()
        self.encoding = encoding
        self.entry_name = self.params.file_name_in_zip
        self.manifest_file = self.output_dir / self.entry_name
        self.state = PatchState.OPENED

        try:
            with zipfile.ZipFile(self.archive_path) as zf:
                zf.extract(self.entry_name, self.output_dir)
        except (KeyError, *ZIP_ERRORS) as e:
            self.state = PatchState.FAILED
            raise ArchiveReadError(
                f"No file {self.manifest_file.absolute()} extracted from "
                f"{self.archive_path.absolute()}: {e}",
                self.archive_path,
            ) from e
        self.state = PatchState.EXTRACTED

    def patch(self, library_name: str) -> bool:
        """
        Declare library_name as the automatic module name of the archive.

        Returns:
            False if the manifest already declares a module name (nothing is
            written), True once the declaration is added and the archive
            validated.

        Raises:
            MissingEntryFileError: If the extracted manifest has disappeared
            ArchiveReadError: If the extracted manifest cannot be read or decoded
            ArchiveWriteError: If the manifest or the archive cannot be rewritten
            ArchiveCorruptionError: If the rewritten archive is not a valid zip
        """
        if not library_name or not library_name.strip():
            raise ValueError("library_name must not be blank")
        if self.state is not PatchState.EXTRACTED:
            raise RuntimeError(
                f"ArchivePatcher for {self.archive_path} is already {self.state}"
            )

        try:
            return self._patch(library_name)
        except ManifestPatchError:
            self.state = PatchState.FAILED
            raise

    def _patch(self, library_name: str) -> bool:
        if not self.manifest_file.exists():
            raise MissingEntryFileError(
                f"No file {self.manifest_file.absolute()} found",
                self.manifest_file.absolute(),
            )

        lines = self._read_lines()
        if has_module_declaration(lines):
            self.state = PatchState.NOOP
            return False

        self._write_lines(normalize_lines(lines, library_name))
        self._write_entry()
        self.state = PatchState.MUTATED

        if not is_valid_archive(self.archive_path):
            raise ArchiveCorruptionError(
                f"After the operation the zip file is INVALID: "
                f"{self.archive_path.absolute()}",
                self.archive_path,
            )
        self.state = PatchState.VALIDATED
        return True

    def _read_lines(self) -> List[str]:
        try:
            return self.manifest_file.read_text(encoding=self.encoding).splitlines()
        except (OSError, LookupError, UnicodeDecodeError) as e:
            raise ArchiveReadError(
                f"Cannot read {self.manifest_file.absolute()}: {e}",
                self.archive_path,
            ) from e

    def _write_lines(self, lines: List[str]) -> None:
        try:
            self.manifest_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.manifest_file, "w", encoding=self.encoding) as fh:
                for line in lines:
                    fh.write(line)
                    fh.write("\n")
        except (OSError, LookupError, UnicodeEncodeError) as e:
            raise ArchiveWriteError(
                f"Cannot write {self.manifest_file.absolute()}: {e}",
                self.archive_path,
            ) from e

    def _arcname(self) -> str:
        if self.params.include_root_folder:
            return self.entry_name
        return posixpath.basename(self.entry_name)

    def _write_entry(self) -> None:
        """
        Rewrite the archive with the patched manifest.

        Entries are copied in order into a staging file beside the archive,
        with the manifest replaced in place, and the staging file is renamed
        over the original. The original is untouched unless the rename runs.
        """
        arcname = self._arcname()
        staged: Optional[Path] = None

        try:
            fd, staged_name = tempfile.mkstemp(
                prefix=f".{self.archive_path.name}.", suffix=".tmp", dir=self.archive_path.parent
            )
            os.close(fd)
            staged = Path(staged_name)

            with zipfile.ZipFile(self.archive_path) as zin, zipfile.ZipFile(staged, "w") as zout:
                zout.comment = zin.comment
                written = False
                for info in zin.infolist():
                    if info.filename == arcname:
                        if not self.params.override_existing:
                            raise ArchiveWriteError(
                                f"Entry {arcname} already exists in "
                                f"{self.archive_path.absolute()} and override is disabled",
                                self.archive_path,
                            )
                        if not written:
                            zout.write(self.manifest_file, arcname, compress_type=info.compress_type)
                            written = True
                        continue
                    zout.writestr(info, zin.read(info))
                if not written:
                    zout.write(self.manifest_file, arcname, compress_type=zipfile.ZIP_DEFLATED)

            shutil.copymode(self.archive_path, staged)
            os.replace(staged, self.archive_path)
        except ZIP_ERRORS as e:
            raise ArchiveWriteError(
                f"Failed to write {arcname} into {self.archive_path.absolute()}: {e}",
                self.archive_path,
            ) from e
        finally:
            if staged is not None:
                staged.unlink(missing_ok=True)
