"""
Pytest fixtures for scala-suffix tests.

JARs are built on the fly with zipfile under tmp_path.
"""
import logging
import struct
import zipfile
from pathlib import Path
from typing import Dict, Optional, Sequence

import pytest

from scala_suffix.config import CONFIG_ENV_VAR, MANIFEST_MF


CENTRAL_HEADER = b"PK\x01\x02"
CLASS_BYTES = b"\xca\xfe\xba\xbe\x00\x00\x00\x34" + bytes(range(64))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep a scala_suffix.toml in the working directory or env out of tests."""
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "no_such_config.toml"))
    for name in ("SCALA_SUFFIX_LOGGING", "SCALA_SUFFIX_SUFFIX", "SCALA_SUFFIX_ZIP"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def build_jar(
    path: Path,
    manifest_lines: Optional[Sequence[str]] = None,
    entries: Optional[Dict[str, bytes]] = None,
    pom: Optional[Dict[str, str]] = None,
    comment: bytes = b"",
) -> Path:
    """
    Write a small JAR.

    Args:
        path: Where to write the archive
        manifest_lines: Manifest content; None leaves the manifest out
        entries: Extra entries (name -> bytes), written after the manifest
        pom: groupId/artifactId/version for META-INF/maven/.../pom.properties
        comment: Archive comment
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if entries is None:
        entries = {"com/example/Main.class": CLASS_BYTES}

    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("META-INF/", b"")
        if manifest_lines is not None:
            zf.writestr(MANIFEST_MF, "".join(f"{line}\r\n" for line in manifest_lines))
        if pom is not None:
            pom_name = f"META-INF/maven/{pom['groupId']}/{pom['artifactId']}/pom.properties"
            body = "#Generated by Maven\n" + "".join(f"{k}={v}\n" for k, v in pom.items())
            zf.writestr(pom_name, body)
        for name, data in entries.items():
            zf.writestr(name, data)
        zf.comment = comment
    return path


@pytest.fixture
def make_jar(tmp_path):
    """Factory: make_jar("name.jar", manifest_lines=[...], ...) -> Path."""

    def _make(name: str = "lib.jar", **kwargs) -> Path:
        return build_jar(tmp_path / "jars" / name, **kwargs)

    return _make


@pytest.fixture
def output_dir(tmp_path):
    """Scratch directory standing in for a workspace."""
    out = tmp_path / "work"
    out.mkdir()
    return out


def mark_central_entry(
    path: Path,
    name: str,
    flag_bits: int = 0,
    compress_type: Optional[int] = None,
) -> Path:
    """
    Rewrite the central directory record of one entry in place.

    Used to fake archives zipfile cannot read: flag bit 0x1 marks the entry
    encrypted, compression method 9 (deflate64) is unsupported.
    """
    data = bytearray(path.read_bytes())
    encoded = name.encode("utf-8")
    pos = data.find(CENTRAL_HEADER)
    while pos != -1:
        (name_len,) = struct.unpack_from("<H", data, pos + 28)
        if bytes(data[pos + 46 : pos + 46 + name_len]) == encoded:
            (flags,) = struct.unpack_from("<H", data, pos + 8)
            struct.pack_into("<H", data, pos + 8, flags | flag_bits)
            if compress_type is not None:
                struct.pack_into("<H", data, pos + 10, compress_type)
            path.write_bytes(bytes(data))
            return path
        pos = data.find(CENTRAL_HEADER, pos + 4)
    raise KeyError(name)


@pytest.fixture
def mark_entry():
    """Fixture wrapper around mark_central_entry."""
    return mark_central_entry
