# tests/test_cli.py
"""
Tests for the scala-suffix command.

Tests:
- Patching JARs found in a directory or listed in a JSON file
- Report-only --check mode
- Exit codes for failures (--strict) and usage errors
"""

import json
from pathlib import Path

import pytest

from scala_suffix.cli import main
from scala_suffix.cli.suffix import (
    EXIT_FAILED,
    EXIT_OK,
    EXIT_USAGE,
    check_dependencies,
    summarize,
)
from scala_suffix.config import load_settings
from scala_suffix.dependencies import PatchOutcome, PatchRequest, PatchStatus, scan_jar_directory
from scala_suffix.manifest import read_manifest_lines


BASIC_MANIFEST = ["Manifest-Version: 1.0", "Created-By: 1.8"]
SCALA_POM = {"groupId": "org.scala-lang", "artifactId": "scala-library", "version": "2.13.12"}


@pytest.fixture
def jar_dir(make_jar, tmp_path: Path) -> Path:
    make_jar("scala-library-2.13.12.jar", manifest_lines=BASIC_MANIFEST, pom=SCALA_POM)
    make_jar("other-1.0.jar", manifest_lines=BASIC_MANIFEST)
    return tmp_path / "jars"


def test_patches_jar_dir(jar_dir: Path, tmp_path: Path):
    code = main(
        [
            "--library", "org.scala-lang:scala-library",
            "--jar-dir", str(jar_dir),
        ]
    )

    assert code == EXIT_OK
    lines = read_manifest_lines(jar_dir / "scala-library-2.13.12.jar")
    assert lines[-1] == "Automatic-Module-Name: org.scala-lang:scala-library"
    assert read_manifest_lines(jar_dir / "other-1.0.jar") == BASIC_MANIFEST


def test_patches_from_dependency_listing(make_jar, tmp_path: Path):
    jar = make_jar("foo.jar", manifest_lines=BASIC_MANIFEST)
    listing = tmp_path / "deps.json"
    listing.write_text(
        json.dumps([{"groupId": "org.example", "artifactId": "foo", "file": str(jar)}])
    )

    assert main(["-l", "foo", "-d", str(listing)]) == EXIT_OK
    assert read_manifest_lines(jar)[-1] == "Automatic-Module-Name: foo"


def test_libraries_from_config_file(jar_dir: Path, tmp_path: Path):
    config_file = tmp_path / "scala_suffix.toml"
    config_file.write_text('[suffix]\nlibraries = ["scala-library"]\n')

    assert main(["--config", str(config_file), "--jar-dir", str(jar_dir)]) == EXIT_OK
    lines = read_manifest_lines(jar_dir / "scala-library-2.13.12.jar")
    assert lines[-1] == "Automatic-Module-Name: scala-library"


def test_check_mode_does_not_write(jar_dir: Path):
    jar = jar_dir / "scala-library-2.13.12.jar"
    before = jar.read_bytes()

    assert main(["-l", "scala-library", "--jar-dir", str(jar_dir), "--check"]) == EXIT_OK
    assert jar.read_bytes() == before

    code = main(["-l", "scala-library", "--jar-dir", str(jar_dir), "--check", "--strict"])
    assert code == EXIT_FAILED


def test_strict_reports_failures(make_jar, tmp_path: Path):
    make_jar("nomanifest.jar", manifest_lines=None)
    jar_dir = tmp_path / "jars"

    assert main(["-l", "nomanifest", "--jar-dir", str(jar_dir)]) == EXIT_OK
    assert main(["-l", "nomanifest", "--jar-dir", str(jar_dir), "--strict"]) == EXIT_FAILED


def test_no_libraries_is_usage_error(jar_dir: Path):
    assert main(["--jar-dir", str(jar_dir)]) == EXIT_USAGE


def test_missing_config_is_usage_error(jar_dir: Path, tmp_path: Path):
    code = main(["--config", str(tmp_path / "absent.toml"), "-l", "x", "--jar-dir", str(jar_dir)])
    assert code == EXIT_USAGE


def test_bad_listing_is_usage_error(tmp_path: Path):
    listing = tmp_path / "deps.json"
    listing.write_text("{")
    assert main(["-l", "x", "-d", str(listing)]) == EXIT_USAGE


def test_requires_a_dependency_source():
    with pytest.raises(SystemExit) as exc_info:
        main(["-l", "x"])
    assert exc_info.value.code == 2


def test_summarize():
    request = PatchRequest(Path("a.jar"), "a")
    outcomes = [
        PatchOutcome(request, PatchStatus.PATCHED),
        PatchOutcome(request, PatchStatus.PATCHED),
        PatchOutcome(request, PatchStatus.NOOP),
        PatchOutcome(request, PatchStatus.FAILED, reason="boom"),
    ]
    checked = [
        PatchOutcome(request, PatchStatus.MISSING),
        PatchOutcome(request, PatchStatus.NOOP),
    ]

    assert summarize(outcomes) == "2 patched, 1 unchanged, 1 failed"
    assert summarize(checked, check=True) == "1 missing, 1 unchanged, 0 failed"


def test_check_reports_missing_declarations(make_jar, tmp_path: Path):
    make_jar("todo.jar", manifest_lines=BASIC_MANIFEST)
    make_jar("done.jar", manifest_lines=["Automatic-Module-Name: done"])
    make_jar("empty.jar", manifest_lines=None)
    settings = load_settings(suffix={"libraries": ["todo", "done", "empty"]})

    outcomes = check_dependencies(settings, scan_jar_directory(tmp_path / "jars"))

    assert [o.status for o in outcomes] == [
        PatchStatus.MISSING,
        PatchStatus.NOOP,
        PatchStatus.FAILED,
    ]
    assert summarize(outcomes, check=True) == "1 missing, 1 unchanged, 1 failed"
