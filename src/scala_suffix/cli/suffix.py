# src/scala_suffix/cli/suffix.py
"""
The `scala-suffix` command.

Adds an Automatic-Module-Name entry to the manifest of each configured
dependency JAR that lacks one:
1. Resolution: reads the resolved dependency set (JSON listing or a
   directory of JARs) and matches the configured library identifiers
2. Patching: patches matching archives one at a time in a scratch workspace
3. Reporting: logs each outcome and a final summary

Usage:
    scala-suffix --library scala-library --jar-dir target/lib
    scala-suffix --library org.scala-lang:scala-reflect --dependencies deps.json
    scala-suffix --jar-dir target/lib --check   # Report only, no writes
"""

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from scala_suffix.config import AppSettings, SuffixConfig, load_settings
from scala_suffix.dependencies import (
    Artifact,
    DependencyListError,
    PatchOutcome,
    PatchStatus,
    load_artifacts_json,
    resolve_requests,
    run,
    scan_jar_directory,
)
from scala_suffix.logging_setup import setup_logging
from scala_suffix.manifest import (
    ManifestPatchError,
    has_module_declaration,
    read_manifest_lines,
)
from scala_suffix.workspace import Workspace

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def load_artifacts(
    dependencies: Optional[Path] = None, jar_dir: Optional[Path] = None
) -> List[Artifact]:
    """Collect the resolved dependency set from a listing and/or a JAR directory."""
    artifacts: List[Artifact] = []
    if dependencies is not None:
        artifacts.extend(load_artifacts_json(dependencies))
    if jar_dir is not None:
        artifacts.extend(scan_jar_directory(jar_dir))
    return artifacts


def patch_dependencies(
    settings: AppSettings, artifacts: Sequence[Artifact]
) -> List[PatchOutcome]:
    """Patch every configured library found in artifacts."""
    with Workspace(
        prefix=settings.suffix.workspace_prefix,
        base_dir=settings.suffix.workspace_dir,
    ) as workspace:
        return run(
            settings.suffix.libraries,
            artifacts,
            workspace,
            settings.zip,
            settings.suffix.encoding,
        )


def check_dependencies(
    settings: AppSettings, artifacts: Sequence[Artifact]
) -> List[PatchOutcome]:
    """
    Report which configured archives still need a module declaration.

    Nothing is written. Archives lacking a declaration are reported as
    MISSING, those already declaring a name as NOOP.
    """
    outcomes = []
    for request in resolve_requests(settings.suffix.libraries, artifacts):
        try:
            lines = read_manifest_lines(
                request.archive_path,
                settings.zip.file_name_in_zip,
                settings.suffix.encoding,
            )
        except ManifestPatchError as e:
            logger.error(f"Cannot inspect {request.archive_path.absolute()}: {e}")
            outcomes.append(PatchOutcome(request, PatchStatus.FAILED, reason=str(e)))
            continue

        if has_module_declaration(lines):
            outcomes.append(PatchOutcome(request, PatchStatus.NOOP))
        else:
            logger.info(
                f"{request.library_name}: {request.archive_path} has no Automatic-Module-Name"
            )
            outcomes.append(PatchOutcome(request, PatchStatus.MISSING))
    return outcomes


def summarize(outcomes: Sequence[PatchOutcome], check: bool = False) -> str:
    counts = Counter(outcome.status for outcome in outcomes)
    if check:
        changed = f"{counts[PatchStatus.MISSING]} missing"
    else:
        changed = f"{counts[PatchStatus.PATCHED]} patched"
    return (
        f"{changed}, "
        f"{counts[PatchStatus.NOOP]} unchanged, "
        f"{counts[PatchStatus.FAILED]} failed"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scala-suffix",
        description="Add Automatic-Module-Name to the manifest of dependency JARs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    scala-suffix --library scala-library --jar-dir target/lib
    scala-suffix --library org.scala-lang:scala-reflect --dependencies deps.json
    scala-suffix --config scala_suffix.toml --jar-dir target/lib --check
        """,
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="TOML settings file (default: ./scala_suffix.toml or $SCALA_SUFFIX_CONFIG)",
    )
    parser.add_argument(
        "--library", "-l",
        dest="libraries",
        action="append",
        default=[],
        help="artifactId or groupId:artifactId to patch (repeatable)",
    )
    parser.add_argument(
        "--dependencies", "-d",
        type=Path,
        default=None,
        help="JSON listing of resolved dependencies (groupId, artifactId, version, file)",
    )
    parser.add_argument(
        "--jar-dir",
        type=Path,
        default=None,
        help="Directory scanned recursively for dependency JARs",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Report archives lacking a module name without modifying them",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any archive fails (or, with --check, needs a patch)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Overrides the configured log level",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for scala-suffix."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.dependencies is None and args.jar_dir is None:
        parser.error("one of --dependencies or --jar-dir is required")

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValidationError) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.libraries:
        libraries = settings.suffix.libraries + args.libraries
        suffix = SuffixConfig.model_validate(
            {**settings.suffix.model_dump(), "libraries": libraries}
        )
        settings = settings.model_copy(update={"suffix": suffix})

    setup_logging(settings, level=args.log_level)

    if not settings.suffix.libraries:
        logger.error("No libraries configured; pass --library or set suffix.libraries")
        return EXIT_USAGE

    try:
        artifacts = load_artifacts(args.dependencies, args.jar_dir)
    except DependencyListError as e:
        logger.error(str(e))
        return EXIT_USAGE

    if args.check:
        outcomes = check_dependencies(settings, artifacts)
    else:
        outcomes = patch_dependencies(settings, artifacts)

    logger.info(summarize(outcomes, check=args.check))

    if args.strict:
        if any(outcome.failed for outcome in outcomes):
            return EXIT_FAILED
        if args.check and any(o.status is PatchStatus.MISSING for o in outcomes):
            return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
