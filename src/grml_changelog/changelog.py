"""
Changelog generation for a grml-live build workspace.

Reads the package list of the current build and of the previous build, diffs
them, renders the changelog and writes it into the workspace. The changelog
file is written once, after everything else succeeded.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import ChangelogConfig
from .differ import ClassificationResult, diff
from .error_handling import ChangelogError, ConfigurationError, log_fatal_error
from .git_mirror import CommandRunner, GitMirrorFetcher
from .package_list import load_old_package_list, load_package_list
from .renderer import JobIdentity, render
from .structured_logging import (
    clear_run_context,
    get_changelog_logger,
    set_run_context,
)

MIRROR_DIRECTORY = "packages"
PACKAGE_LIST_PATH = Path("grml_logs") / "fai" / "dpkg.list"


@dataclass(frozen=True)
class ChangelogRequest:
    """Inputs of one changelog run."""

    workspace: Path
    job_identity: JobIdentity = JobIdentity()
    package_list: Optional[Path] = None
    old_package_list: Optional[Path] = None

    @classmethod
    def for_workspace(
        cls,
        workspace: Union[str, Path],
        job_identity: Optional[JobIdentity] = None,
        package_list: Optional[Union[str, Path]] = None,
        old_package_list: Optional[Union[str, Path]] = None,
    ) -> "ChangelogRequest":
        return cls(
            workspace=Path(workspace),
            job_identity=job_identity or JobIdentity(),
            package_list=Path(package_list) if package_list else None,
            old_package_list=Path(old_package_list) if old_package_list else None,
        )

    def package_list_path(self) -> Path:
        return self.package_list or self.workspace / PACKAGE_LIST_PATH

    def old_package_list_path(self, config: ChangelogConfig) -> Path:
        return self.old_package_list or self.workspace / config.old_list_name

    def mirror_root(self) -> Path:
        return self.workspace / MIRROR_DIRECTORY

    def output_path(self, config: ChangelogConfig) -> Path:
        return self.workspace / config.output_filename


@dataclass(frozen=True)
class ChangelogOutcome:
    """Result of a successful changelog run."""

    output_path: Path
    classification: ClassificationResult
    text: str
    duration_ms: int


def _write_atomically(path: Path, text: str) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise ChangelogError(f"Error writing changelog {path}: {e}") from e


def generate_changelog(
    request: ChangelogRequest,
    config: ChangelogConfig,
    runner: Optional[CommandRunner] = None,
) -> ChangelogOutcome:
    """
    Generate and write the changelog for a build workspace.

    Args:
        request: Workspace, package list paths and job identity
        config: Run configuration
        runner: Command runner for git, defaults to running real processes

    Returns:
        ChangelogOutcome: Where the changelog was written and what it contains

    Raises:
        ChangelogError: on any fatal condition; the output file is untouched
    """
    logger = get_changelog_logger()
    start_time = time.time()
    set_run_context(str(request.workspace), str(request.job_identity).strip())
    logger.info("changelog_started", package_prefix=config.package_prefix)

    try:
        mirror_root = request.mirror_root()
        try:
            mirror_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ChangelogError(f"Error creating mirror directory {mirror_root}: {e}") from e

        packages = load_package_list(request.package_list_path())
        packages_old = load_old_package_list(request.old_package_list_path(config))

        if not config.package_prefix:
            logger.warning("empty_prefix_tracks_everything", package_count=len(packages))

        classification = diff(packages_old, packages, config.package_prefix)
        logger.info(
            "classification_completed",
            tracked_changes=len(classification.tracked_changes),
            tracked_removals=len(classification.tracked_removals),
            generic_changes=classification.generic_count,
        )

        if classification.tracked_changes and not config.git_url_base:
            raise ConfigurationError(
                "git_url_base is required to build changelogs of tracked packages"
            )

        fetcher = GitMirrorFetcher(
            config.git_url_base,
            mirror_root,
            runner=runner,
            timeout_seconds=config.command_timeout_seconds,
        )
        text = render(request.job_identity, classification, fetcher)

        output_path = request.output_path(config)
        _write_atomically(output_path, text)
    except ChangelogError as e:
        log_fatal_error(e, "changelog", "generate_changelog")
        logger.error("changelog_failed", error=str(e))
        raise
    finally:
        clear_run_context()

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info("changelog_written", path=str(output_path), duration_ms=duration_ms)
    return ChangelogOutcome(output_path, classification, text, duration_ms)
