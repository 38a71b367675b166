"""
Git mirror management for tracked packages.

Each tracked package has a bare mirror ``<mirror_root>/<package>.git`` of
``<git_url_base>/<package>``. Mirrors are cloned on first use and refreshed on
every later use, then queried for the one-line log of a revision range.
"""

import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .error_handling import OutputMissing, ProcessError
from .structured_logging import get_git_logger, log_git_command


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of an external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner(ABC):
    """Runs an external command and captures its result."""

    @abstractmethod
    def run(
        self, args: Sequence[str], cwd: Path, timeout: Optional[float] = None
    ) -> CommandResult:
        """
        Run a command to completion.

        Raises:
            ProcessError: if the command cannot be started or times out
        """


class SubprocessRunner(CommandRunner):
    """CommandRunner backed by subprocess.run."""

    def run(
        self, args: Sequence[str], cwd: Path, timeout: Optional[float] = None
    ) -> CommandResult:
        safe_args = [str(arg) for arg in args]
        try:
            proc = subprocess.run(
                safe_args,
                cwd=str(cwd),
                capture_output=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessError(
                safe_args, None, message=f"Command timed out after {timeout}s"
            ) from e
        except OSError as e:
            raise ProcessError(
                safe_args, None, message=f"Command could not be started: {e}"
            ) from e

        return CommandResult(
            returncode=proc.returncode,
            stdout=proc.stdout.decode("utf-8", errors="replace") if proc.stdout else "",
            stderr=proc.stderr.decode("utf-8", errors="replace") if proc.stderr else "",
        )


class GitMirrorFetcher:
    """Clones, refreshes and queries per-package git mirrors."""

    def __init__(
        self,
        git_url_base: str,
        mirror_root: Union[str, Path],
        runner: Optional[CommandRunner] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.git_url_base = git_url_base[:-1] if git_url_base.endswith("/") else git_url_base
        self.mirror_root = Path(mirror_root)
        self.runner = runner or SubprocessRunner()
        self.timeout_seconds = timeout_seconds
        self.logger = get_git_logger()

        self._locks: Dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def remote_url(self, package_name: str) -> str:
        return f"{self.git_url_base}/{package_name}"

    def mirror_path(self, package_name: str) -> Path:
        return self.mirror_root / f"{package_name}.git"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(path, threading.Lock())

    def _run(self, args: List[str], cwd: Path) -> CommandResult:
        log_git_command(args, str(cwd))
        result = self.runner.run(args, cwd, self.timeout_seconds)
        if result.returncode != 0:
            self.logger.error(
                "git_command_failed",
                command=" ".join(args),
                returncode=result.returncode,
                stderr=result.stderr.strip(),
            )
            raise ProcessError(args, result.returncode, result.stderr)
        return result

    def ensure_mirror(self, package_name: str) -> Path:
        """Clone the mirror if needed, then re-point and refresh it."""
        url = self.remote_url(package_name)
        git_dir = self.mirror_path(package_name)
        self.mirror_root.mkdir(parents=True, exist_ok=True)

        if not git_dir.exists():
            self.logger.info("mirror_clone", package_name=package_name, url=url)
            self._run(["git", "clone", "--mirror", url], self.mirror_root)
        if not git_dir.exists():
            raise OutputMissing(
                f"Cloning from {url} into {git_dir} failed: output directory not found."
            )

        self.logger.info("mirror_update", package_name=package_name, url=url)
        self._run(["git", "remote", "set-url", "origin", url], git_dir)
        self._run(["git", "remote", "update", "--prune"], git_dir)
        return git_dir

    def changelog_for(self, package_name: str, revision_range: str) -> str:
        """
        Return ``git log --oneline`` output for a revision range.

        An empty string is a valid result and means the range holds no commits.

        Raises:
            ProcessError: if any git command fails
            OutputMissing: if cloning did not create the mirror directory
        """
        self.logger.info(
            "building_git_changelog",
            package_name=package_name,
            revision_range=revision_range,
        )
        with self._lock_for(self.mirror_path(package_name)):
            git_dir = self.ensure_mirror(package_name)
            result = self._run(["git", "log", "--oneline", revision_range], git_dir)
        return result.stdout
