"""
dpkg package list parsing.

A package list is the output of ``dpkg -l`` as written by grml-live into
``grml_logs/fai/dpkg.list``. Only rows for installed packages (state ``ii``)
are considered; header lines and other states are ignored.
"""

import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

from .error_handling import (
    ErrorCategory,
    InputMissing,
    OldSnapshotUnavailable,
    SnapshotReadError,
    get_error_handler,
)
from .structured_logging import get_changelog_logger, log_package_list_parsed

PACKAGE_ROW_RE = re.compile(r"^ii\s+(\S+)\s+(\S+)(?:\s|$)")


class PackageSnapshot(Mapping[str, str]):
    """Immutable mapping of package name to version, in first-seen order."""

    def __init__(self, packages: Optional[Mapping[str, str]] = None):
        self._packages = MappingProxyType(dict(packages or {}))

    def __getitem__(self, name: str) -> str:
        return self._packages[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __repr__(self) -> str:
        return f"PackageSnapshot({dict(self._packages)!r})"

    @classmethod
    def empty(cls) -> "PackageSnapshot":
        return cls()


def parse_package_lines(lines: Iterable[str]) -> PackageSnapshot:
    """
    Parse dpkg list rows into a snapshot.

    A later row for the same package overwrites an earlier one.
    """
    packages: Dict[str, str] = {}
    for line in lines:
        match = PACKAGE_ROW_RE.match(line)
        if match:
            packages[match.group(1)] = match.group(2)
    return PackageSnapshot(packages)


def parse_package_list(text: str) -> PackageSnapshot:
    """Parse the full text of a dpkg package list."""
    return parse_package_lines(text.split("\n"))


def load_package_list(path: Union[str, Path]) -> PackageSnapshot:
    """
    Read and parse a package list file.

    Raises:
        InputMissing: if the file does not exist
        SnapshotReadError: if the file exists but cannot be read
    """
    list_path = Path(path)
    if not list_path.is_file():
        raise InputMissing(str(list_path))

    try:
        text = list_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise SnapshotReadError(f"Error reading package list {list_path}: {e}") from e

    snapshot = parse_package_list(text)
    log_package_list_parsed(str(list_path), len(snapshot))
    return snapshot


def load_old_package_list(path: Union[str, Path]) -> PackageSnapshot:
    """
    Read the previous build's package list.

    The first build of a job has no previous list, so any failure here is
    reported and an empty snapshot is returned instead.
    """
    try:
        return load_package_list(path)
    except (InputMissing, SnapshotReadError) as e:
        unavailable = OldSnapshotUnavailable(f"Parsing old package list failed: {e}")
        get_error_handler().warning(
            ErrorCategory.PARSING,
            str(unavailable),
            "package_list",
            "load_old_package_list",
            exception=unavailable,
            details={"path": str(path)},
            suggestions=["All packages will be reported as added"],
        )
        get_changelog_logger().warning(
            "old_package_list_unavailable", path=str(path), reason=str(e)
        )
        return PackageSnapshot.empty()
