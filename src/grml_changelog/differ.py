"""
Package list diffing.

Classifies every package name of two snapshots as unchanged, added, changed or
removed, and splits the result into tracked packages (names starting with the
configured prefix, whose changes are looked up in git) and generic Debian
packages (summarized as flat lists).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .package_list import PackageSnapshot


@dataclass(frozen=True)
class VersionRange:
    """Revision range between two package versions, as git tag names."""

    old_version: Optional[str]
    new_version: str

    @property
    def token(self) -> str:
        new_tag = f"v{self.new_version}"
        if self.old_version is None:
            return new_tag
        return f"v{self.old_version}..{new_tag}"

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class TrackedChange:
    """A tracked package that was added or changed version."""

    package_name: str
    old_version: Optional[str]
    new_version: str

    @property
    def version_range(self) -> VersionRange:
        return VersionRange(self.old_version, self.new_version)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of diffing two package snapshots."""

    tracked_changes: Tuple[TrackedChange, ...] = ()
    tracked_removals: Tuple[str, ...] = ()
    generic_added: Tuple[str, ...] = ()
    generic_changed: Tuple[str, ...] = ()
    generic_removed: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.tracked_changes
            or self.tracked_removals
            or self.generic_added
            or self.generic_changed
            or self.generic_removed
        )

    @property
    def tracked_count(self) -> int:
        return len(self.tracked_changes) + len(self.tracked_removals)

    @property
    def generic_count(self) -> int:
        return (
            len(self.generic_added) + len(self.generic_changed) + len(self.generic_removed)
        )


def is_tracked(package_name: str, tracked_prefix: str) -> bool:
    """Plain prefix test. An empty prefix tracks every package."""
    return package_name.startswith(tracked_prefix)


def format_generic_change(package_name: str, old_version: str, new_version: str) -> str:
    return f"{package_name} {old_version} -> {new_version}"


def diff(
    old: Optional[PackageSnapshot],
    new: PackageSnapshot,
    tracked_prefix: str = "",
) -> ClassificationResult:
    """
    Diff two package snapshots.

    Args:
        old: Previous snapshot, or None on the first build
        new: Current snapshot
        tracked_prefix: Name prefix selecting packages that are looked up in git

    Returns:
        ClassificationResult: tracked changes in the new snapshot's order,
        everything else sorted by name
    """
    old_packages: Dict[str, str] = dict(old) if old is not None else {}

    tracked_removals: List[str] = []
    generic_removed = set()
    for package_name in sorted(set(old_packages) - set(new)):
        if is_tracked(package_name, tracked_prefix):
            tracked_removals.append(package_name)
        else:
            generic_removed.add(package_name)

    tracked_changes: List[TrackedChange] = []
    generic_added = set()
    generic_changed = set()
    for package_name, new_version in new.items():
        old_version = old_packages.get(package_name)
        if old_version is not None and old_version == new_version:
            continue

        if is_tracked(package_name, tracked_prefix):
            tracked_changes.append(TrackedChange(package_name, old_version, new_version))
        elif old_version is None:
            generic_added.add(package_name)
        else:
            generic_changed.add(
                format_generic_change(package_name, old_version, new_version)
            )

    return ClassificationResult(
        tracked_changes=tuple(tracked_changes),
        tracked_removals=tuple(tracked_removals),
        generic_added=tuple(sorted(generic_added)),
        generic_changed=tuple(sorted(generic_changed)),
        generic_removed=tuple(sorted(generic_removed)),
    )
