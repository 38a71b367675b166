"""
Changelog text rendering.

The whole document is assembled in memory; a failing git lookup aborts the
rendering before anything is returned.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .differ import ClassificationResult
from .git_mirror import GitMirrorFetcher

SEPARATOR = "-" * 72 + "\n"
GENERIC_INDENT = "\n     "


@dataclass(frozen=True)
class JobIdentity:
    """Build job that produced the package list, shown in the header."""

    job_name: str = ""
    build_id: str = ""

    def __str__(self) -> str:
        return f"{self.job_name} {self.build_id}"


def _render_header(job_identity: JobIdentity) -> List[str]:
    return [
        SEPARATOR,
        "Generated by grml-changelog for job\n",
        f"{job_identity}\n",
        SEPARATOR,
    ]


def _render_listing(label: str, items: Iterable[str]) -> str:
    return f"  {label}:{GENERIC_INDENT}" + GENERIC_INDENT.join(items).strip() + "\n"


def render(
    job_identity: JobIdentity,
    classification: ClassificationResult,
    fetcher: Optional[GitMirrorFetcher] = None,
) -> str:
    """
    Render the changelog document.

    Args:
        job_identity: Job name and build id for the header
        classification: Result of diffing the package lists
        fetcher: Git mirror fetcher, required when there are tracked changes

    Returns:
        str: The complete changelog text
    """
    parts = _render_header(job_identity)

    for package_name in classification.tracked_removals:
        parts.append(f"\n{package_name}\nRemoved.\n")
        parts.append(SEPARATOR)

    if classification.tracked_changes and fetcher is None:
        raise ValueError("A GitMirrorFetcher is required to render tracked changes")

    for change in classification.tracked_changes:
        revision_range = change.version_range.token
        git_log = fetcher.changelog_for(change.package_name, revision_range)
        parts.append(f"\n{change.package_name} {revision_range}\nChanges:\n")
        parts.append(git_log)
        parts.append(SEPARATOR)

    parts.append("\nChanges to Debian package list:\n")
    parts.append(_render_listing("Added", classification.generic_added))
    parts.append(_render_listing("Changed", classification.generic_changed))
    parts.append(_render_listing("Removed", classification.generic_removed))
    parts.append(SEPARATOR)

    return "".join(parts)
