"""Merge consumer: record a merged release and notify deployment tooling.

The merge event itself originates outside the core (a webhook, a CI job).
Given the merged branch and revision, the package is resolved at that
revision and a dispatch event is emitted through the remote.
"""

from __future__ import annotations

from dataclasses import dataclass

from monorel.core.errors import MonorelError
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger
from monorel.project import Package, Project
from monorel.repository.protocol import Remote, as_remote
from monorel.repository.types import DispatchEvent, Revision

from .semver import SemVer, parse_version

__all__ = [
    "RELEASE_EVENT",
    "RELEASE_REQUEST_EVENT",
    "ReleaseRecord",
    "handle_release_merged",
    "parse_release_branch",
]

log = get_logger(__name__)

RELEASE_EVENT = "monorel-package-release"
RELEASE_REQUEST_EVENT = "monorel-package-release-request"


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    """A release whose request was merged."""

    package: str
    version: SemVer
    revision: Revision

    def to_payload(self) -> dict[str, object]:
        return {
            "package": self.package,
            "version": str(self.version),
            "revision": self.revision.id,
        }


def _strict_version(text: str) -> SemVer | None:
    if text.startswith("v"):
        return None
    return parse_version(text)


def parse_release_branch(branch: str, prefix: str = "release") -> tuple[str | None, SemVer] | None:
    """Split a release branch into (package name or None, version).

    `release/1.2.0` names the primary package; `release/my-pkg-1.2.0-rc.1`
    names `my-pkg`. Returns None for branches outside the prefix.
    """
    head = prefix.strip("/") + "/"
    if not branch.startswith(head):
        return None
    rest = branch[len(head) :]

    version = _strict_version(rest)
    if version is not None:
        return (None, version)

    # Package names may contain dashes; so may prerelease tags. The first
    # split whose remainder is a version wins.
    start = 0
    while (index := rest.find("-", start)) > 0:
        version = _strict_version(rest[index + 1 :])
        if version is not None:
            return (rest[:index], version)
        start = index + 1
    return None


def _find_released(project: Project, name: str | None, version: SemVer) -> Package | None:
    for package in project.discover().packages:
        if name is None and not package.is_primary():
            continue
        if name is not None and package.name().unwrap() != name:
            continue
        if package.version().unwrap().same_precedence(version):
            return package
    return None


def handle_release_merged(
    project: Project,
    branch: str,
    merged_revision: Revision,
    remote: Remote | None = None,
) -> Result[ReleaseRecord, MonorelError]:
    """Record a merged release request and emit the release dispatch event.

    The package is resolved at `merged_revision` and must already carry the
    version named by the branch.
    """
    remote = remote if remote is not None else as_remote(project.backend)
    if remote is None:
        return Err(
            MonorelError(
                kind="unsupported",
                message=f"{project.backend.name} cannot emit dispatch events",
            )
        )

    config = project.config()
    if isinstance(config, Err):
        return config
    parsed = parse_release_branch(branch, config.value.release.branch_prefix)
    if parsed is None:
        return Err(
            MonorelError(
                kind="invalid_input",
                message=f"{branch} is not a release branch",
                hint=f"expected {config.value.release.branch_prefix}/<version>",
            )
        )
    name, version = parsed

    merged = project.at(merged_revision)
    package = _find_released(merged, name, version)
    if package is None:
        label = f"{name}@{version}" if name else str(version)
        return Err(
            MonorelError(
                kind="not_found",
                message=f"no package at version {label} in {merged_revision.short()}",
            )
        )

    record = ReleaseRecord(
        package=package.name().unwrap(), version=version, revision=merged_revision
    )
    event = DispatchEvent(RELEASE_EVENT, {**record.to_payload(), "branch": branch})
    sent = remote.trigger_dispatch(event)
    if isinstance(sent, Err):
        return sent

    log.info(
        "release_merged",
        package=record.package,
        version=str(record.version),
        revision=merged_revision.short(),
    )
    return Ok(record)
