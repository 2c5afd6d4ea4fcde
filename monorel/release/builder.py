"""Release requests: version bump, edit bundle, branch and pull request.

A release request is built in one pass against one revision:

1. resolve the package, its current version and its Unreleased changes
2. compute the next version (requested or inferred)
3. generate the new changelog release
4. build the edit bundle (manifest, lockfile, dependent manifests, changelog)
5. commit the bundle on the release branch with a compare-and-swap
6. open or update the release request for that branch

Nothing is written before step 5, and step 5 lands every edit in a single
commit. When the branch moved underneath us the whole pass is recomputed
against a fresh revision, never replayed.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable
from dataclasses import dataclass, replace

from monorel.changelog import Changelog, Release, generate_release, render_changelog
from monorel.changelog.render import render_release_notes
from monorel.core.config import Config
from monorel.core.errors import MonorelError, conflict
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger
from monorel.output.console import ConsoleProtocol
from monorel.package import CargoManifest, Manifest, parse_manifest
from monorel.project import Package, Project
from monorel.repository.protocol import Remote, as_remote
from monorel.repository.types import FileEdit, RequestId, Revision

from .bump import BumpPolicy, resolve_target
from .semver import Bump, SemVer

__all__ = [
    "ReleaseBuilder",
    "ReleaseRequest",
    "release_branch",
    "release_description",
    "release_title",
]

log = get_logger(__name__)

type Clock = Callable[[], datetime.date]


@dataclass(frozen=True, slots=True)
class ReleaseRequest:
    """A computed (and, unless planned, submitted) release.

    Attributes:
        package: Package name.
        version: Target version.
        previous_version: Version the package had on the base revision.
        branch: Release branch name.
        title: Release request title.
        notes: The generated changelog release.
        edits: The file edits committed as one unit (empty when the branch
            already held the release).
        revision: Head of the release branch, None for a plan.
        request_id: The opened or updated request, None for a plan.
    """

    package: str
    version: SemVer
    previous_version: SemVer
    branch: str
    title: str
    notes: Release
    edits: tuple[FileEdit, ...]
    revision: Revision | None = None
    request_id: RequestId | None = None

    @property
    def body(self) -> str:
        return render_release_notes(
            self.notes, description=release_description(self.package, self.version)
        )


def release_branch(prefix: str, package: str, version: SemVer, *, primary: bool) -> str:
    if primary:
        return f"{prefix}/{version}"
    return f"{prefix}/{package}-{version}"


def release_title(package: str, version: SemVer, *, primary: bool) -> str:
    if primary:
        return f"Release `{version}`"
    return f"Release `{package}@{version}`"


def release_description(package: str, version: SemVer) -> str:
    return f"Releasing package `{package}` version `{version}`."


class ReleaseBuilder:
    """Builds and submits release requests for packages of one project.

    Args:
        project: Project bound to the base revision (the default branch).
        remote: Where release branches and requests go. Defaults to the
            project's backend when it is a Remote.
        console: Optional progress output.
        clock: Source of today's date for new changelog releases.
    """

    def __init__(
        self,
        project: Project,
        remote: Remote | None = None,
        console: ConsoleProtocol | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.project = project
        self.remote = remote if remote is not None else as_remote(project.backend)
        self.console = console
        self._clock: Clock = clock or datetime.date.today

    def _say(self, message: str) -> None:
        if self.console is not None:
            self.console.info(message)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def plan_release(
        self,
        package_name: str,
        request: Bump | str | None = None,
        date: str | None = None,
    ) -> Result[ReleaseRequest, MonorelError]:
        """Compute the release against the bound revision without writing anything."""
        return self._build(self.project, package_name, request=request, date=date)

    def request_release(
        self,
        package_name: str,
        request: Bump | str | None = None,
        date: str | None = None,
    ) -> Result[ReleaseRequest, MonorelError]:
        """Build, commit and open (or update) the release request for a package.

        Args:
            package_name: Name of the package to release.
            request: Bump kind, explicit version, or None to infer.
            date: Release date (ISO); defaults to the clock's today.

        Returns:
            Ok(ReleaseRequest) with revision and request id set, or an error
            (`unsupported`, `nothing_to_release`, `invalid_bump`, `conflict`
            after exhausting retries, or any read failure).
        """
        remote = self.remote
        if remote is None:
            return Err(
                MonorelError(
                    kind="unsupported",
                    message=f"{self.project.backend.name} cannot carry release requests",
                    hint="use a remote repository, or plan with --dry-run",
                )
            )

        config = self.project.config()
        if isinstance(config, Err):
            return config
        retries = config.value.release.max_retries

        project = self.project
        last: MonorelError | None = None
        for attempt in range(retries + 1):
            if attempt > 0:
                current = project.backend.current_revision()
                if isinstance(current, Err):
                    return current
                project = project.at(current.value)
                log.info("release_retry", package=package_name, attempt=attempt)

            outcome = self._attempt(project, remote, package_name, request, date)
            match outcome:
                case Err(error) if error.kind == "conflict":
                    last = error
                    continue
                case _:
                    return outcome

        assert last is not None
        return Err(
            conflict(
                f"release branch kept moving; gave up after {retries + 1} attempts",
                hint=last.pretty(),
            )
        )

    # -------------------------------------------------------------------------
    # One attempt
    # -------------------------------------------------------------------------

    def _attempt(
        self,
        project: Project,
        remote: Remote,
        package_name: str,
        request: Bump | str | None,
        date: str | None,
    ) -> Result[ReleaseRequest, MonorelError]:
        plan = self._build(project, package_name, request=request, date=date)
        if isinstance(plan, Err):
            return plan

        head = remote.branch_head(plan.value.branch)
        if isinstance(head, Err):
            return head

        if head.value is None:
            base = project.revision
            bundle = plan.value
        else:
            # The branch exists: its head is the base, and its content is what we edit.
            base = head.value
            branch_project = project.at(base)
            prepared = _holds_version(branch_project, package_name, plan.value.version)
            if isinstance(prepared, Err):
                return prepared
            if prepared.value:
                log.info("release_prepared", branch=plan.value.branch, head=base.short())
                bundle = replace(plan.value, edits=())
            else:
                rebuilt = self._build(
                    branch_project, package_name, target=plan.value.version, date=date
                )
                if isinstance(rebuilt, Err):
                    return rebuilt
                bundle = rebuilt.value

        revision = base
        if bundle.edits:
            committed = remote.update_branch(
                bundle.branch, base, bundle.edits, message=_commit_message(bundle)
            )
            if isinstance(committed, Err):
                if committed.error.kind == "conflict":
                    log.info("release_conflict", branch=bundle.branch, base=base.short())
                return committed
            revision = committed.value
            self._say(f"Committed {len(bundle.edits)} file(s) to {bundle.branch}")
            discarded = project.cache.discard_missing() + self.project.cache.discard_missing()
            log.debug("cache_discard_missing", entries=discarded)

        request_id = remote.open_or_update_release_request(bundle.branch, bundle.title, bundle.body)
        if isinstance(request_id, Err):
            return request_id
        self._say(f"Release request {request_id.value} for {bundle.branch}")

        log.info(
            "release_requested",
            package=bundle.package,
            version=str(bundle.version),
            branch=bundle.branch,
            revision=revision.short(),
        )
        return Ok(replace(bundle, revision=revision, request_id=request_id.value))

    # -------------------------------------------------------------------------
    # Computation
    # -------------------------------------------------------------------------

    def _build(
        self,
        project: Project,
        package_name: str,
        *,
        request: Bump | str | None = None,
        target: SemVer | None = None,
        date: str | None = None,
    ) -> Result[ReleaseRequest, MonorelError]:
        config = project.config()
        if isinstance(config, Err):
            return config

        package = project.get_package(package_name)
        if isinstance(package, Err):
            return package
        current = package.value.version()
        if isinstance(current, Err):
            return current
        loaded = package.value.changelog()
        if isinstance(loaded, Err):
            return loaded

        changelog = loaded.value or Changelog.new()
        unreleased = changelog.unreleased()
        if unreleased is None or not unreleased.has_changes():
            return Err(
                MonorelError(
                    kind="nothing_to_release",
                    message=f"package {package_name} has no unreleased changes",
                    path=package.value.changelog_path,
                )
            )
        entries = unreleased.entries()

        if target is None:
            policy = BumpPolicy.from_overrides(config.value.release.bump)
            resolved = resolve_target(
                current.value, request, [label for label, _, _ in entries], policy
            )
            if isinstance(resolved, Err):
                return resolved
            target = resolved.value

        generated = generate_release(
            changelog,
            str(target),
            entries,
            date or self._clock().isoformat(),
            description=unreleased.description,
        )
        if isinstance(generated, Err):
            return generated

        edits = _edit_bundle(project, package.value, target, generated.value, config.value)
        if isinstance(edits, Err):
            return edits

        primary = package.value.is_primary()
        return Ok(
            ReleaseRequest(
                package=package_name,
                version=target,
                previous_version=current.value,
                branch=release_branch(
                    config.value.release.branch_prefix, package_name, target, primary=primary
                ),
                title=release_title(package_name, target, primary=primary),
                notes=generated.value.releases[0],
                edits=edits.value,
            )
        )


def _commit_message(bundle: ReleaseRequest) -> str:
    return bundle.title.replace("`", "")


def _holds_version(project: Project, name: str, version: SemVer) -> Result[bool, MonorelError]:
    package = project.get_package(name)
    if isinstance(package, Err):
        return package
    current = package.value.version()
    if isinstance(current, Err):
        return current
    return Ok(current.value.same_precedence(version))


def _load_manifest(
    project: Project, package: Package, path: str, edited: dict[str, Manifest]
) -> Result[Manifest, MonorelError]:
    if path in edited:
        return Ok(edited[path])
    text = project.read(path)
    if isinstance(text, Err):
        return text
    return parse_manifest(package.kind, text.value, path)


def _edit_bundle(
    project: Project,
    package: Package,
    target: SemVer,
    changelog: Changelog,
    config: Config,
) -> Result[tuple[FileEdit, ...], MonorelError]:
    """All file edits for one release, computed from `project`'s revision."""
    name = package.name().unwrap()
    version = str(target)
    edited: dict[str, Manifest] = {}
    bumped = [package]

    source = package.version_source()
    manifest = _load_manifest(project, package, source, edited)
    if isinstance(manifest, Err):
        return manifest
    if source == package.manifest_path:
        edited[source] = manifest.value.with_version(version)
    elif isinstance(manifest.value, CargoManifest):
        # Every member inheriting the workspace version moves with it.
        edited[source] = manifest.value.with_workspace_version(version)
        for other in project.discover().packages:
            if (
                other.name().unwrap() != name
                and other.inherits_version
                and other.workspace_root == source
            ):
                bumped.append(other)

    if config.release.update_dependents:
        bumped_names = {p.name().unwrap() for p in bumped}
        holders: list[str] = [p.manifest_path for p in project.dependents(name)]
        if package.workspace_root is not None and package.workspace_root not in holders:
            holders.append(package.workspace_root)
        for path in holders:
            holder = _load_manifest(project, package, path, edited)
            if isinstance(holder, Err):
                return holder
            current = holder.value
            changed_any = False
            for dependency in bumped_names:
                current, changed = current.with_dependency_version(dependency, version)
                changed_any = changed_any or changed
            if changed_any:
                edited[path] = current

    edits = [FileEdit(path, doc.render()) for path, doc in edited.items()]

    if config.release.update_lockfile:
        lockfile = package.lockfile()
        if isinstance(lockfile, Err):
            return lockfile
        if lockfile.value is not None:
            updated = lockfile.value
            changed_any = False
            for member in bumped:
                updated, changed = updated.with_package_version(
                    member.name().unwrap(), version, member.lockfile_directory()
                )
                changed_any = changed_any or changed
            if changed_any:
                edits.append(FileEdit(updated.path, updated.render()))

    edits.append(FileEdit(package.changelog_path, render_changelog(changelog)))
    return Ok(tuple(edits))
