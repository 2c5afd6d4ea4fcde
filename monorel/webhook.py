"""GitHub webhook adapter.

The HTTP service that receives deliveries lives outside this package; it
passes the raw body, the `X-GitHub-Event` and `X-Hub-Signature-256` headers
to `handle_webhook`. The signature is checked before anything else, so an
unsigned or forged delivery never reaches a project.

Two deliveries are acted on:

- `pull_request` closed and merged from a release branch (under the
  project's configured prefix): the release is recorded and a
  `monorel-package-release` dispatch is emitted.
- `repository_dispatch` with action `monorel-package-release-request` and a
  `{"package": ..., "version": ...}` client payload: a release request is
  built on the given branch.

Everything else is acknowledged and ignored.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Callable
from dataclasses import dataclass

from monorel.core.errors import MonorelError, parse_error
from monorel.core.result import Err, Ok, Result
from monorel.core.structured import as_str_dict, get_bool, get_nested, get_str
from monorel.logging import get_logger
from monorel.project import Project
from monorel.release.builder import ReleaseBuilder, ReleaseRequest
from monorel.release.dispatch import RELEASE_REQUEST_EVENT, ReleaseRecord, handle_release_merged
from monorel.repository.github import GitHubRepository
from monorel.repository.types import Revision

__all__ = [
    "MergedRelease",
    "ProjectOpener",
    "ReleaseRequested",
    "github_opener",
    "handle_webhook",
    "parse_event",
    "verify_signature",
]

log = get_logger(__name__)

_SIGNATURE_PREFIX = "sha256="


@dataclass(frozen=True, slots=True)
class MergedRelease:
    repository: str
    branch: str
    revision: Revision


@dataclass(frozen=True, slots=True)
class ReleaseRequested:
    repository: str
    branch: str
    package: str
    version: str


type WebhookEvent = MergedRelease | ReleaseRequested

# (owner/name, ref) -> project bound to that ref
type ProjectOpener = Callable[[str, str], Result[Project, MonorelError]]


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> bool:
    """Check `X-Hub-Signature-256` (`sha256=<hex>`) against the raw body."""
    if not signature_header or not signature_header.startswith(_SIGNATURE_PREFIX):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len(_SIGNATURE_PREFIX) :].strip())


def parse_event(event_type: str, body: bytes) -> Result[WebhookEvent | None, MonorelError]:
    """Decode a delivery; Ok(None) for events that need no action.

    Merged pull requests are returned whatever their head branch: only the
    project's own `[release] branch-prefix` can tell a release branch apart.
    """
    try:
        obj: object = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(parse_error("invalid webhook payload", hint=str(e)))
    data = as_str_dict(obj)
    if data is None:
        return Err(parse_error("webhook payload must be a JSON object"))

    repository = get_str(get_nested(data, "repository"), "full_name")
    action = get_str(data, "action")

    match event_type:
        case "pull_request":
            pull = get_nested(data, "pull_request")
            head = get_str(get_nested(pull, "head"), "ref")
            sha = get_str(pull, "merge_commit_sha")
            if action != "closed" or get_bool(pull, "merged") is not True:
                return Ok(None)
            if head is None or sha is None:
                return Ok(None)
            if repository is None:
                return Err(parse_error("pull_request payload has no repository"))
            return Ok(MergedRelease(repository=repository, branch=head, revision=Revision(sha)))

        case "repository_dispatch":
            if action != RELEASE_REQUEST_EVENT:
                return Ok(None)
            client = get_nested(data, "client_payload")
            package = get_str(client, "package")
            version = get_str(client, "version")
            branch = get_str(data, "branch")
            if repository is None or branch is None or package is None or version is None:
                return Err(
                    parse_error(
                        "release request dispatch is incomplete",
                        hint="needs repository, branch and client_payload.package/version",
                    )
                )
            return Ok(
                ReleaseRequested(
                    repository=repository, branch=branch, package=package, version=version
                )
            )

        case _:
            return Ok(None)


def github_opener(credential: str | None) -> ProjectOpener:
    """Open GitHub projects with a credential minted by the caller."""

    def open_project(slug: str, ref: str) -> Result[Project, MonorelError]:
        owner, _, name = slug.partition("/")
        backend = GitHubRepository(owner, name, credential=credential, ref=ref)
        return Project.open(backend)

    return open_project


def handle_webhook(
    *,
    secret: str,
    event_type: str,
    body: bytes,
    signature: str | None,
    open_project: ProjectOpener,
) -> Result[ReleaseRecord | ReleaseRequest | None, MonorelError]:
    """Verify, decode and act on one delivery.

    Returns:
        Ok(ReleaseRecord) for a merged release, Ok(ReleaseRequest) for a
        release request dispatch, Ok(None) for ignored deliveries, or an
        error (`permission_denied` for a bad signature).
    """
    if not verify_signature(secret, body, signature):
        log.warning("webhook_rejected", event=event_type)
        return Err(
            MonorelError(kind="permission_denied", message="webhook signature mismatch")
        )

    event = parse_event(event_type, body)
    if isinstance(event, Err):
        return event

    match event.value:
        case None:
            log.debug("webhook_ignored", event=event_type)
            return Ok(None)

        case MergedRelease(repository=slug, branch=branch, revision=revision):
            project = open_project(slug, revision.id)
            if isinstance(project, Err):
                return project
            record = handle_release_merged(project.value, branch, revision)
            if isinstance(record, Err) and record.error.kind == "invalid_input":
                # Merged from a branch outside the release prefix.
                log.debug("webhook_ignored", event=event_type, branch=branch)
                return Ok(None)
            return record

        case ReleaseRequested(repository=slug, branch=branch, package=package, version=version):
            project = open_project(slug, branch)
            if isinstance(project, Err):
                return project
            return ReleaseBuilder(project.value).request_release(package, version)
