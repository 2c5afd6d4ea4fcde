"""GitHub REST backend.

Reads go through the contents and git-trees endpoints; branch updates build
blobs, a tree and a commit, then move the ref without force so the forge
rejects a stale base. Release requests are pull requests keyed by their head
branch.
"""

from __future__ import annotations

import base64
import binascii
import re
import urllib.parse
from collections.abc import Iterable, Sequence
from time import sleep

from monorel.core.errors import MonorelError, conflict, not_found, transient
from monorel.core.result import Err, Ok, Result
from monorel.core.structured import as_obj_list, as_str_dict, get_int, get_str, get_table
from monorel.logging import get_logger

from .glob import glob_match
from .http import HttpClient, HttpError, HttpResponse, UrllibHttpClient
from .types import DispatchEvent, FileEdit, FileListing, RequestId, Revision

__all__ = ["GitHubRepository", "parse_slug"]

log = get_logger(__name__)

READ_RETRY_ATTEMPTS = 3
READ_RETRY_DELAY_SECONDS = 1.0

_API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}

_SLUG_RE = re.compile(
    r"^(?:(?:https?|ssh|git)://(?:[^@/]+@)?github\.com/|git@github\.com:)?"
    r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<name>[A-Za-z0-9_.-]+?)(?:\.git)?/?$"
)


def parse_slug(url: str) -> str | None:
    """Return `owner/name` from a GitHub URL, SSH remote or bare slug."""
    m = _SLUG_RE.match(url.strip())
    if m is None:
        return None
    return f"{m.group('owner')}/{m.group('name')}"


def _quote(path: str) -> str:
    return urllib.parse.quote(path.strip("/"), safe="/")


class GitHubRepository:
    """A repository hosted on GitHub (or GitHub Enterprise).

    Args:
        owner: Account or organisation.
        name: Repository name.
        credential: Opaque bearer token.
        host: API host; `api.github.com` or an Enterprise `host/api/v3`.
        ref: Branch, tag or sha that `current_revision` resolves (default
            branch when omitted).
        http: Injected client; defaults to urllib with the credential.
    """

    def __init__(
        self,
        owner: str,
        name: str,
        *,
        credential: str | None = None,
        host: str = "api.github.com",
        ref: str | None = None,
        http: HttpClient | None = None,
    ) -> None:
        self.owner = owner
        self.repo = name
        self.ref = ref
        self._base = f"https://{host.rstrip('/')}/repos/{owner}/{name}"
        self._http = http or UrllibHttpClient(credential, headers=_API_HEADERS)
        self._default_branch: str | None = None

    @property
    def name(self) -> str:
        return f"{self.owner}/{self.repo}"

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _send(
        self, method: str, endpoint: str, body: object | None = None
    ) -> Result[HttpResponse, HttpError]:
        url = f"{self._base}{endpoint}"
        if method != "GET":
            return self._http.request(method, url, json_body=body)

        attempts = max(1, READ_RETRY_ATTEMPTS)
        result = self._http.request(method, url)
        for attempt in range(1, attempts):
            if isinstance(result, Ok) or not result.error.is_transient:
                break
            log.debug("github_read_retry", url=url, attempt=attempt, status=result.error.status)
            sleep(READ_RETRY_DELAY_SECONDS * attempt)
            result = self._http.request(method, url)
        return result

    def _json(
        self, method: str, endpoint: str, body: object | None = None, *, path: str | None = None
    ) -> Result[dict[str, object], MonorelError]:
        result = self._send(method, endpoint, body)
        if isinstance(result, Err):
            return Err(_to_error(result.error, f"{method} {endpoint} failed", path=path))
        data = as_str_dict(result.value.data)
        if data is None:
            return Err(
                MonorelError(
                    kind="invalid_input",
                    message=f"unexpected response from {endpoint}",
                    path=path,
                )
            )
        return Ok(data)

    def _sha(self, data: dict[str, object], endpoint: str) -> Result[str, MonorelError]:
        sha = get_str(data, "sha") or get_str(get_table(data, "object") or {}, "sha")
        if sha is None:
            return Err(MonorelError(kind="invalid_input", message=f"missing sha from {endpoint}"))
        return Ok(sha)

    # -------------------------------------------------------------------------
    # RepositoryBackend
    # -------------------------------------------------------------------------

    def default_branch(self) -> Result[str, MonorelError]:
        if self._default_branch is not None:
            return Ok(self._default_branch)
        info = self._json("GET", "")
        if isinstance(info, Err):
            return info
        branch = get_str(info.value, "default_branch")
        if branch is None:
            return Err(MonorelError(kind="invalid_input", message="repository has no default branch"))
        self._default_branch = branch
        return Ok(branch)

    def current_revision(self) -> Result[Revision, MonorelError]:
        ref = self.ref
        if ref is None:
            branch = self.default_branch()
            if isinstance(branch, Err):
                return branch
            ref = branch.value
        endpoint = f"/commits/{_quote(ref)}"
        commit = self._json("GET", endpoint)
        if isinstance(commit, Err):
            return commit
        return self._sha(commit.value, endpoint).map(Revision)

    def read_file(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        endpoint = f"/contents/{_quote(path)}?ref={revision.id}"
        result = self._send("GET", endpoint)
        if isinstance(result, Err):
            return Err(_to_error(result.error, "cannot read file", path=path))

        data = as_str_dict(result.value.data)
        if data is None or get_str(data, "type") not in (None, "file"):
            return Err(not_found("not a file", path=path))

        content = data.get("content")
        if not isinstance(content, str) or (not content and (get_int(data, "size") or 0) > 0):
            # Files over 1 MB come back without inline content.
            blob_sha = get_str(data, "sha")
            if blob_sha is None:
                return Err(not_found("file has no content", path=path))
            blob = self._json("GET", f"/git/blobs/{blob_sha}", path=path)
            if isinstance(blob, Err):
                return blob
            content = blob.value.get("content")
            if not isinstance(content, str):
                return Err(not_found("file has no content", path=path))

        try:
            return Ok(base64.b64decode(content).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError) as e:
            return Err(
                MonorelError(kind="parse_error", message="cannot decode file", path=path, hint=str(e))
            )

    def list_files(self, pattern: str, revision: Revision) -> FileListing:
        def load() -> Result[Iterable[str], MonorelError]:
            tree = self._json("GET", f"/git/trees/{revision.id}?recursive=1")
            if isinstance(tree, Err):
                return tree
            if tree.value.get("truncated") is True:
                log.warning("tree_listing_truncated", repository=self.name, revision=revision.short())
            entries = as_obj_list(tree.value.get("tree")) or []
            paths: list[str] = []
            for obj in entries:
                entry = as_str_dict(obj)
                if entry is None or get_str(entry, "type") != "blob":
                    continue
                entry_path = get_str(entry, "path")
                if entry_path is not None:
                    paths.append(entry_path)
            return Ok(p for p in paths if glob_match(pattern, p))

        return FileListing(load)

    # -------------------------------------------------------------------------
    # BranchWriter
    # -------------------------------------------------------------------------

    def branch_head(self, branch: str) -> Result[Revision | None, MonorelError]:
        endpoint = f"/git/ref/heads/{_quote(branch)}"
        ref = self._json("GET", endpoint)
        if isinstance(ref, Err):
            if ref.error.kind == "not_found":
                return Ok(None)
            return ref
        return self._sha(ref.value, endpoint).map(Revision)

    def update_branch(
        self,
        branch: str,
        base_revision: Revision,
        edits: Sequence[FileEdit],
        *,
        message: str | None = None,
    ) -> Result[Revision, MonorelError]:
        head = self.branch_head(branch)
        if isinstance(head, Err):
            return head
        if head.value is not None and head.value != base_revision:
            return Err(
                conflict(
                    f"branch {branch} moved",
                    hint=f"expected {base_revision.short()}, found {head.value.short()}",
                )
            )

        commit = self._commit(base_revision, edits, message or f"Update {branch}")
        if isinstance(commit, Err):
            return commit

        if head.value is None:
            moved = self._send(
                "POST", "/git/refs", {"ref": f"refs/heads/{branch}", "sha": commit.value.id}
            )
        else:
            moved = self._send(
                "PATCH",
                f"/git/refs/heads/{_quote(branch)}",
                {"sha": commit.value.id, "force": False},
            )
        if isinstance(moved, Err):
            if moved.error.status in (409, 422):
                return Err(conflict(f"branch {branch} moved", hint=moved.error.message))
            return Err(_to_error(moved.error, f"cannot update branch {branch}"))

        log.info("branch_updated", repository=self.name, branch=branch, revision=commit.value.short())
        return Ok(commit.value)

    def _commit(
        self, base: Revision, edits: Sequence[FileEdit], message: str
    ) -> Result[Revision, MonorelError]:
        base_commit = self._json("GET", f"/git/commits/{base.id}")
        if isinstance(base_commit, Err):
            return base_commit
        base_tree = get_str(get_table(base_commit.value, "tree") or {}, "sha")
        if base_tree is None:
            return Err(MonorelError(kind="invalid_input", message=f"commit {base.short()} has no tree"))

        entries: list[dict[str, object]] = []
        for edit in edits:
            entry: dict[str, object] = {"path": edit.path.strip("/"), "mode": "100644", "type": "blob"}
            if edit.content is None:
                entry["sha"] = None
            else:
                blob = self._json(
                    "POST", "/git/blobs", {"content": edit.content, "encoding": "utf-8"}, path=edit.path
                )
                if isinstance(blob, Err):
                    return blob
                blob_sha = self._sha(blob.value, "/git/blobs")
                if isinstance(blob_sha, Err):
                    return blob_sha
                entry["sha"] = blob_sha.value
            entries.append(entry)

        tree = self._json("POST", "/git/trees", {"base_tree": base_tree, "tree": entries})
        if isinstance(tree, Err):
            return tree
        tree_sha = self._sha(tree.value, "/git/trees")
        if isinstance(tree_sha, Err):
            return tree_sha

        created = self._json(
            "POST", "/git/commits", {"message": message, "tree": tree_sha.value, "parents": [base.id]}
        )
        if isinstance(created, Err):
            return created
        return self._sha(created.value, "/git/commits").map(Revision)

    # -------------------------------------------------------------------------
    # Remote
    # -------------------------------------------------------------------------

    def open_or_update_release_request(
        self, branch: str, title: str, body: str
    ) -> Result[RequestId, MonorelError]:
        head = urllib.parse.quote(f"{self.owner}:{branch}", safe=":")
        existing = self._send("GET", f"/pulls?state=open&head={head}")
        if isinstance(existing, Err):
            return Err(_to_error(existing.error, "cannot list pull requests"))

        open_requests = as_obj_list(existing.value.data) or []
        current = as_str_dict(open_requests[0]) if open_requests else None
        if current is not None and get_int(current, "number") is not None:
            number = get_int(current, "number") or 0
            updated = self._json("PATCH", f"/pulls/{number}", {"title": title, "body": body})
            if isinstance(updated, Err):
                return updated
            log.info("release_request_updated", repository=self.name, branch=branch, number=number)
            return Ok(RequestId(number, get_str(updated.value, "html_url")))

        base = self.default_branch()
        if isinstance(base, Err):
            return base
        created = self._json(
            "POST",
            "/pulls",
            {"title": title, "head": branch, "base": base.value, "body": body},
        )
        if isinstance(created, Err):
            return created
        number = get_int(created.value, "number")
        if number is None:
            return Err(MonorelError(kind="invalid_input", message="pull request has no number"))
        log.info("release_request_opened", repository=self.name, branch=branch, number=number)
        return Ok(RequestId(number, get_str(created.value, "html_url")))

    def trigger_dispatch(self, event: DispatchEvent) -> Result[None, MonorelError]:
        result = self._send(
            "POST", "/dispatches", {"event_type": event.event_type, "client_payload": event.payload}
        )
        if isinstance(result, Err):
            return Err(_to_error(result.error, f"cannot dispatch {event.event_type}"))
        return Ok(None)


def _to_error(error: HttpError, message: str, *, path: str | None = None) -> MonorelError:
    if error.status == 404:
        return not_found(message, path=path, hint=error.message)
    if error.is_transient:
        return transient(message, path=path, hint=str(error))
    if error.status in (401, 403):
        return MonorelError(kind="permission_denied", message=message, path=path, hint=error.message)
    if error.status == 409:
        return conflict(message, path=path, hint=error.message)
    return MonorelError(kind="invalid_input", message=message, path=path, hint=str(error))
