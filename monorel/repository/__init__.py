"""Repository backends and the per-revision file cache."""

from .cache import FileCache
from .filesystem import WORKTREE, FileSystemRepository
from .git import WorkingCopyRepository
from .github import GitHubRepository
from .memory import MemoryRepository
from .open import open_repository
from .protocol import BranchWriter, Remote, RepositoryBackend, as_branch_writer, as_remote
from .types import DispatchEvent, FileEdit, FileListing, RequestId, Revision

__all__ = [
    "WORKTREE",
    "BranchWriter",
    "DispatchEvent",
    "FileCache",
    "FileEdit",
    "FileListing",
    "FileSystemRepository",
    "GitHubRepository",
    "MemoryRepository",
    "Remote",
    "RepositoryBackend",
    "RequestId",
    "Revision",
    "WorkingCopyRepository",
    "as_branch_writer",
    "as_remote",
    "open_repository",
]
