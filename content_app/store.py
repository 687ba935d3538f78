"""
Object store interface consumed by the batch deletion engine.

Implementations talk to a remote Git object API (GitHub) or to the objects
kept in this project's own database.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

ENTRY_FILE = "file"
ENTRY_DIR = "dir"

BLOB_MODE = "100644"


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    tree_sha: str
    parents: tuple = ()


@dataclass(frozen=True)
class DirEntry:
    name: str
    path: str
    type: str

    @property
    def is_dir(self) -> bool:
        return self.type == ENTRY_DIR


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a tree creation request. sha=None deletes the path."""

    path: str
    mode: str = BLOB_MODE
    type: str = "blob"
    sha: Optional[str] = None

    def to_dict(self) -> dict:
        # sha must be sent as an explicit null for deletions
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class ObjectStore(ABC):

    @abstractmethod
    def get_branch_tip(self, branch: str) -> str:
        """Return the commit sha the branch currently points at."""

    @abstractmethod
    def get_commit(self, commit_sha: str) -> CommitInfo:
        ...

    @abstractmethod
    def list_directory_recursive(self, path: str, ref: str) -> List[str]:
        """Every file below `path` as a repo-relative path. Missing directory gives []."""

    @abstractmethod
    def list_directory_shallow(self, path: str, ref: str) -> List[DirEntry]:
        """Immediate children of `path`. Missing directory gives []."""

    @abstractmethod
    def create_tree(self, entries: List[TreeEntry], base_tree: str) -> str:
        ...

    @abstractmethod
    def create_commit(self, message: str, tree_sha: str, parents: List[str]) -> str:
        ...

    @abstractmethod
    def update_ref(self, ref_name: str, new_sha: str, expected_old: Optional[str] = None) -> None:
        """
        Point `ref_name` (e.g. "heads/main") at `new_sha`.

        When `expected_old` is given and the ref has moved away from it,
        RefConflictError is raised and the ref is left untouched.
        """
