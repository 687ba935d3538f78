"""
Object store kept in this project's database.

Objects use the same encoding as the push endpoint receives them:
"<type> <size>\\0<body>", addressed by the sha1 of those bytes.
"""

import logging
from typing import List, Optional

from django.db import transaction

from .config import RepoConfig
from .errors import ObjectNotFoundError, ObjectStoreError, RefConflictError
from .helpers import hash_object, load_object, parse_commit, parse_tree, serialize_commit, serialize_tree
from .models import GitObject, Reference, Repository
from .store import ENTRY_DIR, ENTRY_FILE, CommitInfo, DirEntry, ObjectStore, TreeEntry

logger = logging.getLogger(__name__)


class DjangoObjectStore(ObjectStore):

    def __init__(self, config: RepoConfig):
        self.config = config

    @property
    def repository(self) -> Repository:
        try:
            return Repository.objects.get(name=self.config.repo)
        except Repository.DoesNotExist:
            raise ObjectNotFoundError("get_repository", f"repository {self.config.repo!r} does not exist") from None

    def _read(self, sha: str, expected_type: str, operation: str) -> bytes:
        obj = GitObject.objects.filter(repo__name=self.config.repo, sha1=sha).first()
        if obj is None:
            raise ObjectNotFoundError(operation, f"{expected_type} {sha} not found")
        obj_type, body = load_object(obj)
        if obj_type != expected_type:
            raise ObjectStoreError(operation, f"{sha} is a {obj_type}, not a {expected_type}")
        return body

    def _write(self, body: bytes, obj_type: str) -> str:
        sha, raw = hash_object(body, obj_type)
        GitObject.objects.get_or_create(
            repo=self.repository, sha1=sha, defaults={"type": obj_type, "data": raw}
        )
        return sha

    def _read_tree(self, sha: str, operation: str):
        return parse_tree(self._read(sha, "tree", operation))

    def _resolve(self, ref: str, operation: str) -> str:
        """Branch name or commit sha -> commit sha."""
        reference = Reference.objects.filter(
            repo__name=self.config.repo, name=Reference.qualify(f"heads/{ref}")
        ).first()
        if reference is not None:
            return reference.commit_hash
        self._read(ref, "commit", operation)
        return ref

    def _subtree(self, ref: str, path: str, operation: str) -> Optional[str]:
        commit = self.get_commit(self._resolve(ref, operation))
        tree_sha = commit.tree_sha
        for part in [p for p in path.strip("/").split("/") if p]:
            match = next(
                (e for e in self._read_tree(tree_sha, operation) if e["name"] == part),
                None,
            )
            if match is None or match["type"] != "tree":
                return None
            tree_sha = match["sha"]
        return tree_sha

    def get_branch_tip(self, branch: str) -> str:
        reference = Reference.objects.filter(
            repo__name=self.config.repo, name=Reference.qualify(f"heads/{branch}")
        ).first()
        if reference is None:
            raise ObjectNotFoundError("get_ref", f"branch {branch!r} not found")
        return reference.commit_hash

    def get_commit(self, commit_sha: str) -> CommitInfo:
        info = parse_commit(self._read(commit_sha, "commit", "get_commit"))
        return CommitInfo(sha=commit_sha, tree_sha=info["tree"], parents=tuple(info["parents"]))

    def list_directory_shallow(self, path: str, ref: str) -> List[DirEntry]:
        tree_sha = self._subtree(ref, path, "list_directory")
        if tree_sha is None:
            return []
        prefix = path.strip("/")
        entries = []
        for e in self._read_tree(tree_sha, "list_directory"):
            full = f"{prefix}/{e['name']}" if prefix else e["name"]
            kind = ENTRY_DIR if e["type"] == "tree" else ENTRY_FILE
            entries.append(DirEntry(name=e["name"], path=full, type=kind))
        return entries

    def list_directory_recursive(self, path: str, ref: str) -> List[str]:
        tree_sha = self._subtree(ref, path, "list_directory")
        if tree_sha is None:
            return []
        files = []
        pending = [(tree_sha, path.strip("/"))]
        while pending:
            sha, prefix = pending.pop()
            for e in self._read_tree(sha, "list_directory"):
                full = f"{prefix}/{e['name']}" if prefix else e["name"]
                if e["type"] == "tree":
                    pending.append((e["sha"], full))
                else:
                    files.append(full)
        return sorted(files)

    def create_tree(self, entries: List[TreeEntry], base_tree: str) -> str:
        changes = {}
        for entry in entries:
            path = entry.path.strip("/")
            if not path:
                raise ObjectStoreError("create_tree", "empty path in tree entry")
            changes[path] = entry
        with transaction.atomic():
            tree_sha = self._apply(base_tree, changes, "")
            if tree_sha is None:
                tree_sha = self._write(serialize_tree([]), "tree")
        return tree_sha

    def _apply(self, tree_sha: Optional[str], changes: dict, prefix: str) -> Optional[str]:
        """Return the sha of `tree_sha` with `changes` applied, None if it ends up empty."""
        entries = {}
        if tree_sha is not None:
            entries = {e["name"]: e for e in self._read_tree(tree_sha, "create_tree")}

        nested = {}
        for rel, entry in changes.items():
            head, sep, rest = rel.partition("/")
            if sep:
                nested.setdefault(head, {})[rest] = entry
            elif entry.sha is None:
                if head not in entries or entries[head]["type"] == "tree":
                    raise ObjectStoreError("create_tree", f"{prefix}{head} is not a file in the base tree")
                del entries[head]
            else:
                if not GitObject.objects.filter(repo__name=self.config.repo, sha1=entry.sha).exists():
                    raise ObjectNotFoundError("create_tree", f"{entry.type} {entry.sha} not found")
                entries[head] = {"type": entry.type, "sha": entry.sha, "name": head}

        for name, sub_changes in nested.items():
            current = entries.get(name)
            if current is not None and current["type"] != "tree":
                raise ObjectStoreError("create_tree", f"{prefix}{name} is not a directory")
            new_sha = self._apply(current["sha"] if current else None, sub_changes, f"{prefix}{name}/")
            if new_sha is None:
                entries.pop(name, None)
            else:
                entries[name] = {"type": "tree", "sha": new_sha, "name": name}

        if not entries:
            return None
        return self._write(serialize_tree(entries.values()), "tree")

    def create_commit(self, message: str, tree_sha: str, parents: List[str]) -> str:
        self._read(tree_sha, "tree", "create_commit")
        for parent in parents:
            self._read(parent, "commit", "create_commit")
        return self._write(serialize_commit(tree_sha, parents, message), "commit")

    def update_ref(self, ref_name: str, new_sha: str, expected_old: Optional[str] = None) -> None:
        self._read(new_sha, "commit", "update_ref")
        name = Reference.qualify(ref_name)
        with transaction.atomic():
            reference = (
                Reference.objects.select_for_update()
                .filter(repo__name=self.config.repo, name=name)
                .first()
            )
            if reference is None:
                if expected_old is not None:
                    raise RefConflictError("update_ref", f"{name} does not exist")
                Reference.objects.create(repo=self.repository, name=name, commit_hash=new_sha)
            else:
                if expected_old is not None and reference.commit_hash != expected_old:
                    raise RefConflictError(
                        "update_ref",
                        f"{name} moved from {expected_old[:7]} to {reference.commit_hash[:7]}",
                    )
                reference.commit_hash = new_sha
                reference.save(update_fields=["commit_hash", "updated_at"])
        logger.info("%s/%s: %s -> %s", self.config.repo, name, expected_old, new_sha)
