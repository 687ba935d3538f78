import hashlib

import pytest

from content_app.config import RepoConfig
from content_app.errors import ObjectNotFoundError, ObjectStoreError, RefConflictError
from content_app.store import ENTRY_DIR, ENTRY_FILE, CommitInfo, DirEntry, ObjectStore

WRITE_CALLS = {"create_tree", "create_commit", "update_ref"}


def _sha(*parts) -> str:
    return hashlib.sha1("\0".join(map(str, parts)).encode()).hexdigest()


class MemoryObjectStore(ObjectStore):
    """
    Flat in-memory object store that records every call.

    Trees are dicts of path -> blob id. `fail` maps an operation name to the
    exception it raises; `before_update_ref` runs just before a ref update,
    which lets a test move the branch underneath a batch.
    """

    def __init__(self, files, branch="main"):
        self.trees = {}
        self.commits = {}
        self.refs = {}
        self.calls = []
        self.fail = {}
        self.before_update_ref = None
        tree = self._put_tree(dict(files))
        self.refs[branch] = self._put_commit(tree, [], "initial")

    def _put_tree(self, files) -> str:
        sha = _sha("tree", *sorted(files.items()))
        self.trees[sha] = files
        return sha

    def _put_commit(self, tree, parents, message) -> str:
        sha = _sha("commit", tree, *parents, message, len(self.commits))
        self.commits[sha] = CommitInfo(sha=sha, tree_sha=tree, parents=tuple(parents))
        return sha

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def _files_at(self, ref):
        commit = self.refs.get(ref, ref)
        if commit not in self.commits:
            raise ObjectNotFoundError("resolve", f"{ref} not found", 404)
        return self.trees[self.commits[commit].tree_sha]

    # helpers for assertions

    def files(self, branch="main"):
        return dict(self._files_at(branch))

    def call_names(self):
        return [name for name, _ in self.calls]

    def write_calls(self):
        return [name for name in self.call_names() if name in WRITE_CALLS]

    def commit_files(self, branch, changes, message="concurrent edit"):
        """Advance `branch` directly, as another writer would."""
        files = dict(self._files_at(branch))
        for path, blob in changes.items():
            if blob is None:
                files.pop(path, None)
            else:
                files[path] = blob
        tree = self._put_tree(files)
        self.refs[branch] = self._put_commit(tree, [self.refs[branch]], message)
        return self.refs[branch]

    # ObjectStore

    def get_branch_tip(self, branch):
        self._record("get_branch_tip", branch)
        if branch not in self.refs:
            raise ObjectNotFoundError("get_ref", f"branch {branch} not found", 404)
        return self.refs[branch]

    def get_commit(self, commit_sha):
        self._record("get_commit", commit_sha)
        if commit_sha not in self.commits:
            raise ObjectNotFoundError("get_commit", f"{commit_sha} not found", 404)
        return self.commits[commit_sha]

    def list_directory_recursive(self, path, ref):
        self._record("list_directory_recursive", path, ref)
        prefix = path.strip("/") + "/"
        return sorted(p for p in self._files_at(ref) if p.startswith(prefix))

    def list_directory_shallow(self, path, ref):
        self._record("list_directory_shallow", path, ref)
        prefix = path.strip("/") + "/"
        children = {}
        for p in self._files_at(ref):
            if p.startswith(prefix):
                name, sep, _ = p[len(prefix):].partition("/")
                children[name] = ENTRY_DIR if sep else ENTRY_FILE
        return [DirEntry(name=n, path=prefix + n, type=t) for n, t in sorted(children.items())]

    def create_tree(self, entries, base_tree):
        self._record("create_tree", list(entries), base_tree)
        if base_tree not in self.trees:
            raise ObjectNotFoundError("create_tree", f"tree {base_tree} not found", 404)
        files = dict(self.trees[base_tree])
        for entry in entries:
            if entry.sha is None:
                if entry.path not in files:
                    raise ObjectStoreError("create_tree", f"{entry.path} not in base tree", 422)
                del files[entry.path]
            else:
                files[entry.path] = entry.sha
        return self._put_tree(files)

    def create_commit(self, message, tree_sha, parents):
        self._record("create_commit", message, tree_sha, list(parents))
        return self._put_commit(tree_sha, parents, message)

    def update_ref(self, ref_name, new_sha, expected_old=None):
        self._record("update_ref", ref_name, new_sha, expected_old)
        if self.before_update_ref is not None:
            self.before_update_ref(self)
        branch = ref_name[len("heads/"):] if ref_name.startswith("heads/") else ref_name
        if expected_old is not None and self.refs.get(branch) != expected_old:
            raise RefConflictError("update_ref", f"{ref_name} moved", 422)
        self.refs[branch] = new_sha


@pytest.fixture
def config():
    return RepoConfig(owner="octo", repo="site", branch="main", max_conflict_retries=2)


@pytest.fixture
def make_store():
    def factory(paths, branch="main"):
        return MemoryObjectStore({p: _sha("blob", p) for p in paths}, branch=branch)
    return factory
