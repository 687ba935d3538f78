"""The database-backed object store and the batch engine running on it."""

import pytest

from content_app.batch_delete import batch_delete
from content_app.config import RepoConfig
from content_app.errors import BatchDeleteError, ObjectNotFoundError, ObjectStoreError, RefConflictError
from content_app.helpers import hash_object, load_object, serialize_tree
from content_app.local_store import DjangoObjectStore
from content_app.models import GitObject, Reference, Repository
from content_app.store import TreeEntry

pytestmark = pytest.mark.django_db

FILES = {
    "README.md": b"# site\n",
    "src/content/blog/Hello-World.mdx": b"hello",
    "src/content/blog/other.md": b"other",
    "public/images/HELLO-WORLD/cover.png": b"png",
    "public/images/hello-world-2/x.png": b"png2",
}


def seed(repo_name="site", files=FILES):
    """Write blobs, trees and an initial commit for `files`; return the store."""
    repo = Repository.objects.create(name=repo_name)
    store = DjangoObjectStore(RepoConfig(owner="local", repo=repo_name))
    entries = []
    for path, content in files.items():
        sha, raw = hash_object(content, "blob")
        GitObject.objects.get_or_create(repo=repo, sha1=sha, defaults={"type": "blob", "data": raw})
        entries.append(TreeEntry(path=path, sha=sha))
    empty_sha, raw = hash_object(serialize_tree([]), "tree")
    GitObject.objects.create(repo=repo, sha1=empty_sha, type="tree", data=raw)
    tree = store.create_tree(entries, empty_sha)
    commit = store.create_commit("initial", tree, [])
    store.update_ref("heads/main", commit)
    return store


def test_listings_follow_nested_trees():
    store = seed()
    assert store.list_directory_recursive("src/content/blog", "main") == [
        "src/content/blog/Hello-World.mdx", "src/content/blog/other.md",
    ]
    shallow = store.list_directory_shallow("public/images", "main")
    assert [(e.name, e.path, e.type) for e in shallow] == [
        ("HELLO-WORLD", "public/images/HELLO-WORLD", "dir"),
        ("hello-world-2", "public/images/hello-world-2", "dir"),
    ]
    assert store.list_directory_recursive("missing/dir", "main") == []


def test_listing_by_commit_sha():
    store = seed()
    tip = store.get_branch_tip("main")
    assert "README.md" in store.list_directory_recursive("", tip)


def test_create_tree_drops_emptied_directories_and_keeps_base():
    store = seed()
    tip = store.get_branch_tip("main")
    base = store.get_commit(tip).tree_sha
    new_tree = store.create_tree([TreeEntry("public/images/HELLO-WORLD/cover.png")], base)
    commit = store.create_commit("drop cover", new_tree, [tip])

    images = store.list_directory_shallow("public/images", commit)
    assert [e.name for e in images] == ["hello-world-2"]
    # base tree and branch are untouched
    assert store.get_branch_tip("main") == tip
    assert "public/images/HELLO-WORLD/cover.png" in store.list_directory_recursive("public", tip)
    assert load_object(GitObject.objects.get(sha1=new_tree))[0] == "tree"


def test_deleting_unknown_path_fails():
    store = seed()
    base = store.get_commit(store.get_branch_tip("main")).tree_sha
    with pytest.raises(ObjectStoreError):
        store.create_tree([TreeEntry("src/content/blog/nope.md")], base)


def test_unknown_base_tree():
    store = seed()
    with pytest.raises(ObjectNotFoundError):
        store.create_tree([TreeEntry("README.md")], "0" * 40)


def test_update_ref_compare_and_swap():
    store = seed()
    tip = store.get_branch_tip("main")
    tree = store.get_commit(tip).tree_sha
    first = store.create_commit("first", tree, [tip])
    second = store.create_commit("second", tree, [tip])

    store.update_ref("heads/main", first, expected_old=tip)
    with pytest.raises(RefConflictError):
        store.update_ref("heads/main", second, expected_old=tip)
    assert Reference.objects.get(name="refs/heads/main").commit_hash == first


def test_batch_delete_end_to_end():
    store = seed()
    config = RepoConfig(owner="local", repo="site")
    tip = store.get_branch_tip("main")
    result = batch_delete(store, config, ["hello-world", "ghost"])

    assert sorted(result.deleted_paths) == [
        "public/images/HELLO-WORLD/cover.png", "src/content/blog/Hello-World.mdx",
    ]
    assert result.unmatched == ["ghost"]
    remaining = store.list_directory_recursive("", "main")
    assert remaining == [
        "README.md", "public/images/hello-world-2/x.png", "src/content/blog/other.md",
    ]
    assert store.get_commit(result.commit_sha).parents == (tip,)
    assert store.get_branch_tip("main") == result.commit_sha


def test_failed_batch_leaves_listing_identical():
    store = seed()
    config = RepoConfig(owner="local", repo="site")
    before = store.list_directory_recursive("", "main")

    def broken_commit(message, tree_sha, parents):
        raise ObjectStoreError("create_commit", "boom")
    store.create_commit = broken_commit

    with pytest.raises(BatchDeleteError):
        batch_delete(store, config, ["hello-world"])
    assert store.list_directory_recursive("", "main") == before
