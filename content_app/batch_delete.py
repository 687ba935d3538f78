"""
Batch deletion of content items.

A content item ("slug") is one document under the content directory plus an
optional image directory of the same name under the image root. A batch
removes every file of every slug with a single tree, a single commit and a
single ref update, so readers of the branch see all of the deletions or none
of them.

Pipeline, one pass per attempt:

    REF_READ -> LISTING -> RESOLVING -> SET_BUILT
             -> TREE_CREATED -> COMMIT_CREATED -> REF_ADVANCED

The ref update carries the tip read at REF_READ as its expected previous
value. If the branch moved in the meantime the whole pass is repeated on the
new tip, at most `config.max_conflict_retries` times.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import RepoConfig
from .errors import BatchDeleteError, InvalidSlugsError, ObjectStoreError, RefConflictError
from .store import BLOB_MODE, DirEntry, ObjectStore, TreeEntry

logger = logging.getLogger(__name__)


class Stage(enum.Enum):
    INIT = "INIT"
    REF_READ = "REF_READ"
    LISTING = "LISTING"
    RESOLVING = "RESOLVING"
    SET_BUILT = "SET_BUILT"
    TREE_CREATED = "TREE_CREATED"
    COMMIT_CREATED = "COMMIT_CREATED"
    REF_ADVANCED = "REF_ADVANCED"


ProgressCallback = Callable[[Stage, str], None]


@dataclass(frozen=True)
class ResolvedSlug:
    slug: str
    document_path: Optional[str] = None
    image_dir: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.document_path is not None or self.image_dir is not None


@dataclass
class BatchDeleteResult:
    slugs: List[str]
    deleted_paths: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    message: Optional[str] = None
    tree_sha: Optional[str] = None
    commit_sha: Optional[str] = None
    attempts: int = 1

    @property
    def count(self) -> int:
        return len(self.deleted_paths)

    @property
    def noop(self) -> bool:
        return self.commit_sha is None


def build_path_index(paths: Iterable[str]) -> Dict[str, str]:
    """Map lowercased path -> actual path. The first spelling seen wins."""
    index = {}
    for path in paths:
        index.setdefault(path.lower(), path)
    return index


def resolve_slug(
    slug: str,
    document_index: Dict[str, str],
    image_entries: Sequence[DirEntry],
    config: RepoConfig,
) -> ResolvedSlug:
    document_path = None
    for ext in config.document_extensions:
        candidate = f"{config.content_dir}/{slug}{ext}".lower()
        if candidate in document_index:
            document_path = document_index[candidate]
            break

    wanted = slug.lower()
    image_dir = next(
        (e.path for e in image_entries if e.is_dir and e.name.lower() == wanted),
        None,
    )
    return ResolvedSlug(slug, document_path, image_dir)


def build_deletion_set(
    resolved: Iterable[ResolvedSlug],
    list_files: Callable[[str], List[str]],
) -> List[str]:
    """
    Flatten resolved slugs into the paths to delete.

    `list_files` is called once per distinct image directory. Order is
    preserved and a path reachable from two slugs appears once.
    """
    paths = {}
    listed = set()
    for item in resolved:
        if item.image_dir is not None and item.image_dir not in listed:
            listed.add(item.image_dir)
            for path in list_files(item.image_dir):
                paths.setdefault(path, None)
        if item.document_path is not None:
            paths.setdefault(item.document_path, None)
    return list(paths)


def commit_message(slugs: Sequence[str]) -> str:
    if len(slugs) == 1:
        return f"删除文章: {slugs[0]}"
    return f"批量删除文章: {len(slugs)} 篇"


def compose_commit(
    store: ObjectStore,
    paths: Sequence[str],
    base_tree: str,
    parent: str,
    message: str,
    on_tree: Optional[Callable[[str], None]] = None,
):
    """Create the tree without `paths` on top of `base_tree`, then its commit. Returns (tree, commit)."""
    entries = [TreeEntry(path=path, mode=BLOB_MODE, type="blob", sha=None) for path in paths]
    tree_sha = store.create_tree(entries, base_tree)
    if on_tree is not None:
        on_tree(tree_sha)
    commit_sha = store.create_commit(message, tree_sha, [parent])
    return tree_sha, commit_sha


def advance_ref(store: ObjectStore, config: RepoConfig, new_commit: str, expected_old: str) -> None:
    store.update_ref(config.ref_name, new_commit, expected_old=expected_old)


def validate_slugs(slugs) -> List[str]:
    if isinstance(slugs, str) or not slugs:
        raise InvalidSlugsError("at least one slug is required")
    cleaned = []
    for slug in slugs:
        if not isinstance(slug, str) or not slug.strip():
            raise InvalidSlugsError(f"invalid slug: {slug!r}")
        slug = slug.strip()
        if "/" in slug or slug in (".", ".."):
            raise InvalidSlugsError(f"slug must be a single path component: {slug!r}")
        cleaned.append(slug)
    return cleaned


class BatchDeleter:

    def __init__(self, store: ObjectStore, config: RepoConfig, on_progress: Optional[ProgressCallback] = None):
        self.store = store
        self.config = config
        self.on_progress = on_progress
        self.stage = Stage.INIT

    def _reached(self, stage: Stage, message: str) -> None:
        self.stage = stage
        logger.debug("batch delete reached %s: %s", stage.value, message)
        if self.on_progress is not None:
            self.on_progress(stage, message)

    def run(self, slugs: Sequence[str]) -> BatchDeleteResult:
        slugs = validate_slugs(slugs)
        attempts = self.config.max_conflict_retries + 1
        attempt = 0

        while True:
            attempt += 1
            self.stage = Stage.INIT
            try:
                result = self._attempt(slugs)
            except RefConflictError as e:
                if attempt == attempts:
                    logger.error("giving up after %d ref conflicts: %s", attempt, e)
                    raise BatchDeleteError(self.stage, e) from e
                logger.warning(
                    "branch %s moved during batch (attempt %d/%d), rebuilding: %s",
                    self.config.branch, attempt, attempts, e,
                )
                continue
            except ObjectStoreError as e:
                logger.exception("batch delete failed after %s", self.stage.value)
                raise BatchDeleteError(self.stage, e) from e
            result.attempts = attempt
            return result

    def _attempt(self, slugs: List[str]) -> BatchDeleteResult:
        store, config = self.store, self.config
        result = BatchDeleteResult(slugs=list(slugs))

        tip = store.get_branch_tip(config.branch)
        base_tree = store.get_commit(tip).tree_sha
        self._reached(Stage.REF_READ, f"{config.branch} at {tip[:7]}")

        # list against the commit, not the branch, so every read sees one snapshot
        documents = store.list_directory_recursive(config.content_dir, tip)
        image_entries = store.list_directory_shallow(config.image_root, tip)
        self._reached(Stage.LISTING, f"{len(documents)} documents, {len(image_entries)} image entries")

        document_index = build_path_index(documents)
        resolved = []
        for slug in slugs:
            item = resolve_slug(slug, document_index, image_entries, config)
            if not item.matched:
                logger.warning("no document or image directory found for %r", slug)
                result.unmatched.append(slug)
            elif item.document_path is None:
                logger.warning("no document found for %r, deleting its images only", slug)
            resolved.append(item)
        self._reached(Stage.RESOLVING, f"{len(slugs) - len(result.unmatched)}/{len(slugs)} slugs matched")

        paths = build_deletion_set(resolved, lambda d: store.list_directory_recursive(d, tip))
        self._reached(Stage.SET_BUILT, f"{len(paths)} paths to delete")
        if not paths:
            logger.info("nothing to delete for %s", ", ".join(slugs))
            return result

        result.message = commit_message(slugs)
        result.tree_sha, result.commit_sha = compose_commit(
            store, paths, base_tree, tip, result.message,
            on_tree=lambda sha: self._reached(Stage.TREE_CREATED, sha),
        )
        self._reached(Stage.COMMIT_CREATED, result.commit_sha)

        try:
            advance_ref(store, config, result.commit_sha, expected_old=tip)
        except ObjectStoreError:
            logger.warning("commit %s left dangling", result.commit_sha)
            raise
        self._reached(Stage.REF_ADVANCED, f"{config.branch} -> {result.commit_sha[:7]}")

        result.deleted_paths = paths
        logger.info("deleted %d paths for %d slugs in %s", len(paths), len(slugs), result.commit_sha)
        return result


def batch_delete(
    store: ObjectStore,
    config: RepoConfig,
    slugs: Sequence[str],
    on_progress: Optional[ProgressCallback] = None,
) -> BatchDeleteResult:
    return BatchDeleter(store, config, on_progress).run(slugs)
