"""
GitHub implementation of the object store.

Uses the Git data API (refs, commits, trees) for reads and writes and the
contents API for directory listings.
"""

import logging
from typing import List, Optional

import requests
from requests.utils import quote

from .config import RepoConfig
from .errors import ObjectNotFoundError, ObjectStoreError, RefConflictError
from .store import ENTRY_DIR, ENTRY_FILE, CommitInfo, DirEntry, ObjectStore, TreeEntry

logger = logging.getLogger(__name__)


class GitHubObjectStore(ObjectStore):
    """
    Object store backed by the GitHub REST API.

    Every method performs exactly one request, except the recursive listing,
    which walks the directory one request per subdirectory, and the ref
    update, which reads the ref before and after a rejected update. Nothing
    is retried here.
    """

    def __init__(self, config: RepoConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })
        if config.token:
            self.session.headers["Authorization"] = f"Bearer {config.token}"

    def _url(self, endpoint: str) -> str:
        return f"{self.config.api_url}/repos/{self.config.owner}/{self.config.repo}/{endpoint}"

    def _request(self, operation: str, method: str, endpoint: str, extract=None, **kwargs):
        url = self._url(endpoint)
        try:
            resp = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as e:
            raise ObjectStoreError(operation, str(e)) from e

        if resp.status_code >= 400:
            detail = _error_message(resp)
            logger.debug("%s %s -> %s: %s", method, url, resp.status_code, detail)
            if resp.status_code == 404:
                raise ObjectNotFoundError(operation, detail, resp.status_code)
            raise ObjectStoreError(operation, detail, resp.status_code)

        try:
            data = resp.json()
            return extract(data) if extract is not None else data
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise ObjectStoreError(
                operation, f"malformed response: {type(e).__name__} {e}", resp.status_code
            ) from e

    def get_branch_tip(self, branch: str) -> str:
        return self._request(
            "get_ref", "GET", f"git/ref/heads/{quote(branch, safe='')}",
            extract=lambda data: data["object"]["sha"],
        )

    def get_commit(self, commit_sha: str) -> CommitInfo:
        return self._request(
            "get_commit", "GET", f"git/commits/{commit_sha}",
            extract=lambda data: CommitInfo(
                sha=data["sha"],
                tree_sha=data["tree"]["sha"],
                parents=tuple(p["sha"] for p in data.get("parents", [])),
            ),
        )

    def _contents(self, path: str, ref: str) -> List[DirEntry]:
        def entries(data):
            # a file path returns a single object, not a listing
            if not isinstance(data, list):
                return []
            return [
                DirEntry(
                    name=item["name"],
                    path=item["path"],
                    type=ENTRY_DIR if item["type"] == "dir" else ENTRY_FILE,
                )
                for item in data
                if item["type"] in ("dir", "file")
            ]

        try:
            return self._request(
                "list_directory", "GET", f"contents/{quote(path.strip('/'), safe='/')}",
                extract=entries, params={"ref": ref},
            )
        except ObjectNotFoundError:
            return []

    def list_directory_shallow(self, path: str, ref: str) -> List[DirEntry]:
        return self._contents(path, ref)

    def list_directory_recursive(self, path: str, ref: str) -> List[str]:
        files = []
        pending = [path]
        while pending:
            current = pending.pop()
            for entry in self._contents(current, ref):
                if entry.is_dir:
                    pending.append(entry.path)
                else:
                    files.append(entry.path)
        return sorted(files)

    def create_tree(self, entries: List[TreeEntry], base_tree: str) -> str:
        payload = {"base_tree": base_tree, "tree": [e.to_dict() for e in entries]}
        return self._request("create_tree", "POST", "git/trees", json=payload,
                             extract=lambda data: data["sha"])

    def create_commit(self, message: str, tree_sha: str, parents: List[str]) -> str:
        payload = {"message": message, "tree": tree_sha, "parents": list(parents)}
        return self._request("create_commit", "POST", "git/commits", json=payload,
                             extract=lambda data: data["sha"])

    def update_ref(self, ref_name: str, new_sha: str, expected_old: Optional[str] = None) -> None:
        branch = ref_name.split("/", 1)[1] if ref_name.startswith("heads/") else ref_name
        if expected_old is not None:
            current = self.get_branch_tip(branch)
            if current != expected_old:
                raise RefConflictError(
                    "update_ref", f"{ref_name} moved from {expected_old[:7]} to {current[:7]}"
                )
        try:
            # force=False: GitHub refuses anything that is not a fast-forward,
            # which also covers a ref moving after the check above
            self._request("update_ref", "PATCH", f"git/refs/{ref_name}",
                          json={"sha": new_sha, "force": False})
        except ObjectStoreError as e:
            if e.status != 422 or isinstance(e, RefConflictError):
                raise
            # 422 also covers protected branches and unknown objects
            if "fast forward" in e.detail.lower():
                raise RefConflictError(e.operation, e.detail, e.status) from e
            if expected_old is not None and self.get_branch_tip(branch) != expected_old:
                raise RefConflictError(e.operation, e.detail, e.status) from e
            raise


def _error_message(resp) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or resp.reason or "request failed"
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return resp.reason or "request failed"
