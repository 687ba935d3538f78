"""Exceptions raised by content_app."""


class ContentGitError(Exception):
    """Base class for every error raised by content_app."""


class ConfigurationError(ContentGitError):
    pass


class InvalidSlugsError(ContentGitError):
    """The slug list was rejected before any call to the object store."""


class ObjectStoreError(ContentGitError):
    """A call to the object store failed."""

    def __init__(self, operation: str, detail: str, status: int | None = None):
        self.operation = operation
        self.detail = detail
        self.status = status
        msg = f"{operation} failed: {detail}"
        if status is not None:
            msg += f" (HTTP {status})"
        super().__init__(msg)


class ObjectNotFoundError(ObjectStoreError):
    pass


class RefConflictError(ObjectStoreError):
    """The ref no longer points at the commit the caller expected."""


class BatchDeleteError(ContentGitError):
    """
    A batch deletion failed.

    `stage` is the last pipeline stage that completed before the failure and
    `cause` is the error raised by the object store, unchanged.
    """

    def __init__(self, stage, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"batch delete failed after {stage.value}: {cause}")

    @property
    def orphaned(self) -> bool:
        # a tree or commit exists in the store but no ref reaches it
        return self.stage.value in ("TREE_CREATED", "COMMIT_CREATED")
