import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigurationError

ENV_PREFIX = "CONTENT_GIT_"


def _split_extensions(value) -> tuple:
    if isinstance(value, str):
        value = value.split(",")
    exts = []
    for ext in value:
        ext = ext.strip()
        if not ext:
            continue
        exts.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(exts)


@dataclass(frozen=True)
class RepoConfig:
    """Where the content lives and how to reach it."""

    owner: str
    repo: str
    branch: str = "main"
    content_dir: str = "src/content/blog"
    image_root: str = "public/images"
    document_extensions: tuple = (".md", ".mdx")
    api_url: str = "https://api.github.com"
    token: str | None = field(default=None, repr=False)
    timeout: float = 30.0
    max_conflict_retries: int = 3

    def __post_init__(self):
        if not self.owner or not self.repo:
            raise ConfigurationError("owner and repo are required")
        if not self.branch:
            raise ConfigurationError("branch must not be empty")
        exts = _split_extensions(self.document_extensions)
        if not exts:
            raise ConfigurationError("at least one document extension is required")
        if self.max_conflict_retries < 0:
            raise ConfigurationError("max_conflict_retries must be >= 0")
        object.__setattr__(self, "document_extensions", exts)
        object.__setattr__(self, "content_dir", self.content_dir.strip("/"))
        object.__setattr__(self, "image_root", self.image_root.strip("/"))
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

    @property
    def ref_name(self) -> str:
        return f"heads/{self.branch}"

    @classmethod
    def from_settings(cls, values: Mapping) -> "RepoConfig":
        known = cls.__dataclass_fields__.keys()
        unknown = set(values) - set(known)
        if unknown:
            raise ConfigurationError(f"unknown repository settings: {', '.join(sorted(unknown))}")
        values = {k: v for k, v in values.items() if v is not None}
        return cls(owner=values.pop("owner", ""), repo=values.pop("repo", ""), **values)

    @classmethod
    def from_env(cls, environ: Mapping | None = None) -> "RepoConfig":
        if environ is None:
            environ = os.environ
        values = {}
        for name in ("owner", "repo", "branch", "content_dir", "image_root", "api_url"):
            value = environ.get(ENV_PREFIX + name.upper())
            if value:
                values[name] = value
        exts = environ.get(ENV_PREFIX + "EXTENSIONS")
        if exts:
            values["document_extensions"] = exts
        try:
            if environ.get(ENV_PREFIX + "TIMEOUT"):
                values["timeout"] = float(environ[ENV_PREFIX + "TIMEOUT"])
            if environ.get(ENV_PREFIX + "MAX_CONFLICT_RETRIES"):
                values["max_conflict_retries"] = int(environ[ENV_PREFIX + "MAX_CONFLICT_RETRIES"])
        except ValueError as e:
            raise ConfigurationError(f"invalid numeric setting: {e}") from e
        token = environ.get("GITHUB_TOKEN")
        if token:
            values["token"] = token
        return cls(owner=values.pop("owner", ""), repo=values.pop("repo", ""), **values)
