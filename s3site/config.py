"""Deploy configuration.

Values come from the caller, falling back to ``S3SITE_*`` environment
variables so the same settings work from a shell, CI, or Python code.
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from .errors import ConfigError

DEFAULT_REGION = "us-east-1"
DEFAULT_INDEX_DOCUMENT = "index.html"


def _split_csv(value: str) -> List[str]:
    value = (value or "").strip()
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_number(name: str, default, cast=float):
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _as_iterable(value) -> Iterable[str]:
    if isinstance(value, str):
        return _split_csv(value)
    return value


def bucket_name(prefix: str, env: str, name: str) -> str:
    """Join the non-empty name parts as ``prefix-env-name``."""
    return "-".join(part for part in (prefix, env, name) if part)


@dataclass(frozen=True)
class DeployConfig:
    name: str
    env: str = ""
    prefix: str = ""
    region: str = DEFAULT_REGION
    src_path: Optional[str] = None
    index_document: str = DEFAULT_INDEX_DOCUMENT
    error_document: Optional[str] = None
    remove_extensions: FrozenSet[str] = field(default_factory=frozenset)
    no_cache: FrozenSet[str] = field(default_factory=frozenset)
    endpoint_url: Optional[str] = None

    # Upload fan-out width, shared by the whole tree
    max_workers: int = 8

    # Seconds to wait for the bucket to appear or disappear after create/delete
    consistency_timeout: float = 60.0
    consistency_interval: float = 2.0

    # Whole-deploy deadline in seconds; None disables it
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.name:
            raise ConfigError("A site name is required.")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")

        # frozen: normalise through object.__setattr__
        if self.src_path:
            object.__setattr__(self, "src_path", os.path.abspath(self.src_path))
        object.__setattr__(
            self,
            "remove_extensions",
            frozenset(ext if ext.startswith(".") else f".{ext}" for ext in _as_iterable(self.remove_extensions)),
        )
        object.__setattr__(self, "no_cache", frozenset(_as_iterable(self.no_cache)))

    @property
    def bucket_name(self) -> str:
        return bucket_name(self.prefix, self.env, self.name)

    @classmethod
    def from_env(cls, **overrides) -> "DeployConfig":
        """
        Build a config from ``S3SITE_*`` environment variables.

        Keyword arguments that are not None take priority over the environment.
        """
        values = {
            "name": os.getenv("S3SITE_NAME", ""),
            "env": os.getenv("S3SITE_ENV", ""),
            "prefix": os.getenv("S3SITE_PREFIX", ""),
            "region": os.getenv("S3SITE_REGION", DEFAULT_REGION),
            "src_path": os.getenv("S3SITE_SRC") or None,
            "index_document": os.getenv("S3SITE_INDEX_DOCUMENT", DEFAULT_INDEX_DOCUMENT),
            "error_document": os.getenv("S3SITE_ERROR_DOCUMENT") or None,
            "remove_extensions": _split_csv(os.getenv("S3SITE_REMOVE_EXTENSIONS", "")),
            "no_cache": _split_csv(os.getenv("S3SITE_NO_CACHE", "")),
            "endpoint_url": os.getenv("S3SITE_ENDPOINT_URL") or None,
            "max_workers": _env_number("S3SITE_MAX_WORKERS", 8, int),
            "consistency_timeout": _env_number("S3SITE_CONSISTENCY_TIMEOUT", 60.0),
            "consistency_interval": _env_number("S3SITE_CONSISTENCY_INTERVAL", 2.0),
            "timeout": _env_number("S3SITE_TIMEOUT", None),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
