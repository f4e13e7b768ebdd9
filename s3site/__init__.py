"""Deploy a local directory as a public static website on S3."""

from typing import Mapping, Optional

from .bucket import Bucket, DeployState
from .config import DeployConfig, bucket_name
from .errors import (
    ConfigError,
    ConsistencyTimeout,
    DeployCancelled,
    DeployError,
    LocalIOError,
    RemoteError,
)

__version__ = "0.1.0"


def deploy(config: DeployConfig, credentials: Optional[Mapping] = None) -> Bucket:
    """Deploy ``config.src_path`` and return the bucket it now lives in."""
    bucket = Bucket(config, credentials)
    bucket.deploy()
    return bucket


__all__ = [
    "Bucket",
    "ConfigError",
    "ConsistencyTimeout",
    "DeployCancelled",
    "DeployConfig",
    "DeployError",
    "DeployState",
    "LocalIOError",
    "RemoteError",
    "bucket_name",
    "deploy",
]
