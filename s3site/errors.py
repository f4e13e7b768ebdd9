"""Exceptions raised while deploying a site."""


class DeployError(Exception):
    """Base class for every error a deploy can surface."""


class ConfigError(DeployError):
    pass


class RemoteError(DeployError):
    """
    A request to the storage service failed.

    Wraps both service answers (``ClientError``, which carries a code and an
    HTTP status) and client-side failures such as missing credentials or an
    unreachable endpoint (``BotoCoreError``, which carries neither).
    """

    def __init__(self, operation: str, bucket: str, error: Exception):
        response = getattr(error, "response", None) or {}
        self.operation = operation
        self.bucket = bucket
        self.code = response.get("Error", {}).get("Code", "")
        self.status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        super().__init__(f"S3 {operation} failed bucket={bucket}: {error}")


class LocalIOError(DeployError):
    def __init__(self, path: str, error: OSError):
        self.path = path
        super().__init__(f"Could not read {path}: {error}")


class ConsistencyTimeout(DeployError):
    pass


class DeployCancelled(DeployError):
    pass
