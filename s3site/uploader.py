"""Upload a local directory tree as objects in a bucket."""

import logging
import mimetypes
import os
import stat
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, List

from .errors import ConfigError, DeployCancelled, DeployError, LocalIOError

logger = logging.getLogger(__name__)

NO_CACHE_CONTROL = "no-cache, no-store, must-revalidate"


class Uploader:
    """
    Walks ``src_path`` and puts every regular file into the bucket.

    The key of each object is the file's path relative to ``src_path``.
    Directories are walked on the calling thread; file uploads run on a
    thread pool sized by ``max_workers``, shared by the whole tree.
    """

    def __init__(self, bucket):
        self.bucket = bucket
        self.config = bucket.config

    def source_directory(self) -> str:
        src = self.config.src_path
        if not src or not os.path.isdir(src):
            raise ConfigError(f"Source directory not found: {src}")
        return src

    def upload(self) -> None:
        self.upload_directory(self.source_directory())

    def upload_directory(self, directory_path: str) -> None:
        self._run(lambda pool, futures: self._dispatch_directory(directory_path, pool, futures))

    def upload_content(self, path: str) -> None:
        self._run(lambda pool, futures: self._dispatch_content(path, pool, futures))

    def upload_file(self, file_path: str) -> None:
        if self.bucket.cancelled.is_set():
            raise DeployCancelled(f"Upload of {file_path} cancelled.")
        params = self.put_params(file_path)
        logger.info("Uploading %s -> s3://%s/%s", file_path, params["Bucket"], params["Key"])
        self.bucket.call("put_object", **params)

    def object_key(self, file_path: str) -> str:
        key = os.path.relpath(file_path, self.config.src_path).replace(os.sep, "/")
        root, ext = os.path.splitext(key)
        if ext in self.config.remove_extensions:
            key = root
        return key

    def put_params(self, file_path: str) -> dict:
        """Build the ``put_object`` arguments for one file, body included."""
        key = self.object_key(file_path)
        content_type, _ = mimetypes.guess_type(file_path)
        if content_type is None:
            content_type = "application/octet-stream"

        try:
            with open(file_path, "rb") as f:
                body = f.read()
        except OSError as e:
            raise LocalIOError(file_path, e) from e

        params = {
            "Bucket": self.bucket.name,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }

        # Served pre-expired so browsers always revalidate
        if key in self.config.no_cache:
            params["CacheControl"] = NO_CACHE_CONTROL
            params["Expires"] = datetime.now(timezone.utc)

        return params

    def _run(self, dispatch: Callable[[ThreadPoolExecutor, List[Future]], None]) -> None:
        futures: List[Future] = []
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            try:
                dispatch(pool, futures)
            except DeployError:
                for future in futures:
                    future.cancel()
                raise

            _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            if not_done:
                # a failure arrived early: drop whatever has not started yet
                for future in not_done:
                    future.cancel()
                wait(futures)

        # earliest failure in traversal order wins
        for future in futures:
            if future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                raise error

    def _dispatch_directory(self, directory_path: str, pool: ThreadPoolExecutor, futures: List[Future]) -> None:
        try:
            names = sorted(os.listdir(directory_path))
        except OSError as e:
            raise LocalIOError(directory_path, e) from e

        for name in names:
            self._dispatch_content(os.path.join(directory_path, name), pool, futures)

    def _dispatch_content(self, path: str, pool: ThreadPoolExecutor, futures: List[Future]) -> None:
        try:
            mode = os.stat(path).st_mode
        except OSError as e:
            raise LocalIOError(path, e) from e

        if not (stat.S_ISDIR(mode) or stat.S_ISREG(mode)):
            raise LocalIOError(path, OSError("not a regular file or directory"))

        if stat.S_ISDIR(mode):
            self._dispatch_directory(path, pool, futures)
        else:
            futures.append(pool.submit(self.upload_file, path))
