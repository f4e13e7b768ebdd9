"""Lifecycle of the bucket that hosts a site: destroy, create, upload."""

import copy
import enum
import json
import logging
import threading
import time
from typing import Callable, Iterable, List, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import DeployConfig
from .errors import ConsistencyTimeout, DeployCancelled, RemoteError
from .uploader import Uploader

logger = logging.getLogger(__name__)

# delete_objects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000

NOT_FOUND_CODES = ("404", "NoSuchBucket", "NotFound")

PUBLIC_READ_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Sid": "PublicReadGetObject",
            "Effect": "Allow",
            "Principal": "*",
            "Action": "s3:GetObject",
            "Resource": "arn:aws:s3:::",
        }
    ],
}


class DeployState(enum.Enum):
    IDLE = "idle"
    DESTROYING = "destroying"
    CREATING = "creating"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


def s3_client(config: DeployConfig, credentials: Optional[Mapping] = None, session=None):
    """
    Build the S3 client for a deploy.

    ``credentials`` is passed straight to ``boto3.Session`` (keys, token or
    ``profile_name``); a ready ``session`` takes precedence.
    """
    if session is None:
        session = boto3.Session(**dict(credentials or {}))
    return session.client("s3", region_name=config.region, endpoint_url=config.endpoint_url)


class Bucket:
    """
    One remote bucket, named from the config's prefix, env and name.

    The service is the only source of truth: nothing about the bucket is
    cached locally, every check goes over the network.
    """

    def __init__(self, config: DeployConfig, credentials: Optional[Mapping] = None, session=None, client=None):
        self.config = config
        self.name = config.bucket_name
        self.s3 = client if client is not None else s3_client(config, credentials, session)
        self.state = DeployState.IDLE
        self.cancelled = threading.Event()
        self.uploader = Uploader(self)

    @property
    def website_url(self) -> str:
        return f"http://{self.name}.s3-website-{self.config.region}.amazonaws.com"

    def call(self, operation: str, **params):
        """Issue one S3 request against this bucket."""
        params.setdefault("Bucket", self.name)
        return self._send(operation, lambda: getattr(self.s3, operation)(**params))

    def _send(self, operation: str, request: Callable):
        if self.cancelled.is_set():
            raise DeployCancelled(f"Deploy of {self.name} cancelled before {operation}.")
        logger.debug("S3 %s bucket=%s", operation, self.name)
        try:
            return request()
        except (ClientError, BotoCoreError) as e:
            raise RemoteError(operation, self.name, e) from e

    def cancel(self) -> None:
        """Stop before the next remote call; pending uploads are skipped."""
        logger.warning("Cancelling deploy of %s", self.name)
        self.cancelled.set()

    # -- deploy -------------------------------------------------------------

    def deploy(self) -> None:
        """
        Replace whatever is in the bucket with the contents of ``src_path``.

        Runs destroy, create and upload in order. The first failure stops the
        deploy and is raised as is; completed steps are not rolled back.
        """
        timer = None
        if self.config.timeout:
            timer = threading.Timer(self.config.timeout, self.cancel)
            timer.daemon = True
            timer.start()

        steps = (
            (DeployState.DESTROYING, self.destroy),
            (DeployState.CREATING, self.create),
            (DeployState.UPLOADING, self.upload),
        )
        try:
            # fail before touching the bucket when there is nothing to upload
            self.uploader.source_directory()
            for state, step in steps:
                self.state = state
                logger.info("Deploy %s: %s", self.name, state.value)
                step()
        except Exception:
            self.state = DeployState.FAILED
            raise
        finally:
            if timer is not None:
                timer.cancel()

        self.state = DeployState.DONE
        logger.info("Deploy %s: done, site at %s", self.name, self.website_url)

    # -- destroy ------------------------------------------------------------

    def destroy(self) -> None:
        """Remove the bucket and everything in it. A missing bucket is fine."""
        if not self.verify_existence():
            logger.info("Bucket %s does not exist, nothing to destroy.", self.name)
            return

        self.remove_contents(self.list_contents())
        self.remove_bucket()
        self.wait_for_existence(False)

    def verify_existence(self) -> bool:
        try:
            self.call("head_bucket")
        except RemoteError as e:
            if e.status == 404 or e.code in NOT_FOUND_CODES:
                return False
            raise
        return True

    def list_contents(self) -> List[dict]:
        """Every object in the bucket, across all listing pages."""

        def all_pages():
            contents = []
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.name):
                contents.extend(page.get("Contents", []))
            return contents

        contents = self._send("list_objects_v2", all_pages)
        logger.debug("Bucket %s holds %d objects", self.name, len(contents))
        return contents

    def remove_contents(self, contents: Iterable[dict]) -> None:
        keys = [{"Key": item["Key"]} for item in contents]
        if not keys:
            return

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            resp = self.call("delete_objects", Delete={"Objects": batch, "Quiet": True})

            errors = resp.get("Errors") or []
            if errors:
                first = errors[0]
                raise RemoteError(
                    "delete_objects",
                    self.name,
                    ClientError(
                        {"Error": {"Code": first.get("Code", ""), "Message": f"{first.get('Key')}: {first.get('Message', '')}"}},
                        "DeleteObjects",
                    ),
                )
        logger.info("Removed %d objects from %s", len(keys), self.name)

    def remove_bucket(self) -> None:
        self.call("delete_bucket")
        logger.info("Deleted bucket %s", self.name)

    def wait_for_existence(self, expected: bool) -> None:
        """
        Poll until the bucket's existence matches ``expected``.

        Bucket creation and deletion are eventually consistent, so a bucket
        can still answer for a while after being deleted (and the reverse).
        """
        deadline = time.monotonic() + self.config.consistency_timeout
        while True:
            if self.verify_existence() == expected:
                return
            if time.monotonic() >= deadline:
                state = "exist" if expected else "be gone"
                raise ConsistencyTimeout(
                    f"Bucket {self.name} did not {state} within {self.config.consistency_timeout}s"
                )
            # wakes early on cancel(); the next check then raises DeployCancelled
            self.cancelled.wait(self.config.consistency_interval)

    # -- create -------------------------------------------------------------

    def create(self) -> None:
        """Create the bucket and set it up to serve a public website."""
        self.create_bucket()
        self.wait_for_existence(True)
        self.make_website()
        self.make_public()

    def create_bucket(self) -> None:
        params = {}
        if self.config.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.config.region}
        self.call("create_bucket", **params)
        logger.info("Created bucket %s in %s", self.name, self.config.region)

    def make_website(self) -> None:
        website = {"IndexDocument": {"Suffix": self.config.index_document}}
        if self.config.error_document:
            website["ErrorDocument"] = {"Key": self.config.error_document}
        self.call("put_bucket_website", WebsiteConfiguration=website)

    def make_public(self) -> None:
        # Account defaults block public policies; lift the block first
        self.call(
            "put_public_access_block",
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": False,
                "IgnorePublicAcls": False,
                "BlockPublicPolicy": False,
                "RestrictPublicBuckets": False,
            },
        )
        self.call("put_bucket_policy", Policy=json.dumps(self.policy()))

    def policy(self) -> dict:
        policy = copy.deepcopy(PUBLIC_READ_POLICY)
        policy["Statement"][0]["Resource"] += f"{self.name}/*"
        return policy

    # -- upload -------------------------------------------------------------

    def upload(self) -> None:
        self.uploader.upload()

    def upload_directory(self, directory_path: str) -> None:
        self.uploader.upload_directory(directory_path)

    def upload_content(self, path: str) -> None:
        self.uploader.upload_content(path)

    def upload_file(self, file_path: str) -> None:
        self.uploader.upload_file(file_path)
