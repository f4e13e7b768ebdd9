import boto3
import pytest
from botocore.stub import Stubber

from s3site import Bucket, DeployConfig


@pytest.fixture
def s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="AccessKeyId",
        aws_secret_access_key="SecretAccessKey",
    )


@pytest.fixture
def stubber(s3):
    with Stubber(s3) as stub:
        yield stub


@pytest.fixture
def site(tmp_path):
    """A small site: index.html at the root and one nested page."""
    root = tmp_path / "site"
    (root / "nested" / "folder").mkdir(parents=True)
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "nested" / "folder" / "test.html").write_text("<h1>nested</h1>")
    return root


@pytest.fixture
def make_bucket(s3, site):
    def _make(**overrides):
        values = dict(
            name="site",
            env="test",
            prefix="s3site",
            src_path=str(site),
            consistency_timeout=0,
            consistency_interval=0,
            max_workers=1,
        )
        values.update(overrides)
        return Bucket(DeployConfig(**values), client=s3)

    return _make
