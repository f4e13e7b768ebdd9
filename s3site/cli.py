"""Deploy a local directory to S3 as a public static website."""

import argparse
import logging
import sys

from .bucket import Bucket
from .config import DeployConfig
from .errors import DeployError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3site",
        description="Deploy a local directory to an S3 bucket configured for static website hosting. The bucket name is built as <prefix>-<env>-<name>, skipping empty parts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  %(prog)s --name site --env test --prefix s3site --src ./public
      Delete s3site-test-site if it exists, recreate it as a public website,
      and upload ./public into it.

  %(prog)s --name site --src ./public --remove-extension .html --no-cache index
      Serve about.html as /about and never let browsers cache /index.

  %(prog)s --name site --env test --destroy --yes
      Empty and delete the bucket without asking for confirmation.

  %(prog)s --name site --list
      Print the key of every object in the bucket.

environment:
  Every option falls back to an S3SITE_* variable (S3SITE_NAME, S3SITE_ENV,
  S3SITE_PREFIX, S3SITE_REGION, S3SITE_SRC, S3SITE_NO_CACHE, ...). List
  options take comma-separated values. Credentials come from the usual
  boto3 chain unless --profile is given.""",
    )
    parser.add_argument("--name", help="Site name, the last part of the bucket name.")
    parser.add_argument("--env", help="Environment, inserted before the name (e.g. test, prod).")
    parser.add_argument("--prefix", help="Prefix, the first part of the bucket name.")
    parser.add_argument("--region", help="AWS region for the bucket (default: us-east-1).")
    parser.add_argument("--src", dest="src_path", help="Local directory to upload. Required for deploy and --upload.")
    parser.add_argument("--index-document", help="Document served for directory requests (default: index.html).")
    parser.add_argument("--error-document", help="Document served for missing keys. Not set by default.")
    parser.add_argument(
        "--remove-extension", dest="remove_extensions", action="append",
        help="Strip this extension from object keys (e.g. .html). Content type is still taken from the file name. Repeatable.",
    )
    parser.add_argument(
        "--no-cache", action="append",
        help="Object key to upload with no-cache headers and an already-passed Expires date. Repeatable.",
    )
    parser.add_argument("--endpoint-url", help="Custom S3 endpoint, for S3-compatible stores.")
    parser.add_argument("--profile", help="AWS credentials profile to use.")
    parser.add_argument("--max-workers", type=int, help="Concurrent file uploads (default: 8).")
    parser.add_argument("--timeout", type=float, help="Cancel the deploy after this many seconds.")
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation before --destroy.")
    parser.add_argument("--verbose", action="store_true", help="Log every S3 request.")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--destroy", action="store_true", help="Empty and delete the bucket, then stop.")
    mode.add_argument("--create", action="store_true", help="Create and configure the bucket without uploading.")
    mode.add_argument("--upload", action="store_true", help="Upload into the existing bucket without recreating it.")
    mode.add_argument("--list", action="store_true", help="List the keys currently in the bucket.")
    mode.add_argument("--exists", action="store_true", help="Report whether the bucket exists (exit status 1 if not).")
    return parser


def load_config(args: argparse.Namespace) -> DeployConfig:
    return DeployConfig.from_env(
        name=args.name,
        env=args.env,
        prefix=args.prefix,
        region=args.region,
        src_path=args.src_path,
        index_document=args.index_document,
        error_document=args.error_document,
        remove_extensions=args.remove_extensions,
        no_cache=args.no_cache,
        endpoint_url=args.endpoint_url,
        max_workers=args.max_workers,
        timeout=args.timeout,
    )


def run(bucket: Bucket, args: argparse.Namespace) -> int:
    if args.exists:
        if bucket.verify_existence():
            print(f"Bucket {bucket.name} exists.")
            return 0
        print(f"Bucket {bucket.name} does not exist.")
        return 1

    if args.list:
        for item in bucket.list_contents():
            print(item["Key"])
        return 0

    if args.destroy:
        if not args.yes:
            answer = input(f"Delete bucket {bucket.name} and all of its contents? This cannot be undone. [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                sys.exit("Aborted.")
        print(f"Destroying bucket {bucket.name}...")
        bucket.destroy()
        print("Done!")
        return 0

    if args.create:
        print(f"Creating bucket {bucket.name} in {bucket.config.region}...")
        bucket.create()
    elif args.upload:
        print(f"Uploading {bucket.config.src_path} to s3://{bucket.name}/...")
        bucket.upload()
    else:
        print(f"Deploying {bucket.config.src_path} to s3://{bucket.name}/...")
        bucket.deploy()

    print(f"\nSite URL: {bucket.website_url}")
    print("Done!")
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args)
    except DeployError as e:
        parser.error(str(e))

    credentials = {"profile_name": args.profile} if args.profile else None

    try:
        bucket = Bucket(config, credentials)
        return run(bucket, args)
    except KeyboardInterrupt:
        sys.exit("Interrupted.")
    except DeployError as e:
        sys.exit(f"Deploy failed: {e}")


if __name__ == "__main__":
    sys.exit(main())
