#!/usr/bin/env python3
# s3_publish/main.py
"""
Publish a local build tree to an S3 bucket.

Settings come from the environment (S3_BUCKET, AWS_REGION, FILES_TO_PUBLISH,
S3_KEY_PREFIX, PATH_TO_INDEX, LINK_LABEL, S3_SYNC, S3_PARAMS_EXT, S3_PROXY)
and may be overridden by flags. Exit status is the goal result code.
"""
from __future__ import annotations
import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from s3_publish.logs import configure_logging, error, info
from s3_publish.options import Invocation, key_prefix_translation, options_from_env
from s3_publish.publish import execute_publish


def git_rev_parse(repo_root: Path, *args: str) -> Optional[str]:
    try:
        completed = subprocess.run(
            ["git", "-C", repo_root.as_posix(), "rev-parse", *args],
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None
    if completed.returncode != 0:
        return None
    value = completed.stdout.strip()
    return value or None


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Publish local files to S3, optionally deleting objects with no local counterpart.")
    p.add_argument("--base-dir", default=".", help="Project root; file paths and keys are relative to it")
    p.add_argument("--bucket", help="Target bucket (default: $S3_BUCKET)")
    p.add_argument("--region", help="Bucket region, used for the website URL and the client")
    p.add_argument("--files", action="append", help="Glob of files to publish; repeatable (default: **/*)")
    p.add_argument("--key-prefix", help="Key prefix template, may use {sha} and {branch}")
    p.add_argument("--index", help="Project path of the site root, used to build the result link")
    p.add_argument("--link-label", help="Label for the result link")
    p.add_argument("--sync", action=argparse.BooleanOptionalAction, default=None,
                   help="Delete bucket objects that were not published in this run")
    p.add_argument("--params-ext", help="Extension of companion parameter files, e.g. .s3params")
    p.add_argument("--proxy", help="HTTP(S) proxy URL for S3 requests")
    p.add_argument("--sha", help="Commit being published (default: git rev-parse HEAD)")
    p.add_argument("--branch", help="Branch being published (default: current git branch)")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    base_dir = Path(args.base_dir)
    try:
        params = options_from_env(
            bucket_name=args.bucket,
            region=args.region,
            files_to_publish=tuple(args.files) if args.files else None,
            path_translation=key_prefix_translation(args.key_prefix) if args.key_prefix else None,
            path_to_index=args.index,
            link_label=args.link_label,
            sync=args.sync,
            params_ext=args.params_ext,
            proxy=args.proxy,
        )
    except ValueError as e:
        error("config", "Invalid publish configuration", detail=str(e))
        return 2

    inv = Invocation(
        base_dir=str(base_dir),
        sha=args.sha or git_rev_parse(base_dir, "HEAD"),
        branch=args.branch or git_rev_parse(base_dir, "--abbrev-ref", "HEAD"),
    )
    info("publish_start", "Publishing to S3", bucket=params.bucket_name, base_dir=inv.base_dir,
         sha=inv.sha, sync=params.sync, files=list(params.files_to_publish))
    result = execute_publish(params, inv)
    info("publish_finished", "Publish finished", code=result.code, message=result.message, urls=result.external_urls)
    return result.code


if __name__ == "__main__":
    sys.exit(main())
