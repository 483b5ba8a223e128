# s3_publish/publish.py
"""
Publish a project's files to an S3 bucket and, in sync mode, remove bucket
objects that no longer correspond to a published file.

Phases run strictly in order (upload, then list, then delete) and every
request is awaited before the next is issued. Nothing is retried here; the
client's own retry policy is the only one.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Optional

from s3_publish.client import get_s3_client
from s3_publish.delete_s3 import delete_keys, gather_keys_to_delete
from s3_publish.logs import error, info, warn
from s3_publish.options import GoalResult, Invocation, PublishOptions, PublishResult
from s3_publish.project import LocalProject
from s3_publish.put_s3 import upload_files

MISSING_SHA_CODE = 99
PUBLISH_ERROR_CODE = 98
NOTHING_PUBLISHED_CODE = 1


def bucket_url(bucket_name: str, region: str) -> str:
    return f"http://{bucket_name}.s3-website.{region}.amazonaws.com/"


def push_to_s3(s3, inv: Invocation, params: PublishOptions) -> PublishResult:
    project = LocalProject(inv.base_dir)
    log = inv.progress_log

    upload = upload_files(project, inv, s3, params)
    warnings = upload.warnings
    info("upload_finished", "Upload phase finished", bucket=params.bucket_name, uploaded=upload.file_count, warnings=len(warnings))

    deleted = 0
    if params.sync and upload.gave_up:
        # files never attempted would otherwise look deleted locally
        msg = f"Not deleting objects in 's3://{params.bucket_name}': uploads stopped after a credential failure"
        log.write(msg)
        warnings.append(msg)
        warn("delete_skipped", "Credential failure during upload; delete phase skipped", bucket=params.bucket_name)
    elif params.sync:
        keys_to_delete, list_warnings = gather_keys_to_delete(s3, log, upload.keys, params)
        warnings.extend(list_warnings)
        info("delete_candidates", "Gathered objects to delete", bucket=params.bucket_name, count=len(keys_to_delete))
        deleted, delete_warnings = delete_keys(s3, log, params, keys_to_delete)
        warnings.extend(delete_warnings)
        info("delete_finished", "Delete phase finished", bucket=params.bucket_name, deleted=deleted)

    return PublishResult(
        bucket_url=bucket_url(params.bucket_name, params.region),
        warnings=warnings,
        file_count=upload.file_count,
        deleted=deleted,
    )


def link_to_index(result: PublishResult, inv: Invocation, params: PublishOptions) -> Optional[str]:
    if not params.path_to_index:
        return None
    return result.bucket_url + params.path_translation(params.path_to_index, inv)


def resolve_options(params: PublishOptions, inv: Invocation) -> PublishOptions:
    """Apply the options callback, if any, and validate what it returns."""
    if params.callback is None:
        return params
    resolved = params.callback(params, inv)
    return replace(resolved, callback=None)


def execute_publish(params: PublishOptions, inv: Invocation, s3=None) -> GoalResult:
    """
    Run one publish for `inv` and turn the outcome into a goal result code:
    0 published (possibly with warnings), 1 nothing published and warnings
    raised, 98 unexpected failure, 99 no commit SHA to publish.
    """
    if not inv.sha:
        error("missing_sha", "No commit SHA on the invocation; not publishing", bucket=params.bucket_name)
        return GoalResult(code=MISSING_SHA_CODE, message="SHA is not defined. I need that")

    log = inv.progress_log
    try:
        params = resolve_options(params, inv)
        if s3 is None:
            s3 = get_s3_client(params.region, params.proxy)
        result = push_to_s3(s3, inv, params)
        link = link_to_index(result, inv, params)
    except Exception as e:
        error("publish_failed", "Publishing to S3 failed", bucket=params.bucket_name, exception=str(e))
        return GoalResult(code=PUBLISH_ERROR_CODE, message=str(e))

    target = link or result.bucket_url
    if link:
        log.write("URL: " + link)
    if result.warnings:
        log.write("\n".join(result.warnings))
    log.write(f"{result.file_count} files uploaded to {target}")
    if params.sync:
        log.write(f"{result.deleted} objects deleted from s3://{params.bucket_name}")

    if result.file_count == 0 and result.warnings:
        return GoalResult(
            code=NOTHING_PUBLISHED_CODE,
            message=f"Failed to publish to S3: {len(result.warnings)} warnings and no files uploaded",
        )
    external_urls = [{"label": params.link_label, "url": link}] if link else []
    return GoalResult(code=0, external_urls=external_urls)
