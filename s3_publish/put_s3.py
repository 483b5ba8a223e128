# s3_publish/put_s3.py
"""
Upload phase: put every selected project file to the bucket, one at a time,
in selection order.

Failure policy: a failed put is recorded as a warning and the next file is
tried, except for credential failures, after which no further put is
attempted in this run. Only keys whose put succeeded are returned, so the
delete phase never treats a failed upload as "file still exists". After a
credential give-up the report says so, and the caller skips deletion.
"""
from __future__ import annotations
import mimetypes
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from s3_publish.client import error_detail, is_credential_error
from s3_publish.companion import gather_params_from_companion_file, merge_put_params
from s3_publish.logs import debug, warn
from s3_publish.options import Invocation, PublishOptions
from s3_publish.project import LocalProject

DEFAULT_CONTENT_TYPE = "text/plain"

FilesAttempted = int
SuccessfullyPushedKey = str
WarningText = str


def guess_content_type(path: str) -> str:
    ctype, _ = mimetypes.guess_type(path)
    return ctype or DEFAULT_CONTENT_TYPE


@dataclass
class UploadReport:
    file_count: FilesAttempted = 0
    keys: List[SuccessfullyPushedKey] = field(default_factory=list)
    warnings: List[WarningText] = field(default_factory=list)
    gave_up: bool = False


def put_files(
    project: LocalProject,
    inv: Invocation,
    s3,
    params: PublishOptions,
) -> Tuple[FilesAttempted, List[SuccessfullyPushedKey], List[WarningText]]:
    report = upload_files(project, inv, s3, params)
    return report.file_count, report.keys, report.warnings


def upload_files(project: LocalProject, inv: Invocation, s3, params: PublishOptions) -> UploadReport:
    """
    Upload phase with its give-up state exposed: `gave_up` is set once a
    credential failure stopped the remaining uploads.
    """
    bucket = params.bucket_name
    log = inv.progress_log
    file_count = 0
    keys: List[SuccessfullyPushedKey] = []
    warnings: List[WarningText] = []
    give_up = False

    for file in project.files(params.files_to_publish):
        if give_up:
            log.write(f"Skipping '{file.path}': giving up after credential failure")
            continue

        key = params.path_translation(file.path, inv)
        content_type = guess_content_type(file.path)
        try:
            content = file.get_content_buffer()
        except OSError as e:
            msg = f"Failed to put '{file.path}' to 's3://{bucket}/{key}': {e}"
            log.write(msg)
            warnings.append(msg)
            continue

        file_params, more_warnings = gather_params_from_companion_file(project, log, file, params.params_ext)
        warnings.extend(more_warnings)
        base: Dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": content,
            "ContentType": content_type,
        }
        object_params = merge_put_params(base, file_params)
        debug("put_object", f"File: {file.path}, key: {key}, contentType: {object_params['ContentType']}")

        try:
            s3.put_object(**object_params)
        except Exception as e:
            msg = f"Failed to put '{file.path}' to 's3://{bucket}/{key}': {error_detail(e)}"
            log.write(msg)
            warnings.append(msg)
            if is_credential_error(e):
                give_up = True
                warn("put_give_up", "Credential failure; not attempting remaining uploads", bucket=bucket, key=key)
            continue

        keys.append(key)
        file_count += 1
        log.write(f"Put '{file.path}' to 's3://{bucket}/{key}'")

    return UploadReport(file_count=file_count, keys=keys, warnings=warnings, gave_up=give_up)
