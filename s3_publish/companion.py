# s3_publish/companion.py
"""
Companion ("sidecar") descriptor files carrying per-file put_object overrides.

A file "dist/X" published with params_ext ".s3params" is paired with
"dist/.X.s3params". The descriptor is a JSON object whose members replace the
request fields computed for the upload.
"""
from __future__ import annotations
import json
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from s3_publish.logs import ProgressLog
from s3_publish.options import COMPANION_FILE_PREFIX
from s3_publish.project import LocalProject, ProjectFile


class PutObjectOverrides(TypedDict, total=False):
    ACL: str
    CacheControl: str
    ContentDisposition: str
    ContentEncoding: str
    ContentLanguage: str
    ContentType: str
    Expires: datetime
    GrantFullControl: str
    GrantRead: str
    GrantReadACP: str
    GrantWriteACP: str
    Metadata: Dict[str, str]
    ServerSideEncryption: str
    StorageClass: str
    WebsiteRedirectLocation: str
    SSEKMSKeyId: str
    SSEKMSEncryptionContext: str
    BucketKeyEnabled: bool
    Tagging: str
    ObjectLockMode: str
    ObjectLockRetainUntilDate: datetime
    ObjectLockLegalHoldStatus: str


OVERRIDABLE_FIELDS = frozenset(PutObjectOverrides.__annotations__)


def companion_path(file: ProjectFile, params_ext: str) -> str:
    parent = PurePosixPath(file.path).parent
    return (parent / f"{COMPANION_FILE_PREFIX}{file.name}{params_ext}").as_posix()


def select_overrides(raw: Dict[str, Any]) -> Tuple[PutObjectOverrides, List[str]]:
    """Keep the members a descriptor may set; return the rest by name."""
    overrides: PutObjectOverrides = {}
    ignored: List[str] = []
    for name, value in raw.items():
        if name in OVERRIDABLE_FIELDS:
            overrides[name] = value
        else:
            ignored.append(name)
    return overrides, ignored


def gather_params_from_companion_file(
    project: LocalProject,
    log: ProgressLog,
    file: ProjectFile,
    params_ext: Optional[str],
) -> Tuple[PutObjectOverrides, List[str]]:
    """
    Return (overrides, warnings) for `file`. A missing descriptor is the normal
    case and yields no warning; an unreadable or malformed one yields a warning
    and no overrides so the upload goes ahead with its defaults.
    """
    if not params_ext:
        return {}, []
    params_path = companion_path(file, params_ext)
    params_file = project.get_file(params_path)
    if params_file is None:
        return {}, []
    try:
        raw = json.loads(params_file.get_content())
        if not isinstance(raw, dict):
            raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
    except (OSError, UnicodeDecodeError, ValueError) as e:
        msg = f"Failed to read and parse S3 params file '{params_path}', using defaults: {e}"
        log.write(msg)
        return {}, [msg]

    overrides, ignored = select_overrides(raw)
    warnings: List[str] = []
    if ignored:
        msg = f"Ignoring unsupported S3 parameters in '{params_path}': {', '.join(sorted(ignored))}"
        log.write(msg)
        warnings.append(msg)
    if overrides:
        log.write(f"Merging in S3 parameters from '{params_path}': {json.dumps(overrides, default=str)}")
    return overrides, warnings


def merge_put_params(base: Dict[str, Any], overrides: PutObjectOverrides) -> Dict[str, Any]:
    params = dict(base)
    for name in OVERRIDABLE_FIELDS:
        if name in overrides:
            params[name] = overrides[name]
    return params
