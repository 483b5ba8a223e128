# s3_publish/delete_s3.py
"""
Delete phase of a sync run: list the bucket, keep what was just uploaded,
delete the rest in provider-sized batches.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from s3_publish.client import error_detail
from s3_publish.logs import ProgressLog
from s3_publish.options import PublishOptions

MAX_ITEMS = 1000

QuantityDeleted = int
ObjectIdentifier = Dict[str, str]
WarningText = str


def filter_keys(keys: Iterable[str], objects: Optional[Sequence[Mapping[str, Any]]]) -> List[ObjectIdentifier]:
    """
    Remove objects that either have no key or match a key in `keys`.

    :param keys: keys to keep
    :param objects: listing entries, in listing order
    :return: object identifiers of the remaining entries, in the same order
    """
    keep = set(keys)
    return [{"Key": o["Key"]} for o in (objects or []) if o.get("Key") and o["Key"] not in keep]


def gather_keys_to_delete(
    s3,
    log: ProgressLog,
    keys_to_keep: Iterable[str],
    params: PublishOptions,
) -> Tuple[List[ObjectIdentifier], List[WarningText]]:
    """
    Page through the whole bucket collecting objects not in `keys_to_keep`.
    The first failed page ends the listing; what was gathered so far is used.
    """
    bucket = params.bucket_name
    keep = set(keys_to_keep)
    keys_to_delete: List[ObjectIdentifier] = []
    warnings: List[WarningText] = []

    try:
        paginator = s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, PaginationConfig={"PageSize": MAX_ITEMS}):
            keys_to_delete.extend(filter_keys(keep, page.get("Contents")))
    except Exception as e:
        msg = f"Failed to list objects in 's3://{bucket}': {error_detail(e)}"
        log.write(msg)
        warnings.append(msg)

    return keys_to_delete, warnings


def delete_keys(
    s3,
    log: ProgressLog,
    params: PublishOptions,
    keys_to_delete: Sequence[ObjectIdentifier],
) -> Tuple[QuantityDeleted, List[WarningText]]:
    """
    Delete in batches of at most MAX_ITEMS, in order. Per-object errors become
    warnings; a failed batch request becomes one warning and ends the phase.
    """
    bucket = params.bucket_name
    deleted = 0
    warnings: List[WarningText] = []

    for i in range(0, len(keys_to_delete), MAX_ITEMS):
        delete_now = list(keys_to_delete[i:i + MAX_ITEMS])
        try:
            resp = s3.delete_objects(Bucket=bucket, Delete={"Objects": delete_now})
        except Exception as e:
            keys_string = ",".join(o["Key"] for o in delete_now)
            msg = f"Failed to delete objects ({keys_string}) in 's3://{bucket}': {error_detail(e)}"
            log.write(msg)
            warnings.append(msg)
            break

        done = resp.get("Deleted") or []
        deleted += len(done)
        deleted_string = ",".join(o.get("Key", "") for o in done)
        log.write(f"Deleted objects ({deleted_string}) in 's3://{bucket}'")
        for err in resp.get("Errors") or []:
            msg = f"Error deleting object '{err.get('Key')}': {err.get('Message')}"
            log.write(msg)
            warnings.append(msg)

    return deleted, warnings
