# s3_publish/client.py
"""
S3 client construction and provider error classification.
"""
from __future__ import annotations
import os
from typing import Any, Dict, Optional

import boto3
import botocore
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    ClientError,
    CredentialRetrievalError,
    NoAuthTokenError,
    NoCredentialsError,
    PartialCredentialsError,
)

from s3_publish.logs import info

S3_CONNECT_TIMEOUT = float(os.environ.get("S3_CONNECT_TIMEOUT", "5"))
S3_READ_TIMEOUT = float(os.environ.get("S3_READ_TIMEOUT", "30"))
S3_MAX_ATTEMPTS = int(os.environ.get("S3_MAX_ATTEMPTS", "3"))

AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
AWS_PROFILE = os.environ.get("AWS_PROFILE")

# Error codes meaning the request was not authenticated at all, as opposed to
# being refused for one particular key.
CREDENTIAL_ERROR_CODES = frozenset({
    "AuthFailure",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidAccessKeyId",
    "InvalidClientTokenId",
    "InvalidToken",
    "MissingAuthenticationToken",
    "SignatureDoesNotMatch",
    "TokenRefreshRequired",
    "UnrecognizedClientException",
})

CREDENTIAL_EXCEPTIONS = (
    NoCredentialsError,
    PartialCredentialsError,
    CredentialRetrievalError,
    NoAuthTokenError,
)


def error_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def error_detail(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        code = err.get("Code", "Unknown")
        message = err.get("Message") or str(exc)
        return f"{code}: {message}"
    return str(exc)


def is_credential_error(exc: BaseException) -> bool:
    if isinstance(exc, CREDENTIAL_EXCEPTIONS):
        return True
    return error_code(exc) in CREDENTIAL_ERROR_CODES


def client_config(proxy: Optional[str] = None) -> BotoConfig:
    kwargs: Dict[str, Any] = {
        "connect_timeout": S3_CONNECT_TIMEOUT,
        "read_timeout": S3_READ_TIMEOUT,
        "retries": {"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
    }
    if proxy:
        kwargs["proxies"] = {"http": proxy, "https": proxy}
    return BotoConfig(**kwargs)


def get_s3_client(region: Optional[str] = None, proxy: Optional[str] = None) -> "botocore.client.S3":
    """
    Create an S3 client with bounded timeouts and retries. Explicit keys win
    over AWS_PROFILE, which wins over the default boto3 credential chain.
    """
    kwargs: Dict[str, Any] = {"config": client_config(proxy)}
    if region:
        kwargs["region_name"] = region
    if AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY:
        info("auth", "Using AWS_ACCESS_KEY_ID + AWS_SECRET_ACCESS_KEY")
        kwargs["aws_access_key_id"] = AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = AWS_SECRET_ACCESS_KEY
    elif AWS_PROFILE:
        info("auth", "Using AWS_PROFILE for credentials", profile=AWS_PROFILE)
        session = boto3.Session(profile_name=AWS_PROFILE, **({"region_name": region} if region else {}))
        return session.client("s3", **kwargs)
    else:
        info("auth", "No explicit AWS_ACCESS_KEY_ID/SECRET set; relying on boto3 credential chain")
    return boto3.client("s3", **kwargs)
