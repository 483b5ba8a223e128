# s3_publish/options.py
"""
Options, invocation context and result types for one publish run, plus the
environment-driven loader used by the CLI.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from s3_publish.logs import ProgressLog

DEFAULT_REGION = "us-east-1"
DEFAULT_FILES_TO_PUBLISH: Tuple[str, ...] = ("**/*",)
DEFAULT_LINK_LABEL = "S3 Website"
COMPANION_FILE_PREFIX = "."


@dataclass
class Invocation:
    """What the caller knows about the change being published."""
    base_dir: str
    sha: Optional[str] = None
    branch: Optional[str] = None
    progress_log: ProgressLog = field(default_factory=ProgressLog)


PathTranslation = Callable[[str, Invocation], str]


def identity_translation(file_path: str, inv: Invocation) -> str:
    return file_path


def key_prefix_translation(template: str) -> PathTranslation:
    """
    Build a path translation that prefixes every key with `template`, which may
    reference the invocation's {sha} and {branch}, e.g. "builds/{branch}/{sha}".
    """
    def translate(file_path: str, inv: Invocation) -> str:
        prefix = template.format(sha=inv.sha or "", branch=inv.branch or "").strip("/")
        rel = file_path.replace("\\", "/").lstrip("/")
        return f"{prefix}/{rel}" if prefix else rel
    return translate


OptionsCallback = Callable[["PublishOptions", Invocation], "PublishOptions"]


@dataclass(frozen=True)
class PublishOptions:
    bucket_name: str
    region: str = DEFAULT_REGION
    files_to_publish: Tuple[str, ...] = DEFAULT_FILES_TO_PUBLISH
    path_translation: PathTranslation = identity_translation
    path_to_index: Optional[str] = None
    link_label: str = DEFAULT_LINK_LABEL
    sync: bool = False
    params_ext: Optional[str] = None
    proxy: Optional[str] = None
    # called once per run with the invocation; its result replaces these options
    callback: Optional[OptionsCallback] = None

    def __post_init__(self):
        if not self.bucket_name:
            raise ValueError("bucket_name must be set")
        if isinstance(self.files_to_publish, str):
            object.__setattr__(self, "files_to_publish", (self.files_to_publish,))
        else:
            object.__setattr__(self, "files_to_publish", tuple(self.files_to_publish))
        if not self.files_to_publish:
            raise ValueError("files_to_publish must contain at least one glob pattern")
        if self.params_ext is not None and not self.params_ext.startswith(COMPANION_FILE_PREFIX):
            raise ValueError(f"params_ext must start with '{COMPANION_FILE_PREFIX}', got: {self.params_ext}")


@dataclass
class PublishResult:
    bucket_url: str
    warnings: List[str]
    file_count: int
    deleted: int


@dataclass
class GoalResult:
    code: int
    message: Optional[str] = None
    external_urls: List[Dict[str, str]] = field(default_factory=list)


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def options_from_env(**overrides) -> PublishOptions:
    """
    Load PublishOptions from the environment. Keyword arguments that are not
    None take precedence over the corresponding environment variable.
    """
    key_prefix = os.environ.get("S3_KEY_PREFIX")
    values = {
        "bucket_name": os.environ.get("S3_BUCKET", "").strip(),
        "region": os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
        "files_to_publish": tuple(_get_list(os.environ.get("FILES_TO_PUBLISH"))) or DEFAULT_FILES_TO_PUBLISH,
        "path_translation": key_prefix_translation(key_prefix) if key_prefix else identity_translation,
        "path_to_index": os.environ.get("PATH_TO_INDEX") or None,
        "link_label": os.environ.get("LINK_LABEL") or DEFAULT_LINK_LABEL,
        "sync": _get_bool(os.environ.get("S3_SYNC")),
        "params_ext": os.environ.get("S3_PARAMS_EXT") or None,
        "proxy": os.environ.get("S3_PROXY") or os.environ.get("HTTPS_PROXY") or None,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PublishOptions(**values)
