# s3_publish/logs.py
"""
Structured JSON-line logging for the publisher, plus the line-oriented
progress sink handed to the upload/delete phases.
"""
from __future__ import annotations
import json
import logging
import os
import sys
import time
from typing import List

SERVICE_NAME = "s3publish"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
DISABLE_THIRD_PARTY_LOGS = os.environ.get("DISABLE_THIRD_PARTY_LOGS", "false").lower() in ("1", "true", "yes")

logger = logging.getLogger(SERVICE_NAME)


def configure_logging(level: str = LOG_LEVEL) -> None:
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
    if DISABLE_THIRD_PARTY_LOGS:
        logging.getLogger("boto3").setLevel(logging.CRITICAL)
        logging.getLogger("botocore").setLevel(logging.CRITICAL)
        logging.getLogger("s3transfer").setLevel(logging.CRITICAL)


def ts() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S%z")


def log(level: str, event: str, msg: str, **kwargs) -> None:
    o = {"ts": ts(), "level": level, "service": SERVICE_NAME, "event": event, "msg": msg}
    if kwargs:
        o.update(kwargs)
    logger.log(logging.getLevelName(level), json.dumps(o, default=str))

def debug(event: str, msg: str, **k): log("DEBUG", event, msg, **k)
def info(event: str, msg: str, **k): log("INFO", event, msg, **k)
def warn(event: str, msg: str, **k): log("WARNING", event, msg, **k)
def error(event: str, msg: str, **k): log("ERROR", event, msg, **k)


class ProgressLog:
    """
    Line-oriented sink for human-readable progress of one publish run.
    Lines are kept in order so the caller can report them after the run.
    """
    def __init__(self, name: str = "publish"):
        self.name = name
        self.lines: List[str] = []

    def write(self, line: str) -> None:
        self.lines.append(line)
        info("progress", line, log=self.name)

    @property
    def log(self) -> str:
        return "\n".join(self.lines)
