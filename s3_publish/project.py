# s3_publish/project.py
"""
Local project tree: glob selection of files to publish and exact lookup of a
single file by its project-relative path.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional


def safe_rel_normalize(p: str) -> str:
    return p.replace("\\", "/").lstrip("/")


def _is_hidden(rel: PurePosixPath) -> bool:
    return any(part.startswith(".") for part in rel.parts)


def _pattern_allows_hidden(pattern: str) -> bool:
    return any(seg.startswith(".") and seg != ".." for seg in PurePosixPath(pattern).parts)


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class ProjectFile:
    base_dir: Path
    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def real_path(self) -> Path:
        return self.base_dir / self.path

    def get_content_buffer(self) -> bytes:
        return self.real_path.read_bytes()

    def get_content(self, encoding: str = "utf-8") -> str:
        return self.real_path.read_text(encoding=encoding)


class LocalProject:
    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def files(self, patterns: Iterable[str]) -> List[ProjectFile]:
        """
        Files matching any of `patterns`, sorted by path and listed once. Hidden
        files and directories only match patterns that name a dot segment.
        Nothing outside the base directory is ever selected.
        """
        if not self.base_dir.is_dir():
            return []
        root = self.base_dir.resolve()
        selected = set()
        for pattern in patterns:
            pattern = safe_rel_normalize(pattern)
            if not pattern or ".." in PurePosixPath(pattern).parts:
                continue
            allow_hidden = _pattern_allows_hidden(pattern)
            for p in self.base_dir.glob(pattern):
                if not p.is_file() or not _is_within(p.resolve(), root):
                    continue
                rel = PurePosixPath(p.relative_to(self.base_dir).as_posix())
                if _is_hidden(rel) and not allow_hidden:
                    continue
                selected.add(rel.as_posix())
        return [ProjectFile(self.base_dir, rel) for rel in sorted(selected)]

    def get_file(self, path: str) -> Optional[ProjectFile]:
        rel = safe_rel_normalize(path)
        if not rel or ".." in PurePosixPath(rel).parts:
            return None
        if not (self.base_dir / rel).is_file():
            return None
        return ProjectFile(self.base_dir, rel)
