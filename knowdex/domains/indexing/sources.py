"""
Directory Source - Walks project directories for indexable documents.

Features:
- Configurable scan directories and file extensions
- Skips hidden directories and ``node_modules``
- YAML front matter stripped from content and lifted into metadata
- Root ``README.md`` included as its own source type
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .models import SourceDocument

logger = logging.getLogger(__name__)

__all__ = ["DirectorySource", "split_front_matter", "detect_language"]

DEFAULT_EXTENSIONS = frozenset({".md", ".markdown", ".txt", ".swift", ".js", ".ts", ".py"})
MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
SKIPPED_DIRS = frozenset({"node_modules"})

_LANGUAGES = {
    ".swift": "swift",
    ".m": "objc",
    ".h": "objc",
    ".js": "javascript",
    ".ts": "typescript",
    ".py": "python",
    ".md": "markdown",
    ".markdown": "markdown",
}

_FRONT_MATTER = re.compile(r"\A---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)

# Front matter keys copied into document metadata
_LIFTED_KEYS = ("category", "title", "module", "author", "version", "priority", "deprecated")


def detect_language(path: str | Path) -> str:
    """Language name from a file extension."""
    return _LANGUAGES.get(Path(path).suffix.lower(), "text")


def _normalize_language(value: Any) -> str:
    lang = str(value).strip().lower()
    if "swift" in lang:
        return "swift"
    if lang in ("objc", "objectivec", "objective-c", "obj-c"):
        return "objc"
    return lang


def _normalize_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, Iterable):
        return [str(t).strip() for t in value if str(t).strip()]
    return []


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """
    Separate YAML front matter from a document body.

    Returns:
        (front matter mapping, body). Unparseable front matter yields an empty
        mapping; the body is stripped of it either way.
    """
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, text

    body = text[match.end() :].strip() or text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("Invalid front matter ignored: %s", e)
        return {}, body
    return (data if isinstance(data, dict) else {}), body


class DirectorySource:
    """
    Document source over a project directory tree.

    Example:
        >>> source = DirectorySource("/path/to/project", scan_dirs=["recipes"])
        >>> async for doc in source.documents():
        ...     print(doc.path, doc.source_type)
    """

    def __init__(
        self,
        project_root: str | Path,
        scan_dirs: Sequence[str] = ("recipes", "docs"),
        extensions: Iterable[str] | None = None,
        include_readme: bool = True,
    ) -> None:
        """
        Initialize source.

        Args:
            project_root: Project directory; document paths are relative to it
            scan_dirs: Directories below the root to walk
            extensions: File extensions to include (lowercase, with dot)
            include_readme: Also yield the root README.md
        """
        self._root = Path(project_root)
        self._scan_dirs = list(scan_dirs)
        self._extensions = frozenset(extensions) if extensions else DEFAULT_EXTENSIONS
        self._include_readme = include_readme

    @property
    def scan_dirs(self) -> list[str]:
        return list(self._scan_dirs)

    async def documents(self) -> AsyncIterator[SourceDocument]:
        """Yield one document per readable file."""
        files = await asyncio.to_thread(self._scan)
        for path, source_type in files:
            try:
                text, mtime = await asyncio.to_thread(self._read, path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue
            yield self._to_document(path, source_type, text, mtime)

    def _scan(self) -> list[tuple[Path, str]]:
        files: list[tuple[Path, str]] = []
        for scan_dir in self._scan_dirs:
            base = self._root / scan_dir
            if base.is_dir():
                self._walk(base, files)

        readme = self._root / "README.md"
        if self._include_readme and readme.is_file():
            files.append((readme, "readme"))
        return files

    def _walk(self, directory: Path, files: list[tuple[Path, str]]) -> None:
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.warning("Skipping unreadable directory %s: %s", directory, e)
            return

        for entry in entries:
            if entry.is_dir():
                if entry.name.startswith(".") or entry.name in SKIPPED_DIRS:
                    continue
                self._walk(entry, files)
            elif entry.is_file():
                suffix = entry.suffix.lower()
                if suffix in self._extensions:
                    files.append((entry, "recipe" if suffix in MARKDOWN_EXTENSIONS else "code"))

    @staticmethod
    def _read(path: Path) -> tuple[str, float]:
        return path.read_text(encoding="utf-8"), path.stat().st_mtime

    def _to_document(self, path: Path, source_type: str, text: str, mtime: float) -> SourceDocument:
        front_matter, body = split_front_matter(text)

        metadata: dict[str, Any] = {
            "language": detect_language(path),
            "updated_at": datetime.fromtimestamp(mtime, tz=timezone.utc),
        }
        for key in _LIFTED_KEYS:
            if front_matter.get(key) is not None:
                metadata[key] = front_matter[key]
        if front_matter.get("language"):
            metadata["language"] = _normalize_language(front_matter["language"])
        if front_matter.get("tags"):
            metadata["tags"] = _normalize_tags(front_matter["tags"])

        return SourceDocument(
            path=path.relative_to(self._root).as_posix(),
            content=body,
            source_type=source_type,
            metadata=metadata,
        )
