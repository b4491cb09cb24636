"""Bulk loading of a directory tree of markdown files."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol
from uuid import UUID

from quire.domain import Contents, Failure
from quire.metrics import sync_files
from quire.utils.time_service import TimeService

from .blog import BlogService
from .markdown import MarkdownRenderer

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


@dataclass(frozen=True)
class FileEntry:
    """One entry of a directory listing."""

    name: str
    is_directory: bool
    last_modified: datetime


class FileProvider(Protocol):
    """Read-only view of a directory tree."""

    async def list_directory(self, path: str) -> list[FileEntry]:
        ...

    async def read_text(self, path: str) -> str:
        ...


class LocalFileProvider:
    """FileProvider over the local filesystem, relative to a root directory."""

    def __init__(self, root: str | Path = ".", time_service: TimeService | None = None):
        self.root = Path(root)
        self.time_service = time_service or TimeService()

    async def list_directory(self, path: str) -> list[FileEntry]:
        return await asyncio.to_thread(self._list_directory, path)

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread((self.root / path).read_text, encoding="utf-8")

    def _list_directory(self, path: str) -> list[FileEntry]:
        entries = []
        for child in sorted((self.root / path).iterdir()):
            stat = child.stat()
            entries.append(
                FileEntry(
                    name=child.name,
                    is_directory=child.is_dir(),
                    last_modified=self.time_service.from_timestamp(stat.st_mtime),
                )
            )
        return entries


class SyncResult:
    """Outcome for a single file."""


@dataclass(frozen=True)
class SyncSuccess(SyncResult):
    slug: str

    def __str__(self) -> str:
        return f"Success: {self.slug}"


@dataclass(frozen=True)
class SyncSkipped(SyncResult):
    def __str__(self) -> str:
        return "Skipped"


@dataclass(frozen=True)
class SyncError(SyncResult):
    reason: str

    def __str__(self) -> str:
        return f"Error: {self.reason}"


@dataclass
class SyncReport:
    """Per-file outcomes of a run, in the order the files were processed."""

    results: list[tuple[str, SyncResult]] = field(default_factory=list)

    def add(self, path: str, result: SyncResult) -> None:
        self.results.append((path, result))

    @property
    def succeeded(self) -> int:
        return sum(isinstance(r, SyncSuccess) for _, r in self.results)

    @property
    def skipped(self) -> int:
        return sum(isinstance(r, SyncSkipped) for _, r in self.results)

    @property
    def failed(self) -> int:
        return sum(isinstance(r, SyncError) for _, r in self.results)

    def summary(self) -> str:
        return f"{self.succeeded} synced, {self.skipped} skipped, {self.failed} failed"


class BulkSynchronizer:
    """Load markdown files into the blog on behalf of one account.

    Each file's title comes from its first level-1 heading, and its slug from
    the title. A file only overwrites a post when the file is newer than the
    stored copy, so runs can be repeated in any order. New posts are made
    public. All writes go through the blog service, which keeps the cache
    coherent.
    """

    def __init__(
        self,
        service: BlogService,
        renderer: MarkdownRenderer,
        owner_id: UUID,
        files: FileProvider,
    ):
        self.service = service
        self.renderer = renderer
        self.owner_id = owner_id
        self.files = files

    async def sync_directory(self, path: str, report: SyncReport | None = None) -> SyncReport:
        """Sync subdirectories depth-first, then the markdown files in path."""
        report = report if report is not None else SyncReport()
        logger.info(f"Entering directory: {path}")

        entries = await self.files.list_directory(path)
        dirs = [e for e in entries if e.is_directory]
        files = [
            e for e in entries if not e.is_directory and e.name.endswith(MARKDOWN_SUFFIX)
        ]
        logger.info(f"{len(dirs)} subdirectories, {len(files)} files")

        for entry in dirs:
            await self.sync_directory(f"{path}/{entry.name}", report)

        for entry in files:
            file_path = f"{path}/{entry.name}"
            result = await self.sync_file(file_path, entry.last_modified)
            sync_files.labels(result=type(result).__name__.removeprefix("Sync").lower()).inc()
            logger.info(f"{file_path}: {result}")
            report.add(file_path, result)

        logger.info(f"Finished directory: {path}")
        return report

    async def sync_file(self, path: str, last_modified: datetime) -> SyncResult:
        """Run one file through update-if-newer, falling back to create."""
        try:
            body = await self.files.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            return SyncError(f"could not read file: {e}")

        title = self.renderer.first_heading(body)
        if title is None:
            return SyncError("could not infer title from first heading")

        contents = Contents(title=title, body=body)
        slug = contents.slug

        applied = await self.service.update_content_if_newer(
            self.owner_id, slug, contents, last_modified
        )
        if applied is True:
            return SyncSuccess(slug)
        if applied is False:
            return SyncSkipped()
        if applied is not Failure.NOT_FOUND:
            return SyncError(f"Update failed: {applied.name}")

        created = await self.service.create_content(self.owner_id, contents)
        if isinstance(created, Failure):
            return SyncError(f"Insert failed: {created.name}")

        failure = await self.service.update_visibility(self.owner_id, created, True)
        if failure is not None:
            return SyncError(f"Permissions fix failed: {failure.name}")

        return SyncSuccess(created)
