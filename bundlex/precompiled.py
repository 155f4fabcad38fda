"""Download and cache precompiled OS dependencies."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Sequence
import os
import shutil
import tarfile
import tempfile
import threading
import urllib.error
import urllib.request
import zipfile

import zstandard as zstd

from core.archive import ArchiveFormatError, ArchiveManager, format_from_url
from core.console import Console

from .errors import DownloadFailed, ExtractFailed

Downloader = Callable[[str, Path], None]
"""Fetches ``url`` into the given file path, raising on failure."""

_CHUNK_SIZE = 1 << 20


def urllib_downloader(timeout: float | None = None) -> Downloader:
    def download(url: str, destination: Path) -> None:
        request = urllib.request.Request(url, headers={"User-Agent": "bundlex"})
        with urllib.request.urlopen(request, timeout=timeout) as response, destination.open("wb") as handle:
            shutil.copyfileobj(response, handle, _CHUNK_SIZE)

    return download


def link_name(lib: str) -> str:
    """Return the ``-l`` form of a library name (``libfoo`` -> ``foo``)."""

    return lib[3:] if lib.startswith("lib") and len(lib) > 3 else lib


def content_root(directory: Path) -> Path:
    """Descend into a lone top-level directory left by the archive."""

    entries = [entry for entry in directory.iterdir() if not entry.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir() and entries[0].name not in ("include", "lib"):
        return entries[0]
    return directory


@dataclass(frozen=True)
class PrecompiledArtifact:
    root: Path
    includes: tuple[Path, ...]
    lib_dirs: tuple[Path, ...]
    libs: tuple[str, ...]


class ArtifactAcquirer:
    """Fetches precompiled archives into ``<cache_root>/<app>/<dependency>``.

    A populated cache directory is reused without touching the network.
    Extraction happens in a temporary sibling directory that is renamed into
    place, and a lock per ``(app, dependency)`` keeps threads of one process
    from fetching the same archive twice.
    """

    def __init__(
        self,
        cache_root: Path,
        *,
        downloader: Downloader | None = None,
        archives: ArchiveManager | None = None,
        console: Console | None = None,
        timeout: float | None = None,
    ) -> None:
        self._cache_root = cache_root
        self._console = console or Console()
        self._downloader = downloader or urllib_downloader(timeout)
        self._archives = archives or ArchiveManager(self._console)
        self._locks: Dict[tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def cache_dir(self, app: str, dependency: str) -> Path:
        return self._cache_root / app / dependency

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def acquire(self, url: str, *, app: str, dependency: str, libs: Sequence[str]) -> PrecompiledArtifact:
        target = self.cache_dir(app, dependency)
        with self._lock_for((app, dependency)):
            if target.is_dir():
                self._console.debug(f"Reusing cached {dependency} for {app} at {target}")
            else:
                self._populate(url, target)
        return self._describe(target, libs)

    def _populate(self, url: str, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))
        try:
            archive = staging / "download"
            self._console.info(f"Downloading {url}")
            try:
                self._downloader(url, archive)
            except (urllib.error.URLError, OSError, ValueError) as exc:
                raise DownloadFailed(url, f"download failed: {exc}") from exc

            extracted = staging / "content"
            try:
                self._archives.extract_archive(
                    archive_path=archive,
                    destination_dir=extracted,
                    format_hint=format_from_url(url),
                )
            except (ArchiveFormatError, tarfile.TarError, zipfile.BadZipFile, zstd.ZstdError, EOFError, OSError) as exc:
                raise ExtractFailed(url, f"extraction failed: {exc}") from exc

            try:
                os.replace(extracted, target)
            except OSError:
                # Another process populated the cache first; its content wins.
                if not target.is_dir():
                    raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    @staticmethod
    def _describe(target: Path, libs: Sequence[str]) -> PrecompiledArtifact:
        root = content_root(target)
        includes: List[Path] = [root / "include"]
        lib_dirs: List[Path] = [root / "lib"]
        return PrecompiledArtifact(
            root=root,
            includes=tuple(includes),
            lib_dirs=tuple(lib_dirs),
            libs=tuple(link_name(lib) for lib in libs),
        )


__all__ = [
    "ArtifactAcquirer",
    "Downloader",
    "PrecompiledArtifact",
    "content_root",
    "link_name",
    "urllib_downloader",
]
