"""Archive extraction utilities for downloaded precompiled dependencies."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse
import tarfile
import zipfile

import zstandard as zstd

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.zst", "zst"),
    (".tzst", "zst"),
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar.bz2", "bztar"),
    (".tbz", "bztar"),
    (".tar.xz", "xztar"),
    (".txz", "xztar"),
    (".tar", "tar"),
    (".zip", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "zst": "zst",
    "tar.zst": "zst",
    "tzst": "zst",
    "gztar": "gztar",
    "gz": "gztar",
    "tar.gz": "gztar",
    "tgz": "gztar",
    "bztar": "bztar",
    "bz2": "bztar",
    "tar.bz2": "bztar",
    "tbz": "bztar",
    "xztar": "xztar",
    "xz": "xztar",
    "tar.xz": "xztar",
    "txz": "xztar",
    "tar": "tar",
    "zip": "zip",
}

_MAGIC_FORMATS: list[tuple[bytes, str]] = [
    (b"\x28\xb5\x2f\xfd", "zst"),
    (b"\x1f\x8b", "gztar"),
    (b"BZh", "bztar"),
    (b"\xfd7zXZ\x00", "xztar"),
    (b"PK\x03\x04", "zip"),
]

_TAR_MODES: dict[str, str] = {
    "gztar": "r:gz",
    "bztar": "r:bz2",
    "xztar": "r:xz",
    "tar": "r:",
}


class ArchiveFormatError(ValueError):
    """Raised when the format of an archive cannot be determined."""


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


def format_from_name(name: str) -> str | None:
    """Return the archive format implied by the suffix of ``name``, if any."""

    filename = name.lower()
    for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
        if filename.endswith(suffix):
            return fmt
    return None


def format_from_url(url: str) -> str | None:
    """Return the archive format implied by the path component of ``url``."""

    path = urlparse(url).path.rstrip("/")
    return format_from_name(path.rsplit("/", 1)[-1]) if path else None


def sniff_format(path: Path) -> str | None:
    """Detect the archive format of ``path`` from its leading bytes."""

    with path.open("rb") as handle:
        header = handle.read(512)
    for magic, fmt in _MAGIC_FORMATS:
        if header.startswith(magic):
            return fmt
    # POSIX tar headers carry "ustar" at offset 257.
    if len(header) >= 262 and header[257:262] == b"ustar":
        return "tar"
    return None


class ArchiveManager:
    """Extract compressed archives into directories."""

    def __init__(
        self,
        console: ArchiveConsole,
    ) -> None:
        self._console = console

    def resolve_format(self, *, archive: Path, format_hint: str | None) -> str:
        if format_hint:
            normalized = format_hint.strip().lower()
            if normalized in _FORMAT_ALIASES:
                return _FORMAT_ALIASES[normalized]
            raise ArchiveFormatError(f"Unsupported archive format hint '{format_hint}'")

        detected = format_from_name(archive.name) or sniff_format(archive)
        if detected is None:
            raise ArchiveFormatError(
                f"Unable to determine archive format of '{archive}'. "
                "Provide an explicit format_hint or use a supported suffix."
            )
        return detected

    def extract_archive(
        self,
        *,
        archive_path: Path | str,
        destination_dir: Path | str,
        format_hint: str | None = None,
    ) -> None:
        """Extract an archive to a destination directory.

        Parameters
        ----------
        archive_path:
            Path to the archive file.
        destination_dir:
            Directory where contents should be extracted.
        format_hint:
            Optional explicit archive format. When omitted, the format is
            inferred from the file suffix and then from its magic bytes.
        """
        archive = Path(archive_path).expanduser()
        dest = Path(destination_dir).expanduser()

        if not archive.exists():
            raise FileNotFoundError(f"Archive '{archive}' does not exist")

        archive_format = self.resolve_format(archive=archive, format_hint=format_hint)
        dest.mkdir(parents=True, exist_ok=True)

        if archive_format == "zst":
            self._extract_zst(archive, dest)
        elif archive_format == "zip":
            with zipfile.ZipFile(archive, "r") as zip_ref:
                zip_ref.extractall(dest)
        else:
            with tarfile.open(archive, _TAR_MODES[archive_format]) as tar:
                self._extract_tar(tar, dest)

        self._console.info(f"Extracted {archive} to {dest}")

    def _extract_zst(self, archive: Path, dest: Path) -> None:
        dctx = zstd.ZstdDecompressor()
        with archive.open("rb") as ifh:
            with dctx.stream_reader(ifh) as reader:
                with tarfile.open(fileobj=reader, mode="r|") as tar:
                    self._extract_tar(tar, dest)

    @staticmethod
    def _extract_tar(tar: tarfile.TarFile, dest: Path) -> None:
        kwargs: dict[str, Any] = {}
        if hasattr(tarfile, "data_filter"):
            kwargs["filter"] = "data"
        tar.extractall(path=dest, **kwargs)


__all__ = [
    "ArchiveConsole",
    "ArchiveFormatError",
    "ArchiveManager",
    "format_from_name",
    "format_from_url",
    "sniff_format",
]
