"""Locating, loading and caching project descriptors per application."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol, Sequence
import threading

from core.config_loader import FILE_LOADERS, decode_config_file, find_config_file
from core.console import Console

from .errors import InvalidProjectSpecification, NoBundlexProjectInFile, UnknownApplication
from .project import ProjectDescriptor, build_descriptor
from .target import PlatformFamily

PROJECT_FILE_STEM = "bundlex"
PROJECT_SECTION = "project"


class ApplicationLocator(Protocol):
    def locate(self, app: str) -> Path:
        """Return the root directory of ``app`` or raise :class:`UnknownApplication`."""
        ...


class DirectoryApplicationLocator:
    """Finds applications in an explicit mapping first, then in search paths."""

    def __init__(self, applications: Mapping[str, Path] | None = None, search_paths: Sequence[Path] = ()) -> None:
        self._applications = dict(applications or {})
        self._search_paths = tuple(search_paths)

    def locate(self, app: str) -> Path:
        searched: list[Path] = []
        explicit = self._applications.get(app)
        if explicit is not None:
            if explicit.is_dir():
                return explicit
            searched.append(explicit)
        for root in self._search_paths:
            candidate = root / app
            if candidate.is_dir():
                return candidate.resolve()
            searched.append(candidate)
        raise UnknownApplication(app, searched)


@dataclass(frozen=True)
class LoadedDeclaration:
    """Raw project declaration as produced by a :class:`ProjectLoader`."""

    declaration: Any
    project_dir: Path
    module: Path


class ProjectLoader(Protocol):
    def load(self, app: str) -> LoadedDeclaration:
        ...


class FileProjectLoader:
    """Reads the ``[project]`` table of ``bundlex.{toml,json,yaml,yml}``."""

    def __init__(self, locator: ApplicationLocator) -> None:
        self._locator = locator

    def load(self, app: str) -> LoadedDeclaration:
        project_dir = self._locator.locate(app)
        try:
            path = find_config_file(project_dir, PROJECT_FILE_STEM)
        except ValueError as exc:
            raise InvalidProjectSpecification(app, str(exc)) from exc
        if path is None:
            first_suffix = next(iter(FILE_LOADERS))
            raise NoBundlexProjectInFile(project_dir / f"{PROJECT_FILE_STEM}{first_suffix}")

        try:
            data = decode_config_file(path)
        except ValueError as exc:
            # ConfigFormatError, TOMLDecodeError and JSONDecodeError are all ValueErrors
            raise InvalidProjectSpecification(app, f"{path.name}: {exc}") from exc

        if not isinstance(data, Mapping) or PROJECT_SECTION not in data:
            raise NoBundlexProjectInFile(path)

        return LoadedDeclaration(declaration=data[PROJECT_SECTION], project_dir=project_dir, module=path)


class ProjectStore:
    """Process-wide cache of project descriptors keyed by application.

    First resolution of an application is serialized by a per-key lock, so
    concurrent callers asking for the same application trigger one load.
    Different applications load concurrently. Entries are never evicted.
    """

    def __init__(
        self,
        loader: ProjectLoader,
        *,
        platform: PlatformFamily,
        console: Console | None = None,
    ) -> None:
        self._loader = loader
        self._platform = platform
        self._console = console or Console()
        self._projects: Dict[str, ProjectDescriptor] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._loads: Counter[str] = Counter()

    @property
    def platform(self) -> PlatformFamily:
        return self._platform

    def _lock_for(self, app: str) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(app)
            if lock is None:
                lock = self._key_locks[app] = threading.Lock()
            return lock

    def cached(self, app: str) -> ProjectDescriptor | None:
        with self._guard:
            return self._projects.get(app)

    def insert_if_absent(self, app: str, project: ProjectDescriptor) -> ProjectDescriptor:
        """Store ``project`` unless ``app`` is cached already; return the cached value."""

        with self._guard:
            return self._projects.setdefault(app, project)

    def get(self, app: str) -> ProjectDescriptor:
        project = self.cached(app)
        if project is not None:
            return project

        with self._lock_for(app):
            project = self.cached(app)
            if project is not None:
                return project
            project = self._load(app)
            return self.insert_if_absent(app, project)

    def _load(self, app: str) -> ProjectDescriptor:
        self._console.debug(f"Loading bundlex project of '{app}'")
        with self._guard:
            self._loads[app] += 1
        loaded = self._loader.load(app)
        project = build_descriptor(
            loaded.declaration,
            app=app,
            project_dir=loaded.project_dir,
            module=loaded.module,
            platform=self._platform,
        )
        self._console.info(
            f"Loaded {app}: {len(project.natives)} native(s), {len(project.libs)} lib(s) from {loaded.module}"
        )
        return project

    def load_count(self, app: str) -> int:
        with self._guard:
            return self._loads[app]

    def applications(self) -> list[str]:
        with self._guard:
            return sorted(self._projects)


__all__ = [
    "ApplicationLocator",
    "DirectoryApplicationLocator",
    "FileProjectLoader",
    "LoadedDeclaration",
    "PROJECT_FILE_STEM",
    "ProjectLoader",
    "ProjectStore",
]
