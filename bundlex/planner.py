"""Build plan generation for natives and libs."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence
import json
import threading

from core.command_runner import CommandRunner, SubprocessCommandRunner
from core.console import Console

from .dependencies import DependencyGraphResolver, LibReference
from .errors import InvalidUnitConfig, UnknownUnit
from .flags import LinkedLib, compose_flags
from .precompiled import ArtifactAcquirer, Downloader
from .preprocessors import apply_preprocessors
from .project import LIBS, NATIVES, NativeInterface, ProjectDescriptor, UnitConfig
from .providers import PkgConfig, ProviderResolver, ResolvedDependency
from .settings import Settings
from .store import DirectoryApplicationLocator, FileProjectLoader, ProjectLoader, ProjectStore
from .target import PlatformFamily, Target, classify, get_target


def output_path(
    build_root: Path,
    app: str,
    name: str,
    interface: NativeInterface | None,
    *,
    kind: str,
    platform: PlatformFamily,
) -> Path:
    """Return where the compiled artifact of a native or lib is placed."""

    windows = platform.os_family == "windows"
    if kind == LIBS:
        directory = build_root / app / "lib"
        if interface is not None:
            directory = directory / interface.value
        return directory / (f"{name}.lib" if windows else f"lib{name}.a")

    if interface is None:
        raise ValueError(f"Native '{name}' of '{app}' has no interface")
    directory = build_root / app / interface.value
    if interface is NativeInterface.NIF:
        return directory / (f"{name}.dll" if windows else f"{name}.so")
    return directory / (f"{name}.exe" if windows else name)


@dataclass(slots=True)
class BuildPlan:
    app: str
    name: str
    kind: str
    interface: str | None
    language: str
    sources: List[str]
    includes: List[str]
    lib_dirs: List[str]
    libs: List[str]
    static_libs: List[str]
    compiler_flags: List[str]
    linker_flags: List[str]
    output_path: str
    os_deps: Dict[str, List[str]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "app": self.app,
            "name": self.name,
            "kind": self.kind,
            "interface": self.interface,
            "language": self.language,
            "sources": list(self.sources),
            "includes": list(self.includes),
            "lib_dirs": list(self.lib_dirs),
            "libs": list(self.libs),
            "static_libs": list(self.static_libs),
            "compiler_flags": list(self.compiler_flags),
            "linker_flags": list(self.linker_flags),
            "output_path": self.output_path,
            "os_deps": {name: list(providers) for name, providers in self.os_deps.items()},
            "extra": dict(self.extra),
        }


def serialize_plans(plans: Iterable[BuildPlan]) -> str:
    return json.dumps([plan.to_mapping() for plan in plans], indent=2, sort_keys=True, default=str)


class BuildPlanner:
    """Turns project descriptors into fully resolved :class:`BuildPlan` values."""

    def __init__(
        self,
        *,
        store: ProjectStore,
        providers: ProviderResolver,
        build_root: Path,
        console: Console | None = None,
    ) -> None:
        self._store = store
        self._providers = providers
        self._graph = DependencyGraphResolver(store)
        self._build_root = build_root
        self._console = console or Console()
        self._resolved: Dict[tuple[str, str, str], ResolvedDependency] = {}
        self._resolved_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        runner: CommandRunner | None = None,
        downloader: Downloader | None = None,
        loader: ProjectLoader | None = None,
        console: Console | None = None,
        target: Target | None = None,
    ) -> "BuildPlanner":
        console = console or settings.console()
        target = target or get_target(settings.target)
        platform = classify(target)
        if loader is None:
            locator = DirectoryApplicationLocator(settings.applications, settings.search_paths)
            loader = FileProjectLoader(locator)
        store = ProjectStore(loader, platform=platform, console=console)
        acquirer = ArtifactAcquirer(
            settings.cache_root,
            downloader=downloader,
            console=console,
            timeout=settings.download_timeout,
        )
        pkg_config = PkgConfig(
            runner or SubprocessCommandRunner(),
            executable=settings.pkg_config,
            timeout=settings.command_timeout,
        )
        providers = ProviderResolver(
            pkg_config=pkg_config,
            acquirer=acquirer,
            platform=platform,
            disable_policy=settings.disable_policy,
            console=console,
        )
        return cls(store=store, providers=providers, build_root=settings.build_root, console=console)

    @property
    def store(self) -> ProjectStore:
        return self._store

    @property
    def platform(self) -> PlatformFamily:
        return self._store.platform

    def output_path(self, app: str, unit: UnitConfig) -> Path:
        return output_path(self._build_root, app, unit.name, unit.interface, kind=unit.kind, platform=self.platform)

    def plan_project(self, app: str) -> List[BuildPlan]:
        project = self._store.get(app)
        return [self._plan(project, unit) for unit in project.units(LIBS)] + [
            self._plan(project, unit) for unit in project.units(NATIVES)
        ]

    def plan_unit(self, app: str, name: str, interface: NativeInterface | str | None = None) -> List[BuildPlan]:
        project = self._store.get(app)
        wanted = NativeInterface(interface) if isinstance(interface, str) else interface
        units = project.find_units(name, wanted)
        if not units:
            raise UnknownUnit(app, name)
        return [self._plan(project, unit) for unit in units]

    def _resolve_os_deps(self, project: ProjectDescriptor, unit: UnitConfig) -> tuple[ResolvedDependency, Dict[str, List[str]]]:
        combined = ResolvedDependency()
        used: Dict[str, List[str]] = {}
        for dependency in unit.os_deps:
            key = (project.app, dependency.name, repr(dependency.providers))
            with self._resolved_lock:
                cached = self._resolved.get(key)
            if cached is None:
                cached = self._providers.resolve(dependency, app=project.app, unit=unit.label)
                with self._resolved_lock:
                    cached = self._resolved.setdefault(key, cached)
            used[dependency.name] = list(cached.providers)
            combined = combined.merge(cached)
        return combined, used

    @staticmethod
    def _project_paths(project: ProjectDescriptor, values: Sequence[str]) -> List[str]:
        base = project.module.parent
        return [str(path if path.is_absolute() else (base / path).resolve()) for path in map(Path, values)]

    def _linked_lib(self, reference: LibReference) -> LinkedLib:
        lib = apply_preprocessors(reference.unit, reference.project, platform=self.platform)
        os_deps, _ = self._resolve_os_deps(reference.project, lib)
        own = ResolvedDependency(
            lib_dirs=self._project_paths(reference.project, lib.lib_dirs),
            libs=lib.libs,
            linker_flags=lib.linker_flags,
        )
        return LinkedLib(
            output_path=str(self.output_path(reference.project.app, lib)),
            includes=[str(reference.project.src_path), *self._project_paths(reference.project, lib.includes)],
            requirements=own.merge(os_deps),
        )

    def _plan(self, project: ProjectDescriptor, unit: UnitConfig) -> BuildPlan:
        unit = apply_preprocessors(unit, project, platform=self.platform)
        if unit.kind == NATIVES and unit.interface is None:
            raise InvalidUnitConfig(project.app, unit.label, "natives must declare an interface (nif, cnode or port)")
        sources = unit.sources
        if not sources:
            raise InvalidUnitConfig(project.app, unit.label, "at least one source must be provided")

        self._console.debug(f"Planning {project.app}:{unit.label}")
        os_deps, used = self._resolve_os_deps(project, unit)
        libs = [self._linked_lib(reference) for reference in self._graph.resolve(project, unit)]
        flags = compose_flags(
            unit,
            os_deps,
            libs,
            base_includes=[str(project.src_path)],
            includes=self._project_paths(project, unit.includes),
            lib_dirs=self._project_paths(project, unit.lib_dirs),
        )

        source_dir = project.src_path / unit.src_base
        return BuildPlan(
            app=project.app,
            name=unit.name,
            kind="lib" if unit.kind == LIBS else "native",
            interface=unit.interface.value if unit.interface else None,
            language=unit.language.value,
            sources=[str(source_dir / source) for source in sources],
            includes=flags.includes,
            lib_dirs=flags.lib_dirs,
            libs=flags.libs,
            static_libs=flags.static_libs,
            compiler_flags=flags.compiler_flags,
            linker_flags=flags.linker_flags,
            output_path=str(self.output_path(project.app, unit)),
            os_deps=used,
            extra=unit.extra_options,
        )


__all__ = [
    "BuildPlan",
    "BuildPlanner",
    "output_path",
    "serialize_plans",
]
