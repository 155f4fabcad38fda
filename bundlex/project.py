"""Project descriptor model and the parser that normalizes declarations."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from core.config_loader import listify, normalize_string_list

from .errors import InvalidProjectSpecification, InvalidUnitConfig
from .target import PlatformFamily

SRC_DIR_NAME = "c_src"
NATIVES = "natives"
LIBS = "libs"

CONFIG_KEYS = frozenset(
    {
        "sources",
        "includes",
        "lib_dirs",
        "libs",
        "os_deps",
        "pkg_configs",
        "deps",
        "src_base",
        "compiler_flags",
        "linker_flags",
        "language",
        "interface",
        "preprocessors",
    }
)
"""Keys understood by bundlex; anything else is kept for other tools."""


class NativeInterface(str, Enum):
    NIF = "nif"
    CNODE = "cnode"
    PORT = "port"


class Language(str, Enum):
    C = "c"
    CPP = "cpp"


@dataclass(frozen=True)
class PkgConfigProvider:
    names: Tuple[str, ...]

    kind = "pkg_config"


@dataclass(frozen=True)
class PrecompiledProvider:
    url: str | None
    libs: Tuple[str, ...]

    kind = "precompiled"


Provider = Union[PkgConfigProvider, PrecompiledProvider]


@dataclass(frozen=True)
class OSDependency:
    name: str
    providers: Tuple[Provider, ...]


@dataclass(frozen=True)
class UnitConfig:
    """A single native or lib after interface normalization.

    Typed accessors validate their field when read so that a malformed
    option only fails the units that actually use it.
    """

    app: str
    name: str
    kind: str
    interface: NativeInterface | None
    os_deps: Tuple[OSDependency, ...] = ()
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> tuple[str, NativeInterface | None]:
        return self.name, self.interface

    @property
    def label(self) -> str:
        if self.interface is None:
            return self.name
        return f"{self.name}[{self.interface.value}]"

    def _invalid(self, reason: str) -> InvalidUnitConfig:
        return InvalidUnitConfig(self.app, self.label, reason)

    def _strings(self, key: str) -> List[str]:
        try:
            return normalize_string_list(self.options.get(key), field_name=key)
        except TypeError as exc:
            raise self._invalid(str(exc)) from exc

    @property
    def sources(self) -> List[str]:
        return self._strings("sources")

    @property
    def includes(self) -> List[str]:
        return self._strings("includes")

    @property
    def lib_dirs(self) -> List[str]:
        return self._strings("lib_dirs")

    @property
    def libs(self) -> List[str]:
        return self._strings("libs")

    @property
    def compiler_flags(self) -> List[str]:
        return self._strings("compiler_flags")

    @property
    def linker_flags(self) -> List[str]:
        return self._strings("linker_flags")

    @property
    def preprocessors(self) -> List[str]:
        return self._strings("preprocessors")

    @property
    def src_base(self) -> str:
        value = self.options.get("src_base", self.app)
        if not isinstance(value, str) or not value.strip():
            raise self._invalid("src_base must be a non-empty string")
        return value.strip()

    @property
    def language(self) -> Language:
        value = self.options.get("language", Language.C.value)
        try:
            return Language(str(value).strip().lower())
        except ValueError as exc:
            raise self._invalid(f"language '{value}' is not supported (allowed: c, cpp)") from exc

    @property
    def extra_options(self) -> Dict[str, Any]:
        """Options bundlex does not interpret, passed through for other tools."""

        return {key: value for key, value in self.options.items() if key not in CONFIG_KEYS}

    @property
    def deps(self) -> List[tuple[str, List[str]]]:
        """Return ``(application, [lib names])`` pairs in declaration order."""

        raw = self.options.get("deps")
        if raw is None:
            return []
        pairs: List[tuple[Any, Any]] = []
        if isinstance(raw, Mapping):
            pairs = list(raw.items())
        elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
            for entry in raw:
                if isinstance(entry, Mapping) and "app" in entry:
                    pairs.append((entry["app"], entry.get("libs", entry.get("lib"))))
                elif isinstance(entry, Sequence) and not isinstance(entry, (str, bytes)) and len(entry) == 2:
                    pairs.append((entry[0], entry[1]))
                else:
                    raise self._invalid(f"malformed deps entry {entry!r}")
        else:
            raise self._invalid("deps must be a table or a list of [app, libs] pairs")

        result: List[tuple[str, List[str]]] = []
        for app, names in pairs:
            if not isinstance(app, str) or not app.strip():
                raise self._invalid("deps application names must be non-empty strings")
            try:
                lib_names = normalize_string_list(names, field_name=f"deps.{app}")
            except TypeError as exc:
                raise self._invalid(str(exc)) from exc
            if not lib_names:
                raise self._invalid(f"deps entry for '{app}' names no libs")
            result.append((app.strip(), lib_names))
        return result

    def with_options(self, updates: Mapping[str, Any], *, platform: PlatformFamily) -> "UnitConfig":
        """Return a copy with ``updates`` merged into the options."""

        options = dict(self.options)
        options.update(updates)
        os_deps = self.os_deps
        if "os_deps" in updates or "pkg_configs" in updates:
            os_deps = parse_os_deps(options, app=self.app, unit=self.label, platform=platform)
        return replace(self, os_deps=os_deps, options=MappingProxyType(options))


@dataclass(frozen=True, eq=False)
class ProjectDescriptor:
    """Fully parsed and normalized natives and libs of one application."""

    app: str
    config: Mapping[str, Tuple[UnitConfig, ...]]
    src_path: Path
    module: Path

    @property
    def natives(self) -> Tuple[UnitConfig, ...]:
        return self.config.get(NATIVES, ())

    @property
    def libs(self) -> Tuple[UnitConfig, ...]:
        return self.config.get(LIBS, ())

    def units(self, kind: str | None = None) -> Iterable[UnitConfig]:
        if kind in (None, NATIVES):
            yield from self.natives
        if kind in (None, LIBS):
            yield from self.libs

    def find_libs(self, name: str) -> List[UnitConfig]:
        return [unit for unit in self.libs if unit.name == name]

    def find_units(self, name: str, interface: NativeInterface | None = None) -> List[UnitConfig]:
        return [
            unit
            for unit in self.units()
            if unit.name == name and (interface is None or unit.interface == interface)
        ]


def _invalid(app: str, reason: str) -> InvalidProjectSpecification:
    return InvalidProjectSpecification(app, reason)


def _select_url(value: Any, platform: PlatformFamily, *, app: str, unit: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        for key in (platform.value, platform.group, platform.os_family, "default"):
            url = value.get(key)
            if url is None:
                continue
            if not isinstance(url, str):
                raise _invalid(app, f"{unit}: precompiled url for '{key}' must be a string")
            return url.strip() or None
        return None
    raise _invalid(app, f"{unit}: precompiled url must be a string or a table of platform urls")


def _string_tuple(value: Any, *, app: str, unit: str, field_name: str) -> Tuple[str, ...]:
    try:
        return tuple(normalize_string_list(value, field_name=field_name))
    except TypeError as exc:
        raise _invalid(app, f"{unit}: {exc}") from exc


def parse_provider(spec: Any, *, dependency: str, app: str, unit: str, platform: PlatformFamily) -> Provider:
    """Turn one provider declaration into a :data:`Provider` variant."""

    if spec == PkgConfigProvider.kind:
        return PkgConfigProvider(names=(dependency,))
    if isinstance(spec, Mapping):
        keys = set(spec)
        if keys == {PkgConfigProvider.kind}:
            raw_names = spec[PkgConfigProvider.kind]
            if raw_names is True or raw_names is None:
                return PkgConfigProvider(names=(dependency,))
            names = _string_tuple(raw_names, app=app, unit=unit, field_name="pkg_config")
            return PkgConfigProvider(names=names or (dependency,))
        if PrecompiledProvider.kind in keys and keys <= {PrecompiledProvider.kind, "libs"}:
            url = _select_url(spec[PrecompiledProvider.kind], platform, app=app, unit=unit)
            libs = _string_tuple(spec.get("libs"), app=app, unit=unit, field_name="libs")
            return PrecompiledProvider(url=url, libs=libs or (dependency,))
    raise _invalid(app, f"{unit}: unrecognized provider {spec!r} for OS dependency '{dependency}'")


def _parse_os_dep(name: Any, spec: Any, *, app: str, unit: str, platform: PlatformFamily) -> OSDependency:
    if not isinstance(name, str) or not name.strip():
        raise _invalid(app, f"{unit}: OS dependency names must be non-empty strings")
    name = name.strip()
    specs = listify(spec)
    if not specs:
        raise _invalid(app, f"{unit}: OS dependency '{name}' declares no providers")
    providers = tuple(
        parse_provider(item, dependency=name, app=app, unit=unit, platform=platform) for item in specs
    )
    return OSDependency(name=name, providers=providers)


def parse_os_deps(options: Mapping[str, Any], *, app: str, unit: str, platform: PlatformFamily) -> Tuple[OSDependency, ...]:
    """Parse ``os_deps`` and the deprecated ``pkg_configs`` key of a unit."""

    dependencies: List[OSDependency] = []
    raw = options.get("os_deps")
    if isinstance(raw, Mapping):
        for name, spec in raw.items():
            dependencies.append(_parse_os_dep(name, spec, app=app, unit=unit, platform=platform))
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise _invalid(app, f"{unit}: os_deps entries must be tables")
            if "name" in entry:
                unknown = set(entry) - {"name", "providers"}
                if unknown:
                    raise _invalid(app, f"{unit}: os_deps entry has unknown keys: {', '.join(sorted(unknown))}")
                dependencies.append(
                    _parse_os_dep(entry["name"], entry.get("providers"), app=app, unit=unit, platform=platform)
                )
            elif set(entry) == {PkgConfigProvider.kind}:
                # Deprecated form: the pkg-config names double as the dependency name.
                names = _string_tuple(entry[PkgConfigProvider.kind], app=app, unit=unit, field_name="pkg_config")
                if not names:
                    raise _invalid(app, f"{unit}: pkg_config entry names no packages")
                dependencies.append(OSDependency(name=",".join(names), providers=(PkgConfigProvider(names=names),)))
            else:
                raise _invalid(app, f"{unit}: unrecognized os_deps entry {dict(entry)!r}")
    elif raw is not None:
        raise _invalid(app, f"{unit}: os_deps must be a table or a list of tables")

    for name in _string_tuple(options.get("pkg_configs"), app=app, unit=unit, field_name="pkg_configs"):
        dependencies.append(OSDependency(name=name, providers=(PkgConfigProvider(names=(name,)),)))

    return tuple(dependencies)


def _iter_declared_units(section: Any, *, app: str, kind: str) -> Iterable[tuple[str, Mapping[str, Any]]]:
    if section is None:
        return
    if isinstance(section, Mapping):
        items: Iterable[tuple[Any, Any]] = section.items()
    elif isinstance(section, Sequence) and not isinstance(section, (str, bytes)):
        items = []
        for entry in section:
            if not isinstance(entry, Mapping):
                raise _invalid(app, f"{kind} entries must be tables")
            body = dict(entry)
            items.append((body.pop("name", None), body))
    else:
        raise _invalid(app, f"{kind} must be a list of tables or a table keyed by name")

    for name, config in items:
        if not isinstance(name, str) or not name.strip():
            raise _invalid(app, f"every entry in {kind} needs a non-empty name")
        if not isinstance(config, Mapping):
            raise _invalid(app, f"{kind}.{name} must be a table")
        yield name.strip(), config


def _expand_interfaces(
    section: Any,
    *,
    app: str,
    kind: str,
    platform: PlatformFamily,
) -> Tuple[UnitConfig, ...]:
    units: List[UnitConfig] = []
    for name, config in _iter_declared_units(section, app=app, kind=kind):
        raw_interfaces = listify(config.get("interface"))
        interfaces: List[NativeInterface | None] = []
        for value in raw_interfaces:
            try:
                interfaces.append(NativeInterface(str(value).strip().lower()))
            except ValueError as exc:
                raise _invalid(app, f"{kind}.{name}: unknown interface '{value}'") from exc
        if not interfaces:
            interfaces = [None]

        for interface in interfaces:
            options: Dict[str, Any] = dict(config)
            if interface is None:
                options.pop("interface", None)
            else:
                options["interface"] = interface.value
            label = name if interface is None else f"{name}[{interface.value}]"
            units.append(
                UnitConfig(
                    app=app,
                    name=name,
                    kind=kind,
                    interface=interface,
                    os_deps=parse_os_deps(options, app=app, unit=label, platform=platform),
                    options=MappingProxyType(options),
                )
            )
    return tuple(units)


def parse_project_config(
    declaration: Any,
    *,
    app: str,
    platform: PlatformFamily,
) -> Mapping[str, Tuple[UnitConfig, ...]]:
    """Validate the shape of ``declaration`` and normalize its units.

    Natives and libs declared with several interfaces are expanded into one
    :class:`UnitConfig` per interface sharing all remaining options.
    """

    if not isinstance(declaration, Mapping):
        raise _invalid(app, "project declaration must be a table, not a list")

    return MappingProxyType(
        {
            kind: _expand_interfaces(declaration.get(kind), app=app, kind=kind, platform=platform)
            for kind in (NATIVES, LIBS)
        }
    )


def build_descriptor(
    declaration: Any,
    *,
    app: str,
    project_dir: Path,
    module: Path,
    platform: PlatformFamily,
) -> ProjectDescriptor:
    config = parse_project_config(declaration, app=app, platform=platform)
    src_dir = declaration.get("src_dir", SRC_DIR_NAME)
    if not isinstance(src_dir, str) or not src_dir.strip():
        raise _invalid(app, "src_dir must be a non-empty string")
    return ProjectDescriptor(
        app=app,
        config=config,
        src_path=(project_dir / src_dir.strip()).resolve(),
        module=module,
    )


__all__ = [
    "CONFIG_KEYS",
    "LIBS",
    "Language",
    "NATIVES",
    "NativeInterface",
    "OSDependency",
    "PkgConfigProvider",
    "PrecompiledProvider",
    "ProjectDescriptor",
    "Provider",
    "SRC_DIR_NAME",
    "UnitConfig",
    "build_descriptor",
    "parse_os_deps",
    "parse_project_config",
    "parse_provider",
]
