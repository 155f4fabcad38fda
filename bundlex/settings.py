"""Process-wide settings, including the precompiled dependency disable policy."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from core.config_loader import (
    find_config_file,
    load_config_file,
    normalize_string_list,
    resolve_path,
    resolve_search_paths,
)
from core.console import Console

SETTINGS_FILE_STEM = "bundlex-settings"
DEFAULT_BUILD_ROOT = Path("_build") / "bundlex"
DEFAULT_SEARCH_PATHS = ("deps",)


@dataclass(frozen=True)
class DisablePolicy:
    """Applications whose precompiled providers are skipped."""

    apps: frozenset[str] = frozenset()

    @classmethod
    def from_apps(cls, apps: Iterable[str]) -> "DisablePolicy":
        return cls(apps=frozenset(apps))

    def precompiled_disabled(self, app: str) -> bool:
        return app in self.apps


def _optional_float(value: Any, *, field_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{field_name} must be a number of seconds")
    if value <= 0:
        raise ValueError(f"{field_name} must be positive")
    return float(value)


@dataclass(slots=True)
class Settings:
    root: Path
    build_root: Path
    cache_root: Path
    disable_policy: DisablePolicy = field(default_factory=DisablePolicy)
    applications: Dict[str, Path] = field(default_factory=dict)
    search_paths: tuple[Path, ...] = ()
    pkg_config: str = "pkg-config"
    download_timeout: float | None = 60.0
    command_timeout: float | None = 30.0
    log_level: str = "none"
    target: str | None = None

    @classmethod
    def defaults(cls, root: Path) -> "Settings":
        return cls.from_mapping({}, root=root)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, root: Path) -> "Settings":
        global_section = data.get("global", {}) if isinstance(data, Mapping) else {}
        if not isinstance(global_section, Mapping):
            raise TypeError("[global] must be a table")

        build_root = resolve_path(root, global_section.get("build_root", DEFAULT_BUILD_ROOT))
        cache_root_value = global_section.get("cache_root")
        cache_root = resolve_path(root, cache_root_value) if cache_root_value else build_root / "precompiled"

        disable_section = data.get("disable_precompiled_os_deps", {})
        if not isinstance(disable_section, Mapping):
            raise TypeError("[disable_precompiled_os_deps] must be a table")
        disabled = normalize_string_list(disable_section.get("apps"), field_name="disable_precompiled_os_deps.apps")

        applications: Dict[str, Path] = {}
        applications_section = data.get("applications", {})
        if not isinstance(applications_section, Mapping):
            raise TypeError("[applications] must be a table of application directories")
        for app, directory in applications_section.items():
            if not isinstance(directory, str) or not directory.strip():
                raise TypeError(f"applications.{app} must be a directory path")
            applications[str(app)] = resolve_path(root, directory.strip())

        search_section = data.get("search", {})
        if not isinstance(search_section, Mapping):
            raise TypeError("[search] must be a table")
        raw_paths = search_section.get("paths")
        search_paths = resolve_search_paths(
            root,
            normalize_string_list(raw_paths, field_name="search.paths") if raw_paths is not None else DEFAULT_SEARCH_PATHS,
        )

        log_level = str(global_section.get("log_level", "none")).strip().lower()
        if log_level not in Console.LEVELS:
            allowed = ", ".join(Console.LEVELS)
            raise ValueError(f"global.log_level '{log_level}' is not supported (allowed: {allowed})")

        target = global_section.get("target")

        return cls(
            root=root,
            build_root=build_root,
            cache_root=cache_root,
            disable_policy=DisablePolicy.from_apps(disabled),
            applications=applications,
            search_paths=search_paths,
            pkg_config=str(global_section.get("pkg_config", "pkg-config")),
            download_timeout=_optional_float(global_section.get("download_timeout", 60), field_name="global.download_timeout"),
            command_timeout=_optional_float(global_section.get("command_timeout", 30), field_name="global.command_timeout"),
            log_level=log_level,
            target=str(target).strip() if isinstance(target, str) and target.strip() else None,
        )

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        path = path.expanduser().resolve()
        return cls.from_mapping(load_config_file(path), root=path.parent)

    @classmethod
    def discover(cls, workspace: Path) -> "Settings":
        """Load ``bundlex-settings.*`` from ``workspace`` or fall back to defaults."""

        path = find_config_file(workspace, SETTINGS_FILE_STEM)
        if path is None:
            return cls.defaults(workspace.resolve())
        return cls.from_file(path)

    def console(self) -> Console:
        return Console(self.log_level)


__all__ = [
    "DEFAULT_BUILD_ROOT",
    "DisablePolicy",
    "SETTINGS_FILE_STEM",
    "Settings",
]
