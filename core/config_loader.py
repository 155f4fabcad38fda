"""Shared helpers for locating and loading configuration mappings."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import json
import tomllib

try:  # Optional dependency for YAML support
    import yaml
except ModuleNotFoundError:  # pragma: no cover - exercised when PyYAML absent
    yaml = None


ConfigLoader = Callable[[Any], Any]


class ConfigFormatError(ValueError):
    """Raised when a configuration file cannot be decoded."""


class DuplicateKeyError(ConfigFormatError):
    """Raised when a decoded mapping repeats one of its keys."""


def _raise_yaml_missing() -> Mapping[str, Any]:
    raise ConfigFormatError(
        "PyYAML is required to load YAML configuration files. Install with `pip install PyYAML`."
    )


def _unique_object(pairs: List[tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise DuplicateKeyError(f"Duplicate key '{key}'")
        result[key] = value
    return result


def _construct_unique_mapping(loader: Any, node: Any, deep: bool = False) -> Dict[Any, Any]:
    seen: List[Any] = []
    for key_node, _ in node.value:
        if key_node.tag == "tag:yaml.org,2002:merge":
            continue
        key = loader.construct_object(key_node, deep=deep)
        if key in seen:
            raise DuplicateKeyError(f"Duplicate key '{key}'")
        seen.append(key)
    return loader.construct_mapping(node, deep=deep)


if yaml is not None:

    class _UniqueKeyLoader(yaml.SafeLoader):
        """SafeLoader that rejects mappings repeating a key."""

    _UniqueKeyLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping)
    _YAML_ERRORS: tuple[type[Exception], ...] = (yaml.YAMLError,)
else:  # pragma: no cover - exercised when PyYAML absent
    _UniqueKeyLoader = None
    _YAML_ERRORS = ()


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream, object_pairs_hook=_unique_object),
    ".yaml": lambda stream: yaml.load(stream, Loader=_UniqueKeyLoader) if yaml else _raise_yaml_missing(),
    ".yml": lambda stream: yaml.load(stream, Loader=_UniqueKeyLoader) if yaml else _raise_yaml_missing(),
}
"""Mapping of file suffixes to loader callables."""


def register_loader(suffix: str, loader: ConfigLoader) -> None:
    """Register ``loader`` for files ending with ``suffix``."""

    normalized = suffix.lower()
    if not normalized.startswith("."):
        raise ValueError("Suffix must start with '.'")
    FILE_LOADERS[normalized] = loader


def decode_config_file(path: Path) -> Any:
    """Decode ``path`` with the loader registered for its suffix.

    Unlike :func:`load_config_file` the decoded root is returned as-is so
    callers can report their own error for non-mapping documents.
    """

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        try:
            return loader(handle)
        except _YAML_ERRORS as exc:
            raise ConfigFormatError(f"invalid YAML: {exc}") from exc


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    data = decode_config_file(path)
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def find_config_file(directory: Path, stem: str) -> Path | None:
    """Return the single file named ``stem`` with a supported suffix in ``directory``."""

    matches: List[Path] = []
    for suffix in FILE_LOADERS:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            matches.append(candidate)

    if len(matches) > 1:
        names = "', '".join(path.name for path in matches)
        raise ValueError(
            f"Multiple configuration files found for '{stem}': '{names}'. "
            "Only one format per configuration entry is allowed."
        )
    return matches[0] if matches else None


def listify(value: Any) -> List[Any]:
    """Wrap scalars into a one-element list; ``None`` becomes an empty list."""

    if value is None:
        return []
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    return [value]


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Coerce ``value`` into a list of trimmed strings."""

    if value is None:
        return []

    if isinstance(value, (str, bytes)):
        text = str(value).strip()
        return [text] if text else []

    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, (str, bytes)):
                label = f"{field_name} " if field_name else ""
                raise TypeError(f"{label}entries must be strings")
            text = str(item).strip()
            if text:
                items.append(text)
        return items

    label = f"{field_name} " if field_name else ""
    raise TypeError(f"{label}must be a string or sequence of strings")


def resolve_path(base: Path, value: str | Path) -> Path:
    """Resolve ``value`` relative to ``base`` unless it is already absolute."""

    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def resolve_search_paths(root: Path, directories: Iterable[str | Path]) -> tuple[Path, ...]:
    """Resolve ``directories`` relative to ``root`` dropping duplicates."""

    resolved: List[Path] = []
    for raw in directories:
        path = resolve_path(root, raw)
        if path not in resolved:
            resolved.append(path)
    return tuple(resolved)


__all__ = [
    "ConfigFormatError",
    "ConfigLoader",
    "DuplicateKeyError",
    "FILE_LOADERS",
    "decode_config_file",
    "find_config_file",
    "listify",
    "load_config_file",
    "normalize_string_list",
    "register_loader",
    "resolve_path",
    "resolve_search_paths",
]
