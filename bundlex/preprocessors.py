"""Preprocessors that rewrite a unit's options before it is planned."""
from __future__ import annotations

from importlib import import_module
from typing import Any, Callable, Dict, Mapping

from .errors import InvalidUnitConfig
from .project import ProjectDescriptor, UnitConfig
from .target import PlatformFamily

Preprocessor = Callable[[UnitConfig, ProjectDescriptor], Mapping[str, Any] | None]

_REGISTRY: Dict[str, Preprocessor] = {}


def register_preprocessor(name: str, preprocessor: Preprocessor) -> None:
    """Make ``preprocessor`` available under a short ``name``."""

    if not name or ":" in name:
        raise ValueError("Preprocessor names must be non-empty and must not contain ':'")
    _REGISTRY[name] = preprocessor


def resolve_preprocessor(reference: str) -> Preprocessor:
    """Look up a registered name or import a ``package.module:attribute`` reference."""

    registered = _REGISTRY.get(reference)
    if registered is not None:
        return registered

    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise LookupError(f"'{reference}' is neither a registered preprocessor nor a module:attribute reference")
    module = import_module(module_name)
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    if not callable(target):
        raise LookupError(f"'{reference}' is not callable")
    return target


def apply_preprocessors(unit: UnitConfig, project: ProjectDescriptor, *, platform: PlatformFamily) -> UnitConfig:
    for reference in unit.preprocessors:
        try:
            preprocessor = resolve_preprocessor(reference)
        except (LookupError, ImportError, AttributeError) as exc:
            raise InvalidUnitConfig(unit.app, unit.label, f"cannot load preprocessor: {exc}") from exc
        updates = preprocessor(unit, project)
        if updates:
            unit = unit.with_options(updates, platform=platform)
    return unit


__all__ = [
    "Preprocessor",
    "apply_preprocessors",
    "register_preprocessor",
    "resolve_preprocessor",
]
