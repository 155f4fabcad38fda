"""Exception hierarchy raised while resolving bundlex projects."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence


class BundlexError(Exception):
    """Base class for all resolution errors."""


class UnsupportedTarget(BundlexError):
    def __init__(self, triplet: str):
        super().__init__(f"Unsupported target triplet '{triplet}': expected at least architecture-vendor-os")
        self.triplet = triplet


class UnsupportedPlatform(BundlexError):
    def __init__(self, target: object):
        super().__init__(f"Unsupported platform for target {target}")
        self.target = target


class InvalidProjectSpecification(BundlexError):
    def __init__(self, app: str, reason: str):
        super().__init__(f"Invalid bundlex project specification for '{app}': {reason}")
        self.app = app
        self.reason = reason


class InvalidUnitConfig(InvalidProjectSpecification):
    """A single field of a native or lib failed validation when it was read."""

    def __init__(self, app: str, unit: str, reason: str):
        super().__init__(app, f"{unit}: {reason}")
        self.unit = unit


class NoBundlexProjectInFile(BundlexError):
    def __init__(self, path: Path):
        super().__init__(f"No bundlex project declared in {path}")
        self.path = path


class UnknownApplication(BundlexError):
    def __init__(self, app: str, searched: Sequence[Path] = ()):
        message = f"Unknown application '{app}'"
        if searched:
            message = f"{message} (searched: {', '.join(str(path) for path in searched)})"
        super().__init__(message)
        self.app = app
        self.searched = tuple(searched)


class UnknownDependency(BundlexError):
    def __init__(self, app: str, name: str):
        super().__init__(f"Application '{app}' does not define a lib named '{name}'")
        self.app = app
        self.name = name


class UnknownUnit(BundlexError):
    def __init__(self, app: str, name: str):
        super().__init__(f"Application '{app}' declares no native or lib named '{name}'")
        self.app = app
        self.name = name


class CyclicDependency(BundlexError):
    def __init__(self, chain: Sequence[tuple[str, str]]):
        rendered = " -> ".join(f"{app}:{name}" for app, name in chain)
        super().__init__(f"Circular dependency detected: {rendered}")
        self.chain = tuple(chain)


class DependencyResolutionError(BundlexError):
    """Wraps a failure to load the project a unit depends on."""

    def __init__(self, consumer: tuple[str, str], dependency_app: str, cause: BundlexError):
        app, unit = consumer
        super().__init__(f"{app}:{unit} depends on '{dependency_app}': {cause}")
        self.consumer = consumer
        self.dependency_app = dependency_app
        self.cause = cause


class AcquisitionError(BundlexError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class DownloadFailed(AcquisitionError):
    pass


class ExtractFailed(AcquisitionError):
    pass


@dataclass(frozen=True)
class ProviderAttempt:
    """Diagnostic of one provider that did not satisfy a dependency."""

    provider: str
    reason: str

    def __str__(self) -> str:
        return f"{self.provider}: {self.reason}"


class NoProviderSucceeded(BundlexError):
    def __init__(
        self,
        app: str,
        dependency: str,
        attempts: Sequence[ProviderAttempt],
        *,
        unit: str | None = None,
    ):
        details = "; ".join(str(attempt) for attempt in attempts) or "no providers declared"
        owner = f"{app}:{unit}" if unit else app
        super().__init__(f"Could not resolve OS dependency '{dependency}' of '{owner}': {details}")
        self.app = app
        self.unit = unit
        self.dependency = dependency
        self.attempts = tuple(attempts)


__all__ = [
    "AcquisitionError",
    "BundlexError",
    "CyclicDependency",
    "DependencyResolutionError",
    "DownloadFailed",
    "ExtractFailed",
    "InvalidProjectSpecification",
    "InvalidUnitConfig",
    "NoBundlexProjectInFile",
    "NoProviderSucceeded",
    "ProviderAttempt",
    "UnknownApplication",
    "UnknownDependency",
    "UnknownUnit",
    "UnsupportedPlatform",
    "UnsupportedTarget",
]
