"""Configuration resolution core for building natives and libs of applications."""
from __future__ import annotations

from .dependencies import DependencyGraphResolver, LibReference
from .errors import (
    AcquisitionError,
    BundlexError,
    CyclicDependency,
    DependencyResolutionError,
    DownloadFailed,
    ExtractFailed,
    InvalidProjectSpecification,
    InvalidUnitConfig,
    NoBundlexProjectInFile,
    NoProviderSucceeded,
    ProviderAttempt,
    UnknownApplication,
    UnknownDependency,
    UnknownUnit,
    UnsupportedPlatform,
    UnsupportedTarget,
)
from .flags import ComposedFlags, compose_flags
from .planner import BuildPlan, BuildPlanner, output_path, serialize_plans
from .precompiled import ArtifactAcquirer, PrecompiledArtifact
from .project import (
    Language,
    NativeInterface,
    OSDependency,
    PkgConfigProvider,
    PrecompiledProvider,
    ProjectDescriptor,
    UnitConfig,
    parse_project_config,
)
from .providers import PkgConfig, ProviderResolver, ResolvedDependency
from .settings import DisablePolicy, Settings
from .store import DirectoryApplicationLocator, FileProjectLoader, ProjectStore
from .target import PlatformFamily, Target, classify, get_target

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "ArtifactAcquirer",
    "BuildPlan",
    "BuildPlanner",
    "BundlexError",
    "ComposedFlags",
    "CyclicDependency",
    "DependencyGraphResolver",
    "DependencyResolutionError",
    "DirectoryApplicationLocator",
    "DisablePolicy",
    "DownloadFailed",
    "ExtractFailed",
    "FileProjectLoader",
    "InvalidProjectSpecification",
    "InvalidUnitConfig",
    "Language",
    "LibReference",
    "NativeInterface",
    "NoBundlexProjectInFile",
    "NoProviderSucceeded",
    "OSDependency",
    "PkgConfig",
    "PkgConfigProvider",
    "PlatformFamily",
    "PrecompiledArtifact",
    "PrecompiledProvider",
    "ProjectDescriptor",
    "ProjectStore",
    "ProviderAttempt",
    "ProviderResolver",
    "ResolvedDependency",
    "Settings",
    "Target",
    "UnitConfig",
    "UnknownApplication",
    "UnknownDependency",
    "UnknownUnit",
    "UnsupportedPlatform",
    "UnsupportedTarget",
    "classify",
    "compose_flags",
    "get_target",
    "output_path",
    "parse_project_config",
    "serialize_plans",
    "__version__",
]
