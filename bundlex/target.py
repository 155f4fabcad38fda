"""Host target triplet detection and platform classification."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict
import platform
import sysconfig

from .errors import UnsupportedPlatform, UnsupportedTarget

_ARCH_ALIASES: Dict[str, str] = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "i686",
    "x86": "i686",
}

_EMBEDDED_OS_PREFIXES = ("none", "elf", "eabi")
_WINDOWS_OS_PREFIXES = ("win32", "windows", "mingw", "cygwin", "msys")
_WINDOWS64_ARCHS = {"x86_64", "aarch64"}
_WINDOWS32_ARCHS = {"i686", "i586", "i486"}


class PlatformFamily(str, Enum):
    LINUX = "linux"
    MACOS_INTEL = "macos_intel"
    MACOS_ARM = "macos_arm"
    WINDOWS32 = "windows32"
    WINDOWS64 = "windows64"
    EMBEDDED = "embedded"

    @property
    def os_family(self) -> str:
        """Return ``"windows"`` or ``"unix"``."""

        if self in (PlatformFamily.WINDOWS32, PlatformFamily.WINDOWS64):
            return "windows"
        return "unix"

    @property
    def group(self) -> str:
        """Coarse platform group used as a fallback key in URL tables."""

        if self in (PlatformFamily.MACOS_INTEL, PlatformFamily.MACOS_ARM):
            return "macos"
        if self.os_family == "windows":
            return "windows"
        return self.value


@dataclass(frozen=True)
class Target:
    """Architecture, vendor, OS and optional ABI of a build host."""

    architecture: str
    vendor: str
    os: str
    abi: str | None = None

    @property
    def triplet(self) -> str:
        parts = [self.architecture, self.vendor, self.os]
        if self.abi:
            parts.append(self.abi)
        return "-".join(parts)

    def __str__(self) -> str:
        return self.triplet


def parse_target(triplet: str) -> Target:
    """Split a ``arch-vendor-os[-abi]`` string into a :class:`Target`.

    Components after the fourth are ignored.
    """

    parts = triplet.strip().split("-")
    if len(parts) < 3 or not all(parts[:3]):
        raise UnsupportedTarget(triplet)
    architecture, vendor, os_name, *rest = parts
    return Target(
        architecture=architecture,
        vendor=vendor,
        os=os_name,
        abi=rest[0] if rest else None,
    )


def host_triplet() -> str:
    """Return the triplet the running interpreter was built for."""

    host = sysconfig.get_config_var("HOST_GNU_TYPE")
    if isinstance(host, str) and host.count("-") >= 2:
        return host

    machine = platform.machine().lower() or "unknown"
    system = platform.system().lower() or "unknown"
    if system == "windows":
        return f"{machine}-pc-win32"
    if system == "darwin":
        return f"{machine}-apple-darwin{platform.release()}"
    return f"{machine}-unknown-{system}"


def get_target(triplet: str | None = None) -> Target:
    """Return the :class:`Target` for ``triplet`` or for the current host."""

    return parse_target(triplet if triplet is not None else host_triplet())


def _normalize_architecture(architecture: str) -> str:
    lowered = architecture.lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def classify(target: Target) -> PlatformFamily:
    """Map ``target`` onto its :class:`PlatformFamily`.

    Raises :class:`UnsupportedPlatform` when no rule matches.
    """

    architecture = _normalize_architecture(target.architecture)
    os_name = target.os.lower()

    if os_name.startswith(_EMBEDDED_OS_PREFIXES):
        return PlatformFamily.EMBEDDED
    if os_name.startswith("linux"):
        return PlatformFamily.LINUX
    if os_name.startswith("darwin"):
        if architecture == "x86_64":
            return PlatformFamily.MACOS_INTEL
        if architecture == "aarch64":
            return PlatformFamily.MACOS_ARM
    if os_name.startswith(_WINDOWS_OS_PREFIXES):
        if architecture in _WINDOWS64_ARCHS:
            return PlatformFamily.WINDOWS64
        if architecture in _WINDOWS32_ARCHS:
            return PlatformFamily.WINDOWS32
    raise UnsupportedPlatform(target)


__all__ = [
    "PlatformFamily",
    "Target",
    "classify",
    "get_target",
    "host_triplet",
    "parse_target",
]
