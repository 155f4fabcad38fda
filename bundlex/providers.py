"""OS dependency resolution through ordered provider chains."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence
import shlex

from core.command_runner import CommandError, CommandRunner
from core.console import Console

from .errors import AcquisitionError, NoProviderSucceeded, ProviderAttempt
from .precompiled import ArtifactAcquirer
from .project import OSDependency, PkgConfigProvider, PrecompiledProvider, Provider
from .settings import DisablePolicy
from .target import PlatformFamily


def _extend_unique(target: List[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


# Options whose argument is passed as the following token.
PAIRED_FLAGS = frozenset(
    {
        "-framework",
        "-weak_framework",
        "-include",
        "-imacros",
        "-isystem",
        "-iquote",
        "-idirafter",
        "-isysroot",
        "-arch",
        "-Xlinker",
        "-Xpreprocessor",
        "-Xassembler",
        "-Xclang",
        "-u",
        "-z",
    }
)


def flag_groups(tokens: Sequence[str]) -> List[tuple[str, ...]]:
    """Split flag tokens into groups, keeping paired options with their argument."""

    groups: List[tuple[str, ...]] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in PAIRED_FLAGS and index + 1 < len(tokens):
            groups.append((token, tokens[index + 1]))
            index += 2
        else:
            groups.append((token,))
            index += 1
    return groups


def extend_unique_flags(target: List[str], values: Sequence[str]) -> None:
    """Append flag groups of ``values`` that ``target`` does not hold yet."""

    present = set(flag_groups(target))
    for group in flag_groups(values):
        if group not in present:
            present.add(group)
            target.extend(group)


@dataclass
class ResolvedDependency:
    """Flags contributed by one or more resolved OS dependencies."""

    includes: List[str] = field(default_factory=list)
    lib_dirs: List[str] = field(default_factory=list)
    libs: List[str] = field(default_factory=list)
    compiler_flags: List[str] = field(default_factory=list)
    linker_flags: List[str] = field(default_factory=list)
    providers: List[str] = field(default_factory=list)

    def merge(self, other: "ResolvedDependency") -> "ResolvedDependency":
        merged = ResolvedDependency(
            includes=list(self.includes),
            lib_dirs=list(self.lib_dirs),
            libs=list(self.libs),
            compiler_flags=list(self.compiler_flags),
            linker_flags=list(self.linker_flags),
            providers=list(self.providers),
        )
        _extend_unique(merged.includes, other.includes)
        _extend_unique(merged.lib_dirs, other.lib_dirs)
        _extend_unique(merged.libs, other.libs)
        extend_unique_flags(merged.compiler_flags, other.compiler_flags)
        extend_unique_flags(merged.linker_flags, other.linker_flags)
        merged.providers.extend(other.providers)
        return merged


class PkgConfigNotFound(Exception):
    def __init__(self, name: str, detail: str = ""):
        message = f"{name} not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.name = name


class PkgConfig:
    """Queries ``pkg-config`` for compile and link flags of a package."""

    def __init__(self, runner: CommandRunner, *, executable: str = "pkg-config", timeout: float | None = None) -> None:
        self._runner = runner
        self._executable = executable
        self._timeout = timeout

    def _run(self, option: str, name: str) -> List[str]:
        try:
            result = self._runner.run([self._executable, option, name], timeout=self._timeout)
        except CommandError as exc:
            detail = exc.result.stderr.strip().splitlines()
            raise PkgConfigNotFound(name, detail[0] if detail else "") from exc
        except OSError as exc:
            raise PkgConfigNotFound(name, f"cannot run {self._executable}: {exc}") from exc
        return shlex.split(result.stdout)

    def query(self, name: str) -> ResolvedDependency:
        resolved = ResolvedDependency()
        compiler_flags: List[str] = []
        for group in flag_groups(self._run("--cflags", name)):
            if len(group) == 1 and group[0].startswith("-I") and len(group[0]) > 2:
                _extend_unique(resolved.includes, [group[0][2:]])
            else:
                compiler_flags.extend(group)
        linker_flags: List[str] = []
        for group in flag_groups(self._run("--libs", name)):
            token = group[0]
            if len(group) == 1 and token.startswith("-L") and len(token) > 2:
                _extend_unique(resolved.lib_dirs, [token[2:]])
            elif len(group) == 1 and token.startswith("-l") and len(token) > 2:
                _extend_unique(resolved.libs, [token[2:]])
            else:
                linker_flags.extend(group)
        extend_unique_flags(resolved.compiler_flags, compiler_flags)
        extend_unique_flags(resolved.linker_flags, linker_flags)
        return resolved


class ProviderResolver:
    """Tries the providers of an OS dependency in order until one matches.

    Provider failures become :class:`ProviderAttempt` diagnostics; only when
    every provider has failed does :class:`NoProviderSucceeded` propagate.
    """

    def __init__(
        self,
        *,
        pkg_config: PkgConfig,
        acquirer: ArtifactAcquirer,
        platform: PlatformFamily,
        disable_policy: DisablePolicy,
        console: Console | None = None,
    ) -> None:
        self._pkg_config = pkg_config
        self._acquirer = acquirer
        self._platform = platform
        self._disable_policy = disable_policy
        self._console = console or Console()

    def resolve(self, dependency: OSDependency, *, app: str, unit: str | None = None) -> ResolvedDependency:
        attempts: List[ProviderAttempt] = []
        for provider in dependency.providers:
            resolved = self._try(provider, dependency=dependency, app=app, attempts=attempts)
            if resolved is not None:
                resolved.providers.append(provider.kind)
                self._console.debug(f"{app}: resolved {dependency.name} via {provider.kind}")
                return resolved
        for attempt in attempts:
            self._console.error(f"{app}: {dependency.name}: {attempt}")
        raise NoProviderSucceeded(app, dependency.name, attempts, unit=unit)

    def resolve_all(
        self,
        dependencies: Sequence[OSDependency],
        *,
        app: str,
        unit: str | None = None,
    ) -> ResolvedDependency:
        combined = ResolvedDependency()
        for dependency in dependencies:
            combined = combined.merge(self.resolve(dependency, app=app, unit=unit))
        return combined

    def _try(
        self,
        provider: Provider,
        *,
        dependency: OSDependency,
        app: str,
        attempts: List[ProviderAttempt],
    ) -> ResolvedDependency | None:
        if isinstance(provider, PkgConfigProvider):
            return self._try_pkg_config(provider, attempts)
        if isinstance(provider, PrecompiledProvider):
            return self._try_precompiled(provider, dependency=dependency, app=app, attempts=attempts)
        raise TypeError(f"Unsupported provider {provider!r}")

    def _try_pkg_config(self, provider: PkgConfigProvider, attempts: List[ProviderAttempt]) -> ResolvedDependency | None:
        combined = ResolvedDependency()
        for name in provider.names:
            try:
                combined = combined.merge(self._pkg_config.query(name))
            except PkgConfigNotFound as exc:
                attempts.append(ProviderAttempt(provider.kind, str(exc)))
                return None
        return combined

    def _try_precompiled(
        self,
        provider: PrecompiledProvider,
        *,
        dependency: OSDependency,
        app: str,
        attempts: List[ProviderAttempt],
    ) -> ResolvedDependency | None:
        if self._disable_policy.precompiled_disabled(app):
            attempts.append(ProviderAttempt(provider.kind, f"disabled for application {app}"))
            return None
        if provider.url is None:
            attempts.append(ProviderAttempt(provider.kind, f"no url for platform {self._platform.value}"))
            return None
        try:
            artifact = self._acquirer.acquire(provider.url, app=app, dependency=dependency.name, libs=provider.libs)
        except AcquisitionError as exc:
            attempts.append(ProviderAttempt(provider.kind, str(exc)))
            return None
        return ResolvedDependency(
            includes=[str(path) for path in artifact.includes],
            lib_dirs=[str(path) for path in artifact.lib_dirs],
            libs=list(artifact.libs),
        )


__all__ = [
    "PAIRED_FLAGS",
    "PkgConfig",
    "PkgConfigNotFound",
    "ProviderResolver",
    "ResolvedDependency",
    "extend_unique_flags",
    "flag_groups",
]
