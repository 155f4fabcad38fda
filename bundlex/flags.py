"""Composition of the final compiler and linker flags of a unit."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .project import Language, UnitConfig
from .providers import ResolvedDependency, extend_unique_flags

DEFAULT_STD_FLAGS = {
    Language.C: "-std=c11",
    Language.CPP: "-std=c++17",
}


def _extend_unique(target: List[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


@dataclass(slots=True)
class LinkedLib:
    """Static library produced by a lib the unit depends on."""

    output_path: str
    includes: List[str] = field(default_factory=list)
    requirements: ResolvedDependency = field(default_factory=ResolvedDependency)


@dataclass(slots=True)
class ComposedFlags:
    includes: List[str] = field(default_factory=list)
    lib_dirs: List[str] = field(default_factory=list)
    libs: List[str] = field(default_factory=list)
    static_libs: List[str] = field(default_factory=list)
    compiler_flags: List[str] = field(default_factory=list)
    linker_flags: List[str] = field(default_factory=list)

    def compile_args(self) -> List[str]:
        return [*self.compiler_flags, *(f"-I{path}" for path in self.includes)]

    def link_args(self) -> List[str]:
        return [
            *self.static_libs,
            *(f"-L{path}" for path in self.lib_dirs),
            *(f"-l{lib}" for lib in self.libs),
            *self.linker_flags,
        ]


def compose_flags(
    unit: UnitConfig,
    os_deps: ResolvedDependency,
    libs: Sequence[LinkedLib] = (),
    *,
    base_includes: Sequence[str] = (),
    includes: Sequence[str] | None = None,
    lib_dirs: Sequence[str] | None = None,
) -> ComposedFlags:
    """Merge the unit's own settings with resolved OS deps and linked libs.

    Declaration order is kept and repeated values are dropped after their
    first occurrence. Options taking a separate argument such as
    ``-framework X`` are compared as a pair. Static archives precede the OS
    libs they rely on.
    ``includes`` and ``lib_dirs`` replace the unit's own paths when the
    caller has already resolved them.
    """

    flags = ComposedFlags()

    _extend_unique(flags.includes, base_includes)
    _extend_unique(flags.includes, unit.includes if includes is None else includes)
    for lib in libs:
        _extend_unique(flags.includes, lib.includes)
    _extend_unique(flags.includes, os_deps.includes)
    for lib in libs:
        _extend_unique(flags.includes, lib.requirements.includes)

    _extend_unique(flags.lib_dirs, unit.lib_dirs if lib_dirs is None else lib_dirs)
    _extend_unique(flags.lib_dirs, os_deps.lib_dirs)
    for lib in libs:
        _extend_unique(flags.lib_dirs, lib.requirements.lib_dirs)

    _extend_unique(flags.libs, unit.libs)
    _extend_unique(flags.libs, os_deps.libs)
    for lib in libs:
        _extend_unique(flags.libs, lib.requirements.libs)

    _extend_unique(flags.static_libs, (lib.output_path for lib in libs))

    own_compiler_flags = unit.compiler_flags
    if own_compiler_flags:
        flags.compiler_flags.extend(own_compiler_flags)
    else:
        flags.compiler_flags.append(DEFAULT_STD_FLAGS[unit.language])
    extend_unique_flags(flags.compiler_flags, os_deps.compiler_flags)

    flags.linker_flags.extend(unit.linker_flags)
    extend_unique_flags(flags.linker_flags, os_deps.linker_flags)
    for lib in libs:
        extend_unique_flags(flags.linker_flags, lib.requirements.linker_flags)

    return flags


__all__ = [
    "ComposedFlags",
    "DEFAULT_STD_FLAGS",
    "LinkedLib",
    "compose_flags",
]
