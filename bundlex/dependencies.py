"""Resolution of ``deps`` references to libs of other applications."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .errors import BundlexError, CyclicDependency, DependencyResolutionError, UnknownDependency
from .project import LIBS, NativeInterface, ProjectDescriptor, UnitConfig
from .store import ProjectStore


@dataclass(frozen=True, eq=False)
class LibReference:
    """A lib to be linked statically, together with the project defining it."""

    project: ProjectDescriptor
    unit: UnitConfig

    @property
    def key(self) -> tuple[str, str, str | None]:
        interface = self.unit.interface.value if self.unit.interface else None
        return self.project.app, self.unit.name, interface


def select_lib(candidates: Sequence[UnitConfig], interface: NativeInterface | None) -> UnitConfig:
    """Pick the declaration of a lib that best matches the consumer's interface."""

    for candidate in candidates:
        if interface is not None and candidate.interface == interface:
            return candidate
    for candidate in candidates:
        if candidate.interface is None:
            return candidate
    return candidates[0]


class DependencyGraphResolver:
    """Computes the static link closure of a native or lib.

    Every lib in the result precedes the libs it depends on, which is the
    order linkers expect for static archives.
    """

    def __init__(self, store: ProjectStore) -> None:
        self._store = store

    def direct(self, project: ProjectDescriptor, unit: UnitConfig) -> List[LibReference]:
        references: List[LibReference] = []
        for app, names in unit.deps:
            try:
                dependency_project = self._store.get(app)
            except BundlexError as exc:
                raise DependencyResolutionError((project.app, unit.label), app, exc) from exc
            for name in names:
                candidates = dependency_project.find_libs(name)
                if not candidates:
                    raise UnknownDependency(app, name)
                references.append(LibReference(dependency_project, select_lib(candidates, unit.interface)))
        return references

    def resolve(self, project: ProjectDescriptor, unit: UnitConfig) -> List[LibReference]:
        postorder: List[LibReference] = []
        seen: set[tuple[str, str, str | None]] = set()
        # Natives cannot be depended upon, so only libs can close a cycle.
        stack: List[tuple[str, str]] = [(project.app, unit.name)] if unit.kind == LIBS else []

        def visit(reference: LibReference) -> None:
            marker = (reference.project.app, reference.unit.name)
            if marker in stack:
                raise CyclicDependency([*stack[stack.index(marker):], marker])
            if reference.key in seen:
                return
            stack.append(marker)
            for child in reversed(self.direct(reference.project, reference.unit)):
                visit(child)
            stack.pop()
            seen.add(reference.key)
            postorder.append(reference)

        for reference in reversed(self.direct(project, unit)):
            visit(reference)

        postorder.reverse()
        return postorder


__all__ = [
    "DependencyGraphResolver",
    "LibReference",
    "select_lib",
]
