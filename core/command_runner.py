"""Utilities for executing external tools such as pkg-config."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = (
            f"Command failed with exit code {result.returncode}: "
            f"{' '.join(map(shlex.quote, result.command))}\n"
            f"stdout: {result.stdout}\n"
            f"stderr: {result.stderr}"
        )
        super().__init__(message)
        self.result = result


class CommandTimeout(CommandError):
    """Raised when a command does not finish within its timeout."""

    def __init__(self, command: Sequence[str], timeout: float):
        result = CommandResult(command=command, returncode=-1, stdout="", stderr=f"timed out after {timeout}s")
        super().__init__(result)
        self.timeout = timeout


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        timeout: float | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        timeout: float | None = None,
    ) -> CommandResult:
        try:
            process = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandTimeout(command, exc.timeout) from exc

        result = CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )
        if check and result.returncode != 0:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]


Responder = Callable[[Sequence[str]], CommandResult | None]


@dataclass
class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``responses`` maps a formatted command line to ``(returncode, stdout)``;
    unknown commands succeed with empty output unless ``responder`` answers
    them first.
    """

    responses: Dict[str, tuple[int, str]] = field(default_factory=dict)
    responder: Responder | None = None
    commands: List[RecordedCommand] = field(default_factory=list)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        timeout: float | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(command=list(command), cwd=str(cwd) if cwd else None, env=dict(env) if env else {})
        )
        result = self.responder(command) if self.responder is not None else None
        if result is None:
            returncode, stdout = self.responses.get(self.format_command(command), (0, ""))
            result = CommandResult(command=command, returncode=returncode, stdout=stdout, stderr="")
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def iter_formatted(self) -> Iterable[str]:
        for record in self.commands:
            yield self.format_command(record.command)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeout",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
]
