"""Shared core utilities for configuration loading, tool invocation and archives."""

from .archive import (
    ArchiveConsole,
    ArchiveFormatError,
    ArchiveManager,
    format_from_name,
    format_from_url,
    sniff_format,
)
from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    CommandTimeout,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigFormatError,
    ConfigLoader,
    DuplicateKeyError,
    FILE_LOADERS,
    decode_config_file,
    find_config_file,
    listify,
    load_config_file,
    normalize_string_list,
    register_loader,
    resolve_path,
    resolve_search_paths,
)
from .console import Console

__all__ = [
    "ArchiveConsole",
    "ArchiveFormatError",
    "ArchiveManager",
    "format_from_name",
    "format_from_url",
    "sniff_format",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeout",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
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
    "Console",
]
