"""Command-line arguments for the perf data stream producer and its exit codes."""

from __future__ import annotations

import enum
import os
from pathlib import Path
from typing import List, Optional, Union

#: Maximum number of frames the producer unwinds per sample.
MAX_FRAMES = 1024


class ParserExitCode(enum.IntEnum):
    """Exit codes of the perf data stream producer."""

    NO_ERROR = 0
    TCP_SOCKET_ERROR = 1
    CANNOT_OPEN = 2
    BAD_MAGIC = 3
    HEADER_ERROR = 4
    DATA_ERROR = 5
    MISSING_DATA = 6
    INVALID_OPTION = 7


class InputFileError(ValueError):
    """Raised when the perf data file cannot be used as input."""


def check_input_file(path: Union[str, os.PathLike]) -> Path:
    """Ensure ``path`` is an existing, readable regular file and return it."""
    file_path = Path(path)
    if not file_path.exists():
        raise InputFileError(f"File '{path}' does not exist.")
    if not file_path.is_file():
        raise InputFileError(f"'{path}' is not a file.")
    if not os.access(file_path, os.R_OK):
        raise InputFileError(f"File '{path}' is not readable.")
    return file_path


def build_parser_args(path, sysroot, kallsyms, debug_paths, extra_lib_paths, app_path, arch) -> List[str]:
    """Build the producer's argument list; empty optional values are omitted."""
    args = ["--input", str(path), "--max-frames", str(MAX_FRAMES)]
    optional = (
        ("--sysroot", sysroot),
        ("--kallsyms", kallsyms),
        ("--debug", debug_paths),
        ("--extra", extra_lib_paths),
        ("--app", app_path),
        ("--arch", arch),
    )
    for flag, value in optional:
        if value:
            args += [flag, str(value)]
    return args


_REASONS = {
    ParserExitCode.TCP_SOCKET_ERROR: "TCP socket error",
    ParserExitCode.CANNOT_OPEN: "file could not be opened",
    ParserExitCode.BAD_MAGIC: "invalid perf data file",
    ParserExitCode.HEADER_ERROR: "invalid perf data file",
    ParserExitCode.DATA_ERROR: "invalid perf data file",
    ParserExitCode.MISSING_DATA: "invalid perf data file",
    ParserExitCode.INVALID_OPTION: "invalid option",
}


def exit_code_message(exit_code: int) -> Optional[str]:
    """Describe a producer exit code; None means it finished successfully."""
    if exit_code == ParserExitCode.NO_ERROR:
        return None
    prefix = f"The hotspot-perfparser binary exited with code {exit_code}"
    try:
        reason = _REASONS.get(ParserExitCode(exit_code))
    except ValueError:
        reason = None
    if reason is None:
        return prefix + "."
    return f"{prefix} ({reason})."