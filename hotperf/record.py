"""Building and checking the command lines used to record perf data."""

from __future__ import annotations

import getpass
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

TRACING_ROOT = "/sys/kernel/debug/tracing"
PERF_EVENT_PARANOID = "/proc/sys/kernel/perf_event_paranoid"

#: Graphical sudo helpers, in order of preference. gksudo/gksu close stdin,
#: so the privilege elevation script would not wait on its read.
SUDO_UTILS = ("kdesudo", "kdesu")

PERF_BINARY = "perf"


class RecordingError(RuntimeError):
    """Raised when a recording cannot be set up."""


def sudo_options(sudo_binary: str, active_window: int) -> List[str]:
    """Extra options for the graphical sudo helper at ``sudo_binary``."""
    options: List[str] = []
    if sudo_binary.endswith("/kdesudo") or sudo_binary.endswith("/kdesu"):
        # make the dialog transient for the current window
        options += ["--attach", str(active_window)]
    if sudo_binary.endswith("/kdesu"):
        # show text output
        options.append("-t")
    return options


def check_output_folder(output_path: Union[str, os.PathLike]) -> Path:
    """Ensure the folder that will hold ``output_path`` is a writable directory."""
    folder = Path(output_path).parent
    if not folder.exists():
        raise RecordingError(f"Folder '{folder}' does not exist.")
    if not folder.is_dir():
        raise RecordingError(f"'{folder}' is not a folder.")
    if not os.access(folder, os.W_OK):
        raise RecordingError(f"Folder '{folder}' is not writable.")
    return folder


def perf_record_command(
    output_path: Union[str, os.PathLike],
    perf_options: Sequence[str],
    record_options: Sequence[str],
) -> List[str]:
    """Arguments passed to ``perf`` to record into ``output_path``."""
    return ["record", "-o", str(output_path), *perf_options, *record_options]


def pid_record_options(perf_options: Sequence[str], pids: Iterable[Union[str, int]]) -> List[str]:
    """Perf options for attaching to the given processes."""
    pid_list = [str(pid) for pid in pids]
    if not pid_list:
        raise RecordingError("Process does not exist.")
    return [*perf_options, "--pid", ",".join(pid_list)]


def resolve_executable(exe_path: Union[str, os.PathLike]) -> str:
    """Return the absolute path of an executable, searching PATH if needed."""
    text = os.fspath(exe_path)
    candidate = Path(text) if text else None
    if candidate is None or not candidate.exists():
        found = shutil.which(text) if text else None
        candidate = Path(found) if found else None
    if candidate is None or not candidate.exists():
        raise RecordingError(f"File '{text}' does not exist.")
    if not candidate.is_file():
        raise RecordingError(f"'{text}' is not a file.")
    if not os.access(candidate, os.X_OK):
        raise RecordingError(f"File '{text}' is not executable.")
    return os.path.abspath(candidate)


def launch_record_options(exe_path: Union[str, os.PathLike], exe_options: Sequence[str]) -> List[str]:
    """Record options that launch ``exe_path`` with its arguments."""
    return [resolve_executable(exe_path), *exe_options]


def system_record_options(perf_options: Sequence[str]) -> List[str]:
    """Perf options for recording the whole system."""
    return [*perf_options, "--all-cpus"]


def find_sudo_util() -> Optional[str]:
    """Path of the first available graphical sudo helper, or None."""
    for command in SUDO_UTILS:
        found = shutil.which(command)
        if found:
            return found
    return None


def can_trace(
    path: str,
    tracing_root: Union[str, os.PathLike] = TRACING_ROOT,
    paranoid_path: Union[str, os.PathLike] = PERF_EVENT_PARANOID,
) -> bool:
    """Whether the tracepoint at ``path`` is readable and perf is unrestricted."""
    tracepoint = Path(tracing_root) / path
    if not tracepoint.is_dir() or not os.access(tracepoint, os.R_OK):
        return False
    try:
        content = Path(paranoid_path).read_bytes()
    except OSError:
        return False
    return content.strip() == b"-1"


def can_profile_off_cpu(
    tracing_root: Union[str, os.PathLike] = TRACING_ROOT,
    paranoid_path: Union[str, os.PathLike] = PERF_EVENT_PARANOID,
) -> bool:
    """Whether the scheduler switch tracepoint can be recorded."""
    return can_trace("events/sched/sched_switch", tracing_root, paranoid_path)


def off_cpu_profiling_options() -> List[str]:
    """Perf options that enable off-CPU profiling."""
    return ["--switch-events", "--event", "sched:sched_switch"]


def help_supports(help_text: Union[str, bytes], option: str) -> bool:
    """Whether ``perf record --help`` output mentions ``option``."""
    if isinstance(help_text, bytes):
        return option.encode() in help_text
    return option in help_text


def is_perf_installed() -> bool:
    """Whether a ``perf`` executable is found on PATH."""
    return shutil.which(PERF_BINARY) is not None


def current_username() -> str:
    """Login name of the current user."""
    try:
        import pwd
    except ImportError:
        return getpass.getuser()
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        return getpass.getuser()