import os
import sys
from pathlib import Path

from rulebook.config import Config
from rulebook.repository.errors import PathValidationError


_POSIX_RESERVED = (
    "/bin",
    "/sbin",
    "/boot",
    "/dev",
    "/etc",
    "/proc",
    "/sys",
    "/usr/bin",
    "/usr/sbin",
    "/usr/lib",
    "/var/log",
    "/var/db",
    "/System",
)
_WINDOWS_RESERVED = (
    "C:\\Windows",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
    "C:\\ProgramData\\Microsoft",
)


def expand_path(path: str) -> str:
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser(path)
    return path


def _reserved_directories() -> tuple[str, ...]:
    if sys.platform == "win32":
        return _WINDOWS_RESERVED
    return _POSIX_RESERVED


def _is_temp_directory(path: str) -> bool:
    tmp_roots = {os.path.realpath(p) for p in ("/tmp", "/var/tmp", "/private/var/folders")}  # noqa: S108
    return any(path == root or path.startswith(root + os.sep) for root in tmp_roots)


def is_reserved_directory(path: str) -> bool:
    abs_path = os.path.realpath(os.path.abspath(path))
    if abs_path in ("/", "\\") or abs_path.rstrip("\\").upper() == "C:":
        return True

    lowered = abs_path.lower()
    for reserved in _reserved_directories():
        reserved_abs = os.path.realpath(os.path.abspath(reserved)).lower()
        if lowered == reserved_abs:
            return True
        if lowered.startswith(reserved_abs + os.sep) and not _is_temp_directory(abs_path):
            return True
    return False


def validate_storage_path(path: str) -> None:
    """Check that ``path`` can hold a repository.

    Accepts absolute paths and ``~/`` paths whose parent directory exists.
    Rejects traversal (``..``) and system directories, including paths that
    resolve into one through a symlink.
    """
    trimmed = path.strip()
    if not trimmed:
        raise PathValidationError("storage directory cannot be empty")
    if ".." in trimmed:
        raise PathValidationError("path traversal not allowed")

    expanded = expand_path(trimmed)
    if not os.path.isabs(expanded):
        raise PathValidationError("path must be absolute or relative to home directory (~)")

    if os.path.exists(expanded) and is_reserved_directory(os.path.realpath(expanded)):
        raise PathValidationError("path resolves to reserved directory")
    if is_reserved_directory(expanded):
        raise PathValidationError("cannot use system or reserved directories")

    parent = os.path.dirname(os.path.normpath(expanded))
    if parent and not os.path.isdir(parent):
        if os.path.exists(parent):
            raise PathValidationError(f"cannot access parent directory: {parent}")
        raise PathValidationError(f"parent directory does not exist: {parent}")


def check_writable(path: str) -> None:
    """The directory, or the parent it would be created in, must be writable."""
    target = path if os.path.exists(path) else os.path.dirname(os.path.normpath(path))
    if os.path.exists(path) and not os.path.isdir(path):
        raise PathValidationError(f"path exists and is not a directory: {path}")
    if not os.access(target, os.W_OK):
        raise PathValidationError(f"directory is not writable: {target}")


def validate_and_expand_local_path(path: str) -> str:
    trimmed = path.strip()
    validate_storage_path(trimmed)
    expanded = os.path.normpath(expand_path(trimmed))
    check_writable(expanded)
    return expanded


def is_directory_empty(path: str) -> bool:
    target = Path(expand_path(path))
    if not target.exists():
        return True
    if not target.is_dir():
        return False
    return next(target.iterdir(), None) is None


def default_storage_dir() -> str:
    return str(Config.data_dir())


def derive_clone_path(remote_url: str) -> str:
    from rulebook.repository.git_source import parse_git_url

    try:
        info = parse_git_url(remote_url.strip())
    except ValueError:
        return default_storage_dir()
    if not info.repo:
        return default_storage_dir()
    return os.path.join(default_storage_dir(), info.repo)


def same_path(a: str, b: str) -> bool:
    return os.path.normpath(expand_path(a.strip())) == os.path.normpath(expand_path(b.strip()))
