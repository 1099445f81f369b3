"""Open file scanning engine for pylsof."""

import logging
import os
import pwd
from collections.abc import Iterator

import psutil

from pylsof.models import OpenFileRow, ProcessRecord

logger = logging.getLogger(__name__)

FIXED_REFERENCES = ("cwd", "exe", "root")
ROOT_MARKER = "/"
CMDLINE_MAX = 4095  # PATH_MAX - 1


def procfs_path() -> str:
    """Get the procfs root currently configured in psutil."""
    return psutil.PROCFS_PATH


def iter_pids() -> Iterator[int]:
    """
    Return an iterator over the pids currently visible under the procfs root.

    The pid list is read eagerly so that an unlistable procfs root raises
    OSError here, before any process is inspected; only the iteration over
    that list is lazy. Non-numeric entries are skipped.
    """
    return iter(psutil.pids())


def command_label(cmdline: bytes) -> str:
    """Return the final path component of the first cmdline token."""
    token = cmdline.split(b"\0", 1)[0]
    parts = token.split(None, 1)
    token = parts[0] if parts else b""
    stripped = token.rstrip(b"/")
    if not stripped:
        # basename("") is "." and basename("//") is "/"
        return "/" if token else "."
    return os.fsdecode(os.path.basename(stripped))


def lookup_user(base_path: str) -> str:
    """
    Get the owning account of a process directory.

    Returns an empty string if the directory cannot be stat'ed, and the
    numeric uid as text if the account directory has no entry for it.
    """
    try:
        uid = os.stat(base_path).st_uid
    except OSError:
        return ""
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def resolve_reference(
    record: ProcessRecord, name: str, parent: str | None = None
) -> Iterator[OpenFileRow]:
    """
    Resolve one symbolic entry of a process and yield at most one row.

    A vanished entry yields nothing. Any other readlink failure yields a row
    whose name describes the failure. A target of "/" is suppressed.
    """
    path = (parent or record.base_path) + name
    try:
        target = os.readlink(path)
    except FileNotFoundError:
        logger.debug("%s vanished", path)
        return
    except OSError as e:
        target = f"{path} (readlink: {e.strerror})"

    if target == ROOT_MARKER:
        return

    yield OpenFileRow(
        command=record.command_label,
        pid=record.pid,
        user=record.user,
        fd=name,
        name=target,
    )


def _descriptor_order(entry: str) -> tuple[int, int | str]:
    return (0, int(entry)) if entry.isdigit() else (1, entry)


class ProcessInspector:
    """
    Inspects the open references of single processes.

    Failures are isolated per process: inspect() never raises because one
    process vanished or is not readable.
    """

    def __init__(self, procfs: str | None = None) -> None:
        """
        Initialize the ProcessInspector.

        Args:
            procfs: Procfs root to read. Defaults to psutil.PROCFS_PATH.
        """
        self._procfs = procfs or procfs_path()

    @property
    def procfs(self) -> str:
        """Get the procfs root being inspected."""
        return self._procfs

    def base_path(self, pid: int) -> str:
        """Build the per-process directory path for a pid."""
        return f"{self._procfs.rstrip('/')}/{pid}/"

    def inspect(self, pid: int) -> Iterator[OpenFileRow]:
        """Yield one row per resolved reference of the process."""
        base_path = self.base_path(pid)
        user = lookup_user(base_path)

        cmdline = self._read_cmdline(base_path)
        if cmdline is None:
            return

        record = ProcessRecord(
            pid=pid,
            base_path=base_path,
            user=user,
            command_label=command_label(cmdline),
        )

        for name in FIXED_REFERENCES:
            yield from resolve_reference(record, name)

        yield from self._inspect_descriptors(record)

    def _read_cmdline(self, base_path: str) -> bytes | None:
        path = base_path + "cmdline"
        try:
            f = open(path, "rb")
        except OSError:
            logger.error("couldn't read %s", path)
            return None
        with f:
            try:
                return f.read(CMDLINE_MAX)
            except OSError as e:
                logger.error("error reading cmdline: %s: %s", path, e.strerror)
                return None

    def _inspect_descriptors(self, record: ProcessRecord) -> Iterator[OpenFileRow]:
        fd_path = record.base_path + "fd/"
        try:
            entries = os.listdir(fd_path)
        except OSError as e:
            message = f"{fd_path} (opendir: {e.strerror})"
            logger.warning("%s", message)
            yield OpenFileRow(
                command=record.command_label,
                pid=record.pid,
                user=record.user,
                fd="FDS",
                name=message,
            )
            return

        # os.listdir never returns "." or ".."
        for entry in sorted(entries, key=_descriptor_order):
            yield from resolve_reference(record, entry, parent=fd_path)
