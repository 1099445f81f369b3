"""pylsof - command line entry point and output formatting."""

import argparse
import logging
import os
import sys
from collections.abc import Iterable
from typing import TextIO

import psutil

from pylsof.models import OpenFileRow
from pylsof.scanner import ProcessInspector, iter_pids, procfs_path

logger = logging.getLogger("pylsof")

ROW_FORMAT = "{:<25} {:>5} {:>8} {:>4} {:>9} {:>18} {:>9} {:>10} {}"
HEADER = ROW_FORMAT.format(
    "COMMAND", "PID", "USER", "FD", "TYPE", "DEVICE", "SIZE/OFF", "NODE", "NAME"
)


def format_row(row: OpenFileRow) -> str:
    """Format a row in the fixed-width column layout."""
    return ROW_FORMAT.format(
        row.command,
        row.pid,
        row.user,
        row.fd,
        row.type,
        row.device,
        row.size_off,
        row.node,
        row.name,
    )


def write_rows(rows: Iterable[OpenFileRow], out: TextIO) -> int:
    """Write rows as they are produced and return how many were written."""
    count = 0
    for row in rows:
        print(format_row(row), file=out)
        count += 1
    return count


def configure_logging(verbose: bool = False) -> None:
    """Send pylsof diagnostics to stderr, one message per line."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def configure_output(stream: TextIO) -> None:
    """
    Write undecodable path bytes back out unchanged.

    Link targets and cmdlines are not guaranteed to be valid in the locale
    encoding; os.readlink and os.fsdecode hand them over surrogate-escaped.
    """
    if hasattr(stream, "reconfigure"):
        stream.reconfigure(errors="surrogateescape")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pylsof",
        description="List open files of processes by reading procfs.",
    )
    parser.add_argument(
        "pid",
        nargs="?",
        type=int,
        help="inspect only this process instead of every visible one",
    )
    parser.add_argument(
        "--procfs",
        metavar="PATH",
        help="procfs mount point (default: %(default)s)",
        default=procfs_path(),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="also log vanished references",
    )
    return parser.parse_args(argv)


def run(pid: int | None = None, out: TextIO | None = None) -> int:
    """
    Print the header and one row per open reference.

    Returns the process exit status: 1 if the procfs root cannot be listed,
    0 otherwise.
    """
    if out is None:
        out = sys.stdout
    inspector = ProcessInspector()
    print(HEADER, file=out)

    if pid is not None:
        write_rows(inspector.inspect(pid), out)
        return 0

    try:
        pids = iter_pids()
    except OSError:
        logger.error("couldn't open %s", inspector.procfs)
        return 1

    for current in pids:
        logger.debug("inspecting pid %d", current)
        write_rows(inspector.inspect(current), out)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for pylsof."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    configure_output(sys.stdout)
    psutil.PROCFS_PATH = args.procfs
    try:
        status = run(args.pid)
        sys.stdout.flush()
    except BrokenPipeError:
        # Reader closed the pipe; the exit-time flush must not raise again
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 0
    return status


if __name__ == "__main__":
    sys.exit(main())
