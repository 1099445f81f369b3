"""Shared fixtures: a synthetic procfs tree built from real symlinks."""

import logging
import multiprocessing
import os
import time
from pathlib import Path

import psutil
import pytest


class FakeProcfs:
    """Builds per-process directories the way /proc lays them out."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def add_process(
        self,
        pid: int,
        cmdline: bytes | None = b"/usr/bin/foo\0",
        cwd: str | None = "/home/alice",
        exe: str | None = "/usr/bin/foo",
        root: str | None = "/",
        fds: dict[int, str] | None = None,
    ) -> Path:
        """
        Create a process directory.

        A None reference or cmdline is left out entirely, so it behaves like
        an entry that vanished. fds=None leaves out the fd/ directory.
        """
        proc = self.root / str(pid)
        proc.mkdir()
        if cmdline is not None:
            (proc / "cmdline").write_bytes(cmdline)
        for name, target in (("cwd", cwd), ("exe", exe), ("root", root)):
            if target is not None:
                os.symlink(target, proc / name)
        if fds is not None:
            (proc / "fd").mkdir()
            for fd, target in fds.items():
                os.symlink(target, proc / "fd" / str(fd))
        return proc


@pytest.fixture
def procfs(tmp_path, monkeypatch):
    """A FakeProcfs installed as psutil's procfs root."""
    root = tmp_path / "proc"
    root.mkdir()
    monkeypatch.setattr(psutil, "PROCFS_PATH", str(root))
    return FakeProcfs(root)


@pytest.fixture(autouse=True)
def reset_pylsof_logger():
    """Drop handlers bound to a captured stderr once a test is done."""
    yield
    logger = logging.getLogger("pylsof")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def dummy_worker(duration: float) -> None:
    """Sleep for a given duration so the process shows up in /proc."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


@pytest.fixture
def spawn_workers():
    """Factory starting dummy processes; all of them are reaped at teardown."""
    processes: list[multiprocessing.Process] = []

    def spawn(count: int, duration: float = 30.0) -> list[multiprocessing.Process]:
        started = []
        for _ in range(count):
            p = multiprocessing.Process(target=dummy_worker, args=(duration,))
            p.start()
            started.append(p)
        processes.extend(started)
        return started

    yield spawn

    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1.0)
