"""Data models for pylsof."""

from dataclasses import dataclass, field

COMMAND_WIDTH = 9
USER_WIDTH = 10


@dataclass(slots=True)
class ProcessRecord:
    """Per-process state shared by every reference resolved for that process."""

    pid: int
    base_path: str  # "<procfs>/<pid>/"
    user: str = ""
    command_label: str = ""
    root_prefix_length: int = field(init=False)

    def __post_init__(self) -> None:
        self.user = self.user[:USER_WIDTH]
        self.command_label = self.command_label[:COMMAND_WIDTH]
        self.root_prefix_length = len(self.base_path)


@dataclass(slots=True, frozen=True)
class OpenFileRow:
    """One line of output: a single resolved reference of a process."""

    command: str
    pid: int
    user: str
    fd: str  # 'cwd', 'exe', 'root', descriptor number, or 'FDS'
    name: str
    # Reserved columns, never computed
    type: str = ""
    device: str = ""
    size_off: str = ""
    node: str = ""
