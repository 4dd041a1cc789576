"""Exceptions raised by the sampling engine."""


class TreetopError(Exception):
    """Base class for treetop errors."""

    exit_code = 1


class ProcessNotFound(TreetopError):
    """A pid vanished between enumeration and a detailed read."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} doesn't exist!")
        self.pid = pid


class RootProcessNotFound(ProcessNotFound):
    """The observed root process does not exist."""

    exit_code = 1


class PermissionDenied(TreetopError):
    """The memory map of a process could not be read due to missing privileges."""

    exit_code = 3

    def __init__(self, pid: int) -> None:
        super().__init__(f"You don't have permission to access the smap data of process {pid}!")
        self.pid = pid


class LimitExceeded(TreetopError):
    """A resource ceiling was breached and the observed tree was signalled."""

    exit_code = 0

    def __init__(self, resource: str, value: float, limit: float) -> None:
        super().__init__(f"{resource} limit exceeded: {value:.2f} > {limit:g}")
        self.resource = resource
        self.value = value
        self.limit = limit
