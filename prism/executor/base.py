"""Executor interface, request and result types, and the shared state machine."""

from __future__ import annotations

import abc
import dataclasses
import enum
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional


class Action(str, enum.Enum):
    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    IMPORT = "import"


class Status(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecuteRequest:
    task_id: str
    resource_id: int
    action: Action
    work_dir: str = ""
    config: str = ""
    params: dict[str, str] = field(default_factory=dict)


@dataclass
class ExecuteResult:
    task_id: str
    status: Status
    output: str = ""
    error: str = ""
    duration: int = 0  # milliseconds
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class Progress:
    phase: str = ""
    percent: int = 0  # 0-100
    elapsed: int = 0  # milliseconds
    message: str = ""


class TransitionError(Exception):
    """Raised when an event is unknown or not allowed in the current state."""


class Executor(abc.ABC):
    """What every executor provides."""

    @property
    @abc.abstractmethod
    def executor_type(self) -> str:
        """Name of the executor kind."""

    @abc.abstractmethod
    def execute(self, request: ExecuteRequest) -> ExecuteResult:
        """Run ``request`` and return its result."""

    @abc.abstractmethod
    def validate(self, config: str) -> None:
        """Check ``config``; raise if it is not acceptable."""

    @property
    @abc.abstractmethod
    def progress(self) -> Progress:
        """A snapshot of the current progress."""

    @abc.abstractmethod
    def cancel(self) -> None:
        """Stop the running execution."""


_EVENTS: dict[str, tuple[frozenset[Status], Status]] = {
    "start": (frozenset({Status.PENDING}), Status.RUNNING),
    "success": (frozenset({Status.RUNNING}), Status.SUCCESS),
    "fail": (frozenset({Status.RUNNING}), Status.FAILED),
    "cancel": (frozenset({Status.PENDING, Status.RUNNING}), Status.CANCELLED),
}


class BaseExecutor:
    """Progress tracking, lifecycle state machine and cancellation shared by executors."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._progress = Progress()
        self._state = Status.PENDING
        self.cancel_callback: Optional[Callable[[], None]] = None

    @property
    def progress(self) -> Progress:
        """A copy of the current progress."""
        with self._lock:
            return dataclasses.replace(self._progress)

    def update_progress(self, phase: str, percent: int, message: str) -> None:
        with self._lock:
            self._progress.phase = phase
            self._progress.percent = percent
            self._progress.message = message

    @property
    def status(self) -> Status:
        with self._lock:
            return self._state

    def transition(self, event: str) -> None:
        """Apply a lifecycle event: start, success, fail or cancel."""
        with self._lock:
            try:
                sources, destination = _EVENTS[event]
            except KeyError:
                raise TransitionError(f"event {event} does not exist") from None
            if self._state not in sources:
                raise TransitionError(
                    f"event {event} inappropriate in current state {self._state.value}"
                )
            self._state = destination

    def cancel(self) -> None:
        """Invoke the cancel callback, if any, and move to the cancelled state."""
        callback = self.cancel_callback
        if callback is not None:
            callback()
        self.transition("cancel")