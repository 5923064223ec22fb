"""Per-task fan-out of real-time execution messages to subscribed clients."""

from __future__ import annotations

import dataclasses
import datetime
import enum
import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Optional


class MessageType(str, enum.Enum):
    LOG = "log"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


def _now() -> datetime.datetime:
    return datetime.datetime.now().astimezone()


@dataclass
class Message:
    """One message sent to the clients of a task."""

    type: MessageType
    task_id: str
    data: Any = None
    time: datetime.datetime = field(default_factory=_now)


@dataclass
class ProgressData:
    phase: str = ""
    percent: int = 0
    elapsed: int = 0
    message: str = ""


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _encode(message: Message) -> str:
    kind = message.type.value if isinstance(message.type, enum.Enum) else message.type
    return json.dumps(
        {
            "type": kind,
            "task_id": message.task_id,
            "data": message.data,
            "time": message.time.isoformat(),
        },
        default=_json_default,
        ensure_ascii=False,
    )


class Client:
    """A subscriber to one task's messages, with a bounded send buffer."""

    def __init__(self, task_id: str, buffer_size: int = 256) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.task_id = task_id
        self._queue: queue.Queue[str] = queue.Queue(maxsize=buffer_size)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def receive(self) -> Optional[str]:
        """Return the next pending JSON message, or None if there is none."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def _offer(self, payload: str) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except queue.Full:
            return False
        return True

    def _close(self) -> None:
        self._closed.set()


class Hub:
    """Keeps clients grouped by task and broadcasts messages to them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: dict[str, set[Client]] = {}

    def register(self, client: Client) -> None:
        with self._lock:
            self._clients.setdefault(client.task_id, set()).add(client)

    def unregister(self, client: Client) -> None:
        with self._lock:
            clients = self._clients.get(client.task_id)
            if clients is not None:
                clients.discard(client)
                if not clients:
                    del self._clients[client.task_id]
        client._close()

    def broadcast(self, task_id: str, message: Message) -> None:
        """Queue ``message`` for every client of ``task_id``; full buffers are skipped."""
        with self._lock:
            clients = list(self._clients.get(task_id, ()))
        if not clients:
            return
        try:
            payload = _encode(message)
        except (TypeError, ValueError):
            return
        for client in clients:
            client._offer(payload)

    def send_log(self, task_id: str, message: str) -> None:
        self.broadcast(task_id, Message(MessageType.LOG, task_id, message))

    def send_progress(self, task_id: str, data: ProgressData) -> None:
        self.broadcast(task_id, Message(MessageType.PROGRESS, task_id, data))

    def send_complete(self, task_id: str, success: bool, result: Any) -> None:
        self.broadcast(
            task_id,
            Message(MessageType.COMPLETE, task_id, {"success": success, "result": result}),
        )