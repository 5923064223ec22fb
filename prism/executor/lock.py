"""Per-resource execution locks held in memory or in the database."""

from __future__ import annotations

import abc
import dataclasses
import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from prism.models import ExecutionLock


@dataclass
class LockStatus:
    resource_id: int
    task_id: str
    status: str  # running / completed / failed
    locked_at: datetime
    expires_at: datetime


class LockType(enum.IntEnum):
    MEMORY = 0
    DB = 1


@dataclass
class LockConfig:
    type: LockType = LockType.MEMORY
    expire_time: timedelta = field(default_factory=lambda: timedelta(minutes=30))


def default_config() -> LockConfig:
    return LockConfig()


class LockError(Exception):
    """Raised when a lock cannot be acquired."""


class LockManager(abc.ABC):
    """What every lock backend provides."""

    @abc.abstractmethod
    def acquire(self, resource_id: int, task_id: str) -> None:
        """Lock ``resource_id`` for ``task_id``; raise LockError if it is held."""

    @abc.abstractmethod
    def release(self, resource_id: int) -> None:
        """Drop any lock on ``resource_id``."""

    @abc.abstractmethod
    def status(self, resource_id: int) -> Optional[LockStatus]:
        """The lock on ``resource_id``, or None."""

    @abc.abstractmethod
    def is_locked(self, resource_id: int) -> bool:
        """Whether ``resource_id`` holds a lock that has not expired."""


def _locked_message(resource_id: int, task_id: str) -> str:
    return f"resource {resource_id} is locked by task {task_id}"


class MemoryLocker(LockManager):
    """Locks kept in this process only."""

    def __init__(self, config: Optional[LockConfig] = None) -> None:
        self.config = config or default_config()
        self._mutex = threading.Lock()
        self._locks: dict[int, LockStatus] = {}

    def acquire(self, resource_id: int, task_id: str) -> None:
        with self._mutex:
            existing = self._locks.get(resource_id)
            if existing is not None and datetime.now() < existing.expires_at:
                raise LockError(_locked_message(resource_id, existing.task_id))
            now = datetime.now()
            self._locks[resource_id] = LockStatus(
                resource_id=resource_id,
                task_id=task_id,
                status="running",
                locked_at=now,
                expires_at=now + self.config.expire_time,
            )

    def release(self, resource_id: int) -> None:
        with self._mutex:
            self._locks.pop(resource_id, None)

    def status(self, resource_id: int) -> Optional[LockStatus]:
        with self._mutex:
            existing = self._locks.get(resource_id)
            return dataclasses.replace(existing) if existing is not None else None

    def is_locked(self, resource_id: int) -> bool:
        with self._mutex:
            existing = self._locks.get(resource_id)
            return existing is not None and datetime.now() < existing.expires_at


class DBLocker(LockManager):
    """Locks stored as rows of the execution_lock table."""

    def __init__(self, engine: Engine, config: Optional[LockConfig] = None) -> None:
        self.config = config or default_config()
        ExecutionLock.__table__.create(engine, checkfirst=True)
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def acquire(self, resource_id: int, task_id: str) -> None:
        now = datetime.now()
        values = {
            "task_id": task_id,
            "status": "running",
            "locked_at": now,
            "expires_at": now + self.config.expire_time,
        }
        try:
            with self._sessions.begin() as session:
                session.execute(delete(ExecutionLock).where(ExecutionLock.expires_at < now))
                live = session.scalars(
                    select(ExecutionLock)
                    .where(ExecutionLock.resource_id == resource_id, ExecutionLock.expires_at > now)
                    .limit(1)
                ).first()
                if live is not None:
                    raise LockError(_locked_message(resource_id, live.task_id))
                row = session.scalars(
                    select(ExecutionLock).where(ExecutionLock.resource_id == resource_id).limit(1)
                ).first()
                if row is None:
                    session.add(ExecutionLock(resource_id=resource_id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
        except SQLAlchemyError as err:
            raise LockError(f"failed to acquire lock: {err}") from err

    def release(self, resource_id: int) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(ExecutionLock).where(ExecutionLock.resource_id == resource_id))

    def status(self, resource_id: int) -> Optional[LockStatus]:
        with self._sessions() as session:
            row = session.scalars(
                select(ExecutionLock).where(ExecutionLock.resource_id == resource_id).limit(1)
            ).first()
        if row is None:
            return None
        return LockStatus(
            resource_id=row.resource_id,
            task_id=row.task_id,
            status=row.status,
            locked_at=row.locked_at,
            expires_at=row.expires_at,
        )

    def is_locked(self, resource_id: int) -> bool:
        with self._sessions() as session:
            count = session.scalar(
                select(func.count())
                .select_from(ExecutionLock)
                .where(
                    ExecutionLock.resource_id == resource_id,
                    ExecutionLock.expires_at > datetime.now(),
                )
            )
        return bool(count)