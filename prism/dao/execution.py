"""Data access for execution locks and execution tasks."""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from prism.models import ExecutionLock, ExecutionTask, RecordNotFoundError, TaskStatus

DEFAULT_LOCK_EXPIRE = timedelta(minutes=30)


def _session_factory(engine: Engine, model: type) -> sessionmaker:
    model.__table__.create(engine, checkfirst=True)
    return sessionmaker(bind=engine, expire_on_commit=False)


class ExecutionLockDAO:
    """Stores one expiring lock row per resource."""

    def __init__(self, engine: Engine, expire_time: Optional[timedelta] = None) -> None:
        self._sessions = _session_factory(engine, ExecutionLock)
        self.expire_time = expire_time or DEFAULT_LOCK_EXPIRE

    def acquire(self, resource_id: int, task_id: str) -> ExecutionLock:
        """Drop an expired lock on the resource, then insert a new one.

        Raises ``sqlalchemy.exc.IntegrityError`` if a live lock already exists.
        """
        now = datetime.now()
        with self._sessions.begin() as session:
            session.execute(
                delete(ExecutionLock).where(
                    ExecutionLock.resource_id == resource_id, ExecutionLock.expires_at < now
                )
            )
        lock = ExecutionLock(
            resource_id=resource_id,
            task_id=task_id,
            status="running",
            locked_at=now,
            expires_at=now + self.expire_time,
        )
        with self._sessions.begin() as session:
            session.add(lock)
        return lock

    def release(self, resource_id: int) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(ExecutionLock).where(ExecutionLock.resource_id == resource_id))

    def get(self, resource_id: int) -> ExecutionLock:
        with self._sessions() as session:
            lock = session.scalars(
                select(ExecutionLock).where(ExecutionLock.resource_id == resource_id).limit(1)
            ).first()
        if lock is None:
            raise RecordNotFoundError()
        return lock

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

    def update_status(self, resource_id: int, status: str) -> None:
        with self._sessions.begin() as session:
            session.execute(
                update(ExecutionLock)
                .where(ExecutionLock.resource_id == resource_id)
                .values(status=status)
            )

    def extend(self, resource_id: int) -> None:
        """Push the expiry of the resource's lock to a full period from now."""
        with self._sessions.begin() as session:
            session.execute(
                update(ExecutionLock)
                .where(ExecutionLock.resource_id == resource_id)
                .values(expires_at=datetime.now() + self.expire_time)
            )

    def clean_expired(self) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(ExecutionLock).where(ExecutionLock.expires_at < datetime.now()))


def _action_name(action: Union[str, enum.Enum]) -> str:
    return action.value if isinstance(action, enum.Enum) else action


class ExecutionTaskDAO:
    """Records the life of each execution task."""

    def __init__(self, engine: Engine) -> None:
        self._sessions = _session_factory(engine, ExecutionTask)

    def create(
        self, task_id: str, resource_id: int, action: Union[str, enum.Enum]
    ) -> ExecutionTask:
        task = ExecutionTask(
            task_id=task_id,
            resource_id=resource_id,
            action=_action_name(action),
            status=TaskStatus.PENDING,
        )
        with self._sessions.begin() as session:
            session.add(task)
        return task

    def get(self, task_id: str) -> ExecutionTask:
        with self._sessions() as session:
            task = session.scalars(
                select(ExecutionTask).where(ExecutionTask.task_id == task_id).limit(1)
            ).first()
        if task is None:
            raise RecordNotFoundError()
        return task

    def _update(self, task_id: str, **values) -> None:
        with self._sessions.begin() as session:
            session.execute(
                update(ExecutionTask).where(ExecutionTask.task_id == task_id).values(**values)
            )

    def update_status(self, task_id: str, status: TaskStatus) -> None:
        self._update(task_id, status=TaskStatus(status))

    def start(self, task_id: str) -> None:
        """Mark the task running and stamp its start time."""
        self._update(task_id, status=TaskStatus.RUNNING, started_at=datetime.now())

    def complete(self, task_id: str, success: bool, output: str, err_msg: str) -> None:
        """Mark the task finished, storing output, error and duration in milliseconds."""
        now = datetime.now()
        status = TaskStatus.SUCCESS if success else TaskStatus.FAILED
        with self._sessions() as session:
            started_at = session.scalar(
                select(ExecutionTask.started_at).where(ExecutionTask.task_id == task_id).limit(1)
            )
        duration = 0
        if started_at is not None:
            duration = int((now - started_at).total_seconds() * 1000)
        self._update(
            task_id,
            status=status,
            output=output,
            error=err_msg,
            finished_at=now,
            duration=duration,
        )

    def reset(self, task_id: str) -> None:
        """Return a task to pending so that it can run again."""
        self._update(
            task_id,
            status=TaskStatus.PENDING,
            output="",
            error="",
            started_at=None,
            finished_at=None,
            duration=0,
        )

    def list_by_resource(self, resource_id: int) -> list[ExecutionTask]:
        """Tasks of a resource, newest first."""
        with self._sessions() as session:
            return list(
                session.scalars(
                    select(ExecutionTask)
                    .where(ExecutionTask.resource_id == resource_id)
                    .order_by(ExecutionTask.created_at.desc())
                )
            )

    def list_failed(self) -> list[ExecutionTask]:
        """Failed tasks, newest first."""
        with self._sessions() as session:
            return list(
                session.scalars(
                    select(ExecutionTask)
                    .where(ExecutionTask.status == TaskStatus.FAILED)
                    .order_by(ExecutionTask.created_at.desc())
                )
            )

    def delete(self, task_id: str) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(ExecutionTask).where(ExecutionTask.task_id == task_id))

    def can_retry(self, task_id: str) -> bool:
        try:
            task = self.get(task_id)
        except RecordNotFoundError as err:
            raise RecordNotFoundError(f"task not found: {err}") from err
        return task.is_retryable()