"""Database models for execution bookkeeping and the Terraform catalogue."""

import enum
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

# Auto-increment keys must be plain INTEGER on SQLite to get rowid behaviour.
_AUTO_ID = BigInteger().with_variant(Integer(), "sqlite")


class RecordNotFoundError(LookupError):
    """Raised when a lookup matches no row."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


class Base(DeclarativeBase):
    """Declarative base whose constructor fills in column defaults at once.

    A freshly built model therefore carries the same values it will have once
    stored, instead of ``None`` until the first flush.
    """

    def __init__(self, **kwargs: Any) -> None:
        cls = type(self)
        for attr in inspect(cls).column_attrs:
            if attr.key in kwargs:
                continue
            default = attr.columns[0].default
            if default is not None and default.is_scalar:
                setattr(self, attr.key, default.arg)
        for key, value in kwargs.items():
            if not hasattr(cls, key):
                raise TypeError(f"{key!r} is an invalid keyword argument for {cls.__name__}")
            setattr(self, key, value)


def _now() -> datetime:
    return datetime.now()


class TaskStatus(enum.IntEnum):
    """Stored state of an execution task."""

    PENDING = 0
    RUNNING = 1
    SUCCESS = 2
    FAILED = 3
    CANCELLED = 4


class _TaskStatusType(TypeDecorator):
    """Stores a :class:`TaskStatus` as its integer value."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else int(value)

    def process_result_value(self, value, dialect):
        return None if value is None else TaskStatus(value)


class ExecutionLock(Base):
    """A database-held lock on one resource."""

    __tablename__ = "execution_lock"

    id: Mapped[int] = mapped_column(_AUTO_ID, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False, default=0)
    task_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="running", server_default="running"
    )
    locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_now)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True, default=_now)


class ExecutionTask(Base):
    """One run of an action against a resource."""

    __tablename__ = "execution_task"

    id: Mapped[int] = mapped_column(_AUTO_ID, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, default="")
    resource_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False, default=0)
    action: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    status: Mapped[TaskStatus] = mapped_column(
        _TaskStatusType(), nullable=False, default=TaskStatus.PENDING, server_default="0"
    )
    output: Mapped[str] = mapped_column(Text, default="")
    error: Mapped[str] = mapped_column(Text, default="")
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration: Mapped[int] = mapped_column(BigInteger, default=0)  # milliseconds
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    def is_retryable(self) -> bool:
        return self.status in (TaskStatus.FAILED, TaskStatus.CANCELLED)


class Plugin(Base):
    __tablename__ = "plugin"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="")
    name: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, default="", comment="名称"
    )


class Provider(Base):
    __tablename__ = "provider"
    __table_args__ = (UniqueConstraint("name", "version", name="uk_name_version"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, default="")
    registry: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    version: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    namespace: Mapped[str] = mapped_column(
        String(32), nullable=False, default="", server_default=""
    )
    initialized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str] = mapped_column(String(512), default="", server_default="")


class TerraformConfig(Base):
    __tablename__ = "terraform_config"
    __table_args__ = (
        UniqueConstraint(
            "provider",
            "block_type",
            "resource_type",
            "attribute",
            name="uk_provider_block_resource_attr",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, default="")
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    block_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True, default="")
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    attribute: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    value_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="string", server_default="string"
    )
    description: Mapped[str] = mapped_column(String(256), nullable=False, default="")


class TerraformConfigMetadata(Base):
    __tablename__ = "terraform_config_metadata"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    attribute: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    value_type: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    validation_rule: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="")


class TerraformConfigParam(Base):
    __tablename__ = "terraform_param"
    __table_args__ = (
        UniqueConstraint("terraform_config_id", "param_name", name="uk_terraform_config_param"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    terraform_config_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("terraform_config.id", onupdate="CASCADE", ondelete="CASCADE"),
        nullable=False,
        index=True,
        default=0,
    )
    param_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True, default="")
    param_value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    default_value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    value_type: Mapped[str] = mapped_column(
        String(128), nullable=False, default="string", server_default="string"
    )
    description: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    terraform_config: Mapped[Optional[TerraformConfig]] = relationship()


class TerraformResource(Base):
    __tablename__ = "terraform_resource"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    provider: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    region_id: Mapped[str] = mapped_column(String(128), index=True, default="")
    tf_config: Mapped[str] = mapped_column(Text, default="")
    tf_state: Mapped[str] = mapped_column(Text, default="")
    action: Mapped[str] = mapped_column(String(32), default="")
    status: Mapped[str] = mapped_column(String(32), default="pending", server_default="pending")


class TerraformResourceAttribute(Base):
    __tablename__ = "terraform_resource_attribute"
    __table_args__ = (
        UniqueConstraint(
            "resource_id", "resource_index", "attribute_name", name="uk_resource_index_attr"
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    resource_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("terraform_resource.id", onupdate="CASCADE", ondelete="CASCADE"),
        nullable=False,
        index=True,
        default=0,
    )
    resource_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attribute_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True, default="")
    attribute_value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    value_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="string", server_default="string"
    )
    mapped_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True, default="")

    resource: Mapped[Optional[TerraformResource]] = relationship()


class TerraformResourceOutput(Base):
    __tablename__ = "terraform_resource_output"
    __table_args__ = (
        UniqueConstraint(
            "provider", "resource_type", "field", name="uk_provider_resource_field"
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False, default=0)
    provider: Mapped[str] = mapped_column(String(100), nullable=False, index=True, default="")
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    field: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    tf_state_path: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    display_name: Mapped[str] = mapped_column(String(128), default="")
    description: Mapped[str] = mapped_column(String(512), default="")