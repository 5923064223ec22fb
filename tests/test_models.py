import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from prism.models import (
    Base,
    ExecutionLock,
    ExecutionTask,
    Plugin,
    Provider,
    TaskStatus,
    TerraformConfig,
    TerraformConfigMetadata,
    TerraformConfigParam,
    TerraformResource,
    TerraformResourceAttribute,
    TerraformResourceOutput,
)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as sess:
        yield sess
    engine.dispose()


@pytest.mark.parametrize(
    "model, name",
    [
        (ExecutionLock, "execution_lock"),
        (ExecutionTask, "execution_task"),
        (Plugin, "plugin"),
        (Provider, "provider"),
        (TerraformConfig, "terraform_config"),
        (TerraformConfigMetadata, "terraform_config_metadata"),
        (TerraformConfigParam, "terraform_param"),
        (TerraformResource, "terraform_resource"),
        (TerraformResourceAttribute, "terraform_resource_attribute"),
        (TerraformResourceOutput, "terraform_resource_output"),
    ],
)
def test_table_names(model, name):
    assert model.__tablename__ == name


def test_defaults_present_before_flush():
    lock = ExecutionLock(resource_id=1, task_id="task-1")
    task = ExecutionTask(task_id="task-1", resource_id=100, action="apply")
    assert lock.status == "running"
    assert task.status is TaskStatus.PENDING
    assert task.output == ""
    assert task.duration == 0
    assert task.started_at is None


def test_string_defaults_match_source():
    assert TerraformConfig(name="c").value_type == "string"
    assert TerraformResource(id=1).status == "pending"
    assert TerraformResourceAttribute(id=1).value_type == "string"
    assert TerraformConfigParam(id=1).value_type == "string"


def test_provider_boolean_defaults_and_override():
    provider = Provider(id=1, name="aws", version="5.0.0")
    assert provider.enabled is True
    assert provider.is_default is False
    assert provider.initialized is False
    assert Provider(id=2, enabled=False).enabled is False


def test_unknown_keyword_rejected():
    with pytest.raises(TypeError):
        Plugin(id="plugin-1", colour="red")


@pytest.mark.parametrize(
    "status, retryable",
    [
        (TaskStatus.PENDING, False),
        (TaskStatus.RUNNING, False),
        (TaskStatus.SUCCESS, False),
        (TaskStatus.FAILED, True),
        (TaskStatus.CANCELLED, True),
    ],
)
def test_is_retryable(status, retryable):
    assert ExecutionTask(task_id="t", status=status).is_retryable() is retryable


def test_task_status_round_trip(session):
    session.add(ExecutionTask(task_id="task-1", resource_id=100, action="apply",
                              status=TaskStatus.FAILED))
    session.commit()
    session.expunge_all()
    loaded = session.scalars(select(ExecutionTask).where(ExecutionTask.task_id == "task-1")).one()
    assert loaded.status is TaskStatus.FAILED
    assert loaded.resource_id == 100
    assert loaded.is_retryable() is True
    assert loaded.created_at <= loaded.updated_at


def test_task_ids_autoincrement(session):
    first = ExecutionTask(task_id="task-1", resource_id=100, action="apply")
    second = ExecutionTask(task_id="task-2", resource_id=100, action="plan")
    session.add_all([first, second])
    session.commit()
    assert first.id > 0
    assert second.id > 0
    assert first.id != second.id


def test_task_id_unique(session):
    session.add(ExecutionTask(task_id="task-1", resource_id=1, action="apply"))
    session.commit()
    session.add(ExecutionTask(task_id="task-1", resource_id=2, action="plan"))
    with pytest.raises(IntegrityError):
        session.commit()


def test_lock_resource_unique(session):
    session.add(ExecutionLock(resource_id=1, task_id="task-1"))
    session.commit()
    session.add(ExecutionLock(resource_id=1, task_id="task-2"))
    with pytest.raises(IntegrityError):
        session.commit()


def test_provider_name_unique(session):
    session.add(Provider(id=1, name="aws", version="5.0.0"))
    session.commit()
    session.add(Provider(id=2, name="aws", version="3.0.0"))
    with pytest.raises(IntegrityError):
        session.commit()


def test_param_relationship_loads_config(session):
    session.add(TerraformConfig(id=1, name="ec2-config", provider="aws",
                                block_type="resource", resource_type="ec2"))
    session.add(TerraformConfigParam(id=10, terraform_config_id=1, param_name="ami"))
    session.commit()
    session.expunge_all()
    param = session.get(TerraformConfigParam, 10)
    assert param.terraform_config.name == "ec2-config"
    assert param.param_value == ""


def test_attribute_relationship_loads_resource(session):
    session.add(TerraformResource(id=1, provider="aws", resource_type="ec2"))
    session.add(TerraformResourceAttribute(id=5, resource_id=1, attribute_name="id",
                                           attribute_value="i-0000"))
    session.commit()
    session.expunge_all()
    attr = session.get(TerraformResourceAttribute, 5)
    assert attr.resource.provider == "aws"
    assert attr.attribute_value == "i-0000"