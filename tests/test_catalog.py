import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError

from prism.dao.catalog import (
    PluginDAO,
    ProviderDAO,
    TerraformConfigDAO,
    TerraformConfigMetadataDAO,
    TerraformConfigParamDAO,
)
from prism.models import (
    Plugin,
    Provider,
    RecordNotFoundError,
    TerraformConfig,
    TerraformConfigMetadata,
    TerraformConfigParam,
)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    yield eng
    eng.dispose()


# --- plugins ---------------------------------------------------------------


def test_plugin_create_and_get(engine):
    dao = PluginDAO(engine)
    dao.create(Plugin(id="plugin-1", name="terraform-plugin"))
    assert dao.get("plugin-1").name == "terraform-plugin"


def test_plugin_get_by_name(engine):
    dao = PluginDAO(engine)
    dao.create(Plugin(id="plugin-1", name="terraform-plugin"))
    assert dao.get_by_name("terraform-plugin").id == "plugin-1"


def test_plugin_duplicate_name_rejected(engine):
    dao = PluginDAO(engine)
    dao.create(Plugin(id="plugin-1", name="same"))
    with pytest.raises(IntegrityError):
        dao.create(Plugin(id="plugin-2", name="same"))


def test_plugin_list(engine):
    dao = PluginDAO(engine)
    dao.create(Plugin(id="plugin-1", name="plugin1"))
    dao.create(Plugin(id="plugin-2", name="plugin2"))
    plugins = dao.list()
    assert len(plugins) == 2
    assert {p.name for p in plugins} == {"plugin1", "plugin2"}


def test_plugin_update(engine):
    dao = PluginDAO(engine)
    plugin = Plugin(id="plugin-1", name="old")
    dao.create(plugin)
    plugin.name = "new"
    dao.update(plugin)
    assert dao.get("plugin-1").name == "new"


def test_plugin_delete(engine):
    dao = PluginDAO(engine)
    dao.create(Plugin(id="plugin-1", name="terraform-plugin"))
    dao.delete("plugin-1")
    with pytest.raises(RecordNotFoundError):
        dao.get("plugin-1")


# --- providers -------------------------------------------------------------


def test_provider_create_and_get(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    provider = dao.get(1)
    assert provider.name == "aws"
    assert provider.version == "5.0.0"
    assert provider.enabled is True
    assert provider.is_default is False


def test_provider_get_missing(engine):
    dao = ProviderDAO(engine)
    with pytest.raises(RecordNotFoundError):
        dao.get(99)


def test_provider_get_by_name(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    assert dao.get_by_name("aws").id == 1


def test_provider_get_by_name_version(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    assert dao.get_by_name_version("aws", "5.0.0").id == 1
    with pytest.raises(RecordNotFoundError):
        dao.get_by_name_version("aws", "4.0.0")


def test_provider_list(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    dao.create(Provider(id=2, name="azure", version="3.0.0"))
    assert len(dao.list()) == 2


def test_provider_list_enabled(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    dao.create(Provider(id=2, name="azure", version="3.0.0", enabled=False))
    assert [p.name for p in dao.list_enabled()] == ["aws"]


def test_provider_set_default(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    with pytest.raises(RecordNotFoundError):
        dao.get_default("aws")
    dao.set_default(1)
    assert dao.get_default("aws").id == 1


def test_provider_set_default_missing(engine):
    dao = ProviderDAO(engine)
    with pytest.raises(RecordNotFoundError):
        dao.set_default(7)


def test_provider_update(engine):
    dao = ProviderDAO(engine)
    provider = Provider(id=1, name="aws", version="5.0.0")
    dao.create(provider)
    provider.description = "cloud"
    dao.update(provider)
    assert dao.get(1).description == "cloud"


def test_provider_delete(engine):
    dao = ProviderDAO(engine)
    dao.create(Provider(id=1, name="aws", version="5.0.0"))
    dao.delete(1)
    assert dao.list() == []


# --- terraform configs -----------------------------------------------------


def _config(config_id, name, provider="aws", attribute="ami", block_type="resource"):
    return TerraformConfig(
        id=config_id,
        name=name,
        provider=provider,
        block_type=block_type,
        resource_type="ec2",
        attribute=attribute,
    )


def test_config_create_and_get(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "ec2-config"))
    config = dao.get(1)
    assert config.name == "ec2-config"
    assert config.value_type == "string"


def test_config_get_by_name(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "ec2-config"))
    assert dao.get_by_name("ec2-config").provider == "aws"


def test_config_list_by_provider(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "config1", attribute="ami"))
    dao.create(_config(2, "config2", attribute="size"))
    dao.create(_config(3, "config3", provider="gcp"))
    assert len(dao.list_by_provider("aws")) == 2


def test_config_list_by_block_and_resource_type(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "config1", block_type="resource"))
    dao.create(_config(2, "config2", block_type="data", attribute="size"))
    assert [c.name for c in dao.list_by_block_type("data")] == ["config2"]
    assert len(dao.list_by_resource_type("ec2")) == 2


def test_config_get_attribute(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "config1", attribute="ami"))
    assert dao.get_attribute("aws", "resource", "ec2", "ami").id == 1
    with pytest.raises(RecordNotFoundError):
        dao.get_attribute("aws", "resource", "ec2", "missing")


def test_config_update(engine):
    dao = TerraformConfigDAO(engine)
    config = _config(1, "config1")
    dao.create(config)
    config.value = "ami-123"
    dao.update(config)
    assert dao.get(1).value == "ami-123"


def test_config_delete(engine):
    dao = TerraformConfigDAO(engine)
    dao.create(_config(1, "ec2-config"))
    dao.delete(1)
    with pytest.raises(RecordNotFoundError):
        dao.get(1)


# --- config metadata -------------------------------------------------------


def test_metadata_queries(engine):
    dao = TerraformConfigMetadataDAO(engine)
    dao.create(TerraformConfigMetadata(id=1, attribute="ami", category="compute", is_required=True))
    dao.create(TerraformConfigMetadata(id=2, attribute="tags", category="meta"))
    assert dao.get(1).attribute == "ami"
    assert dao.get_by_attribute("tags").id == 2
    assert [m.id for m in dao.list_by_category("compute")] == [1]
    assert [m.id for m in dao.list_required()] == [1]
    assert len(dao.list()) == 2


def test_metadata_update_and_delete(engine):
    dao = TerraformConfigMetadataDAO(engine)
    meta = TerraformConfigMetadata(id=1, attribute="ami")
    dao.create(meta)
    meta.display_name = "Image"
    dao.update(meta)
    assert dao.get(1).display_name == "Image"
    dao.delete(1)
    with pytest.raises(RecordNotFoundError):
        dao.get(1)


# --- config params ---------------------------------------------------------


def test_param_queries(engine):
    dao = TerraformConfigParamDAO(engine)
    dao.create(TerraformConfigParam(id=1, terraform_config_id=10, param_name="ami"))
    dao.create(TerraformConfigParam(id=2, terraform_config_id=10, param_name="size"))
    dao.create(TerraformConfigParam(id=3, terraform_config_id=20, param_name="ami"))
    assert {p.id for p in dao.list_by_config_id(10)} == {1, 2}
    assert dao.get_by_config_and_name(20, "ami").id == 3
    assert dao.get(2).value_type == "string"


def test_param_update_value(engine):
    dao = TerraformConfigParamDAO(engine)
    dao.create(TerraformConfigParam(id=1, terraform_config_id=10, param_name="ami"))
    dao.update_value(1, "ami-123")
    assert dao.get(1).param_value == "ami-123"


def test_param_update(engine):
    dao = TerraformConfigParamDAO(engine)
    param = TerraformConfigParam(id=1, terraform_config_id=10, param_name="ami")
    dao.create(param)
    param.description = "image id"
    dao.update(param)
    assert dao.get(1).description == "image id"


def test_param_delete_and_delete_by_config(engine):
    dao = TerraformConfigParamDAO(engine)
    dao.create(TerraformConfigParam(id=1, terraform_config_id=10, param_name="ami"))
    dao.create(TerraformConfigParam(id=2, terraform_config_id=10, param_name="size"))
    dao.create(TerraformConfigParam(id=3, terraform_config_id=20, param_name="ami"))
    dao.delete(3)
    with pytest.raises(RecordNotFoundError):
        dao.get(3)
    dao.delete_by_config_id(10)
    assert dao.list_by_config_id(10) == []