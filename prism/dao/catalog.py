"""Data access for plugins, providers and Terraform configuration records."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from prism.models import (
    Base,
    Plugin,
    Provider,
    RecordNotFoundError,
    TerraformConfig,
    TerraformConfigMetadata,
    TerraformConfigParam,
)

M = TypeVar("M", bound=Base)


class _ModelStore(Generic[M]):
    """Shared persistence operations for one model class."""

    model: type

    def __init__(self, engine: Engine) -> None:
        self.model.__table__.create(engine, checkfirst=True)
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def _insert(self, obj: M) -> None:
        with self._sessions.begin() as session:
            session.add(obj)

    def _by_key(self, key: Any) -> M:
        with self._sessions() as session:
            obj = session.get(self.model, key)
        if obj is None:
            raise RecordNotFoundError()
        return obj

    def _first(self, *criteria: Any) -> M:
        with self._sessions() as session:
            obj = session.scalars(select(self.model).where(*criteria).limit(1)).first()
        if obj is None:
            raise RecordNotFoundError()
        return obj

    def _all(self, *criteria: Any) -> list[M]:
        with self._sessions() as session:
            return list(session.scalars(select(self.model).where(*criteria)))

    def _save(self, obj: M) -> None:
        with self._sessions.begin() as session:
            session.merge(obj)

    def _set(self, criteria: Any, **values: Any) -> None:
        with self._sessions.begin() as session:
            session.execute(update(self.model).where(criteria).values(**values))

    def _remove(self, *criteria: Any) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(self.model).where(*criteria))


class PluginDAO(_ModelStore[Plugin]):
    model = Plugin

    def create(self, plugin: Plugin) -> None:
        self._insert(plugin)

    def get(self, plugin_id: str) -> Plugin:
        return self._first(Plugin.id == plugin_id)

    def get_by_name(self, name: str) -> Plugin:
        return self._first(Plugin.name == name)

    def list(self) -> list[Plugin]:
        return self._all()

    def update(self, plugin: Plugin) -> None:
        """Insert or overwrite the plugin by its primary key."""
        self._save(plugin)

    def delete(self, plugin_id: str) -> None:
        self._remove(Plugin.id == plugin_id)


class ProviderDAO(_ModelStore[Provider]):
    model = Provider

    def create(self, provider: Provider) -> None:
        self._insert(provider)

    def get(self, provider_id: int) -> Provider:
        return self._by_key(provider_id)

    def get_by_name(self, name: str) -> Provider:
        return self._first(Provider.name == name)

    def get_by_name_version(self, name: str, version: str) -> Provider:
        return self._first(Provider.name == name, Provider.version == version)

    def get_default(self, name: str) -> Provider:
        return self._first(Provider.name == name, Provider.is_default.is_(True))

    def list(self) -> list[Provider]:
        return self._all()

    def list_enabled(self) -> list[Provider]:
        return self._all(Provider.enabled.is_(True))

    def update(self, provider: Provider) -> None:
        """Insert or overwrite the provider by its primary key."""
        self._save(provider)

    def set_default(self, provider_id: int) -> None:
        """Make this provider the default among those sharing its name."""
        provider = self._by_key(provider_id)
        self._set(Provider.name == provider.name, is_default=False)
        self._set(Provider.id == provider_id, is_default=True)

    def delete(self, provider_id: int) -> None:
        self._remove(Provider.id == provider_id)


class TerraformConfigDAO(_ModelStore[TerraformConfig]):
    model = TerraformConfig

    def create(self, config: TerraformConfig) -> None:
        self._insert(config)

    def get(self, config_id: int) -> TerraformConfig:
        return self._by_key(config_id)

    def get_by_name(self, name: str) -> TerraformConfig:
        return self._first(TerraformConfig.name == name)

    def list_by_provider(self, provider: str) -> list[TerraformConfig]:
        return self._all(TerraformConfig.provider == provider)

    def list_by_block_type(self, block_type: str) -> list[TerraformConfig]:
        return self._all(TerraformConfig.block_type == block_type)

    def list_by_resource_type(self, resource_type: str) -> list[TerraformConfig]:
        return self._all(TerraformConfig.resource_type == resource_type)

    def get_attribute(
        self, provider: str, block_type: str, resource_type: str, attribute: str
    ) -> TerraformConfig:
        return self._first(
            TerraformConfig.provider == provider,
            TerraformConfig.block_type == block_type,
            TerraformConfig.resource_type == resource_type,
            TerraformConfig.attribute == attribute,
        )

    def update(self, config: TerraformConfig) -> None:
        """Insert or overwrite the config by its primary key."""
        self._save(config)

    def delete(self, config_id: int) -> None:
        self._remove(TerraformConfig.id == config_id)


class TerraformConfigMetadataDAO(_ModelStore[TerraformConfigMetadata]):
    model = TerraformConfigMetadata

    def create(self, meta: TerraformConfigMetadata) -> None:
        self._insert(meta)

    def get(self, meta_id: int) -> TerraformConfigMetadata:
        return self._by_key(meta_id)

    def get_by_attribute(self, attribute: str) -> TerraformConfigMetadata:
        return self._first(TerraformConfigMetadata.attribute == attribute)

    def list_by_category(self, category: str) -> list[TerraformConfigMetadata]:
        return self._all(TerraformConfigMetadata.category == category)

    def list_required(self) -> list[TerraformConfigMetadata]:
        return self._all(TerraformConfigMetadata.is_required.is_(True))

    def list(self) -> list[TerraformConfigMetadata]:
        return self._all()

    def update(self, meta: TerraformConfigMetadata) -> None:
        """Insert or overwrite the metadata by its primary key."""
        self._save(meta)

    def delete(self, meta_id: int) -> None:
        self._remove(TerraformConfigMetadata.id == meta_id)


class TerraformConfigParamDAO(_ModelStore[TerraformConfigParam]):
    model = TerraformConfigParam

    def create(self, param: TerraformConfigParam) -> None:
        self._insert(param)

    def get(self, param_id: int) -> TerraformConfigParam:
        return self._by_key(param_id)

    def list_by_config_id(self, config_id: int) -> list[TerraformConfigParam]:
        return self._all(TerraformConfigParam.terraform_config_id == config_id)

    def get_by_config_and_name(self, config_id: int, param_name: str) -> TerraformConfigParam:
        return self._first(
            TerraformConfigParam.terraform_config_id == config_id,
            TerraformConfigParam.param_name == param_name,
        )

    def update(self, param: TerraformConfigParam) -> None:
        """Insert or overwrite the parameter by its primary key."""
        self._save(param)

    def update_value(self, param_id: int, value: str) -> None:
        self._set(TerraformConfigParam.id == param_id, param_value=value)

    def delete(self, param_id: int) -> None:
        self._remove(TerraformConfigParam.id == param_id)

    def delete_by_config_id(self, config_id: int) -> None:
        self._remove(TerraformConfigParam.terraform_config_id == config_id)