"""Data access for Terraform resources, their attributes and output mappings."""

from __future__ import annotations

from typing import Iterable

from prism.dao.catalog import _ModelStore
from prism.models import (
    TerraformResource,
    TerraformResourceAttribute,
    TerraformResourceOutput,
)

_BATCH_SIZE = 100


class TerraformResourceDAO(_ModelStore[TerraformResource]):
    model = TerraformResource

    def create(self, resource: TerraformResource) -> None:
        self._insert(resource)

    def get(self, resource_id: int) -> TerraformResource:
        return self._by_key(resource_id)

    def list_by_provider(self, provider: str) -> list[TerraformResource]:
        return self._all(TerraformResource.provider == provider)

    def list_by_type(self, resource_type: str) -> list[TerraformResource]:
        return self._all(TerraformResource.resource_type == resource_type)

    def list_by_region(self, region_id: str) -> list[TerraformResource]:
        return self._all(TerraformResource.region_id == region_id)

    def list_by_status(self, status: str) -> list[TerraformResource]:
        return self._all(TerraformResource.status == status)

    def update(self, resource: TerraformResource) -> None:
        """Insert or overwrite the resource by its primary key."""
        self._save(resource)

    def update_status(self, resource_id: int, status: str) -> None:
        self._set(TerraformResource.id == resource_id, status=status)

    def update_tf_state(self, resource_id: int, tf_state: str) -> None:
        self._set(TerraformResource.id == resource_id, tf_state=tf_state)

    def delete(self, resource_id: int) -> None:
        self._remove(TerraformResource.id == resource_id)


class TerraformResourceAttributeDAO(_ModelStore[TerraformResourceAttribute]):
    model = TerraformResourceAttribute

    def create(self, attr: TerraformResourceAttribute) -> None:
        self._insert(attr)

    def create_batch(self, attrs: Iterable[TerraformResourceAttribute]) -> None:
        """Insert all attributes in one transaction, flushing every hundred rows."""
        pending = list(attrs)
        with self._sessions.begin() as session:
            for start in range(0, len(pending), _BATCH_SIZE):
                session.add_all(pending[start : start + _BATCH_SIZE])
                session.flush()

    def get(self, attr_id: int) -> TerraformResourceAttribute:
        return self._by_key(attr_id)

    def list_by_resource_id(self, resource_id: int) -> list[TerraformResourceAttribute]:
        return self._all(TerraformResourceAttribute.resource_id == resource_id)

    def list_by_resource_and_index(
        self, resource_id: int, index: int
    ) -> list[TerraformResourceAttribute]:
        return self._all(
            TerraformResourceAttribute.resource_id == resource_id,
            TerraformResourceAttribute.resource_index == index,
        )

    def get_by_resource_and_name(self, resource_id: int, name: str) -> TerraformResourceAttribute:
        return self._first(
            TerraformResourceAttribute.resource_id == resource_id,
            TerraformResourceAttribute.attribute_name == name,
        )

    def list_by_mapped_name(self, mapped_name: str) -> list[TerraformResourceAttribute]:
        return self._all(TerraformResourceAttribute.mapped_name == mapped_name)

    def update(self, attr: TerraformResourceAttribute) -> None:
        """Insert or overwrite the attribute by its primary key."""
        self._save(attr)

    def delete(self, attr_id: int) -> None:
        self._remove(TerraformResourceAttribute.id == attr_id)

    def delete_by_resource_id(self, resource_id: int) -> None:
        self._remove(TerraformResourceAttribute.resource_id == resource_id)


class TerraformResourceOutputDAO(_ModelStore[TerraformResourceOutput]):
    model = TerraformResourceOutput

    def create(self, output: TerraformResourceOutput) -> None:
        self._insert(output)

    def get(self, output_id: int) -> TerraformResourceOutput:
        return self._by_key(output_id)

    def list_by_provider(self, provider: str) -> list[TerraformResourceOutput]:
        return self._all(TerraformResourceOutput.provider == provider)

    def list_by_resource_type(self, resource_type: str) -> list[TerraformResourceOutput]:
        return self._all(TerraformResourceOutput.resource_type == resource_type)

    def list_by_provider_and_type(
        self, provider: str, resource_type: str
    ) -> list[TerraformResourceOutput]:
        return self._all(
            TerraformResourceOutput.provider == provider,
            TerraformResourceOutput.resource_type == resource_type,
        )

    def get_by_field(self, provider: str, resource_type: str, field: str) -> TerraformResourceOutput:
        return self._first(
            TerraformResourceOutput.provider == provider,
            TerraformResourceOutput.resource_type == resource_type,
            TerraformResourceOutput.field == field,
        )

    def update(self, output: TerraformResourceOutput) -> None:
        """Insert or overwrite the output mapping by its primary key."""
        self._save(output)

    def delete(self, output_id: int) -> None:
        self._remove(TerraformResourceOutput.id == output_id)