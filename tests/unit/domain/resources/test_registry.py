"""Unit tests for the runtime resource registry and registrar."""

from __future__ import annotations

import threading

import pytest

from schema_forge.domain.resources import (
    CompiledEntity,
    convert_schema_to_resources,
    convert_table_to_resource,
    create_registry,
    import_registry,
    publish_schema,
    register_resources_from_schema,
    sync_resources_from_schema,
)
from schema_forge.infrastructure.schema.core import AUDIT_COLUMNS, EntitySchema


@pytest.fixture
def registry(crm_schema):
    registry = create_registry()
    register_resources_from_schema(registry, crm_schema)
    return registry


class TestRegistryReads:
    def test_lookup_by_name_and_plural(self, registry) -> None:
        assert registry.get("deal").plural_name == "deals"
        assert registry.get_by_plural_name("deals").name == "deal"
        assert registry.get("invoice") is None
        assert registry.get_by_plural_name("invoices") is None

    def test_size_names_has(self, registry) -> None:
        assert registry.size() == 2
        assert registry.names() == ["company", "deal"]
        assert registry.has("company") and not registry.has("contact")

    def test_form_and_list_fields_exclude_audit_columns(self, registry) -> None:
        form = [f.name for f in registry.get_form_fields("deal")]
        listed = [f.name for f in registry.get_list_fields("deal")]

        assert form == ["title", "amount", "stage", "company_id"]
        assert listed == form
        assert not set(AUDIT_COLUMNS) & set(form)
        assert registry.get_form_fields("invoice") == []

    def test_relationship_fields(self, registry) -> None:
        fields = registry.get_relationship_fields("deal")

        assert [(f.name, f.display_name, f.related_resource) for f in fields] == [
            ("company_id", "Company", "company")
        ]

    def test_navigation_entries(self, registry) -> None:
        deal_nav = next(n for n in registry.get_navigation_entries() if n.name == "deals")

        assert deal_nav.list == "/deals"
        assert deal_nav.create == "/deals/create"
        assert deal_nav.edit == "/deals/:id/edit"
        assert deal_nav.show == "/deals/:id"

    def test_stats_and_json(self, registry, crm_schema) -> None:
        stats = registry.get_stats()
        exported = registry.to_json()

        assert stats["total_resources"] == 2
        assert stats["total_fields"] == sum(len(t.columns) for t in crm_schema.tables)
        assert exported["deal"]["route"] == "/deals"
        assert exported["deal"]["fields"][0]["type"] == "text"


class TestRegistryWrites:
    def test_reregister_keeps_created_at(self, registry, crm_schema) -> None:
        before = registry.get_entry("deal")
        register_resources_from_schema(registry, crm_schema)
        after = registry.get_entry("deal")

        assert after.created_at == before.created_at
        assert after.updated_at >= before.updated_at

    def test_unregister_and_clear(self, registry) -> None:
        assert registry.unregister("deal") is True
        assert registry.unregister("deal") is False
        assert registry.get_by_plural_name("deals") is None

        registry.clear()
        assert registry.size() == 0

    def test_snapshot_read_is_not_affected_by_later_writes(self, registry) -> None:
        resources = registry.get_all()
        registry.clear()

        assert [r.name for r in resources] == ["company", "deal"]
        assert registry.get_all() == []

    def test_replace_swaps_in_one_step_and_keeps_created_at(self, registry, crm_schema) -> None:
        before = registry.get_entry("deal")
        company, deal = convert_schema_to_resources(crm_schema)
        seen = []
        original_publish = registry._publish

        def recording_publish() -> None:
            original_publish()
            seen.append(registry.names())

        registry._publish = recording_publish
        registry.replace([deal.model_copy(update={"icon": "Handshake"})], remove=["company"])

        assert seen == [["deal"]]
        assert registry.get("deal").icon == "Handshake"
        assert registry.get_entry("deal").created_at == before.created_at

    def test_replace_with_clear_drops_everything_else(self, registry, crm_schema) -> None:
        _, deal = convert_schema_to_resources(crm_schema)

        registry.replace([deal], clear=True)

        assert registry.names() == ["deal"]

    def test_concurrent_registration(self, crm_schema) -> None:
        registry = create_registry()
        entities = convert_schema_to_resources(crm_schema)

        def worker(suffix: int) -> None:
            for entity in entities:
                registry.register(
                    entity.model_copy(update={"name": f"{entity.name}_{suffix}", "plural_name": f"{entity.plural_name}_{suffix}"})
                )

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert registry.size() == 16
        assert registry.get_by_plural_name("deals_7").name == "deal_7"


class TestRegistrar:
    def test_clear_existing_replaces_contents(self, registry, crm_payload) -> None:
        crm_payload["tables"] = crm_payload["tables"][:1]
        crm_payload["relationships"] = []

        result = register_resources_from_schema(registry, EntitySchema.from_payload(crm_payload), clear_existing=True)

        assert result.resources_registered == ["company"]
        assert registry.names() == ["company"]

    def test_sync_adds_only_new_resources(self, registry, crm_payload, contact_table) -> None:
        crm_payload["tables"].append(contact_table)

        result = sync_resources_from_schema(registry, EntitySchema.from_payload(crm_payload))

        assert result.resources_registered == ["contact"]
        assert registry.size() == 3

    def test_import_registry(self, registry) -> None:
        payload = registry.to_json()
        payload["broken"] = {"name": "broken"}
        target = create_registry()

        result = import_registry(target, payload)

        assert result.success is False
        assert result.resources_registered == ["company", "deal"]
        assert result.resources_failed == ["broken"]
        assert isinstance(target.get("deal"), CompiledEntity)

    def test_conversion_failures_are_collected_and_leave_registry_untouched(
        self, registry, crm_schema, monkeypatch
    ) -> None:
        from schema_forge.domain.resources import registrar

        def convert(table):
            if table.name == "deal":
                return CompiledEntity.model_validate({"name": "deal"})
            return convert_table_to_resource(table)

        monkeypatch.setattr(registrar, "convert_table_to_resource", convert)
        before = registry.get("deal")

        result = publish_schema(registry, crm_schema)

        assert result.success is False
        assert result.resources_registered == ["company"]
        assert result.resources_failed == ["deal"]
        assert result.errors[0].startswith("Failed to register deal")
        assert registry.get("deal") == before


class TestPublishSchema:
    def test_removes_only_tables_dropped_since_previous(self, registry, crm_schema, crm_payload) -> None:
        other = {**crm_payload["tables"][0], "name": "supplier"}
        registry.replace(convert_schema_to_resources(EntitySchema.from_payload({"tables": [other]})))
        crm_payload["tables"] = crm_payload["tables"][:1]
        crm_payload["relationships"] = []

        result = publish_schema(registry, EntitySchema.from_payload(crm_payload), previous=crm_schema)

        assert result.success is True
        assert registry.names() == ["company", "supplier"]
