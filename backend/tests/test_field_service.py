# Overview: Pytest coverage for the field schema registry.

"""
Field Schema Registry Tests

Covers key normalization, per-tenant uniqueness, the "at least one active
field" invariant, core-field protection and atomic reordering.
"""

import pytest

from flexpos.errors import ValidationError, DuplicateError, InvariantError, NotFoundError
from flexpos.models import FieldDefinition, LedgerEvent
from flexpos.services import field_service
from flexpos.services.field_service import slugify_field_key


class TestFieldKeys:
    def test_key_derived_from_label(self, db_session, ctx_a):
        field = field_service.add_field(ctx_a, {"label": "Warranty Period!!"})
        assert field.field_key == "warranty_period"
        assert field.is_custom is True
        assert field.field_type == "text"

    def test_duplicate_any_casing(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Warranty Period!!"})
        with pytest.raises(DuplicateError):
            field_service.add_field(ctx_a, {"label": "WARRANTY PERIOD"})
        with pytest.raises(DuplicateError):
            field_service.add_field(ctx_a, {"label": "Other", "field_key": "Warranty_Period"})

    def test_same_key_in_other_tenant_is_fine(self, db_session, ctx_a, ctx_b):
        field_service.add_field(ctx_a, {"label": "Flavor"})
        field = field_service.add_field(ctx_b, {"label": "Flavor"})
        assert field.field_key == "flavor"

    def test_malformed_explicit_key(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            field_service.add_field(ctx_a, {"label": "Size", "field_key": "pack size"})

    def test_label_without_usable_characters(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            field_service.add_field(ctx_a, {"label": "!!!"})

    def test_slugify(self):
        assert slugify_field_key("  Pack Size (ml) ") == "pack_size_ml"
        assert slugify_field_key("__a--b__") == "a_b"


class TestAddField:
    def test_display_order_defaults_to_end(self, db_session, ctx_a, fields_a):
        field = field_service.add_field(ctx_a, {"label": "Flavor"})
        assert field.display_order == len(fields_a) + 1

    def test_select_with_options(self, db_session, ctx_a):
        field = field_service.add_field(ctx_a, {
            "label": "Size", "field_type": "select", "options": ["S", "M", "L"],
        })
        assert field.options == ["S", "M", "L"]

    def test_core_key_cannot_be_custom(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            field_service.add_field(ctx_a, {"label": "SKU", "field_key": "sku"})

    def test_core_key_must_keep_its_type(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            field_service.add_field(ctx_a, {
                "label": "Stock", "field_key": "stock", "field_type": "text", "is_custom": False,
            })

    def test_unknown_type_rejected(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            field_service.add_field(ctx_a, {"label": "Rating", "field_type": "stars"})

    def test_add_writes_ledger_event(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Flavor"})
        event = db_session.query(LedgerEvent).filter_by(event_type="field.created").one()
        assert event.org_id == ctx_a.org_id
        assert event.actor_id == "cashier-a"


class TestListFields:
    def test_ties_fall_back_to_creation_order(self, db_session, ctx_a):
        first = field_service.add_field(ctx_a, {"label": "B field", "display_order": 1})
        second = field_service.add_field(ctx_a, {"label": "A field", "display_order": 1})
        keys = [f.field_key for f in field_service.list_fields(ctx_a)]
        assert keys == [first.field_key, second.field_key]

    def test_active_only(self, db_session, ctx_a, fields_a):
        field_service.toggle_active(ctx_a, "brand", False)
        keys = [f.field_key for f in field_service.list_fields(ctx_a, active_only=True)]
        assert "brand" not in keys
        assert len(keys) == len(fields_a) - 1


class TestActiveInvariant:
    def test_cannot_disable_last_active_field(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Only"})
        with pytest.raises(InvariantError):
            field_service.toggle_active(ctx_a, "only", False)
        assert field_service.get_field(ctx_a, "only").is_active is True

    def test_toggle_sequence_keeps_one_active(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "One"})
        field_service.add_field(ctx_a, {"label": "Two"})
        field_service.toggle_active(ctx_a, "one", False)
        with pytest.raises(InvariantError):
            field_service.toggle_active(ctx_a, "two", False)
        field_service.toggle_active(ctx_a, "one", True)
        field_service.toggle_active(ctx_a, "two", False)

        active = field_service.list_fields(ctx_a, active_only=True)
        assert [f.field_key for f in active] == ["one"]

    def test_patch_deactivation_respects_invariant(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Only"})
        with pytest.raises(InvariantError):
            field_service.update_field(ctx_a, "only", {"is_active": False})


class TestUpdateField:
    def test_merges_and_revalidates(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Size", "field_type": "select", "options": ["S"]})
        field = field_service.update_field(ctx_a, "size", {"options": ["S", "M"], "help_text": "Bottle size"})
        assert field.options == ["S", "M"]
        assert field.label == "Size"
        assert field.help_text == "Bottle size"

    def test_key_is_immutable(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Size"})
        with pytest.raises(ValidationError):
            field_service.update_field(ctx_a, "size", {"field_key": "bottle_size"})

    def test_type_change_drops_stale_options(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Size", "field_type": "select", "options": ["S"]})
        field = field_service.update_field(ctx_a, "size", {"field_type": "text"})
        assert field.field_type == "text"
        assert field.options == []

    def test_invalid_merge_rejected(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Size"})
        with pytest.raises(ValidationError):
            field_service.update_field(ctx_a, "size", {"options": ["S"]})

    def test_missing_field(self, db_session, ctx_a):
        with pytest.raises(NotFoundError):
            field_service.update_field(ctx_a, "nope", {"label": "Nope"})


class TestDeleteField:
    def test_delete_custom_field(self, db_session, ctx_a, fields_a):
        field_service.add_field(ctx_a, {"label": "Flavor"})
        field_service.delete_field(ctx_a, "flavor")
        assert db_session.query(FieldDefinition).filter_by(org_id=ctx_a.org_id, field_key="flavor").first() is None

    def test_core_field_cannot_be_deleted(self, db_session, ctx_a, fields_a):
        with pytest.raises(InvariantError):
            field_service.delete_field(ctx_a, "sku")

    def test_last_field_cannot_be_deleted(self, db_session, ctx_a):
        field_service.add_field(ctx_a, {"label": "Only"})
        with pytest.raises(InvariantError):
            field_service.delete_field(ctx_a, "only")


class TestReorder:
    def test_reorder_is_applied(self, db_session, ctx_a):
        for label in ("One", "Two", "Three"):
            field_service.add_field(ctx_a, {"label": label})
        fields = field_service.reorder_fields(ctx_a, ["three", "one", "two"])
        assert [(f.field_key, f.display_order) for f in fields] == [("three", 1), ("one", 2), ("two", 3)]

    def test_partial_list_changes_nothing(self, db_session, ctx_a):
        for label in ("One", "Two", "Three"):
            field_service.add_field(ctx_a, {"label": label})
        with pytest.raises(ValidationError):
            field_service.reorder_fields(ctx_a, ["three", "one"])
        with pytest.raises(ValidationError):
            field_service.reorder_fields(ctx_a, ["three", "one", "one"])
        keys = [f.field_key for f in field_service.list_fields(ctx_a)]
        assert keys == ["one", "two", "three"]


class TestDefaults:
    def test_initialize_defaults_is_idempotent(self, db_session, ctx_a):
        first = field_service.initialize_default_fields(ctx_a)
        second = field_service.initialize_default_fields(ctx_a)
        keys = [f.field_key for f in second]
        assert keys == ["sku", "name", "brand", "category", "sale_price", "retail_price", "stock"]
        assert len(first) == len(second)
        assert all(not f.is_custom for f in second)
