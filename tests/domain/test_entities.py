"""Tests for domain entities."""

from uuid import uuid4

import pytest

from catalog_core.domain import (
    CompositionItem,
    Dimensions,
    Product,
    ProductVariationItem,
    StructureFlags,
    ValidationError,
    Validated,
    Variation,
    VariationType,
    Weight,
    split_parent_key,
    variation_parent_key,
)


# ============================================================================
# Product Tests
# ============================================================================


class TestProductCreation:
    """Tests for product creation and validation."""

    def test_create_simple_product(self) -> None:
        """Product defaults to simple structure."""
        product = Product.create("CHAIR-001", "Chair")
        assert product.sku == "CHAIR-001"
        assert product.structure == StructureFlags(False, False)
        assert product.is_simple()
        assert product.created_at == product.updated_at

    def test_create_with_measures(self) -> None:
        """Raw measures are coerced to value objects."""
        product = Product.create(
            "TABLE-001",
            "Table",
            dimensions={"height": 75, "width": 120, "depth": 80},
            weight=15000,
        )
        assert product.dimensions == Dimensions(75, 120, 80)
        assert product.weight == Weight(15000)

    def test_lowercase_sku_rejected(self) -> None:
        """SKU must be uppercase letters, digits and hyphens."""
        with pytest.raises(ValidationError) as exc_info:
            Product.create("chair-001", "Chair")
        assert [e.field for e in exc_info.value.errors] == ["sku"]

    def test_try_create_reports_all_field_errors(self) -> None:
        """try_create collects every field error without raising."""
        result = Product.try_create({"sku": "bad sku", "name": "", "weight": -5})
        assert not result.ok
        assert {e.field for e in result.errors} == {"sku", "name", "weight"}
        with pytest.raises(ValidationError):
            result.unwrap()

    def test_try_create_reports_nested_field_path(self) -> None:
        """Nested failures report a dotted field path."""
        result = Product.try_create(
            {"sku": "BOX-1", "name": "Box", "dimensions": {"height": 0, "width": 1, "depth": 1}}
        )
        assert [e.field for e in result.errors] == ["dimensions.height"]

    def test_try_create_success(self) -> None:
        """Valid data produces a product."""
        result = Product.try_create({"sku": "BOX-1", "name": "Box", "is_composite": True})
        assert result.ok
        assert result.unwrap().is_composite

    def test_non_boolean_flag_rejected(self) -> None:
        """Structural flags must be real booleans."""
        result = Product.try_create({"sku": "BOX-1", "name": "Box", "is_composite": "yes"})
        assert [e.field for e in result.errors] == ["is_composite"]

    def test_timestamps_rejected_on_creation(self) -> None:
        """Creation timestamps are field errors, not a crash."""
        result = Product.try_create(
            {"sku": "BOX-1", "name": "Box", "created_at": "2024-01-01T00:00:00+00:00"}
        )
        assert not result.ok
        assert [e.field for e in result.errors] == ["created_at"]
        with pytest.raises(ValidationError):
            result.unwrap()

    def test_unknown_field_reported_once(self) -> None:
        """Unknown keys are reported a single time."""
        result = Product.try_create({"sku": "BOX-1", "name": "Box", "color": "red"})
        assert [e.field for e in result.errors] == ["color"]

    def test_unwrap_without_value_raises(self) -> None:
        """An empty result has nothing to unwrap."""
        with pytest.raises(ValueError):
            Validated("Product").unwrap()


class TestProductUpdate:
    """Tests for product updates."""

    def test_update_returns_new_version(self) -> None:
        """Update keeps identity and creation time."""
        product = Product.create("CHAIR-001", "Chair")
        updated = product.update(name="Armchair")
        assert updated.name == "Armchair"
        assert product.name == "Chair"
        assert updated.same_identity(product)
        assert updated.created_at == product.created_at
        assert updated.updated_at >= product.updated_at

    def test_sku_cannot_change(self) -> None:
        """SKU is immutable."""
        product = Product.create("CHAIR-001", "Chair")
        with pytest.raises(ValidationError) as exc_info:
            product.update(sku="CHAIR-002")
        assert exc_info.value.errors[0].message == "sku cannot be modified"

    def test_explicit_none_clears_field(self) -> None:
        """Passing None clears an optional measure."""
        product = Product.create("CHAIR-001", "Chair", weight=500)
        assert product.update(weight=None).weight is None

    def test_invalid_update_rejected(self) -> None:
        """Updates are validated like creation."""
        product = Product.create("CHAIR-001", "Chair")
        with pytest.raises(ValidationError):
            product.update(name="")


class TestProductRules:
    """Tests for product business rules."""

    def test_composite_ignores_weight(self) -> None:
        """Composite products compute weight from children."""
        assert Product.create("KIT-1", "Kit", is_composite=True).should_ignore_weight()
        assert not Product.create("PART-1", "Part").should_ignore_weight()

    def test_variable_product_not_usable_in_composition(self) -> None:
        """Only non-variable products can be composition children."""
        assert not Product.create("SHIRT-1", "Shirt", has_variation=True).can_be_used_in_composition()
        assert Product.create("KIT-1", "Kit", is_composite=True).can_be_used_in_composition()

    def test_json_round_trip(self) -> None:
        """Serialized products rebuild equal."""
        product = Product.create(
            "LAMP-1",
            "Lamp",
            is_composite=True,
            dimensions=Dimensions(30, 15, 15),
            weight=Weight(1200),
        )
        assert Product.from_json(product.to_json()) == product

    def test_json_uses_snake_case(self) -> None:
        """Persisted keys are snake_case."""
        data = Product.create("LAMP-1", "Lamp").to_json()
        assert {"is_composite", "has_variation", "created_at", "updated_at"} <= set(data)

    def test_from_json_rejects_corrupt_record(self) -> None:
        """Stored records are validated when read."""
        data = Product.create("LAMP-1", "Lamp").to_json()
        data["sku"] = "lamp"
        with pytest.raises(ValidationError):
            Product.from_json(data)


# ============================================================================
# Variation Tests
# ============================================================================


class TestVariationType:
    """Tests for variation types."""

    def test_create_generates_id(self) -> None:
        """Variation types get a UUID."""
        vt = VariationType.create("Color", modifies_weight=True)
        assert len(vt.id) == 36
        assert vt.affects_calculations()

    def test_normalized_name(self) -> None:
        """Names normalize to lowercase without surrounding spaces."""
        assert VariationType.create("  Color ").normalized_name() == "color"

    def test_invalid_name_rejected(self) -> None:
        """Names are limited to letters, digits and simple punctuation."""
        with pytest.raises(ValidationError):
            VariationType.create("Color<script>")

    def test_json_round_trip(self) -> None:
        """Serialized variation types rebuild equal."""
        vt = VariationType.create("Size", modifies_dimensions=True)
        assert VariationType.from_json(vt.to_json()) == vt


class TestVariation:
    """Tests for variations."""

    def test_type_unique_key(self) -> None:
        """Variations are unique per type by normalized name."""
        type_id = str(uuid4())
        variation = Variation.create(type_id, "Red ")
        assert variation.type_unique_key() == f"{type_id}:red"

    def test_type_id_must_be_uuid(self) -> None:
        """Variation type reference must be a UUID."""
        with pytest.raises(ValidationError):
            Variation.create("not-a-uuid", "Red")

    def test_json_round_trip(self) -> None:
        """Serialized variations rebuild equal."""
        variation = Variation.create(str(uuid4()), "Dark Red")
        assert Variation.from_json(variation.to_json()) == variation

    def test_generated_fields_rejected_on_creation(self) -> None:
        """Timestamps are generated, never supplied."""
        result = Variation.try_create(
            {"variation_type_id": str(uuid4()), "name": "Red", "updated_at": "2024-01-01T00:00:00"}
        )
        assert [e.field for e in result.errors] == ["updated_at"]


class TestProductVariationItem:
    """Tests for product variation items."""

    def test_selection_hash_ignores_order(self) -> None:
        """Selections compare independently of insertion order."""
        a, b, x, y = (str(uuid4()) for _ in range(4))
        first = ProductVariationItem.create("SHIRT-1", {a: x, b: y})
        second = ProductVariationItem.create("SHIRT-1", {b: y, a: x})
        assert first.has_same_selections(second)
        assert first.variation_id_for(b) == y

    def test_composition_key(self) -> None:
        """Variation compositions use the SKU#id parent key."""
        item = ProductVariationItem.create("KIT-1", {})
        assert item.composition_key() == f"KIT-1#{item.id}"

    def test_effective_measures_fall_back_to_product(self) -> None:
        """Overrides win over product measures."""
        plain = ProductVariationItem.create("SHIRT-1", {})
        heavy = ProductVariationItem.create("SHIRT-1", {}, weight_override=300)
        assert plain.effective_weight(Weight(200)) == Weight(200)
        assert heavy.effective_weight(Weight(200)) == Weight(300)
        assert plain.effective_dimensions(None) is None

    def test_json_round_trip(self) -> None:
        """Serialized variation items rebuild equal."""
        item = ProductVariationItem.create(
            "SHIRT-1",
            {str(uuid4()): str(uuid4())},
            name="Red / L",
            dimensions_override={"height": 1, "width": 2, "depth": 3},
        )
        assert ProductVariationItem.from_json(item.to_json()) == item


# ============================================================================
# Composition Item Tests
# ============================================================================


class TestCompositionItem:
    """Tests for composition items."""

    def test_default_quantity(self) -> None:
        """Quantity defaults to 1."""
        assert CompositionItem.create("KIT-1", "PART-1").quantity == 1

    def test_zero_quantity_rejected(self) -> None:
        """Quantity must be at least 1."""
        with pytest.raises(ValidationError) as exc_info:
            CompositionItem.create("KIT-1", "PART-1", 0)
        assert exc_info.value.errors[0].field == "quantity"

    def test_fractional_quantity_rejected(self) -> None:
        """Quantity must be an integer."""
        errors = CompositionItem.validate({"parent_sku": "KIT-1", "child_sku": "P", "quantity": 1.5})
        assert [e.field for e in errors] == ["quantity"]

    @pytest.mark.parametrize("parent_sku", ["KIT-1", f"KIT-1#{uuid4()}"])
    def test_self_reference_rejected(self, parent_sku: str) -> None:
        """A product cannot contain itself, bare or per variation."""
        with pytest.raises(ValidationError) as exc_info:
            CompositionItem.create(parent_sku, "KIT-1")
        assert "cannot be composed of itself" in exc_info.value.message

    def test_variation_scoped_parent(self) -> None:
        """Variation-scoped keys split into SKU and variation item ID."""
        item_id = str(uuid4())
        item = CompositionItem.create(variation_parent_key("KIT-1", item_id), "PART-1")
        assert item.is_variation_scoped()
        assert item.parent_base_sku() == "KIT-1"
        assert item.parent_variation_id() == item_id

    def test_reparent_keeps_identity(self) -> None:
        """Re-parenting moves the item without changing identity."""
        item = CompositionItem.create("KIT-1", "PART-1", 4)
        moved = item.reparent("KIT-1#abc")
        assert moved.id == item.id
        assert moved.quantity == 4
        assert moved.parent_sku == "KIT-1#abc"

    @pytest.mark.parametrize("parent_sku", ["KIT-1", f"KIT-1#{uuid4()}"])
    def test_json_round_trip(self, parent_sku: str) -> None:
        """Serialized items rebuild equal, bare or variation-scoped."""
        item = CompositionItem.create(parent_sku, "PART-1", 3)
        restored = CompositionItem.from_json(item.to_json())
        assert restored == item
        assert restored.parent_sku == parent_sku

    def test_reparent_to_other_product_rejected(self) -> None:
        """Items only move between keys of the same product."""
        item = CompositionItem.create("KIT-1", "PART-1")
        with pytest.raises(ValidationError):
            item.reparent("KIT-2")


class TestParentKeys:
    """Tests for parent key helpers."""

    def test_split_bare_key(self) -> None:
        """Bare SKUs have no variation part."""
        assert split_parent_key("KIT-1") == ("KIT-1", None)

    def test_split_scoped_key(self) -> None:
        """Scoped keys split on the first separator."""
        assert split_parent_key("KIT-1#abc") == ("KIT-1", "abc")
