"""Unit tests for syntropy/schema.py"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from syntropy.exceptions import SchemaValidationError
from syntropy.schema import (
    BOOL,
    INT,
    LIST,
    LIST_OBJECT,
    OBJECT,
    SET,
    STRING,
    Attribute,
    Schema,
    changed_attributes,
    replace_triggers,
    validate_config,
)


def _not_empty(value):
    return "must not be empty" if not value else None


@pytest.fixture
def schema():
    return Schema(
        description="test",
        attributes={
            "id": Attribute(STRING, computed=True),
            "name": Attribute(STRING, required=True, validators=[_not_empty]),
            "count": Attribute(INT, optional=True),
            "enabled": Attribute(BOOL, optional=True, computed=True),
            "token": Attribute(STRING, optional=True, sensitive=True, requires_replace=True),
            "ids": Attribute(SET, optional=True, elem_type=INT),
            "peers": Attribute(LIST, optional=True, elem_type=INT),
            "filter": Attribute(
                OBJECT, optional=True, attributes={"type": Attribute(STRING, optional=True)}
            ),
            "items": Attribute(
                LIST_OBJECT,
                optional=True,
                attributes={
                    "id": Attribute(INT, required=True),
                    "enabled": Attribute(BOOL, required=True),
                },
            ),
        },
    )


class TestValidateConfig:
    def test_fills_unset_with_none(self, schema):
        config = validate_config(schema, {"name": "a"})
        assert config["name"] == "a"
        assert config["count"] is None
        assert config["id"] is None

    def test_missing_required(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {})
        assert exc.value.context["attribute"] == "name"

    def test_unknown_attribute(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {"name": "a", "bogus": 1})
        assert exc.value.message == "Unsupported attribute"

    def test_computed_cannot_be_set(self, schema):
        with pytest.raises(SchemaValidationError):
            validate_config(schema, {"name": "a", "id": "x"})

    def test_validator(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {"name": ""})
        assert exc.value.message == "must not be empty"

    def test_scalar_coercion(self, schema):
        config = validate_config(schema, {"name": "a", "count": "3", "enabled": "true"})
        assert config["count"] == 3
        assert config["enabled"] is True

    def test_bad_int(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {"name": "a", "count": "three"})
        assert exc.value.message == "Expected an integer"

    def test_set_deduplicates(self, schema):
        config = validate_config(schema, {"name": "a", "ids": [1, "2", 1]})
        assert config["ids"] == [1, 2]

    def test_list_keeps_duplicates(self, schema):
        config = validate_config(schema, {"name": "a", "peers": [1, 1]})
        assert config["peers"] == [1, 1]

    def test_block_unwrapped(self, schema):
        config = validate_config(schema, {"name": "a", "filter": [{"type": "docker"}]})
        assert config["filter"] == {"type": "docker"}

    def test_nested_unknown_attribute_path(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {"name": "a", "filter": {"kind": "docker"}})
        assert exc.value.context["attribute"] == "filter.kind"

    def test_single_object_becomes_list(self, schema):
        config = validate_config(schema, {"name": "a", "items": {"id": "4", "enabled": True}})
        assert config["items"] == [{"id": 4, "enabled": True}]

    def test_list_object_element_must_be_object(self, schema):
        with pytest.raises(SchemaValidationError) as exc:
            validate_config(schema, {"name": "a", "items": [4]})
        assert exc.value.context["attribute"] == "items[0]"


class TestChanges:
    def test_no_change(self, schema):
        config = validate_config(schema, {"name": "a", "ids": [2, 1]})
        assert changed_attributes(schema, config, {"name": "a", "ids": [1, 2]}) == []

    def test_changed(self, schema):
        config = validate_config(schema, {"name": "b", "count": 2})
        assert changed_attributes(schema, config, {"name": "a", "count": 2}) == ["name"]

    def test_unset_optional_computed_keeps_state(self, schema):
        config = validate_config(schema, {"name": "a"})
        assert changed_attributes(schema, config, {"name": "a", "enabled": True}) == []

    def test_unset_list_matches_empty(self, schema):
        config = validate_config(schema, {"name": "a"})
        assert changed_attributes(schema, config, {"name": "a", "ids": []}) == []

    def test_replace_triggers(self, schema):
        config = validate_config(schema, {"name": "b", "token": "new"})
        state = {"name": "a", "token": "old"}
        assert replace_triggers(schema, config, state) == ["token"]


def test_schema_to_dict(schema):
    doc = schema.to_dict()
    assert doc["attributes"]["name"]["required"] is True
    assert doc["attributes"]["items"]["attributes"]["id"]["type"] == INT
    assert "required" not in doc["attributes"]["count"]
