"""Tests for the node type registry."""
from __future__ import annotations

import pytest

from workflow_api.domain.errors import UnknownNodeTypeError
from workflow_api.domain.node_types import NodeType, check_shape
from workflow_api.domain.registry import (
    BUILTIN_DEFINITIONS,
    FieldKind,
    NodeCategory,
    NodeDefinition,
    NodeTypeRegistry,
    get_node_registry,
)


class TestLookup:
    """Test registry lookups."""

    def test_lookup_by_tag_and_enum(self, registry):
        """Test lookup accepts both the enum and its string tag."""
        assert registry.lookup("navigate") is registry.lookup(NodeType.NAVIGATE)
        assert registry.lookup("navigate").category == NodeCategory.BROWSER

    def test_lookup_unknown_type_raises(self, registry):
        """Test lookup never falls back for unknown types."""
        with pytest.raises(UnknownNodeTypeError, match="teleport"):
            registry.lookup("teleport")

    def test_is_registered(self, registry):
        """Test is_registered for known and unknown types."""
        assert registry.is_registered("httpRequest")
        assert not registry.is_registered("teleport")
        assert not registry.is_registered(None)

    def test_every_node_type_is_registered(self, registry):
        """Test the catalog covers the whole closed type set."""
        assert {d.type for d in registry.list_all()} == set(NodeType)

    def test_singleton(self):
        """Test the process-wide registry is built once."""
        assert get_node_registry() is get_node_registry()


class TestCategories:
    """Test category listing and search."""

    def test_list_by_category_keeps_registration_order(self, registry):
        """Test listing follows registration order."""
        expected = [d.type for d in BUILTIN_DEFINITIONS if d.category == NodeCategory.LOGIC]
        assert [d.type for d in registry.list_by_category(NodeCategory.LOGIC)] == expected
        assert expected[0] == NodeType.WAIT

    def test_list_by_category_accepts_string(self, registry):
        """Test categories can be given by value."""
        triggers = registry.list_by_category("trigger")
        assert [d.type for d in triggers] == [NodeType.TRIGGER, NodeType.WEBHOOK]

    def test_search(self, registry):
        """Test case-insensitive search over label and description."""
        found = [d.type for d in registry.search("HTTP")]
        assert NodeType.HTTP_REQUEST in found
        assert NodeType.WEBHOOK in found
        assert NodeType.CLICK not in found

    def test_search_empty_query_returns_all(self, registry):
        """Test an empty query lists every type."""
        assert len(registry.search("  ")) == len(NodeType)


class TestDefaults:
    """Test default configuration instantiation."""

    @pytest.mark.parametrize("node_type", list(NodeType))
    def test_default_passes_shape_check(self, registry, node_type):
        """Test a node fresh from the registry is always valid."""
        assert check_shape(node_type, registry.instantiate_default(node_type)) == []

    def test_default_is_a_deep_copy(self, registry):
        """Test callers cannot mutate the stored default."""
        first = registry.instantiate_default("httpRequest")
        first["headers"]["X-Test"] = "1"
        first["auth"]["type"] = "bearer"

        second = registry.instantiate_default("httpRequest")
        assert second["headers"] == {}
        assert second["auth"] == {"type": "none"}

    def test_instantiate_unknown_type(self, registry):
        """Test unknown types are rejected."""
        with pytest.raises(UnknownNodeTypeError):
            registry.instantiate_default("teleport")


class TestOutputsAndHandles:
    """Test declared outputs and connection handles."""

    def test_navigate_declares_url_and_title(self, registry):
        """Test navigate output schema."""
        assert registry.output_fields("navigate") == {"url": FieldKind.STRING, "title": FieldKind.STRING}

    def test_extract_outputs_include_extraction_names(self, registry):
        """Test extraction names become output fields."""
        data = {"extractions": [
            {"name": "price", "selector": ".price"},
            {"name": "links", "selector": "a", "attribute": "href", "multiple": True},
        ]}
        fields = registry.output_fields("extract", data)
        assert fields["data"] == FieldKind.OBJECT
        assert fields["price"] == FieldKind.STRING
        assert fields["links"] == FieldKind.ARRAY

    def test_set_variable_outputs_follow_variable_types(self, registry):
        """Test assigned variable keys become output fields."""
        data = {"variables": [{"key": "count", "value": "3", "variableType": "number"}]}
        assert registry.output_fields("setVariable", data) == {"count": FieldKind.NUMBER}

    def test_http_response_variable(self, registry):
        """Test the HTTP response variable is exposed."""
        fields = registry.output_fields("httpRequest", {"responseVariable": "user"})
        assert fields["user"] == FieldKind.OBJECT
        assert fields["status"] == FieldKind.NUMBER

    def test_branching_handles(self, registry):
        """Test multi-output nodes expose their named handles."""
        assert registry.source_handles("condition") == ("true", "false")
        assert registry.source_handles("loop") == ("loop", "done")
        assert registry.source_handles("navigate") == ("output",)

    def test_switch_handles_follow_cases(self, registry):
        """Test switch gets one handle per case plus the default."""
        data = {"inputField": "{{$vars.kind}}", "cases": [
            {"value": "a", "outputIndex": 0},
            {"value": "b", "outputIndex": 1},
            {"value": "c", "outputIndex": 1},
        ]}
        assert registry.source_handles("switch", data) == ("case-0", "case-1", "default")

    def test_trigger_nodes_have_no_input(self, registry):
        """Test trigger-category nodes cannot be connected into."""
        assert registry.target_handles("trigger") == ()
        assert registry.target_handles("webhook") == ()
        assert registry.target_handles("click") == ("input",)


class TestRegistryConstruction:
    """Test load-time checks."""

    def test_missing_definition_fails_fast(self):
        """Test a registry without every type refuses to load."""
        with pytest.raises(ValueError, match="No definition registered"):
            NodeTypeRegistry(BUILTIN_DEFINITIONS[:-1])

    def test_duplicate_definition_fails_fast(self):
        """Test a type cannot be registered twice."""
        with pytest.raises(ValueError, match="registered twice"):
            NodeTypeRegistry(BUILTIN_DEFINITIONS + BUILTIN_DEFINITIONS[:1])

    def test_invalid_default_fails_fast(self):
        """Test a default that violates its own shape is refused."""
        broken = NodeDefinition(
            type=NodeType.NAVIGATE,
            category=NodeCategory.BROWSER,
            label="Navigate",
            description="",
            default_config={"url": 42},
            output_schema={},
        )
        definitions = tuple(broken if d.type == NodeType.NAVIGATE else d for d in BUILTIN_DEFINITIONS)
        with pytest.raises(ValueError, match="Default config for navigate"):
            NodeTypeRegistry(definitions)

    def test_to_dict_is_json_ready(self, registry):
        """Test the catalog entry serializes enums to plain values."""
        entry = registry.lookup("condition").to_dict()
        assert entry["type"] == "condition"
        assert entry["category"] == "logic"
        assert entry["outputSchema"] == {"result": "boolean"}
        assert entry["sourceHandles"] == ["true", "false"]
