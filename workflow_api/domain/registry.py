"""
Node type registry.

Static catalog of every node type: category, default configuration,
declared outputs and connection handles. Built once per process and
never mutated afterwards.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from workflow_api.domain.errors import UnknownNodeTypeError
from workflow_api.domain.node_types import NodeType, check_shape

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_HANDLE = "output"
DEFAULT_TARGET_HANDLE = "input"


class NodeCategory(str, Enum):
    TRIGGER = "trigger"
    BROWSER = "browser"
    LOGIC = "logic"
    DATA = "data"
    INTEGRATION = "integration"
    AI = "ai"


class FieldKind(str, Enum):
    """Coarse semantic type of a node output field."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class NodeDefinition:
    """Registry metadata for one node type."""
    type: NodeType
    category: NodeCategory
    label: str
    description: str
    default_config: Mapping[str, Any]
    output_schema: Mapping[str, FieldKind]
    icon: str = "circle"
    color: str = "#6b7280"
    source_handles: Tuple[str, ...] = (DEFAULT_SOURCE_HANDLE,)
    target_handles: Tuple[str, ...] = (DEFAULT_TARGET_HANDLE,)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "category": self.category.value,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "defaultConfig": copy.deepcopy(dict(self.default_config)),
            "outputSchema": {name: kind.value for name, kind in self.output_schema.items()},
            "sourceHandles": list(self.source_handles),
            "targetHandles": list(self.target_handles),
        }


S, N, B, O, A = FieldKind.STRING, FieldKind.NUMBER, FieldKind.BOOLEAN, FieldKind.OBJECT, FieldKind.ARRAY

BUILTIN_DEFINITIONS: Tuple[NodeDefinition, ...] = (
    NodeDefinition(
        type=NodeType.TRIGGER, category=NodeCategory.TRIGGER,
        label="Trigger", description="Starts the workflow manually, on a schedule or from a webhook",
        default_config={"label": "Start", "type": "manual"},
        output_schema={"timestamp": S, "executionId": S},
        icon="play", color="#10b981", target_handles=(),
    ),
    NodeDefinition(
        type=NodeType.NAVIGATE, category=NodeCategory.BROWSER,
        label="Navigate", description="Open a URL in the browser",
        default_config={"label": "Navigate", "url": "", "waitForNavigation": True, "timeout": 30000},
        output_schema={"url": S, "title": S},
        icon="globe", color="#3b82f6",
    ),
    NodeDefinition(
        type=NodeType.CLICK, category=NodeCategory.BROWSER,
        label="Click", description="Click an element on the page",
        default_config={"label": "Click", "selector": "", "clickType": "left", "waitAfterClick": 0},
        output_schema={"success": B},
        icon="mouse-pointer", color="#3b82f6",
    ),
    NodeDefinition(
        type=NodeType.FILL_FORM, category=NodeCategory.BROWSER,
        label="Fill Form", description="Type values into form inputs",
        default_config={"label": "Fill Form", "fields": []},
        output_schema={"success": B},
        icon="edit", color="#3b82f6",
    ),
    NodeDefinition(
        type=NodeType.EXTRACT, category=NodeCategory.BROWSER,
        label="Extract Data", description="Extract text or attributes from page elements",
        default_config={"label": "Extract Data", "extractions": []},
        output_schema={"data": O},
        icon="download", color="#8b5cf6",
    ),
    NodeDefinition(
        type=NodeType.SCREENSHOT, category=NodeCategory.BROWSER,
        label="Screenshot", description="Capture the page or a single element",
        default_config={"label": "Screenshot", "fullPage": False},
        output_schema={"image": S, "path": S},
        icon="camera", color="#3b82f6",
    ),
    NodeDefinition(
        type=NodeType.SCROLL, category=NodeCategory.BROWSER,
        label="Scroll", description="Scroll the page or an element",
        default_config={"label": "Scroll", "direction": "down", "amount": 500},
        output_schema={"success": B},
        icon="arrow-down", color="#3b82f6",
    ),
    NodeDefinition(
        type=NodeType.WAIT, category=NodeCategory.LOGIC,
        label="Wait", description="Pause execution for a fixed duration",
        default_config={"label": "Wait", "duration": 1000, "unit": "ms"},
        output_schema={"duration": N},
        icon="clock", color="#f59e0b",
    ),
    NodeDefinition(
        type=NodeType.CONDITION, category=NodeCategory.LOGIC,
        label="Condition", description="Branch on one or more conditions",
        default_config={"label": "Condition", "conditions": [], "logic": "AND"},
        output_schema={"result": B},
        icon="git-branch", color="#f59e0b", source_handles=("true", "false"),
    ),
    NodeDefinition(
        type=NodeType.LOOP, category=NodeCategory.LOGIC,
        label="Loop", description="Run the connected branch once per item",
        default_config={"label": "Loop", "items": "", "maxIterations": 100},
        output_schema={"item": O, "index": N, "items": A},
        icon="repeat", color="#f59e0b", source_handles=("loop", "done"),
    ),
    NodeDefinition(
        type=NodeType.SWITCH, category=NodeCategory.LOGIC,
        label="Switch", description="Route to one of several outputs by value",
        default_config={"label": "Switch", "inputField": "", "cases": []},
        output_schema={"value": S, "matchedCase": N},
        icon="shuffle", color="#f59e0b", source_handles=("default",),
    ),
    NodeDefinition(
        type=NodeType.MERGE, category=NodeCategory.LOGIC,
        label="Merge", description="Combine the outputs of several branches",
        default_config={"label": "Merge", "mode": "append"},
        output_schema={"data": A},
        icon="git-merge", color="#f59e0b",
    ),
    NodeDefinition(
        type=NodeType.FILTER, category=NodeCategory.DATA,
        label="Filter", description="Keep the items matching the conditions",
        default_config={"label": "Filter", "items": "", "conditions": [], "logic": "AND"},
        output_schema={"items": A, "count": N},
        icon="filter", color="#ec4899",
    ),
    NodeDefinition(
        type=NodeType.TRANSFORM, category=NodeCategory.DATA,
        label="Transform", description="Compute new values from upstream data",
        default_config={"label": "Transform", "transformations": []},
        output_schema={"data": O},
        icon="wand", color="#ec4899",
    ),
    NodeDefinition(
        type=NodeType.SET_VARIABLE, category=NodeCategory.DATA,
        label="Set Variable", description="Store values for later nodes",
        default_config={"label": "Set Variable", "variables": []},
        output_schema={},
        icon="variable", color="#ec4899",
    ),
    NodeDefinition(
        type=NodeType.HTTP_REQUEST, category=NodeCategory.INTEGRATION,
        label="HTTP Request", description="Call an external HTTP API",
        default_config={
            "label": "HTTP Request", "method": "GET", "url": "", "headers": {},
            "auth": {"type": "none"}, "timeout": 30000, "retries": 0,
        },
        output_schema={"status": N, "data": O, "headers": O},
        icon="send", color="#06b6d4",
    ),
    NodeDefinition(
        type=NodeType.WEBHOOK, category=NodeCategory.TRIGGER,
        label="Webhook", description="Start the workflow from an incoming HTTP call",
        default_config={"label": "Webhook", "path": "", "method": "POST", "responseMode": "immediately"},
        output_schema={"body": O, "headers": O, "query": O},
        icon="webhook", color="#10b981", target_handles=(),
    ),
    NodeDefinition(
        type=NodeType.SCRIPT, category=NodeCategory.DATA,
        label="Script", description="Run a JavaScript snippet in the page",
        default_config={"label": "Script", "code": "", "timeout": 5000},
        output_schema={"result": O},
        icon="code", color="#ec4899",
    ),
    NodeDefinition(
        type=NodeType.AI_AGENT, category=NodeCategory.AI,
        label="AI Agent", description="Let an AI agent perform a task in the browser",
        default_config={
            "label": "AI Agent", "prompt": "", "model": "gpt-4o-mini",
            "maxSteps": 10, "outputFormat": "text",
        },
        output_schema={"result": S, "steps": A},
        icon="bot", color="#a855f7",
    ),
)

del S, N, B, O, A


class NodeTypeRegistry:
    """
    Read-only catalog of node definitions.

    Construction checks that every NodeType has exactly one definition and
    that every default configuration satisfies its own shape, so a node
    fresh from the registry is always valid.
    """

    def __init__(self, definitions: Iterable[NodeDefinition] = BUILTIN_DEFINITIONS):
        self._definitions: Dict[NodeType, NodeDefinition] = {}
        for definition in definitions:
            if definition.type in self._definitions:
                raise ValueError(f"Node type {definition.type.value} registered twice")
            violations = check_shape(definition.type, dict(definition.default_config))
            if violations:
                raise ValueError(
                    f"Default config for {definition.type.value} is invalid: "
                    + "; ".join(v.message for v in violations)
                )
            self._definitions[definition.type] = definition

        missing = [t.value for t in NodeType if t not in self._definitions]
        if missing:
            raise ValueError(f"No definition registered for node types: {', '.join(missing)}")

    @staticmethod
    def _coerce(node_type: Any) -> NodeType:
        try:
            return NodeType(node_type)
        except ValueError:
            raise UnknownNodeTypeError(node_type) from None

    def lookup(self, node_type: Any) -> NodeDefinition:
        """
        Get the definition for a node type.

        Raises:
            UnknownNodeTypeError: If the type is not registered
        """
        coerced = self._coerce(node_type)
        definition = self._definitions.get(coerced)
        if definition is None:
            raise UnknownNodeTypeError(node_type)
        return definition

    def is_registered(self, node_type: Any) -> bool:
        try:
            self.lookup(node_type)
        except UnknownNodeTypeError:
            return False
        return True

    def list_all(self) -> List[NodeDefinition]:
        return list(self._definitions.values())

    def list_by_category(self, category: NodeCategory) -> List[NodeDefinition]:
        """Definitions in a category, in registration order."""
        category = NodeCategory(category)
        return [d for d in self._definitions.values() if d.category == category]

    def search(self, query: str) -> List[NodeDefinition]:
        """Case-insensitive match on type, label and description."""
        needle = query.strip().lower()
        if not needle:
            return self.list_all()
        return [
            d for d in self._definitions.values()
            if needle in d.type.value.lower()
            or needle in d.label.lower()
            or needle in d.description.lower()
        ]

    def instantiate_default(self, node_type: Any) -> Dict[str, Any]:
        """Fresh deep copy of the default configuration for a node type."""
        return copy.deepcopy(dict(self.lookup(node_type).default_config))

    def is_trigger(self, node_type: Any) -> bool:
        return self.lookup(node_type).category == NodeCategory.TRIGGER

    def output_fields(self, node_type: Any, data: Optional[Dict[str, Any]] = None) -> Dict[str, FieldKind]:
        """
        Output fields a node exposes to downstream expressions.

        The declared schema is extended with fields that depend on the
        node's configuration: extraction names, assigned variable keys and
        the HTTP response variable.
        """
        definition = self.lookup(node_type)
        fields = dict(definition.output_schema)
        data = data if isinstance(data, dict) else {}

        if definition.type == NodeType.EXTRACT:
            for rule in _dicts(data.get("extractions")):
                name = rule.get("name")
                if isinstance(name, str) and name:
                    fields[name] = FieldKind.ARRAY if rule.get("multiple") is True else FieldKind.STRING
        elif definition.type == NodeType.SET_VARIABLE:
            for assignment in _dicts(data.get("variables")):
                key = assignment.get("key")
                if isinstance(key, str) and key:
                    try:
                        fields[key] = FieldKind(assignment.get("variableType", "string"))
                    except ValueError:
                        fields[key] = FieldKind.STRING
        elif definition.type == NodeType.HTTP_REQUEST:
            response_variable = data.get("responseVariable")
            if isinstance(response_variable, str) and response_variable:
                fields[response_variable] = FieldKind.OBJECT
        elif definition.type == NodeType.TRANSFORM:
            for transformation in _dicts(data.get("transformations")):
                name = transformation.get("name")
                if isinstance(name, str) and name:
                    fields[name] = FieldKind.OBJECT
        return fields

    def source_handles(self, node_type: Any, data: Optional[Dict[str, Any]] = None) -> Tuple[str, ...]:
        """Outgoing handle ids; switch nodes get one per configured case."""
        definition = self.lookup(node_type)
        if definition.type != NodeType.SWITCH:
            return definition.source_handles
        data = data if isinstance(data, dict) else {}
        case_handles = []
        for case in _dicts(data.get("cases")):
            index = case.get("outputIndex")
            if isinstance(index, int) and not isinstance(index, bool):
                handle = f"case-{index}"
                if handle not in case_handles:
                    case_handles.append(handle)
        return tuple(case_handles) + definition.source_handles

    def target_handles(self, node_type: Any) -> Tuple[str, ...]:
        return self.lookup(node_type).target_handles

    def resolve_handles(
        self,
        source_type: Any,
        source_data: Optional[Dict[str, Any]],
        target_type: Any,
        source_handle: Optional[str],
        target_handle: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        """Fill in the default handles an edge without explicit handles connects through.

        A missing source handle means ``output`` when the source exposes it;
        a missing target handle means the target's first input handle.
        """
        if source_handle is None and DEFAULT_SOURCE_HANDLE in self.source_handles(source_type, source_data):
            source_handle = DEFAULT_SOURCE_HANDLE
        targets = self.target_handles(target_type)
        if target_handle is None and targets:
            target_handle = targets[0]
        return source_handle, target_handle


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@lru_cache(maxsize=1)
def get_node_registry() -> NodeTypeRegistry:
    """Process-wide registry, built on first use."""
    registry = NodeTypeRegistry()
    logger.info(f"Node registry loaded with {len(registry.list_all())} node types")
    return registry
