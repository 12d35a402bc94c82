"""
Workflow graph aggregate.

The graph owns its nodes, edges and variables. The pydantic models
double as the JSON wire format; mutation methods on WorkflowGraph keep
the structural invariants (unique ids, existing endpoints, no self-loops,
one edge per handle pair) while a graph parsed from the wire may violate
them and is left for the validator to report.
"""
from __future__ import annotations

import copy
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from workflow_api.domain.errors import (
    ConflictError,
    NotFoundError,
    UnknownNodeTypeError,
    ValidationError,
)
from workflow_api.domain.node_types import NodeType
from workflow_api.domain.registry import NodeTypeRegistry, get_node_registry


def generate_node_id() -> str:
    return f"node_{uuid4()}"


def generate_edge_id() -> str:
    return f"edge_{uuid4()}"


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``overrides`` into a copy of ``base``.

    Nested objects are merged key by key; any other value, lists included,
    replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class Position(BaseModel):
    """Canvas coordinates. Presentation only."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: Any) -> Any:
        try:
            return NodeType(value)
        except ValueError:
            raise UnknownNodeTypeError(value) from None

    @classmethod
    def create(
        cls,
        node_type: NodeType,
        position: Optional[Position] = None,
        data: Optional[Dict[str, Any]] = None,
        registry: Optional[NodeTypeRegistry] = None,
    ) -> Node:
        """Build a node with a fresh id.

        ``data`` is merged over the registry default for the type, so a
        partial configuration keeps every default it does not override.
        """
        registry = registry or get_node_registry()
        definition = registry.lookup(node_type)
        defaults = registry.instantiate_default(definition.type)
        return cls(
            id=generate_node_id(),
            type=definition.type,
            position=position or Position(),
            data=merge_config(defaults, data) if data is not None else defaults,
        )

    @property
    def alias(self) -> Optional[str]:
        alias = self.data.get("alias")
        return alias if isinstance(alias, str) and alias else None


class Edge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")

    @classmethod
    def create(
        cls,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> Edge:
        return cls(
            id=generate_edge_id(),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )


class WorkflowGraph(BaseModel):
    """Nodes, edges, workflow variables and the optimistic-concurrency version."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    version: int = Field(0, ge=0)

    # Serialization

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]) -> WorkflowGraph:
        return cls.model_validate(payload)

    @classmethod
    def from_json(cls, raw: str | bytes) -> WorkflowGraph:
        return cls.model_validate_json(raw)

    # Queries

    def find_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_node(self, node_id: str) -> Node:
        node = self.find_node(node_id)
        if node is None:
            raise NotFoundError(f"Node {node_id} not found")
        return node

    def find_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.nodes}

    def incoming(self, node_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def outgoing(self, node_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def upstream_of(self, node_id: str) -> Set[str]:
        """Ids of every node with a directed path into ``node_id``."""
        seen: Set[str] = set()
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for edge in self.incoming(current):
                if edge.source not in seen:
                    seen.add(edge.source)
                    queue.append(edge.source)
        seen.discard(node_id)
        return seen

    def reachable_from(self, start_ids: Iterable[str], skip_handles: Iterable[str] = ()) -> Set[str]:
        """Ids reachable from any start node, following edges forward.

        Edges leaving a start node through one of ``skip_handles`` are not
        followed.
        """
        skipped = set(skip_handles)
        starts = set(start_ids)
        seen: Set[str] = set()
        queue = deque(starts)
        while queue:
            current = queue.popleft()
            for edge in self.outgoing(current):
                if current in starts and edge.source_handle in skipped:
                    continue
                if edge.target not in seen:
                    seen.add(edge.target)
                    queue.append(edge.target)
        return seen

    # Mutations

    def add_node(self, node: Node) -> Node:
        if self.find_node(node.id) is not None:
            raise ConflictError(f"Node {node.id} already exists")
        self.nodes.append(node)
        return node

    def remove_node(self, node_id: str) -> List[Edge]:
        """Remove a node and every edge touching it. Returns the removed edges."""
        node = self.get_node(node_id)
        removed = [e for e in self.edges if e.source == node_id or e.target == node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        self.nodes = [n for n in self.nodes if n is not node]
        return removed

    def update_node(
        self,
        node_id: str,
        data: Optional[Dict[str, Any]] = None,
        position: Optional[Position] = None,
    ) -> Node:
        """Replace a node's data and/or position. The type never changes."""
        node = self.get_node(node_id)
        if data is not None:
            node.data = copy.deepcopy(data)
        if position is not None:
            node.position = position
        return node

    def clone_node(self, node_id: str, offset: float = 50) -> Node:
        source = self.get_node(node_id)
        data = copy.deepcopy(source.data)
        data.pop("alias", None)
        if isinstance(data.get("label"), str):
            data["label"] = f"{data['label']} (copy)"
        clone = Node(
            id=generate_node_id(),
            type=source.type,
            position=Position(x=source.position.x + offset, y=source.position.y + offset),
            data=data,
        )
        return self.add_node(clone)

    def add_edge(self, edge: Edge, registry: Optional[NodeTypeRegistry] = None) -> Edge:
        """Connect two existing nodes.

        Handles left as ``None`` count as the nodes' default handles, so an
        edge without handles and one naming ``output``/``input`` explicitly
        are the same connection.
        """
        if self.find_edge(edge.id) is not None:
            raise ConflictError(f"Edge {edge.id} already exists")
        if edge.source == edge.target:
            raise ValidationError("An edge cannot connect a node to itself")
        for endpoint in (edge.source, edge.target):
            if self.find_node(endpoint) is None:
                raise ValidationError(f"Edge endpoint {endpoint} does not exist")
        registry = registry or get_node_registry()
        source, target = self.get_node(edge.source), self.get_node(edge.target)

        def handles(candidate: Edge) -> tuple:
            return registry.resolve_handles(source.type, source.data, target.type,
                                            candidate.source_handle, candidate.target_handle)

        wanted = handles(edge)
        for existing in self.edges:
            if existing.source != edge.source or existing.target != edge.target:
                continue
            if handles(existing) == wanted:
                raise ConflictError(
                    f"Nodes {edge.source} and {edge.target} are already connected through these handles"
                )
        self.edges.append(edge)
        return edge

    def remove_edge(self, edge_id: str) -> Edge:
        edge = self.find_edge(edge_id)
        if edge is None:
            raise NotFoundError(f"Edge {edge_id} not found")
        self.edges = [e for e in self.edges if e.id != edge_id]
        return edge

    def set_variable(self, key: str, value: Any) -> None:
        if not key:
            raise ValidationError("Variable name cannot be empty")
        self.variables[key] = value

    def remove_variable(self, key: str) -> Any:
        if key not in self.variables:
            raise NotFoundError(f"Variable {key} not found")
        return self.variables.pop(key)

    def bump_version(self) -> int:
        self.version += 1
        return self.version

    def replace_with(self, other: WorkflowGraph) -> None:
        """Replace the whole graph, version included, e.g. after a reload."""
        self.nodes = copy.deepcopy(other.nodes)
        self.edges = copy.deepcopy(other.edges)
        self.variables = copy.deepcopy(other.variables)
        self.version = other.version
