"""
Graph validation.

``GraphValidator.validate`` is a pure function of the graph and the
registry. Problems are collected as ValidationIssue objects, never
raised, and always come back in the same order:

1. structure (ids, edge endpoints, handles)
2. node configuration shape
3. expression syntax
4. expression semantics
5. reachability, disabled nodes, cycles and depth

Only error-severity issues block a save.
"""
from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from workflow_api.domain.expressions import ExpressionScope, extract_references
from workflow_api.domain.graph import Edge, Node, WorkflowGraph
from workflow_api.domain.node_types import (
    NodeType,
    ViolationKind,
    check_shape,
    empty_required_values,
    iter_string_fields,
)
from workflow_api.domain.registry import (
    NodeTypeRegistry,
    get_node_registry,
)

logger = logging.getLogger(__name__)

MAX_WORKFLOW_DEPTH = 50


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    # Structure
    DUPLICATE_NODE_ID = "duplicate_node_id"
    DUPLICATE_EDGE_ID = "duplicate_edge_id"
    DANGLING_EDGE = "dangling_edge"
    SELF_LOOP = "self_loop"
    DUPLICATE_CONNECTION = "duplicate_connection"
    UNKNOWN_HANDLE = "unknown_handle"
    TRIGGER_INPUT = "trigger_input"
    # Shape
    MISSING_FIELD = "missing_field"
    UNKNOWN_FIELD = "unknown_field"
    WRONG_KIND = "wrong_kind"
    INVALID_VALUE = "invalid_value"
    INCOMPLETE_CONFIG = "incomplete_config"
    # Expressions
    INVALID_EXPRESSION = "invalid_expression"
    UNKNOWN_REFERENCE = "unknown_reference"
    NOT_UPSTREAM = "not_upstream"
    UNKNOWN_OUTPUT_FIELD = "unknown_output_field"
    UNKNOWN_VARIABLE = "unknown_variable"
    ITEM_OUTSIDE_LOOP = "item_outside_loop"
    # Reachability
    UNREACHABLE_NODE = "unreachable_node"
    CYCLE = "cycle"
    NODE_DISABLED = "node_disabled"
    WORKFLOW_TOO_DEEP = "workflow_too_deep"


_SHAPE_CODES = {
    ViolationKind.MISSING_FIELD: IssueCode.MISSING_FIELD,
    ViolationKind.UNKNOWN_FIELD: IssueCode.UNKNOWN_FIELD,
    ViolationKind.WRONG_KIND: IssueCode.WRONG_KIND,
    ViolationKind.INVALID_VALUE: IssueCode.INVALID_VALUE,
}


class ValidationIssue(BaseModel):
    """A single validator finding."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    severity: Severity
    code: IssueCode
    message: str
    node_id: Optional[str] = Field(None, alias="nodeId")
    edge_id: Optional[str] = Field(None, alias="edgeId")
    field: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


def has_errors(issues: Iterable[ValidationIssue]) -> bool:
    return any(issue.is_error for issue in issues)


def split_issues(issues: Iterable[ValidationIssue]) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
    """Split issues into (errors, warnings), keeping order."""
    errors, warnings = [], []
    for issue in issues:
        (errors if issue.is_error else warnings).append(issue)
    return errors, warnings


def _error(code: IssueCode, message: str, **where) -> ValidationIssue:
    return ValidationIssue(severity=Severity.ERROR, code=code, message=message, **where)


def _warning(code: IssueCode, message: str, **where) -> ValidationIssue:
    return ValidationIssue(severity=Severity.WARNING, code=code, message=message, **where)


class GraphValidator:
    """Structural and semantic checks run before every save."""

    def __init__(self, registry: Optional[NodeTypeRegistry] = None):
        self.registry = registry or get_node_registry()

    def validate(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        """
        Validate a workflow graph.

        Args:
            graph: Graph to check. It is not modified.

        Returns:
            Ordered list of issues; empty when the graph is clean
        """
        nodes_by_id = self._index_nodes(graph.nodes)
        issues: List[ValidationIssue] = []
        issues.extend(self._check_structure(graph, nodes_by_id))
        issues.extend(self._check_shapes(graph))
        issues.extend(self._check_expression_syntax(graph))
        issues.extend(self._check_expression_semantics(graph))
        issues.extend(self._check_reachability(graph, nodes_by_id))

        logger.debug(f"Validated graph with {len(graph.nodes)} nodes: {len(issues)} issue(s)")
        return issues

    @staticmethod
    def _index_nodes(nodes: List[Node]) -> Dict[str, Node]:
        indexed: Dict[str, Node] = {}
        for node in nodes:
            indexed.setdefault(node.id, node)
        return indexed

    @staticmethod
    def _valid_edges(graph: WorkflowGraph, nodes_by_id: Dict[str, Node]) -> List[Edge]:
        return [
            edge for edge in graph.edges
            if edge.source in nodes_by_id and edge.target in nodes_by_id and edge.source != edge.target
        ]

    # Phase 1

    def _check_structure(self, graph: WorkflowGraph, nodes_by_id: Dict[str, Node]) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        seen_nodes: Set[str] = set()
        for node in graph.nodes:
            if node.id in seen_nodes:
                issues.append(_error(IssueCode.DUPLICATE_NODE_ID,
                                     f"Duplicate node id {node.id}", node_id=node.id))
            seen_nodes.add(node.id)

        seen_edges: Set[str] = set()
        seen_connections: Set[tuple] = set()
        for edge in graph.edges:
            if edge.id in seen_edges:
                issues.append(_error(IssueCode.DUPLICATE_EDGE_ID,
                                     f"Duplicate edge id {edge.id}", edge_id=edge.id))
            seen_edges.add(edge.id)

            source = nodes_by_id.get(edge.source)
            target = nodes_by_id.get(edge.target)
            if source is None:
                issues.append(_error(IssueCode.DANGLING_EDGE,
                                     f"Edge source {edge.source} does not exist", edge_id=edge.id))
            if target is None:
                issues.append(_error(IssueCode.DANGLING_EDGE,
                                     f"Edge target {edge.target} does not exist", edge_id=edge.id))
            if source is None or target is None:
                continue

            if edge.source == edge.target:
                issues.append(_error(IssueCode.SELF_LOOP, "A node cannot connect to itself",
                                     edge_id=edge.id, node_id=edge.source))
                continue

            source_handle, target_handle = self.registry.resolve_handles(
                source.type, source.data, target.type, edge.source_handle, edge.target_handle)

            source_handles = self.registry.source_handles(source.type, source.data)
            if source_handle not in source_handles:
                issues.append(_error(
                    IssueCode.UNKNOWN_HANDLE,
                    f"Source handle {edge.source_handle!r} is not one of {', '.join(source_handles)}",
                    edge_id=edge.id, node_id=source.id,
                ))

            target_handles = self.registry.target_handles(target.type)
            if not target_handles:
                issues.append(_error(
                    IssueCode.TRIGGER_INPUT,
                    f"{self.registry.lookup(target.type).label} nodes cannot have incoming connections",
                    edge_id=edge.id, node_id=target.id,
                ))
            elif target_handle not in target_handles:
                issues.append(_error(
                    IssueCode.UNKNOWN_HANDLE,
                    f"Target handle {edge.target_handle!r} is not one of {', '.join(target_handles)}",
                    edge_id=edge.id, node_id=target.id,
                ))

            connection = (edge.source, edge.target, source_handle, target_handle)
            if connection in seen_connections:
                issues.append(_error(
                    IssueCode.DUPLICATE_CONNECTION,
                    f"Nodes {edge.source} and {edge.target} are already connected through these handles",
                    edge_id=edge.id,
                ))
            seen_connections.add(connection)

        return issues

    # Phase 2

    def _check_shapes(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for node in graph.nodes:
            violations = check_shape(node.type, node.data)
            for violation in violations:
                issues.append(_error(_SHAPE_CODES[violation.kind], violation.message,
                                     node_id=node.id, field=violation.field))
            if violations:
                continue
            for name in empty_required_values(node.type, node.data):
                issues.append(_warning(IssueCode.INCOMPLETE_CONFIG,
                                       f"Field '{name}' is empty", node_id=node.id, field=name))
        return issues

    # Phase 3

    def _check_expression_syntax(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for node in graph.nodes:
            for path, value in iter_string_fields(node.data):
                for ref in extract_references(value):
                    if not ref.is_valid:
                        issues.append(_error(IssueCode.INVALID_EXPRESSION,
                                             f"{ref.error}: {ref.raw}", node_id=node.id, field=path))
        return issues

    # Phase 4

    def _aliases(self, graph: WorkflowGraph) -> Dict[str, Node]:
        """Map every name a node can be referenced by (id, alias, ``<type><n>``) to the node."""
        by_name: Dict[str, Node] = {}
        counters: Dict[NodeType, int] = {}
        automatic: List[Tuple[str, Node]] = []
        for node in graph.nodes:
            by_name.setdefault(node.id, node)
            if node.alias:
                by_name.setdefault(node.alias, node)
            counters[node.type] = counters.get(node.type, 0) + 1
            automatic.append((f"{node.type.value}{counters[node.type]}", node))
        for name, node in automatic:
            by_name.setdefault(name, node)
        return by_name

    def _loop_scope(self, graph: WorkflowGraph) -> Set[str]:
        """Nodes inside the body of at least one loop (the ``done`` branch is outside)."""
        scope: Set[str] = set()
        for node in graph.nodes:
            if node.type == NodeType.LOOP:
                scope |= graph.reachable_from([node.id], skip_handles=("done",))
        return scope

    def _known_variables(self, graph: WorkflowGraph) -> Set[str]:
        names = set(graph.variables)
        for node in graph.nodes:
            if node.type == NodeType.SET_VARIABLE:
                names |= set(self.registry.output_fields(node.type, node.data))
        return names

    def _check_expression_semantics(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        aliases = self._aliases(graph)
        loop_scope = self._loop_scope(graph)
        variables = self._known_variables(graph)
        upstream_cache: Dict[str, Set[str]] = {}

        for node in graph.nodes:
            for path, value in iter_string_fields(node.data):
                for ref in extract_references(value):
                    if not ref.is_valid:
                        continue
                    where = {"node_id": node.id, "field": path}

                    if ref.scope == ExpressionScope.ITEM:
                        if node.id not in loop_scope:
                            issues.append(_warning(
                                IssueCode.ITEM_OUTSIDE_LOOP,
                                f"{ref.raw} is only available inside a loop", **where))

                    elif ref.scope == ExpressionScope.VARS:
                        if ref.path and ref.path[0] not in variables:
                            issues.append(_warning(
                                IssueCode.UNKNOWN_VARIABLE,
                                f"Variable '{ref.path[0]}' is not defined", **where))

                    elif ref.path:
                        referenced = aliases.get(ref.path[0])
                        if referenced is None:
                            issues.append(_warning(
                                IssueCode.UNKNOWN_REFERENCE,
                                f"No node with id or alias '{ref.path[0]}'", **where))
                            continue

                        if node.id not in upstream_cache:
                            upstream_cache[node.id] = graph.upstream_of(node.id)
                        if referenced.id not in upstream_cache[node.id]:
                            issues.append(_warning(
                                IssueCode.NOT_UPSTREAM,
                                f"Node '{ref.path[0]}' does not run before this node", **where))

                        if len(ref.path) > 1:
                            outputs = self.registry.output_fields(referenced.type, referenced.data)
                            if ref.path[1] not in outputs:
                                issues.append(_warning(
                                    IssueCode.UNKNOWN_OUTPUT_FIELD,
                                    f"Node '{ref.path[0]}' has no output field '{ref.path[1]}'", **where))
        return issues

    # Phase 5

    def _check_reachability(self, graph: WorkflowGraph, nodes_by_id: Dict[str, Node]) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        edges = self._valid_edges(graph, nodes_by_id)
        has_trigger = any(self.registry.is_trigger(node.type) for node in graph.nodes)
        with_incoming = {edge.target for edge in edges}
        with_outgoing = {edge.source for edge in edges}

        reported: Set[str] = set()
        for node in graph.nodes:
            if node.id in reported or self.registry.is_trigger(node.type):
                continue
            if node.id in with_incoming:
                continue
            # Without a trigger the first node of a chain acts as the entry point
            if has_trigger or node.id not in with_outgoing:
                reported.add(node.id)
                issues.append(_warning(IssueCode.UNREACHABLE_NODE,
                                       "Node has no incoming connection and will never run",
                                       node_id=node.id))

        issues.extend(self._check_disabled(graph))
        issues.extend(self._check_cycles(graph, nodes_by_id, edges))
        issues.extend(self._check_depth(nodes_by_id, edges))
        return issues

    def _check_disabled(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        return [
            _warning(IssueCode.NODE_DISABLED, "Node is disabled and will be skipped", node_id=node.id)
            for node in graph.nodes
            if node.data.get("enabled") is False
        ]

    def _check_depth(self, nodes_by_id: Dict[str, Node], edges: List[Edge]) -> List[ValidationIssue]:
        """Warn when some node is more than MAX_WORKFLOW_DEPTH steps away from its trigger."""
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in nodes_by_id}
        for edge in edges:
            adjacency[edge.source].append(edge.target)

        depth = 0
        for node in nodes_by_id.values():
            if not self.registry.is_trigger(node.type):
                continue
            distances = {node.id: 0}
            queue = deque([node.id])
            while queue:
                current = queue.popleft()
                for target in adjacency[current]:
                    if target not in distances:
                        distances[target] = distances[current] + 1
                        queue.append(target)
            depth = max(depth, max(distances.values()))

        if depth <= MAX_WORKFLOW_DEPTH:
            return []
        return [_warning(IssueCode.WORKFLOW_TOO_DEEP,
                         f"Workflow depth is {depth} nodes, consider splitting it into smaller workflows")]

    def _check_cycles(self, graph: WorkflowGraph, nodes_by_id: Dict[str, Node], edges: List[Edge]) -> List[ValidationIssue]:
        """Warn about cycles that do not pass through a loop node."""
        issues: List[ValidationIssue] = []
        adjacency: Dict[str, List[Edge]] = {node_id: [] for node_id in nodes_by_id}
        for edge in edges:
            adjacency[edge.source].append(edge)

        state: Dict[str, int] = {}  # 1 = on stack, 2 = done
        for root in nodes_by_id:
            if root in state:
                continue
            stack: List[Tuple[str, int]] = [(root, 0)]
            path: List[str] = [root]
            state[root] = 1
            while stack:
                node_id, index = stack[-1]
                if index >= len(adjacency[node_id]):
                    stack.pop()
                    path.pop()
                    state[node_id] = 2
                    continue
                stack[-1] = (node_id, index + 1)
                edge = adjacency[node_id][index]
                target_state = state.get(edge.target)
                if target_state == 1:
                    cycle = path[path.index(edge.target):]
                    if not any(nodes_by_id[n].type == NodeType.LOOP for n in cycle):
                        issues.append(_warning(
                            IssueCode.CYCLE,
                            f"Connection closes a cycle through {len(cycle)} node(s) without a loop node",
                            edge_id=edge.id, node_id=edge.target))
                elif target_state is None:
                    state[edge.target] = 1
                    stack.append((edge.target, 0))
                    path.append(edge.target)
        return issues
