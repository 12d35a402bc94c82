"""Workflow use cases: the save pipeline and graph editing operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from workflow_api.domain.errors import DomainError, GraphRejectedError, ValidationError, VersionConflictError
from workflow_api.domain.events import (
    DomainEventPublisher,
    WorkflowCreated,
    WorkflowDeleted,
    WorkflowSaved,
    WorkflowSaveRejected,
    event_publisher,
)
from workflow_api.domain.graph import Edge, Node, Position, WorkflowGraph
from workflow_api.domain.node_types import NodeType
from workflow_api.domain.registry import NodeTypeRegistry, get_node_registry
from workflow_api.domain.specifications import Specification, filter_by_specification
from workflow_api.domain.validation import GraphValidator, ValidationIssue, split_issues
from workflow_api.storage.interface import WorkflowStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SaveResult:
    """Outcome of an accepted save."""
    workflow_id: str
    version: int
    warnings: List[ValidationIssue] = field(default_factory=list)


@dataclass
class NodeBatch:
    """Nodes built by a batch creation and the specs that failed."""
    nodes: List[Node] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class WorkflowService:
    """Validates graphs before they reach the store and applies edits to stored graphs."""

    def __init__(
        self,
        store: WorkflowStore,
        validator: Optional[GraphValidator] = None,
        registry: Optional[NodeTypeRegistry] = None,
        publisher: Optional[DomainEventPublisher] = None,
    ) -> None:
        self._store = store
        self._registry = registry or get_node_registry()
        self._validator = validator or GraphValidator(self._registry)
        self._publisher = publisher or event_publisher

    # Workflows

    def create_workflow(self, name: str, description: str = "",
                        graph: Optional[WorkflowGraph] = None) -> Dict[str, Any]:
        name = self._validate_name(name)
        if graph is not None:
            issues = self._validator.validate(graph)
            errors, _ = split_issues(issues)
            if errors:
                raise GraphRejectedError("(new)", issues)

        workflow = self._store.create(name=name, description=(description or "").strip(), graph=graph)
        self._publisher.publish(WorkflowCreated.new(workflow["id"], name=workflow["name"]))
        return workflow

    def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        return self._store.get(workflow_id)

    def list_workflows(self, spec: Optional[Specification] = None) -> List[Dict[str, Any]]:
        workflows = self._store.list()
        if spec is None:
            return workflows
        return filter_by_specification(workflows, spec)

    def update_details(self, workflow_id: str, name: Optional[str] = None,
                       description: Optional[str] = None) -> Dict[str, Any]:
        if name is not None:
            name = self._validate_name(name)
        if description is not None:
            description = description.strip()
        return self._store.update_details(workflow_id, name=name, description=description)

    def delete_workflow(self, workflow_id: str) -> Dict[str, Any]:
        workflow = self._store.delete(workflow_id)
        self._publisher.publish(WorkflowDeleted.new(workflow_id, name=workflow["name"]))
        return workflow

    @staticmethod
    def _validate_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Workflow name cannot be empty")
        if len(name) > 200:
            raise ValidationError("Workflow name must be at most 200 characters")
        return name

    # Graph

    def load_graph(self, workflow_id: str) -> WorkflowGraph:
        graph, _ = self._store.load(workflow_id)
        return graph

    def validate_graph(self, graph: WorkflowGraph) -> List[ValidationIssue]:
        return self._validator.validate(graph)

    def validate_workflow(self, workflow_id: str) -> List[ValidationIssue]:
        return self.validate_graph(self.load_graph(workflow_id))

    def save_graph(self, workflow_id: str, graph: WorkflowGraph, expected_version: int) -> SaveResult:
        """
        Validate and persist a graph.

        Args:
            workflow_id: Workflow ID
            graph: Complete graph to store
            expected_version: Version the edit was based on

        Returns:
            New version plus any warnings found

        Raises:
            GraphRejectedError: If validation found error-severity issues
            VersionConflictError: If the workflow was saved by someone else meanwhile
            NotFoundError: If the workflow does not exist
        """
        issues = self._validator.validate(graph)
        errors, warnings = split_issues(issues)
        if errors:
            self._publisher.publish(WorkflowSaveRejected.new(
                workflow_id, expected_version=expected_version, error_count=len(errors)))
            raise GraphRejectedError(workflow_id, issues)

        new_version = self._store.save(workflow_id, graph, expected_version)
        graph.version = new_version
        self._publisher.publish(WorkflowSaved.new(
            workflow_id,
            version=new_version,
            node_count=len(graph.nodes),
            edge_count=len(graph.edges),
            warning_count=len(warnings),
        ))
        return SaveResult(workflow_id=workflow_id, version=new_version, warnings=warnings)

    # Edits

    def _edit(self, workflow_id: str, expected_version: Optional[int],
              mutate: Callable[[WorkflowGraph], T]) -> Tuple[T, SaveResult]:
        """Load, apply one mutation to the aggregate and save it against the loaded version."""
        graph, version = self._store.load(workflow_id)
        if expected_version is not None and expected_version != version:
            raise VersionConflictError(workflow_id, expected_version, version)
        outcome = mutate(graph)
        return outcome, self.save_graph(workflow_id, graph, version)

    def add_node(self, workflow_id: str, node_type: NodeType, position: Optional[Position] = None,
                 data: Optional[Dict[str, Any]] = None,
                 expected_version: Optional[int] = None) -> Tuple[Node, SaveResult]:
        node = Node.create(node_type, position=position, data=data, registry=self._registry)
        return self._edit(workflow_id, expected_version, lambda graph: graph.add_node(node))

    def add_nodes_batch(self, workflow_id: str, specs: Iterable[Dict[str, Any]],
                        expected_version: Optional[int] = None) -> Tuple[NodeBatch, SaveResult]:
        """
        Create several nodes in one save, e.g. from a template.

        Each spec holds ``type`` and optionally ``position`` and ``data``.
        A spec that cannot be built is reported in ``errors`` and skipped;
        the rest are added together under a single version bump.
        """
        batch = NodeBatch()
        specs = list(specs)
        for index, spec in enumerate(specs):
            node_type = spec.get("type")
            try:
                batch.nodes.append(Node.create(node_type, position=spec.get("position"),
                                               data=spec.get("data"), registry=self._registry))
            except DomainError as e:
                batch.errors.append(f"Node {index} ({node_type}): {e}")

        if batch.errors:
            logger.warning(f"Batch creation in workflow {workflow_id} completed with "
                           f"{len(batch.errors)}/{len(specs)} failures")
        if not batch.nodes:
            raise ValidationError("No node could be created: " + "; ".join(batch.errors))

        def add_all(graph: WorkflowGraph) -> NodeBatch:
            for node in batch.nodes:
                graph.add_node(node)
            return batch

        return self._edit(workflow_id, expected_version, add_all)

    def update_node(self, workflow_id: str, node_id: str, data: Optional[Dict[str, Any]] = None,
                    position: Optional[Position] = None,
                    expected_version: Optional[int] = None) -> Tuple[Node, SaveResult]:
        return self._edit(workflow_id, expected_version,
                          lambda graph: graph.update_node(node_id, data=data, position=position))

    def remove_node(self, workflow_id: str, node_id: str,
                    expected_version: Optional[int] = None) -> Tuple[List[Edge], SaveResult]:
        return self._edit(workflow_id, expected_version, lambda graph: graph.remove_node(node_id))

    def clone_node(self, workflow_id: str, node_id: str,
                   expected_version: Optional[int] = None) -> Tuple[Node, SaveResult]:
        return self._edit(workflow_id, expected_version, lambda graph: graph.clone_node(node_id))

    def add_edge(self, workflow_id: str, source: str, target: str,
                 source_handle: Optional[str] = None, target_handle: Optional[str] = None,
                 expected_version: Optional[int] = None) -> Tuple[Edge, SaveResult]:
        edge = Edge.create(source, target, source_handle=source_handle, target_handle=target_handle)
        return self._edit(workflow_id, expected_version, lambda graph: graph.add_edge(edge, self._registry))

    def remove_edge(self, workflow_id: str, edge_id: str,
                    expected_version: Optional[int] = None) -> Tuple[Edge, SaveResult]:
        return self._edit(workflow_id, expected_version, lambda graph: graph.remove_edge(edge_id))

    def set_variable(self, workflow_id: str, key: str, value: Any,
                     expected_version: Optional[int] = None) -> Tuple[None, SaveResult]:
        return self._edit(workflow_id, expected_version, lambda graph: graph.set_variable(key, value))

    def remove_variable(self, workflow_id: str, key: str,
                        expected_version: Optional[int] = None) -> Tuple[Any, SaveResult]:
        return self._edit(workflow_id, expected_version, lambda graph: graph.remove_variable(key))
