from __future__ import annotations

from fastapi import Depends

from workflow_api.domain.registry import NodeTypeRegistry, get_node_registry
from workflow_api.domain.validation import GraphValidator
from workflow_api.storage.factory import get_workflow_store
from workflow_api.storage.interface import WorkflowStore
from workflow_api.application.workflow_service import WorkflowService


def get_registry() -> NodeTypeRegistry:
    return get_node_registry()


def get_store() -> WorkflowStore:
    return get_workflow_store()


def get_graph_validator(registry: NodeTypeRegistry = Depends(get_registry)) -> GraphValidator:
    return GraphValidator(registry=registry)


def get_workflow_service(
    store: WorkflowStore = Depends(get_store),
    validator: GraphValidator = Depends(get_graph_validator),
    registry: NodeTypeRegistry = Depends(get_registry),
) -> WorkflowService:
    return WorkflowService(store=store, validator=validator, registry=registry)
