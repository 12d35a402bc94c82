from fastapi import APIRouter, Depends
from typing import Optional

from workflow_api.schemas.api_schemas import (
    EdgeCreate,
    EdgeMutationResponse,
    MutationResponse,
    NodeBatchCreate,
    NodeBatchResponse,
    NodeCreate,
    NodeMutationResponse,
    NodeUpdate,
    VariableSet,
)
from workflow_api.dependencies import get_registry, get_workflow_service
from workflow_api.application.workflow_service import WorkflowService
from workflow_api.domain.registry import NodeTypeRegistry

router = APIRouter()


@router.post("/workflows/{workflow_id}/nodes", response_model=NodeMutationResponse, status_code=201)
def add_node(
    workflow_id: str,
    node_data: NodeCreate,
    service: WorkflowService = Depends(get_workflow_service),
    registry: NodeTypeRegistry = Depends(get_registry),
):
    """
    Add a node. ``data`` is merged over the registry default for the type.
    """
    definition = registry.lookup(node_data.type)
    node, result = service.add_node(
        workflow_id,
        definition.type,
        position=node_data.position,
        data=node_data.data,
        expected_version=node_data.expected_version,
    )
    return NodeMutationResponse(node=node, version=result.version, warnings=result.warnings)


@router.post("/workflows/{workflow_id}/nodes/batch", response_model=NodeBatchResponse, status_code=201)
def add_nodes_batch(
    workflow_id: str,
    batch_data: NodeBatchCreate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Add several nodes in one save. Specs that fail are reported in ``errors``.
    """
    batch, result = service.add_nodes_batch(
        workflow_id,
        [{"type": item.type, "position": item.position, "data": item.data} for item in batch_data.nodes],
        expected_version=batch_data.expected_version,
    )
    return NodeBatchResponse(nodes=batch.nodes, errors=batch.errors, version=result.version, warnings=result.warnings)


@router.patch("/workflows/{workflow_id}/nodes/{node_id}", response_model=NodeMutationResponse)
def update_node(
    workflow_id: str,
    node_id: str,
    node_data: NodeUpdate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Replace a node's configuration and/or move it. The node type cannot change.
    """
    node, result = service.update_node(
        workflow_id,
        node_id,
        data=node_data.data,
        position=node_data.position,
        expected_version=node_data.expected_version,
    )
    return NodeMutationResponse(node=node, version=result.version, warnings=result.warnings)


@router.delete("/workflows/{workflow_id}/nodes/{node_id}", response_model=MutationResponse)
def delete_node(
    workflow_id: str,
    node_id: str,
    expected_version: Optional[int] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Delete a node together with every edge connected to it.
    """
    removed, result = service.remove_node(workflow_id, node_id, expected_version=expected_version)
    return MutationResponse(
        version=result.version,
        removed_edges=[edge.id for edge in removed],
        warnings=result.warnings,
    )


@router.post("/workflows/{workflow_id}/nodes/{node_id}/clone", response_model=NodeMutationResponse, status_code=201)
def clone_node(
    workflow_id: str,
    node_id: str,
    expected_version: Optional[int] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Duplicate a node (configuration copied, connections not).
    """
    node, result = service.clone_node(workflow_id, node_id, expected_version=expected_version)
    return NodeMutationResponse(node=node, version=result.version, warnings=result.warnings)


@router.post("/workflows/{workflow_id}/edges", response_model=EdgeMutationResponse, status_code=201)
def add_edge(
    workflow_id: str,
    edge_data: EdgeCreate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Connect two nodes.
    """
    edge, result = service.add_edge(
        workflow_id,
        edge_data.source,
        edge_data.target,
        source_handle=edge_data.source_handle,
        target_handle=edge_data.target_handle,
        expected_version=edge_data.expected_version,
    )
    return EdgeMutationResponse(edge=edge, version=result.version, warnings=result.warnings)


@router.delete("/workflows/{workflow_id}/edges/{edge_id}", response_model=EdgeMutationResponse)
def delete_edge(
    workflow_id: str,
    edge_id: str,
    expected_version: Optional[int] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Remove a connection.
    """
    edge, result = service.remove_edge(workflow_id, edge_id, expected_version=expected_version)
    return EdgeMutationResponse(edge=edge, version=result.version, warnings=result.warnings)


@router.put("/workflows/{workflow_id}/variables/{key}", response_model=MutationResponse)
def set_variable(
    workflow_id: str,
    key: str,
    variable: VariableSet,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Create or overwrite a workflow variable. The value is stored as sent.
    """
    _, result = service.set_variable(workflow_id, key, variable.value, expected_version=variable.expected_version)
    return MutationResponse(version=result.version, warnings=result.warnings)


@router.delete("/workflows/{workflow_id}/variables/{key}", response_model=MutationResponse)
def delete_variable(
    workflow_id: str,
    key: str,
    expected_version: Optional[int] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Remove a workflow variable.
    """
    _, result = service.remove_variable(workflow_id, key, expected_version=expected_version)
    return MutationResponse(version=result.version, warnings=result.warnings)
