from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from workflow_api.schemas.api_schemas import (
    GraphResponse,
    GraphSave,
    SaveResponse,
    ValidationResponse,
    WorkflowCreate,
    WorkflowDeleteResponse,
    WorkflowResponse,
    WorkflowUpdate,
)
from workflow_api.dependencies import get_workflow_service
from workflow_api.application.workflow_service import WorkflowService
from workflow_api.domain.graph import WorkflowGraph
from workflow_api.domain.specifications import WorkflowByName, WorkflowHasNodeType
from workflow_api.domain.validation import ValidationIssue, split_issues

router = APIRouter()


def _workflow_response(workflow: dict) -> WorkflowResponse:
    return WorkflowResponse(
        workflow_id=workflow["id"],
        name=workflow["name"],
        description=workflow.get("description", ""),
        version=workflow["version"],
        node_count=workflow["node_count"],
        edge_count=workflow["edge_count"],
        node_types=workflow.get("node_types", []),
        created_at=workflow["created_at"],
        updated_at=workflow["updated_at"],
    )


def _validation_response(issues: List[ValidationIssue]) -> ValidationResponse:
    errors, warnings = split_issues(issues)
    return ValidationResponse(valid=not errors, errors=errors, warnings=warnings)


@router.post("/workflows", response_model=WorkflowResponse, status_code=201)
def create_workflow(
    workflow_data: WorkflowCreate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Create a new workflow, optionally with an initial graph.
    """
    workflow = service.create_workflow(
        name=workflow_data.name,
        description=workflow_data.description,
        graph=workflow_data.graph,
    )
    return _workflow_response(workflow)


@router.get("/workflows", response_model=List[WorkflowResponse])
def list_workflows(
    name: Optional[str] = Query(None, description="Case-insensitive name filter"),
    node_type: Optional[str] = Query(None, description="Only workflows using this node type"),
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    List workflows, oldest first.
    """
    spec = None
    if name:
        spec = WorkflowByName(name)
    if node_type:
        type_spec = WorkflowHasNodeType(node_type)
        spec = spec.and_(type_spec) if spec else type_spec

    return [_workflow_response(w) for w in service.list_workflows(spec)]


@router.get("/workflows/{workflow_id}", response_model=WorkflowResponse)
def get_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Get summary information about a workflow.
    """
    return _workflow_response(service.get_workflow(workflow_id))


@router.patch("/workflows/{workflow_id}", response_model=WorkflowResponse)
def update_workflow(
    workflow_id: str,
    workflow_data: WorkflowUpdate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Update a workflow's name and description. The graph version is unchanged.
    """
    workflow = service.update_details(
        workflow_id,
        name=workflow_data.name,
        description=workflow_data.description,
    )
    return _workflow_response(workflow)


@router.delete("/workflows/{workflow_id}", response_model=WorkflowDeleteResponse)
def delete_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Delete a workflow and its graph.
    """
    service.delete_workflow(workflow_id)
    return WorkflowDeleteResponse(success=True, workflow_id=workflow_id)


@router.get("/workflows/{workflow_id}/graph", response_model=GraphResponse)
def get_graph(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Load the workflow graph together with its version.
    """
    graph = service.load_graph(workflow_id)
    return GraphResponse(workflow_id=workflow_id, version=graph.version, graph=graph)


@router.put("/workflows/{workflow_id}/graph", response_model=SaveResponse)
def save_graph(
    workflow_id: str,
    save_data: GraphSave,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Replace the workflow graph.

    Rejected with 422 and the full issue list if validation finds errors,
    and with 409 if ``expected_version`` is no longer current.
    """
    result = service.save_graph(workflow_id, save_data.graph, save_data.expected_version)
    return SaveResponse(workflow_id=workflow_id, version=result.version, warnings=result.warnings)


@router.post("/workflows/{workflow_id}/validate", response_model=ValidationResponse)
def validate_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Validate the stored graph of a workflow.
    """
    return _validation_response(service.validate_workflow(workflow_id))


@router.post("/graphs/validate", response_model=ValidationResponse)
def validate_graph(
    graph: WorkflowGraph,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Validate a graph without storing it, e.g. while editing.
    """
    return _validation_response(service.validate_graph(graph))
