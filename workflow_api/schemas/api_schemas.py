"""
API Request/Response Schemas using Pydantic.

Structure of HTTP requests and responses for the workflow API. The graph
itself travels in its own JSON wire format (see workflow_api.domain.graph).
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from workflow_api.domain.graph import Edge, Node, Position, WorkflowGraph
from workflow_api.domain.validation import ValidationIssue

# Workflow schemas
class WorkflowCreate(BaseModel):
    name: str = Field(..., description="Name of the workflow", min_length=1, max_length=200)
    description: str = Field("", description="Optional description of the workflow", max_length=1000)
    graph: Optional[WorkflowGraph] = Field(None, description="Initial graph, empty if omitted")

class WorkflowUpdate(BaseModel):
    name: Optional[str] = Field(None, description="New name", min_length=1, max_length=200)
    description: Optional[str] = Field(None, description="New description", max_length=1000)

class WorkflowResponse(BaseModel):
    workflow_id: str = Field(..., description="Unique identifier of the workflow")
    name: str = Field(..., description="Name of the workflow")
    description: str = Field("", description="Workflow description")
    version: int = Field(..., description="Current graph version")
    node_count: int = Field(..., description="Number of nodes in the graph")
    edge_count: int = Field(..., description="Number of edges in the graph")
    node_types: List[str] = Field(default_factory=list, description="Distinct node types used")
    created_at: str = Field(..., description="ISO format creation timestamp")
    updated_at: str = Field(..., description="ISO format timestamp of the last change")

class WorkflowDeleteResponse(BaseModel):
    success: bool = Field(default=True, description="Whether the deletion was successful")
    workflow_id: str = Field(..., description="ID of the deleted workflow")

# Graph schemas
class GraphResponse(BaseModel):
    workflow_id: str = Field(..., description="ID of the workflow")
    version: int = Field(..., description="Version to send back as expected_version when saving")
    graph: WorkflowGraph = Field(..., description="The workflow graph")

class GraphSave(BaseModel):
    graph: WorkflowGraph = Field(..., description="Complete graph to store")
    expected_version: int = Field(..., ge=0, description="Version the edit was based on")

class SaveResponse(BaseModel):
    workflow_id: str = Field(..., description="ID of the workflow")
    version: int = Field(..., description="New graph version")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Non-blocking issues")

class ValidationResponse(BaseModel):
    valid: bool = Field(..., description="True when there are no error-severity issues")
    errors: List[ValidationIssue] = Field(default_factory=list, description="Issues that block saving")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Issues that do not block saving")

# Node and edge schemas
class NodeCreate(BaseModel):
    type: str = Field(..., description="Registered node type")
    position: Optional[Position] = Field(None, description="Canvas position")
    data: Optional[Dict[str, Any]] = Field(None, description="Configuration merged over the registry default")
    expected_version: Optional[int] = Field(None, ge=0, description="Reject the edit if the graph moved on")

class NodeBatchItem(BaseModel):
    type: str = Field(..., description="Registered node type")
    position: Optional[Position] = Field(None, description="Canvas position")
    data: Optional[Dict[str, Any]] = Field(None, description="Configuration merged over the registry default")

class NodeBatchCreate(BaseModel):
    nodes: List[NodeBatchItem] = Field(..., min_length=1, description="Nodes to create in one save")
    expected_version: Optional[int] = Field(None, ge=0, description="Reject the edit if the graph moved on")

class NodeUpdate(BaseModel):
    data: Optional[Dict[str, Any]] = Field(None, description="Replacement configuration")
    position: Optional[Position] = Field(None, description="New canvas position")
    expected_version: Optional[int] = Field(None, ge=0, description="Reject the edit if the graph moved on")

class EdgeCreate(BaseModel):
    source: str = Field(..., description="ID of the source node")
    target: str = Field(..., description="ID of the target node")
    source_handle: Optional[str] = Field(None, description="Output handle of the source node")
    target_handle: Optional[str] = Field(None, description="Input handle of the target node")
    expected_version: Optional[int] = Field(None, ge=0, description="Reject the edit if the graph moved on")

class VariableSet(BaseModel):
    value: Any = Field(..., description="Variable value, stored as given")
    expected_version: Optional[int] = Field(None, ge=0, description="Reject the edit if the graph moved on")

class NodeMutationResponse(BaseModel):
    node: Node = Field(..., description="The created or updated node")
    version: int = Field(..., description="New graph version")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Non-blocking issues")

class NodeBatchResponse(BaseModel):
    nodes: List[Node] = Field(default_factory=list, description="The created nodes")
    errors: List[str] = Field(default_factory=list, description="Specs that could not be turned into nodes")
    version: int = Field(..., description="New graph version")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Non-blocking issues")

class EdgeMutationResponse(BaseModel):
    edge: Edge = Field(..., description="The created or removed edge")
    version: int = Field(..., description="New graph version")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Non-blocking issues")

class MutationResponse(BaseModel):
    success: bool = Field(default=True, description="Whether the operation was successful")
    version: int = Field(..., description="New graph version")
    removed_edges: List[str] = Field(default_factory=list, description="IDs of edges removed with a node")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="Non-blocking issues")

# Expression schemas
class ExpressionParseRequest(BaseModel):
    text: str = Field(..., description="String field value to parse")

class ExpressionReference(BaseModel):
    raw: str
    start: int
    end: int
    status: str
    scope: Optional[str] = None
    path: List[str] = Field(default_factory=list)
    error: Optional[str] = None

class ExpressionParseResponse(BaseModel):
    valid: bool = Field(..., description="False if any reference has invalid syntax")
    references: List[ExpressionReference] = Field(default_factory=list)

class ExpressionPreviewRequest(BaseModel):
    text: str = Field(..., description="String field value to resolve")
    inputs: Dict[str, Any] = Field(default_factory=dict, description="Upstream outputs keyed by node id or alias")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Workflow variables")
    item: Optional[Any] = Field(None, description="Current loop element, omit outside a loop")

class ExpressionPreviewResponse(BaseModel):
    value: str = Field(..., description="Text with every reference substituted")
    missing: List[str] = Field(default_factory=list, description="References that resolved to undefined")
