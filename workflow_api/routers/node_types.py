from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, List, Optional

from workflow_api.dependencies import get_registry
from workflow_api.domain.registry import NodeCategory, NodeTypeRegistry

router = APIRouter()


@router.get("/node-types")
def list_node_types(
    category: Optional[NodeCategory] = Query(None, description="Only node types in this category"),
    q: Optional[str] = Query(None, description="Search label, description and type"),
    registry: NodeTypeRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    """
    Node type catalog in registration order.
    """
    definitions = registry.search(q) if q else registry.list_all()
    if category is not None:
        definitions = [d for d in definitions if d.category == category]
    return [d.to_dict() for d in definitions]


@router.get("/node-types/{node_type}")
def get_node_type(
    node_type: str,
    registry: NodeTypeRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Metadata for one node type. Unknown types are a 400.
    """
    return registry.lookup(node_type).to_dict()


@router.get("/node-types/{node_type}/default")
def get_default_config(
    node_type: str,
    registry: NodeTypeRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Fresh default configuration for a new node of this type.
    """
    return registry.instantiate_default(node_type)
