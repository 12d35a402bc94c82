from fastapi import APIRouter

from workflow_api.schemas.api_schemas import (
    ExpressionParseRequest,
    ExpressionParseResponse,
    ExpressionPreviewRequest,
    ExpressionPreviewResponse,
    ExpressionReference,
)
from workflow_api.domain.expressions import UNDEFINED, ExecutionContext, extract_references, resolve

router = APIRouter()


@router.post("/expressions/parse", response_model=ExpressionParseResponse)
def parse_expression(request: ExpressionParseRequest):
    """
    Parse the ``{{...}}`` references of a field value for live-editing feedback.
    """
    refs = extract_references(request.text)
    return ExpressionParseResponse(
        valid=all(ref.is_valid for ref in refs),
        references=[ExpressionReference(**ref.to_dict()) for ref in refs],
    )


@router.post("/expressions/preview", response_model=ExpressionPreviewResponse)
def preview_expression(request: ExpressionPreviewRequest):
    """
    Resolve a field value against sample data, the way the executor will.
    """
    context = ExecutionContext(
        inputs=request.inputs,
        variables=request.variables,
        item=request.item if "item" in request.model_fields_set else UNDEFINED,
    )
    resolved = resolve(request.text, context)
    return ExpressionPreviewResponse(value=resolved.value, missing=resolved.missing)
