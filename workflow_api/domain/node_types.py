"""
Node type tags and the configuration shape owned by each of them.

Every NodeType maps to exactly one pydantic model describing the ``data``
object of a node of that type. The models are closed: unknown keys are
rejected and primitive fields are strict, so ``"5"`` is not an int and
``1`` is not a bool. Keys on the wire are camelCase.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


class NodeType(str, Enum):
    """Closed set of node type tags."""

    TRIGGER = "trigger"
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL_FORM = "fillForm"
    EXTRACT = "extract"
    SCREENSHOT = "screenshot"
    SCROLL = "scroll"
    WAIT = "wait"
    CONDITION = "condition"
    LOOP = "loop"
    SWITCH = "switch"
    MERGE = "merge"
    FILTER = "filter"
    TRANSFORM = "transform"
    SET_VARIABLE = "setVariable"
    HTTP_REQUEST = "httpRequest"
    WEBHOOK = "webhook"
    SCRIPT = "script"
    AI_AGENT = "aiAgent"


class ShapeModel(BaseModel):
    """Base for every closed configuration shape (top-level and nested)."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel)


class NodeConfig(ShapeModel):
    """Fields shared by every node variant."""

    label: StrictStr = ""
    description: Optional[StrictStr] = None
    enabled: StrictBool = True
    alias: Optional[StrictStr] = None

    # Fields that must be non-empty before the node can do anything useful
    required_values: ClassVar[Tuple[str, ...]] = ()


# Nested shapes

class ExtractionRule(ShapeModel):
    name: StrictStr
    selector: StrictStr
    attribute: Optional[StrictStr] = None
    multiple: StrictBool = False


class ConditionClause(ShapeModel):
    variable: StrictStr
    operator: Literal["equals", "notEquals", "contains", "greaterThan", "lessThan", "exists"]
    value: Optional[StrictStr] = None


class SwitchCase(ShapeModel):
    value: StrictStr
    output_index: StrictInt = Field(ge=0)


class FormField(ShapeModel):
    selector: StrictStr
    value: StrictStr
    type: Literal["text", "select", "checkbox", "radio"] = "text"


class VariableAssignment(ShapeModel):
    key: StrictStr
    value: StrictStr
    variable_type: Literal["string", "number", "boolean", "object", "array"] = "string"


class Transformation(ShapeModel):
    name: StrictStr
    expression: StrictStr


class HttpAuth(ShapeModel):
    type: Literal["none", "basic", "bearer", "apiKey"] = "none"
    username: Optional[StrictStr] = None
    password: Optional[StrictStr] = None
    token: Optional[StrictStr] = None
    header_name: Optional[StrictStr] = None


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


# Variants

class TriggerConfig(NodeConfig):
    trigger_type: Literal["manual", "schedule", "webhook"] = Field("manual", alias="type")
    schedule: Optional[StrictStr] = None
    webhook_url: Optional[StrictStr] = None


class NavigateConfig(NodeConfig):
    url: StrictStr
    wait_for_navigation: StrictBool = True
    timeout: StrictInt = Field(30000, ge=0)
    wait_for_selector: Optional[StrictStr] = None

    required_values = ("url",)


class ClickConfig(NodeConfig):
    selector: StrictStr
    click_type: Literal["left", "right", "double"] = "left"
    wait_after_click: StrictInt = Field(0, ge=0)

    required_values = ("selector",)


class FillFormConfig(NodeConfig):
    form_fields: List[FormField] = Field(alias="fields")
    submit_selector: Optional[StrictStr] = None

    required_values = ("fields",)


class ExtractConfig(NodeConfig):
    extractions: List[ExtractionRule]

    required_values = ("extractions",)


class ScreenshotConfig(NodeConfig):
    full_page: StrictBool = False
    selector: Optional[StrictStr] = None


class ScrollConfig(NodeConfig):
    direction: Literal["up", "down", "top", "bottom"] = "down"
    amount: StrictInt = Field(500, ge=0)
    selector: Optional[StrictStr] = None


class WaitConfig(NodeConfig):
    duration: StrictInt = Field(1000, ge=0)
    unit: Literal["ms", "s", "m"] = "ms"


class ConditionConfig(NodeConfig):
    conditions: List[ConditionClause]
    logic: Literal["AND", "OR"] = "AND"

    required_values = ("conditions",)


class LoopConfig(NodeConfig):
    items: StrictStr
    max_iterations: StrictInt = Field(100, ge=1)

    required_values = ("items",)


class SwitchConfig(NodeConfig):
    input_field: StrictStr
    cases: List[SwitchCase] = []

    required_values = ("inputField",)


class MergeConfig(NodeConfig):
    mode: Literal["append", "merge", "first", "last"] = "append"


class FilterConfig(NodeConfig):
    items: StrictStr
    conditions: List[ConditionClause] = []
    logic: Literal["AND", "OR"] = "AND"

    required_values = ("items",)


class TransformConfig(NodeConfig):
    transformations: List[Transformation] = []


class SetVariableConfig(NodeConfig):
    variables: List[VariableAssignment]

    required_values = ("variables",)


class HttpRequestConfig(NodeConfig):
    method: HttpMethod = "GET"
    url: StrictStr
    headers: Dict[StrictStr, StrictStr] = {}
    body: Optional[StrictStr] = None
    auth: HttpAuth = HttpAuth()
    timeout: StrictInt = Field(30000, ge=0)
    retries: StrictInt = Field(0, ge=0)
    response_variable: Optional[StrictStr] = None

    required_values = ("url",)


class WebhookConfig(NodeConfig):
    path: StrictStr
    method: HttpMethod = "POST"
    response_mode: Literal["immediately", "lastNode"] = "immediately"

    required_values = ("path",)


class ScriptConfig(NodeConfig):
    code: StrictStr
    timeout: StrictInt = Field(5000, ge=0)

    required_values = ("code",)


class AiAgentConfig(NodeConfig):
    prompt: StrictStr
    model: StrictStr = "gpt-4o-mini"
    context: Optional[StrictStr] = None
    max_steps: StrictInt = Field(10, ge=1)
    output_format: Literal["text", "json"] = "text"
    url: Optional[StrictStr] = None

    required_values = ("prompt",)


CONFIG_MODELS: Dict[NodeType, Type[NodeConfig]] = {
    NodeType.TRIGGER: TriggerConfig,
    NodeType.NAVIGATE: NavigateConfig,
    NodeType.CLICK: ClickConfig,
    NodeType.FILL_FORM: FillFormConfig,
    NodeType.EXTRACT: ExtractConfig,
    NodeType.SCREENSHOT: ScreenshotConfig,
    NodeType.SCROLL: ScrollConfig,
    NodeType.WAIT: WaitConfig,
    NodeType.CONDITION: ConditionConfig,
    NodeType.LOOP: LoopConfig,
    NodeType.SWITCH: SwitchConfig,
    NodeType.MERGE: MergeConfig,
    NodeType.FILTER: FilterConfig,
    NodeType.TRANSFORM: TransformConfig,
    NodeType.SET_VARIABLE: SetVariableConfig,
    NodeType.HTTP_REQUEST: HttpRequestConfig,
    NodeType.WEBHOOK: WebhookConfig,
    NodeType.SCRIPT: ScriptConfig,
    NodeType.AI_AGENT: AiAgentConfig,
}


class ViolationKind(str, Enum):
    MISSING_FIELD = "missing_field"
    UNKNOWN_FIELD = "unknown_field"
    WRONG_KIND = "wrong_kind"
    INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class ShapeViolation:
    """One structural mismatch between node data and its declared shape."""
    kind: ViolationKind
    field: Optional[str]
    message: str


def _field_path(loc: Tuple[Any, ...]) -> Optional[str]:
    return ".".join(str(part) for part in loc) if loc else None


def _classify(error_type: str) -> ViolationKind:
    if error_type == "missing":
        return ViolationKind.MISSING_FIELD
    if error_type == "extra_forbidden":
        return ViolationKind.UNKNOWN_FIELD
    if error_type.endswith("_type"):
        return ViolationKind.WRONG_KIND
    return ViolationKind.INVALID_VALUE


def config_model_for(node_type: NodeType) -> Type[NodeConfig]:
    return CONFIG_MODELS[NodeType(node_type)]


def check_shape(node_type: NodeType, data: Any) -> List[ShapeViolation]:
    """
    Check node data against the shape declared for its type.

    Args:
        node_type: Type tag of the node
        data: The node's ``data`` object

    Returns:
        Every violation found, in pydantic's error order. Empty when the
        data matches.
    """
    model = config_model_for(node_type)
    if not isinstance(data, dict):
        return [ShapeViolation(ViolationKind.WRONG_KIND, None,
                               f"Configuration must be an object, got {type(data).__name__}")]
    try:
        model.model_validate(data)
    except PydanticValidationError as exc:
        violations = []
        for error in exc.errors():
            kind = _classify(error["type"])
            field = _field_path(error["loc"])
            if kind == ViolationKind.MISSING_FIELD:
                message = f"Required field '{field}' is missing"
            elif kind == ViolationKind.UNKNOWN_FIELD:
                message = f"Unknown field '{field}'"
            else:
                message = f"Field '{field}': {error['msg']}"
            violations.append(ShapeViolation(kind, field, message))
        return violations
    return []


def empty_required_values(node_type: NodeType, data: Dict[str, Any]) -> List[str]:
    """Names of required fields that are present but blank (``""`` or ``[]``)."""
    model = config_model_for(node_type)
    blank = []
    for name in model.required_values:
        value = data.get(name)
        if isinstance(value, str) and not value.strip():
            blank.append(name)
        elif isinstance(value, list) and not value:
            blank.append(name)
    return blank


def iter_string_fields(data: Any, prefix: str = "") -> Iterator[Tuple[str, str]]:
    """Yield ``(path, value)`` for every string leaf of a configuration object."""
    if isinstance(data, str):
        yield prefix, data
    elif isinstance(data, dict):
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            yield from iter_string_fields(value, path)
    elif isinstance(data, list):
        for index, value in enumerate(data):
            path = f"{prefix}.{index}" if prefix else str(index)
            yield from iter_string_fields(value, path)
