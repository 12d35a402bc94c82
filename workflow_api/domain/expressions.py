"""
Expression references embedded in node configuration strings.

A reference is ``{{<scope>.<segment>...}}`` where scope is one of
``$input`` (outputs of upstream nodes, keyed by node id or alias),
``$vars`` (workflow variables) or ``$item`` (current loop element).
Parsing is pure; resolution needs an ExecutionContext supplied by the
executor and never raises.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

OPEN = "{{"
CLOSE = "}}"

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


class ExpressionScope(str, Enum):
    INPUT = "$input"
    VARS = "$vars"
    ITEM = "$item"


class ExpressionStatus(str, Enum):
    VALID = "valid"
    INVALID_SYNTAX = "invalid_syntax"


class _Undefined:
    """Value of a reference whose path does not exist in the context."""

    _instance: Optional[_Undefined] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return "undefined"

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


@dataclass(frozen=True)
class ExpressionRef:
    """One ``{{...}}`` occurrence inside a string."""
    raw: str
    start: int
    end: int
    status: ExpressionStatus
    scope: Optional[ExpressionScope] = None
    path: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == ExpressionStatus.VALID

    @property
    def dotted_path(self) -> str:
        """Path below the scope, e.g. ``extract1.count``."""
        return ".".join(self.path)

    @property
    def expression(self) -> str:
        """Scope and path, e.g. ``$input.extract1.count``."""
        if self.scope is None:
            return self.raw
        return ".".join((self.scope.value,) + self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw": self.raw,
            "start": self.start,
            "end": self.end,
            "status": self.status.value,
            "scope": self.scope.value if self.scope else None,
            "path": list(self.path),
            "error": self.error,
        }


def _invalid(text: str, start: int, end: int, error: str) -> ExpressionRef:
    return ExpressionRef(raw=text[start:end], start=start, end=end,
                         status=ExpressionStatus.INVALID_SYNTAX, error=error)


def _parse_interior(text: str, start: int, end: int) -> ExpressionRef:
    interior = text[start + len(OPEN):end - len(CLOSE)].strip()
    if not interior:
        return _invalid(text, start, end, "Empty expression")

    segments = interior.split(".")
    try:
        scope = ExpressionScope(segments[0].strip())
    except ValueError:
        scopes = ", ".join(s.value for s in ExpressionScope)
        return _invalid(text, start, end, f"Unknown scope '{segments[0]}', expected one of {scopes}")

    path = tuple(segment.strip() for segment in segments[1:])
    for segment in path:
        if not _SEGMENT.match(segment):
            return _invalid(text, start, end, f"Invalid path segment '{segment}'")

    return ExpressionRef(raw=text[start:end], start=start, end=end,
                         status=ExpressionStatus.VALID, scope=scope, path=path)


def extract_references(text: str) -> List[ExpressionRef]:
    """
    Parse every expression reference in a string.

    Malformed delimiters do not raise; they come back as references with
    status INVALID_SYNTAX and an error message.

    Args:
        text: String field value

    Returns:
        References in order of appearance (empty if the text has none)
    """
    refs: List[ExpressionRef] = []
    pos = 0
    length = len(text)

    while pos < length:
        open_at = text.find(OPEN, pos)
        close_at = text.find(CLOSE, pos)

        if open_at == -1 and close_at == -1:
            break

        if close_at != -1 and (open_at == -1 or close_at < open_at):
            refs.append(_invalid(text, close_at, close_at + len(CLOSE), "Unmatched '}}'"))
            pos = close_at + len(CLOSE)
            continue

        # Walk forward to the delimiter that balances this opening
        depth = 1
        cursor = open_at + len(OPEN)
        nested = False
        end = -1
        while cursor < length:
            if text.startswith(OPEN, cursor):
                depth += 1
                nested = True
                cursor += len(OPEN)
            elif text.startswith(CLOSE, cursor):
                depth -= 1
                cursor += len(CLOSE)
                if depth == 0:
                    end = cursor
                    break
            else:
                cursor += 1

        if end == -1:
            refs.append(_invalid(text, open_at, length, "Unterminated '{{'"))
            break

        if nested:
            refs.append(_invalid(text, open_at, end, "Nested '{{' inside an expression"))
        else:
            refs.append(_parse_interior(text, open_at, end))
        pos = end

    return refs


def has_invalid_syntax(text: str) -> bool:
    return any(not ref.is_valid for ref in extract_references(text))


@dataclass
class ExecutionContext:
    """Data visible to expressions while one node executes."""
    inputs: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    item: Any = UNDEFINED


@dataclass
class ResolvedExpression:
    value: str
    missing: List[str] = field(default_factory=list)


def _lookup(ref: ExpressionRef, context: ExecutionContext) -> Any:
    if ref.scope == ExpressionScope.INPUT:
        current: Any = context.inputs
    elif ref.scope == ExpressionScope.VARS:
        current = context.variables
    else:
        current = context.item

    for segment in ref.path:
        if isinstance(current, dict):
            current = current.get(segment, UNDEFINED)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else UNDEFINED
        else:
            return UNDEFINED
        if current is UNDEFINED:
            return UNDEFINED
    return current


def render(value: Any) -> str:
    """String form of a resolved value as it appears in substituted text."""
    if value is UNDEFINED:
        return str(UNDEFINED)
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), default=str)


def resolve(text: str, context: ExecutionContext) -> ResolvedExpression:
    """
    Substitute every valid reference in ``text`` with its value.

    Missing paths render as ``undefined`` and are listed in ``missing``;
    malformed references are left in place as literal text.
    """
    parts: List[str] = []
    missing: List[str] = []
    pos = 0
    for ref in extract_references(text):
        parts.append(text[pos:ref.start])
        if ref.is_valid:
            value = _lookup(ref, context)
            if value is UNDEFINED:
                missing.append(ref.expression)
            parts.append(render(value))
        else:
            parts.append(ref.raw)
        pos = ref.end
    parts.append(text[pos:])
    return ResolvedExpression(value="".join(parts), missing=missing)


def resolve_value(text: str, context: ExecutionContext) -> Any:
    """
    Resolve a field, keeping the native value when the field is a single reference.

    ``"{{$input.extract1.data}}"`` yields the extracted object itself;
    anything with surrounding text yields the substituted string.
    """
    refs = extract_references(text)
    stripped = text.strip()
    if len(refs) == 1 and refs[0].is_valid and refs[0].raw == stripped:
        return _lookup(refs[0], context)
    return resolve(text, context).value
