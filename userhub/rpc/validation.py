"""
Input contracts for procedures.

Parsing is total: ordinary malformed input yields a failed ParseResult
listing every violation, never an exception.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass(frozen=True)
class ParseResult(Generic[SchemaT]):
    ok: bool
    value: Optional[SchemaT] = None
    issues: List[Dict[str, Any]] = field(default_factory=list)


def _issue(error: Dict[str, Any]) -> Dict[str, Any]:
    issue = {
        "path": [str(part) for part in error.get("loc", ())],
        "message": error.get("msg", "Invalid value"),
        "type": error.get("type", "value_error"),
    }
    ctx = error.get("ctx")
    if ctx:
        # ctx may hold exception objects; keep only what serialises
        issue["constraints"] = {
            k: v for k, v in ctx.items() if isinstance(v, (str, int, float, bool))
        }
    return issue


def parse_input(schema: Type[SchemaT], raw: Any) -> ParseResult[SchemaT]:
    """Validate ``raw`` against ``schema``."""
    if raw is None:
        raw = {}
    try:
        value = schema.model_validate(raw)
    except ValidationError as exc:
        return ParseResult(ok=False, issues=[_issue(e) for e in exc.errors()])
    return ParseResult(ok=True, value=value)
