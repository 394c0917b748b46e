"""JSON output rendering for assessments, metrics and lifecycle results."""
import json  # pylint: disable=import-self,redefined-builtin
from typing import Any, List, Union

from pydantic import BaseModel

def to_jsonable(value: Any) -> Any:
    """Convert models, and lists or nested lists of models, to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value

def render_json(value: Union[BaseModel, List[Any]]) -> str:
    """Render a model (or list of models) as an indented JSON string."""
    return json.dumps(to_jsonable(value), indent=2)
