# school_portal/ai/context.py - Serialize tenant rows into prompt context
import json
from typing import Any, Iterable, List, Sequence, Dict

from fastapi.encoders import jsonable_encoder


def rows_to_dicts(rows: Iterable[Any], fields: Sequence[str]) -> List[Dict[str, Any]]:
    """JSON-safe dicts holding only ``fields`` of each ORM row"""
    return [jsonable_encoder({f: getattr(row, f, None) for f in fields}) for row in rows]


def to_prompt_json(value: Any) -> str:
    return json.dumps(jsonable_encoder(value), ensure_ascii=False)
