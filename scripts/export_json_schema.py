#!/usr/bin/env python3
"""
Export JSON Schema files from Pydantic models for DNI Lookup.
- Draft: 2020-12
- Sources: dnilookup/schemas.py (ResultItem, SearchResponse, SearchQuery)
- Outputs: schemas/*.schema.json
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional

# Ensure project root execution
ROOT = Path(__file__).resolve().parents[1]
SCHEMAS_DIR = ROOT / "schemas"

import sys
sys.path.insert(0, str(ROOT))

from dnilookup.schemas import ResultItem, SearchQuery, SearchResponse  # type: ignore

SCHEMA_VERSION = "https://json-schema.org/draft/2020-12/schema"


def add_common_headers(schema: Dict[str, Any], title: str, description: str, example: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    schema.setdefault("$schema", SCHEMA_VERSION)
    schema.setdefault("title", title)
    schema.setdefault("description", description)
    if example is not None:
        schema.setdefault("examples", [example])
    return schema


def result_item_example() -> dict:
    return {
        "dni": "12345678",
        "nombreCompleto": "Juan Perez Lopez",
        "enlace": "https://dniperu.com/detalle/1",
        "extra": "12345678 Juan Perez Lopez",
    }


def search_response_example() -> dict:
    return {"ok": True, "count": 1, "items": [result_item_example()]}


def search_query_example() -> dict:
    return {"nombres": "Juan", "apellido_paterno": "Perez", "apellido_materno": "Lopez", "company": ""}


def save_schema(model, path: Path, title: str, description: str, example: dict):
    schema = model.model_json_schema(by_alias=True)  # pydantic v2
    schema = add_common_headers(schema, title, description, example)
    path.write_text(json.dumps(schema, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {path.relative_to(ROOT)}")


def main():
    SCHEMAS_DIR.mkdir(parents=True, exist_ok=True)
    save_schema(
        ResultItem,
        SCHEMAS_DIR / "result_item.schema.json",
        "ResultItem",
        "One identity record extracted from a results page.",
        result_item_example(),
    )
    save_schema(
        SearchResponse,
        SCHEMAS_DIR / "search_response.schema.json",
        "SearchResponse",
        "Successful /api/buscar payload.",
        search_response_example(),
    )
    save_schema(
        SearchQuery,
        SCHEMAS_DIR / "search_query.schema.json",
        "SearchQuery",
        "Search input; 'company' is a honeypot that must stay empty.",
        search_query_example(),
    )


if __name__ == "__main__":
    main()
