# mozaiks_data/routes/write_data.py
"""
HTTP boundary for plugin writes.

The HTTP method selects the operation (POST create, PUT update, DELETE
delete); everything after body decoding is the dispatcher's job.
"""
from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from mozaiks_data.dispatcher import WriteDispatcher
from mozaiks_data.errors import MalformedRequest
from mozaiks_data.models import OperationKind, WriteRequest

router = APIRouter()


def get_dispatcher(request: Request) -> WriteDispatcher:
    return request.app.state.dispatcher


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{location}: {first.get('msg', 'invalid value')}"


async def parse_write_request(request: Request) -> WriteRequest:
    raw_body = await request.body()
    try:
        body = json.loads(raw_body) if raw_body else None
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedRequest(f"error processing request: {exc}") from exc

    if not isinstance(body, dict):
        raise MalformedRequest("error processing request: body must be a JSON object")

    body["operation"] = OperationKind.from_http_method(request.method)
    try:
        return WriteRequest.model_validate(body)
    except ValidationError as exc:
        raise MalformedRequest(f"error processing request: {_describe_validation_error(exc)}") from exc


def success_envelope(status_code: int, data: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "message": "success", "data": data},
    )


@router.api_route("/write", methods=["POST", "PUT", "DELETE"])
async def write_data(request: Request, dispatcher: WriteDispatcher = Depends(get_dispatcher)) -> JSONResponse:
    write_request = await parse_write_request(request)
    result = await dispatcher.dispatch(
        write_request,
        correlation_id=getattr(request.state, "correlation_id", None),
    )
    return success_envelope(result.status_code, result.to_data())


@router.get("/collections")
async def list_plugin_collections(
    plugin_id: str = Query(..., min_length=1),
    organization_id: str = Query(..., min_length=1),
    dispatcher: WriteDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Collections a plugin has written to inside one organization."""
    records = await dispatcher.registry.list_collections(plugin_id, organization_id)
    return success_envelope(
        200,
        {
            "collections": [
                {
                    "collection_name": r.collection_name,
                    "physical_collection_name": r.physical_collection_name,
                    "created_at": r.created_at.isoformat(),
                }
                for r in records
            ]
        },
    )
