"""Generic CRUD endpoints for registered entity types."""
import json
import re
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_crud_service, get_current_principal
from models.member import Member
from services.crud_service import CrudService

router = APIRouter(prefix="/api/crud", tags=["crud"])

_FILTER_PARAM = re.compile(r"^filter\[(.+)\]$")


def parse_filters(request: Request) -> dict[str, str]:
    """Collect ``filter[field]=value`` query parameters (last value wins)."""
    filters = {}
    for key, value in request.query_params.multi_items():
        match = _FILTER_PARAM.match(key)
        if match:
            filters[match.group(1)] = value
    return filters


async def read_json_body(request: Request) -> Any:
    """
    Parse the request body as JSON.

    Returns None for an empty or unparseable body; the service rejects it
    after the permission checks have run.
    """
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


@router.get("/{type_name}")
async def list_records(
    type_name: str,
    request: Request,
    sort: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
    principal: Member | None = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    crud: CrudService = Depends(get_crud_service),
) -> dict:
    """
    List records of an entity type.

    Filter with ``filter[field]=value`` on readable fields and sort with
    ``sort=field`` or ``sort=field DESC``. Invalid filters and sorts are ignored.
    """
    page = await crud.list_records(
        db,
        principal,
        type_name,
        filters=parse_filters(request),
        sort=sort,
        offset=offset,
        limit=limit,
    )
    return {
        "data": page.data,
        "total": page.total,
        "offset": page.offset,
        "limit": page.limit,
        "has_more": page.has_more,
    }


@router.get("/{type_name}/{record_id}")
async def get_record(
    type_name: str,
    record_id: str,
    principal: Member | None = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    crud: CrudService = Depends(get_crud_service),
) -> dict:
    """Get a single record by id (external identifier for types that have one)."""
    return {"data": await crud.get_record(db, principal, type_name, record_id)}


@router.post("/{type_name}", status_code=201)
async def create_record(
    type_name: str,
    request: Request,
    principal: Member | None = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    crud: CrudService = Depends(get_crud_service),
) -> dict:
    """Create a record. The body is a JSON object of writable fields."""
    data = await read_json_body(request)
    return {"data": await crud.create_record(db, principal, type_name, data)}


@router.put("/{type_name}/{record_id}")
async def update_record(
    type_name: str,
    record_id: str,
    request: Request,
    principal: Member | None = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    crud: CrudService = Depends(get_crud_service),
) -> dict:
    """Update a record. Only the fields present in the body change."""
    data = await read_json_body(request)
    return {"data": await crud.update_record(db, principal, type_name, record_id, data)}


@router.delete("/{type_name}/{record_id}")
async def delete_record(
    type_name: str,
    record_id: str,
    principal: Member | None = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    crud: CrudService = Depends(get_crud_service),
) -> dict:
    """Delete a record."""
    await crud.delete_record(db, principal, type_name, record_id)
    return {"deleted": True}
