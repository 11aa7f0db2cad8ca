from typing import List

from fastapi import APIRouter, HTTPException, Request

from libs.schema_utils.validate import SchemaValidationError, validate_or_raise
from ..core.route_stats import route_stats
from ..store.base import RouteStore

router = APIRouter()


def _store(request: Request) -> RouteStore:
    return request.app.state.store


async def _route_or_404(store: RouteStore, route_id: str) -> dict:
    route = await store.get_route(route_id)
    if route is None:
        raise HTTPException(status_code=404, detail="route not found")
    return route


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/api/status")
def status(request: Request):
    return request.app.state.hub.snapshot()


@router.get("/api/routes")
async def list_routes(request: Request) -> List[dict]:
    return await _store(request).list_routes()


@router.post("/api/routes", status_code=201)
async def create_route(request: Request, req: dict):
    try:
        validate_or_raise("route", req)
    except SchemaValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _store(request).create_route(req)


@router.get("/api/routes/{route_id}")
async def get_route(request: Request, route_id: str):
    return await _route_or_404(_store(request), route_id)


@router.put("/api/routes/{route_id}")
async def update_route(request: Request, route_id: str, req: dict):
    store = _store(request)
    current = await _route_or_404(store, route_id)
    merged = {k: current.get(k) for k in ("name", "description", "path")}
    merged.update(req)
    try:
        validate_or_raise("route", merged)
    except SchemaValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    updated = await store.update_route(route_id, req)
    if updated is None:
        raise HTTPException(status_code=404, detail="route not found")
    return updated


@router.delete("/api/routes/{route_id}")
async def delete_route(request: Request, route_id: str):
    if not await _store(request).delete_route(route_id):
        raise HTTPException(status_code=404, detail="route not found")
    return {"ok": True}


@router.get("/api/routes/{route_id}/stats")
async def get_route_stats(request: Request, route_id: str):
    store = _store(request)
    route = await _route_or_404(store, route_id)
    potholes = await store.find_potholes(route_id)
    samples = await store.count_telemetry(route_id)
    return route_stats(route, potholes, samples)


@router.get("/api/routes/{route_id}/potholes")
async def get_route_potholes(request: Request, route_id: str):
    store = _store(request)
    await _route_or_404(store, route_id)
    return await store.find_potholes(route_id)
