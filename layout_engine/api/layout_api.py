"""
Layout API endpoints for driving the layout controller and streaming frames
"""
import logging
import uuid
from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from ..core.item import ItemValidationError
from ..core.layout_controller import LayoutController
from ..core.layout_state import LayoutStrategy, UnknownStrategyError
from .websocket_manager import websocket_manager

logger = logging.getLogger(__name__)


# Pydantic models for API
class ItemListUpdate(BaseModel):
    """Request model replacing the full item list"""
    items: List[Dict[str, Any]] = Field(..., description="Items in display order")


class SettingsUpdate(BaseModel):
    """Request model for changing layout geometry; omitted fields stay unchanged"""
    spacing: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    sphere_radius: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    cluster_spacing_ratio: Optional[float] = Field(default=None, gt=0, le=1)
    cluster_anchor_factor: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)


class StrategySwitch(BaseModel):
    """Request model for switching the active strategy"""
    strategy: str = Field(..., description="One of: grid, sphere, cluster")


class OverlayUpdate(BaseModel):
    """Request model for search, filter and selection; omitted fields stay unchanged"""
    search_query: Optional[str] = None
    category_filter: Optional[str] = None
    selected_id: Optional[str] = None


class XRayUpdate(BaseModel):
    enabled: bool


class TickRequest(BaseModel):
    now: Optional[float] = Field(
        default=None,
        description="Reading of the controller clock in seconds, as reported by GET /state; defaults to the controller clock"
    )


# Router instance
layout_router = APIRouter()


def _controller_from_state(state) -> LayoutController:
    controller = getattr(state, "layout_controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Layout controller not initialized")
    return controller


def get_layout_controller(request: Request) -> LayoutController:
    """Dependency to get layout controller instance"""
    return _controller_from_state(request.app.state)


def _state_payload(controller: LayoutController) -> Dict[str, Any]:
    criteria = controller.criteria
    return {
        **controller.state().to_dict(),
        "item_count": len(controller.items),
        "overlay": {
            "search_query": criteria.search_query,
            "category_filter": criteria.category_filter,
            "selected_id": criteria.selected_id,
            "highlighted_ids": sorted(controller.overlay.highlighted_ids),
        },
        "x_ray_mode": controller.x_ray_mode,
    }


@layout_router.get("/frame")
async def get_frame(controller: LayoutController = Depends(get_layout_controller)):
    """Current frame without advancing the animation"""
    return controller.snapshot().to_dict()


@layout_router.post("/tick")
async def tick(
    body: Optional[TickRequest] = None,
    controller: LayoutController = Depends(get_layout_controller)
):
    """
    Advance the animation and return the resulting frame.

    An explicit ``now`` must come from the controller clock (the ``clock`` field
    of GET /state). A reading behind the last tick advances nothing.
    """
    now = body.now if body else None
    return controller.tick(now).to_dict()


@layout_router.get("/state")
async def get_state(controller: LayoutController = Depends(get_layout_controller)):
    """Layout state, overlay criteria and controller statistics"""
    return {
        "state": _state_payload(controller),
        "stats": controller.stats.to_dict(),
        "clock": controller.clock(),
        "connections": websocket_manager.get_connection_stats(),
    }


@layout_router.put("/items")
async def replace_items(
    update: ItemListUpdate,
    controller: LayoutController = Depends(get_layout_controller)
):
    """Replace the item list and recompute the active layout"""
    try:
        id_set_changed = controller.replace_items(update.items)
    except ItemValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)

    await websocket_manager.broadcast_state_change("items", {"item_count": len(controller.items)})
    return {
        "item_count": len(controller.items),
        "id_set_changed": id_set_changed,
        "active_strategy": controller.active_strategy.value,
    }


@layout_router.patch("/settings")
async def update_settings(
    update: SettingsUpdate,
    controller: LayoutController = Depends(get_layout_controller)
):
    """Change layout geometry; an invalid value rejects the whole change"""
    changes = update.model_dump(exclude_none=True)
    rejected_before = controller.stats.rejected_settings

    changed = controller.update_settings(**changes)
    if controller.stats.rejected_settings > rejected_before:
        raise HTTPException(status_code=422, detail=str(controller.last_error))

    if changed:
        await websocket_manager.broadcast_state_change("settings", changes)
    return {"changed": changed, "state": _state_payload(controller)}


@layout_router.post("/strategy")
async def switch_strategy(
    switch: StrategySwitch,
    controller: LayoutController = Depends(get_layout_controller)
):
    """Switch the active strategy and start the transition"""
    try:
        switched = controller.switch_strategy(switch.strategy)
    except UnknownStrategyError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if switched:
        await websocket_manager.broadcast_state_change(
            "strategy", {"active_strategy": controller.active_strategy.value}
        )
    return {"switched": switched, "state": _state_payload(controller)}


@layout_router.get("/strategies")
async def list_strategies():
    return {"strategies": [strategy.value for strategy in LayoutStrategy]}


@layout_router.post("/camera/reset")
async def reset_camera(controller: LayoutController = Depends(get_layout_controller)):
    """Request the default viewpoint of the active strategy"""
    return controller.request_camera_reset().to_dict()


@layout_router.post("/camera/focus/{item_id}")
async def focus_item(
    item_id: str,
    controller: LayoutController = Depends(get_layout_controller)
):
    """Aim the camera at one item"""
    directive = controller.focus_item(item_id)
    if directive is None:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return directive.to_dict()


@layout_router.put("/overlay")
async def update_overlay(
    update: OverlayUpdate,
    controller: LayoutController = Depends(get_layout_controller)
):
    """Update search query, category filter and selection"""
    fields = update.model_fields_set

    if "selected_id" in fields and not controller.select_item(update.selected_id):
        raise HTTPException(status_code=404, detail=f"Item not found: {update.selected_id}")
    if "search_query" in fields:
        controller.set_search_query(update.search_query)
    if "category_filter" in fields:
        controller.set_category_filter(update.category_filter)

    payload = _state_payload(controller)["overlay"]
    await websocket_manager.broadcast_state_change("overlay", payload)
    return payload


@layout_router.put("/x-ray")
async def set_x_ray_mode(
    update: XRayUpdate,
    controller: LayoutController = Depends(get_layout_controller)
):
    controller.set_x_ray_mode(update.enabled)
    return {"x_ray_mode": controller.x_ray_mode}


# WebSocket for the frame stream
@layout_router.websocket("/ws")
async def websocket_frame_stream(websocket: WebSocket):
    """WebSocket endpoint streaming layout frames to a renderer"""
    try:
        controller = _controller_from_state(websocket.app.state)
    except HTTPException:
        await websocket.close(code=1011)
        return

    connection_id = str(uuid.uuid4())
    connected = await websocket_manager.connect(websocket, connection_id)
    if not connected:
        return

    try:
        # Send the current frame so the renderer can draw before the next tick
        await websocket_manager.send_to_connection(connection_id, {
            "type": "initial_frame",
            "data": controller.snapshot().to_dict()
        })

        # Keep connection alive and handle any messages
        while True:
            data = await websocket.receive_json()
            message_type = data.get("type", "ping")

            if message_type == "ping":
                await websocket_manager.send_to_connection(connection_id, {
                    "type": "pong",
                    "data": {"timestamp": datetime.now().timestamp()}
                })
            elif message_type == "request_frame":
                await websocket_manager.send_to_connection(connection_id, {
                    "type": "frame",
                    "data": controller.snapshot().to_dict()
                })
            else:
                await websocket_manager.send_to_connection(connection_id, {
                    "type": "error",
                    "data": {"message": f"Unknown message type: {message_type}"}
                })
    except WebSocketDisconnect:
        logger.info(f"Frame stream WebSocket client disconnected: {connection_id}")
    except Exception as e:
        logger.error(f"Frame stream WebSocket error: {e}")
    finally:
        websocket_manager.disconnect(connection_id)
