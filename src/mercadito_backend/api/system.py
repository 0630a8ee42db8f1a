import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError

from mercadito_backend.exceptions import ServiceUnavailableException
from mercadito_backend.permissions.auth import get_current_principal
from mercadito_backend.permissions.principal import Principal

system_router = APIRouter()
logger = logging.getLogger(__name__)


@system_router.get("/ws/status")
async def websocket_status(
    request: Request,
    permissions: Annotated[Principal, Depends(get_current_principal)],
):
    """Connection metrics of this process and the users currently connected."""
    manager = request.app.state.ws_manager
    return {
        "metrics": manager.get_metrics(),
        "connected_user_ids": await manager.connected_user_ids(),
    }


@system_router.get("/ws/presence/{user_id}")
async def websocket_presence(
    user_id: int,
    request: Request,
    permissions: Annotated[Principal, Depends(get_current_principal)],
):
    presence = request.app.state.ws_presence
    if presence is None:
        return {"user_id": user_id, "online": False, "presence_enabled": False}

    try:
        online = await presence.is_online(user_id)
    except (RedisError, OSError) as e:
        logger.error(f"Presence lookup failed for user {user_id}: {e}")
        raise ServiceUnavailableException(detail="Presence store unavailable")

    return {"user_id": user_id, "online": online, "presence_enabled": True}
