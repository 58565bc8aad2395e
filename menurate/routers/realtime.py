"""
Realtime WebSocket endpoint.

Client → server messages (JSON):
  {"action": "subscribe",   "topic": "menuItem:12"}
  {"action": "unsubscribe", "topic": "restaurant:3"}
  {"action": "subscribeMenuItem", "id": 12}       (also unsubscribeMenuItem,
  {"action": "subscribeRestaurant", "id": 3}       subscribeRestaurant, unsubscribeRestaurant)

Server → client messages: {"event": "...", "data": {...}}
  subscribed / unsubscribed / error       — replies to the client's own messages
  newReview / ratingUpdate / menuItemRatingUpdate — broadcasts

There is no replay: a subscriber only sees events published after it joined.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from menurate.services.realtime import hub, menu_item_topic, restaurant_topic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

_TOPIC_RE = re.compile(r"(menuItem|restaurant):\d+")

# Legacy per-entity actions → (subscribe?, topic builder)
_ENTITY_ACTIONS = {
    "subscribeMenuItem": (True, menu_item_topic),
    "unsubscribeMenuItem": (False, menu_item_topic),
    "subscribeRestaurant": (True, restaurant_topic),
    "unsubscribeRestaurant": (False, restaurant_topic),
}


def _parse_message(message: Any) -> tuple[Optional[bool], Optional[str]]:
    """Return (subscribe?, topic) or (None, None) for anything malformed."""
    if not isinstance(message, dict):
        return None, None
    action = message.get("action")

    if action in ("subscribe", "unsubscribe"):
        topic = message.get("topic")
        if isinstance(topic, str) and _TOPIC_RE.fullmatch(topic):
            return action == "subscribe", topic
        return None, None

    if action in _ENTITY_ACTIONS:
        entity_id = message.get("id")
        try:
            entity_id = int(entity_id)
        except (TypeError, ValueError):
            return None, None
        subscribe, build_topic = _ENTITY_ACTIONS[action]
        return subscribe, build_topic(entity_id)

    return None, None


@router.websocket("/ws")
async def realtime(ws: WebSocket) -> None:
    """Join/leave menu item and restaurant topics for live review updates."""
    await ws.accept()
    hub.connect(ws)
    logger.debug("Realtime client connected: %s", id(ws))

    try:
        while True:
            try:
                message = await ws.receive_json()
            except (ValueError, KeyError, TypeError):
                # Binary frames carry no text payload
                await ws.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue

            subscribe, topic = _parse_message(message)
            if topic is None:
                await ws.send_json(
                    {"event": "error", "data": {"detail": "Unrecognised message"}}
                )
                continue

            if subscribe:
                hub.subscribe(ws, topic)
                await ws.send_json({"event": "subscribed", "data": {"topic": topic}})
            else:
                hub.unsubscribe(ws, topic)
                await ws.send_json({"event": "unsubscribed", "data": {"topic": topic}})
    except WebSocketDisconnect:
        logger.debug("Realtime client disconnected: %s", id(ws))
    finally:
        hub.disconnect(ws)
