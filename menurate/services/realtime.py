"""
Realtime notifier — in-process publish/subscribe hub for WebSocket clients.

Topics are namespaced by entity kind and id: "menuItem:<id>", "restaurant:<id>".
Delivery is fire-and-forget: no acknowledgements, no replay for late
subscribers, and a failed publish never propagates to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from fastapi import WebSocket

from menurate.config import settings
from menurate.services.ratings import ItemRatings

logger = logging.getLogger(__name__)


def menu_item_topic(menu_item_id: int) -> str:
    return f"menuItem:{menu_item_id}"


def restaurant_topic(restaurant_id: int) -> str:
    return f"restaurant:{restaurant_id}"


@dataclass
class PublishResult:
    """Outcome of a best-effort publish. Callers are free to ignore it."""

    ok: bool
    delivered: int = 0
    error: Optional[str] = None


class RealtimeHub:
    """
    Tracks which sockets are subscribed to which topics.

    All mutation happens on the event loop thread, so plain dicts/sets are
    enough. A socket whose send fails or times out is disconnected from
    every topic.
    """

    def __init__(self, send_timeout: float | None = None) -> None:
        self._send_timeout = (
            send_timeout
            if send_timeout is not None
            else settings.realtime_send_timeout_seconds
        )
        self._topics: dict[str, set[WebSocket]] = {}
        self._sockets: dict[WebSocket, set[str]] = {}

    def connect(self, ws: WebSocket) -> None:
        self._sockets.setdefault(ws, set())

    def disconnect(self, ws: WebSocket) -> None:
        """Drop a socket and all of its subscriptions."""
        for topic in self._sockets.pop(ws, set()):
            subscribers = self._topics.get(topic)
            if subscribers is None:
                continue
            subscribers.discard(ws)
            if not subscribers:
                del self._topics[topic]

    def subscribe(self, ws: WebSocket, topic: str) -> None:
        self._sockets.setdefault(ws, set()).add(topic)
        self._topics.setdefault(topic, set()).add(ws)
        logger.debug("Socket %s subscribed to %s", id(ws), topic)

    def unsubscribe(self, ws: WebSocket, topic: str) -> None:
        self._sockets.get(ws, set()).discard(topic)
        subscribers = self._topics.get(topic)
        if subscribers is not None:
            subscribers.discard(ws)
            if not subscribers:
                del self._topics[topic]
        logger.debug("Socket %s unsubscribed from %s", id(ws), topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def publish(self, topic: str, event: str, payload: dict[str, Any]) -> int:
        """
        Send {"event": event, "data": payload} to every current subscriber.
        Sends run concurrently, each bounded by the send timeout, so one slow
        socket costs at most one timeout. Returns the number of sockets the
        message reached.
        """
        subscribers = list(self._topics.get(topic, ()))
        if not subscribers:
            return 0

        message = {"event": event, "data": payload}
        outcomes = await asyncio.gather(
            *(
                asyncio.wait_for(ws.send_json(message), timeout=self._send_timeout)
                for ws in subscribers
            ),
            return_exceptions=True,
        )

        delivered = 0
        for ws, outcome in zip(subscribers, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Dropping subscriber on %s after send failure: %r", topic, outcome
                )
                self.disconnect(ws)
            else:
                delivered += 1
        return delivered


hub = RealtimeHub()


async def publish_best_effort(
    topic: str,
    event: str,
    payload: dict[str, Any],
) -> PublishResult:
    """Publish through the hub; never raises."""
    if not settings.realtime_enabled:
        return PublishResult(ok=True)
    try:
        delivered = await hub.publish(topic, event, payload)
        return PublishResult(ok=True, delivered=delivered)
    except Exception as exc:
        logger.warning("Realtime publish to %s (%s) failed: %s", topic, event, exc)
        return PublishResult(ok=False, error=str(exc))


def _ratings_payload(ratings: ItemRatings) -> dict[str, Any]:
    payload = {k: v for k, v in asdict(ratings).items() if k != "restaurant"}
    if ratings.restaurant is not None:
        payload["restaurant_avg_rating"] = ratings.restaurant.avg_rating
        payload["restaurant_total_reviews"] = ratings.restaurant.total_reviews
    return payload


def _entity_topics(ratings: ItemRatings) -> list[str]:
    topics = [menu_item_topic(ratings.menu_item_id)]
    if ratings.restaurant_id is not None:
        topics.append(restaurant_topic(ratings.restaurant_id))
    return topics


async def notify_new_review(
    review: dict[str, Any],
    ratings: ItemRatings,
) -> list[PublishResult]:
    """
    Broadcast a freshly created review to the item's and restaurant's topics.
    Called only after the review and its recomputed aggregates are committed.
    """
    payload = {
        "review": review,
        "menu_item_id": ratings.menu_item_id,
        "restaurant_id": ratings.restaurant_id,
        "ratings": _ratings_payload(ratings),
    }
    return list(
        await asyncio.gather(
            *(publish_best_effort(t, "newReview", payload) for t in _entity_topics(ratings))
        )
    )


async def notify_rating_update(ratings: ItemRatings) -> list[PublishResult]:
    """Broadcast refreshed aggregates after any recompute."""
    payload = _ratings_payload(ratings)
    events = ("ratingUpdate", "menuItemRatingUpdate")
    return list(
        await asyncio.gather(
            *(
                publish_best_effort(topic, event, payload)
                for topic, event in zip(_entity_topics(ratings), events)
            )
        )
    )
