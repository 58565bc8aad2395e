"""Integration tests for review endpoints via an in-process ASGI client."""

import uuid

from menurate.services import realtime
from menurate.services.realtime import hub


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


def _payload(item, rating, **overrides):
    body = {
        "menu_item_id": item.id,
        "rating": rating,
        "content": "Broth was rich and the noodles had real bite.",
    }
    body.update(overrides)
    return body


async def _create(client, headers, item, rating, **overrides):
    response = await client.post("/reviews", json=_payload(item, rating, **overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateReviewAPI:
    async def test_create_returns_201_and_updates_aggregates(self, client, seed, headers_for):
        dish = seed.items[0]
        a, b, c = seed.users[:3]
        await _create(client, headers_for(a), dish, 5, taste_rating=5)
        await _create(client, headers_for(b), dish, 4)
        await _create(client, headers_for(c), dish, 3, taste_rating=3)

        item = (await client.get(f"/menu-items/{dish.id}/ratings")).json()
        assert item["avg_rating"] == 4.0
        assert item["avg_taste_rating"] == 4.0
        assert item["avg_quality_rating"] is None
        assert item["total_reviews"] == 3

        restaurant = (await client.get(f"/restaurants/{seed.restaurant.id}/ratings")).json()
        assert restaurant == {
            "restaurant_id": seed.restaurant.id,
            "avg_rating": 4.0,
            "total_reviews": 3,
        }

    async def test_response_body(self, client, seed, headers_for):
        user = seed.users[0]
        review = await _create(client, headers_for(user), seed.items[0], 4, title="Solid")

        assert review["user_id"] == str(user.uid)
        assert review["rating"] == 4.0
        assert review["title"] == "Solid"
        assert review["is_visible"] is True
        assert review["is_flagged"] is False
        assert review["helpful_count"] == 0

    async def test_duplicate_returns_409(self, client, seed, headers_for):
        headers = headers_for(seed.users[0])
        await _create(client, headers, seed.items[0], 4)

        response = await client.post("/reviews", json=_payload(seed.items[0], 2), headers=headers)

        assert response.status_code == 409
        assert response.headers["X-Error-Code"] == "DUPLICATE_REVIEW"

    async def test_unknown_item_returns_404(self, client, seed, headers_for):
        body = _payload(seed.items[0], 4, menu_item_id=9_999)
        response = await client.post("/reviews", json=body, headers=headers_for(seed.users[0]))

        assert response.status_code == 404
        assert response.headers["X-Error-Code"] == "MENU_ITEM_NOT_FOUND"

    async def test_unknown_user_returns_404(self, client, seed):
        response = await client.post(
            "/reviews",
            json=_payload(seed.items[0], 4),
            headers={"X-User-ID": str(uuid.uuid4())},
        )
        assert response.status_code == 404
        assert response.headers["X-Error-Code"] == "USER_NOT_FOUND"

    async def test_rating_out_of_range_returns_422(self, client, seed, headers_for):
        headers = headers_for(seed.users[0])
        response = await client.post("/reviews", json=_payload(seed.items[0], 6), headers=headers)
        assert response.status_code == 422

        response = await client.post(
            "/reviews", json=_payload(seed.items[0], 4, taste_rating=0), headers=headers
        )
        assert response.status_code == 422

    async def test_short_content_returns_422(self, client, seed, headers_for):
        response = await client.post(
            "/reviews",
            json=_payload(seed.items[0], 4, content="meh"),
            headers=headers_for(seed.users[0]),
        )
        assert response.status_code == 422

    async def test_malformed_user_header_returns_400(self, client, seed):
        response = await client.post(
            "/reviews", json=_payload(seed.items[0], 4), headers={"X-User-ID": "not-a-uuid"}
        )
        assert response.status_code == 400
        assert response.headers["X-Error-Code"] == "MISSING_USER_ID"


class TestRealtimeOnCreate:
    async def test_new_review_published_to_item_topic(self, client, seed, headers_for):
        dish = seed.items[0]
        ws = RecordingSocket()
        hub.subscribe(ws, f"menuItem:{dish.id}")

        review = await _create(client, headers_for(seed.users[0]), dish, 5)

        events = [m["event"] for m in ws.sent]
        assert events == ["newReview", "ratingUpdate"]
        data = ws.sent[0]["data"]
        assert data["review"]["id"] == review["id"]
        assert data["menu_item_id"] == dish.id
        assert data["restaurant_id"] == seed.restaurant.id
        assert data["ratings"]["avg_rating"] == 5.0

    async def test_restaurant_topic_receives_new_review(self, client, seed, headers_for):
        ws = RecordingSocket()
        hub.subscribe(ws, f"restaurant:{seed.restaurant.id}")

        await _create(client, headers_for(seed.users[0]), seed.items[2], 3)

        events = [m["event"] for m in ws.sent]
        assert events == ["newReview", "menuItemRatingUpdate"]

    async def test_publish_failure_does_not_fail_creation(
        self, client, seed, headers_for, monkeypatch
    ):
        async def boom(*args, **kwargs):
            raise ConnectionError("realtime backend unavailable")

        monkeypatch.setattr(realtime.hub, "publish", boom)
        dish = seed.items[0]

        response = await client.post(
            "/reviews", json=_payload(dish, 4), headers=headers_for(seed.users[0])
        )

        assert response.status_code == 201
        item = (await client.get(f"/menu-items/{dish.id}/ratings")).json()
        assert item["avg_rating"] == 4.0
        assert item["total_reviews"] == 1


class TestUpdateReviewAPI:
    async def test_edit_rating_no_double_count(self, client, seed, headers_for):
        dish = seed.items[0]
        await _create(client, headers_for(seed.users[0]), dish, 5)
        review = await _create(client, headers_for(seed.users[1]), dish, 3)

        response = await client.patch(
            f"/reviews/{review['id']}", json={"rating": 5}, headers=headers_for(seed.users[1])
        )

        assert response.status_code == 200
        item = (await client.get(f"/menu-items/{dish.id}/ratings")).json()
        assert item["avg_rating"] == 5.0
        assert item["total_reviews"] == 2

    async def test_edit_by_other_user_forbidden(self, client, seed, headers_for):
        review = await _create(client, headers_for(seed.users[0]), seed.items[0], 4)

        response = await client.patch(
            f"/reviews/{review['id']}", json={"rating": 1}, headers=headers_for(seed.users[1])
        )

        assert response.status_code == 403
        assert response.headers["X-Error-Code"] == "ACCESS_DENIED"

    async def test_edit_broadcasts_rating_update(self, client, seed, headers_for):
        dish = seed.items[0]
        review = await _create(client, headers_for(seed.users[0]), dish, 4)
        ws = RecordingSocket()
        hub.subscribe(ws, f"menuItem:{dish.id}")

        await client.patch(
            f"/reviews/{review['id']}", json={"rating": 2}, headers=headers_for(seed.users[0])
        )

        assert [m["event"] for m in ws.sent] == ["ratingUpdate"]
        assert ws.sent[0]["data"]["avg_rating"] == 2.0


class TestDeleteReviewAPI:
    async def test_delete_only_review_resets(self, client, seed, headers_for):
        dish = seed.items[0]
        review = await _create(client, headers_for(seed.users[0]), dish, 4, quality_rating=5)

        response = await client.delete(
            f"/reviews/{review['id']}", headers=headers_for(seed.users[0])
        )

        assert response.status_code == 200
        assert response.json() == {"review_id": review["id"], "deleted": True}
        item = (await client.get(f"/menu-items/{dish.id}/ratings")).json()
        assert item["avg_rating"] is None
        assert item["avg_quality_rating"] is None
        assert item["total_reviews"] == 0
        restaurant = (await client.get(f"/restaurants/{seed.restaurant.id}/ratings")).json()
        assert restaurant["avg_rating"] is None
        assert restaurant["total_reviews"] == 0

    async def test_delete_missing_review_returns_404(self, client, seed, headers_for):
        response = await client.delete("/reviews/9999", headers=headers_for(seed.users[0]))
        assert response.status_code == 404
        assert response.headers["X-Error-Code"] == "REVIEW_NOT_FOUND"


class TestEngagementAPI:
    async def test_helpful_vote_toggle(self, client, seed, headers_for):
        review = await _create(client, headers_for(seed.users[0]), seed.items[0], 4)
        voter = headers_for(seed.users[1])

        first = await client.post(f"/reviews/{review['id']}/helpful", headers=voter)
        second = await client.post(f"/reviews/{review['id']}/helpful", headers=voter)

        assert first.json() == {"review_id": review["id"], "voted": True, "helpful_count": 1}
        assert second.json() == {"review_id": review["id"], "voted": False, "helpful_count": 0}

    async def test_cannot_vote_own_review(self, client, seed, headers_for):
        review = await _create(client, headers_for(seed.users[0]), seed.items[0], 4)

        response = await client.post(
            f"/reviews/{review['id']}/helpful", headers=headers_for(seed.users[0])
        )

        assert response.status_code == 400
        assert response.headers["X-Error-Code"] == "INVALID_VOTE"

    async def test_owner_response(self, client, seed, headers_for):
        review = await _create(client, headers_for(seed.users[0]), seed.items[0], 2)

        response = await client.post(
            f"/reviews/{review['id']}/respond",
            json={"response": "Sorry about that, next one is on us."},
            headers=headers_for(seed.owner),
        )

        assert response.status_code == 200
        assert response.json()["owner_response"] == "Sorry about that, next one is on us."

    async def test_flag_leaves_aggregates_alone(self, client, seed, headers_for):
        dish = seed.items[0]
        review = await _create(client, headers_for(seed.users[0]), dish, 4)
        ws = RecordingSocket()
        hub.subscribe(ws, f"menuItem:{dish.id}")

        response = await client.post(
            f"/reviews/{review['id']}/flag", headers=headers_for(seed.users[1])
        )

        assert response.status_code == 200
        assert ws.sent == []
        item = (await client.get(f"/menu-items/{dish.id}/ratings")).json()
        assert item["total_reviews"] == 1

    async def test_list_item_reviews(self, client, seed, headers_for):
        dish = seed.items[0]
        await _create(client, headers_for(seed.users[0]), dish, 2)
        top = await _create(client, headers_for(seed.users[1]), dish, 5)

        response = await client.get(f"/reviews/item/{dish.id}", params={"sort_by": "rating"})

        body = response.json()
        assert body["sort_by"] == "rating"
        assert [r["id"] for r in body["reviews"]][0] == top["id"]
        assert len(body["reviews"]) == 2


class TestRatingsAPI:
    async def test_missing_menu_item_returns_404(self, client, seed):
        response = await client.get("/menu-items/9999/ratings")
        assert response.status_code == 404

    async def test_missing_restaurant_returns_404(self, client, seed):
        response = await client.get("/restaurants/9999/ratings")
        assert response.status_code == 404

    async def test_fresh_item_has_no_ratings(self, client, seed):
        item = (await client.get(f"/menu-items/{seed.items[1].id}/ratings")).json()
        assert item == {
            "menu_item_id": seed.items[1].id,
            "avg_rating": None,
            "avg_taste_rating": None,
            "avg_quality_rating": None,
            "avg_value_rating": None,
            "avg_presentation_rating": None,
            "total_reviews": 0,
        }


class TestListReviewsAPI:
    async def test_list_limit(self, client, seed, headers_for):
        dish = seed.items[0]
        for user, rating in zip(seed.users[:3], (3, 4, 5)):
            await _create(client, headers_for(user), dish, rating)

        response = await client.get(
            f"/reviews/item/{dish.id}", params={"sort_by": "rating", "limit": 2}
        )

        assert [r["rating"] for r in response.json()["reviews"]] == [5.0, 4.0]

    async def test_list_limit_out_of_range_returns_422(self, client, seed):
        response = await client.get(f"/reviews/item/{seed.items[0].id}", params={"limit": 0})
        assert response.status_code == 422
