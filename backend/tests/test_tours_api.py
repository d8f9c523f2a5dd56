"""
Natours Backend — Tour Endpoint Tests
=======================================

What:  End-to-end tests for /api/v1/tours CRUD and list queries.
How:   Real requests against the app on an in-memory SQLite database.

What we test:
    ✅ Create → 201 with defaults, slug and camelCase document
    ✅ Validation messages for field and cross-field rules
    ✅ Duplicate names, malformed ids and unknown ids
    ✅ Filtering, sorting, field limiting, pagination, pollution whitelist
    ✅ Secret tours are invisible to every read and write
    ✅ Partial updates validate the merged document
    ✅ The top-5-cheap alias
"""

import uuid

import pytest

from conftest import create_tour, create_user

pytestmark = pytest.mark.asyncio


class TestCreateTour:
    async def test_create_returns_document(self, test_client, tour_payload):
        response = await test_client.post("/api/v1/tours", json=tour_payload())
        assert response.status_code == 201

        body = response.json()
        assert body["status"] == "success"
        tour = body["data"]["data"]
        assert tour["name"] == "The Forest Hiker"
        assert tour["slug"] == "the-forest-hiker"
        assert tour["ratingsAverage"] == 4.5
        assert tour["ratingsQuantity"] == 0
        assert tour["maxGroupSize"] == 25
        assert tour["durationWeeks"] == pytest.approx(5 / 7)
        assert tour["startLocation"]["coordinates"] == [-115.570154, 51.178456]
        assert len(tour["startDates"]) == 2
        uuid.UUID(tour["id"])

    async def test_invalid_difficulty(self, test_client, tour_payload):
        response = await test_client.post("/api/v1/tours", json=tour_payload(difficulty="extreme"))
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "fail"
        assert body["message"].startswith("Invalid input data.")
        assert "Difficulty is either: easy, medium, difficult" in body["message"]

    async def test_discount_must_be_below_price(self, test_client, tour_payload):
        response = await test_client.post(
            "/api/v1/tours", json=tour_payload(price=397, priceDiscount=500)
        )
        assert response.status_code == 400
        assert "Discount price (500) should be below regular price" in response.json()["message"]

    async def test_missing_required_fields(self, test_client):
        response = await test_client.post("/api/v1/tours", json={"name": "A tour without data"})
        assert response.status_code == 400
        message = response.json()["message"]
        assert "duration" in message and "price" in message

    async def test_duplicate_name(self, test_client, tour_payload):
        await create_tour(test_client, tour_payload())
        response = await test_client.post("/api/v1/tours", json=tour_payload())
        assert response.status_code == 400
        assert response.json()["message"].startswith("Duplicate field value:")

    async def test_operator_keys_are_stripped(self, test_client, tour_payload):
        body = tour_payload(summary="<b>Bold</b> hike")
        body["$where"] = "1 == 1"
        tour = await create_tour(test_client, body)
        assert tour["summary"] == "&lt;b&gt;Bold&lt;/b&gt; hike"

    async def test_guides_are_embedded(self, test_client, tour_payload):
        guide = await create_user(test_client, email="guide@example.io", role="guide")
        tour = await create_tour(test_client, tour_payload(guides=[guide["id"]]))
        assert tour["guides"][0]["email"] == "guide@example.io"
        assert tour["guides"][0]["role"] == "guide"

    async def test_unknown_guide_is_rejected(self, test_client, tour_payload):
        response = await test_client.post(
            "/api/v1/tours", json=tour_payload(guides=[str(uuid.uuid4())])
        )
        assert response.status_code == 400


class TestGetTour:
    async def test_get_by_id_populates_reviews(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload())
        response = await test_client.get(f"/api/v1/tours/{tour['id']}")
        assert response.status_code == 200
        document = response.json()["data"]["data"]
        assert document["id"] == tour["id"]
        assert document["reviews"] == []

    async def test_malformed_id(self, test_client):
        response = await test_client.get("/api/v1/tours/wwwww")
        assert response.status_code == 400
        assert response.json() == {"status": "fail", "message": "Invalid id: wwwww."}

    async def test_unknown_id(self, test_client):
        response = await test_client.get(f"/api/v1/tours/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "No tour found with that ID"}


class TestListTours:
    @pytest.fixture
    async def seeded(self, test_client, tour_payload):
        tours = [
            tour_payload(name="The Forest Hiker", duration=5, price=397, difficulty="easy"),
            tour_payload(name="The Sea Explorer", duration=7, price=497, difficulty="medium"),
            tour_payload(name="The Snow Adventurer", duration=4, price=997, difficulty="difficult"),
            tour_payload(name="The City Wanderer", duration=9, price=1197, difficulty="easy"),
            tour_payload(name="The Secret Valley", duration=9, price=50, difficulty="easy", secretTour=True),
        ]
        return [await create_tour(test_client, body) for body in tours]

    async def test_envelope_and_secret_exclusion(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours")
        body = response.json()
        assert body["status"] == "success"
        assert body["results"] == 4
        names = {t["name"] for t in body["data"]["data"]}
        assert "The Secret Valley" not in names

    async def test_version_is_hidden_by_default(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours")
        assert all("version" not in t for t in response.json()["data"]["data"])

    async def test_equality_filter(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"difficulty": "easy"})
        names = {t["name"] for t in response.json()["data"]["data"]}
        assert names == {"The Forest Hiker", "The City Wanderer"}

    async def test_range_filters(self, test_client, seeded):
        response = await test_client.get(
            "/api/v1/tours", params={"price[gte]": "400", "price[lt]": "1000"}
        )
        names = {t["name"] for t in response.json()["data"]["data"]}
        assert names == {"The Sea Explorer", "The Snow Adventurer"}

    async def test_whitelisted_repeat_matches_any(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours?duration=5&duration=9")
        names = {t["name"] for t in response.json()["data"]["data"]}
        assert names == {"The Forest Hiker", "The City Wanderer"}

    async def test_repeated_sort_uses_last(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours?sort=price&sort=-price")
        prices = [t["price"] for t in response.json()["data"]["data"]]
        assert prices == sorted(prices, reverse=True)

    async def test_multi_key_sort(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"sort": "difficulty,-price"})
        names = [t["name"] for t in response.json()["data"]["data"]]
        assert names == [
            "The Snow Adventurer",
            "The City Wanderer",
            "The Forest Hiker",
            "The Sea Explorer",
        ]

    async def test_field_limiting(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"fields": "name,price"})
        for tour in response.json()["data"]["data"]:
            assert set(tour) == {"id", "name", "price"}

    async def test_field_exclusion(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"fields": "-summary,-images"})
        tour = response.json()["data"]["data"][0]
        assert "summary" not in tour and "images" not in tour
        assert "name" in tour

    async def test_pagination(self, test_client, seeded):
        page_1 = await test_client.get("/api/v1/tours", params={"sort": "price", "limit": 3})
        page_2 = await test_client.get(
            "/api/v1/tours", params={"sort": "price", "limit": 3, "page": 2}
        )
        assert [t["price"] for t in page_1.json()["data"]["data"]] == [397, 497, 997]
        assert [t["price"] for t in page_2.json()["data"]["data"]] == [1197]

    async def test_page_past_the_end_is_empty(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"page": 50, "limit": 10})
        assert response.status_code == 200
        assert response.json()["results"] == 0

    async def test_unknown_filter_field(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"color": "red"})
        assert response.status_code == 400

    async def test_uncastable_filter_value(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours", params={"duration": "five"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid duration: five."

    async def test_top_5_cheap(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours/top-5-cheap")
        assert response.status_code == 200
        tours = response.json()["data"]["data"]
        assert len(tours) == 4
        assert set(tours[0]) == {"id", "name", "price", "ratingsAverage", "summary", "difficulty"}
        assert [t["price"] for t in tours] == [397, 497, 997, 1197]

    async def test_secret_tour_is_not_found_by_id(self, test_client, seeded):
        secret = seeded[-1]
        assert (await test_client.get(f"/api/v1/tours/{secret['id']}")).status_code == 404
        assert (await test_client.delete(f"/api/v1/tours/{secret['id']}")).status_code == 404


class TestUpdateDeleteTour:
    async def test_partial_update(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload())
        response = await test_client.patch(f"/api/v1/tours/{tour['id']}", json={"price": 450})
        assert response.status_code == 200
        updated = response.json()["data"]["data"]
        assert updated["price"] == 450
        assert updated["name"] == tour["name"]
        assert updated["startDates"] == tour["startDates"]

    async def test_update_validates_merged_document(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload(price=397))
        response = await test_client.patch(
            f"/api/v1/tours/{tour['id']}", json={"priceDiscount": 400}
        )
        assert response.status_code == 400
        assert "should be below regular price" in response.json()["message"]

    async def test_update_runs_field_rules(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload())
        response = await test_client.patch(f"/api/v1/tours/{tour['id']}", json={"name": "Short"})
        assert response.status_code == 400

    async def test_rename_updates_slug(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload())
        response = await test_client.patch(
            f"/api/v1/tours/{tour['id']}", json={"name": "The Forest Runner"}
        )
        assert response.json()["data"]["data"]["slug"] == "the-forest-runner"

    async def test_update_unknown_id(self, test_client):
        response = await test_client.patch(f"/api/v1/tours/{uuid.uuid4()}", json={"price": 1})
        assert response.status_code == 404

    async def test_delete(self, test_client, tour_payload):
        tour = await create_tour(test_client, tour_payload())
        response = await test_client.delete(f"/api/v1/tours/{tour['id']}")
        assert response.status_code == 204
        assert response.content == b""
        assert (await test_client.get(f"/api/v1/tours/{tour['id']}")).status_code == 404
