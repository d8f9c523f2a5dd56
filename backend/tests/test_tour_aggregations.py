"""
Natours Backend — Tour Aggregation Tests
==========================================

What:  Tests for tour statistics, the monthly plan and the geo endpoints.
How:   Seeds a handful of tours through the API and checks the computed
       results; input parsing helpers are tested directly.

What we test:
    ✅ Stats group by upper-cased difficulty, skip low ratings and secret tours
    ✅ Monthly plan counts departures per month inside the requested year only,
       including two departures of one tour in the same month
    ✅ tours-within honours the radius and the unit, down to the 200-unit boundary
    ✅ distances are ordered nearest first and converted to the unit
    ✅ Malformed coordinates, distances and years are rejected
"""

import math

import pytest

from conftest import create_tour
from natours.exceptions import ValidationError
from natours.services.tour_aggregations import (
    LATLNG_FORMAT_MESSAGE,
    parse_center,
    parse_distance,
    parse_year,
)

LOS_ANGELES = "34.111745,-118.113491"


@pytest.fixture
async def seeded(test_client, tour_payload):
    tours = [
        tour_payload(
            name="The Forest Hiker", price=397, difficulty="easy", ratingsAverage=4.7,
            ratingsQuantity=37, startDates=["2021-04-25T09:00:00Z", "2021-07-20T09:00:00Z"],
        ),
        tour_payload(
            name="The Sea Explorer", price=497, difficulty="medium", ratingsAverage=4.8,
            ratingsQuantity=23, startDates=["2021-07-19T09:00:00Z", "2021-09-18T09:00:00Z"],
            startLocation={"type": "Point", "coordinates": [-118.2437, 34.0522]},
        ),
        tour_payload(
            name="The Snow Adventurer", price=997, difficulty="difficult", ratingsAverage=4.9,
            ratingsQuantity=13, startDates=["2021-01-05T09:00:00Z", "2022-03-01T09:00:00Z"],
            startLocation={"type": "Point", "coordinates": [-80.185942, 25.774772]},
        ),
        tour_payload(
            name="The City Wanderer", price=1197, difficulty="easy", ratingsAverage=4.5,
            ratingsQuantity=8, startDates=["2020-12-31T23:00:00Z"], startLocation=None,
        ),
        tour_payload(
            name="The Park Camper", price=100, difficulty="easy", ratingsAverage=4.0,
            startDates=[], startLocation=None,
        ),
        tour_payload(
            name="The Secret Valley", price=50, difficulty="easy", ratingsAverage=5,
            secretTour=True, startDates=["2021-07-01T09:00:00Z"],
            startLocation={"type": "Point", "coordinates": [-118.2, 34.1]},
        ),
    ]
    return [await create_tour(test_client, body) for body in tours]


class TestTourStats:
    @pytest.mark.asyncio
    async def test_grouped_by_difficulty_and_sorted_by_avg_price(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours/tour-stats")
        assert response.status_code == 200
        stats = response.json()["data"]["data"]

        assert [s["difficulty"] for s in stats] == ["MEDIUM", "EASY", "DIFFICULT"]
        easy = stats[1]
        assert easy["numTours"] == 2
        assert easy["numRatings"] == 45
        assert easy["avgPrice"] == pytest.approx(797)
        assert easy["minPrice"] == 397
        assert easy["maxPrice"] == 1197
        assert easy["avgRating"] == pytest.approx(4.6)

    @pytest.mark.asyncio
    async def test_empty_database(self, test_client):
        response = await test_client.get("/api/v1/tours/tour-stats")
        assert response.json()["data"]["data"] == []


class TestMonthlyPlan:
    @pytest.mark.asyncio
    async def test_counts_per_month(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours/monthly-plan/2021")
        assert response.status_code == 200
        plan = response.json()["data"]["data"]

        assert [entry["month"] for entry in plan] == [7, 1, 4, 9]
        assert plan[0] == {
            "month": 7,
            "numTourStarts": 2,
            "tours": ["The Sea Explorer", "The Forest Hiker"],
        }
        assert all(entry["numTourStarts"] == 1 for entry in plan[1:])

    @pytest.mark.asyncio
    async def test_same_tour_twice_in_one_month_counts_twice(self, test_client, tour_payload):
        await create_tour(
            test_client,
            tour_payload(
                name="The Northern Lights",
                startDates=["2023-06-01T09:00:00Z", "2023-06-20T09:00:00Z", "2023-08-02T09:00:00Z"],
            ),
        )
        plan = (await test_client.get("/api/v1/tours/monthly-plan/2023")).json()["data"]["data"]
        assert plan == [
            {"month": 6, "numTourStarts": 2, "tours": ["The Northern Lights", "The Northern Lights"]},
            {"month": 8, "numTourStarts": 1, "tours": ["The Northern Lights"]},
        ]

    @pytest.mark.asyncio
    async def test_year_without_departures(self, test_client, seeded):
        response = await test_client.get("/api/v1/tours/monthly-plan/1999")
        assert response.json()["data"]["data"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("year", ["abc", "0", "10000"])
    async def test_invalid_year(self, test_client, year):
        response = await test_client.get(f"/api/v1/tours/monthly-plan/{year}")
        assert response.status_code == 400


def equator_point(distance, earth_radius):
    """GeoJSON point on the equator `distance` units east of (0, 0)."""
    return {"type": "Point", "coordinates": [math.degrees(distance / earth_radius), 0]}


class TestGeo:
    @pytest.mark.asyncio
    async def test_tours_within_miles(self, test_client, seeded):
        response = await test_client.get(
            f"/api/v1/tours/tours-within/400/center/{LOS_ANGELES}/unit/mi"
        )
        assert response.status_code == 200
        body = response.json()
        assert body["results"] == 1
        assert body["data"]["data"][0]["name"] == "The Sea Explorer"

    @pytest.mark.asyncio
    async def test_tours_within_kilometres(self, test_client, seeded):
        response = await test_client.get(
            f"/api/v1/tours/tours-within/2500/center/{LOS_ANGELES}/unit/km"
        )
        names = {t["name"] for t in response.json()["data"]["data"]}
        assert names == {"The Sea Explorer", "The Forest Hiker"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("unit,earth_radius", [("mi", 3963.2), ("km", 6378.1)])
    async def test_radius_boundary(self, test_client, tour_payload, unit, earth_radius):
        await create_tour(
            test_client,
            tour_payload(name="The Equator Near Camp", startLocation=equator_point(199, earth_radius)),
        )
        await create_tour(
            test_client,
            tour_payload(name="The Equator Far Camp", startLocation=equator_point(201, earth_radius)),
        )

        response = await test_client.get(f"/api/v1/tours/tours-within/200/center/0,0/unit/{unit}")
        assert response.status_code == 200
        assert [t["name"] for t in response.json()["data"]["data"]] == ["The Equator Near Camp"]

    @pytest.mark.asyncio
    async def test_distances_nearest_first(self, test_client, seeded):
        response = await test_client.get(f"/api/v1/tours/distances/{LOS_ANGELES}/unit/mi")
        assert response.status_code == 200
        rows = response.json()["data"]["data"]

        assert [r["name"] for r in rows] == [
            "The Sea Explorer",
            "The Forest Hiker",
            "The Snow Adventurer",
        ]
        assert set(rows[0]) == {"id", "name", "distance"}
        assert 5 < rows[0]["distance"] < 15
        assert 1100 < rows[1]["distance"] < 1300

    @pytest.mark.asyncio
    async def test_distances_default_to_kilometres(self, test_client, seeded):
        miles = await test_client.get(f"/api/v1/tours/distances/{LOS_ANGELES}/unit/mi")
        other = await test_client.get(f"/api/v1/tours/distances/{LOS_ANGELES}/unit/furlong")
        ratio = other.json()["data"]["data"][1]["distance"] / miles.json()["data"]["data"][1]["distance"]
        assert ratio == pytest.approx(0.001 / 0.000621371)

    @pytest.mark.asyncio
    async def test_bad_center(self, test_client):
        response = await test_client.get("/api/v1/tours/distances/34.1/unit/mi")
        assert response.status_code == 400
        assert response.json() == {"status": "fail", "message": LATLNG_FORMAT_MESSAGE}


class TestInputParsing:
    def test_parse_center(self):
        assert parse_center("34.111745,-118.113491") == (34.111745, -118.113491)

    @pytest.mark.parametrize("raw", ["34.1", "a,b", "1,2,3", "91,0", "0,181", "nan,0", ""])
    def test_parse_center_rejects(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            parse_center(raw)
        assert exc_info.value.message == LATLNG_FORMAT_MESSAGE

    @pytest.mark.parametrize("raw", ["-1", "far", "inf"])
    def test_parse_distance_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_distance(raw)

    def test_parse_year(self):
        assert parse_year("2021") == 2021
        with pytest.raises(ValidationError):
            parse_year("20x1")
