"""Tests for the Google Places client and its offline fallback."""

import asyncio
import json

import httpx
import pytest

from competitor_watcher.places import (
    calculate_distance,
    format_price_level,
    sample_competitors,
    search_nearby,
    search_nearby_sync,
    search_places_by_address,
)

NEARBY_RESPONSE = {
    "places": [
        {
            "displayName": {"text": "Morning Brew"},
            "formattedAddress": "1 Rua Augusta, Lisboa",
            "rating": 4.6,
            "userRatingCount": 320,
            "types": ["cafe", "food"],
            "location": {"latitude": 38.7145, "longitude": -9.1399},
            "priceLevel": "PRICE_LEVEL_MODERATE",
            "reviews": [
                {
                    "authorAttribution": {"displayName": "Ana"},
                    "rating": 5,
                    "text": {"text": "Great coffee"},
                    "originalText": {"text": "Café ótimo"},
                    "relativePublishTimeDescription": "a week ago",
                },
                {"rating": 4, "text": {"text": "Nice"}},
                {"rating": 3, "text": {"text": "Ok"}},
                {"rating": 2, "text": {"text": "Dropped"}},
            ],
        },
        {"displayName": {"text": "No Location"}},
    ]
}


@pytest.fixture
def mock_places(monkeypatch):
    """Route httpx.AsyncClient through a MockTransport; returns the recorded requests."""
    def install(handler):
        requests = []
        real_client = httpx.AsyncClient

        def recording(request):
            requests.append(request)
            return handler(request)

        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(recording), **kwargs),
        )
        return requests

    return install


class TestDistance:
    def test_same_point(self):
        assert calculate_distance(38.7, -9.1, 38.7, -9.1) == "0m"

    def test_metres_under_a_kilometre(self):
        assert calculate_distance(0.0, 0.0, 0.0045, 0.0) == "500m"

    def test_kilometres(self):
        assert calculate_distance(0.0, 0.0, 1.0, 0.0) == "111.2km"

    def test_missing_coordinates(self):
        assert calculate_distance(38.7, -9.1, None, -9.1) == "Unknown"
        assert calculate_distance(38.7, -9.1, 38.7, None) == "Unknown"


def test_price_level():
    assert format_price_level("PRICE_LEVEL_MODERATE") == "$$"
    assert format_price_level("PRICE_LEVEL_FREE") == "Free"
    assert format_price_level("PRICE_LEVEL_UNSPECIFIED") is None
    assert format_price_level(None) is None


class TestSampleCompetitors:
    def test_deterministic(self):
        assert sample_competitors("cafe", 38.7, -9.1) == sample_competitors("cafe", 38.7, -9.1)

    def test_shape(self):
        competitors = sample_competitors("gym", 40.0, -8.0)
        assert 2 <= len(competitors) <= 5
        assert all(c.types == ["gym"] for c in competitors)
        assert all(3.5 <= c.rating <= 5.0 for c in competitors)

    def test_unknown_type_uses_generic_names(self):
        assert sample_competitors("spaceport", 0.0, 0.0)[0].name == "Local Business"


class TestSearchNearby:
    """Nearby search against a mocked Places API."""

    def test_without_key_returns_samples(self):
        result = asyncio.run(search_nearby(38.7, -9.1, "cafe"))
        assert result == sample_competitors("cafe", 38.7, -9.1)

    def test_parses_places(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
        requests = mock_places(lambda request: httpx.Response(200, json=NEARBY_RESPONSE))

        result = asyncio.run(search_nearby(38.7139, -9.1394, "cafe", radius=2000, include_reviews=True, language="pt"))

        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == "https://places.googleapis.com/v1/places:searchNearby"
        assert request.headers["X-Goog-Api-Key"] == "test-key"
        assert "places.reviews" in request.headers["X-Goog-FieldMask"]
        body = json.loads(request.content)
        assert body["includedTypes"] == ["cafe"]
        assert body["languageCode"] == "pt"
        assert body["locationRestriction"]["circle"]["radius"] == 2000.0

        brew, unknown = result
        assert brew.name == "Morning Brew"
        assert brew.price_level == "$$"
        assert brew.distance.endswith("m")
        assert len(brew.reviews) == 3
        assert brew.reviews[0].author == "Ana"
        assert brew.reviews[0].original_text == "Café ótimo"
        assert brew.reviews[1].author == "Anonymous"
        assert unknown.distance == "Unknown"
        assert unknown.address == "Address not available"

    def test_reviews_not_requested_by_default(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
        requests = mock_places(lambda request: httpx.Response(200, json={"places": []}))
        assert asyncio.run(search_nearby(38.7, -9.1, "cafe")) == []
        assert "places.reviews" not in requests[0].headers["X-Goog-FieldMask"]
        assert json.loads(requests[0].content)["maxResultCount"] == 10

    def test_http_error_falls_back_to_samples(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
        mock_places(lambda request: httpx.Response(500, json={"error": "boom"}))
        assert asyncio.run(search_nearby(38.7, -9.1, "bar")) == sample_competitors("bar", 38.7, -9.1)

    def test_network_error_falls_back_to_samples(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")

        def fail(request):
            raise httpx.ConnectError("unreachable", request=request)

        mock_places(fail)
        assert asyncio.run(search_nearby(38.7, -9.1, "bar")) == sample_competitors("bar", 38.7, -9.1)

    def test_sync_wrapper(self):
        assert search_nearby_sync(38.7, -9.1, "cafe") == sample_competitors("cafe", 38.7, -9.1)


class TestSearchPlacesByAddress:
    def test_without_key(self):
        assert asyncio.run(search_places_by_address("Rua Augusta")) == []

    def test_results(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
        requests = mock_places(lambda request: httpx.Response(200, json={
            "places": [{
                "id": "abc",
                "displayName": {"text": "Morning Brew"},
                "formattedAddress": "1 Rua Augusta, Lisboa",
                "location": {"latitude": 38.71, "longitude": -9.14},
            }]
        }))
        results = asyncio.run(search_places_by_address("Morning Brew Lisboa"))
        assert json.loads(requests[0].content)["textQuery"] == "Morning Brew Lisboa"
        assert [(r.place_id, r.latitude, r.longitude) for r in results] == [("abc", 38.71, -9.14)]

    def test_error_returns_empty(self, monkeypatch, mock_places):
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
        mock_places(lambda request: httpx.Response(403))
        assert asyncio.run(search_places_by_address("anything")) == []
