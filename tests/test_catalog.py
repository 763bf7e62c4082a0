"""Tests for restaurant catalogs and the Yelp client."""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx

from biteswipe.adapters.yelp_client import HttpxYelpClient
from biteswipe.services.cache import InMemoryCache
from biteswipe.services.catalog import (
    StaticRestaurantCatalog,
    YelpRestaurantCatalog,
    find_restaurant,
    sample_restaurants,
)

_BUSINESS = {
    "id": "golden-bowl-sf",
    "name": "Golden Bowl",
    "categories": [{"alias": "ramen", "title": "Ramen"}],
    "rating": 4.4,
    "price": "$$",
    "distance": 1609.344,
    "image_url": "https://example.com/bowl.jpg",
    "location": {"display_address": ["1 Market St", "San Francisco, CA 94105"]},
}


def test_yelp_client_sends_search_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"businesses": [_BUSINESS]})

    transport = httpx.MockTransport(handler)
    client = HttpxYelpClient(
        api_key="key",
        base_url="https://api.yelp.test/v3",
        http_client=httpx.AsyncClient(transport=transport),
    )

    payload = asyncio.run(client.search_businesses("Oakland, CA", limit=5))

    assert payload["businesses"][0]["id"] == "golden-bowl-sf"
    request = seen[0]
    assert request.url.path == "/v3/businesses/search"
    assert request.url.params["location"] == "Oakland, CA"
    assert request.url.params["limit"] == "5"
    assert request.headers["Authorization"] == "Bearer key"


def test_yelp_catalog_maps_and_caches_businesses() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(
            200, json={"businesses": [_BUSINESS, {"name": "No id"}]}
        )

    client = HttpxYelpClient(
        api_key="key",
        base_url="https://api.yelp.test/v3",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    catalog = YelpRestaurantCatalog(
        client=client, cache=InMemoryCache(), location="San Francisco, CA"
    )

    restaurants = asyncio.run(catalog.list_restaurants())
    found = asyncio.run(catalog.find("golden-bowl-sf"))

    assert len(restaurants) == 1
    restaurant = restaurants[0]
    assert restaurant.cuisine == "Ramen"
    assert restaurant.distance == "1.0 mi"
    assert restaurant.address == "1 Market St, San Francisco, CA 94105"
    assert restaurant.image_url == "https://example.com/bowl.jpg"
    assert found == restaurant
    assert len(calls) == 1


def test_cache_entries_expire() -> None:
    now = datetime(2024, 1, 1, tzinfo=UTC)
    clock = {"now": now}
    cache = InMemoryCache(clock=lambda: clock["now"])

    cache.set("k", "v", ttl_seconds=60)
    assert cache.get("k") == "v"

    clock["now"] = now + timedelta(seconds=61)
    assert cache.get("k") is None

    cache.set("k", "v", ttl_seconds=60)
    cache.delete("k")
    assert cache.get("k") is None


def test_vote_keys_resolve_by_yelp_id_then_id() -> None:
    restaurants = sample_restaurants()

    assert find_restaurant(restaurants, "thai-delight-5").name == "Thai Delight"
    assert find_restaurant(restaurants, "5").name == "Thai Delight"
    assert find_restaurant(restaurants, "nope") is None
    assert restaurants[0].matches_key("pizza-palace-1")
    assert restaurants[0].matches_key("1")
    assert not restaurants[0].matches_key("2")


def test_static_catalog_returns_copies() -> None:
    catalog = StaticRestaurantCatalog()

    first = asyncio.run(catalog.list_restaurants())
    first.clear()

    assert len(asyncio.run(catalog.list_restaurants())) == 5
    assert asyncio.run(catalog.find("2")).yelp_id == "sushi-express-2"
