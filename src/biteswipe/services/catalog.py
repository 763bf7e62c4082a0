"""Restaurant candidates offered for voting."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from biteswipe.adapters.yelp_client import YelpClient
from biteswipe.domain.models import Restaurant
from biteswipe.services.cache import Cache

_logger = logging.getLogger(__name__)

_METERS_PER_MILE = 1609.344


class RestaurantCatalog(Protocol):
    """Source of read-only restaurant candidates."""

    async def list_restaurants(self) -> list[Restaurant]:
        """Return the candidates in swipe order."""

    async def find(self, key: str) -> Restaurant | None:
        """Resolve a vote key (yelp id first, then id) to a restaurant."""


def sample_restaurants() -> list[Restaurant]:
    """Return the built-in restaurant fixture."""
    return [
        Restaurant(
            id="1",
            name="Pizza Palace",
            cuisine="Italian",
            rating=4.5,
            price="$$",
            distance="0.3 mi",
            image_url="https://images.unsplash.com/photo-1513104890138-7c749659a591?w=400",
            address="123 Main St",
            yelp_id="pizza-palace-1",
        ),
        Restaurant(
            id="2",
            name="Sushi Express",
            cuisine="Japanese",
            rating=4.2,
            price="$$$",
            distance="0.5 mi",
            image_url="https://images.unsplash.com/photo-1579584425555-c3ce17fd4351?w=400",
            address="456 Oak Ave",
            yelp_id="sushi-express-2",
        ),
        Restaurant(
            id="3",
            name="Burger Joint",
            cuisine="American",
            rating=4.0,
            price="$",
            distance="0.2 mi",
            image_url="https://images.unsplash.com/photo-1568901346375-23c9450c58cd?w=400",
            address="789 Pine St",
            yelp_id="burger-joint-3",
        ),
        Restaurant(
            id="4",
            name="Taco Town",
            cuisine="Mexican",
            rating=4.3,
            price="$",
            distance="0.4 mi",
            image_url="https://images.unsplash.com/photo-1565299624946-b28f40a0ca4b?w=400",
            address="321 Elm St",
            yelp_id="taco-town-4",
        ),
        Restaurant(
            id="5",
            name="Thai Delight",
            cuisine="Thai",
            rating=4.6,
            price="$$",
            distance="0.7 mi",
            image_url="https://images.unsplash.com/photo-1551504734-5ee1c4a1479b?w=400",
            address="654 Maple Dr",
            yelp_id="thai-delight-5",
        ),
    ]


def find_restaurant(restaurants: list[Restaurant], key: str) -> Restaurant | None:
    """Match a vote key against yelp ids first, then plain ids."""
    for restaurant in restaurants:
        if restaurant.yelp_id == key:
            return restaurant
    for restaurant in restaurants:
        if restaurant.id == key:
            return restaurant
    return None


@dataclass
class StaticRestaurantCatalog(RestaurantCatalog):
    """Catalog backed by a fixed list."""

    restaurants: list[Restaurant] = field(default_factory=sample_restaurants)

    async def list_restaurants(self) -> list[Restaurant]:
        return list(self.restaurants)

    async def find(self, key: str) -> Restaurant | None:
        return find_restaurant(self.restaurants, key)


@dataclass
class YelpRestaurantCatalog(RestaurantCatalog):
    """Catalog fed by Yelp business search, cached per location."""

    client: YelpClient
    cache: Cache
    location: str
    limit: int = 20
    ttl_seconds: int = 900

    async def list_restaurants(self) -> list[Restaurant]:
        cache_key = f"yelp:search:{self.location.lower()}:{self.limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return list(cached)
        payload = await self.client.search_businesses(self.location, limit=self.limit)
        restaurants = [
            _restaurant_from_business(business)
            for business in payload.get("businesses", [])
            if isinstance(business, dict) and business.get("id")
        ]
        _logger.info(
            "Yelp search: location=%s results=%s", self.location, len(restaurants)
        )
        self.cache.set(cache_key, restaurants, ttl_seconds=self.ttl_seconds)
        return list(restaurants)

    async def find(self, key: str) -> Restaurant | None:
        return find_restaurant(await self.list_restaurants(), key)


def _restaurant_from_business(business: dict[str, object]) -> Restaurant:
    categories = business.get("categories") or []
    cuisine = ""
    if isinstance(categories, list) and categories:
        first = categories[0]
        if isinstance(first, dict):
            cuisine = str(first.get("title", ""))
    location = business.get("location") or {}
    address = ""
    if isinstance(location, dict):
        display = location.get("display_address")
        if isinstance(display, list):
            address = ", ".join(str(line) for line in display)
        else:
            address = str(location.get("address1") or "")
    distance = business.get("distance")
    distance_text = (
        f"{float(distance) / _METERS_PER_MILE:.1f} mi"
        if isinstance(distance, int | float)
        else ""
    )
    yelp_id = str(business["id"])
    return Restaurant(
        id=yelp_id,
        name=str(business.get("name", "")),
        cuisine=cuisine,
        rating=float(business.get("rating") or 0.0),
        price=str(business.get("price") or ""),
        distance=distance_text,
        address=address,
        yelp_id=yelp_id,
        image_url=business.get("image_url") or None,
    )
