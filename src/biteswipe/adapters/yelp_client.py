"""Yelp Fusion API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class YelpClient(Protocol):
    """Interface for Yelp business search."""

    async def search_businesses(
        self, location: str, term: str = "restaurants", limit: int = 20
    ) -> dict[str, object]:
        """Search businesses near a location and return raw API data."""


@dataclass
class HttpxYelpClient(YelpClient):
    """HTTPX-backed Yelp client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxYelpClient":
        """Create a Yelp client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_businesses(
        self, location: str, term: str = "restaurants", limit: int = 20
    ) -> dict[str, object]:
        """Search businesses by location."""
        url = f"{self.base_url}/businesses/search"
        response = await self.http_client.get(
            url,
            params={"location": location, "term": term, "limit": limit},
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=15,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
