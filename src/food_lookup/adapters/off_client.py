"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class OpenFoodFactsClient(Protocol):
    """Interface for the external nutrition API."""

    async def search_products(
        self, terms: str, page_size: int = 10
    ) -> dict[str, object]:
        """Search products by free text and return raw API data."""

    async def get_product(self, code: str) -> dict[str, object]:
        """Fetch a product by barcode and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 10.0

    @classmethod
    def create(cls, base_url: str, user_agent: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(headers={"User-Agent": user_agent}),
        )

    async def search_products(
        self, terms: str, page_size: int = 10
    ) -> dict[str, object]:
        """Search products by free text."""
        response = await self.http_client.get(
            f"{self.base_url}/search",
            params={"terms": terms, "page_size": page_size},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def get_product(self, code: str) -> dict[str, object]:
        """Fetch a product by barcode."""
        response = await self.http_client.get(
            f"{self.base_url}/product/{code}.json",
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
