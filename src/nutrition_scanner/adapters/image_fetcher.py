"""Image download client."""

from dataclasses import dataclass

import httpx

from nutrition_scanner.services.analysis import FetchedImage, ImageFetcher


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """Image fetcher using httpx."""

    http_client: httpx.AsyncClient

    @classmethod
    def create(cls) -> "HttpxImageFetcher":
        """Create an image fetcher with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(follow_redirects=True))

    async def fetch(self, image_url: str) -> FetchedImage:
        """Download image bytes and keep the reported image content type."""
        response = await self.http_client.get(image_url, timeout=20)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        mime_type = content_type.split(";", maxsplit=1)[0].strip().lower()
        return FetchedImage(
            content=response.content,
            content_type=mime_type if mime_type.startswith("image/") else None,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
