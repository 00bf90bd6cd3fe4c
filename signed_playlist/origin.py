"""
HTTP access to the CDN origin: playlist fetches and proxied resource streams.
"""
from typing import Optional

import httpx

from signed_playlist.errors import OriginFetchError

_client: Optional[httpx.AsyncClient] = None


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """Create the shared upstream client (no retries; redirects followed)."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    global _client
    _client = client


def get_http_client() -> httpx.AsyncClient:
    """FastAPI dependency returning the client opened in the app lifespan."""
    if _client is None:
        raise RuntimeError("HTTP client not initialized")
    return _client


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    """
    Fetch a text document (a playlist) from the origin.

    Args:
        client: Shared upstream client
        url: Fully signed URL

    Returns:
        Response body decoded as text

    Raises:
        OriginFetchError: If the request fails or the status is not 2xx
    """
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        raise OriginFetchError(f"Failed to fetch '{url}': {e}") from e

    if not response.is_success:
        raise OriginFetchError(
            f"Origin answered {response.status_code} for '{url}'",
            status=response.status_code,
        )
    return response.text


async def open_stream(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """
    Start a streamed GET for a proxied resource.

    The caller owns the returned response and must close it (aclose) once
    the body has been relayed. Non-2xx responses are closed here and raised.

    Raises:
        OriginFetchError: With the upstream status when it is not 2xx
        httpx.HTTPError: On transport failures
    """
    request = client.build_request("GET", url)
    response = await client.send(request, stream=True)
    if not response.is_success:
        await response.aclose()
        raise OriginFetchError(
            f"Upstream answered {response.status_code} for proxied resource",
            status=response.status_code,
        )
    return response
