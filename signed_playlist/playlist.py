"""
Signed playlist assembly: sign the key, fetch the origin playlist, rewrite it.
"""
from dataclasses import dataclass

import httpx

from signed_playlist.config import DEFAULT_SIGN_TTL_SECONDS
from signed_playlist.errors import InvalidRequest
from signed_playlist.hls_rewrite import PLAYLIST_CONTENT_TYPE, count_references, rewrite_playlist
from signed_playlist.origin import fetch_text
from signed_playlist.signer import PrefixSigner


@dataclass(frozen=True)
class RewrittenPlaylist:
    body: str
    uri_count: int
    source_size: int
    content_type: str = PLAYLIST_CONTENT_TYPE


def validate_key(key: str) -> str:
    """
    Check an object key before signing it.

    Raises:
        InvalidRequest: If the key is empty or contains a ".." segment
    """
    if not key:
        raise InvalidRequest("key is required")
    if ".." in key.split("/"):
        raise InvalidRequest("key is invalid")
    return key


async def build_signed_playlist(
    key: str,
    signer: PrefixSigner,
    client: httpx.AsyncClient,
    use_proxy: bool = False,
    ttl_seconds: int = DEFAULT_SIGN_TTL_SECONDS,
) -> RewrittenPlaylist:
    """
    Produce the signed version of the playlist stored at `key`.

    Args:
        key: Object key of the playlist (e.g., "media/moon/master.m3u8")
        signer: Signer configured for the distribution
        client: Upstream HTTP client
        use_proxy: Rewrite references to /api/proxy links
        ttl_seconds: Signature lifetime

    Returns:
        RewrittenPlaylist with the rewritten body

    Raises:
        InvalidRequest: Empty or traversing key
        ConfigurationError: Signer prerequisites missing
        OriginFetchError: Origin unreachable or non-2xx (not retried)
        UnsafeReferenceError: Playlist references a parent directory
    """
    validate_key(key)
    signed = signer.sign(key, ttl_seconds)
    text = await fetch_text(client, signed.url)
    body = rewrite_playlist(text, signed, use_proxy)
    return RewrittenPlaylist(
        body=body,
        uri_count=count_references(text),
        source_size=len(text.encode("utf-8")),
    )
