import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from signed_playlist import __version__
from signed_playlist.config import Settings, get_settings
from signed_playlist.errors import InvalidRequest, OriginFetchError
from signed_playlist.hls_rewrite import is_absolute_url
from signed_playlist.origin import (
    create_http_client,
    get_http_client,
    open_stream,
    set_http_client,
)
from signed_playlist.playlist import build_signed_playlist, validate_key
from signed_playlist.signer import PrefixSigner

# Sent on every response so the player page can run cross-origin isolated
ISOLATION_HEADERS = {
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Embedder-Policy": "require-corp",
}


def log_error(tag: str, message: str) -> None:
    print(f"[{tag}] {message}", file=sys.stderr)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def get_signer(settings: Settings = Depends(get_settings)) -> PrefixSigner:
    return PrefixSigner(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared upstream HTTP client on startup, close it on shutdown."""
    settings = get_settings()
    client = create_http_client(settings.http_timeout_seconds)
    set_http_client(client)
    if not settings.signer_configured:
        print("⚠ CloudFront signer envs incomplete - signing requests will fail")
    print(f"server listening on {settings.port}")

    yield

    set_http_client(None)
    await client.aclose()
    print("Signed playlist service shut down")


app = FastAPI(
    title="Signed Playlist Service",
    description="Rewrites HLS playlists with CloudFront prefix signatures",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_isolation_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in ISOLATION_HEADERS.items():
        response.headers[name] = value
    return response


@app.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "signed-playlist",
        "signer": {"configured": settings.signer_configured},
        "proxy_mode": settings.use_proxy,
    }


@app.get("/api/playlist")
async def get_signed_playlist(
    key: str = Query(""),
    signer: PrefixSigner = Depends(get_signer),
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """
    Fetch a playlist through its signed URL and return it with every URI signed.

    Args:
        key: Object key of the playlist (e.g., "media/moon/master.m3u8")

    Returns:
        Rewritten playlist with the HLS Content-Type
    """
    try:
        playlist = await build_signed_playlist(
            key,
            signer,
            client,
            use_proxy=settings.use_proxy,
            ttl_seconds=settings.sign_ttl_seconds,
        )
    except InvalidRequest as e:
        return error_response(400, str(e))
    except OriginFetchError as e:
        log_error("PLAYLIST", f"Origin fetch failed key={key} status={e.status}: {e}")
        return error_response(502, "failed to fetch origin playlist")
    except Exception as e:
        log_error("PLAYLIST", f"Error building playlist key={key}: {e!r}")
        return error_response(500, "failed to build signed playlist")

    print(
        f"[PLAYLIST] Served playlist: key={key}, size={playlist.source_size} bytes, "
        f"rewritten_uris={playlist.uri_count}, proxy={settings.use_proxy}"
    )
    return Response(
        content=playlist.body,
        media_type=f"{playlist.content_type}; charset=utf-8",
        headers={"Cache-Control": "no-store"},
    )


@app.get("/api/sign")
async def sign_key(
    key: str = Query(""),
    signer: PrefixSigner = Depends(get_signer),
    settings: Settings = Depends(get_settings),
):
    """Return the signed URL for a single key."""
    try:
        validate_key(key)
        url = signer.sign_url(key, settings.sign_ttl_seconds)
    except InvalidRequest as e:
        return error_response(400, str(e))
    except Exception as e:
        log_error("SIGN", f"Error signing key={key}: {e!r}")
        return error_response(500, "failed to sign url")

    return {"url": url}


@app.get("/api/proxy")
async def proxy_resource(
    url: str = Query(""),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Relay an already signed resource through this origin.

    The URL is fetched verbatim; it was percent-encoded once when the
    playlist link was built and the query parser has decoded it once.
    """
    if not url:
        return error_response(400, "url is required")
    if not is_absolute_url(url):
        return error_response(400, "url must be an absolute http(s) URL")

    url_preview = url[:80] + "..." if len(url) > 80 else url
    try:
        upstream = await open_stream(client, url)
    except OriginFetchError as e:
        log_error("PROXY", f"Upstream status={e.status} url_preview={url_preview}")
        return error_response(e.status or 502, "failed to fetch resource")
    except Exception as e:
        log_error("PROXY", f"Error proxying url_preview={url_preview}: {e!r}")
        return error_response(500, "failed to proxy request")

    async def relay_body():
        # Closed on normal end, mid-stream upstream errors and client disconnects
        try:
            async for chunk in upstream.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            log_error("PROXY", f"Upstream stream broke url_preview={url_preview}: {e!r}")
            raise
        finally:
            await upstream.aclose()

    return StreamingResponse(
        relay_body(),
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type"),
    )
