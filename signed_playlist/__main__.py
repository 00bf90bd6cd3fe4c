import uvicorn

from signed_playlist.config import get_settings


def run() -> None:
    """Serve the API on HOST:PORT (default 0.0.0.0:4000)."""
    settings = get_settings()
    uvicorn.run("signed_playlist.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
