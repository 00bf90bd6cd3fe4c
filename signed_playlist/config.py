"""
Environment-derived configuration for the signed playlist service.

All values are read once into an immutable Settings object which is handed
to the signer and the routes, so request code never reads os.environ itself.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

# Already-set env vars (Docker Compose) win over a local .env
load_dotenv()

DEFAULT_PORT = 4000
DEFAULT_SIGN_TTL_SECONDS = 600
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Settings:
    cloudfront_domain: str = ""
    key_pair_id: str = ""
    private_key: str = ""
    private_key_path: str = ""
    cors_origins: tuple = ("*",)
    use_proxy: bool = False
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    sign_ttl_seconds: int = DEFAULT_SIGN_TTL_SECONDS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    @property
    def signer_configured(self) -> bool:
        """True when every signing prerequisite has a value (the key file is not opened)."""
        return bool(
            self.cloudfront_domain
            and self.key_pair_id
            and (self.private_key or self.private_key_path)
        )


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name, "")
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def parse_origins(raw: Optional[str]) -> tuple:
    """
    Parse a comma-separated CORS origin list.

    Args:
        raw: Value of CORS_ORIGIN (e.g., "http://localhost:5173,https://app.example.com")

    Returns:
        Tuple of origins, ("*",) when unset or empty
    """
    if not raw:
        return ("*",)
    origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    return origins or ("*",)


def load_settings() -> Settings:
    """Build a Settings object from the current environment."""
    # Inline PEM keys arrive with literal "\n" sequences from .env files
    private_key = os.getenv("CF_PRIVATE_KEY", "").replace("\\n", "\n")

    return Settings(
        cloudfront_domain=os.getenv("CLOUDFRONT_DOMAIN", ""),
        key_pair_id=os.getenv("CF_KEY_PAIR_ID", ""),
        private_key=private_key,
        private_key_path=os.getenv("CF_PRIVATE_KEY_PATH", ""),
        cors_origins=parse_origins(os.getenv("CORS_ORIGIN")),
        use_proxy=os.getenv("USE_PROXY", "").strip().lower() == "true",
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", DEFAULT_PORT),
        sign_ttl_seconds=_int_env("SIGN_TTL_SECONDS", DEFAULT_SIGN_TTL_SECONDS),
        http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return load_settings()
